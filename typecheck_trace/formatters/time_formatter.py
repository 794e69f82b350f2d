"""
Time formatting utilities for human-readable output.
"""


def format_time(ms: float) -> str:
    """
    Format time in milliseconds to a human-readable string.

    Args:
        ms: Time in milliseconds

    Returns:
        Formatted time string (e.g., "123.45 ms", "2.34 s", "1m 30.50s")
    """
    if ms < 1000:
        return f"{ms:.2f} ms"
    elif ms < 60000:
        return f"{ms/1000:.2f} s"
    else:
        minutes = int(ms / 60000)
        seconds = (ms % 60000) / 1000
        return f"{minutes}m {seconds:.2f}s"


def format_duration(us: float) -> str:
    """
    Format a trace duration, which is recorded in microseconds.

    Args:
        us: Duration in microseconds

    Returns:
        Formatted time string (e.g., "850 us", "12.30 ms")
    """
    if us < 1000:
        return f"{us:.0f} us"
    return format_time(us / 1000)
