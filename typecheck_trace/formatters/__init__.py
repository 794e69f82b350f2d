from .time_formatter import format_duration, format_time

__all__ = ['format_duration', 'format_time']
