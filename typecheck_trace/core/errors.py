"""
Exception hierarchy for trace ingestion, tree queries and the message transport.
"""

from typing import Optional


class TraceError(Exception):
    """Base class for every error raised by typecheck_trace."""


class RecordValidationError(TraceError):
    """A raw trace or type record did not match its expected shape."""

    def __init__(self, file_name: Optional[str], message: str):
        self.file_name = file_name
        if file_name:
            message = f"{file_name}: {message}"
        super().__init__(message)


class TreeConstructionError(TraceError):
    """The merged record sequence cannot be folded into a properly nested tree."""


class LookupMissError(TraceError):
    """A node or type id was requested that the session does not know."""


class NodeNotFoundError(LookupMissError):
    def __init__(self, node_id: int):
        self.node_id = node_id
        super().__init__(f"node id not found {node_id}")


class TypeNotFoundError(LookupMissError):
    def __init__(self, type_id: int):
        self.type_id = type_id
        super().__init__(f"type id not found {type_id}")


class TransportError(TraceError):
    """Base class for message transport failures."""


class EnvelopeError(TransportError):
    """
    A wire message was not a well-formed envelope.

    ``request_id`` is set when the envelope carried a usable id, so the peer
    can still be answered with an error response.
    """

    def __init__(self, message: str, request_id: Optional[int] = None):
        self.request_id = request_id
        super().__init__(message)


class MessageValidationError(TransportError):
    """An envelope payload did not match any known message shape."""


class RequestIdCollisionError(TransportError):
    """A request id was issued while a handler for the same id is still pending."""


class RequestTimeoutError(TransportError):
    """No (further) response arrived for a pending request in time."""


class RemoteError(TransportError):
    """The peer answered a request with an error response."""

    def __init__(self, request_id: int, message: str):
        self.request_id = request_id
        super().__init__(message)


class StreamCancelledError(RemoteError):
    """A streamed response was superseded by a newer request on its channel."""


class StaleTreeError(TraceError):
    """Nodes of a tree were revealed after a newer tree replaced it."""
