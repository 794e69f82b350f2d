"""
Wire envelopes of the request/response protocol.

Request:           [id, payload]
Response:          [id, payload, "complete" | "incomplete"]
Error response:    [id, "error", message]
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..core.errors import EnvelopeError

COMPLETE = 'complete'
INCOMPLETE = 'incomplete'
ERROR = 'error'


@dataclass
class Request:
    request_id: int
    payload: Dict[str, Any]


@dataclass
class Response:
    request_id: int
    payload: Optional[Dict[str, Any]] = None
    complete: bool = True
    error: Optional[str] = None


def encode_request(request_id: int, payload: Dict[str, Any]) -> str:
    return json.dumps([request_id, payload])


def encode_response(request_id: int, payload: Dict[str, Any], complete: bool = True) -> str:
    return json.dumps([request_id, payload, COMPLETE if complete else INCOMPLETE])


def encode_error(request_id: int, message: str) -> str:
    return json.dumps([request_id, ERROR, message])


def decode(data: Any) -> Any:
    """
    Decode a wire message; values that are already decoded pass through.

    Raises:
        EnvelopeError: If the text is not JSON
    """
    if isinstance(data, (bytes, bytearray)):
        data = data.decode('utf-8')
    if isinstance(data, str):
        try:
            return json.loads(data)
        except json.JSONDecodeError as e:
            raise EnvelopeError(f"non message payload {data[:200]}") from e
    return data


def _request_id(envelope: Any) -> int:
    if not isinstance(envelope, list) or not envelope:
        raise EnvelopeError(f"unhandled payload {repr(envelope)[:200]}")
    request_id = envelope[0]
    if isinstance(request_id, bool) or not isinstance(request_id, int):
        raise EnvelopeError(f"invalid message id {repr(request_id)[:50]}")
    return request_id


def parse_request(envelope: Any) -> Request:
    """
    Validate a decoded request envelope.

    Raises:
        EnvelopeError: If the envelope is malformed; ``request_id`` is set when
                       the id itself was valid
    """
    request_id = _request_id(envelope)
    if len(envelope) != 2 or not isinstance(envelope[1], dict):
        raise EnvelopeError('expected a single object payload', request_id=request_id)
    return Request(request_id, envelope[1])


def parse_response(envelope: Any) -> Response:
    """
    Validate a decoded response envelope.

    Raises:
        EnvelopeError: If the envelope is malformed
    """
    request_id = _request_id(envelope)
    if len(envelope) == 3:
        body, status = envelope[1], envelope[2]
        if body == ERROR and isinstance(status, str):
            return Response(request_id, error=status)
        if isinstance(body, dict) and status in (COMPLETE, INCOMPLETE):
            return Response(request_id, payload=body, complete=status == COMPLETE)
    raise EnvelopeError(f"invalid response payload {repr(envelope)[:200]}", request_id=request_id)
