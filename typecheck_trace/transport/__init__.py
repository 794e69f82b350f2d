"""
Message transport between a trace engine and its consumer.
"""

from .correlation import CorrelationClient, connect
from .dispatcher import StreamDispatcher
from .envelope import decode, encode_error, encode_request, encode_response, parse_request, parse_response
from .messages import parse_message
from .server import TraceMessageServer, serve

__all__ = [
    'CorrelationClient',
    'StreamDispatcher',
    'TraceMessageServer',
    'connect',
    'decode',
    'encode_error',
    'encode_request',
    'encode_response',
    'parse_message',
    'parse_request',
    'parse_response',
    'serve',
]
