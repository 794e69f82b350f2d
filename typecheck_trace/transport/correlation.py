"""
Client side of the request/response protocol.

Every request gets an id; responses echo it and are routed to the handler
registered for that id. Streamed responses arrive as several "incomplete"
parts followed by one "complete" part.
"""

import asyncio
import itertools
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional, Union

import websockets

from ..core.errors import (
    EnvelopeError,
    MessageValidationError,
    RemoteError,
    RequestIdCollisionError,
    RequestTimeoutError,
    StreamCancelledError,
    TransportError,
)
from .dispatcher import STREAM_CANCELLED
from .envelope import decode, encode_request, parse_response
from .messages import MessageModel, message_type, parse_message

logger = logging.getLogger(__name__)

# Requests whose responses carry a different discriminant than the request itself
RESPONSE_TYPES = {
    'filterTree': 'showTree',
}

ResponseHandler = Callable[[MessageModel, bool], None]
ErrorHandler = Callable[[Exception], None]


@dataclass
class PendingRequest:
    expected_type: str
    on_response: ResponseHandler
    on_error: ErrorHandler
    timer: Optional[asyncio.TimerHandle] = None


class CorrelationClient:
    """Matches responses to the requests that caused them."""

    def __init__(
        self,
        send: Callable[[str], Awaitable[None]],
        timeout: Optional[float] = None,
        max_pending: Optional[int] = None,
        id_space: Optional[int] = None
    ):
        """
        Args:
            send: Coroutine function writing one wire message to the server
            timeout: Seconds to wait for (the next part of) a response before
                     failing the request; None waits forever
            max_pending: Maximum number of requests in flight
            id_space: Wrap request ids modulo this value for peers that expect
                      small ids; reusing an id that is still pending is an error
        """
        self.send = send
        self.timeout = timeout
        self.max_pending = max_pending
        self.id_space = id_space
        self._ids = itertools.count()
        self._pending: Dict[int, PendingRequest] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def is_pending(self, request_id: int) -> bool:
        return request_id in self._pending

    async def request(
        self,
        message: Union[MessageModel, Dict[str, Any]],
        on_response: ResponseHandler,
        on_error: ErrorHandler,
        expect: Optional[str] = None
    ) -> int:
        """
        Send a request and register handlers for its responses.

        Args:
            message: Request payload
            on_response: Called with each response message and whether it was the last
            on_error: Called once with the exception if the request fails
            expect: Discriminant the responses must carry; defaults to the
                    response type of the request's own discriminant

        Returns:
            The request id

        Raises:
            TransportError: If too many requests are in flight
            RequestIdCollisionError: If the next id is still pending
        """
        payload = message.to_payload() if isinstance(message, MessageModel) else dict(message)
        request_type = message_type(payload)
        if request_type is None:
            raise MessageValidationError('request payload has no message discriminant')
        if self.max_pending is not None and len(self._pending) >= self.max_pending:
            raise TransportError(f"{len(self._pending)} requests already pending")

        request_id = next(self._ids)
        if self.id_space:
            request_id %= self.id_space
        if request_id in self._pending:
            raise RequestIdCollisionError(f"request id {request_id} is still pending")

        pending = PendingRequest(expect or RESPONSE_TYPES.get(request_type, request_type), on_response, on_error)
        self._pending[request_id] = pending
        self._arm_timer(request_id, pending)

        try:
            await self.send(encode_request(request_id, payload))
        except Exception:
            self._release(request_id)
            raise
        return request_id

    async def call(self, message: Union[MessageModel, Dict[str, Any]], expect: Optional[str] = None) -> MessageModel:
        """
        Send a request and wait for its complete response.

        Raises:
            RemoteError: If the server answered with an error
            RequestTimeoutError: If the response did not arrive in time
        """
        future = asyncio.get_running_loop().create_future()

        def on_response(response: MessageModel, complete: bool) -> None:
            if complete and not future.done():
                future.set_result(response)

        def on_error(error: Exception) -> None:
            if not future.done():
                future.set_exception(error)

        await self.request(message, on_response, on_error, expect)
        return await future

    async def stream(
        self,
        message: Union[MessageModel, Dict[str, Any]],
        expect: Optional[str] = None
    ) -> AsyncIterator[MessageModel]:
        """
        Send a request and yield every response part until the complete one.

        Raises:
            RemoteError: If the server answered with an error
            RequestTimeoutError: If a part did not arrive in time
        """
        queue: asyncio.Queue = asyncio.Queue()
        request_id = await self.request(
            message,
            lambda response, complete: queue.put_nowait((response, complete, None)),
            lambda error: queue.put_nowait((None, True, error)),
            expect,
        )
        try:
            while True:
                response, complete, error = await queue.get()
                if error is not None:
                    raise error
                yield response
                if complete:
                    return
        finally:
            self._release(request_id)

    def receive(self, data: Any) -> None:
        """
        Route one wire message to the handler of its request.

        Malformed envelopes are logged and dropped. A response whose
        discriminant does not match the expected one never reaches the
        response handler; if it was the final part the request fails instead.
        """
        try:
            response = parse_response(decode(data))
        except EnvelopeError as e:
            logger.warning(f"Dropped message: {e}")
            return

        request_id = response.request_id
        pending = self._pending.get(request_id)
        if pending is None:
            logger.warning(f"response handler for {request_id} was not defined or the response was already handled")
            return

        if response.error is not None:
            self._release(request_id)
            error_class = StreamCancelledError if response.error.startswith(STREAM_CANCELLED) else RemoteError
            pending.on_error(error_class(request_id, response.error))
            return

        if response.complete:
            self._release(request_id)
        else:
            self._arm_timer(request_id, pending)

        try:
            parsed = parse_message(response.payload)
        except MessageValidationError as e:
            self._reject(request_id, pending, response.complete, f"response payload was not a message: {e}")
            return

        if parsed.message != pending.expected_type:
            self._reject(
                request_id, pending, response.complete,
                f"response type {parsed.message} did not match expected type {pending.expected_type}",
            )
            return

        pending.on_response(parsed, response.complete)

    def close(self) -> None:
        """Fail every pending request, e.g. because the connection went away."""
        for request_id, pending in list(self._pending.items()):
            self._release(request_id)
            pending.on_error(TransportError(f"connection closed before request {request_id} completed"))

    @staticmethod
    def _reject(request_id: int, pending: PendingRequest, complete: bool, reason: str) -> None:
        logger.warning(f"Dropped response to request {request_id}: {reason}")
        if complete:
            pending.on_error(MessageValidationError(reason))

    def _arm_timer(self, request_id: int, pending: PendingRequest) -> None:
        if self.timeout is None:
            return
        if pending.timer is not None:
            pending.timer.cancel()
        pending.timer = asyncio.get_running_loop().call_later(self.timeout, self._expire, request_id)

    def _expire(self, request_id: int) -> None:
        pending = self._release(request_id)
        if pending is not None:
            pending.on_error(RequestTimeoutError(f"request {request_id} timed out after {self.timeout}s"))

    def _release(self, request_id: int) -> Optional[PendingRequest]:
        pending = self._pending.pop(request_id, None)
        if pending is not None and pending.timer is not None:
            pending.timer.cancel()
        return pending


@asynccontextmanager
async def connect(url: str, timeout: Optional[float] = None) -> AsyncIterator[CorrelationClient]:
    """
    Open a websocket to a trace server and yield a client bound to it.

    Args:
        url: Server address, e.g. ``ws://localhost:3010``
        timeout: Per-request timeout passed to the client
    """
    async with websockets.connect(url) as websocket:
        client = CorrelationClient(websocket.send, timeout=timeout)

        async def read() -> None:
            async for data in websocket:
                client.receive(data)

        reader = asyncio.create_task(read())
        try:
            yield client
        finally:
            reader.cancel()
            await asyncio.gather(reader, return_exceptions=True)
            client.close()
