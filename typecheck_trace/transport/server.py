"""
Server side of the request/response protocol, bound to one consumer connection.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Set

import websockets

from ..core.errors import EnvelopeError, TraceError
from .dispatcher import StreamDispatcher
from .envelope import decode, encode_error, encode_response, parse_request
from .messages import (
    ChildrenById,
    FileStats,
    FilterTree,
    MessageModel,
    TraceStart,
    TraceStop,
    TypesById,
    TypesByTypeId,
    parse_message,
)

logger = logging.getLogger(__name__)


class TraceMessageServer:
    """
    Answers the requests of one consumer against a TraceEngine.

    ``filterTree`` results are streamed through the StreamDispatcher; every
    other request gets exactly one complete response or one error response.
    """

    def __init__(self, engine, send: Callable[[str], Awaitable[None]],
                 dispatcher: Optional[StreamDispatcher] = None):
        """
        Args:
            engine: TraceEngine holding the session
            send: Coroutine function writing one wire message to the consumer
            dispatcher: StreamDispatcher for tree results; built from the
                        engine's configuration if omitted
        """
        self.engine = engine
        self.send = send
        self.dispatcher = dispatcher or StreamDispatcher(
            send,
            chunk_size=engine.config.chunk_size,
            interval=engine.config.stream_interval,
        )
        self._background: Set[asyncio.Task] = set()

        self._handlers = {
            'traceStart': self._trace_start,
            'traceStop': self._trace_stop,
            'filterTree': self._filter_tree,
            'childrenById': self._children_by_id,
            'typesById': self._types_by_id,
            'typesByTypeId': self._types_by_type_id,
            'fileStats': self._file_stats,
        }

    async def handle(self, data: Any) -> None:
        """Validate, dispatch and answer one wire message."""
        try:
            request = parse_request(decode(data))
        except EnvelopeError as e:
            logger.warning(f"Dropped request: {e}")
            if e.request_id is not None:
                await self.send(encode_error(e.request_id, str(e)))
            return

        try:
            message = parse_message(request.payload)
            handler = self._handlers.get(message.message)
            if handler is None:
                raise EnvelopeError(f"{message.message} is not a request", request.request_id)
            response = await handler(request.request_id, message)
        except TraceError as e:
            logger.info(f"Request {request.request_id} failed: {e}")
            await self.send(encode_error(request.request_id, str(e)))
            return

        if response is not None:
            await self.send(encode_response(request.request_id, response.to_payload()))

    async def close(self) -> None:
        await self.dispatcher.close()
        for task in list(self._background):
            task.cancel()
        await asyncio.gather(*self._background, return_exceptions=True)

    async def _trace_start(self, request_id: int, message: TraceStart) -> MessageModel:
        task = asyncio.create_task(self._collect(message.project_path, message.trace_dir))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return message

    async def _collect(self, project_path: str, trace_dir: str) -> None:
        try:
            await self.engine.start_trace(project_path, trace_dir)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Trace collection for {project_path} failed: {e}")

    async def _trace_stop(self, request_id: int, message: TraceStop) -> MessageModel:
        self.engine.collector.stop()
        return message

    async def _filter_tree(self, request_id: int, message: FilterTree) -> None:
        nodes = self.engine.filter_tree(message.starts_with, message.source_file_name, message.position)
        # Nodes register in the index of the tree they were found in
        await self.dispatcher.start(request_id, nodes, index=self.engine.index)

    async def _children_by_id(self, request_id: int, message: ChildrenById) -> MessageModel:
        children = self.engine.children_by_id(message.id)
        return ChildrenById(id=message.id, children=[child.to_message() for child in children])

    async def _types_by_id(self, request_id: int, message: TypesById) -> MessageModel:
        types = self.engine.types_by_id(message.id)
        return TypesById(id=message.id, types=[record.to_wire() for record in types])

    async def _types_by_type_id(self, request_id: int, message: TypesByTypeId) -> MessageModel:
        types = self.engine.types_by_type_id([message.id])
        return TypesByTypeId(id=message.id, types=[record.to_wire() for record in types])

    async def _file_stats(self, request_id: int, message: FileStats) -> MessageModel:
        stats = self.engine.get_stats_from_tree(message.file_name)
        return FileStats(file_name=message.file_name, stats=stats)


async def serve(engine, host: Optional[str] = None, port: Optional[int] = None) -> None:
    """
    Serve an engine over websockets until cancelled.

    Every connection gets its own TraceMessageServer, so streams of one
    consumer never cancel those of another.
    """
    host = host or engine.config.host
    port = port or engine.config.port

    async def on_connection(websocket) -> None:
        server = TraceMessageServer(engine, websocket.send)
        try:
            async for data in websocket:
                await server.handle(data)
        except websockets.ConnectionClosed:
            logger.info("Consumer disconnected")
        finally:
            await server.close()

    async with websockets.serve(on_connection, host, port):
        logger.info(f"Serving traces on ws://{host}:{port}")
        await asyncio.Future()
