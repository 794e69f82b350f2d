"""
Paced, cancellable delivery of large query results.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Hashable, List, Optional, Tuple

from ..core.errors import StaleTreeError
from ..core.tree import TreeNode
from .envelope import encode_error, encode_response
from .messages import ShowTree

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL = 'showTree'
STREAM_CANCELLED = 'stream cancelled'


class StreamDispatcher:
    """
    Streams tree nodes to a consumer as ``showTree`` start / add / done chunks.

    Chunks are spaced by ``interval`` seconds so a result of tens of thousands
    of nodes never arrives as one message. At most one stream is active per
    channel: starting a new one cancels the previous stream, whose request is
    answered with an error so the requester is not left waiting.
    """

    def __init__(
        self,
        send: Callable[[str], Awaitable[None]],
        chunk_size: int = 10,
        interval: float = 0.03,
        index=None
    ):
        """
        Args:
            send: Coroutine function writing one wire message to the consumer
            chunk_size: Nodes per ``add`` chunk
            interval: Seconds between two chunks
            index: Default TreeIndex that delivered nodes are registered in
        """
        self.send = send
        self.chunk_size = chunk_size
        self.interval = interval
        self.index = index
        self._streams: Dict[Hashable, Tuple[int, asyncio.Task]] = {}

    async def start(
        self,
        request_id: int,
        nodes: List[TreeNode],
        channel: Hashable = DEFAULT_CHANNEL,
        index=None
    ) -> asyncio.Task:
        """
        Begin streaming ``nodes`` as the response to ``request_id``.

        Args:
            index: TreeIndex of the tree the nodes come from; overrides the
                   dispatcher default for this stream

        Returns:
            The delivery task
        """
        await self.cancel(channel, reason=f"superseded by request {request_id}")
        task = asyncio.create_task(
            self._deliver(channel, request_id, list(nodes), index if index is not None else self.index)
        )
        self._streams[channel] = (request_id, task)
        return task

    async def cancel(self, channel: Hashable = DEFAULT_CHANNEL, reason: Optional[str] = None,
                     notify: bool = True) -> bool:
        """
        Stop the stream on a channel without emitting ``done``.

        Args:
            channel: Channel to cancel
            reason: Text appended to the cancellation error
            notify: Answer the cancelled request with an error response

        Returns:
            True if a stream was active
        """
        entry = self._streams.pop(channel, None)
        if entry is None:
            return False

        request_id, task = entry
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

        if notify:
            message = STREAM_CANCELLED + (f": {reason}" if reason else '')
            await self.send(encode_error(request_id, message))
        return True

    def is_active(self, channel: Hashable = DEFAULT_CHANNEL) -> bool:
        return channel in self._streams

    async def wait(self, channel: Hashable = DEFAULT_CHANNEL) -> None:
        entry = self._streams.get(channel)
        if entry is not None:
            await asyncio.gather(entry[1], return_exceptions=True)

    async def close(self) -> None:
        for channel in list(self._streams):
            await self.cancel(channel, notify=False)

    async def _deliver(self, channel: Hashable, request_id: int, nodes: List[TreeNode], index) -> None:
        try:
            await self.send(encode_response(request_id, ShowTree(step='start').to_payload(), complete=False))

            for i in range(0, len(nodes), self.chunk_size):
                await asyncio.sleep(self.interval)
                chunk = nodes[i:i + self.chunk_size]
                if index is not None:
                    index.register_all(chunk)
                payload = ShowTree(step='add', nodes=[node.thin().to_message() for node in chunk])
                await self.send(encode_response(request_id, payload.to_payload(), complete=False))

            await self.send(encode_response(request_id, ShowTree(step='done').to_payload()))
        except asyncio.CancelledError:
            raise
        except StaleTreeError as e:
            logger.info(f"Stream for request {request_id} stopped: {e}")
            await self._abort(request_id, f"{STREAM_CANCELLED}: {e}")
        except Exception as e:
            logger.warning(f"Stream for request {request_id} aborted: {e}")
            await self._abort(request_id, str(e) or type(e).__name__)
        finally:
            current = self._streams.get(channel)
            if current is not None and current[1] is asyncio.current_task():
                del self._streams[channel]

    async def _abort(self, request_id: int, message: str) -> None:
        try:
            await self.send(encode_error(request_id, message))
        except Exception as e:
            logger.warning(f"Could not report the failure of request {request_id}: {e}")
