"""
Unit tests for typecheck_trace.transport.dispatcher module.
"""
import json
import pytest
from typecheck_trace.core.records import PhaseEvent
from typecheck_trace.core.tree import TreeNode
from typecheck_trace.processors.tree_index import TreeIndex
from typecheck_trace.transport.dispatcher import StreamDispatcher


def make_nodes(count, first_id=1):
    nodes = []
    for node_id in range(first_id, first_id + count):
        event = PhaseEvent(pid=1, tid=1, ph="X", cat="check", name=f"n{node_id}", ts=node_id, dur=1)
        child = TreeNode(id=1000 + node_id, parent_id=node_id, event=event)
        nodes.append(TreeNode(id=node_id, parent_id=0, event=event, children=[child], type_ids=[node_id]))
    return nodes


class Recorder:
    """Collects decoded wire messages."""

    def __init__(self):
        self.messages = []

    async def send(self, data):
        self.messages.append(json.loads(data))

    def for_request(self, request_id):
        return [m for m in self.messages if m[0] == request_id]


@pytest.fixture
def recorder():
    return Recorder()


class TestStreamDispatcher:
    """Tests for paced, cancellable delivery."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count,chunk_size", [(0, 3), (1, 3), (5, 2), (6, 3), (7, 10)])
    async def test_delivers_every_node_once(self, recorder, count, chunk_size):
        """Test that the add chunks carry exactly the result set in order."""
        nodes = make_nodes(count)
        dispatcher = StreamDispatcher(recorder.send, chunk_size=chunk_size, interval=0)
        await dispatcher.start(1, nodes)
        await dispatcher.wait()

        messages = recorder.for_request(1)
        steps = [m[1]["step"] for m in messages]
        assert steps[0] == "start"
        assert steps[-1] == "done"
        assert all(step == "add" for step in steps[1:-1])
        assert [m[2] for m in messages] == ["incomplete"] * (len(messages) - 1) + ["complete"]

        delivered = [n["id"] for m in messages for n in m[1]["nodes"]]
        assert delivered == [n.id for n in nodes]
        assert all(len(m[1]["nodes"]) <= chunk_size for m in messages)

    @pytest.mark.asyncio
    async def test_nodes_are_thinned(self, recorder):
        """Test that streamed nodes carry neither children nor direct types."""
        dispatcher = StreamDispatcher(recorder.send, chunk_size=10, interval=0)
        await dispatcher.start(1, make_nodes(3))
        await dispatcher.wait()

        added = [n for m in recorder.messages for n in m[1]["nodes"]]
        assert added
        for node in added:
            assert node["children"] == []
            assert node["typeIds"] == []

    @pytest.mark.asyncio
    async def test_delivered_nodes_are_indexed(self, recorder):
        """Test that delivered nodes can be looked up afterwards."""
        index = TreeIndex()
        nodes = make_nodes(4)
        dispatcher = StreamDispatcher(recorder.send, chunk_size=3, interval=0, index=index)
        await dispatcher.start(1, nodes)
        await dispatcher.wait()

        assert len(index) == 4
        assert index.get(2).children, "the index holds the full node"

    @pytest.mark.asyncio
    async def test_new_stream_cancels_previous(self, recorder):
        """Test that a second request on the channel supersedes the first."""
        dispatcher = StreamDispatcher(recorder.send, chunk_size=1, interval=0.05)
        await dispatcher.start(1, make_nodes(50))
        await dispatcher.start(2, make_nodes(2, first_id=100))
        await dispatcher.wait()

        first = recorder.for_request(1)
        assert first[-1] == [1, "error", "stream cancelled: superseded by request 2"]
        assert not any(m[1] != "error" and m[1]["step"] == "done" for m in first)

        second = recorder.for_request(2)
        assert second[-1][1]["step"] == "done"
        assert [n["id"] for m in second for n in m[1]["nodes"]] == [100, 101]

    @pytest.mark.asyncio
    async def test_channels_are_independent(self, recorder):
        dispatcher = StreamDispatcher(recorder.send, chunk_size=1, interval=0)
        await dispatcher.start(1, make_nodes(2), channel="a")
        await dispatcher.start(2, make_nodes(2), channel="b")
        await dispatcher.wait("a")
        await dispatcher.wait("b")

        assert recorder.for_request(1)[-1][2] == "complete"
        assert recorder.for_request(2)[-1][2] == "complete"

    @pytest.mark.asyncio
    async def test_cancel(self, recorder):
        dispatcher = StreamDispatcher(recorder.send, chunk_size=1, interval=0.05)
        await dispatcher.start(1, make_nodes(10))
        assert dispatcher.is_active()

        assert await dispatcher.cancel() is True
        assert not dispatcher.is_active()
        assert recorder.messages[-1] == [1, "error", "stream cancelled"]
        assert await dispatcher.cancel() is False

    @pytest.mark.asyncio
    async def test_finished_stream_is_inactive(self, recorder):
        dispatcher = StreamDispatcher(recorder.send, chunk_size=5, interval=0)
        await dispatcher.start(1, make_nodes(2))
        await dispatcher.wait()
        assert not dispatcher.is_active()

    @pytest.mark.asyncio
    async def test_close_is_silent(self, recorder):
        """Test that closing stops streams without answering them."""
        dispatcher = StreamDispatcher(recorder.send, chunk_size=1, interval=0.05)
        await dispatcher.start(1, make_nodes(10))
        await dispatcher.close()
        assert not any(m[1] == "error" for m in recorder.messages)

    @pytest.mark.asyncio
    async def test_retired_index_stops_stream(self, recorder):
        """Test that a stream of a replaced tree is cancelled instead of finished."""
        index = TreeIndex()
        dispatcher = StreamDispatcher(recorder.send, chunk_size=1, interval=0)
        index.retire()
        await dispatcher.start(1, make_nodes(3), index=index)
        await dispatcher.wait()

        assert recorder.messages[-1] == [1, "error", "stream cancelled: tree was rebuilt"]
        assert len(index) == 0
        assert not dispatcher.is_active()

    @pytest.mark.asyncio
    async def test_failure_is_answered(self, recorder):
        """Test that a failing delivery still ends its request."""

        class BrokenIndex:
            def register_all(self, nodes):
                raise RuntimeError("index unavailable")

        dispatcher = StreamDispatcher(recorder.send, chunk_size=1, interval=0, index=BrokenIndex())
        await dispatcher.start(1, make_nodes(2))
        await dispatcher.wait()

        assert recorder.messages[-1] == [1, "error", "index unavailable"]
        assert not dispatcher.is_active()
