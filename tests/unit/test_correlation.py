"""
Unit tests for typecheck_trace.transport.correlation module.
"""
import asyncio
import json
import logging
import pytest
from typecheck_trace.core.errors import (
    MessageValidationError,
    RemoteError,
    RequestIdCollisionError,
    RequestTimeoutError,
    StreamCancelledError,
    TransportError,
)
from typecheck_trace.transport.correlation import CorrelationClient
from typecheck_trace.transport.envelope import encode_error, encode_response
from typecheck_trace.transport.messages import ChildrenById, FilterTree, TypesById


class Wire:
    """Records requests sent by the client."""

    def __init__(self):
        self.sent = []

    async def send(self, data):
        self.sent.append(json.loads(data))

    @property
    def last_id(self):
        return self.sent[-1][0]


class Handlers:
    def __init__(self):
        self.responses = []
        self.errors = []

    def on_response(self, message, complete):
        self.responses.append((message, complete))

    def on_error(self, error):
        self.errors.append(error)


@pytest.fixture
def wire():
    return Wire()


class TestCorrelationClient:
    """Tests for matching responses to requests."""

    @pytest.mark.asyncio
    async def test_request_envelope(self, wire):
        client = CorrelationClient(wire.send)
        handlers = Handlers()
        first = await client.request(ChildrenById(id=4), handlers.on_response, handlers.on_error)
        second = await client.request({"message": "typesById", "id": 4}, handlers.on_response, handlers.on_error)

        assert second > first
        assert wire.sent[0] == [first, {"message": "childrenById", "id": 4}]
        assert client.pending_count == 2

    @pytest.mark.asyncio
    async def test_call_returns_complete_response(self, wire):
        client = CorrelationClient(wire.send)
        task = asyncio.create_task(client.call(TypesById(id=3)))
        await asyncio.sleep(0)

        client.receive(encode_response(wire.last_id, {"message": "typesById", "id": 3, "types": []}))
        result = await task

        assert isinstance(result, TypesById)
        assert result.types == []
        assert client.pending_count == 0

    @pytest.mark.asyncio
    async def test_responses_reach_their_own_request(self, wire):
        """Test that interleaved responses are routed by id."""
        client = CorrelationClient(wire.send)
        first, second = Handlers(), Handlers()
        first_id = await client.request(ChildrenById(id=1), first.on_response, first.on_error)
        second_id = await client.request(ChildrenById(id=2), second.on_response, second.on_error)

        client.receive(encode_response(second_id, {"message": "childrenById", "id": 2, "children": []}))
        client.receive(encode_response(first_id, {"message": "childrenById", "id": 1, "children": []}))

        assert [m.id for m, _ in first.responses] == [1]
        assert [m.id for m, _ in second.responses] == [2]

    @pytest.mark.asyncio
    async def test_mismatched_discriminant_is_not_delivered(self, wire, caplog):
        """Test that a response of the wrong type never reaches the response handler."""
        client = CorrelationClient(wire.send)
        handlers = Handlers()
        request_id = await client.request(ChildrenById(id=1), handlers.on_response, handlers.on_error)

        with caplog.at_level(logging.WARNING):
            client.receive(encode_response(request_id, {"message": "typesById", "id": 1}, complete=False))
        assert handlers.responses == []
        assert client.is_pending(request_id)
        assert "did not match expected type childrenById" in caplog.text

        client.receive(encode_response(request_id, {"message": "typesById", "id": 1}))
        assert handlers.responses == []
        assert isinstance(handlers.errors[0], MessageValidationError)
        assert not client.is_pending(request_id)

    @pytest.mark.asyncio
    async def test_filter_tree_expects_show_tree(self, wire):
        client = CorrelationClient(wire.send)
        handlers = Handlers()
        request_id = await client.request(FilterTree(starts_with="check"), handlers.on_response, handlers.on_error)

        client.receive(encode_response(request_id, {"message": "showTree", "step": "start"}, complete=False))
        client.receive(encode_response(request_id, {"message": "showTree", "step": "done"}))

        assert [(m.step, complete) for m, complete in handlers.responses] == [("start", False), ("done", True)]

    @pytest.mark.asyncio
    async def test_error_response(self, wire):
        client = CorrelationClient(wire.send)
        task = asyncio.create_task(client.call(ChildrenById(id=9)))
        await asyncio.sleep(0)

        client.receive(encode_error(wire.last_id, "node id not found 9"))
        with pytest.raises(RemoteError, match="node id not found 9"):
            await task
        assert client.pending_count == 0

    @pytest.mark.asyncio
    async def test_cancelled_stream_error(self, wire):
        client = CorrelationClient(wire.send)
        handlers = Handlers()
        request_id = await client.request(FilterTree(), handlers.on_response, handlers.on_error)

        client.receive(encode_error(request_id, "stream cancelled: superseded by request 8"))
        assert isinstance(handlers.errors[0], StreamCancelledError)

    @pytest.mark.asyncio
    async def test_late_response_is_dropped(self, wire, caplog):
        """Test that responses after completion are ignored."""
        client = CorrelationClient(wire.send)
        handlers = Handlers()
        request_id = await client.request(ChildrenById(id=1), handlers.on_response, handlers.on_error)
        payload = {"message": "childrenById", "id": 1, "children": []}

        client.receive(encode_response(request_id, payload))
        with caplog.at_level(logging.WARNING):
            client.receive(encode_response(request_id, payload))
        assert len(handlers.responses) == 1
        assert "already handled" in caplog.text

    @pytest.mark.asyncio
    @pytest.mark.parametrize("data", ["not json", '{"id": 1}', '["x", {}, "complete"]', '[1, {}, "later"]'])
    async def test_malformed_messages_are_dropped(self, wire, caplog, data):
        client = CorrelationClient(wire.send)
        handlers = Handlers()
        await client.request(ChildrenById(id=1), handlers.on_response, handlers.on_error)

        with caplog.at_level(logging.WARNING):
            client.receive(data)
        assert handlers.responses == []
        assert handlers.errors == []
        assert client.pending_count == 1
        assert "Dropped message" in caplog.text

    @pytest.mark.asyncio
    async def test_timeout(self, wire):
        client = CorrelationClient(wire.send, timeout=0.01)
        with pytest.raises(RequestTimeoutError):
            await client.call(ChildrenById(id=1))
        assert client.pending_count == 0

    @pytest.mark.asyncio
    async def test_incomplete_response_restarts_timeout(self, wire):
        """Test that a slow stream does not time out while parts keep arriving."""
        client = CorrelationClient(wire.send, timeout=0.05)
        handlers = Handlers()
        request_id = await client.request(FilterTree(), handlers.on_response, handlers.on_error)

        for _ in range(3):
            await asyncio.sleep(0.03)
            client.receive(encode_response(request_id, {"message": "showTree", "step": "add"}, complete=False))
        client.receive(encode_response(request_id, {"message": "showTree", "step": "done"}))

        assert handlers.errors == []
        assert len(handlers.responses) == 4

    @pytest.mark.asyncio
    async def test_max_pending(self, wire):
        client = CorrelationClient(wire.send, max_pending=1)
        handlers = Handlers()
        await client.request(ChildrenById(id=1), handlers.on_response, handlers.on_error)
        with pytest.raises(TransportError):
            await client.request(ChildrenById(id=2), handlers.on_response, handlers.on_error)

    @pytest.mark.asyncio
    async def test_id_collision_is_detected(self, wire):
        """Test that a wrapped id still in use is an error instead of an overwrite."""
        client = CorrelationClient(wire.send, id_space=2)
        handlers = Handlers()
        await client.request(ChildrenById(id=1), handlers.on_response, handlers.on_error)
        await client.request(ChildrenById(id=2), handlers.on_response, handlers.on_error)
        with pytest.raises(RequestIdCollisionError):
            await client.request(ChildrenById(id=3), handlers.on_response, handlers.on_error)
        assert client.pending_count == 2

    @pytest.mark.asyncio
    async def test_failed_send_releases_request(self):
        async def broken_send(data):
            raise ConnectionError("closed")

        client = CorrelationClient(broken_send)
        handlers = Handlers()
        with pytest.raises(ConnectionError):
            await client.request(ChildrenById(id=1), handlers.on_response, handlers.on_error)
        assert client.pending_count == 0

    @pytest.mark.asyncio
    async def test_close_fails_pending(self, wire):
        client = CorrelationClient(wire.send)
        handlers = Handlers()
        await client.request(ChildrenById(id=1), handlers.on_response, handlers.on_error)
        client.close()
        assert isinstance(handlers.errors[0], TransportError)
        assert client.pending_count == 0
