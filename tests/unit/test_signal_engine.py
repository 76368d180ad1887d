"""
Unit Tests for the Signaling Protocol Engine
Tests room operations, fan-out and connection cleanup against fake sockets.
"""

import json

import pytest

from mediarelay.core.room_registry import RoomRegistry
from mediarelay.core.segment_splitter import SegmentReassembler, SegmentSplitter
from mediarelay.models.signal_models import (
    SignalOperation,
    StreamDataPayload,
    encode_join_payload,
    encode_signal,
)
from mediarelay.streaming.connection_manager import ConnectionManager
from mediarelay.streaming.signal_engine import SignalingProtocolEngine
from tests.conftest import FakeWebSocket


async def _connect(connections, **kwargs):
    websocket = FakeWebSocket(**kwargs)
    connection_id = await connections.connect_client(websocket)
    return connection_id, websocket


async def _create_room(engine, connection_id, websocket):
    await engine.handle_message(connection_id, encode_signal(SignalOperation.CREATE_ROOM))
    return websocket.messages("CreatedRoom")[-1]["payload"]


async def _join(engine, connection_id, key, name=None):
    await engine.handle_message(
        connection_id, encode_signal(SignalOperation.JOIN_ROOM, encode_join_payload(key, name))
    )


def _stream_frames(websocket):
    return [message["payload"] for message in websocket.messages("StreamData")]


def _segments(websocket):
    reassembler = SegmentReassembler()
    segments = []
    for payload in _stream_frames(websocket):
        data = StreamDataPayload.model_validate_json(payload)
        segment = reassembler.accept_payload(data.video_data, data.last)
        if segment is not None:
            segments.append(segment)
    return segments


class TestRoomOperations:
    """Test CreateRoom, JoinRoom, LeaveRoom and DeleteRoom handling"""

    @pytest.mark.asyncio
    async def test_create_room_replies_with_key(self, engine, connections, registry):
        streamer, ws = await _connect(connections)

        key = await _create_room(engine, streamer, ws)

        assert key in registry
        assert registry.get_room(key).streamer == streamer

    @pytest.mark.asyncio
    async def test_join_before_create_reports_error(self, engine, connections, registry):
        """Test JoinRoom with an unused key answers the joiner with Error"""
        viewer, ws = await _connect(connections)

        await _join(engine, viewer, "9999", "alice")

        assert ws.messages() == [{"operation": "Error", "payload": "Room 9999 doesn't exists."}]
        assert registry.room_count == 0
        assert registry.get_stats().total_viewers == 0

    @pytest.mark.asyncio
    async def test_join_notifies_streamer(self, engine, connections, registry):
        streamer, streamer_ws = await _connect(connections)
        viewer, viewer_ws = await _connect(connections)
        key = await _create_room(engine, streamer, streamer_ws)

        await _join(engine, viewer, key, "alice")

        assert streamer_ws.messages("JoindedRoom") == [{"operation": "JoindedRoom", "payload": "alice"}]
        assert viewer_ws.sent == []
        assert registry.viewers_of(key) == frozenset({viewer})

    @pytest.mark.asyncio
    async def test_leave_room_stops_delivery(self, engine, connections, registry):
        streamer, streamer_ws = await _connect(connections)
        viewer, viewer_ws = await _connect(connections)
        key = await _create_room(engine, streamer, streamer_ws)
        await _join(engine, viewer, key)

        await engine.handle_message(viewer, encode_signal(SignalOperation.LEAVE_ROOM, key))
        for fragment in SegmentSplitter(4).split(b"payload", key):
            await engine.handle_message(streamer, fragment.to_signal_text())

        assert _stream_frames(viewer_ws) == []
        assert key in registry

    @pytest.mark.asyncio
    async def test_delete_room_notifies_viewers(self, engine, connections, registry):
        streamer, streamer_ws = await _connect(connections)
        viewer, viewer_ws = await _connect(connections)
        key = await _create_room(engine, streamer, streamer_ws)
        await _join(engine, viewer, key)

        await engine.handle_message(streamer, encode_signal(SignalOperation.DELETE_ROOM, key))

        assert key not in registry
        assert viewer_ws.messages("DeletedRoom") == [{"operation": "DeletedRoom", "payload": key}]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operation", [SignalOperation.DELETE_ROOM, SignalOperation.LEAVE_ROOM])
    async def test_unknown_room_is_dropped_and_counted(self, engine, connections, operation):
        """Test Delete/Leave naming a missing room neither replies nor raises"""
        client, ws = await _connect(connections)

        await engine.handle_message(client, encode_signal(operation, "9999"))

        assert ws.sent == []
        breakdown = engine.error_handler.get_error_statistics()["error_breakdown"]
        assert breakdown["protocol_RoomNotFoundError"] == 1

    @pytest.mark.asyncio
    async def test_key_exhaustion_reports_error(self, connections):
        engine = SignalingProtocolEngine(RoomRegistry(max_key_attempts=2, key_factory=lambda: "7"), connections)
        first, first_ws = await _connect(connections)
        second, second_ws = await _connect(connections)

        await engine.handle_message(first, encode_signal(SignalOperation.CREATE_ROOM))
        await engine.handle_message(second, encode_signal(SignalOperation.CREATE_ROOM))

        assert first_ws.messages() == [{"operation": "CreatedRoom", "payload": "7"}]
        assert second_ws.messages() == [{"operation": "Error", "payload": "No free room key available."}]
        assert engine.registry.get_room("7").streamer == first


class TestFanOut:
    """Test StreamData fan-out to room viewers"""

    @pytest.mark.asyncio
    async def test_room_isolation(self, engine, connections):
        """Test fragments for room A never reach a viewer of room B"""
        streamer_a, ws_a = await _connect(connections)
        streamer_b, ws_b = await _connect(connections)
        viewer_a, viewer_ws_a = await _connect(connections)
        viewer_b, viewer_ws_b = await _connect(connections)
        key_a = await _create_room(engine, streamer_a, ws_a)
        key_b = await _create_room(engine, streamer_b, ws_b)
        await _join(engine, viewer_a, key_a)
        await _join(engine, viewer_b, key_b)

        for fragment in SegmentSplitter(3).split(b"room a only", key_a):
            await engine.handle_message(streamer_a, fragment.to_signal_text())

        assert _segments(viewer_ws_a) == [b"room a only"]
        assert _stream_frames(viewer_ws_b) == []

    @pytest.mark.asyncio
    async def test_frames_are_forwarded_verbatim(self, engine, connections):
        streamer, streamer_ws = await _connect(connections)
        viewer, viewer_ws = await _connect(connections)
        key = await _create_room(engine, streamer, streamer_ws)
        await _join(engine, viewer, key)

        frame = next(iter(SegmentSplitter().split(b"abc", key))).to_signal_text()
        await engine.handle_message(streamer, frame)

        assert viewer_ws.sent == [frame]
        assert engine.fragments_forwarded == 1

    @pytest.mark.asyncio
    async def test_segment_order_for_every_viewer(self, engine, connections):
        """Test two viewers receive all of S1 in order before any of S2"""
        streamer, streamer_ws = await _connect(connections)
        viewers = [await _connect(connections) for _ in range(2)]
        key = await _create_room(engine, streamer, streamer_ws)
        for viewer, _ in viewers:
            await _join(engine, viewer, key)

        splitter = SegmentSplitter(4)
        first, second = bytes(range(30)), bytes(range(100, 117))
        expected = []
        for segment in (first, second):
            for fragment in splitter.split(segment, key):
                expected.append(json.loads(fragment.to_signal_text())["payload"])
                await engine.handle_message(streamer, fragment.to_signal_text())

        for _, viewer_ws in viewers:
            assert _stream_frames(viewer_ws) == expected
            assert _segments(viewer_ws) == [first, second]

    @pytest.mark.asyncio
    async def test_stream_to_unknown_room_is_dropped(self, engine, connections):
        streamer, ws = await _connect(connections)

        frame = next(iter(SegmentSplitter().split(b"abc", "9999"))).to_signal_text()
        await engine.handle_message(streamer, frame)

        assert ws.sent == []
        assert engine.fragments_forwarded == 0

    @pytest.mark.asyncio
    async def test_failing_viewer_does_not_block_others(self, engine, connections):
        """Test a send failure is isolated to its own recipient"""
        streamer, streamer_ws = await _connect(connections)
        healthy, healthy_ws = await _connect(connections)
        broken, broken_ws = await _connect(connections, fail_sends=True)
        key = await _create_room(engine, streamer, streamer_ws)
        await _join(engine, healthy, key)
        await _join(engine, broken, key)

        for fragment in SegmentSplitter(2).split(b"abcdef", key):
            await engine.handle_message(streamer, fragment.to_signal_text())

        assert _segments(healthy_ws) == [b"abcdef"]
        assert not connections.is_connected(broken)
        assert broken_ws.closed
        assert connections.get_connection_stats().failed_sends == 1

    @pytest.mark.asyncio
    async def test_slow_viewer_times_out(self, registry):
        """Test a viewer slower than the send timeout is dropped, others still served"""
        connections = ConnectionManager(send_timeout=0.05)
        engine = SignalingProtocolEngine(registry, connections)
        streamer, streamer_ws = await _connect(connections)
        fast, fast_ws = await _connect(connections)
        slow, _ = await _connect(connections, send_delay=1.0)
        key = await _create_room(engine, streamer, streamer_ws)
        await _join(engine, fast, key)
        await _join(engine, slow, key)

        frame = next(iter(SegmentSplitter().split(b"abc", key))).to_signal_text()
        await engine.handle_message(streamer, frame)

        assert fast_ws.sent == [frame]
        assert not connections.is_connected(slow)
        breakdown = engine.error_handler.get_error_statistics()["error_breakdown"]
        assert breakdown["delivery_DeliveryError"] == 1


class TestDisconnect:
    """Test connection close cleanup"""

    @pytest.mark.asyncio
    async def test_streamer_close_removes_room(self, engine, connections, registry):
        streamer, streamer_ws = await _connect(connections)
        viewer, viewer_ws = await _connect(connections)
        key = await _create_room(engine, streamer, streamer_ws)
        await _join(engine, viewer, key)

        await engine.handle_disconnect(streamer)

        assert key not in registry
        assert not connections.is_connected(streamer)

        # A late frame under the removed key has no recipients
        frame = next(iter(SegmentSplitter().split(b"abc", key))).to_signal_text()
        await engine.handle_message(viewer, frame)
        assert _stream_frames(viewer_ws) == []

    @pytest.mark.asyncio
    async def test_viewer_close_keeps_room(self, engine, connections, registry):
        streamer, streamer_ws = await _connect(connections)
        leaving, leaving_ws = await _connect(connections)
        staying, staying_ws = await _connect(connections)
        key = await _create_room(engine, streamer, streamer_ws)
        await _join(engine, leaving, key)
        await _join(engine, staying, key)

        await engine.handle_disconnect(leaving)
        frame = next(iter(SegmentSplitter().split(b"abc", key))).to_signal_text()
        await engine.handle_message(streamer, frame)

        assert key in registry
        assert registry.viewers_of(key) == frozenset({staying})
        assert staying_ws.sent[-1] == frame
        assert _stream_frames(leaving_ws) == []

    @pytest.mark.asyncio
    async def test_disconnect_twice_is_harmless(self, engine, connections):
        client, _ = await _connect(connections)

        await engine.handle_disconnect(client)
        await engine.handle_disconnect(client)

        assert connections.get_connection_stats().active_connections == 0


class TestMalformedInput:
    """Test unknown and malformed frames"""

    @pytest.mark.asyncio
    async def test_unknown_operation_is_ignored(self, engine, connections):
        client, ws = await _connect(connections)

        await engine.handle_message(client, encode_signal(SignalOperation.CREATED_ROOM, "1234"))
        await engine.handle_message(client, json.dumps({"operation": "Ping"}))

        assert ws.sent == []
        assert engine.ignored_messages == 2
        assert connections.is_connected(client)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", [
        "not json",
        json.dumps({"operation": "JoinRoom", "payload": "{broken"}),
        json.dumps({"operation": "StreamData"}),
    ])
    async def test_malformed_frame_is_dropped(self, engine, connections, raw):
        """Test a malformed frame is logged and dropped, the connection stays open"""
        client, ws = await _connect(connections)

        await engine.handle_message(client, raw)

        assert ws.sent == []
        assert connections.is_connected(client)
        breakdown = engine.error_handler.get_error_statistics()["error_breakdown"]
        assert breakdown["protocol_SignalDecodeError"] == 1
