"""
Viewer endpoint: joins a room and rebuilds the streamer's segments.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Optional

from pydantic import ValidationError

from ..core.segment_splitter import SegmentReassembler
from ..models.error_models import ChunkDecodeError, RoomJoinError
from ..models.signal_models import SignalMessage, SignalOperation, StreamDataPayload, encode_join_payload
from ..streaming.buffer_manager import SegmentSink, SinkBufferManager
from .base import RelayClient

if TYPE_CHECKING:
    from websockets.asyncio.client import ClientConnection

logger = logging.getLogger(__name__)


class ViewerClient(RelayClient):
    """Receives one room's fragments and feeds whole segments to a sink.

    Segments completed before a sink is attached wait in the buffer
    manager's queue and are played once :meth:`attach_sink` is called.
    """

    def __init__(self, websocket: ClientConnection, room_key: str, display_name: Optional[str] = None,
                 sink: Optional[SegmentSink] = None,
                 on_room_deleted: Optional[Callable[[str], None]] = None):
        super().__init__(websocket)
        self.room_key = room_key
        self.display_name = display_name
        self.on_room_deleted = on_room_deleted
        self.reassembler = SegmentReassembler()
        self.buffer_manager = SinkBufferManager(sink)
        self.join_error: Optional[RoomJoinError] = None
        self.room_deleted = False

    def attach_sink(self, sink: SegmentSink) -> None:
        self.buffer_manager.attach(sink)

    async def join(self) -> bool:
        return await self.send_signal(
            SignalOperation.JOIN_ROOM, encode_join_payload(self.room_key, self.display_name)
        )

    async def leave(self) -> bool:
        self.reassembler.reset()
        return await self.send_signal(SignalOperation.LEAVE_ROOM, self.room_key)

    def on_signal(self, message: SignalMessage, raw: str) -> None:
        if message.operation == SignalOperation.STREAM_DATA.value:
            self.receive_stream(message.payload)
        elif message.operation == SignalOperation.ERROR.value:
            self.join_error = RoomJoinError(message.payload or "Join refused", room_key=self.room_key)
            logger.warning(f"Relay refused join: {message.payload}")
        elif message.operation == SignalOperation.DELETED_ROOM.value:
            self.room_deleted = True
            self.reassembler.reset()
            logger.info(f"Room {message.payload} was deleted by its streamer")
            if self.on_room_deleted is not None:
                self.on_room_deleted(message.payload)
        else:
            logger.debug(f"Unhandled relay message: {message.operation}")

    def receive_stream(self, payload: Optional[str]) -> None:
        """Collect one fragment; push the segment downstream when it completes"""
        if payload is None:
            return
        try:
            data = StreamDataPayload.model_validate_json(payload)
        except ValidationError:
            logger.warning("Dropping malformed StreamData payload")
            return

        if data.room_key != self.room_key:
            logger.debug(f"Ignoring fragment for room {data.room_key}")
            return

        try:
            segment = self.reassembler.accept_payload(data.video_data, data.last)
        except ChunkDecodeError as e:
            logger.warning(f"Segment dropped: {e}")
            return

        if segment is not None:
            self.buffer_manager.push(segment)
