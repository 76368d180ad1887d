"""
Signaling Protocol Engine
Interprets signal messages from every connection and drives room state and fan-out
"""

import logging
from typing import Optional

from ..core.room_registry import RoomRegistry
from ..models.error_models import RoomKeyExhaustedError, RoomNotFoundError, SignalDecodeError
from ..models.signal_models import (
    CreateRoomRequest,
    DeleteRoomRequest,
    JoinRoomRequest,
    LeaveRoomRequest,
    SignalOperation,
    StreamDataRequest,
    decode_signal,
    encode_signal,
)
from ..utils.error_handler import ErrorContext, GlobalErrorHandler
from .connection_manager import ConnectionManager


class SignalingProtocolEngine:
    """Message-level state machine of the relay.

    The registry is injected, so several engines (and tests) can run side
    by side without sharing rooms.
    """

    def __init__(self, registry: RoomRegistry, connections: ConnectionManager,
                 error_handler: Optional[GlobalErrorHandler] = None):
        self.logger = logging.getLogger(__name__)
        self.registry = registry
        self.connections = connections
        self.error_handler = error_handler or connections.error_handler

        self.total_messages_processed = 0
        self.fragments_forwarded = 0
        self.ignored_messages = 0

    async def handle_message(self, connection_id: str, raw: str) -> None:
        """Process one inbound text frame from ``connection_id``"""
        self.total_messages_processed += 1

        try:
            request = decode_signal(raw)
        except SignalDecodeError as e:
            self._report(e, connection_id, "decode")
            return

        if request is None:
            self.ignored_messages += 1
            self.logger.debug(f"Ignoring unrecognized operation from {connection_id}")
            return

        if isinstance(request, StreamDataRequest):
            await self._stream_data(connection_id, raw, request)
        elif isinstance(request, CreateRoomRequest):
            await self._create_room(connection_id)
        elif isinstance(request, JoinRoomRequest):
            await self._join_room(connection_id, request)
        elif isinstance(request, LeaveRoomRequest):
            self._leave_room(connection_id, request)
        elif isinstance(request, DeleteRoomRequest):
            await self._delete_room(connection_id, request)

    async def handle_disconnect(self, connection_id: str, reason: str = "Connection ended") -> None:
        """Remove a closed connection from every room, then forget it"""
        removed = self.registry.on_connection_closed(connection_id)
        if removed:
            self.logger.info(f"Connection {connection_id} closed; removed rooms {[room.key for room in removed]}")
        await self.connections.disconnect_client(connection_id, reason, close_socket=False)

    async def _create_room(self, connection_id: str) -> None:
        try:
            key = self.registry.create_room(connection_id)
        except RoomKeyExhaustedError as e:
            self._report(e, connection_id, SignalOperation.CREATE_ROOM.value)
            await self.connections.send_text(
                connection_id, encode_signal(SignalOperation.ERROR, "No free room key available.")
            )
            return
        await self.connections.send_text(connection_id, encode_signal(SignalOperation.CREATED_ROOM, key))

    async def _delete_room(self, connection_id: str, request: DeleteRoomRequest) -> None:
        removed = self.registry.delete_room(request.key)
        if removed is None:
            self._report(RoomNotFoundError(request.key, SignalOperation.DELETE_ROOM.value),
                         connection_id, SignalOperation.DELETE_ROOM.value)
            return
        notice = encode_signal(SignalOperation.DELETED_ROOM, request.key)
        await self.connections.broadcast_text(removed.viewers, notice)

    async def _join_room(self, connection_id: str, request: JoinRoomRequest) -> None:
        outcome = self.registry.join_room(request.key, connection_id, request.display_name)
        if not outcome.joined:
            error = RoomNotFoundError(request.key, SignalOperation.JOIN_ROOM.value)
            self._report(error, connection_id, SignalOperation.JOIN_ROOM.value)
            await self.connections.send_text(connection_id, encode_signal(SignalOperation.ERROR, error.message))
            return
        await self.connections.send_text(
            outcome.streamer, encode_signal(SignalOperation.JOINDED_ROOM, outcome.display_name)
        )

    def _leave_room(self, connection_id: str, request: LeaveRoomRequest) -> None:
        if not self.registry.leave_room(request.key, connection_id):
            self._report(RoomNotFoundError(request.key, SignalOperation.LEAVE_ROOM.value),
                         connection_id, SignalOperation.LEAVE_ROOM.value)

    async def _stream_data(self, connection_id: str, raw: str, request: StreamDataRequest) -> None:
        room_key = request.data.room_key
        viewers = self.registry.viewers_of(room_key)
        if viewers is None:
            self._report(RoomNotFoundError(room_key, SignalOperation.STREAM_DATA.value),
                         connection_id, SignalOperation.STREAM_DATA.value)
            return
        # The inbound frame is forwarded as-is; viewers need byte-identical payloads only
        delivered = await self.connections.broadcast_text(viewers, raw)
        self.fragments_forwarded += delivered

    def _report(self, error: Exception, connection_id: str, operation: str) -> None:
        room_key = getattr(error, "room_key", None)
        self.error_handler.handle_error(
            error,
            ErrorContext(
                service_name="signal_engine",
                operation_name=operation,
                connection_id=connection_id,
                room_key=room_key,
            ),
        )
