"""
Streamer endpoint: creates a room and pushes media segments into it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable, List, Optional

from ..config.settings import get_settings
from ..core.chunk_codec import BytesLike
from ..core.segment_splitter import SegmentSplitter
from ..models.error_models import RelayError
from ..models.signal_models import SignalMessage, SignalOperation
from .base import RelayClient

if TYPE_CHECKING:
    from websockets.asyncio.client import ClientConnection

logger = logging.getLogger(__name__)


class StreamerClient(RelayClient):
    """Owns one room on the relay and streams segments to its viewers.

    Segments are fragmented and flushed one at a time: the fragments of two
    segments are never interleaved on the wire.
    """

    def __init__(self, websocket: ClientConnection, max_fragment_size: Optional[int] = None,
                 on_viewer_joined: Optional[Callable[[Optional[str]], None]] = None):
        super().__init__(websocket)
        self.splitter = SegmentSplitter(max_fragment_size or get_settings().max_fragment_size)
        self.on_viewer_joined = on_viewer_joined
        self.room_key: Optional[str] = None
        self.joined_viewers: List[Optional[str]] = []
        self.segments_sent = 0
        self._room_created: Optional[asyncio.Future] = None
        self._segment_lock = asyncio.Lock()

    async def create_room(self, timeout: float = 10.0) -> str:
        """Ask the relay for a room and wait for its key"""
        self._room_created = asyncio.get_running_loop().create_future()
        await self.send_signal(SignalOperation.CREATE_ROOM)
        return await asyncio.wait_for(self._room_created, timeout)

    async def send_segment(self, segment: BytesLike) -> int:
        """Fragment one segment into StreamData frames; returns the fragment count sent.

        A segment counts towards ``segments_sent`` only once its last
        fragment is out.
        """
        if self.room_key is None:
            raise RelayError("No room created yet")

        sent = 0
        async with self._segment_lock:
            for fragment in self.splitter.split(segment, self.room_key):
                if not await self.send(fragment.to_signal_text()):
                    logger.warning(f"Segment cut short after {sent} fragments")
                    break
                sent += 1
            else:
                self.segments_sent += 1
        return sent

    async def delete_room(self) -> None:
        if self.room_key is None:
            return
        await self.send_signal(SignalOperation.DELETE_ROOM, self.room_key)
        logger.info(f"Deleted room {self.room_key}")
        self.room_key = None

    def on_signal(self, message: SignalMessage, raw: str) -> None:
        if message.operation == SignalOperation.CREATED_ROOM.value:
            self.room_key = message.payload
            logger.info(f"Room key: {self.room_key}")
            if self._room_created is not None and not self._room_created.done():
                self._room_created.set_result(self.room_key)
        elif message.operation == SignalOperation.JOINDED_ROOM.value:
            self.joined_viewers.append(message.payload)
            logger.info(f"User {message.payload} joined.")
            if self.on_viewer_joined is not None:
                self.on_viewer_joined(message.payload)
        elif message.operation == SignalOperation.ERROR.value:
            logger.warning(f"Relay reported an error: {message.payload}")
            if self._room_created is not None and not self._room_created.done():
                self._room_created.set_exception(RelayError(message.payload or "Room creation failed"))
        else:
            logger.debug(f"Unhandled relay message: {message.operation}")

    def on_close(self) -> None:
        if self._room_created is not None and not self._room_created.done():
            self._room_created.set_exception(RelayError("Connection closed before room was created"))
