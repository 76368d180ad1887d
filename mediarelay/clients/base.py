"""
Shared plumbing for relay endpoints (streamer and viewer).
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Optional

import websockets
import websockets.exceptions

from ..models.error_models import SignalDecodeError
from ..models.signal_models import SignalMessage, SignalOperation, encode_signal, parse_envelope

if TYPE_CHECKING:
    from websockets.asyncio.client import ClientConnection

logger = logging.getLogger(__name__)


class RelayClient:
    """One signaling connection to the relay.

    Subclasses implement :meth:`on_signal`; the listener task started by
    :meth:`start` decodes every inbound frame and dispatches it there.
    """

    def __init__(self, websocket: ClientConnection):
        self.websocket = websocket
        self.closed = asyncio.Event()
        self._listener: Optional[asyncio.Task] = None

    @classmethod
    async def connect(cls, url: str, *args: Any, max_size: Optional[int] = 16 * 1024 * 1024, **kwargs: Any):
        """Open a connection to ``url`` and start listening"""
        websocket = await websockets.connect(url, max_size=max_size, close_timeout=5)
        client = cls(websocket, *args, **kwargs)
        client.start()
        return client

    def start(self) -> None:
        if self._listener is None:
            self._listener = asyncio.get_running_loop().create_task(self.run())

    async def run(self) -> None:
        """Receive loop; returns when the connection closes"""
        try:
            async for raw in self.websocket:
                if isinstance(raw, bytes):
                    logger.warning("Ignoring binary frame from relay")
                    continue
                self.handle_message(raw)
        except websockets.exceptions.ConnectionClosed as e:
            logger.debug(f"Relay connection closed: {e}")
        finally:
            self.closed.set()
            self.on_close()

    def handle_message(self, raw: str) -> None:
        try:
            message = parse_envelope(raw)
        except SignalDecodeError as e:
            logger.warning(f"Unreadable frame from relay: {e}")
            return
        self.on_signal(message, raw)

    def on_signal(self, message: SignalMessage, raw: str) -> None:
        raise NotImplementedError

    def on_close(self) -> None:
        """Hook for subclasses"""

    async def send(self, message: str) -> bool:
        """Send a frame; logs and returns False if the connection is gone"""
        try:
            await self.websocket.send(message)
            return True
        except websockets.exceptions.ConnectionClosed as e:
            logger.error(f"WebSocket is not open: {e}")
            return False

    async def send_signal(self, operation: SignalOperation, payload: Optional[str] = None) -> bool:
        return await self.send(encode_signal(operation, payload))

    async def close(self) -> None:
        await self.websocket.close()
        if self._listener is not None:
            await self._listener
