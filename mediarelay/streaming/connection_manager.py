"""
Connection Management Component
Manages WebSocket connection lifecycle and per-connection delivery
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Optional

from fastapi import WebSocket, WebSocketDisconnect

from ..config.logging_config import log_websocket_event
from ..models.error_models import DeliveryError
from ..models.response_models import ConnectionStats
from ..utils.error_handler import ErrorContext, GlobalErrorHandler


class ConnectionState(Enum):
    """WebSocket connection state"""
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"
    DISCONNECTED = "disconnected"


@dataclass
class ClientSession:
    """Client session information"""
    connection_id: str
    websocket: WebSocket
    connection_time: float
    last_activity: float
    state: ConnectionState = ConnectionState.CONNECTING

    # Serializes writes so concurrent senders never interleave on one socket
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    # Metrics
    messages_sent: int = 0
    messages_received: int = 0
    bytes_sent: int = 0
    bytes_received: int = 0
    failed_sends: int = 0


@dataclass
class ConnectionMetrics:
    """Global connection metrics"""
    total_connections: int = 0
    active_connections: int = 0
    peak_connections: int = 0
    total_messages_sent: int = 0
    total_messages_received: int = 0
    failed_sends: int = 0
    disconnections: int = 0


class ConnectionManager:
    """WebSocket connection lifecycle manager.

    Hands out opaque connection ids and owns every write to a peer. A send
    that fails or exceeds ``send_timeout`` only affects its own recipient:
    that connection is dropped and the caller gets ``False``.
    """

    def __init__(self, send_timeout: float = 5.0, error_handler: Optional[GlobalErrorHandler] = None):
        self.logger = logging.getLogger(__name__)

        self.active_connections: Dict[str, ClientSession] = {}
        self.metrics = ConnectionMetrics()
        self.error_handler = error_handler or GlobalErrorHandler()
        self.send_timeout = send_timeout

    async def connect_client(self, websocket: WebSocket,
                             connection_id: Optional[str] = None) -> str:
        """Accept a WebSocket and register its session"""
        if not connection_id:
            connection_id = f"conn_{uuid.uuid4().hex[:12]}"

        await websocket.accept()

        current_time = time.time()
        session = ClientSession(
            connection_id=connection_id,
            websocket=websocket,
            connection_time=current_time,
            last_activity=current_time,
            state=ConnectionState.CONNECTED,
        )
        self.active_connections[connection_id] = session

        self.metrics.total_connections += 1
        self.metrics.active_connections = len(self.active_connections)
        self.metrics.peak_connections = max(
            self.metrics.peak_connections,
            self.metrics.active_connections
        )

        self.logger.info(f"✅ Client {connection_id} connected")
        log_websocket_event("connected", connection_id)
        return connection_id

    async def disconnect_client(self, connection_id: str, reason: str = "Normal closure",
                                close_socket: bool = True) -> None:
        """Unregister a session and optionally close its socket"""
        session = self.active_connections.pop(connection_id, None)
        if session is None:
            self.logger.debug(f"Client {connection_id} already disconnected")
            return

        session.state = ConnectionState.DISCONNECTING
        self.metrics.active_connections = len(self.active_connections)
        self.metrics.disconnections += 1

        if close_socket:
            try:
                await asyncio.wait_for(session.websocket.close(code=1000, reason=reason), self.send_timeout)
            except Exception as e:
                self.logger.debug(f"WebSocket already closed for {connection_id}: {str(e)}")

        session.state = ConnectionState.DISCONNECTED
        self.logger.info(f"🔌 Client {connection_id} disconnected: {reason}")
        log_websocket_event("disconnected", connection_id, {
            "reason": reason,
            "messages_sent": session.messages_sent,
            "messages_received": session.messages_received,
            "duration_seconds": round(time.time() - session.connection_time, 3),
        })

    async def send_text(self, connection_id: str, message: str) -> bool:
        """Send one text frame to a connection; False if it could not be delivered"""
        session = self.active_connections.get(connection_id)
        if session is None:
            self.logger.debug(f"Skipping send to unknown client {connection_id}")
            return False

        try:
            async with session.send_lock:
                await asyncio.wait_for(session.websocket.send_text(message), self.send_timeout)
        except asyncio.TimeoutError as e:
            await self._handle_send_failure(session, e, "Send timeout")
            return False
        except WebSocketDisconnect as e:
            await self._handle_send_failure(session, e, "Client disconnected")
            return False
        except Exception as e:
            await self._handle_send_failure(session, e, "Send error")
            return False

        session.last_activity = time.time()
        session.messages_sent += 1
        session.bytes_sent += len(message)
        self.metrics.total_messages_sent += 1
        return True

    async def broadcast_text(self, connection_ids: Iterable[str], message: str) -> int:
        """Send the same frame to every id concurrently; returns the success count.

        Each recipient's failure is isolated. Frames to one recipient stay in
        call order because every send holds that recipient's lock.
        """
        targets = list(connection_ids)
        if not targets:
            return 0
        results = await asyncio.gather(*(self.send_text(cid, message) for cid in targets))
        return sum(1 for ok in results if ok)

    def record_received(self, connection_id: str, size: int) -> None:
        """Update counters for an inbound frame"""
        session = self.active_connections.get(connection_id)
        if session is None:
            return
        session.last_activity = time.time()
        session.messages_received += 1
        session.bytes_received += size
        self.metrics.total_messages_received += 1

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self.active_connections

    def get_client_session(self, connection_id: str) -> Optional[ClientSession]:
        """Get client session information"""
        return self.active_connections.get(connection_id)

    async def shutdown(self) -> None:
        """Disconnect all active clients"""
        connection_ids = list(self.active_connections.keys())
        for connection_id in connection_ids:
            await self.disconnect_client(connection_id, "Server shutdown")
        self.logger.info(f"🛑 Disconnected {len(connection_ids)} clients")

    def get_connection_stats(self) -> ConnectionStats:
        """Get connection statistics"""
        return ConnectionStats(
            active_connections=len(self.active_connections),
            peak_connections=self.metrics.peak_connections,
            total_connections=self.metrics.total_connections,
            total_messages_sent=self.metrics.total_messages_sent,
            total_messages_received=self.metrics.total_messages_received,
            failed_sends=self.metrics.failed_sends,
        )

    async def _handle_send_failure(self, session: ClientSession, error: Exception, reason: str) -> None:
        session.failed_sends += 1
        self.metrics.failed_sends += 1
        self.error_handler.handle_error(
            DeliveryError(f"{reason}: {error!r}", connection_id=session.connection_id),
            ErrorContext(
                service_name="connection_manager",
                operation_name="send_text",
                connection_id=session.connection_id,
            ),
        )
        await self.disconnect_client(session.connection_id, reason)
