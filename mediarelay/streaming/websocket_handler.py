"""
WebSocket Handler for Media Relay Service.
Runs the receive loop of one signaling connection.
"""

import logging

from fastapi import WebSocket, WebSocketDisconnect

from ..utils.error_handler import ErrorContext
from .connection_manager import ConnectionManager
from .signal_engine import SignalingProtocolEngine

logger = logging.getLogger(__name__)


class SignalWebSocketHandler:
    """Accepts a signaling WebSocket and feeds its frames to the engine."""

    def __init__(self, engine: SignalingProtocolEngine):
        self.engine = engine
        self.connections: ConnectionManager = engine.connections
        self.error_handler = engine.error_handler

    async def handle_client_connection(self, websocket: WebSocket) -> None:
        """Main connection handler loop."""
        connection_id = await self.connections.connect_client(websocket)
        reason = "Connection ended"

        try:
            while self.connections.is_connected(connection_id):
                message = await websocket.receive()

                if message["type"] == "websocket.disconnect":
                    reason = f"Client closed ({message.get('code', 1000)})"
                    break

                text = message.get("text")
                if text is None:
                    logger.warning(f"Ignoring binary frame from {connection_id}")
                    continue

                self.connections.record_received(connection_id, len(text))

                # One bad frame must never take the connection or the relay down
                try:
                    await self.engine.handle_message(connection_id, text)
                except Exception as e:
                    self.error_handler.handle_error(
                        e,
                        ErrorContext(
                            service_name="websocket_handler",
                            operation_name="handle_message",
                            connection_id=connection_id,
                        ),
                    )

        except WebSocketDisconnect as e:
            reason = f"Client disconnected ({e.code})"
        except RuntimeError as e:
            # Socket was closed from our side, e.g. after a failed send
            logger.debug(f"Receive loop for {connection_id} stopped: {e}")
            reason = "Closed by relay"
        finally:
            await self.engine.handle_disconnect(connection_id, reason)
