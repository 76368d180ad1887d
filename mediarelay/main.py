"""
Media Relay Service - Main Application
FastAPI application brokering live video between streamers and viewers
"""

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from mediarelay.config.logging_config import setup_logging
from mediarelay.config.settings import Settings, get_settings
from mediarelay.core.room_registry import RoomRegistry
from mediarelay.models.response_models import ServiceHealthResponse
from mediarelay.streaming.connection_manager import ConnectionManager
from mediarelay.streaming.signal_engine import SignalingProtocolEngine
from mediarelay.streaming.websocket_handler import SignalWebSocketHandler
from mediarelay.utils.error_handler import GlobalErrorHandler


class RelayApplication:
    """Owns every component of one relay instance"""

    def __init__(self, settings: Settings, registry: Optional[RoomRegistry] = None):
        self.logger = logging.getLogger(__name__)
        self.settings = settings
        self.start_time = time.time()
        self.services_ready = False

        self.error_handler = GlobalErrorHandler()
        self.registry = registry or RoomRegistry(
            key_digits=settings.room_key_max_digits,
            max_key_attempts=settings.room_key_max_attempts,
        )
        self.connections = ConnectionManager(
            send_timeout=settings.send_timeout_seconds,
            error_handler=self.error_handler,
        )
        self.engine = SignalingProtocolEngine(self.registry, self.connections, self.error_handler)
        self.websocket_handler = SignalWebSocketHandler(self.engine)

    async def startup(self) -> None:
        self.start_time = time.time()
        self.services_ready = True
        self.logger.info(
            f"🚀 {self.settings.service_name} {self.settings.version} ready on {self.settings.websocket_path}"
        )

    async def shutdown(self) -> None:
        self.services_ready = False
        await self.connections.shutdown()
        self.logger.info(f"🛑 {self.settings.service_name} shut down")

    def health(self) -> ServiceHealthResponse:
        return ServiceHealthResponse(
            service_status="healthy" if self.services_ready else "starting",
            version=self.settings.version,
            uptime_seconds=time.time() - self.start_time,
            rooms=self.registry.get_stats(),
            connections=self.connections.get_connection_stats(),
            errors=self.error_handler.get_error_statistics(),
            last_health_check=datetime.now(),
        )


def create_app(settings: Optional[Settings] = None, registry: Optional[RoomRegistry] = None) -> FastAPI:
    """Build a relay app; each call gets its own registry unless one is given"""
    settings = settings or get_settings()
    relay = RelayApplication(settings, registry)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await relay.startup()
        yield
        await relay.shutdown()

    app = FastAPI(
        title=settings.service_name,
        description="WebSocket relay fanning live video fragments out from one streamer to many viewers",
        version=settings.version,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.relay = relay

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    async def signal_endpoint(websocket: WebSocket):
        """Signaling WebSocket endpoint"""
        if not relay.services_ready:
            await websocket.close(code=1013, reason="Service not ready")
            return
        await relay.websocket_handler.handle_client_connection(websocket)

    app.add_api_websocket_route(settings.websocket_path, signal_endpoint)

    @app.get("/health", response_model=ServiceHealthResponse)
    async def health_check(request: Request):
        """Service health status"""
        return request.app.state.relay.health()

    @app.get("/ready")
    async def readiness_check(request: Request):
        """Readiness status"""
        current = request.app.state.relay
        return {
            "ready": current.services_ready,
            "active_rooms": current.registry.room_count,
        }

    return app


def run() -> None:
    """Console entry point"""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_storage_path, settings.log_to_file)

    uvicorn.run(
        "mediarelay.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        workers=settings.workers,
        ws_max_size=settings.ws_max_size,
        log_config=None,
    )


if __name__ == "__main__":
    run()
