"""
Pytest configuration for Media Relay Service tests
Provides fake sockets, sinks and isolated relay components for every test
"""

import asyncio
import json
from typing import Any, Dict, List, Optional

import pytest

from mediarelay.config.settings import Settings
from mediarelay.core.room_registry import RoomRegistry
from mediarelay.streaming.connection_manager import ConnectionManager
from mediarelay.streaming.signal_engine import SignalingProtocolEngine


class FakeWebSocket:
    """Server-side WebSocket stand-in recording every frame sent to it"""

    def __init__(self, fail_sends: bool = False, send_delay: float = 0.0):
        self.sent: List[str] = []
        self.accepted = False
        self.closed = False
        self.close_code: Optional[int] = None
        self.fail_sends = fail_sends
        self.send_delay = send_delay

    async def accept(self):
        self.accepted = True

    async def send_text(self, message: str):
        if self.send_delay:
            await asyncio.sleep(self.send_delay)
        if self.fail_sends:
            raise RuntimeError("peer connection reset")
        self.sent.append(message)

    async def close(self, code: int = 1000, reason: Optional[str] = None):
        self.closed = True
        self.close_code = code

    def messages(self, operation: Optional[str] = None) -> List[Dict[str, Any]]:
        decoded = [json.loads(message) for message in self.sent]
        if operation is None:
            return decoded
        return [message for message in decoded if message["operation"] == operation]


class FakeSink:
    """Playback sink that stays busy after each append until finish() is called"""

    def __init__(self, updating: bool = False):
        self.updating = updating
        self.appended: List[bytes] = []
        self.ready_callback = None

    def append(self, segment: bytes) -> None:
        assert not self.updating, "append while sink is updating"
        self.appended.append(segment)
        self.updating = True

    def set_ready_callback(self, callback) -> None:
        self.ready_callback = callback

    def finish(self) -> None:
        self.updating = False
        if self.ready_callback is not None:
            self.ready_callback()


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Test settings configuration"""
    return Settings(
        log_storage_path=str(tmp_path / "logs"),
        log_to_file=False,
        send_timeout_seconds=1.0,
    )


@pytest.fixture
def registry() -> RoomRegistry:
    """Fresh registry per test"""
    return RoomRegistry()


@pytest.fixture
def connections() -> ConnectionManager:
    return ConnectionManager(send_timeout=1.0)


@pytest.fixture
def engine(registry: RoomRegistry, connections: ConnectionManager) -> SignalingProtocolEngine:
    return SignalingProtocolEngine(registry, connections)


@pytest.fixture
def fake_sink() -> FakeSink:
    return FakeSink()


def pytest_configure(config):
    """Configure pytest markers"""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers"""
    for item in items:
        # Add unit marker to unit tests
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

        # Add integration marker to integration tests
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
