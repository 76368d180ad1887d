"""
Streaming layer components for Media Relay Service
"""

from .websocket_handler import SignalWebSocketHandler
from .signal_engine import SignalingProtocolEngine
from .buffer_manager import SinkBufferManager
from .connection_manager import ConnectionManager

__all__ = [
    'SignalWebSocketHandler',
    'SignalingProtocolEngine',
    'SinkBufferManager',
    'ConnectionManager'
]
