"""
Relay endpoints: the streamer that owns a room and the viewers that watch it
"""

from .streamer import StreamerClient
from .viewer import ViewerClient

__all__ = [
    'StreamerClient',
    'ViewerClient'
]
