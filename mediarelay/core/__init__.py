"""
Core relay components: room registry, chunk codec and segment splitting
"""

from .chunk_codec import ChunkCodec
from .room_registry import RoomRegistry
from .segment_splitter import SegmentReassembler, SegmentSplitter

__all__ = [
    'ChunkCodec',
    'RoomRegistry',
    'SegmentSplitter',
    'SegmentReassembler'
]
