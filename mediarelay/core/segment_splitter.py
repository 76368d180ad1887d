"""
Segment Splitter / Reassembler
Slices media segments into transport fragments and rebuilds them on the far end
"""

import logging
from typing import Iterator, List, Optional

from mediarelay.core.chunk_codec import BytesLike, ChunkCodec
from mediarelay.models.chunk_models import Fragment, ReassemblyStats
from mediarelay.models.error_models import ChunkDecodeError

DEFAULT_FRAGMENT_SIZE = 40000


class SegmentSplitter:
    """Producer side: one segment in, ordered fragments out"""

    def __init__(self, max_fragment_size: int = DEFAULT_FRAGMENT_SIZE,
                 codec: Optional[ChunkCodec] = None):
        if max_fragment_size < 1:
            raise ValueError(f"max_fragment_size must be >= 1, got {max_fragment_size}")
        self.max_fragment_size = max_fragment_size
        self.codec = codec or ChunkCodec()
        self.logger = logging.getLogger(__name__)

    def slice(self, segment: BytesLike) -> Iterator[bytes]:
        """
        Yield raw slices of at most ``max_fragment_size`` bytes.

        Full-size slices are yielded while more than one slice's worth of
        bytes remains; the remainder is always yielded last, even when the
        segment is empty, so every segment ends with exactly one terminator.
        """
        data = memoryview(bytes(segment))
        size = self.max_fragment_size
        start = 0
        while len(data) > start + size:
            yield bytes(data[start:start + size])
            start += size
        yield bytes(data[start:])

    def split(self, segment: BytesLike, room_key: str) -> Iterator[Fragment]:
        """Yield encoded fragments for one segment, the final one flagged last"""
        pending: Optional[bytes] = None
        count = 0
        for piece in self.slice(segment):
            if pending is not None:
                yield Fragment(room_key=room_key, payload=self.codec.encode(pending), is_last=False)
                count += 1
            pending = piece
        yield Fragment(room_key=room_key, payload=self.codec.encode(pending or b""), is_last=True)
        self.logger.debug(f"Split {len(segment)} byte segment into {count + 1} fragments for room {room_key}")

    def fragment_count(self, segment_length: int) -> int:
        """Number of fragments ``split`` produces for a segment of this length"""
        if segment_length <= self.max_fragment_size:
            return 1
        return -(-segment_length // self.max_fragment_size)


class SegmentReassembler:
    """Consumer side: ordered fragments in, complete segments out

    Holds one accumulation buffer, so one instance serves one stream.
    Fragments must arrive in production order; there is no reordering or
    duplicate detection.
    """

    def __init__(self, codec: Optional[ChunkCodec] = None):
        self.codec = codec or ChunkCodec()
        self.logger = logging.getLogger(__name__)
        self._pieces: List[bytes] = []
        self._discarding = False
        self.stats = ReassemblyStats()

    @property
    def pending_fragments(self) -> int:
        return len(self._pieces)

    @property
    def pending_bytes(self) -> int:
        return sum(len(piece) for piece in self._pieces)

    def accept(self, fragment: Fragment) -> Optional[bytes]:
        """Add a fragment; return the completed segment when it is the last one.

        A payload that fails to decode discards the whole segment and
        re-raises; the remaining fragments of that segment, up to and
        including its last one, are skipped, so corrupted bytes never reach
        the sink.
        """
        return self.accept_payload(fragment.payload, fragment.is_last)

    def accept_payload(self, payload: str, is_last: bool) -> Optional[bytes]:
        if self._discarding:
            # Tail of a segment that already failed to decode
            if is_last:
                self._discarding = False
            return None

        try:
            piece = self.codec.decode(payload)
        except ChunkDecodeError:
            dropped = len(self._pieces)
            self._pieces.clear()
            self._discarding = not is_last
            self.stats.segments_dropped += 1
            self.logger.warning(f"Dropped segment after decode error ({dropped} buffered fragments discarded)")
            raise

        self.stats.fragments_received += 1
        self._pieces.append(piece)

        if not is_last:
            return None

        segment = b"".join(self._pieces)
        self._pieces.clear()
        self.stats.segments_completed += 1
        self.stats.bytes_reassembled += len(segment)
        return segment

    def reset(self) -> None:
        """Discard the segment in progress; the next fragment starts a new one"""
        self._pieces.clear()
        self._discarding = False
