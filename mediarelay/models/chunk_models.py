"""
Chunk transport data structures
"""
from pydantic import BaseModel, Field

from .signal_models import encode_stream_data


class Fragment(BaseModel):
    """One transport-sized, Base64 encoded piece of a media segment"""
    room_key: str = Field(..., description="Room the fragment is streamed to")
    payload: str = Field(..., description="Base64 encoded fragment bytes")
    is_last: bool = Field(default=False, description="Terminates the segment")

    def to_signal_text(self) -> str:
        """Serialize as a StreamData frame"""
        return encode_stream_data(self.room_key, self.payload, self.is_last)


class ReassemblyStats(BaseModel):
    """Receiver-side reassembly counters"""
    fragments_received: int = Field(default=0, description="Fragments accepted")
    segments_completed: int = Field(default=0, description="Segments handed downstream")
    segments_dropped: int = Field(default=0, description="Segments discarded after a decode error")
    bytes_reassembled: int = Field(default=0, description="Raw bytes in completed segments")
