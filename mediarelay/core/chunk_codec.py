"""
Chunk Codec - text-safe transport encoding for binary fragments
Standard Base64 alphabet with '=' padding, strict on decode
"""

import base64
import binascii
from typing import Union

from mediarelay.models.error_models import ChunkDecodeError

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
PAD = "="

BytesLike = Union[bytes, bytearray, memoryview]


class ChunkCodec:
    """Encodes raw fragment bytes to Base64 text and back.

    Every 3 input bytes become 4 symbols. A trailing single byte becomes
    2 symbols plus ``==`` and two trailing bytes become 3 symbols plus ``=``,
    so output is byte-for-byte what any standard Base64 peer produces.
    """

    def encode(self, data: BytesLike) -> str:
        """Encode bytes into Base64 text"""
        return base64.b64encode(bytes(data)).decode("ascii")

    def decode(self, text: str) -> bytes:
        """Decode Base64 text, rejecting bad length, symbols or padding"""
        if len(text) % 4:
            raise ChunkDecodeError(
                f"Encoded length {len(text)} is not a multiple of 4",
                length=len(text),
            )
        try:
            return base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ChunkDecodeError(f"Invalid Base64 fragment: {e}", length=len(text)) from e

    @staticmethod
    def encoded_length(raw_length: int) -> int:
        """Length of the text produced for ``raw_length`` bytes"""
        return 4 * ((raw_length + 2) // 3)

    @staticmethod
    def decoded_length(text: str) -> int:
        """Number of bytes ``text`` decodes to, assuming it is well formed"""
        if not text:
            return 0
        padding = len(text) - len(text.rstrip(PAD))
        return (len(text) // 4) * 3 - padding


_default_codec = ChunkCodec()


def encode(data: BytesLike) -> str:
    return _default_codec.encode(data)


def decode(text: str) -> bytes:
    return _default_codec.decode(text)
