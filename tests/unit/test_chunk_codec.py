"""
Unit Tests for the Chunk Codec
Tests Base64 transport encoding and strict decoding of fragment payloads.
"""

import base64

import pytest

from mediarelay.core import chunk_codec
from mediarelay.core.chunk_codec import ALPHABET, ChunkCodec
from mediarelay.models.error_models import ChunkDecodeError


def _sample(length: int) -> bytes:
    return bytes((i * 37 + 11) % 256 for i in range(length))


class TestChunkCodec:
    """Test encoding and decoding of fragment bytes"""

    @pytest.fixture
    def codec(self):
        return ChunkCodec()

    @pytest.mark.parametrize("length", [0, 1, 2, 3, 6, 7, 8, 300, 301, 302, 40000])
    def test_round_trip(self, codec, length):
        """Test decode(encode(b)) == b across every padding case"""
        data = _sample(length)
        assert codec.decode(codec.encode(data)) == data

    def test_known_vectors(self, codec):
        """Test output matches standard Base64"""
        assert codec.encode(b"") == ""
        assert codec.encode(b"f") == "Zg=="
        assert codec.encode(b"fo") == "Zm8="
        assert codec.encode(b"foo") == "Zm9v"
        assert codec.encode(b"\xfb\xff\xbf") == "+/+/"

    def test_matches_stdlib_for_all_byte_values(self, codec):
        """Test every byte value encodes like any standard Base64 peer"""
        data = bytes(range(256))
        encoded = codec.encode(data)
        assert encoded == base64.b64encode(data).decode("ascii")
        assert set(encoded.rstrip("=")) <= set(ALPHABET)

    def test_accepts_bytearray_and_memoryview(self, codec):
        """Test bytes-like inputs are accepted"""
        assert codec.encode(bytearray(b"foo")) == "Zm9v"
        assert codec.encode(memoryview(b"foo")) == "Zm9v"

    @pytest.mark.parametrize("length", [0, 1, 2, 3, 4, 5, 40000])
    def test_encoded_length(self, codec, length):
        """Test output length is 4 * ceil(n / 3)"""
        assert len(codec.encode(_sample(length))) == ChunkCodec.encoded_length(length)

    @pytest.mark.parametrize("length", [0, 1, 2, 3, 4, 5])
    def test_decoded_length(self, codec, length):
        assert ChunkCodec.decoded_length(codec.encode(_sample(length))) == length

    @pytest.mark.parametrize("text", ["Zg=", "Zm9vZ", "Zm9*", "Z===", "Zm9v\n"])
    def test_decode_rejects_malformed_text(self, codec, text):
        """Test truncated, non-alphabet and badly padded text is refused"""
        with pytest.raises(ChunkDecodeError):
            codec.decode(text)

    def test_decode_error_is_typed(self, codec):
        """Test decode errors carry the decode category"""
        with pytest.raises(ChunkDecodeError) as exc_info:
            codec.decode("abc")
        assert exc_info.value.category.value == "decode"
        assert exc_info.value.details["length"] == 3

    def test_module_level_helpers(self):
        """Test the module functions use a default codec"""
        assert chunk_codec.decode(chunk_codec.encode(b"relay")) == b"relay"
