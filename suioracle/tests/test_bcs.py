"""Unit tests for the BCS writer."""

import pytest

from suioracle.src.bcs import (
    BcsWriter,
    address_to_bytes,
    encode_byte_vector,
    encode_u8,
    encode_u64,
    normalize_address,
    uleb128,
)
from suioracle.src.errors import EncodingError


class TestNormalizeAddress:
    """Test address normalization."""

    def test_short_address_padded(self) -> None:
        """Short forms should be left-padded to 32 bytes."""
        assert normalize_address("0x2") == "0x" + "0" * 63 + "2"

    def test_uppercase_lowered(self) -> None:
        """Hex digits should be lowercased."""
        assert normalize_address("0x" + "AB" * 32) == "0x" + "ab" * 32

    def test_prefix_optional(self) -> None:
        """The 0x prefix should be optional."""
        assert normalize_address("ab" * 32) == "0x" + "ab" * 32

    @pytest.mark.parametrize("value", ["", "0x", "0xzz", "0x" + "1" * 65])
    def test_invalid_rejected(self, value: str) -> None:
        """Malformed addresses should raise EncodingError."""
        with pytest.raises(EncodingError):
            normalize_address(value)

    def test_address_to_bytes(self) -> None:
        """Addresses should decode to 32 raw bytes."""
        raw = address_to_bytes("0x1")
        assert len(raw) == 32
        assert raw[-1] == 1
        assert raw[:-1] == bytes(31)


class TestUleb128:
    """Test ULEB128 length encoding."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (0, b"\x00"),
            (1, b"\x01"),
            (127, b"\x7f"),
            (128, b"\x80\x01"),
            (300, b"\xac\x02"),
            (16384, b"\x80\x80\x01"),
        ],
    )
    def test_known_values(self, value: int, expected: bytes) -> None:
        """Known values should encode as in the BCS reference."""
        assert uleb128(value) == expected

    def test_negative_rejected(self) -> None:
        """Negative values should raise EncodingError."""
        with pytest.raises(EncodingError):
            uleb128(-1)


class TestBcsWriter:
    """Test primitive encodings."""

    def test_integers_little_endian(self) -> None:
        """Integers should be fixed width little endian."""
        assert encode_u8(255) == b"\xff"
        assert BcsWriter().u16(0x0102).getvalue() == b"\x02\x01"
        assert encode_u64(1) == b"\x01" + bytes(7)
        assert encode_u64(2**64 - 1) == b"\xff" * 8

    @pytest.mark.parametrize("value", [-1, 2**64])
    def test_u64_out_of_range(self, value: int) -> None:
        """Values outside u64 should raise EncodingError."""
        with pytest.raises(EncodingError, match="out of range"):
            encode_u64(value)

    def test_u8_out_of_range(self) -> None:
        """256 does not fit a u8."""
        with pytest.raises(EncodingError):
            encode_u8(256)

    def test_bool_rejected(self) -> None:
        """Booleans should not pass as integers."""
        with pytest.raises(EncodingError, match="expects an int"):
            encode_u64(True)

    def test_byte_vector_length_prefixed(self) -> None:
        """Byte vectors should carry a ULEB128 length."""
        assert encode_byte_vector(b"BTC/USD") == b"\x07BTC/USD"
        assert encode_byte_vector(b"") == b"\x00"

    def test_chaining(self) -> None:
        """Chained writes should concatenate in order."""
        w = BcsWriter().u64(1).byte_vector(b"btc")
        assert w.getvalue().hex() == "010000000000000003627463"

    def test_string_is_utf8(self) -> None:
        """Strings should be written as UTF-8 byte vectors."""
        assert BcsWriter().string("é").getvalue() == b"\x02\xc3\xa9"

    def test_address_fixed_width(self) -> None:
        """Addresses should be written without a length prefix."""
        data = BcsWriter().address("0x2").getvalue()
        assert len(data) == 32
        assert data[-1] == 2
