"""Binary Canonical Serialization (BCS) writer.

Only the subset needed to build Sui programmable transactions:
fixed-width little-endian integers, ULEB128 lengths, byte vectors,
32-byte addresses, UTF-8 identifiers and enum variant tags.

.. code-block:: python

    >>> w = BcsWriter().u64(1).byte_vector(b"btc")
    >>> w.getvalue().hex()
    '010000000000000003627463'
"""

from __future__ import annotations

import re

from .errors import EncodingError

ADDRESS_LENGTH = 32

U8_MAX = 2**8 - 1
U16_MAX = 2**16 - 1
U64_MAX = 2**64 - 1
# Sui caps sequence lengths at 2^31 - 1
MAX_SEQUENCE_LENGTH = 2**31 - 1

_HEX_RE = re.compile(r"^(0x)?[0-9a-fA-F]+$")


def normalize_address(address: str) -> str:
    """Normalize a Sui address or object id to ``0x`` + 64 lowercase hex.

    Short forms such as ``0x2`` are left-padded with zeros.

    :param address: Hex address with or without ``0x`` prefix.
    :returns: Normalized address string.
    :raises EncodingError: If the string is not a valid address.
    """
    if not isinstance(address, str) or not _HEX_RE.match(address):
        raise EncodingError(f"Invalid address: {address!r}")
    digits = address[2:] if address.startswith("0x") else address
    if len(digits) > ADDRESS_LENGTH * 2:
        raise EncodingError(f"Address too long: {address!r}")
    return "0x" + digits.lower().rjust(ADDRESS_LENGTH * 2, "0")


def address_to_bytes(address: str) -> bytes:
    """Decode an address or object id to its 32 raw bytes."""
    return bytes.fromhex(normalize_address(address)[2:])


def uleb128(value: int) -> bytes:
    """Encode an unsigned integer as ULEB128."""
    if value < 0:
        raise EncodingError(f"ULEB128 cannot encode negative value {value}")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


class BcsWriter:
    """Accumulates BCS encoded values.

    Methods return the writer so calls can be chained.
    """

    def __init__(self) -> None:
        self._buf = bytearray()

    def getvalue(self) -> bytes:
        """Return the bytes written so far."""
        return bytes(self._buf)

    def _uint(self, value: int, size: int, limit: int, name: str) -> BcsWriter:
        if isinstance(value, bool) or not isinstance(value, int):
            raise EncodingError(f"{name} expects an int, got {type(value).__name__}")
        if not 0 <= value <= limit:
            raise EncodingError(f"{value} is out of range for {name}")
        self._buf += value.to_bytes(size, "little")
        return self

    def u8(self, value: int) -> BcsWriter:
        return self._uint(value, 1, U8_MAX, "u8")

    def u16(self, value: int) -> BcsWriter:
        return self._uint(value, 2, U16_MAX, "u16")

    def u64(self, value: int) -> BcsWriter:
        return self._uint(value, 8, U64_MAX, "u64")

    def length(self, value: int) -> BcsWriter:
        """Write a sequence length prefix."""
        if value > MAX_SEQUENCE_LENGTH:
            raise EncodingError(f"Sequence length {value} exceeds BCS limit")
        self._buf += uleb128(value)
        return self

    def variant(self, index: int) -> BcsWriter:
        """Write an enum variant tag."""
        self._buf += uleb128(index)
        return self

    def byte_vector(self, value: bytes) -> BcsWriter:
        """Write a length-prefixed byte vector (``vector<u8>``)."""
        self.length(len(value))
        self._buf += value
        return self

    def fixed_bytes(self, value: bytes) -> BcsWriter:
        """Write bytes verbatim, without a length prefix."""
        self._buf += value
        return self

    def string(self, value: str) -> BcsWriter:
        """Write a UTF-8 string (identifiers, Move ``String``)."""
        return self.byte_vector(value.encode("utf-8"))

    def address(self, value: str) -> BcsWriter:
        """Write a 32-byte address or object id."""
        return self.fixed_bytes(address_to_bytes(value))


def encode_u8(value: int) -> bytes:
    """BCS encoding of a ``u8`` pure argument."""
    return BcsWriter().u8(value).getvalue()


def encode_u64(value: int) -> bytes:
    """BCS encoding of a ``u64`` pure argument."""
    return BcsWriter().u64(value).getvalue()


def encode_byte_vector(value: bytes) -> bytes:
    """BCS encoding of a ``vector<u8>`` pure argument."""
    return BcsWriter().byte_vector(value).getvalue()
