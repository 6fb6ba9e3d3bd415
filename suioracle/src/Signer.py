"""Signer: Holds the publisher's Ed25519 key and signs transactions.

Sui signs ``blake2b-256(intent || tx_bytes)`` where ``intent`` is a fixed
3-byte scope. A signature produced for a transaction therefore cannot be
replayed as a signature over any other kind of message.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
from pathlib import Path

import bech32
from nacl.signing import SigningKey

from .bcs import normalize_address
from .errors import ConfigError, EncodingError

logger = logging.getLogger(__name__)

# Scope TransactionData, version V0, app Sui
TRANSACTION_INTENT = bytes([0, 0, 0])

ED25519_FLAG = 0x00
PRIVATE_KEY_HRP = "suiprivkey"
KEY_LENGTH = 32


def bech32_to_bytes(value: str, hrp: str = PRIVATE_KEY_HRP) -> bytes:
    """Decode a Bech32 string to raw bytes.

    :param value: Bech32 string (e.g., "suiprivkey1q...").
    :param hrp: Expected human readable part.
    :returns: Decoded payload.
    :raises ValueError: If the string is not valid Bech32 with that prefix.
    """
    decoded_hrp, data = bech32.bech32_decode(value)
    if data is None or decoded_hrp != hrp:
        raise ValueError(f"Invalid bech32 {hrp} string")

    payload = bech32.convertbits(data, 5, 8, False)
    if payload is None:
        raise ValueError(f"Failed to convert bech32 {hrp} payload to bytes")

    return bytes(payload)


def decode_private_key(encoded: str) -> bytes:
    """Decode a private key in one of the Sui export formats.

    Accepted forms:
        - Bech32 ``suiprivkey1...`` (flag byte + 32-byte key)
        - base64 of flag byte + 32-byte key (``sui.keystore`` entries)
        - base64 of a bare 32-byte key

    Only the Ed25519 scheme is supported.

    :param encoded: Encoded key.
    :returns: 32-byte Ed25519 seed.
    :raises ValueError: If the key cannot be decoded or uses another scheme.
    """
    encoded = encoded.strip()
    if encoded.startswith(PRIVATE_KEY_HRP):
        raw = bech32_to_bytes(encoded)
    else:
        try:
            raw = base64.b64decode(encoded, validate=True)
        except binascii.Error as e:
            raise ValueError("Private key is neither bech32 nor base64") from e

    if len(raw) == KEY_LENGTH:
        return raw
    if len(raw) == KEY_LENGTH + 1:
        if raw[0] != ED25519_FLAG:
            raise ValueError(f"Unsupported signature scheme flag {raw[0]:#04x}")
        return raw[1:]
    raise ValueError(f"Private key has unexpected length {len(raw)}")


def address_from_public_key(public_key: bytes) -> str:
    """Derive the Sui address of an Ed25519 public key.

    :param public_key: 32-byte Ed25519 public key.
    :returns: 0x-prefixed address.
    """
    digest = hashlib.blake2b(bytes([ED25519_FLAG]) + public_key, digest_size=32)
    return "0x" + digest.hexdigest()


def transaction_signing_digest(tx_bytes: bytes) -> bytes:
    """Return the digest that is signed for a transaction."""
    return hashlib.blake2b(TRANSACTION_INTENT + tx_bytes, digest_size=32).digest()


class Signer:
    """Owns the one signing identity of the process.

    The private key never leaves this object; ``repr`` only shows the address.

    :ivar address: 0x-prefixed Sui address of the key.
    :ivar public_key: 32-byte Ed25519 public key.
    """

    def __init__(self, signing_key: SigningKey) -> None:
        """Initialize the signer.

        :param signing_key: Ed25519 signing key.
        """
        self._signing_key = signing_key
        self.public_key = bytes(signing_key.verify_key)
        self.address = address_from_public_key(self.public_key)

    def __repr__(self) -> str:
        return f"Signer(address={self.address!r})"

    @classmethod
    def from_private_key(cls, encoded: str) -> Signer:
        """Create a signer from an encoded private key.

        :param encoded: Key in any format accepted by :func:`decode_private_key`.
        :raises ValueError: If the key cannot be decoded.
        """
        return cls(SigningKey(decode_private_key(encoded)))

    @classmethod
    def generate(cls) -> Signer:
        """Create a signer with a fresh random key."""
        return cls(SigningKey.generate())

    @classmethod
    def from_keyfile(
        cls,
        path: str | Path,
        *,
        production: bool = False,
        expected_address: str | None = None,
    ) -> Signer:
        """Load the signer from the first line of a key file.

        In non-production mode a missing file yields an ephemeral key.

        :param path: Key file path.
        :param production: Refuse to generate an ephemeral key.
        :param expected_address: If set, the loaded key must derive this address.
        :returns: Loaded signer.
        :raises ConfigError: If the key is missing (production), unreadable,
            undecodable, or does not match ``expected_address``.
        """
        path = Path(path)
        if not path.exists():
            if production:
                raise ConfigError(f"Key file {path} not found")
            signer = cls.generate()
            logger.warning(
                f"Key file {path} not found. Generated ephemeral key for "
                f"{signer.address}. THIS IS NOT SUITABLE FOR PRODUCTION."
            )
        else:
            try:
                lines = path.read_text().splitlines()
            except OSError as e:
                raise ConfigError(f"Cannot read key file {path}: {e}") from e
            if not lines or not lines[0].strip():
                raise ConfigError(f"Key file {path} is empty")
            try:
                signer = cls.from_private_key(lines[0])
            except ValueError as e:
                raise ConfigError(f"Invalid key in {path}: {e}") from e
            logger.info(f"Loaded signing key for {signer.address} from {path}")

        if expected_address is not None:
            try:
                expected = normalize_address(expected_address)
            except EncodingError as e:
                raise ConfigError(f"Invalid expected address: {e}") from e
            if expected != signer.address:
                raise ConfigError(
                    f"Signer address {signer.address} does not match "
                    f"expected address {expected_address}"
                )
        return signer

    def sign(self, tx_bytes: bytes) -> str:
        """Sign BCS encoded transaction data.

        :param tx_bytes: BCS encoded TransactionData.
        :returns: Base64 serialized signature (flag || signature || public key).
        """
        signature = self._signing_key.sign(
            transaction_signing_digest(tx_bytes)
        ).signature
        return base64.b64encode(
            bytes([ED25519_FLAG]) + signature + self.public_key
        ).decode("ascii")
