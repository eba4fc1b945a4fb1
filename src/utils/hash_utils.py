"""
Hash and identifier helpers.

The document store indexes hash fields as fixed-length byte arrays while
Dash Core speaks hex strings. Everything that crosses that boundary goes
through these functions.
"""
import hashlib
import re
from typing import Iterable, List, Union

import base58

from src.utils.exceptions import FormatError

_HEX_RE = re.compile(r"[a-fA-F0-9]*")
_HASH256_RE = re.compile(r"[a-f0-9]{64}", re.IGNORECASE)
_HASH160_RE = re.compile(r"[a-f0-9]{40}", re.IGNORECASE)

# version byte + 20-byte pubkey/script hash
_ADDRESS_PAYLOAD_LENGTH = 21


def _strip_prefix(hex_str: str) -> str:
    if hex_str.startswith(("0x", "0X")):
        return hex_str[2:]
    return hex_str


def hex_to_bytes(hex_str: str) -> bytes:
    """
    Convert a hex string to bytes.

    Args:
        hex_str: Hex string, optionally prefixed with 0x

    Returns:
        Decoded bytes

    Raises:
        FormatError: If the string has odd length or non-hex characters
    """
    clean = _strip_prefix(hex_str)
    if len(clean) % 2 != 0:
        raise FormatError(f"Invalid hex string: odd length ({len(clean)})")
    if not _HEX_RE.fullmatch(clean):
        raise FormatError("Invalid hex string: non-hex characters")
    return bytes.fromhex(clean)


def hex_to_byte_list(hex_str: str) -> List[int]:
    """Hex string to the list-of-ints form used for byte-array document fields."""
    return list(hex_to_bytes(hex_str))


def bytes_to_hex(data: Union[bytes, bytearray, Iterable[int]]) -> str:
    """
    Convert bytes (or a JSON list of ints) to a lower-case hex string.

    Raises:
        FormatError: If a list element is not a byte value
    """
    if isinstance(data, (bytes, bytearray)):
        return bytes(data).hex()
    try:
        return bytes(list(data)).hex()
    except (TypeError, ValueError) as e:
        raise FormatError(f"Invalid byte array: {e}") from e


def normalize_hash(hash_str: str) -> str:
    """Canonical form for comparisons: no 0x prefix, lower case."""
    return _strip_prefix(hash_str).lower()


def is_valid_hash256(hash_str: str) -> bool:
    """Validate a 64-character hex hash (SHA256 / 256-bit)."""
    return bool(_HASH256_RE.fullmatch(hash_str))


def is_valid_hash160(hash_str: str) -> bool:
    """Validate a 40-character hex hash (Hash160 / 160-bit)."""
    return bool(_HASH160_RE.fullmatch(hash_str))


def truncate_hash(hash_str: str, chars: int = 8) -> str:
    """Shorten a hash for display: first N + '...' + last N characters."""
    if chars < 0:
        raise ValueError(f"chars must be non-negative, got {chars}")
    if len(hash_str) <= chars * 2:
        return hash_str
    return f"{hash_str[:chars]}...{hash_str[len(hash_str) - chars:]}"


def address_to_hash160(address: str) -> str:
    """
    Decode a base58check address to its embedded 20-byte hash.

    Works for any single-version-byte address (Dash mainnet 'X', testnet 'y',
    P2SH, and Bitcoin-style addresses alike).

    Args:
        address: Base58check-encoded address

    Returns:
        40-character lower-case hex of the 20-byte payload

    Raises:
        FormatError: On bad characters, bad checksum or unexpected payload size
    """
    try:
        payload = base58.b58decode_check(address)
    except ValueError as e:
        raise FormatError(f"Invalid address {address!r}: {e}") from e

    if len(payload) != _ADDRESS_PAYLOAD_LENGTH:
        raise FormatError(
            f"Invalid address {address!r}: payload is {len(payload)} bytes, expected {_ADDRESS_PAYLOAD_LENGTH}"
        )
    return payload[1:].hex()


def fallback_key_hash(hash_hex: str) -> str:
    """20-byte key hash derived from another hash (first 20 bytes of its SHA-256)."""
    digest = hashlib.sha256(hex_to_bytes(hash_hex)).digest()
    return digest[:20].hex()
