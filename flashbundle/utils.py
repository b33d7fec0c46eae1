"""
Wire-format helpers shared by every relay response type.

Relays disagree on how they encode chain-scale integers: some send decimal
strings, some `0x` hex strings and some plain JSON numbers. The decoders here
accept all three and are the only place that knowledge lives.

File: flashbundle/utils.py
"""

import re
from datetime import datetime
from typing import Any, Optional, Union

from eth_typing import ChecksumAddress, HexStr
from eth_utils import decode_hex, encode_hex, is_hex_address, to_checksum_address

U64_MAX = 2 ** 64 - 1
U256_MAX = 2 ** 256 - 1

HASH_LENGTH = 32

_HEX_NUMBER = re.compile(r"0[xX][0-9a-fA-F]+")
_DECIMAL_NUMBER = re.compile(r"[0-9]+")


# =============================================================================
# NUMERIC DECODING
# =============================================================================

def _decode_unsigned(value: Any, max_value: int) -> int:
    """
    Decode a relay integer given as decimal string, hex string or JSON number.

    Args:
        value: Raw JSON value
        max_value: Largest value allowed for the target width

    Returns:
        Decoded integer

    Raises:
        ValueError: If the value has the wrong type or is out of range
    """
    if isinstance(value, bool):
        raise ValueError(f"wrong type: expected integer, got {value!r}")

    if isinstance(value, str):
        if value in ("0x", "0X"):
            return 0
        if _HEX_NUMBER.fullmatch(value):
            number = int(value[2:], 16)
        elif _DECIMAL_NUMBER.fullmatch(value):
            number = int(value, 10)
        else:
            raise ValueError(f"Invalid number: {value!r}")
    elif isinstance(value, int):
        number = value
    else:
        raise ValueError(f"wrong type: expected integer, got {value!r}")

    if number < 0 or number > max_value:
        raise ValueError(f"Invalid number: {value!r} is out of range")
    return number


def decode_u64(value: Any) -> int:
    """Decode a 64-bit unsigned relay quantity."""
    return _decode_unsigned(value, U64_MAX)


def decode_u256(value: Any) -> int:
    """Decode a 256-bit unsigned relay quantity."""
    return _decode_unsigned(value, U256_MAX)


def encode_quantity(value: int) -> HexStr:
    """Encode an integer as a JSON-RPC hex quantity (`0x2`, not `0x02`)."""
    return HexStr(hex(value))


# =============================================================================
# ADDRESSES, HASHES AND BYTES
# =============================================================================

def decode_optional_address(value: Any) -> Optional[ChecksumAddress]:
    """
    Decode an address field where `"0x"` means contract creation.

    Args:
        value: Raw JSON value

    Returns:
        Checksummed address, or None for `"0x"`
    """
    if not isinstance(value, str):
        raise ValueError("expected a hexadecimal string")
    if value in ("0x", "0X"):
        return None
    if not is_hex_address(value):
        raise ValueError(f"Invalid address: {value}")
    return to_checksum_address(value)


def decode_address(value: Any) -> ChecksumAddress:
    """Decode a mandatory address field."""
    if not isinstance(value, str) or not is_hex_address(value):
        raise ValueError(f"Invalid address: {value!r}")
    return to_checksum_address(value)


def decode_data(value: Any) -> Optional[bytes]:
    """Decode an optional hex data field; `"0x"` is empty bytes."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("expected a hexadecimal string")
    return decode_hex(value)


def to_bytes(value: Union[bytes, bytearray, str]) -> bytes:
    """Coerce bytes-like or `0x` hex input into bytes."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        return decode_hex(value)
    raise TypeError(f"Cannot convert {type(value).__name__} to bytes")


def normalize_hash(value: Union[bytes, bytearray, str]) -> HexStr:
    """
    Normalize a 32-byte hash to lowercase `0x` hex.

    Args:
        value: Hash as bytes or hex string

    Returns:
        Lowercase hex string

    Raises:
        ValueError: If the value is not 32 bytes long
    """
    raw = to_bytes(value)
    if len(raw) != HASH_LENGTH:
        raise ValueError(f"Invalid hash length {len(raw)}, expected {HASH_LENGTH}")
    return HexStr(encode_hex(raw))


def decode_hash(value: Any) -> HexStr:
    """Decode a mandatory hash field."""
    if not isinstance(value, str):
        raise ValueError(f"Invalid hash: {value!r}")
    return normalize_hash(value)


def decode_optional_datetime(value: Any) -> Optional[datetime]:
    """Parse an optional RFC 3339 timestamp such as `2021-08-06T21:36:06.317Z`."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"Invalid timestamp: {value!r}")
    text = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
    return datetime.fromisoformat(text)
