"""ULID helpers.

Ids travel as 26-character Crockford Base32 strings: a 48-bit millisecond
timestamp followed by 80 random bits. Repositories order rows by id, which
sorts by creation time because the timestamp leads.
"""

from __future__ import annotations

import secrets
import time

ULID_STRING_LENGTH = 26

_CROCKFORD = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_VALUES = {symbol: value for value, symbol in enumerate(_CROCKFORD)}
_TIMESTAMP_BITS = 48
_RANDOM_BITS = 80


def generate_ulid_str(*, timestamp_ms: int | None = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = time.time_ns() // 1_000_000
    if not 0 <= timestamp_ms < 1 << _TIMESTAMP_BITS:
        raise ValueError("timestamp_ms out of ULID 48-bit range")
    value = (timestamp_ms << _RANDOM_BITS) | secrets.randbits(_RANDOM_BITS)
    return _encode(value)


def ulid_str_to_bytes(value: str) -> bytes:
    """16 big-endian bytes for a canonical ULID string."""
    return _decode(value).to_bytes(16, "big")


def ulid_bytes_to_str(value: bytes) -> str:
    if len(value) != 16:
        raise ValueError("ULID bytes must be exactly 16 bytes")
    return _encode(int.from_bytes(value, "big"))


def is_ulid_str(value: str) -> bool:
    try:
        _decode(value)
    except ValueError:
        return False
    return True


def ulid_timestamp_ms(value: str) -> int:
    """Creation time, in epoch milliseconds, embedded in ``value``."""
    return _decode(value) >> _RANDOM_BITS


def _encode(value: int) -> str:
    symbols = [_CROCKFORD[(value >> shift) & 0x1F] for shift in range(125, -5, -5)]
    return "".join(symbols)


def _decode(text: str) -> int:
    text = text.strip().upper()
    if len(text) != ULID_STRING_LENGTH:
        raise ValueError("ULID string must be exactly 26 characters")
    value = 0
    for symbol in text:
        digit = _VALUES.get(symbol)
        if digit is None:
            raise ValueError(f"Invalid ULID character: {symbol!r}")
        value = value << 5 | digit
    # 26 symbols hold 130 bits; the leading symbol may only use 3 of its 5.
    if value >> 128:
        raise ValueError("ULID value exceeds 128-bit range")
    return value
