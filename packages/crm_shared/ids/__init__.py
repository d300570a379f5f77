"""Shared ULID identifier helpers."""

from packages.crm_shared.ids.ulid import (
    ULID_STRING_LENGTH,
    generate_ulid_str,
    is_ulid_str,
    ulid_bytes_to_str,
    ulid_str_to_bytes,
    ulid_timestamp_ms,
)

__all__ = [
    "ULID_STRING_LENGTH",
    "generate_ulid_str",
    "is_ulid_str",
    "ulid_bytes_to_str",
    "ulid_str_to_bytes",
    "ulid_timestamp_ms",
]
