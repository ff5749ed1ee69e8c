"""
Canonical byte encodings used for hashing and signing.

Two forms are provided:
- canonical JSON for structured payloads (signed instruction envelopes),
- length-prefixed binary fields for account addresses and state roots.

Both are deterministic for equal inputs and refuse values whose encoding
would be ambiguous (floats, non-str keys, lone surrogates).
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


DOMAIN_PREFIX = b"taxreward:"


def _check_text(s: str) -> None:
    if any(0xD800 <= ord(ch) <= 0xDFFF for ch in s):
        raise TypeError("lone surrogates cannot be canonically encoded")


def _check_json_value(value: Any) -> None:
    if isinstance(value, float):
        raise TypeError("floats are not allowed in canonical JSON")
    if isinstance(value, str):
        _check_text(value)
    elif isinstance(value, dict):
        for k, v in value.items():
            if not isinstance(k, str):
                raise TypeError("canonical JSON keys must be str")
            _check_text(k)
            _check_json_value(v)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _check_json_value(item)


def canonical_json_bytes(value: Any) -> bytes:
    """UTF-8 JSON with sorted keys and no whitespace. Floats are rejected."""
    _check_json_value(value)
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    return "0x" + hashlib.sha256(data).hexdigest()


def domain_sep_bytes(label: str, version: int = 1) -> bytes:
    """``taxreward:<label>:v<version>\\x00``; the NUL terminator keeps concatenation unambiguous."""
    if not isinstance(label, str) or not label:
        raise TypeError("label must be a non-empty str")
    if "\x00" in label or not label.isascii():
        raise ValueError("label must be ASCII without NUL")
    if not isinstance(version, int) or isinstance(version, bool) or version < 1:
        raise ValueError("version must be a positive int")
    return DOMAIN_PREFIX + f"{label}:v{version}".encode("ascii") + b"\x00"


def encode_uvarint(value: int) -> bytes:
    """Unsigned LEB128 (amounts, accumulator values, counts)."""
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValueError(f"uvarint must be a non-negative int, got {value!r}")
    out = bytearray()
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def encode_str(value: str) -> bytes:
    """Length-prefixed UTF-8 (ids, holders, mints)."""
    if not isinstance(value, str):
        raise TypeError("value must be a str")
    _check_text(value)
    raw = value.encode("utf-8")
    return encode_uvarint(len(raw)) + raw


def encode_bool(value: bool) -> bytes:
    return b"\x01" if value else b"\x00"
