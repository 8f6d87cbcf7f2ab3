"""
Deterministic canonical encoding primitives.

Strict parsers for the text encodings that cross the service boundary (hex,
base64) and canonical JSON for anything that is hashed or compared.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
import re
from typing import Any

from ..core.errors import FormatError


_HEX_CHARS_RE = re.compile(r"^[0-9a-fA-F]+$")
_BASE64_RE = re.compile(r"^[A-Za-z0-9+/]+={0,2}$")


def _reject_floats(value: Any) -> None:
    if isinstance(value, float):
        raise TypeError("floats are not allowed in canonical encoding")
    if isinstance(value, dict):
        for k in value.keys():
            if not isinstance(k, str):
                raise TypeError("dict keys must be str for canonical encoding")
        for v in value.values():
            _reject_floats(v)
        return
    if isinstance(value, (list, tuple)):
        for item in value:
            _reject_floats(item)
        return


def canonical_json_bytes(value: Any) -> bytes:
    """
    Canonical JSON encoding for hashing/comparison.

    Rules:
    - UTF-8
    - sort_keys=True
    - separators=(',', ':') (no whitespace)
    - allow_nan=False
    - floats rejected (all metrics are integers)
    """
    _reject_floats(value)
    text = json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )
    return text.encode("utf-8")


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(bytes(data)).hexdigest()


def strip_0x(hex_str: str) -> str:
    s = hex_str.strip()
    if s[:2].lower() == "0x":
        return s[2:]
    return s


def hex_to_bytes(hex_str: str, *, name: str) -> bytes:
    """Decode variable-length hex (optional 0x prefix)."""
    if not isinstance(hex_str, str):
        raise FormatError(f"{name} must be a hex string")
    body = strip_0x(hex_str)
    if not body:
        return b""
    if len(body) % 2 != 0:
        raise FormatError(f"{name} must have an even number of hex digits")
    if not _HEX_CHARS_RE.fullmatch(body):
        raise FormatError(f"{name} must be valid hex")
    return bytes.fromhex(body)


def hex_to_bytes_fixed(hex_str: str, *, nbytes: int, name: str) -> bytes:
    if not isinstance(nbytes, int) or isinstance(nbytes, bool) or nbytes <= 0:
        raise ValueError("nbytes must be a positive int")
    out = hex_to_bytes(hex_str, name=name)
    if len(out) != nbytes:
        raise FormatError(f"{name} must decode to exactly {nbytes} bytes")
    return out


def canonical_hex_fixed(hex_str: str, *, nbytes: int, name: str) -> str:
    """
    Canonicalize a fixed-size hex string (lowercase, no prefix).

    Accepts either 0x-prefixed or raw hex input.
    """
    return hex_to_bytes_fixed(hex_str, nbytes=nbytes, name=name).hex()


def decode_base64_strict(value: Any, label: str) -> bytes:
    """
    Decode standard base64, rejecting anything that does not re-encode to
    the same text (modulo trailing padding).
    """
    if not isinstance(value, str):
        raise FormatError(f"{label} must be a base64 string")
    trimmed = value.strip()
    if not trimmed:
        raise FormatError(f"{label} must not be empty")
    if len(trimmed) % 4 != 0:
        raise FormatError(f"{label} has invalid length")
    if not _BASE64_RE.fullmatch(trimmed):
        raise FormatError(f"{label} has invalid characters")
    try:
        decoded = base64.b64decode(trimmed, validate=True)
    except binascii.Error as exc:
        raise FormatError(f"{label} is not valid base64") from exc
    reencoded = base64.b64encode(decoded).decode("ascii")
    if reencoded.rstrip("=") != trimmed.rstrip("="):
        raise FormatError(f"{label} is not valid base64")
    return decoded
