"""
Player identity parsing.

A player is a 32-byte ed25519 public key, given either as hex (64 digits,
optional 0x) or as a Stellar account address (``G...`` StrKey).
"""

from __future__ import annotations

import re
from typing import Any

from stellar_sdk import StrKey

from ..core.errors import FormatError

_HEX64_RE = re.compile(r"^[0-9a-fA-F]{64}$")


def parse_player_pubkey(value: Any) -> bytes:
    if not isinstance(value, str) or not value:
        raise FormatError("player_pubkey is required")
    trimmed = value[2:] if value.startswith("0x") else value
    if _HEX64_RE.fullmatch(trimmed):
        return bytes.fromhex(trimmed)
    if value.startswith("G"):
        try:
            return StrKey.decode_ed25519_public_key(value)
        except ValueError:
            pass
    raise FormatError("player_pubkey must be 32-byte hex or Stellar G... address")
