"""
Prompt normalization.

A challenge is identified by the SHA-256 of its normalized bytes, so every
party (client preview, server, proving guest) must produce the same bytes:

- ASCII only; any code point above 0x7F is rejected
- whitespace is 0x20 and 0x09-0x0D; each run becomes a single space
- leading and trailing spaces are dropped
- A-Z is folded to a-z by +32; nothing else changes
"""

from __future__ import annotations

import hashlib

from .errors import EncodingError


def _is_ascii_whitespace(code: int) -> bool:
    return code == 0x20 or 0x09 <= code <= 0x0D


def normalize_prompt(text: str) -> bytes:
    if not isinstance(text, str):
        raise EncodingError("prompt must be a string")

    out = bytearray()
    in_space = True
    for ch in text:
        code = ord(ch)
        if code > 0x7F:
            raise EncodingError("prompt must be ASCII")
        if _is_ascii_whitespace(code):
            if not in_space:
                out.append(0x20)
                in_space = True
            continue
        if 0x41 <= code <= 0x5A:
            code += 32
        out.append(code)
        in_space = False
    if out and out[-1] == 0x20:
        out.pop()
    return bytes(out)


def prompt_hash(normalized: bytes) -> bytes:
    """SHA-256 digest of already-normalized prompt bytes."""
    return hashlib.sha256(bytes(normalized)).digest()


def prompt_hash_hex(text: str) -> str:
    return prompt_hash(normalize_prompt(text)).hex()
