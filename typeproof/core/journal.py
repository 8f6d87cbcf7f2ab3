"""
Proof journal layout.

The proving guest commits exactly these 88 bytes as its public outputs:

    challenge_id   u32 LE
    player_pubkey  32 bytes
    prompt_hash    32 bytes
    score          u64 LE
    wpm_x100       u32 LE
    accuracy_bps   u32 LE
    duration_ms    u32 LE

``journal_sha256`` over these bytes is what the on-chain verifier checks the
seal against.
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass

from .errors import FormatError, RangeError

JOURNAL_LEN = 88

# 4 + 32 + 32 + 8 + 4 + 4 + 4 == JOURNAL_LEN
_JOURNAL_STRUCT = struct.Struct("<I32s32sQIII")


@dataclass(frozen=True)
class Journal:
    challenge_id: int
    player_pubkey: bytes
    prompt_hash: bytes
    score: int
    wpm_x100: int
    accuracy_bps: int
    duration_ms: int


def _require_uint(value: int, *, bits: int, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise RangeError(f"{name} must be an int")
    if value < 0 or value >= (1 << bits):
        raise RangeError(f"{name} out of u{bits} range: {value}")
    return value


def encode_journal(journal: Journal) -> bytes:
    if len(journal.player_pubkey) != 32:
        raise RangeError("player_pubkey must be 32 bytes")
    if len(journal.prompt_hash) != 32:
        raise RangeError("prompt_hash must be 32 bytes")
    return _JOURNAL_STRUCT.pack(
        _require_uint(journal.challenge_id, bits=32, name="challenge_id"),
        bytes(journal.player_pubkey),
        bytes(journal.prompt_hash),
        _require_uint(journal.score, bits=64, name="score"),
        _require_uint(journal.wpm_x100, bits=32, name="wpm_x100"),
        _require_uint(journal.accuracy_bps, bits=32, name="accuracy_bps"),
        _require_uint(journal.duration_ms, bits=32, name="duration_ms"),
    )


def decode_journal(data: bytes) -> Journal:
    raw = bytes(data)
    if len(raw) != JOURNAL_LEN:
        raise FormatError(f"journal must be {JOURNAL_LEN} bytes, got {len(raw)}")
    challenge_id, player, prompt_hash, score, wpm_x100, accuracy_bps, duration_ms = _JOURNAL_STRUCT.unpack(raw)
    return Journal(
        challenge_id=challenge_id,
        player_pubkey=player,
        prompt_hash=prompt_hash,
        score=score,
        wpm_x100=wpm_x100,
        accuracy_bps=accuracy_bps,
        duration_ms=duration_ms,
    )


def journal_sha256(journal: Journal) -> bytes:
    return hashlib.sha256(encode_journal(journal)).digest()
