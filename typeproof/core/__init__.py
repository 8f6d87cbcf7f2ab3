"""
Deterministic replay core: codec, prompt normalization, replay, scoring.

Everything here is pure and integer-only so that the client, the server and
the proving guest agree bit-for-bit.
"""

from .codec import decode_events, encode_events, peek_event_count
from .errors import (
    BindingError,
    EncodingError,
    FormatError,
    InvalidKeyError,
    OversizedArtifactError,
    ProverError,
    RangeError,
    TypeProofError,
)
from .journal import Journal, decode_journal, encode_journal, journal_sha256
from .keys import Key, ReplayEvent, key_code_for
from .prompt import normalize_prompt, prompt_hash, prompt_hash_hex
from .replay import apply_events
from .scoring import ComputedStats, compute_stats, timing_warnings

__all__ = [
    "decode_events",
    "encode_events",
    "peek_event_count",
    "BindingError",
    "EncodingError",
    "FormatError",
    "InvalidKeyError",
    "OversizedArtifactError",
    "ProverError",
    "RangeError",
    "TypeProofError",
    "Journal",
    "decode_journal",
    "encode_journal",
    "journal_sha256",
    "Key",
    "ReplayEvent",
    "key_code_for",
    "normalize_prompt",
    "prompt_hash",
    "prompt_hash_hex",
    "apply_events",
    "ComputedStats",
    "compute_stats",
    "timing_warnings",
]
