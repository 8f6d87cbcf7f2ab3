"""
Request validation gate for proof submissions.

This module checks an inbound submission before anything is handed to the
external prover. It never calls the prover and never trusts a caller-supplied
prompt digest.

Every rejection is a ``RequestRejected`` carrying a ``RejectKind`` so callers
can report distinct failure kinds.
"""

from __future__ import annotations

import logging
import re
from enum import Enum, unique
from typing import Any, Mapping

from ..core.codec import decode_events
from ..core.errors import EncodingError, FormatError, InvalidKeyError, RangeError, TypeProofError
from ..core.prompt import normalize_prompt, prompt_hash
from ..core.scoring import compute_stats, timing_warnings
from ..state.canonical import decode_base64_strict
from ..state.identity import parse_player_pubkey
from ..state.proof import ProofRequest
from .config import U32_MAX, ValidatorConfig

log = logging.getLogger(__name__)

REQUIRED_FIELDS = ("challenge_id", "player_pubkey", "prompt", "events_bytes_base64")
_DECIMAL_RE = re.compile(r"[0-9]{1,10}")


@unique
class RejectKind(Enum):
    MISSING_BODY = "missing_body"
    MISSING_FIELD = "missing_field"
    INVALID_CHALLENGE_ID = "invalid_challenge_id"
    INVALID_PLAYER = "invalid_player"
    INVALID_PROMPT = "invalid_prompt"
    PROMPT_TOO_LONG = "prompt_too_long"
    INVALID_BASE64 = "invalid_base64"
    INVALID_REPLAY = "invalid_replay"
    TOO_MANY_EVENTS = "too_many_events"
    TIMING_VIOLATION = "timing_violation"


class RequestRejected(TypeProofError, ValueError):
    def __init__(self, kind: RejectKind, message: str) -> None:
        self.kind = kind
        self.message = message
        super().__init__(message)


def _parse_challenge_id(value: Any) -> int:
    if isinstance(value, bool):
        raise RequestRejected(RejectKind.INVALID_CHALLENGE_ID, "challenge_id must be a non-negative integer")
    if isinstance(value, str) and _DECIMAL_RE.fullmatch(value.strip()):
        value = int(value.strip())
    if not isinstance(value, int) or value < 0:
        raise RequestRejected(RejectKind.INVALID_CHALLENGE_ID, "challenge_id must be a non-negative integer")
    if value > U32_MAX:
        raise RequestRejected(RejectKind.INVALID_CHALLENGE_ID, "challenge_id exceeds u32 range")
    return value


class RequestValidator:
    """Validates proof submissions against explicitly passed limits."""

    def __init__(self, config: ValidatorConfig) -> None:
        self._config = config

    @property
    def config(self) -> ValidatorConfig:
        return self._config

    def validate(self, body: Any) -> ProofRequest:
        """
        Validate a decoded JSON submission.

        Args:
            body: Mapping with challenge_id, player_pubkey, prompt and
                events_bytes_base64

        Returns:
            ProofRequest with the locally computed prompt digest

        Raises:
            RequestRejected: On the first failed check
        """
        try:
            return self._validate(body)
        except RequestRejected as exc:
            log.info("rejected proof request (%s): %s", exc.kind.value, exc.message)
            raise

    def _validate(self, body: Any) -> ProofRequest:
        cfg = self._config
        if not isinstance(body, Mapping):
            raise RequestRejected(RejectKind.MISSING_BODY, "missing JSON body")
        for name in REQUIRED_FIELDS:
            if body.get(name) is None:
                raise RequestRejected(RejectKind.MISSING_FIELD, f"{name} is required")

        challenge_id = _parse_challenge_id(body["challenge_id"])

        prompt = body["prompt"]
        if not isinstance(prompt, str):
            raise RequestRejected(RejectKind.INVALID_PROMPT, "prompt must be a string")
        if len(prompt) > cfg.max_prompt_chars:
            raise RequestRejected(RejectKind.PROMPT_TOO_LONG, f"prompt exceeds {cfg.max_prompt_chars} chars")

        try:
            player_pubkey = parse_player_pubkey(body["player_pubkey"])
        except FormatError as exc:
            raise RequestRejected(RejectKind.INVALID_PLAYER, str(exc)) from exc

        try:
            events_bytes = decode_base64_strict(body["events_bytes_base64"], "events_bytes_base64")
        except FormatError as exc:
            raise RequestRejected(RejectKind.INVALID_BASE64, str(exc)) from exc

        try:
            events = decode_events(events_bytes, max_events=cfg.max_events)
        except RangeError as exc:
            raise RequestRejected(RejectKind.TOO_MANY_EVENTS, str(exc)) from exc
        except FormatError as exc:
            raise RequestRejected(RejectKind.INVALID_REPLAY, str(exc)) from exc

        try:
            normalized = normalize_prompt(prompt)
        except EncodingError as exc:
            raise RequestRejected(RejectKind.INVALID_PROMPT, str(exc)) from exc

        try:
            stats = compute_stats(prompt, events)
        except InvalidKeyError as exc:
            raise RequestRejected(RejectKind.INVALID_REPLAY, str(exc)) from exc
        if cfg.enforce_timing:
            warnings = timing_warnings(stats, events, min_dt_ms=cfg.min_dt_ms)
            if warnings:
                raise RequestRejected(RejectKind.TIMING_VIOLATION, "; ".join(warnings))

        return ProofRequest(
            challenge_id=challenge_id,
            player_pubkey=player_pubkey,
            prompt=prompt,
            events_bytes=events_bytes,
            prompt_hash=prompt_hash(normalized),
            stats=stats,
        )
