"""
Deterministic scoring.

Algorithm Design:
- Type: Fixed-Point Integer Arithmetic / Floor Division
- Time Complexity: O(n) in the number of events plus prompt length
- Invariant: 0 <= accuracy_bps <= 10000
- No floating point anywhere; a single rounding difference between the
  client, the server and the proving guest breaks proof matching.

Units:
- ``accuracy_bps`` is basis points (1/10_000) of prompt characters matched.
- ``wpm_x100`` is words per minute scaled by 100, with 5 characters per
  word: ``(chars / 5) / (ms / 60_000) * 100 == chars * 1_200_000 / ms``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from .keys import ReplayEvent
from .prompt import normalize_prompt
from .replay import apply_events

BPS_DENOMINATOR = 10_000
WPM_X100_NUMERATOR = 1_200_000
MIN_DURATION_PER_CHAR_MS = 40
MIN_DT_MS = 10


@dataclass(frozen=True)
class ComputedStats:
    normalized_prompt: str
    reconstructed_text: str
    duration_ms: int
    typed_chars: int
    correct_chars: int
    accuracy_bps: int
    wpm_x100: int
    score: int
    min_duration_ms: int

    @property
    def too_fast(self) -> bool:
        return self.duration_ms < self.min_duration_ms

    def to_dict(self) -> dict:
        return {
            "normalized_prompt": self.normalized_prompt,
            "reconstructed_text": self.reconstructed_text,
            "duration_ms": self.duration_ms,
            "typed_chars": self.typed_chars,
            "correct_chars": self.correct_chars,
            "accuracy_bps": self.accuracy_bps,
            "wpm_x100": self.wpm_x100,
            "score": self.score,
            "min_duration_ms": self.min_duration_ms,
        }


def compute_stats(prompt: str, events: Sequence[ReplayEvent]) -> ComputedStats:
    """
    Score a replay against a prompt.

    Raises:
        EncodingError: If the prompt is not ASCII
        InvalidKeyError: If a key code is outside the alphabet
    """
    normalized = normalize_prompt(prompt).decode("ascii")
    output = apply_events(events)

    duration_ms = 0
    for event in events:
        duration_ms += int(event.dt_ms)

    typed_chars = len(output)
    prompt_len = len(normalized)
    cmp_len = min(typed_chars, prompt_len)
    correct_chars = 0
    for i in range(cmp_len):
        if output[i] == normalized[i]:
            correct_chars += 1

    accuracy_bps = 0 if prompt_len == 0 else (correct_chars * BPS_DENOMINATOR) // prompt_len
    wpm_x100 = 0 if duration_ms == 0 else (typed_chars * WPM_X100_NUMERATOR) // duration_ms
    score = (wpm_x100 * accuracy_bps) // BPS_DENOMINATOR

    return ComputedStats(
        normalized_prompt=normalized,
        reconstructed_text=output,
        duration_ms=duration_ms,
        typed_chars=typed_chars,
        correct_chars=correct_chars,
        accuracy_bps=accuracy_bps,
        wpm_x100=wpm_x100,
        score=score,
        min_duration_ms=prompt_len * MIN_DURATION_PER_CHAR_MS,
    )


def timing_warnings(
    stats: ComputedStats,
    events: Sequence[ReplayEvent],
    *,
    min_dt_ms: int = MIN_DT_MS,
) -> List[str]:
    """
    Advisory timing checks; an empty list means the replay is plausible.

    These mirror the conditions under which the proving guest aborts. Whether
    a warning is fatal is up to the caller.
    """
    warnings: List[str] = []
    if not stats.normalized_prompt:
        warnings.append("prompt is empty")
    if events:
        min_dt = min(int(e.dt_ms) for e in events)
        if min_dt < min_dt_ms:
            warnings.append(f"dt below minimum ({min_dt}ms < {min_dt_ms}ms)")
    if stats.duration_ms == 0:
        warnings.append("duration is zero")
    elif stats.too_fast:
        warnings.append(f"duration below minimum ({stats.duration_ms}ms < {stats.min_duration_ms}ms)")
    return warnings
