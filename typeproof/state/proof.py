"""
Proof request and artifact data models.

Both are one-shot, per-submission values: a ``ProofRequest`` is built by the
request validator and threaded explicitly through proving and binding; a
``ProofArtifact`` is whatever the external prover returned.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..core.scoring import ComputedStats


@dataclass(frozen=True)
class ProofRequest:
    """
    Validated input for one proving run.

    ``prompt_hash`` is always computed locally from the normalized prompt;
    callers never supply it.
    """

    challenge_id: int
    player_pubkey: bytes
    prompt: str
    events_bytes: bytes
    prompt_hash: bytes
    # Locally replayed stats, compared against the prover's metrics.
    stats: Optional[ComputedStats] = None

    @property
    def player_pubkey_hex(self) -> str:
        return self.player_pubkey.hex()

    @property
    def prompt_hash_hex(self) -> str:
        return self.prompt_hash.hex()


@dataclass(frozen=True)
class ProofArtifact:
    score: int
    wpm_x100: int
    accuracy_bps: int
    duration_ms: int
    image_id_hex: str
    journal_sha256_hex: str
    seal_hex: str
    # Self-declared public outputs, used only for the binding cross-check.
    journal_challenge_id: Optional[int] = None
    journal_player_pubkey_hex: Optional[str] = None
    journal_prompt_hash_hex: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "wpm_x100": self.wpm_x100,
            "accuracy_bps": self.accuracy_bps,
            "duration_ms": self.duration_ms,
            "image_id_hex": self.image_id_hex,
            "journal_sha256_hex": self.journal_sha256_hex,
            "seal_hex": self.seal_hex,
        }
