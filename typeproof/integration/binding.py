"""
Proof-to-request binding checks.

These are fast local gates run before an artifact leaves the service; the
authoritative check remains the external verifier's proof verification.
Fields the artifact does not declare are skipped. Any declared field that
disagrees with the request is fatal.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..core.errors import BindingError, FormatError, OversizedArtifactError
from ..core.journal import Journal, journal_sha256
from ..core.scoring import ComputedStats
from ..state.canonical import canonical_hex_fixed, hex_to_bytes
from ..state.proof import ProofArtifact, ProofRequest
from .config import BindingConfig

log = logging.getLogger(__name__)


def _declared_hex32(value: str, *, name: str) -> str:
    try:
        return canonical_hex_fixed(value, nbytes=32, name=name)
    except FormatError as exc:
        raise BindingError(f"{name} is not a 32-byte hex value") from exc


class BindingChecker:
    def __init__(self, config: BindingConfig) -> None:
        self._config = config

    def check(
        self,
        request: ProofRequest,
        artifact: ProofArtifact,
        *,
        expected_stats: Optional[ComputedStats] = None,
        seal_bytes: Optional[int] = None,
    ) -> None:
        """
        Raise unless ``artifact`` is bound to ``request``.

        Args:
            request: The validated request the prover was called with
            artifact: The prover's output
            expected_stats: Locally computed stats to compare metrics against
            seal_bytes: Size of the seal as forwarded (defaults to the
                artifact's own seal)

        Raises:
            BindingError: On any declared-field, journal or metric mismatch
            OversizedArtifactError: If the seal exceeds ``max_seal_bytes``
        """
        try:
            self._check_binding(request, artifact, expected_stats)
            self._check_size(artifact, seal_bytes)
        except BindingError as exc:
            log.error(
                "integrity incident: proof artifact rejected (challenge_id=%s player=%s image_id=%s): %s",
                request.challenge_id,
                request.player_pubkey_hex,
                artifact.image_id_hex,
                exc,
            )
            raise

    def _check_binding(
        self,
        request: ProofRequest,
        artifact: ProofArtifact,
        expected_stats: Optional[ComputedStats],
    ) -> None:
        declared_hash = artifact.journal_prompt_hash_hex
        if declared_hash:
            if _declared_hex32(declared_hash, name="journal_prompt_hash_hex") != request.prompt_hash_hex:
                raise BindingError("prompt hash mismatch")

        if artifact.journal_challenge_id is not None:
            if artifact.journal_challenge_id != request.challenge_id:
                raise BindingError("challenge mismatch")

        declared_player = artifact.journal_player_pubkey_hex
        if declared_player:
            if _declared_hex32(declared_player, name="journal_player_pubkey_hex") != request.player_pubkey_hex:
                raise BindingError("player mismatch")

        if expected_stats is not None:
            got = (artifact.score, artifact.wpm_x100, artifact.accuracy_bps, artifact.duration_ms)
            want = (
                expected_stats.score,
                expected_stats.wpm_x100,
                expected_stats.accuracy_bps,
                expected_stats.duration_ms,
            )
            if got != want:
                raise BindingError(f"stats mismatch: prover {got} != local {want}")

        # With every public output declared, the journal digest is fully determined.
        if declared_hash and declared_player and artifact.journal_challenge_id is not None and artifact.journal_sha256_hex:
            journal = Journal(
                challenge_id=request.challenge_id,
                player_pubkey=request.player_pubkey,
                prompt_hash=request.prompt_hash,
                score=artifact.score,
                wpm_x100=artifact.wpm_x100,
                accuracy_bps=artifact.accuracy_bps,
                duration_ms=artifact.duration_ms,
            )
            try:
                expected_digest = journal_sha256(journal).hex()
            except ValueError as exc:
                raise BindingError(f"journal metrics out of range: {exc}") from exc
            if _declared_hex32(artifact.journal_sha256_hex, name="journal_sha256_hex") != expected_digest:
                raise BindingError("journal hash mismatch")

    def _check_size(self, artifact: ProofArtifact, seal_bytes: Optional[int]) -> None:
        limit = self._config.max_seal_bytes
        if limit is None:
            return
        if seal_bytes is None:
            try:
                seal_bytes = len(hex_to_bytes(artifact.seal_hex, name="seal_hex"))
            except FormatError as exc:
                raise BindingError("seal_hex is not valid hex") from exc
        if seal_bytes > limit:
            raise OversizedArtifactError(seal_bytes, limit)
