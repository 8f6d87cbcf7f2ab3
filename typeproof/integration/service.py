"""
Proof service: validate -> prove -> bind -> forward.

The ``ProofRequest`` is passed along explicitly as a value from validation to
the binding check, so concurrent submissions cannot see each other's context.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..core.errors import FormatError
from ..core.prompt import prompt_hash_hex
from ..state.canonical import hex_to_bytes, strip_0x
from ..state.proof import ProofArtifact, ProofRequest
from .binding import BindingChecker
from .config import ServiceConfig
from .prover import Prover, make_prover
from .validation import RequestValidator

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProveOutcome:
    request: ProofRequest
    artifact: ProofArtifact
    seal_hex: str

    def forward_payload(self) -> Dict[str, Any]:
        """Everything the on-chain submitter needs for this proof."""
        out = self.artifact.to_dict()
        out["seal_hex"] = self.seal_hex
        out["challenge_id"] = self.request.challenge_id
        out["prompt_hash_hex"] = self.request.prompt_hash_hex
        out["player_pubkey_hex"] = self.request.player_pubkey_hex
        return out


def prefix_seal(seal_hex: str, selector_hex: Optional[str]) -> str:
    """Prepend the 4-byte verifier selector expected by the on-chain router."""
    seal = strip_0x(seal_hex).lower()
    if not selector_hex:
        return seal
    return strip_0x(selector_hex).lower() + seal


class ProofService:
    def __init__(self, config: ServiceConfig, prover: Optional[Prover] = None) -> None:
        self._config = config
        self._validator = RequestValidator(config.validator)
        self._binding = BindingChecker(config.binding)
        self._prover = prover if prover is not None else make_prover(config.prover)

    @property
    def config(self) -> ServiceConfig:
        return self._config

    def current_challenge(self) -> Dict[str, Any]:
        challenge = self._config.challenge
        return {
            "challenge_id": challenge.challenge_id,
            "prompt": challenge.prompt,
            "prompt_hash_hex": prompt_hash_hex(challenge.prompt),
        }

    def prove(self, body: Any) -> ProveOutcome:
        """
        Run one submission through the pipeline.

        Raises:
            RequestRejected: The submission failed validation
            ProverError: The external prover failed (retriable)
            BindingError: The artifact does not match the request
            OversizedArtifactError: The forwarded seal is too large
        """
        request = self._validator.validate(body)
        log.info(
            "proving challenge_id=%s player=%s prompt_hash=%s",
            request.challenge_id,
            request.player_pubkey_hex,
            request.prompt_hash_hex,
        )
        artifact = self._prover.prove(request)

        seal_hex = prefix_seal(artifact.seal_hex, self._config.verifier_selector_hex)
        try:
            seal_len = len(hex_to_bytes(seal_hex, name="seal_hex"))
        except FormatError:
            # Let the binding checker report the malformed seal.
            seal_len = None
        self._binding.check(request, artifact, expected_stats=request.stats, seal_bytes=seal_len)
        return ProveOutcome(request=request, artifact=artifact, seal_hex=seal_hex)
