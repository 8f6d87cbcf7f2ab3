"""
Request/artifact data models and canonical encodings
"""

from .identity import parse_player_pubkey
from .proof import ProofArtifact, ProofRequest

__all__ = [
    "parse_player_pubkey",
    "ProofArtifact",
    "ProofRequest",
]
