"""Exception types for the replay protocol and the proof pipeline.

Core errors (codec, prompt, replay, scoring) are local and synchronous and
always propagate to the caller unchanged. Only ``ProverError`` may be retried
by a caller.
"""

from __future__ import annotations


class TypeProofError(Exception):
    """Base class for every error raised by this package."""


class FormatError(TypeProofError, ValueError):
    """Raised when binary or base64 input is malformed."""


class RangeError(TypeProofError, ValueError):
    """Raised when a value falls outside a declared bound (count, dt, key)."""


class EncodingError(TypeProofError, ValueError):
    """Raised when prompt text is not ASCII."""


class InvalidKeyError(TypeProofError, ValueError):
    """Raised when a replay contains a key code outside the closed alphabet."""

    def __init__(self, key: int, index: int) -> None:
        self.key = key
        self.index = index
        super().__init__(f"invalid key {key} at event {index}")


class BindingError(TypeProofError):
    """Raised when a proof artifact does not match the request that produced it."""


class OversizedArtifactError(TypeProofError):
    """Raised when a proof artifact exceeds a configured transport limit."""

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(f"seal is {size} bytes, exceeds limit of {limit} bytes")


class ProverError(TypeProofError):
    """Raised when the external prover fails. Callers may retry these."""
