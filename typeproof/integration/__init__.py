"""
Proof service integration layer (imperative shell)
"""

from .binding import BindingChecker
from .config import ServiceConfig, load_config
from .service import ProofService
from .validation import RejectKind, RequestRejected, RequestValidator

__all__ = [
    "BindingChecker",
    "ServiceConfig",
    "load_config",
    "ProofService",
    "RejectKind",
    "RequestRejected",
    "RequestValidator",
]
