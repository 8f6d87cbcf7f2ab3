"""
typeproof: deterministic typing-score replays and proof binding.
"""

__version__ = "0.1.0"
