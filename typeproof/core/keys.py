"""Replay key alphabet.

Codes 0-25 are the letters a-z. The table is closed: anything above
``KEY_RANGE_MAX`` is invalid everywhere a replay is read.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum, unique
from typing import Optional


KEY_LETTER_MAX = 25
KEY_SPACE = 26
KEY_BACKSPACE = 27
KEY_ENTER = 28
KEY_RANGE_MAX = KEY_ENTER

U16_MAX = 0xFFFF


@unique
class Key(IntEnum):
    A = 0
    B = 1
    C = 2
    D = 3
    E = 4
    F = 5
    G = 6
    H = 7
    I = 8  # noqa: E741
    J = 9
    K = 10
    L = 11
    M = 12
    N = 13
    O = 14  # noqa: E741
    P = 15
    Q = 16
    R = 17
    S = 18
    T = 19
    U = 20
    V = 21
    W = 22
    X = 23
    Y = 24
    Z = 25
    SPACE = KEY_SPACE
    BACKSPACE = KEY_BACKSPACE
    ENTER = KEY_ENTER


@dataclass(frozen=True)
class ReplayEvent:
    """One timed key press. ``dt_ms`` is the delay since the previous event."""

    dt_ms: int
    key: int


def is_valid_key(key: int) -> bool:
    return isinstance(key, int) and not isinstance(key, bool) and 0 <= key <= KEY_RANGE_MAX


def key_code_for(name: str) -> Optional[int]:
    """
    Map a keyboard key name to a replay code.

    Accepts single letters (any case), a literal space or "Space",
    "Backspace" and "Enter". Returns None for keys the replay does not record.
    """
    if not isinstance(name, str) or not name:
        return None
    if name == "Backspace":
        return KEY_BACKSPACE
    if name == "Enter":
        return KEY_ENTER
    if name in (" ", "Space"):
        return KEY_SPACE
    if len(name) == 1:
        lower = name.lower()
        if "a" <= lower <= "z":
            return ord(lower) - ord("a")
    return None
