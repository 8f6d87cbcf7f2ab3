"""Replay interpreter: turns key events back into the typed text."""

from __future__ import annotations

from typing import Iterable, List

from .errors import InvalidKeyError
from .keys import KEY_BACKSPACE, KEY_ENTER, KEY_LETTER_MAX, KEY_SPACE, ReplayEvent


def apply_events(events: Iterable[ReplayEvent]) -> str:
    """
    Replay events in order.

    Backspace on empty output is a no-op. Any code outside the alphabet
    raises ``InvalidKeyError``; unknown codes are never skipped.
    """
    output: List[str] = []
    for i, event in enumerate(events):
        key = event.key
        if isinstance(key, bool) or not isinstance(key, int):
            raise InvalidKeyError(key, i)
        if 0 <= key <= KEY_LETTER_MAX:
            output.append(chr(ord("a") + key))
        elif key == KEY_SPACE:
            output.append(" ")
        elif key == KEY_BACKSPACE:
            if output:
                output.pop()
        elif key == KEY_ENTER:
            continue
        else:
            raise InvalidKeyError(key, i)
    return "".join(output)
