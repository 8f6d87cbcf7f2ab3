"""
Client-side replay recording.

Clock readings are floats; they are floored to whole milliseconds here, once,
so that everything downstream of the recorder is integer-only.
"""

from __future__ import annotations

import math
from typing import Callable, List, Sequence

from .codec import encode_events
from .keys import KEY_BACKSPACE, KEY_ENTER, KEY_LETTER_MAX, KEY_RANGE_MAX, KEY_SPACE, U16_MAX, ReplayEvent
from .errors import RangeError
from .scoring import MIN_DT_MS


def compute_dt_list(timestamps: Sequence[float], start_time: float = 0) -> List[int]:
    """Convert absolute timestamps (ms) into non-negative deltas."""
    if not isinstance(timestamps, (list, tuple)):
        raise TypeError("timestamps must be a list")
    last = start_time
    out: List[int] = []
    for ts in timestamps:
        out.append(max(0, math.floor(ts - last)))
        last = ts
    return out


class TimingRecorder:
    def __init__(self, now_fn: Callable[[], float]) -> None:
        if not callable(now_fn):
            raise TypeError("now_fn must be callable")
        self._now = now_fn
        self._started = False
        self._last = 0.0

    @property
    def is_started(self) -> bool:
        return self._started

    def start(self) -> float:
        self._last = self._now()
        self._started = True
        return self._last

    def record(self) -> int:
        """Return the delta since the previous call; the first call returns 0."""
        now = self._now()
        if not self._started:
            self._last = now
            self._started = True
            return 0
        dt = max(0, math.floor(now - self._last))
        self._last = now
        return dt

    def reset(self) -> None:
        self._started = False
        self._last = 0.0


class ReplayRecorder:
    """
    Collects key events for one typing session.

    Each delta is clamped into ``[min_dt_ms, 0xFFFF]`` so the recorded replay
    always encodes; ``clamped`` reports whether any clamping happened.
    """

    def __init__(self, now_fn: Callable[[], float], *, min_dt_ms: int = MIN_DT_MS) -> None:
        self._timing = TimingRecorder(now_fn)
        self._min_dt_ms = int(min_dt_ms)
        self._events: List[ReplayEvent] = []
        self._typed: List[str] = []
        self.clamped = False

    def start(self) -> None:
        self._timing.start()

    def record(self, key: int) -> ReplayEvent:
        if not isinstance(key, int) or isinstance(key, bool) or key < 0 or key > KEY_RANGE_MAX:
            raise RangeError(f"key out of range: {key!r}")
        dt = self._timing.record()
        if dt < self._min_dt_ms:
            dt = self._min_dt_ms
            self.clamped = True
        if dt > U16_MAX:
            dt = U16_MAX
            self.clamped = True

        event = ReplayEvent(dt_ms=dt, key=key)
        self._events.append(event)
        if key <= KEY_LETTER_MAX:
            self._typed.append(chr(ord("a") + key))
        elif key == KEY_SPACE:
            self._typed.append(" ")
        elif key == KEY_BACKSPACE and self._typed:
            self._typed.pop()
        return event

    def finish(self) -> ReplayEvent:
        return self.record(KEY_ENTER)

    @property
    def events(self) -> List[ReplayEvent]:
        return list(self._events)

    @property
    def typed(self) -> str:
        return "".join(self._typed)

    def encode(self) -> bytes:
        return encode_events(self._events)

    def reset(self) -> None:
        self._timing.reset()
        self._events = []
        self._typed = []
        self.clamped = False
