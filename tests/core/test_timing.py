from __future__ import annotations

import pytest

from typeproof.core.codec import decode_events
from typeproof.core.errors import RangeError
from typeproof.core.keys import Key
from typeproof.core.timing import ReplayRecorder, TimingRecorder, compute_dt_list


class _Clock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_timing_recorder_deltas() -> None:
    clock = _Clock(1000)
    recorder = TimingRecorder(clock)
    recorder.start()
    clock.now = 1040
    assert recorder.record() == 40
    clock.now = 1095.9
    assert recorder.record() == 55
    assert recorder.is_started
    recorder.reset()
    assert not recorder.is_started


def test_first_record_without_start_is_zero() -> None:
    clock = _Clock(500)
    recorder = TimingRecorder(clock)
    assert recorder.record() == 0
    clock.now = 530
    assert recorder.record() == 30


def test_clock_going_backwards_clamps_to_zero() -> None:
    clock = _Clock(100)
    recorder = TimingRecorder(clock)
    recorder.start()
    clock.now = 90
    assert recorder.record() == 0


def test_compute_dt_list() -> None:
    assert compute_dt_list([1100, 1125, 1190], 1000) == [100, 25, 65]
    assert compute_dt_list([10, 5], 0) == [10, 0]
    with pytest.raises(TypeError):
        compute_dt_list("123")  # type: ignore[arg-type]


def test_replay_recorder_clamps_and_encodes() -> None:
    clock = _Clock(0)
    recorder = ReplayRecorder(clock)
    recorder.start()
    clock.now = 3
    recorder.record(Key.H)
    clock.now = 100_003
    recorder.record(Key.I)
    clock.now = 100_103
    recorder.record(Key.BACKSPACE)
    clock.now = 100_203
    recorder.finish()

    assert recorder.clamped
    assert recorder.typed == "h"
    assert [e.dt_ms for e in recorder.events] == [10, 0xFFFF, 100, 100]
    assert decode_events(recorder.encode()) == recorder.events


def test_replay_recorder_rejects_unknown_keys() -> None:
    recorder = ReplayRecorder(_Clock(0))
    with pytest.raises(RangeError):
        recorder.record(29)
    recorder.record(Key.A)
    recorder.reset()
    assert recorder.events == []
    assert not recorder.clamped
