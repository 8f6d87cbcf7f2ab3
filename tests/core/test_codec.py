# [TESTER] v1

from __future__ import annotations

import pytest

from typeproof.core.codec import decode_events, encode_events, events_from_pairs, peek_event_count
from typeproof.core.errors import FormatError, RangeError
from typeproof.core.keys import Key, ReplayEvent


def test_encode_matches_reference_bytes() -> None:
    events = [
        ReplayEvent(dt_ms=12, key=Key.A),
        ReplayEvent(dt_ms=34, key=Key.SPACE),
        ReplayEvent(dt_ms=56, key=Key.BACKSPACE),
    ]
    assert encode_events(events) == bytes([3, 0, 12, 0, 0, 34, 0, 26, 56, 0, 27])


def test_encode_empty_is_header_only() -> None:
    assert encode_events([]) == b"\x00\x00"
    assert decode_events(b"\x00\x00") == []


def test_dt_is_little_endian_u16() -> None:
    data = encode_events([ReplayEvent(dt_ms=0x1234, key=Key.ENTER)])
    assert data == bytes([1, 0, 0x34, 0x12, 28])
    assert decode_events(data) == [ReplayEvent(dt_ms=0x1234, key=28)]


@pytest.mark.parametrize("dt", [-1, 0x10000])
def test_encode_rejects_dt_out_of_u16_range(dt: int) -> None:
    with pytest.raises(RangeError):
        encode_events([ReplayEvent(dt_ms=dt, key=0)])


@pytest.mark.parametrize("key", [-1, 29, 255, True])
def test_encode_rejects_keys_outside_alphabet(key: int) -> None:
    with pytest.raises(RangeError):
        encode_events([ReplayEvent(dt_ms=10, key=key)])


def test_encode_rejects_more_than_u16_events() -> None:
    events = [ReplayEvent(dt_ms=10, key=0)] * 0x10000
    with pytest.raises(RangeError):
        encode_events(events)


def test_encode_accepts_exactly_u16_max_events() -> None:
    events = [ReplayEvent(dt_ms=10, key=0)] * 0xFFFF
    data = encode_events(events)
    assert len(data) == 2 + 3 * 0xFFFF
    assert peek_event_count(data) == 0xFFFF


@pytest.mark.parametrize("data", [b"", b"\x01"])
def test_decode_rejects_short_input(data: bytes) -> None:
    with pytest.raises(FormatError):
        decode_events(data)


def test_decode_rejects_trailing_and_missing_bytes() -> None:
    good = encode_events([ReplayEvent(dt_ms=100, key=1)])
    with pytest.raises(FormatError):
        decode_events(good + b"\x00")
    with pytest.raises(FormatError):
        decode_events(good[:-1])


def test_decode_does_not_range_check_keys() -> None:
    # Key validation belongs to the replay interpreter.
    assert decode_events(bytes([1, 0, 10, 0, 200])) == [ReplayEvent(dt_ms=10, key=200)]


def test_decode_enforces_max_events_after_length_check() -> None:
    data = encode_events([ReplayEvent(dt_ms=10, key=0)] * 5)
    with pytest.raises(RangeError):
        decode_events(data, max_events=4)
    assert len(decode_events(data, max_events=5)) == 5
    with pytest.raises(FormatError):
        decode_events(data[:-1], max_events=4)


def test_events_from_pairs_rejects_bad_shapes() -> None:
    assert events_from_pairs([[10, 0], (20, 26)]) == [ReplayEvent(10, 0), ReplayEvent(20, 26)]
    with pytest.raises(FormatError):
        events_from_pairs([[10]])
