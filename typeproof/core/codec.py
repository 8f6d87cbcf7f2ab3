"""
Replay wire codec.

Layout (little-endian throughout):

    offset 0..2   event count (u16)
    offset 2..N   count records of 3 bytes: dt_ms (u16), key (u8)

Decoding requires an exact length match; trailing or missing bytes are a
``FormatError``, never reinterpreted.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from .errors import FormatError, RangeError
from .keys import KEY_RANGE_MAX, U16_MAX, ReplayEvent

HEADER_LEN = 2
RECORD_LEN = 3


def _require_u16(value: int, *, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise RangeError(f"{name} must be an int")
    if value < 0 or value > U16_MAX:
        raise RangeError(f"{name} out of u16 range: {value}")
    return value


def encode_events(events: Sequence[ReplayEvent]) -> bytes:
    """Encode events into the canonical replay bytes."""
    count = len(events)
    if count > U16_MAX:
        raise RangeError(f"events length exceeds u16: {count}")

    out = bytearray(HEADER_LEN + count * RECORD_LEN)
    out[0:2] = count.to_bytes(2, "little")
    offset = HEADER_LEN
    for i, event in enumerate(events):
        dt = _require_u16(event.dt_ms, name=f"events[{i}].dt_ms")
        key = event.key
        if not isinstance(key, int) or isinstance(key, bool) or key < 0 or key > KEY_RANGE_MAX:
            raise RangeError(f"events[{i}].key out of range: {key!r}")
        out[offset : offset + 2] = dt.to_bytes(2, "little")
        out[offset + 2] = key
        offset += RECORD_LEN
    return bytes(out)


def peek_event_count(data: bytes, *, max_events: Optional[int] = None) -> int:
    """Validate the header and total length, returning the event count."""
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise FormatError("replay must be bytes")
    raw = bytes(data)
    if len(raw) < HEADER_LEN:
        raise FormatError("replay too short")
    count = int.from_bytes(raw[0:2], "little")
    expected = HEADER_LEN + count * RECORD_LEN
    if len(raw) != expected:
        raise FormatError(f"replay length mismatch: expected {expected} bytes, got {len(raw)}")
    if max_events is not None and count > max_events:
        raise RangeError(f"too many events: {count} > {max_events}")
    return count


def decode_events(data: bytes, *, max_events: Optional[int] = None) -> List[ReplayEvent]:
    """
    Decode canonical replay bytes.

    Key codes are not range-checked here; the replay interpreter rejects
    unknown codes when the events are applied.
    """
    count = peek_event_count(data, max_events=max_events)
    raw = bytes(data)
    events: List[ReplayEvent] = []
    offset = HEADER_LEN
    for _ in range(count):
        dt = int.from_bytes(raw[offset : offset + 2], "little")
        events.append(ReplayEvent(dt_ms=dt, key=raw[offset + 2]))
        offset += RECORD_LEN
    return events


def events_from_pairs(pairs: Iterable[Sequence[int]]) -> List[ReplayEvent]:
    """Build events from ``(dt_ms, key)`` pairs, e.g. parsed JSON."""
    out: List[ReplayEvent] = []
    for i, pair in enumerate(pairs):
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            raise FormatError(f"event {i} must be a [dt_ms, key] pair")
        out.append(ReplayEvent(dt_ms=pair[0], key=pair[1]))
    return out
