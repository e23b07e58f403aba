from __future__ import annotations

from datetime import time

from kitchenhub.core.exceptions import ValidationError


def to_minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def from_minutes(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


def generate_slots(start_time: time, end_time: time, granularity_minutes: int) -> list[time]:
    """Slot start times for an operating window.

    Only whole slots are produced: the last slot ends at or before ``end_time``.
    """
    if granularity_minutes <= 0:
        raise ValidationError("Slot granularity must be positive")

    start = to_minutes(start_time)
    end = to_minutes(end_time)
    slots: list[time] = []
    cur = start
    while cur + granularity_minutes <= end:
        slots.append(from_minutes(cur))
        cur += granularity_minutes
    return slots


def is_aligned(t: time, window_start: time, granularity_minutes: int) -> bool:
    offset = to_minutes(t) - to_minutes(window_start)
    return offset >= 0 and offset % granularity_minutes == 0


def slots_covering(start_time: time, end_time: time, granularity_minutes: int) -> list[time]:
    """Grid points in ``[start_time, end_time)`` stepping from ``start_time``.

    A reservation counts against every one of these slots.
    """
    start = to_minutes(start_time)
    end = to_minutes(end_time)
    return [from_minutes(m) for m in range(start, end, granularity_minutes)]
