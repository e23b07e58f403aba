from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from kitchenhub.core.config import get_settings
from kitchenhub.models.reservation import RESERVATION_CANCELLED, Reservation
from kitchenhub.services.schedule_service import ResolvedSchedule, resolve_schedule
from kitchenhub.services.slot_service import generate_slots


@dataclass(frozen=True)
class SlotAvailability:
    time: time
    capacity: int
    booked_count: int
    available: int
    is_full: bool


def active_reservations(db: Session, kitchen_id: str, d: date) -> list[Reservation]:
    # cancelled rows stay for audit and are filtered at read time
    q = (
        select(Reservation)
        .where(Reservation.kitchen_id == kitchen_id)
        .where(Reservation.booking_date == d)
        .where(Reservation.status != RESERVATION_CANCELLED)
    )
    return list(db.execute(q).scalars().all())


def count_at(reservations: Iterable[Reservation], slot: time) -> int:
    """Reservations whose ``[start, end)`` contains the slot start."""
    return sum(1 for r in reservations if r.start_time <= slot < r.end_time)


def _availability(slot: time, capacity: int, booked: int) -> SlotAvailability:
    return SlotAvailability(
        time=slot,
        capacity=capacity,
        booked_count=booked,
        available=max(0, capacity - booked),
        is_full=booked >= capacity,
    )


def slot_board(db: Session, kitchen_id: str, d: date, *, schedule: ResolvedSchedule | None = None) -> list[SlotAvailability]:
    """Every slot of the resolved window with its current occupancy."""
    if schedule is None:
        schedule = resolve_schedule(db, kitchen_id, d)
    if not schedule.is_open:
        return []

    granularity = get_settings().slot_minutes
    slots = generate_slots(schedule.start_time, schedule.end_time, granularity)
    reservations = active_reservations(db, kitchen_id, d)
    return [_availability(s, schedule.capacity, count_at(reservations, s)) for s in slots]


def capacity_at(db: Session, kitchen_id: str, d: date, slot: time) -> SlotAvailability:
    """Occupancy of one slot. A slot outside the open window has no capacity."""
    schedule = resolve_schedule(db, kitchen_id, d)
    booked = count_at(active_reservations(db, kitchen_id, d), slot)
    if not schedule.is_open:
        return _availability(slot, 0, booked)

    granularity = get_settings().slot_minutes
    if slot not in generate_slots(schedule.start_time, schedule.end_time, granularity):
        return _availability(slot, 0, booked)
    return _availability(slot, schedule.capacity, booked)


def list_available_slots(db: Session, kitchen_id: str, d: date, *, include_full: bool = False) -> list[SlotAvailability]:
    board = slot_board(db, kitchen_id, d)
    if include_full:
        return board
    return [s for s in board if not s.is_full]
