from datetime import time

from kitchenhub.services import schedule_service
from kitchenhub.services.capacity_service import capacity_at, list_available_slots
from kitchenhub.services.reservation_service import cancel_reservation, create_reservation
from kitchenhub.core.security import Principal
from tests.commons import MONDAY


def test_empty_day_lists_every_slot(db, kitchen) -> None:
    slots = list_available_slots(db, kitchen.id, MONDAY)
    assert [s.time for s in slots][:2] == [time(9, 0), time(10, 0)]
    assert len(slots) == 8
    assert all(s.available == 1 and not s.is_full for s in slots)


def test_slots_never_leave_window(db, kitchen) -> None:
    schedule_service.upsert_date_override(db, kitchen_id=kitchen.id, specific_date=MONDAY, is_open=True, start_time=time(10, 0), end_time=time(12, 30))
    slots = list_available_slots(db, kitchen.id, MONDAY, include_full=True)
    assert [s.time for s in slots] == [time(10, 0), time(11, 0)]


def test_booking_spanning_slots_fills_each(db, kitchen, qualified_chef) -> None:
    create_reservation(db, kitchen_id=kitchen.id, requester_id=qualified_chef, booking_date=MONDAY, start_time=time(10, 0), end_time=time(12, 0))

    board = {s.time: s for s in list_available_slots(db, kitchen.id, MONDAY, include_full=True)}
    assert board[time(10, 0)].is_full
    assert board[time(11, 0)].is_full
    assert not board[time(12, 0)].is_full
    assert time(10, 0) not in {s.time for s in list_available_slots(db, kitchen.id, MONDAY)}


def test_cancel_frees_slot_once(db, kitchen, qualified_chef) -> None:
    r = create_reservation(db, kitchen_id=kitchen.id, requester_id=qualified_chef, booking_date=MONDAY, start_time=time(10, 0), end_time=time(11, 0))
    assert capacity_at(db, kitchen.id, MONDAY, time(10, 0)).available == 0

    chef = Principal(id=qualified_chef)
    cancel_reservation(db, reservation_id=r.id, principal=chef)
    after_first = capacity_at(db, kitchen.id, MONDAY, time(10, 0))
    assert after_first.available == 1
    assert after_first.booked_count == 0

    cancel_reservation(db, reservation_id=r.id, principal=chef)
    assert capacity_at(db, kitchen.id, MONDAY, time(10, 0)).available == 1


def test_capacity_outside_window_is_zero(db, kitchen) -> None:
    info = capacity_at(db, kitchen.id, MONDAY, time(18, 0))
    assert info.capacity == 0
    assert info.is_full
