import threading
from datetime import datetime, time, timedelta, timezone

import pytest

from kitchenhub.core.exceptions import (
    CapacityExceededError,
    NotFoundError,
    NotQualifiedError,
    PermissionDeniedError,
    ValidationError,
)
from kitchenhub.core.security import Principal
from kitchenhub.models.reservation import BOOKING_TYPE_EXTERNAL, RESERVATION_CANCELLED, RESERVATION_CONFIRMED, RESERVATION_PENDING, Reservation
from kitchenhub.services import events, schedule_service
from kitchenhub.services.kitchen_service import create_kitchen, update_kitchen
from kitchenhub.services.reservation_service import (
    cancel_reservation,
    confirm_reservation,
    create_external_reservation,
    create_reservation,
    list_kitchen_reservations,
    list_requester_reservations,
    purge_cancelled_reservations,
)
from tests.commons import CHRISTMAS, MANAGER_ID, MONDAY, SUNDAY, qualify

MANAGER = Principal(id=MANAGER_ID)


def _book(db, kitchen, requester_id, start=time(10, 0), end=time(11, 0), day=MONDAY):
    return create_reservation(db, kitchen_id=kitchen.id, requester_id=requester_id, booking_date=day, start_time=start, end_time=end)


def test_qualified_booking_is_pending(db, kitchen, qualified_chef) -> None:
    r = _book(db, kitchen, qualified_chef)
    assert r.status == RESERVATION_PENDING
    assert r.requester_id == qualified_chef
    assert r.booking_date == MONDAY


@pytest.mark.parametrize(
    ("start", "end", "message"),
    [
        (time(11, 0), time(10, 0), "End time must be after start time"),
        (time(8, 0), time(9, 0), "outside kitchen hours"),
        (time(16, 0), time(18, 0), "outside kitchen hours"),
        (time(10, 30), time(11, 30), "align"),
    ],
)
def test_invalid_windows(db, kitchen, qualified_chef, start, end, message) -> None:
    with pytest.raises(ValidationError) as exc:
        _book(db, kitchen, qualified_chef, start=start, end=end)
    assert message in exc.value.detail


def test_closed_day_rejected(db, kitchen, qualified_chef) -> None:
    with pytest.raises(ValidationError):
        _book(db, kitchen, qualified_chef, day=SUNDAY)


def test_closed_override_rejects_booking(db, kitchen, qualified_chef) -> None:
    schedule_service.upsert_date_override(db, kitchen_id=kitchen.id, specific_date=CHRISTMAS, is_open=False, reason="Christmas")
    with pytest.raises(ValidationError):
        _book(db, kitchen, qualified_chef, day=CHRISTMAS)


def test_minimum_booking_length(db, kitchen, qualified_chef) -> None:
    update_kitchen(db, kitchen_id=kitchen.id, changes={"minimum_booking_minutes": 120})
    with pytest.raises(ValidationError) as exc:
        _book(db, kitchen, qualified_chef)
    assert "at least 120 minutes" in exc.value.detail
    assert _book(db, kitchen, qualified_chef, end=time(12, 0)).end_time == time(12, 0)


def test_full_slot_rejected(db, kitchen, qualified_chef, location) -> None:
    qualify(db, requester_id="chef-2", location_id=location.id)
    _book(db, kitchen, qualified_chef, start=time(10, 0), end=time(12, 0))
    with pytest.raises(CapacityExceededError):
        _book(db, kitchen, "chef-2", start=time(11, 0), end=time(12, 0))
    # touching intervals do not overlap
    assert _book(db, kitchen, "chef-2", start=time(12, 0), end=time(13, 0)).status == RESERVATION_PENDING


def test_reservation_off_current_grid_still_counts(db, kitchen, qualified_chef, location) -> None:
    qualify(db, requester_id="chef-2", location_id=location.id)
    schedule_service.upsert_date_override(db, kitchen_id=kitchen.id, specific_date=MONDAY, is_open=True, start_time=time(9, 30), end_time=time(17, 0))
    _book(db, kitchen, qualified_chef, start=time(10, 30), end=time(11, 30))

    # back to the 09:00 weekly window, the 10:30 booking now sits between grid points
    assert schedule_service.delete_date_override(db, kitchen_id=kitchen.id, specific_date=MONDAY)
    with pytest.raises(CapacityExceededError) as exc:
        _book(db, kitchen, "chef-2", start=time(10, 0), end=time(11, 0))
    assert "10:30" in exc.value.detail
    assert _book(db, kitchen, "chef-2", start=time(12, 0), end=time(13, 0)).status == RESERVATION_PENDING


def test_capacity_above_one(db, kitchen, qualified_chef, location) -> None:
    schedule_service.set_weekly_rule(db, kitchen_id=kitchen.id, day_of_week=1, is_open=True, start_time=time(9, 0), end_time=time(17, 0), capacity=2)
    qualify(db, requester_id="chef-2", location_id=location.id)
    qualify(db, requester_id="chef-3", location_id=location.id)
    _book(db, kitchen, qualified_chef)
    _book(db, kitchen, "chef-2")
    with pytest.raises(CapacityExceededError):
        _book(db, kitchen, "chef-3")


def test_unqualified_requester_rejected(db, kitchen) -> None:
    with pytest.raises(NotQualifiedError) as exc:
        _book(db, kitchen, "stranger")
    assert exc.value.missing_requirements == ["Application required"]
    assert db.query(Reservation).count() == 0


def test_capacity_checked_before_qualification(db, kitchen, qualified_chef) -> None:
    _book(db, kitchen, qualified_chef)
    with pytest.raises(CapacityExceededError):
        _book(db, kitchen, "stranger")


def test_qualification_is_per_location(db, kitchen, qualified_chef) -> None:
    from kitchenhub.services.kitchen_service import create_location

    other = create_location(db, name="Uptown Kitchens", manager_id="manager-2")
    other_kitchen = create_kitchen(db, location_id=other.id, name="Bakery")
    schedule_service.set_weekly_rule(db, kitchen_id=other_kitchen.id, day_of_week=1, is_open=True, start_time=time(9, 0), end_time=time(17, 0))
    with pytest.raises(NotQualifiedError):
        _book(db, other_kitchen, qualified_chef)


def test_inactive_kitchen_not_found(db, kitchen, qualified_chef) -> None:
    update_kitchen(db, kitchen_id=kitchen.id, changes={"active": False})
    with pytest.raises(NotFoundError):
        _book(db, kitchen, qualified_chef)


def test_concurrent_requests_for_last_seat(session_factory, db, kitchen, location) -> None:
    qualify(db, requester_id="chef-a", location_id=location.id)
    qualify(db, requester_id="chef-b", location_id=location.id)

    kitchen_id = kitchen.id
    barrier = threading.Barrier(2)
    outcomes: dict[str, object] = {}

    def attempt(requester_id: str) -> None:
        session = session_factory()
        try:
            barrier.wait()
            outcomes[requester_id] = create_reservation(
                session, kitchen_id=kitchen_id, requester_id=requester_id, booking_date=MONDAY, start_time=time(10, 0), end_time=time(11, 0)
            )
        except Exception as exc:  # recorded for the assertions below
            outcomes[requester_id] = exc
        finally:
            session.close()

    threads = [threading.Thread(target=attempt, args=(rid,)) for rid in ("chef-a", "chef-b")]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    created = [o for o in outcomes.values() if isinstance(o, Reservation)]
    refused = [o for o in outcomes.values() if isinstance(o, CapacityExceededError)]
    assert len(created) == 1
    assert len(refused) == 1
    assert created[0].status == RESERVATION_PENDING
    assert len(list_kitchen_reservations(db, kitchen_id=kitchen.id)) == 1


def test_external_booking_skips_qualification(db, kitchen) -> None:
    r = create_external_reservation(
        db,
        kitchen_id=kitchen.id,
        principal=MANAGER,
        booking_date=MONDAY,
        start_time=time(13, 0),
        end_time=time(15, 0),
        contact_name="Catering Co",
        contact_email="events@cateringco.ca",
    )
    assert r.booking_type == BOOKING_TYPE_EXTERNAL
    assert r.requester_id is None
    assert r.created_by_user_id == MANAGER_ID


def test_external_booking_still_capacity_checked(db, kitchen, qualified_chef) -> None:
    _book(db, kitchen, qualified_chef, start=time(13, 0), end=time(14, 0))
    with pytest.raises(CapacityExceededError):
        create_external_reservation(
            db, kitchen_id=kitchen.id, principal=MANAGER, booking_date=MONDAY, start_time=time(13, 0), end_time=time(15, 0), contact_name="Catering Co"
        )


def test_external_booking_requires_operator(db, kitchen) -> None:
    with pytest.raises(PermissionDeniedError):
        create_external_reservation(
            db, kitchen_id=kitchen.id, principal=Principal(id="chef-1"), booking_date=MONDAY, start_time=time(13, 0), end_time=time(15, 0), contact_name="X"
        )


def test_confirm_by_operator(db, kitchen, qualified_chef) -> None:
    r = _book(db, kitchen, qualified_chef)
    with pytest.raises(PermissionDeniedError):
        confirm_reservation(db, reservation_id=r.id, principal=Principal(id=qualified_chef))
    r = confirm_reservation(db, reservation_id=r.id, principal=MANAGER)
    assert r.status == RESERVATION_CONFIRMED
    assert r.confirmed_at is not None


def test_cancel_rules(db, kitchen, qualified_chef) -> None:
    r = _book(db, kitchen, qualified_chef)
    with pytest.raises(PermissionDeniedError):
        cancel_reservation(db, reservation_id=r.id, principal=Principal(id="chef-2"))

    r = cancel_reservation(db, reservation_id=r.id, principal=MANAGER, reason="Equipment repair")
    assert r.status == RESERVATION_CANCELLED
    assert r.cancel_reason == "Equipment repair"
    with pytest.raises(ValidationError):
        confirm_reservation(db, reservation_id=r.id, principal=MANAGER)


def test_reservation_events(db, kitchen, qualified_chef) -> None:
    seen = []

    def handler(event_type, payload):
        seen.append(event_type)

    for name in (events.RESERVATION_CREATED, events.RESERVATION_CONFIRMED, events.RESERVATION_CANCELLED):
        events.subscribe(name, handler)
    try:
        r = _book(db, kitchen, qualified_chef)
        confirm_reservation(db, reservation_id=r.id, principal=MANAGER)
        cancel_reservation(db, reservation_id=r.id, principal=Principal(id=qualified_chef))
        cancel_reservation(db, reservation_id=r.id, principal=Principal(id=qualified_chef))
    finally:
        for name in (events.RESERVATION_CREATED, events.RESERVATION_CONFIRMED, events.RESERVATION_CANCELLED):
            events.unsubscribe(name, handler)

    assert seen == [events.RESERVATION_CREATED, events.RESERVATION_CONFIRMED, events.RESERVATION_CANCELLED]


def test_requester_listing_hides_cancelled(db, kitchen, qualified_chef) -> None:
    keep = _book(db, kitchen, qualified_chef)
    drop = _book(db, kitchen, qualified_chef, start=time(14, 0), end=time(15, 0))
    cancel_reservation(db, reservation_id=drop.id, principal=Principal(id=qualified_chef))

    assert [r.id for r in list_requester_reservations(db, requester_id=qualified_chef)] == [keep.id]
    assert len(list_requester_reservations(db, requester_id=qualified_chef, include_cancelled=True)) == 2


def test_purge_only_old_cancellations(db, kitchen, qualified_chef) -> None:
    old = _book(db, kitchen, qualified_chef)
    recent = _book(db, kitchen, qualified_chef, start=time(14, 0), end=time(15, 0))
    active = _book(db, kitchen, qualified_chef, start=time(15, 0), end=time(16, 0))
    cancel_reservation(db, reservation_id=old.id, principal=MANAGER)
    cancel_reservation(db, reservation_id=recent.id, principal=MANAGER)

    old.cancelled_at = datetime.now(tz=timezone.utc) - timedelta(days=400)
    db.commit()

    cutoff = datetime.now(tz=timezone.utc) - timedelta(days=365)
    assert purge_cancelled_reservations(db, cancelled_before=cutoff, dry_run=True) == 1
    assert purge_cancelled_reservations(db, cancelled_before=cutoff) == 1

    db.expire_all()
    remaining = {r.id for r in list_kitchen_reservations(db, kitchen_id=kitchen.id)}
    assert remaining == {recent.id, active.id}
