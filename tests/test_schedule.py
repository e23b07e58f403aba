from datetime import date, time

import pytest

from kitchenhub.core.exceptions import NotFoundError, ValidationError
from kitchenhub.models.availability import DateOverride
from kitchenhub.services import schedule_service
from kitchenhub.services.capacity_service import list_available_slots
from kitchenhub.services.kitchen_service import update_kitchen
from kitchenhub.services.schedule_service import (
    SOURCE_INACTIVE,
    SOURCE_NONE,
    SOURCE_OVERRIDE,
    SOURCE_WEEKLY,
    day_of_week,
    resolve_schedule,
    upsert_date_override,
)
from tests.commons import CHRISTMAS, MONDAY, SUNDAY


def test_day_of_week_starts_on_sunday() -> None:
    assert day_of_week(SUNDAY) == 0
    assert day_of_week(MONDAY) == 1
    assert day_of_week(CHRISTMAS) == 4


def test_weekly_rule_applies(db, kitchen) -> None:
    s = resolve_schedule(db, kitchen.id, MONDAY)
    assert s.is_open
    assert (s.start_time, s.end_time, s.capacity) == (time(9, 0), time(17, 0), 1)
    assert s.source == SOURCE_WEEKLY


def test_missing_weekly_rule_is_closed(db, kitchen) -> None:
    s = resolve_schedule(db, kitchen.id, SUNDAY)
    assert not s.is_open
    assert s.source == SOURCE_NONE


def test_closed_weekly_rule_is_closed(db, kitchen) -> None:
    schedule_service.set_weekly_rule(db, kitchen_id=kitchen.id, day_of_week=1, is_open=False, start_time=time(9, 0), end_time=time(17, 0))
    assert not resolve_schedule(db, kitchen.id, MONDAY).is_open


def test_closed_override_beats_open_weekly_rule(db, kitchen) -> None:
    upsert_date_override(db, kitchen_id=kitchen.id, specific_date=CHRISTMAS, is_open=False, reason="Christmas")
    s = resolve_schedule(db, kitchen.id, CHRISTMAS)
    assert not s.is_open
    assert s.source == SOURCE_OVERRIDE
    assert s.reason == "Christmas"
    assert list_available_slots(db, kitchen.id, CHRISTMAS) == []


def test_open_override_replaces_window(db, kitchen) -> None:
    upsert_date_override(db, kitchen_id=kitchen.id, specific_date=SUNDAY, is_open=True, start_time=time(12, 0), end_time=time(15, 0), capacity=3)
    s = resolve_schedule(db, kitchen.id, SUNDAY)
    assert s.is_open
    assert (s.start_time, s.end_time, s.capacity) == (time(12, 0), time(15, 0), 3)


def test_open_override_without_capacity_uses_kitchen_default(db, kitchen) -> None:
    update_kitchen(db, kitchen_id=kitchen.id, changes={"default_capacity": 4})
    upsert_date_override(db, kitchen_id=kitchen.id, specific_date=SUNDAY, is_open=True, start_time=time(10, 0), end_time=time(12, 0))
    assert resolve_schedule(db, kitchen.id, SUNDAY).capacity == 4


def test_open_override_without_hours_rejected_on_write(db, kitchen) -> None:
    with pytest.raises(ValidationError):
        upsert_date_override(db, kitchen_id=kitchen.id, specific_date=MONDAY, is_open=True, start_time=time(10, 0))


def test_incomplete_override_in_storage_resolves_closed(db, kitchen) -> None:
    # rows written before hours were validated on write
    db.add(DateOverride(kitchen_id=kitchen.id, specific_date=MONDAY, is_open=True, start_time=None, end_time=None, reason="bad import"))
    db.commit()
    s = resolve_schedule(db, kitchen.id, MONDAY)
    assert not s.is_open
    assert s.source == SOURCE_OVERRIDE


def test_override_upsert_keeps_one_row(db, kitchen) -> None:
    upsert_date_override(db, kitchen_id=kitchen.id, specific_date=MONDAY, is_open=False, reason="deep clean")
    upsert_date_override(db, kitchen_id=kitchen.id, specific_date=MONDAY, is_open=True, start_time=time(13, 0), end_time=time(17, 0))
    overrides = schedule_service.list_date_overrides(db, kitchen.id)
    assert len(overrides) == 1
    assert overrides[0].is_open
    assert resolve_schedule(db, kitchen.id, MONDAY).start_time == time(13, 0)


def test_override_delete_restores_weekly_rule(db, kitchen) -> None:
    upsert_date_override(db, kitchen_id=kitchen.id, specific_date=MONDAY, is_open=False)
    assert not resolve_schedule(db, kitchen.id, MONDAY).is_open
    assert schedule_service.delete_date_override(db, kitchen_id=kitchen.id, specific_date=MONDAY)
    assert resolve_schedule(db, kitchen.id, MONDAY).is_open
    assert not schedule_service.delete_date_override(db, kitchen_id=kitchen.id, specific_date=MONDAY)


def test_inactive_kitchen_resolves_closed(db, kitchen) -> None:
    update_kitchen(db, kitchen_id=kitchen.id, changes={"active": False})
    s = resolve_schedule(db, kitchen.id, MONDAY)
    assert not s.is_open
    assert s.source == SOURCE_INACTIVE


def test_weekly_rule_update_invalidates_cache(db, kitchen) -> None:
    assert resolve_schedule(db, kitchen.id, MONDAY).end_time == time(17, 0)
    schedule_service.set_weekly_rule(db, kitchen_id=kitchen.id, day_of_week=1, is_open=True, start_time=time(9, 0), end_time=time(13, 0))
    assert resolve_schedule(db, kitchen.id, MONDAY).end_time == time(13, 0)


def test_weekly_rule_validation(db, kitchen) -> None:
    with pytest.raises(ValidationError):
        schedule_service.set_weekly_rule(db, kitchen_id=kitchen.id, day_of_week=7, is_open=True, start_time=time(9, 0), end_time=time(17, 0))
    with pytest.raises(ValidationError):
        schedule_service.set_weekly_rule(db, kitchen_id=kitchen.id, day_of_week=2, is_open=True, start_time=time(17, 0), end_time=time(9, 0))


def test_unknown_kitchen(db) -> None:
    with pytest.raises(NotFoundError):
        resolve_schedule(db, "missing", date(2030, 1, 7))


def test_cache_sweeps_expired_entries(monkeypatch) -> None:
    clock = [1000.0]
    monkeypatch.setattr(schedule_service._time, "monotonic", lambda: clock[0])
    cache = schedule_service._ScheduleCache()
    closed = schedule_service._closed("k-1", MONDAY, SOURCE_NONE)

    for offset in range(500):
        cache.put(("k-1", date.fromordinal(MONDAY.toordinal() + offset)), closed, ttl_seconds=30)
    assert len(cache) == 500

    clock[0] += 3600
    cache.put(("k-1", SUNDAY), closed, ttl_seconds=30)
    assert len(cache) == 1
    assert cache.get(("k-1", SUNDAY)) == closed


def test_cache_is_bounded() -> None:
    cache = schedule_service._ScheduleCache(maxsize=10)
    closed = schedule_service._closed("k-1", MONDAY, SOURCE_NONE)
    for offset in range(25):
        cache.put(("k-1", date.fromordinal(MONDAY.toordinal() + offset)), closed, ttl_seconds=300)
    assert len(cache) == 10
    # oldest entries are evicted first
    assert cache.get(("k-1", MONDAY)) is None
    assert cache.get(("k-1", date.fromordinal(MONDAY.toordinal() + 24))) == closed
