from __future__ import annotations

import threading
import time as _time
from dataclasses import dataclass
from datetime import date, time

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kitchenhub.core.config import get_settings
from kitchenhub.core.exceptions import ConfigurationError, ValidationError
from kitchenhub.models.availability import DateOverride, WeeklyRule
from kitchenhub.models.kitchen import Kitchen
from kitchenhub.services.kitchen_service import get_kitchen

logger = structlog.get_logger(__name__)

SOURCE_OVERRIDE = "override"
SOURCE_WEEKLY = "weekly"
SOURCE_NONE = "none"
SOURCE_INACTIVE = "inactive"


@dataclass(frozen=True)
class ResolvedSchedule:
    kitchen_id: str
    date: date
    is_open: bool
    start_time: time | None
    end_time: time | None
    capacity: int
    source: str
    reason: str = ""


def day_of_week(d: date) -> int:
    """0=Sunday .. 6=Saturday, the numbering stored on weekly rules."""
    return (d.weekday() + 1) % 7


def _closed(kitchen_id: str, d: date, source: str, reason: str = "") -> ResolvedSchedule:
    return ResolvedSchedule(kitchen_id=kitchen_id, date=d, is_open=False, start_time=None, end_time=None, capacity=0, source=source, reason=reason)


class _ScheduleCache:
    """Short-lived cache of resolved schedules keyed by (kitchen_id, date).

    Only schedule data is cached. Reservation counts are always read fresh.
    Entries are kept in expiry order, so expired ones are swept from the front
    on every write, and the oldest are evicted beyond ``maxsize``.
    """

    def __init__(self, maxsize: int = 4096) -> None:
        self._lock = threading.Lock()
        self._maxsize = maxsize
        self._items: dict[tuple[str, date], tuple[float, ResolvedSchedule]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def _sweep(self, now: float) -> None:
        while self._items:
            key, (expires_at, _) = next(iter(self._items.items()))
            if expires_at >= now and len(self._items) <= self._maxsize:
                break
            del self._items[key]

    def get(self, key: tuple[str, date]) -> ResolvedSchedule | None:
        with self._lock:
            hit = self._items.get(key)
            if hit is None:
                return None
            expires_at, value = hit
            if expires_at < _time.monotonic():
                del self._items[key]
                return None
            return value

    def put(self, key: tuple[str, date], value: ResolvedSchedule, ttl_seconds: int) -> None:
        with self._lock:
            now = _time.monotonic()
            # re-insert so the dict stays ordered by expiry
            self._items.pop(key, None)
            self._items[key] = (now + ttl_seconds, value)
            self._sweep(now)

    def invalidate(self, kitchen_id: str) -> None:
        with self._lock:
            for key in [k for k in self._items if k[0] == kitchen_id]:
                del self._items[key]

    def clear(self) -> None:
        with self._lock:
            self._items.clear()


_cache = _ScheduleCache()


def invalidate_schedule_cache(kitchen_id: str) -> None:
    _cache.invalidate(kitchen_id)


def clear_schedule_cache() -> None:
    _cache.clear()


def _override_window(override: DateOverride, kitchen: Kitchen) -> ResolvedSchedule:
    if override.start_time is None or override.end_time is None:
        raise ConfigurationError("Open date override has no hours")
    if override.start_time >= override.end_time:
        raise ConfigurationError("Date override ends before it starts")
    capacity = override.capacity if override.capacity is not None else kitchen.default_capacity
    return ResolvedSchedule(
        kitchen_id=kitchen.id,
        date=override.specific_date,
        is_open=True,
        start_time=override.start_time,
        end_time=override.end_time,
        capacity=capacity,
        source=SOURCE_OVERRIDE,
        reason=override.reason,
    )


def _resolve_uncached(db: Session, kitchen: Kitchen, d: date) -> ResolvedSchedule:
    if not kitchen.active:
        return _closed(kitchen.id, d, SOURCE_INACTIVE)

    override = db.execute(
        select(DateOverride).where(DateOverride.kitchen_id == kitchen.id, DateOverride.specific_date == d)
    ).scalar_one_or_none()

    if override is not None:
        if not override.is_open:
            return _closed(kitchen.id, d, SOURCE_OVERRIDE, override.reason)
        try:
            return _override_window(override, kitchen)
        except ConfigurationError as exc:
            logger.warning(
                "kitchen_override_incomplete",
                kitchen_id=kitchen.id,
                date=d.isoformat(),
                override_id=override.id,
                error=exc.detail,
            )
            return _closed(kitchen.id, d, SOURCE_OVERRIDE, override.reason)

    rule = db.execute(
        select(WeeklyRule).where(WeeklyRule.kitchen_id == kitchen.id, WeeklyRule.day_of_week == day_of_week(d))
    ).scalar_one_or_none()
    if rule is None or not rule.is_open:
        return _closed(kitchen.id, d, SOURCE_WEEKLY if rule else SOURCE_NONE)
    if rule.start_time >= rule.end_time:
        logger.warning("kitchen_weekly_rule_invalid", kitchen_id=kitchen.id, day_of_week=rule.day_of_week)
        return _closed(kitchen.id, d, SOURCE_WEEKLY)

    return ResolvedSchedule(
        kitchen_id=kitchen.id,
        date=d,
        is_open=True,
        start_time=rule.start_time,
        end_time=rule.end_time,
        capacity=rule.capacity,
        source=SOURCE_WEEKLY,
    )


def resolve_schedule(db: Session, kitchen_id: str, d: date, *, use_cache: bool = True) -> ResolvedSchedule:
    """Effective opening window of a kitchen on a date.

    A date override wins over the weekly rule. A closed override closes the
    day whatever the weekly rule says; an open override without hours is an
    operator data problem and is treated as closed.
    """
    settings = get_settings()
    ttl = settings.schedule_cache_ttl_seconds
    key = (kitchen_id, d)

    if use_cache and ttl > 0:
        cached = _cache.get(key)
        if cached is not None:
            return cached

    kitchen = get_kitchen(db, kitchen_id)
    resolved = _resolve_uncached(db, kitchen, d)

    if use_cache and ttl > 0:
        _cache.put(key, resolved, ttl)
    return resolved


# ----- operator writes -----


def list_weekly_rules(db: Session, kitchen_id: str) -> list[WeeklyRule]:
    q = select(WeeklyRule).where(WeeklyRule.kitchen_id == kitchen_id).order_by(WeeklyRule.day_of_week)
    return list(db.execute(q).scalars().all())


def set_weekly_rule(
    db: Session,
    *,
    kitchen_id: str,
    day_of_week: int,
    is_open: bool,
    start_time: time,
    end_time: time,
    capacity: int = 1,
) -> WeeklyRule:
    get_kitchen(db, kitchen_id)
    if not 0 <= day_of_week <= 6:
        raise ValidationError("day_of_week must be between 0 (Sunday) and 6 (Saturday)")
    if start_time >= end_time:
        raise ValidationError("End time must be after start time")
    if capacity < 1:
        raise ValidationError("Capacity must be at least 1")

    values = {"is_open": is_open, "start_time": start_time, "end_time": end_time, "capacity": capacity}
    rule = db.execute(
        select(WeeklyRule).where(WeeklyRule.kitchen_id == kitchen_id, WeeklyRule.day_of_week == day_of_week)
    ).scalar_one_or_none()
    if rule is None:
        rule = WeeklyRule(kitchen_id=kitchen_id, day_of_week=day_of_week, **values)
        db.add(rule)
    else:
        for k, v in values.items():
            setattr(rule, k, v)

    try:
        db.commit()
    except IntegrityError:
        # another operator inserted the same day concurrently; apply on top of theirs
        db.rollback()
        rule = db.execute(
            select(WeeklyRule).where(WeeklyRule.kitchen_id == kitchen_id, WeeklyRule.day_of_week == day_of_week)
        ).scalar_one()
        for k, v in values.items():
            setattr(rule, k, v)
        db.commit()

    db.refresh(rule)
    invalidate_schedule_cache(kitchen_id)
    return rule


def list_date_overrides(db: Session, kitchen_id: str, *, from_date: date | None = None, to_date: date | None = None) -> list[DateOverride]:
    q = select(DateOverride).where(DateOverride.kitchen_id == kitchen_id)
    if from_date:
        q = q.where(DateOverride.specific_date >= from_date)
    if to_date:
        q = q.where(DateOverride.specific_date <= to_date)
    return list(db.execute(q.order_by(DateOverride.specific_date)).scalars().all())


def upsert_date_override(
    db: Session,
    *,
    kitchen_id: str,
    specific_date: date,
    is_open: bool,
    start_time: time | None = None,
    end_time: time | None = None,
    capacity: int | None = None,
    reason: str = "",
    actor_user_id: str | None = None,
) -> DateOverride:
    """Create or replace the single override for (kitchen, date)."""
    get_kitchen(db, kitchen_id)
    if is_open:
        if start_time is None or end_time is None:
            raise ValidationError("Open overrides need both start and end time")
        if start_time >= end_time:
            raise ValidationError("End time must be after start time")
    else:
        start_time = None
        end_time = None
    if capacity is not None and capacity < 1:
        raise ValidationError("Capacity must be at least 1")

    values = {
        "is_open": is_open,
        "start_time": start_time,
        "end_time": end_time,
        "capacity": capacity,
        "reason": reason[:255],
        "created_by_user_id": actor_user_id,
    }

    def _find() -> DateOverride | None:
        return db.execute(
            select(DateOverride).where(DateOverride.kitchen_id == kitchen_id, DateOverride.specific_date == specific_date)
        ).scalar_one_or_none()

    override = _find()
    if override is None:
        override = DateOverride(kitchen_id=kitchen_id, specific_date=specific_date, **values)
        db.add(override)
    else:
        for k, v in values.items():
            setattr(override, k, v)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        override = _find()
        if override is None:
            raise
        for k, v in values.items():
            setattr(override, k, v)
        db.commit()

    db.refresh(override)
    invalidate_schedule_cache(kitchen_id)
    logger.info("kitchen_override_saved", kitchen_id=kitchen_id, date=specific_date.isoformat(), is_open=is_open)
    return override


def delete_date_override(db: Session, *, kitchen_id: str, specific_date: date) -> bool:
    override = db.execute(
        select(DateOverride).where(DateOverride.kitchen_id == kitchen_id, DateOverride.specific_date == specific_date)
    ).scalar_one_or_none()
    if override is None:
        return False
    db.delete(override)
    db.commit()
    invalidate_schedule_cache(kitchen_id)
    return True
