from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from kitchenhub.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from kitchenhub.core.security import Principal
from kitchenhub.models.kitchen import Kitchen, Location


def get_location(db: Session, location_id: str) -> Location:
    location = db.get(Location, location_id)
    if not location:
        raise NotFoundError("Location not found")
    return location


def get_kitchen(db: Session, kitchen_id: str, *, active_only: bool = False) -> Kitchen:
    kitchen = db.get(Kitchen, kitchen_id)
    if not kitchen or (active_only and not kitchen.active):
        raise NotFoundError("Kitchen not found")
    return kitchen


def can_manage_location(location: Location, principal: Principal) -> bool:
    if principal.is_admin:
        return True
    return bool(location.manager_id) and location.manager_id == principal.id


def ensure_location_manager(db: Session, location_id: str, principal: Principal) -> Location:
    location = get_location(db, location_id)
    if not can_manage_location(location, principal):
        raise PermissionDeniedError("Access denied to this location")
    return location


def ensure_kitchen_manager(db: Session, kitchen_id: str, principal: Principal) -> Kitchen:
    kitchen = get_kitchen(db, kitchen_id)
    ensure_location_manager(db, kitchen.location_id, principal)
    return kitchen


def list_locations(db: Session, *, active_only: bool = True) -> list[Location]:
    q = select(Location).order_by(Location.name)
    if active_only:
        q = q.where(Location.active == True)
    return list(db.execute(q).scalars().all())


def list_kitchens(db: Session, *, location_id: str | None = None, active_only: bool = True) -> list[Kitchen]:
    q = select(Kitchen).order_by(Kitchen.name)
    if location_id:
        q = q.where(Kitchen.location_id == location_id)
    if active_only:
        q = q.where(Kitchen.active == True)
    return list(db.execute(q).scalars().all())


def create_location(db: Session, *, name: str, address: str = "", manager_id: str | None = None) -> Location:
    location = Location(name=name, address=address, manager_id=manager_id, active=True)
    db.add(location)
    db.commit()
    db.refresh(location)
    return location


def update_location(db: Session, *, location_id: str, changes: dict[str, Any]) -> Location:
    location = get_location(db, location_id)
    for k, v in changes.items():
        setattr(location, k, v)
    db.commit()
    db.refresh(location)
    return location


def create_kitchen(
    db: Session,
    *,
    location_id: str,
    name: str,
    description: str = "",
    default_capacity: int = 1,
    minimum_booking_minutes: int = 60,
) -> Kitchen:
    get_location(db, location_id)
    if default_capacity < 1:
        raise ValidationError("Capacity must be at least 1")
    if minimum_booking_minutes < 0:
        raise ValidationError("Minimum booking length cannot be negative")

    kitchen = Kitchen(
        location_id=location_id,
        name=name,
        description=description,
        default_capacity=default_capacity,
        minimum_booking_minutes=minimum_booking_minutes,
        active=True,
    )
    db.add(kitchen)
    db.commit()
    db.refresh(kitchen)
    return kitchen


def update_kitchen(db: Session, *, kitchen_id: str, changes: dict[str, Any]) -> Kitchen:
    from kitchenhub.services.schedule_service import invalidate_schedule_cache

    kitchen = get_kitchen(db, kitchen_id)
    if changes.get("default_capacity") is not None and changes["default_capacity"] < 1:
        raise ValidationError("Capacity must be at least 1")
    for k, v in changes.items():
        setattr(kitchen, k, v)
    db.commit()
    db.refresh(kitchen)

    # active flag and default capacity feed schedule resolution
    invalidate_schedule_cache(kitchen.id)
    return kitchen
