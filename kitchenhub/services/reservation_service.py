from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Callable

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kitchenhub.core.config import get_settings
from kitchenhub.core.exceptions import (
    CapacityExceededError,
    KitchenHubError,
    NotFoundError,
    NotQualifiedError,
    PermissionDeniedError,
    ValidationError,
)
from kitchenhub.core.security import Principal
from kitchenhub.models.booking_ledger import KitchenDayLedger
from kitchenhub.models.kitchen import Kitchen
from kitchenhub.models.qualification import BOOKING_GATE_STAGE, STATUS_APPROVED
from kitchenhub.models.reservation import (
    BOOKING_TYPE_CHEF,
    BOOKING_TYPE_EXTERNAL,
    RESERVATION_CANCELLED,
    RESERVATION_CONFIRMED,
    RESERVATION_PENDING,
    Reservation,
)
from kitchenhub.services import events
from kitchenhub.services.capacity_service import active_reservations, count_at
from kitchenhub.services.kitchen_service import can_manage_location, get_kitchen, get_location
from kitchenhub.services.qualification_service import find_record, is_booking_eligible
from kitchenhub.services.requirements_service import check_requirements, get_requirements
from kitchenhub.services.schedule_service import resolve_schedule
from kitchenhub.services.slot_service import is_aligned, slots_covering, to_minutes

logger = structlog.get_logger(__name__)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def validate_window(db: Session, *, kitchen: Kitchen, booking_date: date, start_time: time, end_time: time) -> None:
    """Checks that depend only on the schedule: order, opening window, alignment, length."""
    if start_time >= end_time:
        raise ValidationError("End time must be after start time")

    schedule = resolve_schedule(db, kitchen.id, booking_date)
    if not schedule.is_open:
        raise ValidationError("Kitchen is closed on this date")
    if start_time < schedule.start_time or end_time > schedule.end_time:
        raise ValidationError(
            f"Requested time is outside kitchen hours ({schedule.start_time.strftime('%H:%M')}-{schedule.end_time.strftime('%H:%M')})"
        )

    granularity = get_settings().slot_minutes
    if not is_aligned(start_time, schedule.start_time, granularity):
        raise ValidationError(f"Start time must align to {granularity}-minute slots")

    duration = to_minutes(end_time) - to_minutes(start_time)
    if duration < kitchen.minimum_booking_minutes:
        raise ValidationError(f"Bookings must be at least {kitchen.minimum_booking_minutes} minutes")


def check_capacity(
    db: Session,
    *,
    kitchen_id: str,
    booking_date: date,
    start_time: time,
    end_time: time,
) -> None:
    """Raise if any moment of ``[start_time, end_time)`` has no seat left.

    Occupancy only changes where an overlapping reservation starts, so those
    points are checked alongside the slot grid. Reservations made under an
    earlier window may sit off the current grid. Reservation counts are read
    fresh, never from the schedule cache.
    """
    schedule = resolve_schedule(db, kitchen_id, booking_date)
    reservations = active_reservations(db, kitchen_id, booking_date)
    overlapping = [r for r in reservations if start_time < r.end_time and end_time > r.start_time]

    points = set(slots_covering(start_time, end_time, get_settings().slot_minutes))
    points.update(r.start_time for r in overlapping if start_time < r.start_time < end_time)
    for point in sorted(points):
        if count_at(overlapping, point) >= schedule.capacity:
            raise CapacityExceededError(f"The {point.strftime('%H:%M')} slot is fully booked")


def check_booking_gate(db: Session, *, requester_id: str, location_id: str) -> None:
    """Raise ``NotQualifiedError`` unless the requester has cleared the booking gate."""
    record = find_record(db, requester_id=requester_id, location_id=location_id)
    if is_booking_eligible(record):
        return

    if record is None:
        raise NotQualifiedError(
            "You must apply to this location before booking its kitchens",
            missing_requirements=["Application required"],
        )

    missing: list[str] = []
    if record.status != STATUS_APPROVED:
        missing.append(f"Application is {record.status}")
    if record.stage2_completed_at is None:
        result = check_requirements(record, get_requirements(db, location_id), BOOKING_GATE_STAGE)
        missing.extend(result.missing_requirements)
        if result.valid:
            missing.append("Stage 2 review has not been completed")
    raise NotQualifiedError("You are not yet approved to book kitchens at this location", missing_requirements=missing)


def validate_reservation(
    db: Session,
    *,
    kitchen_id: str,
    booking_date: date,
    start_time: time,
    end_time: time,
    requester_id: str | None,
) -> Kitchen:
    """Every booking check in order, stopping at the first failure.

    ``requester_id=None`` is a booking entered by an operator for an external
    contact, which carries no qualification.
    """
    kitchen = get_kitchen(db, kitchen_id, active_only=True)
    validate_window(db, kitchen=kitchen, booking_date=booking_date, start_time=start_time, end_time=end_time)
    check_capacity(db, kitchen_id=kitchen.id, booking_date=booking_date, start_time=start_time, end_time=end_time)
    if requester_id is not None:
        check_booking_gate(db, requester_id=requester_id, location_id=kitchen.location_id)
    return kitchen


# ----- atomic insert -----


def _ensure_ledger(db: Session, kitchen_id: str, booking_date: date) -> None:
    exists = db.execute(
        select(KitchenDayLedger.id).where(
            KitchenDayLedger.kitchen_id == kitchen_id,
            KitchenDayLedger.booking_date == booking_date,
        )
    ).first()
    if exists:
        return
    db.add(KitchenDayLedger(kitchen_id=kitchen_id, booking_date=booking_date, version=0))
    try:
        db.commit()
    except IntegrityError:
        # created by a concurrent booking for the same day
        db.rollback()


def _ledger_version(db: Session, kitchen_id: str, booking_date: date) -> int:
    return db.execute(
        select(KitchenDayLedger.version).where(
            KitchenDayLedger.kitchen_id == kitchen_id,
            KitchenDayLedger.booking_date == booking_date,
        )
    ).scalar_one()


def _claim_ledger(db: Session, kitchen_id: str, booking_date: date, version: int) -> bool:
    result = db.execute(
        update(KitchenDayLedger)
        .where(
            KitchenDayLedger.kitchen_id == kitchen_id,
            KitchenDayLedger.booking_date == booking_date,
            KitchenDayLedger.version == version,
        )
        .values(version=version + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _insert_reservation(
    db: Session,
    *,
    kitchen_id: str,
    booking_date: date,
    start_time: time,
    end_time: time,
    requester_id: str | None,
    build: Callable[[], Reservation],
) -> Reservation:
    """Validate and insert in one unit against the (kitchen, date) ledger row.

    The ledger version read before validation must still be current when the
    reservation is written. A writer that lost the race re-validates against
    the winner's booking; after the configured retries it gives up with
    ``CapacityExceededError``.
    """
    retries = max(0, get_settings().booking_conflict_retries)
    # Ledger rows are only created for kitchens that can take bookings.
    get_kitchen(db, kitchen_id, active_only=True)
    _ensure_ledger(db, kitchen_id, booking_date)

    for attempt in range(retries + 1):
        try:
            version = _ledger_version(db, kitchen_id, booking_date)
            validate_reservation(
                db,
                kitchen_id=kitchen_id,
                booking_date=booking_date,
                start_time=start_time,
                end_time=end_time,
                requester_id=requester_id,
            )
            reservation = build()
            db.add(reservation)
            db.flush()
            if _claim_ledger(db, kitchen_id, booking_date, version):
                db.commit()
                db.refresh(reservation)
                return reservation
        except KitchenHubError:
            db.rollback()
            raise

        db.rollback()
        logger.warning(
            "booking_conflict",
            kitchen_id=kitchen_id,
            date=booking_date.isoformat(),
            start_time=start_time.isoformat(),
            attempt=attempt + 1,
        )

    raise CapacityExceededError("This slot was just booked by someone else, refresh and try again")


def _created_event(reservation: Reservation) -> None:
    logger.info(
        "reservation_created",
        reservation_id=reservation.id,
        kitchen_id=reservation.kitchen_id,
        booking_type=reservation.booking_type,
        date=reservation.booking_date.isoformat(),
    )
    events.publish_event(
        events.RESERVATION_CREATED,
        {
            "reservation_id": reservation.id,
            "kitchen_id": reservation.kitchen_id,
            "requester_id": reservation.requester_id,
            "booking_type": reservation.booking_type,
            "booking_date": reservation.booking_date.isoformat(),
            "start_time": reservation.start_time.isoformat(),
            "end_time": reservation.end_time.isoformat(),
        },
    )


def create_reservation(
    db: Session,
    *,
    kitchen_id: str,
    requester_id: str,
    booking_date: date,
    start_time: time,
    end_time: time,
    special_notes: str = "",
) -> Reservation:
    """Book a kitchen for a qualified requester. The reservation starts out pending."""

    def build() -> Reservation:
        return Reservation(
            kitchen_id=kitchen_id,
            requester_id=requester_id,
            booking_type=BOOKING_TYPE_CHEF,
            created_by_user_id=requester_id,
            booking_date=booking_date,
            start_time=start_time,
            end_time=end_time,
            status=RESERVATION_PENDING,
            special_notes=special_notes[:2000],
        )

    reservation = _insert_reservation(
        db,
        kitchen_id=kitchen_id,
        booking_date=booking_date,
        start_time=start_time,
        end_time=end_time,
        requester_id=requester_id,
        build=build,
    )
    _created_event(reservation)
    return reservation


def create_external_reservation(
    db: Session,
    *,
    kitchen_id: str,
    principal: Principal,
    booking_date: date,
    start_time: time,
    end_time: time,
    contact_name: str,
    contact_email: str = "",
    contact_phone: str = "",
    contact_company: str = "",
    special_notes: str = "",
) -> Reservation:
    """Book on behalf of a third party. Only the location's operator may do this."""
    kitchen = get_kitchen(db, kitchen_id, active_only=True)
    if not can_manage_location(get_location(db, kitchen.location_id), principal):
        raise PermissionDeniedError("Access denied to this location")
    if not contact_name.strip():
        raise ValidationError("External bookings need a contact name")

    def build() -> Reservation:
        return Reservation(
            kitchen_id=kitchen_id,
            requester_id=None,
            booking_type=BOOKING_TYPE_EXTERNAL,
            created_by_user_id=principal.id,
            external_contact_name=contact_name.strip()[:255],
            external_contact_email=contact_email.strip()[:255],
            external_contact_phone=contact_phone.strip()[:32],
            external_contact_company=contact_company.strip()[:255],
            booking_date=booking_date,
            start_time=start_time,
            end_time=end_time,
            status=RESERVATION_PENDING,
            special_notes=special_notes[:2000],
        )

    reservation = _insert_reservation(
        db,
        kitchen_id=kitchen_id,
        booking_date=booking_date,
        start_time=start_time,
        end_time=end_time,
        requester_id=None,
        build=build,
    )
    _created_event(reservation)
    return reservation


# ----- lifecycle -----


def get_reservation(db: Session, reservation_id: str) -> Reservation:
    reservation = db.get(Reservation, reservation_id)
    if not reservation:
        raise NotFoundError("Reservation not found")
    return reservation


def _can_operate(db: Session, reservation: Reservation, principal: Principal) -> bool:
    kitchen = get_kitchen(db, reservation.kitchen_id)
    return can_manage_location(get_location(db, kitchen.location_id), principal)


def ensure_can_view(db: Session, reservation: Reservation, principal: Principal) -> None:
    if reservation.requester_id and reservation.requester_id == principal.id:
        return
    if not _can_operate(db, reservation, principal):
        raise PermissionDeniedError("Not your reservation")


def confirm_reservation(db: Session, *, reservation_id: str, principal: Principal) -> Reservation:
    reservation = get_reservation(db, reservation_id)
    if not _can_operate(db, reservation, principal):
        raise PermissionDeniedError("Access denied to this location")
    if reservation.status == RESERVATION_CONFIRMED:
        return reservation
    if reservation.status != RESERVATION_PENDING:
        raise ValidationError(f"Cannot confirm a {reservation.status} reservation")

    reservation.status = RESERVATION_CONFIRMED
    reservation.confirmed_at = _now()
    db.commit()
    db.refresh(reservation)

    logger.info("reservation_confirmed", reservation_id=reservation.id, confirmed_by=principal.id)
    events.publish_event(
        events.RESERVATION_CONFIRMED,
        {"reservation_id": reservation.id, "kitchen_id": reservation.kitchen_id, "requester_id": reservation.requester_id},
    )
    return reservation


def cancel_reservation(db: Session, *, reservation_id: str, principal: Principal, reason: str = "") -> Reservation:
    """Cancel as the requester who made it or as the location's operator.

    The row is kept and stops counting against capacity immediately.
    Cancelling twice changes nothing.
    """
    reservation = get_reservation(db, reservation_id)
    is_owner = reservation.requester_id is not None and reservation.requester_id == principal.id
    if not is_owner and not _can_operate(db, reservation, principal):
        raise PermissionDeniedError("Not your reservation")
    if reservation.status == RESERVATION_CANCELLED:
        return reservation

    reservation.status = RESERVATION_CANCELLED
    reservation.cancel_reason = reason[:255]
    reservation.cancelled_at = _now()
    db.commit()
    db.refresh(reservation)

    logger.info("reservation_cancelled", reservation_id=reservation.id, cancelled_by=principal.id)
    events.publish_event(
        events.RESERVATION_CANCELLED,
        {
            "reservation_id": reservation.id,
            "kitchen_id": reservation.kitchen_id,
            "requester_id": reservation.requester_id,
            "cancelled_by": principal.id,
            "reason": reservation.cancel_reason,
        },
    )
    return reservation


def list_kitchen_reservations(
    db: Session,
    *,
    kitchen_id: str,
    from_date: date | None = None,
    to_date: date | None = None,
    status: str | None = None,
) -> list[Reservation]:
    q = select(Reservation).where(Reservation.kitchen_id == kitchen_id)
    if from_date:
        q = q.where(Reservation.booking_date >= from_date)
    if to_date:
        q = q.where(Reservation.booking_date <= to_date)
    if status:
        q = q.where(Reservation.status == status)
    q = q.order_by(Reservation.booking_date.asc(), Reservation.start_time.asc())
    return list(db.execute(q.limit(1000)).scalars().all())


def list_requester_reservations(db: Session, *, requester_id: str, include_cancelled: bool = False) -> list[Reservation]:
    q = select(Reservation).where(Reservation.requester_id == requester_id)
    if not include_cancelled:
        q = q.where(Reservation.status != RESERVATION_CANCELLED)
    q = q.order_by(Reservation.booking_date.asc(), Reservation.start_time.asc())
    return list(db.execute(q).scalars().all())


def purge_cancelled_reservations(db: Session, *, cancelled_before: datetime, dry_run: bool = False) -> int:
    """Hard-delete reservations cancelled before the cutoff. Returns the row count."""
    condition = (
        (Reservation.status == RESERVATION_CANCELLED)
        & (Reservation.cancelled_at.is_not(None))
        & (Reservation.cancelled_at < cancelled_before)
    )
    if dry_run:
        return len(db.execute(select(Reservation.id).where(condition)).all())

    result = db.execute(delete(Reservation).where(condition).execution_options(synchronize_session=False))
    db.commit()
    return result.rowcount or 0
