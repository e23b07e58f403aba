# Import all models so that SQLAlchemy registers them for metadata.create_all
from kitchenhub.models.audit_log import AuditLog
from kitchenhub.models.kitchen import Kitchen, Location
from kitchenhub.models.availability import DateOverride, WeeklyRule
from kitchenhub.models.reservation import Reservation
from kitchenhub.models.booking_ledger import KitchenDayLedger
from kitchenhub.models.requirements import LocationRequirements
from kitchenhub.models.qualification import QualificationRecord
from kitchenhub.models.legacy_access import LegacyLocationAccess

__all__ = [
    "AuditLog",
    "Location",
    "Kitchen",
    "WeeklyRule",
    "DateOverride",
    "Reservation",
    "KitchenDayLedger",
    "LocationRequirements",
    "QualificationRecord",
    "LegacyLocationAccess",
]
