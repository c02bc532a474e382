# Import all models so that SQLAlchemy registers them for metadata.create_all
from parkway.models.space import Space
from parkway.models.availability_rule import AvailabilityRule, DateOverrideRule, RecurringRule
from parkway.models.reservation import Reservation
from parkway.models.reservation_event import ReservationEventRecord

__all__ = [
    "Space",
    "AvailabilityRule",
    "RecurringRule",
    "DateOverrideRule",
    "Reservation",
    "ReservationEventRecord",
]
