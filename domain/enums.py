"""Domain enums for the reservation time grid."""

from enum import Enum, IntEnum


class ReservationStatus(str, Enum):
    """Reservation status enumeration."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    ARRIVED = "arrived"
    COMPLETED = "completed"


class DayOfWeek(IntEnum):
    """Days of the week as stored by the schedule backend (0 = Sunday)."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6


class ServicePeriod(str, Enum):
    """Service a slot belongs to."""

    LUNCH = "comida"
    DINNER = "cena"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class TimelineState(str, Enum):
    """Render state of the staff timeline."""

    LOADING = "loading"
    READY = "ready"


class RefreshReason(str, Enum):
    """Why the timeline data was reloaded."""

    DATE_CHANGED = "date_changed"
    PUSH_NOTIFICATION = "push_notification"
    MANUAL = "manual"


class CommitOutcome(str, Enum):
    """Result of trying to apply a response to the latest-result cell."""

    COMMITTED = "committed"
    STALE = "stale"


class NotificationLevel(str, Enum):
    """Severity of a user-facing notification."""

    ERROR = "error"
    INFO = "info"
    SUCCESS = "success"
