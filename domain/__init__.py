"""Domain layer for the reservation time grid."""

from .enums import (
    ReservationStatus,
    DayOfWeek,
    ServicePeriod,
    TimelineState,
    RefreshReason,
    CommitOutcome,
    NotificationLevel,
)
from .models import (
    OpeningInterval,
    SpecialClosedDay,
    SpecialScheduleDay,
    Table,
    TableAssignment,
    Reservation,
    ReservationPlacement,
    Placement,
    TimelineWindow,
    AvailabilityQuery,
    AvailabilitySlot,
    ZoneSlotGroup,
    SlotPickerGroups,
    HourHeader,
    TimelineCell,
    TimelineBlock,
    TimelineRow,
    TimelineModel,
    ShiftMetrics,
)

__all__ = [
    # Enums
    "ReservationStatus",
    "DayOfWeek",
    "ServicePeriod",
    "TimelineState",
    "RefreshReason",
    "CommitOutcome",
    "NotificationLevel",
    # Models
    "OpeningInterval",
    "SpecialClosedDay",
    "SpecialScheduleDay",
    "Table",
    "TableAssignment",
    "Reservation",
    "ReservationPlacement",
    "Placement",
    "TimelineWindow",
    "AvailabilityQuery",
    "AvailabilitySlot",
    "ZoneSlotGroup",
    "SlotPickerGroups",
    "HourHeader",
    "TimelineCell",
    "TimelineBlock",
    "TimelineRow",
    "TimelineModel",
    "ShiftMetrics",
]
