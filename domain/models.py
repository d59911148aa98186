"""Domain models using Pydantic v2 for the reservation time grid."""

import datetime as dt
from typing import Optional, List, Any

from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from core.utils_datetime import (
    parse_time_to_minutes,
    normalize_time_label,
    minutes_to_label,
    parse_date,
)
from .enums import DayOfWeek, ReservationStatus, ServicePeriod


def _validate_time_label(v: Any) -> str:
    if not isinstance(v, str):
        raise ValueError("time must be an HH:MM or HH:MM:SS string")
    parse_time_to_minutes(v)
    return v.strip()


# ============================================================================
# Schedules
# ============================================================================

class OpeningInterval(BaseModel):
    """One contiguous opening-hours range (a lunch or dinner service)."""

    day_of_week: Optional[DayOfWeek] = Field(None, description="0 = Sunday")
    opening_time: str = Field(..., description="HH:MM or HH:MM:SS")
    closing_time: str = Field(..., description="HH:MM or HH:MM:SS")
    is_active: bool = True

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, from_attributes=True)

    @field_validator("opening_time", "closing_time", mode="before")
    @classmethod
    def check_time_labels(cls, v: Any) -> str:
        return _validate_time_label(v)

    @property
    def opening_minutes(self) -> int:
        return parse_time_to_minutes(self.opening_time)

    @property
    def closing_minutes(self) -> int:
        return parse_time_to_minutes(self.closing_time)


class SpecialClosedDay(BaseModel):
    """A dated closure, either a single day or an inclusive range."""

    date: Optional[dt.date] = None
    is_range: bool = False
    range_start: Optional[dt.date] = None
    range_end: Optional[dt.date] = None

    model_config = ConfigDict(frozen=True, from_attributes=True)

    def covers(self, day: dt.date) -> bool:
        """Check if the closure applies to ``day``."""
        if self.is_range:
            if self.range_start is None or self.range_end is None:
                return False
            return self.range_start <= day <= self.range_end
        return self.date == day


class SpecialScheduleDay(BaseModel):
    """Opening hours that replace the weekly schedule on one date."""

    opening_time: str
    closing_time: str
    is_active: bool = True
    date: dt.date

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, from_attributes=True)

    @field_validator("opening_time", "closing_time", mode="before")
    @classmethod
    def check_time_labels(cls, v: Any) -> str:
        return _validate_time_label(v)

    def as_interval(self) -> OpeningInterval:
        return OpeningInterval(
            opening_time=self.opening_time,
            closing_time=self.closing_time,
            is_active=self.is_active,
        )


# ============================================================================
# Tables and reservations
# ============================================================================

class Table(BaseModel):
    """Restaurant table."""

    id: str
    name: str
    capacity: int = Field(..., ge=0)
    extra_capacity: int = Field(default=0, ge=0)
    zone_id: Optional[str] = None
    zone_name: Optional[str] = None
    zone_color: Optional[str] = None
    is_active: bool = True

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, from_attributes=True)


class TableAssignment(BaseModel):
    """Table assigned to a reservation by the external assignment layer."""

    table_id: str
    table_name: Optional[str] = None

    model_config = ConfigDict(frozen=True, from_attributes=True)


class Reservation(BaseModel):
    """Reservation record as delivered by the reservation feed."""

    id: str
    customer_id: Optional[str] = None
    customer_name: str = "Cliente"
    time: str = Field(..., description="Wall-clock start time, HH:MM or HH:MM:SS")
    guests: int = Field(..., ge=1)
    status: ReservationStatus = ReservationStatus.PENDING
    duration_minutes: Optional[int] = Field(None, gt=0)
    start_at: Optional[dt.datetime] = None
    end_at: Optional[dt.datetime] = None
    table_assignments: List[TableAssignment] = Field(default_factory=list)
    date: dt.date

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, from_attributes=True)

    @field_validator("time", mode="before")
    @classmethod
    def check_time_label(cls, v: Any) -> str:
        return _validate_time_label(v)

    @field_validator("duration_minutes", mode="before")
    @classmethod
    def zero_duration_is_missing(cls, v: Any) -> Any:
        """A stored duration of 0 means the column was never filled in."""
        if v == 0:
            return None
        return v

    @property
    def table_ids(self) -> List[str]:
        return [assignment.table_id for assignment in self.table_assignments]

    @property
    def is_active(self) -> bool:
        return self.status != ReservationStatus.CANCELLED


class ReservationPlacement(BaseModel):
    """A reservation positioned on one table for the day in view."""

    reservation_id: str
    table_id: str
    start_minute_of_day: int = Field(..., ge=0)
    duration_minutes: int = Field(..., gt=0)
    guests: int
    customer_label: str
    status: ReservationStatus = ReservationStatus.PENDING

    model_config = ConfigDict(frozen=True)

    @property
    def end_minute_of_day(self) -> int:
        return self.start_minute_of_day + self.duration_minutes

    @property
    def time_label(self) -> str:
        return minutes_to_label(self.start_minute_of_day)


class Placement(BaseModel):
    """Clamped position of a reservation inside a visible window."""

    visible_start_minute: int
    visible_end_minute: int
    start_pct: float = Field(..., ge=0.0, le=1.0)
    width_pct: float = Field(..., gt=0.0, le=1.0)

    model_config = ConfigDict(frozen=True)


class TimelineWindow(BaseModel):
    """Visible span of the timeline in minutes since midnight."""

    start_minute: int = Field(..., ge=0)
    end_minute: int = Field(..., gt=0)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_order(self) -> "TimelineWindow":
        if self.end_minute <= self.start_minute:
            raise ValueError("window end must be after window start")
        return self

    @classmethod
    def from_labels(cls, start: str, end: str) -> "TimelineWindow":
        return cls(start_minute=parse_time_to_minutes(start), end_minute=parse_time_to_minutes(end))

    @property
    def length_minutes(self) -> int:
        return self.end_minute - self.start_minute

    @property
    def start_label(self) -> str:
        return minutes_to_label(self.start_minute)

    @property
    def end_label(self) -> str:
        return minutes_to_label(self.end_minute)


# ============================================================================
# Availability
# ============================================================================

class AvailabilityQuery(BaseModel):
    """Query model for checking availability."""

    guests: int = Field(..., ge=1)
    duration_minutes: int = Field(default=90, gt=0)
    date: dt.date

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    @field_validator("date", mode="before")
    @classmethod
    def coerce_local_date(cls, v: Any) -> Any:
        """Datetimes collapse to their local calendar date, never the UTC one."""
        if isinstance(v, dt.datetime):
            return parse_date(v)
        return v


class AvailabilitySlot(BaseModel):
    """Bookable time slot with zone metadata."""

    id: str
    time: str
    capacity: int = Field(..., ge=0)
    available: bool = True
    zone_id: Optional[str] = None
    zone_name: Optional[str] = None
    zone_color: Optional[str] = None
    zone_priority: Optional[int] = None
    is_normalized: bool = True

    model_config = ConfigDict(frozen=True, from_attributes=True)

    @field_validator("time", mode="before")
    @classmethod
    def normalize_time(cls, v: Any) -> str:
        return normalize_time_label(_validate_time_label(v))


class ZoneSlotGroup(BaseModel):
    """Slots of one zone inside a service."""

    zone_name: str
    zone_priority: int
    slots: List[AvailabilitySlot]

    model_config = ConfigDict(frozen=True)


class SlotPickerGroups(BaseModel):
    """Guest-facing slot picker layout: lunch and dinner columns grouped by zone."""

    lunch: List[ZoneSlotGroup] = Field(default_factory=list)
    dinner: List[ZoneSlotGroup] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def is_empty(self) -> bool:
        return not self.lunch and not self.dinner

    def for_period(self, period: ServicePeriod) -> List[ZoneSlotGroup]:
        return self.lunch if period == ServicePeriod.LUNCH else self.dinner


# ============================================================================
# Timeline render model
# ============================================================================

class HourHeader(BaseModel):
    """Hour column header spanning the grid cells of that hour."""

    hour: str
    start_slot_index: int
    span_slots: int

    model_config = ConfigDict(frozen=True)


class TimelineCell(BaseModel):
    """Background cell of a table row."""

    slot: str
    is_open: bool

    model_config = ConfigDict(frozen=True)


class TimelineBlock(BaseModel):
    """Reservation block drawn on a table row."""

    placement: ReservationPlacement
    position: Placement
    needs_turn: bool = False

    model_config = ConfigDict(frozen=True)

    @property
    def reservation_id(self) -> str:
        return self.placement.reservation_id


class TimelineRow(BaseModel):
    """One table of the staff occupancy timeline."""

    table: Table
    cells: List[TimelineCell]
    blocks: List[TimelineBlock]

    model_config = ConfigDict(frozen=True)


class TimelineModel(BaseModel):
    """Render-ready staff timeline for one date and window."""

    window: TimelineWindow
    slots: List[str]
    hour_headers: List[HourHeader]
    rows: List[TimelineRow]
    now_marker_pct: Optional[float] = None
    has_schedule: bool = True
    date: dt.date

    model_config = ConfigDict(frozen=True)


class ShiftMetrics(BaseModel):
    """Reservation counters for one service."""

    reservations: int = 0
    guests: int = 0
    arrived: int = 0
    cancelled: int = 0

    model_config = ConfigDict(frozen=True)
