"""
Data sources for schedules, availability and the reservation/table feed.

Each source has a Protocol the orchestration layer depends on and an
implementation backed by ``RpcClient``.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Protocol, Tuple

from core.settings import settings
from core.utils_datetime import day_of_week_sunday_based, format_date_local
from domain.enums import ReservationStatus
from domain.models import (
    AvailabilityQuery,
    OpeningInterval,
    Reservation,
    SpecialClosedDay,
    SpecialScheduleDay,
    Table,
    TableAssignment,
)
from integrations.rpc_client import RpcClient


logger = logging.getLogger(__name__)


RESERVATION_SELECT = """
    *,
    customers(id, name),
    reservation_table_assignments(
        table_id,
        tables(name)
    )
"""


@dataclass(frozen=True)
class SpecialDays:
    """Dated overrides of the weekly schedule."""

    closed_days: Tuple[SpecialClosedDay, ...] = ()
    schedule_days: Tuple[SpecialScheduleDay, ...] = ()


@dataclass(frozen=True)
class DayFeed:
    """Reservations and active tables for one date."""

    reservations: Tuple[Reservation, ...] = ()
    tables: Tuple[Table, ...] = ()
    intervals: Tuple[OpeningInterval, ...] = ()
    special_days: SpecialDays = field(default_factory=SpecialDays)


# ============================================================================
# Protocols
# ============================================================================

class ScheduleSource(Protocol):
    async def get_intervals(self, day_of_week: int) -> List[OpeningInterval]:
        """Active intervals for a day of week, ordered by opening time."""
        ...

    async def get_special_days(self) -> SpecialDays:
        ...


class AvailabilitySource(Protocol):
    async def query(self, query: AvailabilityQuery) -> List[Dict[str, Any]]:
        """Raw slot rows for a query; an empty list means nothing is available."""
        ...


class ReservationFeed(Protocol):
    async def fetch(self, day: date) -> DayFeed:
        ...


# ============================================================================
# Row mapping
# ============================================================================

def reservation_from_row(row: Dict[str, Any]) -> Reservation:
    """Map a reservation row with embedded customer and table assignments."""
    customer = row.get("customers") or {}
    assignments = [
        TableAssignment(
            table_id=str(assignment["table_id"]),
            table_name=(assignment.get("tables") or {}).get("name"),
        )
        for assignment in (row.get("reservation_table_assignments") or [])
        if assignment.get("table_id") is not None
    ]
    return Reservation(
        id=str(row["id"]),
        customer_id=str(customer["id"]) if customer.get("id") is not None else row.get("customer_id"),
        customer_name=customer.get("name") or "Cliente",
        date=row["date"],
        time=row["time"],
        guests=row["guests"],
        status=row.get("status") or ReservationStatus.PENDING,
        duration_minutes=row.get("duration_minutes"),
        start_at=row.get("start_at"),
        end_at=row.get("end_at"),
        table_assignments=assignments,
    )


def table_from_row(row: Dict[str, Any]) -> Table:
    """Map a table row, flattening an embedded zone when present."""
    zone = row.get("zones") or {}
    return Table(
        id=str(row["id"]),
        name=row["name"],
        capacity=row.get("capacity") or 0,
        extra_capacity=row.get("extra_capacity") or 0,
        zone_id=row.get("zone_id"),
        zone_name=row.get("zone_name") or zone.get("name"),
        zone_color=row.get("zone_color") or zone.get("color"),
        is_active=row.get("is_active", True),
    )


# ============================================================================
# Remote implementations
# ============================================================================

class RemoteScheduleSource:
    """Schedule lookup against the ``restaurant_schedules`` tables."""

    def __init__(self, client: RpcClient):
        self.client = client

    async def get_intervals(self, day_of_week: int) -> List[OpeningInterval]:
        rows = await self.client.select(
            "restaurant_schedules",
            "opening_time, closing_time, day_of_week, is_active",
            filters={"day_of_week": day_of_week, "is_active": True},
            order="opening_time",
        )
        return [OpeningInterval(**row) for row in rows]

    async def get_special_days(self) -> SpecialDays:
        closed_rows = await self.client.select("special_closed_days")
        schedule_rows = await self.client.select("special_schedule_days", filters={"is_active": True})
        return SpecialDays(
            closed_days=tuple(SpecialClosedDay.model_validate(row) for row in closed_rows),
            schedule_days=tuple(SpecialScheduleDay.model_validate(row) for row in schedule_rows),
        )


class RemoteAvailabilitySource:
    """Availability through the slot-capacity remote function."""

    def __init__(self, client: RpcClient, function_name: Optional[str] = None):
        self.client = client
        self.function_name = function_name or settings.availability_rpc_name

    async def query(self, query: AvailabilityQuery) -> List[Dict[str, Any]]:
        data = await self.client.call(self.function_name, {
            "p_date": format_date_local(query.date),
            "p_guests": query.guests,
            "p_duration_minutes": query.duration_minutes,
        })
        if not data:
            return []
        if not isinstance(data, list):
            logger.warning(f"{self.function_name} returned {type(data).__name__}, expected a list")
            return []
        return data


class RemoteReservationFeed:
    """Reservations, tables and schedules for the staff timeline."""

    def __init__(self, client: RpcClient, schedules: Optional[ScheduleSource] = None):
        self.client = client
        self.schedules = schedules or RemoteScheduleSource(client)

    async def fetch_reservations(self, day: date) -> List[Reservation]:
        rows = await self.client.select(
            "reservations",
            RESERVATION_SELECT,
            filters={"date": format_date_local(day), "status": ("neq", ReservationStatus.CANCELLED.value)},
        )
        return [reservation_from_row(row) for row in rows]

    async def fetch_tables(self) -> List[Table]:
        rows = await self.client.select("tables", filters={"is_active": True}, order="name")
        return [table_from_row(row) for row in rows]

    async def fetch(self, day: date) -> DayFeed:
        reservations, tables, intervals, special_days = await asyncio.gather(
            self.fetch_reservations(day),
            self.fetch_tables(),
            self.schedules.get_intervals(day_of_week_sunday_based(day)),
            self.schedules.get_special_days(),
        )
        return DayFeed(
            reservations=tuple(reservations),
            tables=tuple(tables),
            intervals=tuple(intervals),
            special_days=special_days,
        )
