"""
Availability resolver for the guest booking flow.

Queries run only when the caller asks for them. Each request is tagged with
a sequence number and its response is committed only while it is still the
latest one, so answers for superseded date/guest inputs are dropped.
"""

import asyncio
import logging
from collections import OrderedDict
from datetime import date, datetime
from typing import Any, Dict, Generic, List, Optional, Sequence, TypeVar, Union

from core.errors import FetchError
from core.logging import LogContext
from core.notifications import LoggingNotifier, Notifier
from core.settings import settings
from core.utils_datetime import parse_time_to_minutes
from domain.enums import CommitOutcome, NotificationLevel, ServicePeriod
from domain.models import (
    AvailabilityQuery,
    AvailabilitySlot,
    OpeningInterval,
    SlotPickerGroups,
    ZoneSlotGroup,
)
from integrations.sources import AvailabilitySource
from services.schedule_classifier import period_for_interval, sort_intervals
from services.time_slots import is_slot_in_past, is_time_within_schedule


logger = logging.getLogger(__name__)

T = TypeVar("T")

NO_ZONE_NAME = "Sin zona"
MISSING_ZONE_PRIORITY = 999
LUNCH_HOURS = (12, 17)
DINNER_HOURS = (19, 23)


class LatestResultCell(Generic[T]):
    """
    Single-slot, last-write-wins holder keyed by a request sequence number.

    ``next_sequence`` is taken when a request starts; ``commit`` only stores
    the value when no newer request has started since.
    """

    def __init__(self, initial: T):
        self._issued = 0
        self._committed = 0
        self.value: T = initial

    @property
    def latest_sequence(self) -> int:
        return self._issued

    @property
    def committed_sequence(self) -> int:
        return self._committed

    def next_sequence(self) -> int:
        self._issued += 1
        return self._issued

    def is_latest(self, sequence: int) -> bool:
        return sequence == self._issued

    def commit(self, sequence: int, value: T) -> CommitOutcome:
        if not self.is_latest(sequence):
            return CommitOutcome.STALE
        self.value = value
        self._committed = sequence
        return CommitOutcome.COMMITTED


def shape_slot(row: Dict[str, Any]) -> AvailabilitySlot:
    """Map a raw availability row to an ``AvailabilitySlot``."""
    return AvailabilitySlot(
        id=str(row.get("id") or f"{row['slot_time']}-{row['capacity']}"),
        time=row["slot_time"],
        capacity=row["capacity"],
        available=True,
        zone_id=row.get("zone_id"),
        zone_name=row.get("zone_name"),
        zone_color=row.get("zone_color"),
        zone_priority=row.get("zone_priority"),
        is_normalized=True,
    )


class AvailabilityResolver:
    """Manually triggered availability lookup with stale-response discarding."""

    def __init__(
        self,
        source: AvailabilitySource,
        notifier: Optional[Notifier] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.source = source
        self.notifier = notifier or LoggingNotifier()
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.rpc_timeout_seconds
        self._cell: LatestResultCell[List[AvailabilitySlot]] = LatestResultCell([])
        self.is_loading = False
        self.error: Optional[str] = None
        self.last_query: Optional[AvailabilityQuery] = None

    @property
    def slots(self) -> List[AvailabilitySlot]:
        return self._cell.value

    async def _query(self, query: AvailabilityQuery) -> List[Dict[str, Any]]:
        try:
            return await asyncio.wait_for(self.source.query(query), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise FetchError(
                "check_availability",
                f"Timeout: check_availability took longer than {self.timeout_seconds:g} seconds",
                timed_out=True,
            ) from e

    async def _load_slots(self, query: AvailabilityQuery) -> List[AvailabilitySlot]:
        try:
            rows = await self._query(query)
            return [shape_slot(row) for row in rows]
        except FetchError:
            raise
        except Exception as e:
            logger.error(f"Unexpected availability failure for {query.date}: {e}", exc_info=True)
            raise FetchError(
                "check_availability",
                "Could not load availability. Please try again.",
                detail=e,
            ) from e

    async def check_availability(
        self,
        day: Optional[Union[date, datetime]],
        guests: Optional[int],
        duration_minutes: int = 90,
    ) -> CommitOutcome:
        """
        Fetch available slots for a date and party size.

        Never called automatically on input changes; the caller decides when
        to check.

        Args:
            day: Requested date (datetimes are reduced to their local date)
            guests: Party size
            duration_minutes: Requested seating length

        Returns:
            COMMITTED if this call's result (or failure) is now the visible
            state, STALE if a newer call superseded it
        """
        if not day or not guests:
            # Supersede anything in flight; missing inputs mean no slots.
            sequence = self._cell.next_sequence()
            self._cell.commit(sequence, [])
            self.is_loading = False
            self.error = None
            return CommitOutcome.COMMITTED

        query = AvailabilityQuery(date=day, guests=guests, duration_minutes=duration_minutes)
        sequence = self._cell.next_sequence()
        self.is_loading = True
        self.last_query = query
        self.error = None

        with LogContext("check_availability", logger, sequence=sequence, date=str(query.date)) as ctx:
            try:
                slots = await self._load_slots(query)
            except FetchError as e:
                if not self._cell.is_latest(sequence):
                    logger.debug(f"Discarding stale availability failure #{sequence}")
                    return CommitOutcome.STALE
                self._cell.commit(sequence, [])
                self.error = e.user_message
                self.is_loading = False
                self.notifier.notify("Error", e.user_message, NotificationLevel.ERROR)
                return CommitOutcome.COMMITTED

            outcome = self._cell.commit(sequence, slots)
            if outcome == CommitOutcome.STALE:
                logger.debug(f"Discarding stale availability response #{sequence} for {query.date}")
                return outcome

            self.is_loading = False
            ctx.log("debug", f"Committed {len(slots)} available slots", guests=query.guests)
            return outcome

    async def refresh(self) -> CommitOutcome:
        """Re-run the most recent query."""
        if self.last_query is None:
            return CommitOutcome.COMMITTED
        return await self.check_availability(
            self.last_query.date, self.last_query.guests, self.last_query.duration_minutes
        )


# ============================================================================
# Slot picker grouping
# ============================================================================

def _period_by_hour_band(slot: AvailabilitySlot) -> Optional[ServicePeriod]:
    hour = parse_time_to_minutes(slot.time) // 60
    if LUNCH_HOURS[0] <= hour < LUNCH_HOURS[1]:
        return ServicePeriod.LUNCH
    if DINNER_HOURS[0] <= hour <= DINNER_HOURS[1]:
        return ServicePeriod.DINNER
    return None


def _period_by_interval(slot: AvailabilitySlot, intervals: Sequence[OpeningInterval]) -> Optional[ServicePeriod]:
    for index, interval in enumerate(intervals):
        if is_time_within_schedule(slot.time, interval):
            return period_for_interval(index)
    return None


def _group_by_zone(slots: Sequence[AvailabilitySlot]) -> List[ZoneSlotGroup]:
    zones: "OrderedDict[str, List[AvailabilitySlot]]" = OrderedDict()
    for slot in slots:
        zones.setdefault(slot.zone_name or NO_ZONE_NAME, []).append(slot)

    groups = [
        ZoneSlotGroup(
            zone_name=name,
            zone_priority=zone_slots[0].zone_priority
            if zone_slots[0].zone_priority is not None else MISSING_ZONE_PRIORITY,
            slots=zone_slots,
        )
        for name, zone_slots in zones.items()
    ]
    return sorted(groups, key=lambda group: group.zone_priority)


def group_available_slots(
    slots: Sequence[AvailabilitySlot],
    intervals: Sequence[OpeningInterval],
    day: date,
    now: Optional[datetime] = None,
) -> SlotPickerGroups:
    """
    Split available slots into lunch and dinner columns grouped by zone.

    With a schedule the first interval is lunch and later ones are dinner;
    without one, fixed hour bands are used. Slots already past today and
    slots outside every service are left out. Zones are ordered by
    ``zone_priority`` ascending, zones without a priority last.
    """
    ordered = sort_intervals(intervals)
    lunch: List[AvailabilitySlot] = []
    dinner: List[AvailabilitySlot] = []

    for slot in slots:
        if is_slot_in_past(day, slot.time, now):
            continue
        if ordered:
            period = _period_by_interval(slot, ordered)
        else:
            period = _period_by_hour_band(slot)
        if period == ServicePeriod.LUNCH:
            lunch.append(slot)
        elif period == ServicePeriod.DINNER:
            dinner.append(slot)

    return SlotPickerGroups(lunch=_group_by_zone(lunch), dinner=_group_by_zone(dinner))
