"""
Schedule resolution and shift classification.

Resolves which opening intervals apply to a date and buckets generated slots
by the interval (lunch/dinner service) they come from.
"""

import logging
from datetime import date
from typing import Dict, List, Optional, Sequence

from core.utils_datetime import day_of_week_sunday_based
from domain.enums import ServicePeriod
from domain.models import OpeningInterval, SpecialClosedDay, SpecialScheduleDay
from services.time_slots import is_time_within_schedule


logger = logging.getLogger(__name__)


def group_slots_by_interval(
    slots: Sequence[str],
    intervals: Sequence[OpeningInterval],
) -> Dict[int, List[str]]:
    """
    Bucket slots by the index of the interval they fall in.

    A slot inside two overlapping intervals appears in both buckets; each
    bucket is rendered as its own labelled group.

    Args:
        slots: Slot labels, typically from ``generate_slots``
        intervals: Intervals in display order (first = lunch)

    Returns:
        Mapping of interval index to the slots inside it, closing time included
    """
    return {
        index: [slot for slot in slots if is_time_within_schedule(slot, interval)]
        for index, interval in enumerate(intervals)
    }


def period_for_interval(index: int) -> ServicePeriod:
    """First interval of the day is lunch, every later one is dinner."""
    return ServicePeriod.LUNCH if index == 0 else ServicePeriod.DINNER


def classify_slots(
    slots: Sequence[str],
    intervals: Sequence[OpeningInterval],
) -> Dict[ServicePeriod, List[str]]:
    """Group slots into lunch and dinner columns for a two-column picker."""
    classified: Dict[ServicePeriod, List[str]] = {period: [] for period in ServicePeriod}
    for index, bucket in group_slots_by_interval(slots, intervals).items():
        column = classified[period_for_interval(index)]
        for slot in bucket:
            if slot not in column:
                column.append(slot)
    for period in classified:
        classified[period].sort()
    return classified


def interval_for_period(
    intervals: Sequence[OpeningInterval],
    period: ServicePeriod,
) -> Optional[OpeningInterval]:
    """The interval rendered under ``period`` or None when the day has no such service."""
    ordered = sort_intervals(intervals)
    if not ordered:
        return None
    if period == ServicePeriod.LUNCH:
        return ordered[0]
    if len(ordered) < 2:
        return None
    return ordered[1]


def is_split_schedule(intervals: Sequence[OpeningInterval]) -> bool:
    """True when the day has separate lunch and dinner services."""
    return len([interval for interval in intervals if interval.is_active]) > 1


def sort_intervals(intervals: Sequence[OpeningInterval]) -> List[OpeningInterval]:
    """Active intervals ordered by opening time."""
    return sorted(
        (interval for interval in intervals if interval.is_active),
        key=lambda interval: interval.opening_minutes,
    )


def resolve_intervals_for_date(
    day: date,
    weekly_intervals: Sequence[OpeningInterval],
    closed_days: Sequence[SpecialClosedDay] = (),
    special_days: Sequence[SpecialScheduleDay] = (),
) -> List[OpeningInterval]:
    """
    Opening intervals that apply to ``day``.

    Precedence: a special closed day (single date or range) closes the
    restaurant, then a special schedule replaces the weekly hours, then the
    weekly schedule for the day of week applies.
    """
    if any(closed.covers(day) for closed in closed_days):
        logger.debug(f"{day.isoformat()} is a special closed day")
        return []

    special = [s for s in special_days if s.date == day and s.is_active]
    if special:
        return sort_intervals([s.as_interval() for s in special])

    weekday = day_of_week_sunday_based(day)
    return sort_intervals([
        interval for interval in weekly_intervals
        if interval.day_of_week is None or interval.day_of_week == weekday
    ])
