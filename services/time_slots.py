"""
Time slot generation and validation for the reservation grid.

Turns opening intervals into a canonical sequence of zero-padded ``HH:MM``
labels and answers open/closed questions about those labels.
"""

import logging
import math
from datetime import date, datetime
from typing import Iterable, List, Optional, Sequence

from core.errors import InvalidScheduleError
from core.settings import settings
from core.utils_datetime import (
    get_current_datetime,
    localize,
    minutes_to_label,
    parse_time_to_minutes,
    to_seconds_label,
)
from domain.models import HourHeader, OpeningInterval, TimelineWindow


logger = logging.getLogger(__name__)

DEFAULT_STEP_MINUTES = 15


def _check_step(step_minutes: int) -> None:
    if step_minutes <= 0:
        raise ValueError(f"step_minutes must be positive, got {step_minutes}")


def generate_time_slots(start_time: str, end_time: str, step_minutes: int = DEFAULT_STEP_MINUTES) -> List[str]:
    """
    Generate labels every ``step_minutes`` from ``start_time`` to ``end_time`` inclusive.

    Args:
        start_time: First label, HH:MM[:SS]
        end_time: Last possible label, HH:MM[:SS]
        step_minutes: Cadence in minutes

    Returns:
        Zero-padded HH:MM labels

    Raises:
        InvalidScheduleError: if ``end_time`` is before ``start_time``
    """
    _check_step(step_minutes)
    start = parse_time_to_minutes(start_time)
    end = parse_time_to_minutes(end_time)

    if start > end:
        raise InvalidScheduleError(start_time, end_time)

    return [minutes_to_label(minute) for minute in range(start, end + 1, step_minutes)]


def generate_slots(intervals: Sequence[OpeningInterval], step_minutes: int = DEFAULT_STEP_MINUTES) -> List[str]:
    """
    Generate the sorted, de-duplicated slot labels for a day's opening intervals.

    Intervals may arrive unsorted and overlapping. Inactive intervals are
    skipped. An empty list means "no schedule" and is not an error.

    Raises:
        InvalidScheduleError: if any interval closes before it opens
    """
    _check_step(step_minutes)
    if not intervals:
        return []

    labels = set()
    for interval in intervals:
        if not interval.is_active:
            logger.debug(f"Skipping inactive interval {interval.opening_time}-{interval.closing_time}")
            continue
        labels.update(generate_time_slots(interval.opening_time, interval.closing_time, step_minutes))

    return sorted(labels)


def generate_picker_slots(intervals: Sequence[OpeningInterval], step_minutes: Optional[int] = None) -> List[str]:
    """Slots offered by the guest slot picker, on the picker cadence (30 minutes by default)."""
    return generate_slots(intervals, step_minutes or settings.picker_interval_minutes)


def generate_window_slots(window: TimelineWindow, step_minutes: int = DEFAULT_STEP_MINUTES) -> List[str]:
    """Slots covering a visible timeline window, both ends included."""
    return generate_time_slots(window.start_label, window.end_label, step_minutes)


def is_time_within_schedule(slot: str, interval: OpeningInterval) -> bool:
    """
    Check whether a slot belongs to an interval, closing time included.

    Comparison is done on the with-seconds form, so ``"23:00"`` is inside an
    interval closing at ``"23:00:00"`` but not one closing at ``"22:59:59"``.
    """
    slot_key = to_seconds_label(slot)
    return to_seconds_label(interval.opening_time) <= slot_key <= to_seconds_label(interval.closing_time)


def is_open_at(slot: str, intervals: Iterable[OpeningInterval]) -> bool:
    """
    Live "is the restaurant open" check; closing time is excluded.

    A slot exactly at closing time is a valid last seating for generation but
    reads as closed here.
    """
    minute = parse_time_to_minutes(slot)
    return any(
        interval.is_active and interval.opening_minutes <= minute < interval.closing_minutes
        for interval in intervals
    )


def generate_hour_headers(slots: Sequence[str]) -> List[HourHeader]:
    """
    Derive hour headers from a slot list.

    Each header spans the slots of its hour, so the last hour of a window
    ending at ``23:30`` with a 15 minute cadence spans three cells.
    """
    headers: List[HourHeader] = []
    for index, slot in enumerate(slots):
        hour = f"{slot[:2]}h"
        if headers and headers[-1].hour == hour:
            last = headers[-1]
            headers[-1] = HourHeader(
                hour=hour,
                start_slot_index=last.start_slot_index,
                span_slots=last.span_slots + 1,
            )
        else:
            headers.append(HourHeader(hour=hour, start_slot_index=index, span_slots=1))
    return headers


def normalize_time_to_slot(time_label: str, step_minutes: int = DEFAULT_STEP_MINUTES) -> str:
    """Round a time to the nearest slot, carrying into the next hour."""
    _check_step(step_minutes)
    minute = parse_time_to_minutes(time_label)
    hours, mins = divmod(minute, 60)
    rounded = int(math.floor(mins / step_minutes + 0.5)) * step_minutes
    return minutes_to_label(hours * 60 + rounded)


def format_time_display(time_label: str) -> str:
    """Display form of a time label (always HH:MM)."""
    return minutes_to_label(parse_time_to_minutes(time_label))


def get_slot_index(time_label: str, slots: Sequence[str]) -> Optional[int]:
    """Index of ``time_label`` in ``slots`` or None when it is not on the grid."""
    try:
        return list(slots).index(time_label[:5])
    except ValueError:
        return None


def minutes_to_slots(duration_minutes: int, cell_minutes: int = DEFAULT_STEP_MINUTES) -> int:
    """Number of grid cells needed to cover ``duration_minutes``."""
    _check_step(cell_minutes)
    return math.ceil(duration_minutes / cell_minutes)


def is_slot_in_past(day: date, slot: str, now: Optional[datetime] = None) -> bool:
    """Check whether a slot of ``day`` has already passed. Only today's slots can be past."""
    now = localize(now) if now is not None else get_current_datetime()
    if day != now.date():
        return False
    return parse_time_to_minutes(slot) < now.hour * 60 + now.minute
