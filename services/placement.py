"""
Reservation placement engine.

Converts reservations into per-table placements and positions them inside a
visible time window with minute-level precision.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Union

from core.settings import settings
from core.utils_datetime import localize, parse_time_to_minutes
from domain.models import Placement, Reservation, ReservationPlacement, TimelineWindow


logger = logging.getLogger(__name__)


# ============================================================================
# Duration & start resolution
# ============================================================================

def resolve_duration_minutes(reservation: Reservation, default_minutes: Optional[int] = None) -> int:
    """
    Resolve how long a reservation occupies its table.

    Order: explicit stored duration, then the start/end timestamp delta,
    then the configured default (90 minutes).

    Args:
        reservation: Reservation record
        default_minutes: Fallback duration, defaults to settings

    Returns:
        Duration in whole minutes
    """
    if reservation.duration_minutes:
        return reservation.duration_minutes

    if reservation.start_at is not None and reservation.end_at is not None:
        delta = localize(reservation.end_at) - localize(reservation.start_at)
        delta_minutes = int(delta.total_seconds() // 60)
        if delta_minutes > 0:
            return delta_minutes
        logger.warning(
            f"Reservation {reservation.id} has a non-positive start/end range, using default duration"
        )

    return default_minutes if default_minutes is not None else settings.default_duration_minutes


def resolve_start_minute(reservation: Reservation) -> int:
    """
    Start of a reservation in minutes since midnight.

    The wall-clock ``time`` field is authoritative; ``start_at`` is never used
    here because converting a stored instant back to local time can drift.
    """
    return parse_time_to_minutes(reservation.time)


# ============================================================================
# Placements
# ============================================================================

def build_placements(
    reservations: Iterable[Reservation],
    default_minutes: Optional[int] = None,
) -> List[ReservationPlacement]:
    """
    Build one placement per (reservation, assigned table) pair.

    Cancelled and unassigned reservations produce no placement.
    """
    placements: List[ReservationPlacement] = []
    for reservation in reservations:
        if not reservation.is_active:
            continue
        if not reservation.table_assignments:
            logger.debug(f"Reservation {reservation.id} has no table assigned")
            continue

        start = resolve_start_minute(reservation)
        duration = resolve_duration_minutes(reservation, default_minutes)
        for table_id in reservation.table_ids:
            placements.append(ReservationPlacement(
                reservation_id=reservation.id,
                table_id=table_id,
                start_minute_of_day=start,
                duration_minutes=duration,
                guests=reservation.guests,
                customer_label=reservation.customer_name,
                status=reservation.status,
            ))
    return placements


def placements_by_table(placements: Iterable[ReservationPlacement]) -> Dict[str, List[ReservationPlacement]]:
    """
    Group placements by table, ordered by start minute then reservation id.

    Overlapping placements on a table are kept as they are.
    """
    grouped: Dict[str, List[ReservationPlacement]] = defaultdict(list)
    for placement in placements:
        grouped[placement.table_id].append(placement)
    return {
        table_id: sorted(items, key=lambda p: (p.start_minute_of_day, p.reservation_id))
        for table_id, items in grouped.items()
    }


def place(
    item: Union[Reservation, ReservationPlacement],
    window_start_minute: int,
    window_end_minute: int,
) -> Optional[Placement]:
    """
    Position a reservation inside ``[window_start_minute, window_end_minute]``.

    The interval is clamped to the window; a reservation entirely outside it
    returns None. Percentages are fractions of the window length.

    Args:
        item: Reservation or already-built placement
        window_start_minute: First visible minute
        window_end_minute: Last visible minute

    Returns:
        Placement with start/width fractions, or None when nothing is visible
    """
    if window_end_minute <= window_start_minute:
        raise ValueError("window end must be after window start")

    if isinstance(item, Reservation):
        start = resolve_start_minute(item)
        end = start + resolve_duration_minutes(item)
    else:
        start = item.start_minute_of_day
        end = item.end_minute_of_day

    visible_start = max(start, window_start_minute)
    visible_end = min(end, window_end_minute)
    if visible_end <= visible_start:
        return None

    length = window_end_minute - window_start_minute
    return Placement(
        visible_start_minute=visible_start,
        visible_end_minute=visible_end,
        start_pct=(visible_start - window_start_minute) / length,
        width_pct=(visible_end - visible_start) / length,
    )


def place_in_window(item: Union[Reservation, ReservationPlacement], window: TimelineWindow) -> Optional[Placement]:
    """``place`` against a ``TimelineWindow``."""
    return place(item, window.start_minute, window.end_minute)


def reservation_at_slot(
    slot: str,
    placements: Sequence[ReservationPlacement],
    cell_minutes: int = 15,
) -> Optional[ReservationPlacement]:
    """
    Placement occupying the grid cell that starts at ``slot``.

    A placement occupies the cell when ``[start, end)`` intersects
    ``[slot, slot + cell_minutes)``. With overlapping placements the one that
    started first wins.
    """
    cell_start = parse_time_to_minutes(slot)
    cell_end = cell_start + cell_minutes
    occupying = [
        p for p in placements
        if p.start_minute_of_day < cell_end and p.end_minute_of_day > cell_start
    ]
    if not occupying:
        return None
    return min(occupying, key=lambda p: (p.start_minute_of_day, p.reservation_id))
