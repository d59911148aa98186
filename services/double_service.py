"""
Double-service (table turn) and double-booking detection.

A table needs a turn when a second, different reservation is seated on it
soon after the first one. Detection always uses true durations, never the
window-clamped ones.
"""

import logging
from typing import List, Optional, Sequence, Set, Tuple

from core.settings import settings
from domain.models import ReservationPlacement
from services.placement import reservation_at_slot


logger = logging.getLogger(__name__)


def _lookahead(lookahead_minutes: Optional[int]) -> int:
    if lookahead_minutes is None:
        return settings.double_service_lookahead_minutes
    return lookahead_minutes


def _follows_within(
    current: ReservationPlacement,
    other: ReservationPlacement,
    lookahead_minutes: int,
) -> bool:
    if other.reservation_id == current.reservation_id:
        return False
    return current.start_minute_of_day <= other.start_minute_of_day <= current.end_minute_of_day + lookahead_minutes


def needs_turn(
    table_id: str,
    slot: str,
    placements: Sequence[ReservationPlacement],
    lookahead_minutes: Optional[int] = None,
    cell_minutes: int = 15,
) -> bool:
    """
    Check whether the table must be turned for the seating occupying ``slot``.

    Finds the placement occupying the slot on ``table_id`` and looks for a
    different reservation on the same table starting between that seating's
    start and ``lookahead_minutes`` after its end.

    Args:
        table_id: Table to inspect
        slot: Grid cell label (HH:MM)
        placements: Placements for the table (others are ignored)
        lookahead_minutes: Window after the seating ends, defaults to 3 hours
        cell_minutes: Grid cell length used to find the occupying seating

    Returns:
        True if a second seating follows within the window
    """
    window = _lookahead(lookahead_minutes)
    table_placements = [p for p in placements if p.table_id == table_id]
    current = reservation_at_slot(slot, table_placements, cell_minutes)
    if current is None:
        return False
    return any(_follows_within(current, other, window) for other in table_placements)


def reservations_needing_turn(
    placements: Sequence[ReservationPlacement],
    lookahead_minutes: Optional[int] = None,
) -> Set[Tuple[str, str]]:
    """
    Every (table_id, reservation_id) whose seating is followed by another one.

    Used to overlay the turn marker on whole reservation blocks.
    """
    window = _lookahead(lookahead_minutes)
    flagged: Set[Tuple[str, str]] = set()
    for current in placements:
        for other in placements:
            if other.table_id != current.table_id:
                continue
            if _follows_within(current, other, window):
                flagged.add((current.table_id, current.reservation_id))
                break
    return flagged


def find_overlaps(placements: Sequence[ReservationPlacement]) -> List[Tuple[ReservationPlacement, ReservationPlacement]]:
    """
    Pairs of different reservations that occupy the same table at the same time.

    Upstream assignment should prevent these; the timeline still renders both.
    """
    overlaps = []
    ordered = sorted(placements, key=lambda p: (p.table_id, p.start_minute_of_day, p.reservation_id))
    for i, first in enumerate(ordered):
        for second in ordered[i + 1:]:
            if second.table_id != first.table_id:
                break
            if second.start_minute_of_day >= first.end_minute_of_day:
                continue
            if second.reservation_id != first.reservation_id:
                overlaps.append((first, second))
    if overlaps:
        logger.warning(f"Found {len(overlaps)} overlapping placements")
    return overlaps
