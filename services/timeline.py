"""
Staff occupancy timeline render model.

Assembles background open/closed cells, reservation blocks, turn markers and
the current-time marker for one date and visible window.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from core.settings import settings
from core.utils_datetime import get_current_datetime, localize, minute_of_day
from domain.enums import ServicePeriod, TimelineState
from domain.models import (
    OpeningInterval,
    Reservation,
    Table,
    TimelineBlock,
    TimelineCell,
    TimelineModel,
    TimelineRow,
    TimelineWindow,
)
from services.double_service import reservations_needing_turn
from services.placement import build_placements, place_in_window, placements_by_table
from services.schedule_classifier import interval_for_period
from services.time_slots import generate_hour_headers, generate_window_slots, is_open_at


logger = logging.getLogger(__name__)


def default_window() -> TimelineWindow:
    """Visible window configured for the staff timeline."""
    return TimelineWindow.from_labels(settings.timeline_window_start, settings.timeline_window_end)


def window_for_period(
    period: Optional[ServicePeriod],
    intervals: Sequence[OpeningInterval],
    fallback: Optional[TimelineWindow] = None,
) -> TimelineWindow:
    """
    Window for the narrow-viewport lunch/dinner toggle.

    Without a period, or when the day has no such service, the fallback
    (full-day) window is used.
    """
    fallback = fallback or default_window()
    if period is None:
        return fallback
    interval = interval_for_period(intervals, period)
    if interval is None or interval.closing_minutes <= interval.opening_minutes:
        return fallback
    return TimelineWindow(start_minute=interval.opening_minutes, end_minute=interval.closing_minutes)


def now_marker_position(window: TimelineWindow, now: datetime) -> Optional[float]:
    """Fraction of the window where the current time falls, or None outside it."""
    current = minute_of_day(now)
    if current < window.start_minute or current > window.end_minute:
        return None
    return (current - window.start_minute) / window.length_minutes


def build_timeline(
    day: date,
    tables: Sequence[Table],
    reservations: Sequence[Reservation],
    intervals: Sequence[OpeningInterval],
    window: Optional[TimelineWindow] = None,
    now: Optional[datetime] = None,
    step_minutes: Optional[int] = None,
    lookahead_minutes: Optional[int] = None,
) -> TimelineModel:
    """
    Build the render-ready timeline for ``day``.

    Args:
        day: Date in view
        tables: Tables to draw, in display order
        reservations: Reservations for ``day``
        intervals: Opening intervals that apply to ``day``
        window: Visible window, defaults to the configured one
        now: Current time, the marker is only drawn when viewing today
        step_minutes: Grid cadence, defaults to settings
        lookahead_minutes: Double-service lookahead, defaults to settings

    Returns:
        TimelineModel with one row per table
    """
    window = window or default_window()
    step = step_minutes or settings.slot_interval_minutes

    slots = generate_window_slots(window, step)
    open_by_slot = {slot: is_open_at(slot, intervals) for slot in slots}

    day_reservations = [r for r in reservations if r.date == day]
    placements = build_placements(day_reservations)
    by_table = placements_by_table(placements)
    turns = reservations_needing_turn(placements, lookahead_minutes)

    rows: List[TimelineRow] = []
    for table in tables:
        blocks: List[TimelineBlock] = []
        for placement in by_table.get(table.id, []):
            position = place_in_window(placement, window)
            if position is None:
                continue
            blocks.append(TimelineBlock(
                placement=placement,
                position=position,
                needs_turn=(table.id, placement.reservation_id) in turns,
            ))
        rows.append(TimelineRow(
            table=table,
            cells=[TimelineCell(slot=slot, is_open=open_by_slot[slot]) for slot in slots],
            blocks=blocks,
        ))

    known_tables = {table.id for table in tables}
    orphaned = [table_id for table_id in by_table if table_id not in known_tables]
    if orphaned:
        logger.debug(f"Placements on tables not in view: {orphaned}")

    marker = None
    if now is not None and localize(now).date() == day:
        marker = now_marker_position(window, now)

    return TimelineModel(
        date=day,
        window=window,
        slots=slots,
        hour_headers=generate_hour_headers(slots),
        rows=rows,
        now_marker_pct=marker,
        has_schedule=bool(intervals),
    )


@dataclass(frozen=True)
class TimelineInputs:
    """Everything the render model is computed from."""

    day: date
    tables: Tuple[Table, ...] = ()
    reservations: Tuple[Reservation, ...] = ()
    intervals: Tuple[OpeningInterval, ...] = ()
    period: Optional[ServicePeriod] = None


@dataclass
class TimelineRenderModel:
    """
    Loading/Ready state machine around ``build_timeline``.

    Every input change re-enters Ready with a freshly built model; there is
    no error state because inputs arrive already validated.
    """

    clock: Callable[[], datetime] = get_current_datetime
    base_window: Optional[TimelineWindow] = None
    step_minutes: Optional[int] = None
    lookahead_minutes: Optional[int] = None
    state: TimelineState = TimelineState.LOADING
    model: Optional[TimelineModel] = None
    inputs: Optional[TimelineInputs] = field(default=None)

    def mark_loading(self) -> None:
        """Enter Loading; the previous model stays available until the next update."""
        self.state = TimelineState.LOADING

    def update(self, inputs: TimelineInputs) -> TimelineModel:
        """Recompute the model from ``inputs`` and enter Ready."""
        window = window_for_period(inputs.period, inputs.intervals, self.base_window)
        self.model = build_timeline(
            day=inputs.day,
            tables=inputs.tables,
            reservations=inputs.reservations,
            intervals=inputs.intervals,
            window=window,
            now=self.clock(),
            step_minutes=self.step_minutes,
            lookahead_minutes=self.lookahead_minutes,
        )
        self.inputs = inputs
        self.state = TimelineState.READY
        return self.model

    def change(self, **changes) -> TimelineModel:
        """Apply a partial input change (date, tables, reservations, intervals, period)."""
        if self.inputs is None:
            raise RuntimeError("Timeline has no inputs yet")
        return self.update(replace(self.inputs, **changes))

    def tick(self) -> Optional[TimelineModel]:
        """Move the current-time marker without rebuilding rows."""
        if self.model is None:
            return None
        now = self.clock()
        marker = None
        if localize(now).date() == self.model.date:
            marker = now_marker_position(self.model.window, now)
        self.model = self.model.model_copy(update={"now_marker_pct": marker})
        return self.model

    def blocks_by_table(self) -> Dict[str, List[TimelineBlock]]:
        """Blocks of the current model keyed by table id."""
        if self.model is None:
            return {}
        return {row.table.id: row.blocks for row in self.model.rows}
