"""
Tests for the reservation placement engine.
Covers duration resolution branches, window clamping and slot-cell lookup.
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from core.utils_datetime import TIMEZONE
from domain.enums import ReservationStatus
from domain.models import ReservationPlacement, TimelineWindow
from services.placement import (
    build_placements,
    place,
    place_in_window,
    placements_by_table,
    reservation_at_slot,
    resolve_duration_minutes,
    resolve_start_minute,
)


def placement(reservation_id, start, duration=90, table_id="t1"):
    return ReservationPlacement(
        reservation_id=reservation_id,
        table_id=table_id,
        start_minute_of_day=start,
        duration_minutes=duration,
        guests=2,
        customer_label="Cliente",
    )


# ============================================================================
# Duration Resolution Tests
# ============================================================================

class TestResolveDuration:
    """Tests for the stored duration, timestamp delta, default chain."""

    def test_explicit_duration_wins(self, make_reservation):
        """Test a stored duration is used even with timestamps present."""
        start = TIMEZONE.localize(datetime(2024, 3, 15, 20, 0))
        reservation = make_reservation(duration_minutes=120, start_at=start, end_at=start + timedelta(minutes=60))
        assert resolve_duration_minutes(reservation) == 120

    def test_timestamp_delta(self, make_reservation):
        """Test the start/end delta is used without a stored duration."""
        start = TIMEZONE.localize(datetime(2024, 3, 15, 20, 0))
        reservation = make_reservation(start_at=start, end_at=start + timedelta(minutes=105))
        assert resolve_duration_minutes(reservation) == 105

    def test_default_duration(self, make_reservation):
        """Test 90 minutes is used when nothing else is known."""
        assert resolve_duration_minutes(make_reservation()) == 90

    def test_zero_duration_treated_as_missing(self, make_reservation):
        """Test a stored zero falls through to the default."""
        reservation = make_reservation(duration_minutes=0)
        assert reservation.duration_minutes is None
        assert resolve_duration_minutes(reservation) == 90

    def test_non_positive_delta_falls_back(self, make_reservation):
        """Test an inverted timestamp range falls back to the default."""
        start = TIMEZONE.localize(datetime(2024, 3, 15, 20, 0))
        reservation = make_reservation(start_at=start, end_at=start - timedelta(minutes=30))
        assert resolve_duration_minutes(reservation) == 90

    def test_mixed_naive_and_aware_timestamps(self, make_reservation):
        """Test a naive timestamp is read as restaurant-local time."""
        start = datetime(2024, 3, 15, 20, 0)
        end = datetime(2024, 3, 15, 19, 45, tzinfo=timezone.utc)
        reservation = make_reservation(start_at=start, end_at=end)
        assert resolve_duration_minutes(reservation) == 45

    def test_timestamps_from_iso_strings(self, make_reservation):
        """Test ISO timestamps with a Z suffix are parsed."""
        reservation = make_reservation(start_at="2024-03-15T19:00:00Z", end_at="2024-03-15T21:00:00Z")
        assert resolve_duration_minutes(reservation) == 120

    def test_custom_default(self, make_reservation):
        """Test the caller can override the default."""
        assert resolve_duration_minutes(make_reservation(), default_minutes=60) == 60

    def test_settings_default(self, make_reservation):
        """Test the configured default is used."""
        with patch("services.placement.settings") as mock_settings:
            mock_settings.default_duration_minutes = 75
            assert resolve_duration_minutes(make_reservation()) == 75

    def test_start_from_time_field(self, make_reservation):
        """Test the start comes from the wall-clock time, not start_at."""
        reservation = make_reservation(
            time="20:30:00",
            start_at=TIMEZONE.localize(datetime(2024, 3, 15, 18, 0)),
        )
        assert resolve_start_minute(reservation) == 20 * 60 + 30


# ============================================================================
# Window Placement Tests
# ============================================================================

class TestPlace:
    """Tests for clamping reservations to a visible window."""

    def test_fully_outside_window(self, make_reservation):
        """Test a 20:00 seating is invisible in an 18:00-19:30 window."""
        assert place(make_reservation(time="20:00", duration_minutes=90), 1080, 1170) is None

    def test_fractions_inside_window(self, make_reservation):
        """Test a 20:00 seating in a 19:30-21:30 window starts at 0.25."""
        result = place(make_reservation(time="20:00", duration_minutes=90), 1170, 1290)
        assert result.start_pct == pytest.approx(0.25)
        assert result.width_pct == pytest.approx(0.75)
        assert result.visible_start_minute == 1200
        assert result.visible_end_minute == 1290

    def test_clamped_at_window_end(self, make_reservation):
        """Test a seating running past the window end is clamped."""
        result = place(make_reservation(time="21:00", duration_minutes=90), 1170, 1290)
        assert result.visible_end_minute == 1290
        assert result.width_pct == pytest.approx(30 / 120)

    def test_clamped_at_window_start(self, make_reservation):
        """Test a seating started before the window begins at 0."""
        result = place(make_reservation(time="19:00", duration_minutes=90), 1170, 1290)
        assert result.start_pct == 0.0
        assert result.width_pct == pytest.approx(60 / 120)

    def test_ending_exactly_at_window_start(self, make_reservation):
        """Test a seating ending at the window start is not visible."""
        assert place(make_reservation(time="18:00", duration_minutes=90), 1170, 1290) is None

    def test_invalid_window(self, make_reservation):
        """Test an empty window is rejected."""
        with pytest.raises(ValueError):
            place(make_reservation(), 1200, 1200)

    def test_place_existing_placement(self):
        """Test placements can be positioned directly."""
        window = TimelineWindow.from_labels("12:00", "23:30")
        result = place_in_window(placement("r1", 13 * 60), window)
        assert result.start_pct == pytest.approx(60 / 690)
        assert result.width_pct == pytest.approx(90 / 690)


# ============================================================================
# Placement Building Tests
# ============================================================================

class TestBuildPlacements:
    """Tests for turning reservations into per-table placements."""

    def test_one_placement_per_table(self, make_reservation):
        """Test a reservation on joined tables yields one placement per table."""
        placements = build_placements([make_reservation(table_ids=("t1", "t2"), guests=8)])
        assert [p.table_id for p in placements] == ["t1", "t2"]
        assert all(p.guests == 8 for p in placements)

    def test_cancelled_and_unassigned_skipped(self, make_reservation):
        """Test cancelled and unassigned reservations get no placement."""
        placements = build_placements([
            make_reservation(status=ReservationStatus.CANCELLED),
            make_reservation(table_ids=()),
            make_reservation(time="21:00"),
        ])
        assert len(placements) == 1
        assert placements[0].time_label == "21:00"

    def test_group_by_table_ordered(self):
        """Test grouping sorts by start then reservation id."""
        grouped = placements_by_table([
            placement("b", 1200),
            placement("a", 1200),
            placement("c", 780),
            placement("d", 780, table_id="t2"),
        ])
        assert [p.reservation_id for p in grouped["t1"]] == ["c", "a", "b"]
        assert [p.reservation_id for p in grouped["t2"]] == ["d"]


# ============================================================================
# Slot Cell Lookup Tests
# ============================================================================

class TestReservationAtSlot:
    """Tests for finding the seating that occupies a grid cell."""

    def test_occupied_cells(self):
        """Test every cell of a 13:00-14:30 seating is occupied."""
        seating = placement("r1", 780)
        assert reservation_at_slot("13:00", [seating]) == seating
        assert reservation_at_slot("14:15", [seating]) == seating
        assert reservation_at_slot("14:30", [seating]) is None
        assert reservation_at_slot("12:45", [seating]) is None

    def test_off_grid_start(self):
        """Test a seating starting mid-cell occupies that cell."""
        seating = placement("r1", 13 * 60 + 10)
        assert reservation_at_slot("13:00", [seating]) == seating

    def test_earliest_seating_wins(self):
        """Test overlapping seatings resolve to the earliest."""
        first = placement("r1", 780)
        second = placement("r2", 810)
        assert reservation_at_slot("13:30", [second, first]) == first
