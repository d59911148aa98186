"""
Tests for the availability resolver and slot picker grouping.
Covers manual checks, stale-response discarding, failures and zone grouping.
"""

import asyncio
import pytest
from datetime import date, datetime

from core.errors import FetchError
from core.utils_datetime import TIMEZONE
from domain.enums import CommitOutcome, NotificationLevel
from domain.models import AvailabilityQuery, AvailabilitySlot, OpeningInterval
from services.availability import (
    AvailabilityResolver,
    LatestResultCell,
    group_available_slots,
    shape_slot,
)


DAY_A = date(2024, 3, 15)
DAY_B = date(2024, 3, 16)


async def wait_for_queries(source, count):
    for _ in range(100):
        if len(source.queries) >= count:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"expected {count} queries, got {len(source.queries)}")


def row(slot_time, capacity=10, **kwargs):
    data = {"slot_time": slot_time, "capacity": capacity}
    data.update(kwargs)
    return data


def slot(time_label, zone_name=None, zone_priority=None):
    return AvailabilitySlot(
        id=f"{time_label}-{zone_name}",
        time=time_label,
        capacity=10,
        zone_name=zone_name,
        zone_priority=zone_priority,
    )


# ============================================================================
# Latest Result Cell Tests
# ============================================================================

class TestLatestResultCell:
    """Tests for the last-write-wins cell."""

    def test_latest_commit_applies(self):
        """Test the newest sequence commits."""
        cell = LatestResultCell([])
        first = cell.next_sequence()
        second = cell.next_sequence()
        assert cell.commit(first, ["a"]) == CommitOutcome.STALE
        assert cell.commit(second, ["b"]) == CommitOutcome.COMMITTED
        assert cell.value == ["b"]
        assert cell.committed_sequence == second

    def test_sequences_increase(self):
        """Test sequence numbers are monotonic."""
        cell = LatestResultCell(None)
        assert [cell.next_sequence() for _ in range(3)] == [1, 2, 3]
        assert cell.latest_sequence == 3


# ============================================================================
# Row Shaping Tests
# ============================================================================

class TestShapeSlot:
    """Tests for mapping raw rows to slots."""

    def test_shape_with_zone(self):
        """Test zone metadata and time normalization."""
        shaped = shape_slot(row("20:00:00", 8, zone_id="z1", zone_name="Terraza", zone_color="#0f0", zone_priority=1))
        assert shaped.time == "20:00"
        assert shaped.id == "20:00:00-8"
        assert shaped.zone_priority == 1
        assert shaped.available is True

    def test_shape_keeps_row_id(self):
        """Test an explicit row id is kept."""
        assert shape_slot(row("13:00", id="slot-1")).id == "slot-1"


# ============================================================================
# Resolver Tests
# ============================================================================

class TestAvailabilityResolver:
    """Tests for manual availability checks."""

    @pytest.mark.asyncio
    async def test_success(self, static_source_factory, notifier):
        """Test rows are committed as slots."""
        source = static_source_factory(rows=[row("13:00:00"), row("13:30:00", zone_name="Salón")])
        resolver = AvailabilityResolver(source, notifier)

        outcome = await resolver.check_availability(DAY_A, 2)

        assert outcome == CommitOutcome.COMMITTED
        assert [s.time for s in resolver.slots] == ["13:00", "13:30"]
        assert resolver.is_loading is False
        assert resolver.error is None
        assert notifier.count == 0

    @pytest.mark.asyncio
    async def test_empty_result_is_not_an_error(self, static_source_factory, notifier):
        """Test an empty list means nothing is available."""
        resolver = AvailabilityResolver(static_source_factory(rows=[]), notifier)
        await resolver.check_availability(DAY_A, 2)
        assert resolver.slots == []
        assert resolver.error is None
        assert notifier.count == 0

    @pytest.mark.asyncio
    async def test_missing_inputs_clear_slots(self, static_source_factory, notifier):
        """Test missing guests clears slots without querying."""
        source = static_source_factory(rows=[row("13:00")])
        resolver = AvailabilityResolver(source, notifier)
        await resolver.check_availability(DAY_A, 2)

        await resolver.check_availability(DAY_A, 0)

        assert resolver.slots == []
        assert source.calls == 1

    @pytest.mark.asyncio
    async def test_not_called_automatically(self, static_source_factory, notifier):
        """Test constructing a resolver never queries."""
        source = static_source_factory(rows=[row("13:00")])
        AvailabilityResolver(source, notifier)
        assert source.calls == 0

    @pytest.mark.asyncio
    async def test_failure_notifies_once(self, static_source_factory, notifier):
        """Test a fetch failure clears slots and notifies exactly once."""
        good = static_source_factory(rows=[row("13:00")])
        resolver = AvailabilityResolver(good, notifier)
        await resolver.check_availability(DAY_A, 2)

        resolver.source = static_source_factory(error=FetchError("check_availability", "boom", status_code=500))
        outcome = await resolver.check_availability(DAY_A, 2)

        assert outcome == CommitOutcome.COMMITTED
        assert resolver.slots == []
        assert resolver.error == "boom"
        assert notifier.count == 1
        assert notifier.notifications[0][2] == NotificationLevel.ERROR
        assert resolver.source.calls == 1

    @pytest.mark.asyncio
    async def test_timeout_is_a_fetch_failure(self, notifier):
        """Test a slow source times out like any other failure."""

        class SlowSource:
            async def query(self, query):
                await asyncio.sleep(5)
                return []

        resolver = AvailabilityResolver(SlowSource(), notifier, timeout_seconds=0.01)
        outcome = await resolver.check_availability(DAY_A, 2)

        assert outcome == CommitOutcome.COMMITTED
        assert resolver.slots == []
        assert "took too long" in resolver.error
        assert notifier.count == 1

    @pytest.mark.asyncio
    async def test_query_uses_local_date(self, notifier):
        """Test an aware datetime is reduced to its local calendar date."""
        class CapturingSource:
            def __init__(self):
                self.query_seen = None

            async def query(self, query):
                self.query_seen = query
                return []

        capturing = CapturingSource()
        resolver = AvailabilityResolver(capturing, notifier)
        await resolver.check_availability(TIMEZONE.localize(datetime(2024, 3, 15, 23, 45)), 4, 120)

        assert capturing.query_seen == AvailabilityQuery(date=DAY_A, guests=4, duration_minutes=120)

    @pytest.mark.asyncio
    async def test_stale_response_discarded(self, controlled_source, notifier):
        """Test A's late response never replaces B's committed result."""
        resolver = AvailabilityResolver(controlled_source, notifier)

        task_a = asyncio.create_task(resolver.check_availability(DAY_A, 2))
        await wait_for_queries(controlled_source, 1)
        task_b = asyncio.create_task(resolver.check_availability(DAY_B, 2))
        await wait_for_queries(controlled_source, 2)

        controlled_source.resolve(DAY_B, [row("21:00:00")])
        assert await task_b == CommitOutcome.COMMITTED
        controlled_source.resolve(DAY_A, [row("13:00:00"), row("14:00:00")])
        assert await task_a == CommitOutcome.STALE

        assert [s.time for s in resolver.slots] == ["21:00"]
        assert resolver.last_query.date == DAY_B
        assert resolver.is_loading is False

    @pytest.mark.asyncio
    async def test_stale_failure_not_notified(self, controlled_source, notifier):
        """Test a superseded request's failure is dropped silently."""
        resolver = AvailabilityResolver(controlled_source, notifier)

        task_a = asyncio.create_task(resolver.check_availability(DAY_A, 2))
        await wait_for_queries(controlled_source, 1)
        task_b = asyncio.create_task(resolver.check_availability(DAY_B, 2))
        await wait_for_queries(controlled_source, 2)

        controlled_source.fail(DAY_A, FetchError("check_availability", "late failure"))
        assert await task_a == CommitOutcome.STALE
        controlled_source.resolve(DAY_B, [row("21:00")])
        await task_b

        assert notifier.count == 0
        assert resolver.error is None

    @pytest.mark.asyncio
    async def test_refresh_repeats_last_query(self, static_source_factory, notifier):
        """Test refresh re-runs the most recent query."""
        source = static_source_factory(rows=[row("13:00")])
        resolver = AvailabilityResolver(source, notifier)
        assert await resolver.refresh() == CommitOutcome.COMMITTED
        assert source.calls == 0

        await resolver.check_availability(DAY_A, 2)
        await resolver.refresh()
        assert source.calls == 2

    @pytest.mark.asyncio
    async def test_malformed_row_is_a_failure(self, static_source_factory, notifier):
        """Test a row without capacity degrades to empty with one notification."""
        resolver = AvailabilityResolver(static_source_factory(rows=[{"slot_time": "13:00"}]), notifier)

        outcome = await resolver.check_availability(DAY_A, 2, 90)

        assert outcome == CommitOutcome.COMMITTED
        assert resolver.slots == []
        assert resolver.is_loading is False
        assert resolver.error is not None
        assert notifier.count == 1

    @pytest.mark.asyncio
    async def test_unexpected_source_error_is_a_failure(self, static_source_factory, notifier):
        """Test non-fetch exceptions from the source are handled like fetch failures."""
        resolver = AvailabilityResolver(static_source_factory(error=ValueError("unexpected payload")), notifier)

        assert await resolver.check_availability(DAY_A, 2) == CommitOutcome.COMMITTED
        assert resolver.is_loading is False
        assert resolver.error is not None
        assert notifier.count == 1

    @pytest.mark.asyncio
    async def test_stale_unexpected_error_not_notified(self, controlled_source, notifier):
        """Test a superseded request's unexpected error is dropped silently."""
        resolver = AvailabilityResolver(controlled_source, notifier)

        task_a = asyncio.create_task(resolver.check_availability(DAY_A, 2))
        await wait_for_queries(controlled_source, 1)
        task_b = asyncio.create_task(resolver.check_availability(DAY_B, 2))
        await wait_for_queries(controlled_source, 2)

        controlled_source.fail(DAY_A, KeyError("capacity"))
        assert await task_a == CommitOutcome.STALE
        controlled_source.resolve(DAY_B, [row("21:00")])
        await task_b

        assert notifier.count == 0
        assert [s.time for s in resolver.slots] == ["21:00"]

    @pytest.mark.asyncio
    async def test_large_party_is_queried(self, notifier):
        """Test large parties and long seatings are passed to the source as-is."""

        class CapturingSource:
            def __init__(self):
                self.query_seen = None

            async def query(self, query):
                self.query_seen = query
                return [row("21:00")]

        capturing = CapturingSource()
        resolver = AvailabilityResolver(capturing, notifier)

        assert await resolver.check_availability(DAY_A, 25, 300) == CommitOutcome.COMMITTED
        assert capturing.query_seen.guests == 25
        assert capturing.query_seen.duration_minutes == 300
        assert [s.time for s in resolver.slots] == ["21:00"]
        assert notifier.count == 0


# ============================================================================
# Slot Picker Grouping Tests
# ============================================================================

class TestGroupAvailableSlots:
    """Tests for lunch/dinner columns grouped by zone."""

    def test_split_by_schedule(self, split_schedule):
        """Test the first interval is lunch and the second dinner."""
        groups = group_available_slots(
            [slot("13:00"), slot("16:00"), slot("18:00"), slot("20:30")],
            split_schedule,
            DAY_B,
            now=TIMEZONE.localize(datetime(2024, 3, 15, 9, 0)),
        )
        assert [s.time for s in groups.lunch[0].slots] == ["13:00", "16:00"]
        assert [s.time for s in groups.dinner[0].slots] == ["20:30"]

    def test_hour_bands_without_schedule(self):
        """Test fixed hour bands are used when no schedule is known."""
        groups = group_available_slots(
            [slot("12:00"), slot("16:45"), slot("17:00"), slot("19:00"), slot("23:30")],
            [],
            DAY_B,
            now=TIMEZONE.localize(datetime(2024, 3, 15, 9, 0)),
        )
        assert [s.time for s in groups.lunch[0].slots] == ["12:00", "16:45"]
        assert [s.time for s in groups.dinner[0].slots] == ["19:00", "23:30"]

    def test_past_slots_dropped_today(self, split_schedule):
        """Test slots already past today are not offered."""
        groups = group_available_slots(
            [slot("13:00"), slot("15:00"), slot("21:00")],
            split_schedule,
            DAY_A,
            now=TIMEZONE.localize(datetime(2024, 3, 15, 14, 0)),
        )
        assert [s.time for s in groups.lunch[0].slots] == ["15:00"]
        assert [s.time for s in groups.dinner[0].slots] == ["21:00"]

    def test_zones_sorted_by_priority(self, split_schedule):
        """Test zones sort by priority with missing priorities last."""
        groups = group_available_slots(
            [
                slot("20:00"),
                slot("20:00", "Salón", 2),
                slot("20:30", "Terraza", 1),
                slot("21:00", "Salón", 2),
            ],
            split_schedule,
            DAY_B,
            now=TIMEZONE.localize(datetime(2024, 3, 15, 9, 0)),
        )
        assert [(g.zone_name, g.zone_priority) for g in groups.dinner] == [
            ("Terraza", 1),
            ("Salón", 2),
            ("Sin zona", 999),
        ]
        assert len(groups.dinner[1].slots) == 2
        assert groups.lunch == []

    def test_empty(self, split_schedule):
        """Test no slots yields empty columns."""
        assert group_available_slots([], split_schedule, DAY_B).is_empty

    def test_single_interval_all_lunch(self):
        """Test a single-service day puts every slot in the first column."""
        intervals = [OpeningInterval(opening_time="12:00", closing_time="23:00")]
        groups = group_available_slots(
            [slot("13:00"), slot("21:00")],
            intervals,
            DAY_B,
            now=TIMEZONE.localize(datetime(2024, 3, 15, 9, 0)),
        )
        assert len(groups.lunch[0].slots) == 2
        assert groups.dinner == []
