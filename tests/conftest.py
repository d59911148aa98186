"""Pytest configuration and fixtures for the reservation time grid tests."""
import asyncio
from datetime import date, datetime
from typing import Any, Dict, List

import pytest

from core.errors import FetchError
from core.notifications import RecordingNotifier
from core.utils_datetime import TIMEZONE
from domain.models import (
    AvailabilityQuery,
    OpeningInterval,
    Reservation,
    Table,
    TableAssignment,
)
from integrations.realtime import RealtimeRefreshBridge
from integrations.sources import DayFeed, SpecialDays


# ============================================================================
# Fakes
# ============================================================================

class ControlledAvailabilitySource:
    """Availability source whose responses are released by the test."""

    def __init__(self):
        self.queries: List[AvailabilityQuery] = []
        self._pending: Dict[date, asyncio.Future] = {}

    async def query(self, query: AvailabilityQuery) -> List[Dict[str, Any]]:
        self.queries.append(query)
        future = asyncio.get_running_loop().create_future()
        self._pending[query.date] = future
        return await future

    def resolve(self, day: date, rows: List[Dict[str, Any]]) -> None:
        self._pending.pop(day).set_result(rows)

    def fail(self, day: date, error: Exception) -> None:
        self._pending.pop(day).set_exception(error)


class StaticAvailabilitySource:
    """Availability source returning fixed rows or raising a fixed error."""

    def __init__(self, rows=None, error: Exception = None):
        self.rows = rows or []
        self.error = error
        self.calls = 0

    async def query(self, query: AvailabilityQuery) -> List[Dict[str, Any]]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.rows)


class FakeReservationFeed:
    """Reservation feed serving per-date DayFeeds from memory."""

    def __init__(self, feeds: Dict[date, DayFeed] = None):
        self.feeds = feeds or {}
        self.calls: List[date] = []
        self.error: Exception = None

    async def fetch(self, day: date) -> DayFeed:
        self.calls.append(day)
        if self.error is not None:
            raise self.error
        return self.feeds.get(day, DayFeed())


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def base_day():
    """Provide a fixed Friday for consistent testing."""
    return date(2024, 3, 15)


@pytest.fixture(scope="function")
def evening_of_base_day():
    """Provide 18:00 local time on the base day."""
    return TIMEZONE.localize(datetime(2024, 3, 15, 18, 0))


@pytest.fixture(scope="function")
def split_schedule():
    """Provide a lunch 13:00-16:00 and dinner 20:00-23:00 schedule (Friday = 5)."""
    return [
        OpeningInterval(day_of_week=5, opening_time="13:00:00", closing_time="16:00:00"),
        OpeningInterval(day_of_week=5, opening_time="20:00:00", closing_time="23:00:00"),
    ]


@pytest.fixture(scope="function")
def tables():
    """Provide three active tables."""
    return [
        Table(id="t1", name="Mesa 1", capacity=2, zone_name="Terraza"),
        Table(id="t2", name="Mesa 2", capacity=4, zone_name="Salón"),
        Table(id="t3", name="Mesa 3", capacity=6),
    ]


@pytest.fixture(scope="function")
def make_reservation(base_day):
    """Factory fixture to create a reservation on the base day."""
    counter = {"n": 0}

    def _create(time="20:00", table_ids=("t1",), **kwargs):
        counter["n"] += 1
        data = {
            "id": f"r{counter['n']}",
            "customer_name": "Ana García",
            "time": time,
            "guests": 2,
            "date": base_day,
            "table_assignments": [TableAssignment(table_id=t) for t in table_ids],
        }
        data.update(kwargs)
        return Reservation(**data)

    return _create


@pytest.fixture(scope="function")
def notifier():
    """Provide a notifier that records every notification."""
    return RecordingNotifier()


@pytest.fixture(scope="function")
def bridge():
    """Provide an empty push refresh bridge."""
    return RealtimeRefreshBridge()


@pytest.fixture(scope="function")
def controlled_source():
    """Provide an availability source driven by the test."""
    return ControlledAvailabilitySource()


@pytest.fixture(scope="function")
def static_source_factory():
    """Factory fixture for fixed-response availability sources."""
    return StaticAvailabilitySource


@pytest.fixture(scope="function")
def fetch_timeout_error():
    """Provide a timeout fetch error."""
    return FetchError("check_availability", "Timeout: check_availability took longer than 10 seconds", timed_out=True)


@pytest.fixture(scope="function")
def day_feed(base_day, tables, split_schedule, make_reservation):
    """Provide a feed with two lunch seatings on t1 and one dinner on t2."""
    return DayFeed(
        reservations=(
            make_reservation(time="13:00", duration_minutes=90),
            make_reservation(time="15:30", duration_minutes=90),
            make_reservation(time="21:00", table_ids=("t2",), guests=4),
        ),
        tables=tuple(tables),
        intervals=tuple(split_schedule),
        special_days=SpecialDays(),
    )


@pytest.fixture(scope="function")
def reservation_feed(base_day, day_feed):
    """Provide a reservation feed serving ``day_feed`` for the base day."""
    return FakeReservationFeed({base_day: day_feed})
