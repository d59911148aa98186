"""Per-service reservation counters for the dashboard header cards."""

from datetime import date
from typing import Sequence

from core.utils_datetime import parse_time_to_minutes
from domain.enums import ReservationStatus
from domain.models import OpeningInterval, Reservation, ShiftMetrics


def calculate_metrics(reservations: Sequence[Reservation]) -> ShiftMetrics:
    """Count active reservations, their guests, arrivals and cancellations."""
    active = [r for r in reservations if r.status != ReservationStatus.CANCELLED]
    return ShiftMetrics(
        reservations=len(active),
        guests=sum(r.guests for r in active),
        arrived=len([r for r in reservations if r.status == ReservationStatus.ARRIVED]),
        cancelled=len([r for r in reservations if r.status == ReservationStatus.CANCELLED]),
    )


def reservations_in_range(
    reservations: Sequence[Reservation],
    day: date,
    opening_time: str,
    closing_time: str,
) -> list:
    """Reservations of ``day`` starting inside the range, closing time included."""
    start = parse_time_to_minutes(opening_time)
    end = parse_time_to_minutes(closing_time)
    return [
        r for r in reservations
        if r.date == day and start <= parse_time_to_minutes(r.time) <= end
    ]


def metrics_for_shift(
    reservations: Sequence[Reservation],
    day: date,
    intervals: Sequence[OpeningInterval],
    shift_index: int,
) -> ShiftMetrics:
    """Metrics for the ``shift_index``-th interval of the day (0 = lunch)."""
    if shift_index < 0 or shift_index >= len(intervals):
        return ShiftMetrics()
    interval = intervals[shift_index]
    return calculate_metrics(
        reservations_in_range(reservations, day, interval.opening_time, interval.closing_time)
    )


def total_metrics(reservations: Sequence[Reservation], day: date) -> ShiftMetrics:
    """Metrics for every reservation of ``day``."""
    return calculate_metrics([r for r in reservations if r.date == day])
