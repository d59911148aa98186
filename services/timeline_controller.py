"""
Timeline controller: owns the staff timeline's data lifecycle.

Reloads are full and idempotent. They happen when the selected date
changes, when the push channel reports a change (debounced), and on a
manual refresh. Late responses for a superseded load are dropped.
"""

import asyncio
import logging
from datetime import date
from typing import Optional

from core.errors import FetchError
from core.logging import LogContext
from core.notifications import LoggingNotifier, Notifier
from core.settings import settings
from domain.enums import CommitOutcome, NotificationLevel, RefreshReason, ServicePeriod, TimelineState
from domain.models import TimelineModel
from integrations.realtime import RealtimeRefreshBridge, Subscription
from integrations.sources import DayFeed, ReservationFeed
from services.availability import LatestResultCell
from services.schedule_classifier import resolve_intervals_for_date
from services.timeline import TimelineInputs, TimelineRenderModel


logger = logging.getLogger(__name__)


class TimelineController:
    """Fetches the day feed and keeps a ``TimelineRenderModel`` current."""

    def __init__(
        self,
        feed: ReservationFeed,
        bridge: Optional[RealtimeRefreshBridge] = None,
        notifier: Optional[Notifier] = None,
        render_model: Optional[TimelineRenderModel] = None,
        debounce_seconds: Optional[float] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.feed = feed
        self.bridge = bridge
        self.notifier = notifier or LoggingNotifier()
        self.render_model = render_model or TimelineRenderModel()
        self.debounce_seconds = (
            debounce_seconds if debounce_seconds is not None else settings.refresh_debounce_seconds
        )
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.rpc_timeout_seconds

        self.day: Optional[date] = None
        self.period: Optional[ServicePeriod] = None
        self.error: Optional[str] = None
        self._cell: LatestResultCell[Optional[DayFeed]] = LatestResultCell(None)
        self._subscription: Optional[Subscription] = None
        self._pending_refresh: Optional[asyncio.Task] = None

    @property
    def state(self) -> TimelineState:
        return self.render_model.state

    @property
    def model(self) -> Optional[TimelineModel]:
        return self.render_model.model

    # ========================================================================
    # Triggers
    # ========================================================================

    async def select_date(self, day: date) -> CommitOutcome:
        """Switch the timeline to ``day``, re-subscribe to its changes and reload."""
        self.day = day
        if self.bridge is not None:
            if self._subscription is not None:
                self._subscription.unsubscribe()
            self._subscription = self.bridge.subscribe(day, self._on_remote_change)
        return await self.load(RefreshReason.DATE_CHANGED)

    async def refresh(self) -> CommitOutcome:
        """Manual refresh of the current date."""
        return await self.load(RefreshReason.MANUAL)

    def set_period(self, period: Optional[ServicePeriod]) -> Optional[TimelineModel]:
        """Narrow the window to lunch or dinner (None for the whole day) without refetching."""
        self.period = period
        if self.render_model.inputs is None:
            return None
        return self.render_model.change(period=period)

    def _on_remote_change(self, day: date) -> None:
        if day != self.day:
            return
        if self._pending_refresh is not None and not self._pending_refresh.done():
            self._pending_refresh.cancel()
        self._pending_refresh = asyncio.get_running_loop().create_task(self._debounced_refresh())

    async def _debounced_refresh(self) -> None:
        await asyncio.sleep(self.debounce_seconds)
        await self.load(RefreshReason.PUSH_NOTIFICATION)

    async def wait_for_pending_refresh(self) -> None:
        """Wait for a scheduled push refresh to finish, if any."""
        task = self._pending_refresh
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    def close(self) -> None:
        """Drop the push subscription and any scheduled refresh."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        if self._pending_refresh is not None and not self._pending_refresh.done():
            self._pending_refresh.cancel()

    # ========================================================================
    # Loading
    # ========================================================================

    async def _fetch(self, day: date) -> DayFeed:
        try:
            return await asyncio.wait_for(self.feed.fetch(day), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise FetchError(
                "load_timeline",
                f"Timeout: load_timeline took longer than {self.timeout_seconds:g} seconds",
                timed_out=True,
            ) from e
        except FetchError:
            raise
        except Exception as e:
            logger.error(f"Unexpected timeline failure for {day}: {e}", exc_info=True)
            raise FetchError(
                "load_timeline",
                "Could not load the timeline. Please try again.",
                detail=e,
            ) from e

    async def load(self, reason: RefreshReason) -> CommitOutcome:
        """
        Full reload of reservations, tables and schedule for the selected date.

        On failure the timeline is rendered empty and the notifier is called
        once; nothing is retried.

        Args:
            reason: What triggered the reload

        Returns:
            COMMITTED when this load produced the visible model, STALE when a
            newer load started while it was in flight
        """
        if self.day is None:
            raise RuntimeError("No date selected")

        day = self.day
        sequence = self._cell.next_sequence()
        self.render_model.mark_loading()

        with LogContext("load_timeline", logger, reason=reason.value, sequence=sequence) as ctx:
            try:
                feed = await self._fetch(day)
            except FetchError as e:
                if not self._cell.is_latest(sequence):
                    logger.debug(f"Discarding stale timeline failure #{sequence} for {day}")
                    return CommitOutcome.STALE
                self._cell.commit(sequence, None)
                self.error = e.user_message
                self.notifier.notify("Error", e.user_message, NotificationLevel.ERROR)
                self.render_model.update(TimelineInputs(day=day, period=self.period))
                return CommitOutcome.COMMITTED

            if self._cell.commit(sequence, feed) == CommitOutcome.STALE:
                logger.debug(f"Discarding stale timeline response #{sequence} for {day}")
                return CommitOutcome.STALE

            intervals = resolve_intervals_for_date(
                day,
                feed.intervals,
                feed.special_days.closed_days,
                feed.special_days.schedule_days,
            )
            self.error = None
            self.render_model.update(TimelineInputs(
                day=day,
                tables=feed.tables,
                reservations=feed.reservations,
                intervals=tuple(intervals),
                period=self.period,
            ))
            ctx.log(
                "debug",
                f"Timeline loaded for {day}",
                reservations=len(feed.reservations),
                tables=len(feed.tables),
            )
            return CommitOutcome.COMMITTED
