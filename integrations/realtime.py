"""
Push-notification bridge for reservation changes.

The backend's change channel is adapted onto ``publish``; controllers
subscribe for the date they display and reload when it changes.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, List, Optional


logger = logging.getLogger(__name__)

RefreshCallback = Callable[[date], None]


@dataclass(eq=False)
class Subscription:
    """Handle returned by ``subscribe``; cancel with ``unsubscribe``."""

    bridge: "RealtimeRefreshBridge"
    day: date
    callback: RefreshCallback
    active: bool = True

    def unsubscribe(self) -> None:
        if self.active:
            self.bridge._remove(self)
            self.active = False


@dataclass
class RealtimeRefreshBridge:
    """Fan-out of "reservations changed" events to per-date subscribers."""

    _subscribers: Dict[date, List[Subscription]] = field(default_factory=lambda: defaultdict(list))

    def subscribe(self, day: date, callback: RefreshCallback) -> Subscription:
        subscription = Subscription(bridge=self, day=day, callback=callback)
        self._subscribers[day].append(subscription)
        logger.debug(f"Subscribed to reservation changes for {day}")
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        subscribers = self._subscribers.get(subscription.day, [])
        if subscription in subscribers:
            subscribers.remove(subscription)
        if not subscribers:
            self._subscribers.pop(subscription.day, None)

    def subscriber_count(self, day: Optional[date] = None) -> int:
        if day is not None:
            return len(self._subscribers.get(day, []))
        return sum(len(subs) for subs in self._subscribers.values())

    def publish(self, day: date) -> int:
        """
        Notify subscribers of ``day`` that its reservations changed.

        A failing callback is logged and does not stop delivery to the others.

        Returns:
            Number of callbacks invoked
        """
        delivered = 0
        for subscription in list(self._subscribers.get(day, [])):
            try:
                subscription.callback(day)
                delivered += 1
            except Exception as e:
                logger.error(f"Refresh callback failed for {day}: {e}", exc_info=True)
        return delivered

    def publish_all(self) -> int:
        """Notify every subscriber, used when a change carries no date."""
        return sum(self.publish(day) for day in list(self._subscribers))
