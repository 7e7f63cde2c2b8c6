"""
Notification Bus - Broadcasts the match state to observers.

Renderers and the network bridge subscribe here and re-read the state on
every notification. A failing observer is logged and skipped; it never
aborts the broadcast or the mutation that triggered it.
"""

from __future__ import annotations
from typing import Callable
import logging

from .state import MatchState

logger = logging.getLogger(__name__)

Subscriber = Callable[[MatchState], None]


class NotificationBus:
    """Observer list bound to a state source."""

    def __init__(self, source: Callable[[], MatchState]):
        self._source = source
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback and deliver the current state to it right away.

        Returns a handle that unsubscribes the callback when called.
        """
        self._subscribers.append(callback)
        self._deliver(callback, self._source())

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def notify(self):
        """Invoke every subscriber with the current state."""
        state = self._source()
        # Copy so subscribers may unsubscribe while being notified
        for callback in list(self._subscribers):
            self._deliver(callback, state)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _deliver(self, callback: Subscriber, state: MatchState):
        try:
            callback(state)
        except Exception:
            logger.exception("State subscriber %r failed", callback)
