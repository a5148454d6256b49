"""Callback registry for :mod:`pytempest.state.events`."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from pytempest.state.events import TempestEvent

_logger = logging.getLogger(__name__)

EventCallback = Callable[[Any], None]


class EventDispatcher:
    """Deliver published events to registered subscribers, in order.

    Subscribers may filter on one event class. A subscriber that raises is
    logged and skipped; it never interrupts delivery to the others or the
    publisher's own control flow.
    """

    def __init__(self) -> None:
        self._subscribers: list[tuple[type[Any] | None, EventCallback]] = []

    def subscribe(self, callback: EventCallback, *, event_type: type[Any] | None = None) -> Callable[[], None]:
        """Register *callback*; returns a function that removes it again."""
        entry = (event_type, callback)
        self._subscribers.append(entry)

        def _unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return _unsubscribe

    def publish(self, event: TempestEvent) -> None:
        for event_type, callback in list(self._subscribers):
            if event_type is not None and not isinstance(event, event_type):
                continue
            try:
                callback(event)
            except Exception:
                _logger.debug("Event subscriber failed for %s", type(event).__name__, exc_info=True)

    def __len__(self) -> int:
        return len(self._subscribers)
