"""Append-only event log for auditing auction and CDP activity."""

from __future__ import annotations

import threading
from collections.abc import Callable

import structlog

from dealbook.models import LedgerEvent

logger = structlog.get_logger(__name__)

Subscriber = Callable[[LedgerEvent], None]


class EventLog:
    """Records committed ledger events.

    Events are immutable and kept in commit order. Each one is also logged
    through structlog and handed to every subscriber. Delivery is
    fire-and-forget: a subscriber that raises is logged and skipped.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._history: list[LedgerEvent] = []
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> None:
        with self._lock:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def emit(self, event: LedgerEvent) -> None:
        """Record an event and notify subscribers."""
        with self._lock:
            self._history.append(event)
            subscribers = list(self._subscribers)

        logger.info(
            "ledger_event",
            event_type=event.event_type,
            details=event.details(),
        )

        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.warning(
                    "event_subscriber_failed",
                    event_type=event.event_type,
                    exc_info=True,
                )

    def events(self, event_type: str | None = None) -> list[LedgerEvent]:
        """Return recorded events, optionally filtered by type."""
        with self._lock:
            if event_type is None:
                return list(self._history)
            return [e for e in self._history if e.event_type == event_type]

    def last(self, event_type: str | None = None) -> LedgerEvent | None:
        matching = self.events(event_type)
        return matching[-1] if matching else None

    def clear(self) -> None:
        with self._lock:
            self._history.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._history)
