"""Ledger: record store + balances executed as serialized, all-or-nothing units."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Protocol

import structlog

from dealbook.ledger.accounts import Accounts
from dealbook.ledger.store import RecordStore

if TYPE_CHECKING:
    from dealbook.models import LedgerEvent, Value

logger = structlog.get_logger(__name__)


class EventSink(Protocol):
    def emit(self, event: LedgerEvent) -> None: ...


class Ledger:
    """Shared state every engine operates on.

    Writes go through ``atomic()``, which holds a re-entrant lock for the
    whole unit; reads use ``reading()``, which takes the lock only. Each
    unit snapshots the store and the balances on entry; if anything inside
    raises, both are restored and the events buffered by that unit are
    dropped. Events reach the sink only once the outermost unit has
    committed.
    """

    def __init__(self, event_sink: EventSink | None = None):
        self._store = RecordStore()
        self._accounts = Accounts()
        self._event_sink = event_sink
        self._lock = threading.RLock()
        self._depth = 0
        self._pending: list[LedgerEvent] = []

    @property
    def store(self) -> RecordStore:
        return self._store

    @property
    def accounts(self) -> Accounts:
        return self._accounts

    @property
    def event_sink(self) -> EventSink | None:
        return self._event_sink

    @event_sink.setter
    def event_sink(self, value: EventSink | None) -> None:
        self._event_sink = value

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def atomic(self) -> Iterator[Ledger]:
        """Run the enclosed block as one unit.

        Every unit, nested or not, restores its own entry state when it
        raises, so a failed inner unit caught by the caller leaves nothing
        behind in the outer one.
        """
        with self._lock:
            snapshot = (self._store.snapshot(), self._accounts.snapshot())
            pending_mark = len(self._pending)
            outermost = self._depth == 0
            self._depth += 1
            try:
                yield self
            except BaseException as exc:
                self._store.restore(snapshot[0])
                self._accounts.restore(snapshot[1])
                dropped = len(self._pending) - pending_mark
                del self._pending[pending_mark:]
                logger.warning(
                    "ledger_rollback",
                    error=type(exc).__name__,
                    reason=str(exc),
                    nested=not outermost,
                    dropped_events=dropped,
                )
                raise
            finally:
                self._depth -= 1

            if outermost:
                committed, self._pending = self._pending, []
                for event in committed:
                    self._deliver(event)

    @contextmanager
    def reading(self) -> Iterator[Ledger]:
        """Hold the ledger lock for a read without opening a unit."""
        with self._lock:
            yield self

    def emit(self, event: LedgerEvent) -> None:
        """Queue an event for delivery when the current unit commits."""
        if self._depth > 0:
            self._pending.append(event)
        else:
            self._deliver(event)

    def _deliver(self, event: LedgerEvent) -> None:
        if self._event_sink is not None:
            self._event_sink.emit(event)

    # ------------------------------------------------------------------
    # Balance helpers (single steps that fail before mutating anything)
    # ------------------------------------------------------------------

    def mint(self, address: str, kind: str, amount: int) -> None:
        with self._lock:
            self._accounts.mint(address, kind, amount)

    def withdraw(self, address: str, kind: str, amount: int) -> Value:
        with self._lock:
            return self._accounts.withdraw(address, kind, amount)

    def deposit(self, address: str, value: Value) -> None:
        with self._lock:
            self._accounts.deposit(address, value)

    def balance(self, address: str, kind: str) -> int:
        with self._lock:
            return self._accounts.balance(address, kind)
