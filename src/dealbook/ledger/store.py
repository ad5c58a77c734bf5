"""Address-keyed record store.

Each key holds at most one live record. A key is the owning address plus the
record type and its kind parameters, so one address can own one auction per
kind pair, one offer per kind pair, and so on.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from dealbook.errors import DuplicateRecord, NotFound

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RecordKey:
    """Storage key: owning address + record type + kind parameters."""

    address: str
    record_type: str
    kinds: tuple[str, ...] = ()

    def __str__(self) -> str:
        params = ", ".join(self.kinds)
        return f"{self.record_type}<{params}>@{self.address}"


class RecordStore:
    """In-memory table of published records.

    Not thread-safe on its own; ``Ledger`` serializes access.
    """

    def __init__(self) -> None:
        self._records: dict[RecordKey, Any] = {}

    def publish(self, key: RecordKey, record: Any) -> None:
        if key in self._records:
            raise DuplicateRecord(f"Record already exists: {key}")
        self._records[key] = record
        logger.debug("record_published", key=str(key))

    def read(self, key: RecordKey) -> Any:
        try:
            return self._records[key]
        except KeyError:
            raise NotFound(f"No record at {key}") from None

    def replace(self, key: RecordKey, record: Any) -> None:
        """Swap the record at an occupied key for its updated version."""
        if key not in self._records:
            raise NotFound(f"No record at {key}")
        self._records[key] = record

    def take(self, key: RecordKey) -> Any:
        """Remove and return the record. The key is free afterwards."""
        try:
            record = self._records.pop(key)
        except KeyError:
            raise NotFound(f"No record at {key}") from None
        logger.debug("record_taken", key=str(key))
        return record

    def exists(self, key: RecordKey) -> bool:
        return key in self._records

    def keys(self, record_type: str | None = None) -> list[RecordKey]:
        return [
            k for k in self._records
            if record_type is None or k.record_type == record_type
        ]

    def __len__(self) -> int:
        return len(self._records)

    # ------------------------------------------------------------------
    # Rollback support
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[RecordKey, Any]:
        # Records are frozen models, a shallow copy is a full snapshot
        return dict(self._records)

    def restore(self, snapshot: dict[RecordKey, Any]) -> None:
        self._records = dict(snapshot)
