"""Ledger package: record store, balances and atomic units."""

from dealbook.ledger.accounts import Accounts
from dealbook.ledger.ledger import EventSink, Ledger
from dealbook.ledger.store import RecordKey, RecordStore

__all__ = [
    "Accounts",
    "EventSink",
    "Ledger",
    "RecordKey",
    "RecordStore",
]
