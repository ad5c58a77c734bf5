"""Fungible balances per address and asset kind."""

from __future__ import annotations

from collections import defaultdict

import structlog

from dealbook.errors import InsufficientFunds, InvalidAmount
from dealbook.models import Value

logger = structlog.get_logger(__name__)


class Accounts:
    """Custody primitive: moves value between addresses and records.

    Each address holds one ``Value`` per kind. A withdrawal splits a value
    off the holding and hands it out; it must end up deposited somewhere
    (another address or a record), where it is merged back in. ``mint`` is
    the only source of new value.
    """

    def __init__(self) -> None:
        self._holdings: dict[tuple[str, str], Value] = {}
        self._supply: dict[str, int] = defaultdict(int)

    def _holding(self, address: str, kind: str) -> Value:
        return self._holdings.get((address, kind), Value.zero(kind))

    def mint(self, address: str, kind: str, amount: int) -> None:
        """Fund an address from outside the system."""
        if amount < 0:
            raise InvalidAmount(f"Cannot mint a negative amount, got {amount}")
        self.deposit(address, Value(kind=kind, amount=amount))
        self._supply[kind] += amount
        logger.info("funds_minted", address=address, kind=kind, amount=amount)

    def withdraw(self, address: str, kind: str, amount: int) -> Value:
        if amount < 0:
            raise InvalidAmount(f"Cannot withdraw a negative amount, got {amount}")
        held = self._holding(address, kind)
        if amount > held.amount:
            logger.warning(
                "withdraw_insufficient_funds",
                address=address,
                kind=kind,
                required=amount,
                available=held.amount,
            )
            raise InsufficientFunds(
                f"{address} holds {held.amount} {kind}, needs {amount}",
                required=amount,
                available=held.amount,
            )
        remaining, taken = held.split(amount)
        self._holdings[(address, kind)] = remaining
        return taken

    def deposit(self, address: str, value: Value) -> None:
        key = (address, value.kind)
        self._holdings[key] = self._holding(address, value.kind).merge(value)

    def balance(self, address: str, kind: str) -> int:
        return self._holding(address, kind).amount

    def balances(self, address: str) -> dict[str, int]:
        """All non-zero balances of an address, by kind."""
        return {
            kind: value.amount
            for (addr, kind), value in self._holdings.items()
            if addr == address and not value.is_zero
        }

    def total_supply(self, kind: str) -> int:
        """Everything ever minted of ``kind``, wherever it is held now."""
        return self._supply[kind]

    def circulating(self, kind: str) -> int:
        """Sum of address balances of ``kind`` (excludes value held by records)."""
        return sum(
            value.amount for (_, k), value in self._holdings.items() if k == kind
        )

    @staticmethod
    def zero_value(kind: str) -> Value:
        return Value.zero(kind)

    @staticmethod
    def value_of(value: Value) -> int:
        return value.amount

    # Values are immutable, so shallow copies are full snapshots
    def snapshot(self) -> tuple[dict[tuple[str, str], Value], dict[str, int]]:
        return dict(self._holdings), dict(self._supply)

    def restore(self, snapshot: tuple[dict[tuple[str, str], Value], dict[str, int]]) -> None:
        holdings, supply = snapshot
        self._holdings = dict(holdings)
        self._supply = defaultdict(int, supply)
