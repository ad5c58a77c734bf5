"""Price oracle interface and an in-memory implementation."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod

import structlog

from dealbook.errors import InvalidParameters, NoPriceFeed

logger = structlog.get_logger(__name__)

DEFAULT_DECIMALS = 8


class PriceOracle(ABC):
    """Supplies fixed-point exchange rates between asset kinds.

    A rate for ``(a, b)`` is an integer scaled by ``10 ** decimals``.
    """

    @property
    @abstractmethod
    def decimals(self) -> int:
        """Number of fixed-point decimals in every rate."""

    @abstractmethod
    def has_rate(self, kind_a: str, kind_b: str) -> bool:
        """Return True if a rate for the pair is available."""

    @abstractmethod
    def get_rate(self, kind_a: str, kind_b: str) -> int:
        """Return the current rate. Raises NoPriceFeed if there is none."""

    @property
    def scale(self) -> int:
        return 10**self.decimals


class StaticPriceOracle(PriceOracle):
    """Oracle backed by a dict of directional rates, updated by hand."""

    def __init__(
        self,
        rates: dict[tuple[str, str], int] | None = None,
        decimals: int = DEFAULT_DECIMALS,
    ):
        if decimals < 0:
            raise InvalidParameters(f"decimals cannot be negative, got {decimals}")
        self._decimals = decimals
        self._lock = threading.Lock()
        self._rates: dict[tuple[str, str], int] = {}
        for (kind_a, kind_b), rate in (rates or {}).items():
            self.set_rate(kind_a, kind_b, rate)

    @property
    def decimals(self) -> int:
        return self._decimals

    def set_rate(self, kind_a: str, kind_b: str, rate: int) -> None:
        if not isinstance(rate, int) or rate <= 0:
            raise InvalidParameters(f"Rate must be a positive integer, got {rate!r}")
        with self._lock:
            previous = self._rates.get((kind_a, kind_b))
            self._rates[(kind_a, kind_b)] = rate
        logger.info(
            "price_updated",
            pair=f"{kind_a}/{kind_b}",
            rate=rate,
            previous=previous,
        )

    def remove_rate(self, kind_a: str, kind_b: str) -> None:
        with self._lock:
            self._rates.pop((kind_a, kind_b), None)
        logger.info("price_removed", pair=f"{kind_a}/{kind_b}")

    def has_rate(self, kind_a: str, kind_b: str) -> bool:
        with self._lock:
            return (kind_a, kind_b) in self._rates

    def get_rate(self, kind_a: str, kind_b: str) -> int:
        with self._lock:
            rate = self._rates.get((kind_a, kind_b))
        if rate is None:
            raise NoPriceFeed(f"No price feed for {kind_a}/{kind_b}")
        return rate
