"""Composition root: one ledger, one oracle, one event log, engines per kind pair."""

from __future__ import annotations

import structlog

from dealbook.config import Settings, load_settings
from dealbook.engines.auction import AuctionEngine
from dealbook.engines.cdp import CDPEngine
from dealbook.ledger import Ledger
from dealbook.monitoring.events import EventLog
from dealbook.monitoring.logger import setup_logging
from dealbook.oracle import PriceOracle, StaticPriceOracle

logger = structlog.get_logger(__name__)


class Market:
    """Wires the shared ledger to the auction and CDP engines.

    Engines are created lazily and cached per kind pair, so every caller
    asking for the same pair works against the same engine instance.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        oracle: PriceOracle | None = None,
        configure_logging: bool = False,
    ):
        self._settings = settings or load_settings()
        if configure_logging:
            setup_logging(self._settings.log_level, json_output=self._settings.log_json)

        self._events = EventLog()
        self._ledger = Ledger(event_sink=self._events)
        self._oracle = oracle or StaticPriceOracle(
            rates=self._settings.feed_pairs(),
            decimals=self._settings.oracle_decimals,
        )
        self._auctions: dict[tuple[str, str], AuctionEngine] = {}
        self._cdps: dict[tuple[str, str], CDPEngine] = {}

        logger.info(
            "market_started",
            oracle=type(self._oracle).__name__,
            oracle_decimals=self._oracle.decimals,
            price_feeds=sorted(self._settings.price_feeds),
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def oracle(self) -> PriceOracle:
        return self._oracle

    @property
    def events(self) -> EventLog:
        return self._events

    def auction(self, lot_kind: str, price_kind: str) -> AuctionEngine:
        key = (lot_kind, price_kind)
        if key not in self._auctions:
            self._auctions[key] = AuctionEngine(self._ledger, lot_kind, price_kind)
        return self._auctions[key]

    def cdp(self, offered_kind: str, collateral_kind: str) -> CDPEngine:
        key = (offered_kind, collateral_kind)
        if key not in self._cdps:
            self._cdps[key] = CDPEngine(
                self._ledger, self._oracle, offered_kind, collateral_kind
            )
        return self._cdps[key]

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    def mint(self, address: str, kind: str, amount: int) -> None:
        self._ledger.mint(address, kind, amount)

    def balance(self, address: str, kind: str) -> int:
        return self._ledger.balance(address, kind)
