"""Shared fixtures for dealbook tests."""

import pytest

from dealbook.engines import AuctionEngine, CDPEngine
from dealbook.ledger import Ledger
from dealbook.models import Value
from dealbook.monitoring import EventLog
from dealbook.oracle import StaticPriceOracle

# 1 USD = 2 ETH at 8 decimals
RATE = 2 * 10**8


@pytest.fixture
def event_log():
    return EventLog()


@pytest.fixture
def ledger(event_log):
    return Ledger(event_sink=event_log)


@pytest.fixture
def oracle():
    return StaticPriceOracle({("USD", "ETH"): RATE})


@pytest.fixture
def auctions(ledger):
    return AuctionEngine(ledger, "NFT", "USD")


@pytest.fixture
def cdp(ledger, oracle):
    return CDPEngine(ledger, oracle, "USD", "ETH")


@pytest.fixture
def custodied():
    """Total of ``kind`` held by addresses plus everything locked in records."""

    def _custodied(ledger: Ledger, kind: str) -> int:
        total = ledger.accounts.circulating(kind)
        for key in ledger.store.keys():
            record = ledger.store.read(key)
            for name in type(record).model_fields:
                value = getattr(record, name)
                if isinstance(value, Value) and value.kind == kind:
                    total += value.amount
        return total

    return _custodied
