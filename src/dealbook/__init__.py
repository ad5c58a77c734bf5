"""Ascending auctions and collateralized debt positions over an address-keyed ledger."""

from dealbook.engines import AuctionEngine, CDPEngine
from dealbook.ledger import Ledger
from dealbook.market import Market
from dealbook.models import DealStatus, Value
from dealbook.oracle import PriceOracle, StaticPriceOracle

__version__ = "0.1.0"

__all__ = [
    "AuctionEngine",
    "CDPEngine",
    "DealStatus",
    "Ledger",
    "Market",
    "PriceOracle",
    "StaticPriceOracle",
    "Value",
]
