"""Auction and CDP engines."""

from dealbook.engines.auction import AuctionEngine
from dealbook.engines.cdp import CDPEngine, margin_call_rate, required_collateral

__all__ = [
    "AuctionEngine",
    "CDPEngine",
    "margin_call_rate",
    "required_collateral",
]
