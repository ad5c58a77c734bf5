"""Core data models for dealbook."""

from dealbook.models.base import DealOutcome, DealStatus, FrozenModel
from dealbook.models.events import (
    AuctionCreated,
    AuctionEnded,
    BidPlaced,
    DealClosed,
    LedgerEvent,
    OfferCancelled,
    OfferCreated,
    OfferTaken,
)
from dealbook.models.records import AuctionRecord, CDPDeal, CDPOffer
from dealbook.models.value import Value

__all__ = [
    "AuctionCreated",
    "AuctionEnded",
    "AuctionRecord",
    "BidPlaced",
    "CDPDeal",
    "CDPOffer",
    "DealClosed",
    "DealOutcome",
    "DealStatus",
    "FrozenModel",
    "LedgerEvent",
    "OfferCancelled",
    "OfferCreated",
    "OfferTaken",
    "Value",
]
