"""Event models delivered to the event sink when an operation commits."""

from datetime import datetime, timezone
from typing import Literal

from pydantic import Field

from dealbook.models.base import DealOutcome, FrozenModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LedgerEvent(FrozenModel):
    """Common fields of every event."""

    event_type: str
    timestamp: datetime = Field(default_factory=_utcnow)

    def details(self) -> dict:
        """Event-specific fields, JSON-friendly."""
        return self.model_dump(mode="json", exclude={"event_type", "timestamp"})


class AuctionCreated(LedgerEvent):
    event_type: Literal["auction_created"] = "auction_created"
    lot_kind: str
    price_kind: str
    owner: str
    lot_amount: int
    start_price: int
    ends_at: int


class BidPlaced(LedgerEvent):
    event_type: Literal["bid_placed"] = "bid_placed"
    lot_kind: str
    price_kind: str
    owner: str
    bidder: str
    amount: int


class AuctionEnded(LedgerEvent):
    event_type: Literal["auction_ended"] = "auction_ended"
    lot_kind: str
    price_kind: str
    owner: str
    winner: str
    lot_amount: int
    payout: int


class OfferCreated(LedgerEvent):
    event_type: Literal["offer_created"] = "offer_created"
    offered_kind: str
    collateral_kind: str
    lender: str
    amount: int
    collateral_multiplier: int
    margin_call_at: int


class OfferCancelled(LedgerEvent):
    event_type: Literal["offer_cancelled"] = "offer_cancelled"
    offered_kind: str
    collateral_kind: str
    lender: str
    amount: int


class OfferTaken(LedgerEvent):
    event_type: Literal["offer_taken"] = "offer_taken"
    offered_kind: str
    collateral_kind: str
    lender: str
    borrower: str
    offered_amount: int
    collateral_amount: int
    margin_call_rate: int
    current_rate: int


class DealClosed(LedgerEvent):
    event_type: Literal["deal_closed"] = "deal_closed"
    offered_kind: str
    collateral_kind: str
    borrower: str
    lender: str
    initiative: str
    outcome: DealOutcome
    collateral_amount: int
    offered_amount: int
