"""Ledger records owned by the auction and CDP engines.

Every record is frozen. Engines replace a record wholesale when its state
changes and take it out of the store when it is settled.
"""

from pydantic import Field, model_validator

from dealbook.models.base import FrozenModel
from dealbook.models.value import Value


class AuctionRecord(FrozenModel):
    """A live auction published under its owner's address."""

    owner: str
    lot: Value
    max_bid: Value
    start_price: int = Field(ge=0)
    bidder: str
    ends_at: int = Field(default=0, ge=0)  # stored, never checked against a clock

    @model_validator(mode="after")
    def check_bid_holder(self) -> "AuctionRecord":
        # The owner may outbid others later, but nobody else holds a zero bid
        if self.max_bid.is_zero and self.bidder != self.owner:
            raise ValueError("Only the owner can be the bidder while no bid is held")
        return self

    @property
    def has_bid(self) -> bool:
        return not self.max_bid.is_zero


class CDPOffer(FrozenModel):
    """Funds a lender is willing to lend against collateral."""

    lender: str
    offered: Value
    collateral_multiplier: int
    margin_call_at: int


class CDPDeal(FrozenModel):
    """A taken offer: principal released to the borrower, collateral locked."""

    borrower: str
    lender: str
    offered_amount: int = Field(gt=0)
    collateral: Value
    margin_call_rate: int = Field(ge=0)
    current_rate: int = Field(ge=0)
