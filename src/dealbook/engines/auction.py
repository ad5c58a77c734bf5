"""Ascending auction for a custodied lot.

One auction lives under its owner's address per (lot kind, price kind) pair.
The record holds the lot and the current highest bid; an outbid bidder is
refunded in the same unit that accepts the new bid, and ending the auction
pays the owner and delivers the lot in one unit.
"""

from __future__ import annotations

import structlog

from dealbook.errors import InvalidAmount, InvalidBid
from dealbook.ledger import Ledger, RecordKey
from dealbook.models import (
    AuctionCreated,
    AuctionEnded,
    AuctionRecord,
    BidPlaced,
    Value,
)

logger = structlog.get_logger(__name__)

RECORD_TYPE = "auction"


class AuctionEngine:
    """Auction lifecycle for a single (lot kind, price kind) pair."""

    def __init__(self, ledger: Ledger, lot_kind: str, price_kind: str):
        self._ledger = ledger
        self._lot_kind = lot_kind
        self._price_kind = price_kind

    @property
    def lot_kind(self) -> str:
        return self._lot_kind

    @property
    def price_kind(self) -> str:
        return self._price_kind

    def key(self, owner: str) -> RecordKey:
        return RecordKey(owner, RECORD_TYPE, (self._lot_kind, self._price_kind))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create(self, owner: str, start_price: int, lot: Value, ends_at: int = 0) -> None:
        """Publish a new auction holding ``lot`` under ``owner``.

        ``ends_at`` is stored with the record but no operation compares it
        with a clock.
        """
        self._check_kind(lot, self._lot_kind, "lot")
        if start_price < 0:
            raise InvalidAmount(f"start_price cannot be negative, got {start_price}")
        if ends_at < 0:
            raise InvalidAmount(f"ends_at cannot be negative, got {ends_at}")

        record = AuctionRecord(
            owner=owner,
            lot=lot,
            max_bid=Value.zero(self._price_kind),
            start_price=start_price,
            bidder=owner,
            ends_at=ends_at,
        )
        with self._ledger.atomic() as ledger:
            ledger.store.publish(self.key(owner), record)
            ledger.emit(
                AuctionCreated(
                    lot_kind=self._lot_kind,
                    price_kind=self._price_kind,
                    owner=owner,
                    lot_amount=lot.amount,
                    start_price=start_price,
                    ends_at=ends_at,
                )
            )
        logger.info(
            "auction_created",
            owner=owner,
            lot=f"{lot.amount} {self._lot_kind}",
            start_price=start_price,
            ends_at=ends_at,
        )

    def open(self, owner: str, lot_amount: int, start_price: int, ends_at: int = 0) -> None:
        """Withdraw the lot from the owner's balance and create the auction."""
        with self._ledger.atomic() as ledger:
            lot = ledger.accounts.withdraw(owner, self._lot_kind, lot_amount)
            self.create(owner, start_price, lot, ends_at)

    def place_bid(self, bidder: str, owner: str, bid: Value) -> None:
        """Replace the current highest bid with ``bid``.

        Accepted only if it is strictly greater than the current bid, at
        least the start price, and not placed by the current highest bidder.
        The previous bid is refunded in full to its bidder.
        """
        self._check_kind(bid, self._price_kind, "bid")
        with self._ledger.atomic() as ledger:
            key = self.key(owner)
            record: AuctionRecord = ledger.store.read(key)

            reason = None
            if bid.amount <= record.max_bid.amount:
                reason = "not_above_max_bid"
            elif bidder == record.bidder:
                reason = "already_highest_bidder"
            elif bid.amount < record.start_price:
                reason = "below_start_price"
            if reason is not None:
                logger.warning(
                    "bid_rejected",
                    owner=owner,
                    bidder=bidder,
                    amount=bid.amount,
                    max_bid=record.max_bid.amount,
                    start_price=record.start_price,
                    reason=reason,
                )
                raise InvalidBid(
                    f"Bid of {bid.amount} {self._price_kind} by {bidder} rejected: {reason}"
                )

            if record.has_bid:
                ledger.accounts.deposit(record.bidder, record.max_bid)

            ledger.store.replace(
                key,
                AuctionRecord(**{**dict(record), "max_bid": bid, "bidder": bidder}),
            )
            ledger.emit(
                BidPlaced(
                    lot_kind=self._lot_kind,
                    price_kind=self._price_kind,
                    owner=owner,
                    bidder=bidder,
                    amount=bid.amount,
                )
            )
        logger.info(
            "bid_placed",
            owner=owner,
            bidder=bidder,
            amount=bid.amount,
            refunded=record.bidder if record.has_bid else None,
        )

    def bid(self, bidder: str, owner: str, amount: int) -> None:
        """Withdraw ``amount`` from the bidder's balance and place it as a bid."""
        with self._ledger.atomic() as ledger:
            value = ledger.accounts.withdraw(bidder, self._price_kind, amount)
            self.place_bid(bidder, owner, value)

    def end_auction(self, owner: str) -> tuple[str, int]:
        """Settle the auction published under ``owner``.

        The owner receives the highest bid and the highest bidder receives
        the lot. With no bid placed the lot goes back to the owner.

        Returns:
            (winner address, amount paid to the owner).
        """
        with self._ledger.atomic() as ledger:
            record: AuctionRecord = ledger.store.take(self.key(owner))
            ledger.accounts.deposit(record.owner, record.max_bid)
            ledger.accounts.deposit(record.bidder, record.lot)
            ledger.emit(
                AuctionEnded(
                    lot_kind=self._lot_kind,
                    price_kind=self._price_kind,
                    owner=owner,
                    winner=record.bidder,
                    lot_amount=record.lot.amount,
                    payout=record.max_bid.amount,
                )
            )
        logger.info(
            "auction_ended",
            owner=owner,
            winner=record.bidder,
            lot_amount=record.lot.amount,
            payout=record.max_bid.amount,
        )
        return record.bidder, record.max_bid.amount

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def has_auction(self, owner: str) -> bool:
        with self._ledger.reading() as ledger:
            return ledger.store.exists(self.key(owner))

    def get_details(self, owner: str) -> tuple[int, int, int]:
        """Return (start_price, lot amount, max bid amount)."""
        with self._ledger.reading() as ledger:
            record: AuctionRecord = ledger.store.read(self.key(owner))
        return record.start_price, record.lot.amount, record.max_bid.amount

    def get_bidder(self, owner: str) -> str:
        with self._ledger.reading() as ledger:
            record: AuctionRecord = ledger.store.read(self.key(owner))
        return record.bidder

    def get_record(self, owner: str) -> AuctionRecord:
        with self._ledger.reading() as ledger:
            return ledger.store.read(self.key(owner))

    @staticmethod
    def _check_kind(value: Value, expected: str, role: str) -> None:
        if value.kind != expected:
            raise InvalidAmount(f"{role} must be {expected}, got {value.kind}")
