"""Collateralized debt positions.

A lender publishes an offer of funds for one (offered kind, collateral kind)
pair. A borrower taking the offer locks collateral worth
``collateral_multiplier`` percent of the loan at the current oracle rate and
receives the funds. The deal's margin status is recomputed from the oracle
on every read:

    OKAY              rate <  margin_call_rate
    PAST_MARGIN_CALL  rate >= margin_call_rate

While OKAY only the borrower can close the deal, by repaying. Once past the
margin call only the lender can close it, either by seizing the collateral
or by putting it up for auction under the lender's address.
"""

from __future__ import annotations

import structlog

from dealbook.engines.auction import AuctionEngine
from dealbook.errors import (
    DuplicateRecord,
    InsufficientFunds,
    InvalidAmount,
    InvalidParameters,
    NoPriceFeed,
    NotFound,
    Unauthorized,
    WrongDealState,
)
from dealbook.ledger import Ledger, RecordKey
from dealbook.models import (
    CDPDeal,
    CDPOffer,
    DealClosed,
    DealOutcome,
    DealStatus,
    OfferCancelled,
    OfferCreated,
    OfferTaken,
    Value,
)
from dealbook.oracle import PriceOracle

logger = structlog.get_logger(__name__)

OFFER_RECORD_TYPE = "cdp_offer"
DEAL_RECORD_TYPE = "cdp_deal"

PERCENT = 100


def required_collateral(
    offered_amount: int, rate: int, collateral_multiplier: int, scale: int
) -> int:
    """Collateral owed for a loan, truncated toward zero.

    Multiplies first and divides in a fixed order so results match exactly
    across implementations; the truncation loses up to one unit per division.
    """
    return offered_amount * rate * collateral_multiplier // PERCENT // scale


def margin_call_rate(rate: int, margin_call_at: int) -> int:
    """Absolute price level at which a deal opened at ``rate`` is liquidatable."""
    return rate * margin_call_at // PERCENT


class CDPEngine:
    """Offer and deal lifecycle for a single (offered kind, collateral kind) pair."""

    def __init__(
        self,
        ledger: Ledger,
        oracle: PriceOracle,
        offered_kind: str,
        collateral_kind: str,
    ):
        self._ledger = ledger
        self._oracle = oracle
        self._offered_kind = offered_kind
        self._collateral_kind = collateral_kind
        # Liquidated collateral is sold for the offered kind
        self._auctions = AuctionEngine(ledger, collateral_kind, offered_kind)

    @property
    def offered_kind(self) -> str:
        return self._offered_kind

    @property
    def collateral_kind(self) -> str:
        return self._collateral_kind

    @property
    def auctions(self) -> AuctionEngine:
        """Engine for the auctions created by liquidation."""
        return self._auctions

    def offer_key(self, lender: str) -> RecordKey:
        return RecordKey(
            lender, OFFER_RECORD_TYPE, (self._offered_kind, self._collateral_kind)
        )

    def deal_key(self, borrower: str) -> RecordKey:
        return RecordKey(
            borrower, DEAL_RECORD_TYPE, (self._offered_kind, self._collateral_kind)
        )

    # ------------------------------------------------------------------
    # Offers
    # ------------------------------------------------------------------

    def create_offer(
        self,
        lender: str,
        offered: Value,
        collateral_multiplier: int,
        margin_call_at: int,
    ) -> None:
        """Publish an offer to lend ``offered`` under the lender's address."""
        if offered.kind != self._offered_kind:
            raise InvalidAmount(
                f"Offered value must be {self._offered_kind}, got {offered.kind}"
            )
        if not self._oracle.has_rate(self._offered_kind, self._collateral_kind):
            raise NoPriceFeed(
                f"No price feed for {self._offered_kind}/{self._collateral_kind}"
            )
        if offered.is_zero:
            raise InvalidAmount("Offered amount must be greater than zero")
        if not (
            collateral_multiplier > margin_call_at
            and collateral_multiplier > PERCENT
            and margin_call_at > 0
        ):
            logger.warning(
                "offer_rejected",
                lender=lender,
                collateral_multiplier=collateral_multiplier,
                margin_call_at=margin_call_at,
            )
            raise InvalidParameters(
                "collateral_multiplier must exceed both 100 and margin_call_at "
                f"(got {collateral_multiplier}, margin_call_at={margin_call_at})"
            )

        offer = CDPOffer(
            lender=lender,
            offered=offered,
            collateral_multiplier=collateral_multiplier,
            margin_call_at=margin_call_at,
        )
        with self._ledger.atomic() as ledger:
            ledger.store.publish(self.offer_key(lender), offer)
            ledger.emit(
                OfferCreated(
                    offered_kind=self._offered_kind,
                    collateral_kind=self._collateral_kind,
                    lender=lender,
                    amount=offered.amount,
                    collateral_multiplier=collateral_multiplier,
                    margin_call_at=margin_call_at,
                )
            )
        logger.info(
            "offer_created",
            lender=lender,
            amount=offered.amount,
            collateral_multiplier=collateral_multiplier,
            margin_call_at=margin_call_at,
        )

    def offer(
        self,
        lender: str,
        amount: int,
        collateral_multiplier: int,
        margin_call_at: int,
    ) -> None:
        """Withdraw ``amount`` from the lender's balance and publish it as an offer."""
        with self._ledger.atomic() as ledger:
            offered = ledger.accounts.withdraw(lender, self._offered_kind, amount)
            self.create_offer(lender, offered, collateral_multiplier, margin_call_at)

    def cancel_offer(self, lender: str) -> int:
        """Withdraw an untaken offer. Returns the amount given back to the lender."""
        with self._ledger.atomic() as ledger:
            offer: CDPOffer = ledger.store.take(self.offer_key(lender))
            ledger.accounts.deposit(lender, offer.offered)
            ledger.emit(
                OfferCancelled(
                    offered_kind=self._offered_kind,
                    collateral_kind=self._collateral_kind,
                    lender=lender,
                    amount=offer.offered.amount,
                )
            )
        logger.info("offer_cancelled", lender=lender, amount=offer.offered.amount)
        return offer.offered.amount

    def has_offer(self, lender: str) -> bool:
        with self._ledger.reading() as ledger:
            return ledger.store.exists(self.offer_key(lender))

    def get_offer_details(self, lender: str) -> tuple[int, int, int]:
        """Return (offered amount, collateral_multiplier, margin_call_at)."""
        with self._ledger.reading() as ledger:
            offer: CDPOffer = ledger.store.read(self.offer_key(lender))
        return offer.offered.amount, offer.collateral_multiplier, offer.margin_call_at

    # ------------------------------------------------------------------
    # Origination
    # ------------------------------------------------------------------

    def take_offer(self, borrower: str, lender: str) -> CDPDeal:
        """Consume the lender's offer and open a deal under the borrower's address."""
        with self._ledger.atomic() as ledger:
            offer: CDPOffer = ledger.store.take(self.offer_key(lender))
            deal_key = self.deal_key(borrower)
            if ledger.store.exists(deal_key):
                raise DuplicateRecord(f"{borrower} already has a live deal at {deal_key}")

            rate = self._oracle.get_rate(self._offered_kind, self._collateral_kind)
            to_pay = required_collateral(
                offer.offered.amount,
                rate,
                offer.collateral_multiplier,
                self._oracle.scale,
            )
            call_rate = margin_call_rate(rate, offer.margin_call_at)

            collateral = ledger.accounts.withdraw(borrower, self._collateral_kind, to_pay)
            ledger.accounts.deposit(borrower, offer.offered)

            deal = CDPDeal(
                borrower=borrower,
                lender=lender,
                offered_amount=offer.offered.amount,
                collateral=collateral,
                margin_call_rate=call_rate,
                current_rate=rate,
            )
            ledger.store.publish(deal_key, deal)
            ledger.emit(
                OfferTaken(
                    offered_kind=self._offered_kind,
                    collateral_kind=self._collateral_kind,
                    lender=lender,
                    borrower=borrower,
                    offered_amount=deal.offered_amount,
                    collateral_amount=collateral.amount,
                    margin_call_rate=call_rate,
                    current_rate=rate,
                )
            )
        logger.info(
            "offer_taken",
            lender=lender,
            borrower=borrower,
            offered_amount=deal.offered_amount,
            collateral_amount=collateral.amount,
            rate=rate,
            margin_call_rate=call_rate,
        )
        return deal

    # ------------------------------------------------------------------
    # Margin evaluation
    # ------------------------------------------------------------------

    def check_deal(self, borrower: str) -> DealStatus:
        """Derive the deal's status from the oracle's current rate."""
        with self._ledger.reading():
            return self._status(borrower)

    def has_deal(self, borrower: str) -> bool:
        with self._ledger.reading() as ledger:
            return ledger.store.exists(self.deal_key(borrower))

    def get_deal_details(self, borrower: str) -> tuple[int, int, int, int]:
        """Return (margin_call_rate, current_rate, collateral amount, offered amount)."""
        with self._ledger.reading() as ledger:
            deal: CDPDeal = ledger.store.read(self.deal_key(borrower))
        return (
            deal.margin_call_rate,
            deal.current_rate,
            deal.collateral.amount,
            deal.offered_amount,
        )

    def _status(self, borrower: str) -> DealStatus:
        key = self.deal_key(borrower)
        if not self._ledger.store.exists(key):
            return DealStatus.NOT_MADE
        deal: CDPDeal = self._ledger.store.read(key)
        rate = self._oracle.get_rate(self._offered_kind, self._collateral_kind)
        if rate >= deal.margin_call_rate:
            return DealStatus.PAST_MARGIN_CALL
        return DealStatus.OKAY

    def _require_status(self, borrower: str, expected: DealStatus) -> None:
        status = self._status(borrower)
        if status == DealStatus.NOT_MADE:
            raise NotFound(f"No deal for {borrower} at {self.deal_key(borrower)}")
        if status != expected:
            logger.warning(
                "settlement_wrong_state",
                borrower=borrower,
                status=status.value,
                expected=expected.value,
            )
            raise WrongDealState(
                f"Deal for {borrower} is {status.value}, expected {expected.value}"
            )

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def return_money(self, borrower: str) -> None:
        """Repay the loan and recover the collateral. Deal must be OKAY."""
        with self._ledger.atomic() as ledger:
            self._require_status(borrower, DealStatus.OKAY)
            deal: CDPDeal = ledger.store.take(self.deal_key(borrower))

            available = ledger.accounts.balance(borrower, self._offered_kind)
            if available < deal.offered_amount:
                logger.warning(
                    "repayment_insufficient_funds",
                    borrower=borrower,
                    required=deal.offered_amount,
                    available=available,
                )
                raise InsufficientFunds(
                    f"{borrower} holds {available} {self._offered_kind}, "
                    f"owes {deal.offered_amount}",
                    required=deal.offered_amount,
                    available=available,
                )

            repayment = ledger.accounts.withdraw(
                borrower, self._offered_kind, deal.offered_amount
            )
            ledger.accounts.deposit(deal.lender, repayment)
            ledger.accounts.deposit(borrower, deal.collateral)
            self._emit_closed(deal, initiative=borrower, outcome=DealOutcome.REPAID)
        logger.info(
            "deal_repaid",
            borrower=borrower,
            lender=deal.lender,
            offered_amount=deal.offered_amount,
            collateral_amount=deal.collateral.amount,
        )

    def finish_and_release_funds(self, lender: str, borrower: str) -> int:
        """Seize the collateral of a deal past its margin call.

        Returns the collateral amount transferred to the lender.
        """
        with self._ledger.atomic() as ledger:
            deal = self._take_for_liquidation(lender, borrower)
            ledger.accounts.deposit(lender, deal.collateral)
            self._emit_closed(deal, initiative=lender, outcome=DealOutcome.SEIZED)
        logger.info(
            "deal_liquidated",
            borrower=borrower,
            lender=lender,
            outcome=DealOutcome.SEIZED.value,
            collateral_amount=deal.collateral.amount,
        )
        return deal.collateral.amount

    def finish_and_create_auction(self, lender: str, borrower: str) -> None:
        """Put the collateral of a deal past its margin call up for auction.

        The auction is published under the lender's address with the loan
        amount as start price and no end time.
        """
        with self._ledger.atomic():
            deal = self._take_for_liquidation(lender, borrower)
            self._auctions.create(
                lender,
                start_price=deal.offered_amount,
                lot=deal.collateral,
                ends_at=0,
            )
            self._emit_closed(deal, initiative=lender, outcome=DealOutcome.AUCTIONED)
        logger.info(
            "deal_liquidated",
            borrower=borrower,
            lender=lender,
            outcome=DealOutcome.AUCTIONED.value,
            collateral_amount=deal.collateral.amount,
            start_price=deal.offered_amount,
        )

    def _take_for_liquidation(self, lender: str, borrower: str) -> CDPDeal:
        self._require_status(borrower, DealStatus.PAST_MARGIN_CALL)
        key = self.deal_key(borrower)
        deal: CDPDeal = self._ledger.store.read(key)
        if deal.lender != lender:
            logger.warning(
                "liquidation_unauthorized",
                borrower=borrower,
                caller=lender,
                lender=deal.lender,
            )
            raise Unauthorized(f"{lender} is not the lender of {borrower}'s deal")
        return self._ledger.store.take(key)

    def _emit_closed(self, deal: CDPDeal, initiative: str, outcome: DealOutcome) -> None:
        self._ledger.emit(
            DealClosed(
                offered_kind=self._offered_kind,
                collateral_kind=self._collateral_kind,
                borrower=deal.borrower,
                lender=deal.lender,
                initiative=initiative,
                outcome=outcome,
                collateral_amount=deal.collateral.amount,
                offered_amount=deal.offered_amount,
            )
        )
