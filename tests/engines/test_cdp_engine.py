"""Tests for CDPEngine offers, deals, margin status and settlement."""

import pytest

from dealbook.engines import CDPEngine, margin_call_rate, required_collateral
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
from dealbook.models import DealOutcome, DealStatus, Value
from dealbook.oracle import StaticPriceOracle

RATE = 2 * 10**8
CALL_RATE = RATE * 120 // 100


@pytest.fixture
def funded(ledger):
    ledger.mint("lender", "USD", 5_000)
    ledger.mint("borrower", "ETH", 5_000)
    return ledger


@pytest.fixture
def offered(cdp, funded):
    cdp.offer("lender", 1_000, collateral_multiplier=150, margin_call_at=120)
    return cdp


@pytest.fixture
def deal(offered):
    offered.take_offer("borrower", "lender")
    return offered


class TestArithmetic:
    def test_required_collateral(self):
        assert required_collateral(1_000, RATE, 150, 10**8) == 3_000

    def test_required_collateral_truncates(self):
        # 1000 * 100 * 150 / 100 / 1e8 = 0.15
        assert required_collateral(1_000, 100, 150, 10**8) == 0
        assert required_collateral(7, 3 * 10**8, 133, 10**8) == 27

    def test_margin_call_rate(self):
        assert margin_call_rate(100, 120) == 120
        assert margin_call_rate(RATE, 120) == CALL_RATE
        assert margin_call_rate(99, 101) == 99


class TestCreateOffer:
    def test_offer_published(self, offered, funded, event_log):
        assert offered.has_offer("lender")
        assert offered.get_offer_details("lender") == (1_000, 150, 120)
        assert funded.balance("lender", "USD") == 4_000

        event = event_log.last("offer_created")
        assert event.lender == "lender"
        assert event.amount == 1_000
        assert event.collateral_multiplier == 150
        assert event.margin_call_at == 120

    def test_no_price_feed(self, ledger, funded):
        cdp = CDPEngine(ledger, StaticPriceOracle(), "USD", "ETH")
        with pytest.raises(NoPriceFeed):
            cdp.offer("lender", 1_000, 150, 120)
        assert funded.balance("lender", "USD") == 5_000
        assert not cdp.has_offer("lender")

    def test_zero_amount(self, cdp, funded):
        with pytest.raises(InvalidAmount):
            cdp.offer("lender", 0, 150, 120)

    def test_wrong_kind(self, cdp):
        with pytest.raises(InvalidAmount):
            cdp.create_offer("lender", Value(kind="ETH", amount=10), 150, 120)

    @pytest.mark.parametrize(
        "multiplier, call_at",
        [(100, 50), (90, 80), (150, 150), (150, 160), (150, 0), (150, -10)],
    )
    def test_invalid_parameters(self, cdp, funded, multiplier, call_at):
        with pytest.raises(InvalidParameters):
            cdp.offer("lender", 1_000, multiplier, call_at)
        assert funded.balance("lender", "USD") == 5_000

    def test_duplicate_offer(self, offered, funded):
        with pytest.raises(DuplicateRecord):
            offered.offer("lender", 500, 200, 150)
        assert funded.balance("lender", "USD") == 4_000
        assert offered.get_offer_details("lender") == (1_000, 150, 120)

    def test_offer_details_missing(self, cdp):
        assert not cdp.has_offer("lender")
        with pytest.raises(NotFound):
            cdp.get_offer_details("lender")


class TestCancelOffer:
    def test_cancel_returns_principal(self, offered, funded, event_log):
        assert offered.cancel_offer("lender") == 1_000
        assert funded.balance("lender", "USD") == 5_000
        assert not offered.has_offer("lender")
        assert event_log.last("offer_cancelled").amount == 1_000

    def test_cancel_missing(self, cdp):
        with pytest.raises(NotFound):
            cdp.cancel_offer("lender")

    def test_taken_offer_cannot_be_cancelled(self, deal):
        with pytest.raises(NotFound):
            deal.cancel_offer("lender")


class TestTakeOffer:
    def test_origination(self, offered, funded, event_log):
        deal = offered.take_offer("borrower", "lender")

        assert deal.lender == "lender"
        assert deal.collateral == Value(kind="ETH", amount=3_000)
        assert funded.balance("borrower", "USD") == 1_000
        assert funded.balance("borrower", "ETH") == 2_000
        assert not offered.has_offer("lender")
        assert offered.has_deal("borrower")
        assert offered.get_deal_details("borrower") == (CALL_RATE, RATE, 3_000, 1_000)

        event = event_log.last("offer_taken")
        assert event.borrower == "borrower"
        assert event.collateral_amount == 3_000
        assert event.margin_call_rate == CALL_RATE
        assert event.current_rate == RATE

    def test_low_rate_scenario(self, ledger, event_log):
        oracle = StaticPriceOracle({("USD", "ETH"): 100})
        cdp = CDPEngine(ledger, oracle, "USD", "ETH")
        ledger.mint("lender", "USD", 1_000)
        ledger.mint("borrower", "ETH", 10)

        cdp.offer("lender", 1_000, 150, 120)
        cdp.take_offer("borrower", "lender")

        assert cdp.get_deal_details("borrower") == (120, 100, 0, 1_000)
        assert ledger.balance("borrower", "USD") == 1_000
        assert ledger.balance("borrower", "ETH") == 10

    def test_insufficient_collateral(self, offered, funded):
        funded.withdraw("borrower", "ETH", 2_001)
        with pytest.raises(InsufficientFunds):
            offered.take_offer("borrower", "lender")
        assert offered.has_offer("lender")
        assert not offered.has_deal("borrower")
        assert funded.balance("borrower", "USD") == 0
        assert funded.balance("borrower", "ETH") == 2_999

    def test_missing_offer(self, cdp, funded):
        with pytest.raises(NotFound):
            cdp.take_offer("borrower", "lender")

    def test_borrower_with_live_deal(self, deal, funded):
        funded.mint("lender2", "USD", 1_000)
        deal.offer("lender2", 1_000, 150, 120)
        with pytest.raises(DuplicateRecord):
            deal.take_offer("borrower", "lender2")
        assert deal.has_offer("lender2")
        assert funded.balance("borrower", "ETH") == 2_000
        assert funded.balance("borrower", "USD") == 1_000

    def test_feed_removed_after_offer(self, offered, oracle, funded):
        oracle.remove_rate("USD", "ETH")
        with pytest.raises(NoPriceFeed):
            offered.take_offer("borrower", "lender")
        assert offered.has_offer("lender")


class TestCheckDeal:
    def test_not_made(self, cdp):
        assert cdp.check_deal("borrower") == DealStatus.NOT_MADE

    def test_okay_at_origination(self, deal):
        assert deal.check_deal("borrower") == DealStatus.OKAY
        assert deal.check_deal("borrower") == DealStatus.OKAY

    def test_boundary_is_inclusive(self, deal, oracle):
        oracle.set_rate("USD", "ETH", CALL_RATE - 1)
        assert deal.check_deal("borrower") == DealStatus.OKAY
        oracle.set_rate("USD", "ETH", CALL_RATE)
        assert deal.check_deal("borrower") == DealStatus.PAST_MARGIN_CALL

    def test_status_follows_price_without_writes(self, deal, oracle):
        record = deal.get_deal_details("borrower")
        oracle.set_rate("USD", "ETH", CALL_RATE * 2)
        assert deal.check_deal("borrower") == DealStatus.PAST_MARGIN_CALL
        oracle.set_rate("USD", "ETH", RATE)
        assert deal.check_deal("borrower") == DealStatus.OKAY
        assert deal.get_deal_details("borrower") == record

    def test_details_missing(self, cdp):
        assert not cdp.has_deal("borrower")
        with pytest.raises(NotFound):
            cdp.get_deal_details("borrower")


class TestReturnMoney:
    def test_repayment(self, deal, funded, event_log):
        deal.return_money("borrower")

        assert not deal.has_deal("borrower")
        assert funded.balance("borrower", "ETH") == 5_000
        assert funded.balance("borrower", "USD") == 0
        assert funded.balance("lender", "USD") == 5_000

        event = event_log.last("deal_closed")
        assert event.initiative == "borrower"
        assert event.outcome == DealOutcome.REPAID

    def test_past_margin_call(self, deal, oracle, funded):
        oracle.set_rate("USD", "ETH", CALL_RATE)
        with pytest.raises(WrongDealState):
            deal.return_money("borrower")
        assert deal.has_deal("borrower")

    def test_insufficient_repayment_funds(self, deal, funded):
        funded.deposit("someone", funded.withdraw("borrower", "USD", 1))
        with pytest.raises(InsufficientFunds) as exc_info:
            deal.return_money("borrower")
        assert exc_info.value.required == 1_000
        assert exc_info.value.available == 999
        assert deal.has_deal("borrower")
        assert funded.balance("borrower", "USD") == 999
        assert funded.balance("borrower", "ETH") == 2_000

    def test_no_deal(self, cdp):
        with pytest.raises(NotFound):
            cdp.return_money("borrower")


class TestFinishAndReleaseFunds:
    def test_seizure(self, deal, oracle, funded, event_log):
        oracle.set_rate("USD", "ETH", CALL_RATE)
        assert deal.finish_and_release_funds("lender", "borrower") == 3_000

        assert not deal.has_deal("borrower")
        assert funded.balance("lender", "ETH") == 3_000
        assert funded.balance("borrower", "USD") == 1_000

        event = event_log.last("deal_closed")
        assert event.initiative == "lender"
        assert event.outcome == DealOutcome.SEIZED

    def test_still_okay(self, deal):
        with pytest.raises(WrongDealState):
            deal.finish_and_release_funds("lender", "borrower")

    def test_wrong_lender(self, deal, oracle, funded):
        oracle.set_rate("USD", "ETH", CALL_RATE)
        with pytest.raises(Unauthorized):
            deal.finish_and_release_funds("mallory", "borrower")
        assert deal.has_deal("borrower")
        assert funded.balance("mallory", "ETH") == 0


class TestFinishAndCreateAuction:
    def test_collateral_goes_to_auction(self, deal, oracle, funded, event_log):
        oracle.set_rate("USD", "ETH", CALL_RATE)
        deal.finish_and_create_auction("lender", "borrower")

        assert not deal.has_deal("borrower")
        assert deal.auctions.get_details("lender") == (1_000, 3_000, 0)
        assert deal.auctions.get_bidder("lender") == "lender"
        assert deal.auctions.get_record("lender").ends_at == 0
        assert funded.balance("lender", "ETH") == 0

        types = [e.event_type for e in event_log.events()]
        assert types[-2:] == ["auction_created", "deal_closed"]
        assert event_log.last("deal_closed").outcome == DealOutcome.AUCTIONED

    def test_auction_settles_for_lender(self, deal, oracle, funded):
        oracle.set_rate("USD", "ETH", CALL_RATE)
        deal.finish_and_create_auction("lender", "borrower")
        funded.mint("buyer", "USD", 2_000)

        deal.auctions.bid("buyer", "lender", 1_200)
        deal.auctions.end_auction("lender")

        assert funded.balance("buyer", "ETH") == 3_000
        assert funded.balance("lender", "USD") == 4_000 + 1_200

    def test_lender_already_running_auction(self, deal, oracle, funded):
        funded.mint("lender", "ETH", 10)
        deal.auctions.open("lender", lot_amount=10, start_price=1)
        oracle.set_rate("USD", "ETH", CALL_RATE)

        with pytest.raises(DuplicateRecord):
            deal.finish_and_create_auction("lender", "borrower")
        assert deal.has_deal("borrower")
        assert deal.auctions.get_details("lender") == (1, 10, 0)

    def test_still_okay(self, deal):
        with pytest.raises(WrongDealState):
            deal.finish_and_create_auction("lender", "borrower")

    def test_wrong_lender(self, deal, oracle):
        oracle.set_rate("USD", "ETH", CALL_RATE)
        with pytest.raises(Unauthorized):
            deal.finish_and_create_auction("borrower", "borrower")
        assert deal.has_deal("borrower")
        assert not deal.auctions.has_auction("borrower")


class TestSettlementIsTerminal:
    @pytest.mark.parametrize("settle", ["repay", "seize", "auction"])
    def test_second_settlement_not_found(self, deal, oracle, settle):
        if settle == "repay":
            deal.return_money("borrower")
        else:
            oracle.set_rate("USD", "ETH", CALL_RATE)
            if settle == "seize":
                deal.finish_and_release_funds("lender", "borrower")
            else:
                deal.finish_and_create_auction("lender", "borrower")

        assert deal.check_deal("borrower") == DealStatus.NOT_MADE
        with pytest.raises(NotFound):
            deal.return_money("borrower")
        with pytest.raises(NotFound):
            deal.finish_and_release_funds("lender", "borrower")
        with pytest.raises(NotFound):
            deal.finish_and_create_auction("lender", "borrower")

    def test_borrower_can_open_new_deal_after_repaying(self, deal, funded):
        deal.return_money("borrower")
        deal.offer("lender", 500, 150, 120)
        deal.take_offer("borrower", "lender")
        assert deal.get_deal_details("borrower")[2:] == (1_500, 500)


class TestCustodyConservation:
    def test_full_lifecycle_conserves_value(self, deal, oracle, funded, custodied):
        funded.mint("buyer", "USD", 2_000)
        usd_supply = funded.accounts.total_supply("USD")
        eth_supply = funded.accounts.total_supply("ETH")
        assert custodied(funded, "USD") == usd_supply
        assert custodied(funded, "ETH") == eth_supply

        oracle.set_rate("USD", "ETH", CALL_RATE)
        deal.finish_and_create_auction("lender", "borrower")
        assert custodied(funded, "ETH") == eth_supply

        deal.auctions.bid("buyer", "lender", 1_500)
        assert custodied(funded, "USD") == usd_supply
        deal.auctions.end_auction("lender")

        assert funded.accounts.circulating("USD") == usd_supply
        assert funded.accounts.circulating("ETH") == eth_supply
