"""Error kinds raised by the ledger, the oracle and both engines.

Every error aborts the whole operation; ``Ledger.atomic()`` rolls back any
custody movement made before the failure.
"""


class DealbookError(Exception):
    """Base class for all dealbook failures."""

    code = "dealbook_error"


class NotFound(DealbookError):
    """Operation targets a record key with no record."""

    code = "not_found"


class DuplicateRecord(DealbookError):
    """Creation attempted where a record already exists."""

    code = "duplicate_record"


class InvalidBid(DealbookError):
    code = "invalid_bid"


class InvalidAmount(DealbookError):
    code = "invalid_amount"


class InvalidParameters(DealbookError):
    code = "invalid_parameters"


class NoPriceFeed(DealbookError):
    """The oracle has no rate for the requested kind pair."""

    code = "no_price_feed"


class WrongDealState(DealbookError):
    """A settlement path was attempted while the deal status does not allow it."""

    code = "wrong_deal_state"


class Unauthorized(DealbookError):
    """Caller is not the required counterparty."""

    code = "unauthorized"


class InsufficientFunds(DealbookError):
    """A withdrawal or repayment check cannot be covered."""

    code = "insufficient_funds"

    def __init__(self, message: str, required: int = 0, available: int = 0):
        super().__init__(message)
        self.required = required
        self.available = available
