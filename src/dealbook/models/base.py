"""Base model and common enums for dealbook."""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class FrozenModel(BaseModel):
    """Immutable base model."""

    model_config = ConfigDict(frozen=True)


class DealStatus(str, Enum):
    """Margin status of a borrower's CDP deal, derived from the current price."""

    NOT_MADE = "NOT_MADE"
    OKAY = "OKAY"
    PAST_MARGIN_CALL = "PAST_MARGIN_CALL"


class DealOutcome(str, Enum):
    """How a CDP deal was settled."""

    REPAID = "repaid"
    SEIZED = "seized"
    AUCTIONED = "auctioned"
