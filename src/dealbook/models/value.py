"""Custodied value of a single asset kind."""

from pydantic import Field

from dealbook.errors import InsufficientFunds
from dealbook.models.base import FrozenModel


class Value(FrozenModel):
    """An integer quantity of one asset kind.

    Values are never mutated. Merging or splitting returns new values so a
    quantity held by a record is always accounted for exactly once.
    """

    kind: str = Field(min_length=1)
    amount: int = Field(default=0, ge=0)

    @classmethod
    def zero(cls, kind: str) -> "Value":
        return cls(kind=kind, amount=0)

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    def merge(self, other: "Value") -> "Value":
        """Combine two values of the same kind."""
        if other.kind != self.kind:
            raise ValueError(f"Cannot merge {other.kind} into {self.kind}")
        return Value(kind=self.kind, amount=self.amount + other.amount)

    def split(self, amount: int) -> tuple["Value", "Value"]:
        """Split off ``amount``. Returns (remaining, taken)."""
        if amount < 0:
            raise ValueError(f"Split amount cannot be negative, got {amount}")
        if amount > self.amount:
            raise InsufficientFunds(
                f"Cannot split {amount} {self.kind} from {self.amount}",
                required=amount,
                available=self.amount,
            )
        return (
            Value(kind=self.kind, amount=self.amount - amount),
            Value(kind=self.kind, amount=amount),
        )
