"""Data models for settlement transfer tracking."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional


@dataclass(frozen=True)
class TransferStatus:
    """Status of one transfer request as reported by the settlement system."""

    executed: bool = False
    fulfilled: bool = False
    requested_at: Optional[int] = None
    amount_in: Optional[int] = None
    amount_out: Optional[int] = None

    @property
    def is_terminal(self) -> bool:
        return self.executed or self.fulfilled

    def merge(self, later: "TransferStatus") -> "TransferStatus":
        """Combine with a later observation without regressing settlement.

        Flags only move forward. Amounts and timestamps prefer the later
        observation when it carries them.
        """
        return TransferStatus(
            executed=self.executed or later.executed,
            fulfilled=self.fulfilled or later.fulfilled,
            requested_at=(
                later.requested_at
                if later.requested_at is not None
                else self.requested_at
            ),
            amount_in=(
                later.amount_in if later.amount_in is not None else self.amount_in
            ),
            amount_out=(
                later.amount_out if later.amount_out is not None else self.amount_out
            ),
        )

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "TransferStatus":
        """Build from the settlement API's camelCase JSON payload.

        Only a JSON ``true`` sets a flag; strings and numbers leave it unset.
        """
        return cls(
            executed=data.get("executed") is True,
            fulfilled=data.get("fulfilled") is True,
            requested_at=_to_int(data.get("requestedAt")),
            amount_in=_to_int(data.get("amountIn")),
            amount_out=_to_int(data.get("amountOut")),
        )


def _to_int(value: Any) -> Optional[int]:
    # Amounts arrive as decimal strings so they survive JSON without rounding
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


class SettlementOutcome(str, Enum):
    """Terminal result of waiting on a transfer."""

    FULFILLED = "fulfilled"
    EXECUTED = "executed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class WaitResult:
    """Result of TransferWatcher.wait."""

    outcome: SettlementOutcome
    observed_at: datetime
    elapsed: float
    status: TransferStatus
    polls: int

    @property
    def confirmed(self) -> bool:
        return self.outcome is not SettlementOutcome.TIMED_OUT


@dataclass(frozen=True)
class WaitProgress:
    """Progress event emitted on every poll tick."""

    transfer_ref: str
    elapsed: float
    executed: bool
    fulfilled: bool
    poll: int
    error: Optional[str] = None
