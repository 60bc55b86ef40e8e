"""Settlement transfer tracking."""

from app.settlement.client import HttpSettlementClient, SettlementClient
from app.settlement.models import (
    SettlementOutcome,
    TransferStatus,
    WaitProgress,
    WaitResult,
)
from app.settlement.watcher import TransferWatcher

__all__ = [
    "HttpSettlementClient",
    "SettlementClient",
    "SettlementOutcome",
    "TransferStatus",
    "TransferWatcher",
    "WaitProgress",
    "WaitResult",
]
