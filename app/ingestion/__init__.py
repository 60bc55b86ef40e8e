"""Settlement-gated ingestion and retrieval."""

from app.ingestion.coordinator import IngestionCoordinator
from app.ingestion.reconcile import find_stale_pending, mark_failed, status_counts
from app.ingestion.retrieval import RetrievalService

__all__ = [
    "IngestionCoordinator",
    "RetrievalService",
    "find_stale_pending",
    "mark_failed",
    "status_counts",
]
