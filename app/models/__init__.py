"""Domain and API models package."""

from .ingestion import IngestionRecord, IngestionResult, RecordStatus, RetrievedContent
from .response import (
    ErrorResponse,
    FileListResponse,
    HealthResponse,
    IngestResponse,
    RecordSummary,
)

__all__ = [
    "IngestionRecord",
    "IngestionResult",
    "RecordStatus",
    "RetrievedContent",
    "ErrorResponse",
    "FileListResponse",
    "HealthResponse",
    "IngestResponse",
    "RecordSummary",
]
