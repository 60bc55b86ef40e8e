"""Persistence layer for ingestion records."""

from .models import IngestionRecordModel
from .repositories import IngestionRecordRepository

__all__ = ["IngestionRecordModel", "IngestionRecordRepository"]
