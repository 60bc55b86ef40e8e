"""Domain models for ingestion records and results."""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class RecordStatus(str, Enum):
    """Lifecycle of an ingestion record.

    ``pending`` is written on acceptance, ``stored`` once the storage write
    succeeded. ``failed`` is terminal and set for rejected replays or by
    reconciliation.
    """

    PENDING = "pending"
    STORED = "stored"
    FAILED = "failed"


class IngestionRecord(BaseModel):
    """Durable link between a payment proof, a content hash and an address."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    content_hash: str
    content_address: str | None = None
    provider_ref: str | None = None
    transfer_ref: str | None = None
    payment_amount: int = Field(..., ge=0, description="Smallest token unit")
    size_bytes: int = Field(..., ge=0)
    file_name: str | None = None
    status: RecordStatus = RecordStatus.PENDING
    last_error: str | None = None
    accepted_at: datetime | None = None
    settled_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_stored(self) -> bool:
        return self.status == RecordStatus.STORED and self.content_address is not None


class IngestionResult(BaseModel):
    """Result of a successful ingestion."""

    id: str
    content_address: str
    status: Literal["completed"] = "completed"
    deduplicated: bool = False


class RetrievedContent(BaseModel):
    """Bytes served for a content address, with the record they belong to."""

    record: IngestionRecord
    data: bytes
