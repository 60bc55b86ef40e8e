"""Response models for the storage API endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .ingestion import IngestionRecord, RecordStatus


class IngestResponse(BaseModel):
    """Response for a completed ingestion."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "0b9e4a52-7d0c-4a51-9b0f-1f4f5f3f2b11",
                "content_address": "9f86d081884c7d659a2feaa0c55ad015a3bf4f1b2b0b822cd15d6c15b0f00a08",
                "status": "completed",
                "deduplicated": False,
            }
        }
    )

    id: str = Field(..., title="Record ID", description="Ingestion record identifier")
    content_address: str = Field(
        ...,
        title="Content Address",
        description="Address returned by the storage network",
    )
    status: str = Field("completed", title="Status", examples=["completed"])
    deduplicated: bool = Field(
        False,
        title="Deduplicated",
        description="True when an earlier identical ingestion was returned",
    )


class RecordSummary(BaseModel):
    """Summary of one ingestion record."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., title="Record ID")
    owner_id: str = Field(..., title="Owner")
    file_name: str | None = Field(None, title="File Name")
    size_bytes: int = Field(..., title="Size", ge=0)
    content_hash: str = Field(..., title="Content Hash", description="SHA-256 hex")
    content_address: str | None = Field(None, title="Content Address")
    provider_ref: str | None = Field(None, title="Provider Reference")
    transfer_ref: str | None = Field(None, title="Transfer Reference")
    payment_amount: str = Field(
        ...,
        title="Payment Amount",
        description="Integer amount in the token's smallest unit, as a string",
        examples=["100000000000000000"],
    )
    status: RecordStatus = Field(..., title="Status")
    last_error: str | None = Field(None, title="Last Error")
    accepted_at: datetime | None = Field(None, title="Accepted At")
    created_at: datetime | None = Field(
        None, title="Created At", description="Set when the storage write succeeded"
    )

    @classmethod
    def from_record(cls, record: IngestionRecord) -> "RecordSummary":
        data = record.model_dump()
        data["payment_amount"] = str(record.payment_amount)
        return cls.model_validate(data)


class FileListResponse(BaseModel):
    """Records attributed to an owner, most recent first."""

    owner_id: str = Field(..., title="Owner")
    count: int = Field(..., title="Count", ge=0)
    files: list[RecordSummary] = Field(default_factory=list, title="Files")


class HealthResponse(BaseModel):
    """Service health."""

    status: str = Field(..., title="Status", examples=["healthy", "degraded"])
    storage_reachable: bool = Field(..., title="Storage Reachable")
    database_reachable: bool = Field(..., title="Database Reachable")
    version: str = Field(..., title="Version")


class ErrorResponse(BaseModel):
    """Error body returned for every failed request."""

    error: str = Field(..., title="Error", description="Exception class name")
    kind: str | None = Field(None, title="Kind", description="Stable error kind")
    message: str = Field(..., title="Message")
    status_code: int = Field(..., title="Status Code")
    record_id: str | None = Field(None, title="Record ID")
    correlation_id: str = Field(..., title="Correlation ID")
