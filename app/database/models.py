"""SQLAlchemy models for ingestion records."""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import BigInteger, Column, DateTime, Enum, Index, Text, text

from .base import Base


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


# Uniqueness below only applies to records whose storage write succeeded
STORED_ONLY = "status = 'stored'"


class IngestionRecordModel(Base):
    """One accepted upload and the payment that gates it."""

    __tablename__ = "ingestion_record"

    id = Column(
        Text,
        primary_key=True,
        default=lambda: str(uuid4()),
        nullable=False,
    )
    owner_id = Column(Text, nullable=False)
    content_hash = Column(Text, nullable=False)
    content_address = Column(Text, nullable=True)
    provider_ref = Column(Text, nullable=True)
    transfer_ref = Column(Text, nullable=True)
    # Decimal digits; amounts are arbitrary-precision integers in the smallest unit
    payment_amount = Column(Text, nullable=False)
    size_bytes = Column(BigInteger, nullable=False)
    file_name = Column(Text, nullable=True)

    status = Column(
        Enum(
            "pending",
            "stored",
            "failed",
            name="ingestion_record_status_enum",
        ),
        nullable=False,
        default="pending",
    )
    last_error = Column(Text, nullable=True)

    # Timestamps
    accepted_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    settled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    __table_args__ = (
        Index("ix_ingestion_record_owner_id", "owner_id"),
        Index("ix_ingestion_record_content_address", "content_address"),
        Index("ix_ingestion_record_status_accepted_at", "status", "accepted_at"),
        Index(
            "uq_ingestion_record_stored_transfer_ref",
            "transfer_ref",
            unique=True,
            sqlite_where=text(STORED_ONLY),
            postgresql_where=text(STORED_ONLY),
        ),
        Index(
            "uq_ingestion_record_stored_owner_content",
            "owner_id",
            "content_hash",
            unique=True,
            sqlite_where=text(STORED_ONLY),
            postgresql_where=text(STORED_ONLY),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<IngestionRecordModel id={self.id} owner={self.owner_id} "
            f"status={self.status} address={self.content_address}>"
        )
