"""Repository pattern for database operations."""

from abc import ABC
from datetime import datetime
from typing import Any, Generic, Optional, Sequence, TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.ingestion import IngestionRecord, RecordStatus
from .models import IngestionRecordModel, utcnow

ModelType = TypeVar("ModelType")


class BaseRepository(ABC, Generic[ModelType]):
    """Base repository for common database operations."""

    def __init__(self, session: AsyncSession, model: type[ModelType]):
        self.session = session
        self.model = model

    async def get_by_id(self, id: str) -> Optional[ModelType]:
        """Get entity by ID."""
        result = await self.session.get(self.model, id)
        return result

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        filters: Optional[dict[str, Any]] = None,
    ) -> Sequence[ModelType]:
        """Get all entities with optional filtering."""
        query = select(self.model)

        # Apply filters
        if filters:
            for key, value in filters.items():
                if hasattr(self.model, key):
                    query = query.filter(getattr(self.model, key) == value)

        # Apply pagination
        query = query.offset(skip).limit(limit)

        result = await self.session.execute(query)
        return result.scalars().all()

    async def count(self, filters: Optional[dict[str, Any]] = None) -> int:
        """Count entities with optional filtering."""
        query = select(func.count()).select_from(self.model)

        # Apply filters
        if filters:
            for key, value in filters.items():
                if hasattr(self.model, key):
                    query = query.filter(getattr(self.model, key) == value)

        result = await self.session.execute(query)
        return result.scalar() or 0

    async def create(self, **kwargs) -> ModelType:
        """Create new entity."""
        instance = self.model(**kwargs)
        self.session.add(instance)
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        await self.session.refresh(instance)
        return instance


class IngestionRecordRepository(BaseRepository[IngestionRecordModel]):
    """Repository for ingestion records.

    Every mutation commits its own transaction, so a partially applied
    update is never visible to other sessions. Uniqueness of stored
    ``transfer_ref`` and stored ``(owner_id, content_hash)`` is enforced by
    partial unique indexes; violations surface as
    ``sqlalchemy.exc.IntegrityError``.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session, IngestionRecordModel)

    @staticmethod
    def _to_record(instance: IngestionRecordModel | None) -> IngestionRecord | None:
        if instance is None:
            return None
        return IngestionRecord.model_validate(instance)

    async def insert(self, record: IngestionRecord) -> IngestionRecord:
        """Persist a new record."""
        values = record.model_dump(exclude_none=True)
        values["payment_amount"] = str(record.payment_amount)
        values["status"] = record.status.value
        instance = await self.create(**values)
        return IngestionRecord.model_validate(instance)

    async def get(self, record_id: str) -> IngestionRecord | None:
        """Get a record by ID."""
        return self._to_record(await self.get_by_id(record_id))

    async def get_by_content_address(self, address: str) -> IngestionRecord | None:
        """Get the most recent stored record for a content address."""
        query = (
            select(self.model)
            .filter(
                self.model.content_address == address,
                self.model.status == RecordStatus.STORED.value,
            )
            .order_by(self.model.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(query)
        return self._to_record(result.scalars().first())

    async def update(
        self,
        record_id: str,
        expected_status: RecordStatus | None = None,
        **fields: Any,
    ) -> bool:
        """Apply a partial update in a single statement.

        Args:
            record_id: Record to update
            expected_status: Only update when the record is in this status
            **fields: Column values to set

        Returns:
            True if a row was updated
        """
        values = {
            key: (value.value if isinstance(value, RecordStatus) else value)
            for key, value in fields.items()
            if hasattr(self.model, key)
        }
        if "payment_amount" in values:
            values["payment_amount"] = str(values["payment_amount"])
        values["updated_at"] = utcnow()

        statement = update(self.model).where(self.model.id == record_id)
        if expected_status is not None:
            statement = statement.where(self.model.status == expected_status.value)
        statement = statement.values(**values)

        try:
            result = await self.session.execute(statement)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return bool(result.rowcount)

    async def list_by_owner(
        self,
        owner_id: str,
        status: RecordStatus | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[IngestionRecord]:
        """List an owner's records, most recent first."""
        recency = func.coalesce(self.model.created_at, self.model.accepted_at)
        query = select(self.model).filter(self.model.owner_id == owner_id)
        if status is not None:
            query = query.filter(self.model.status == status.value)
        query = (
            query.order_by(recency.desc(), self.model.id)
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(query)
        return [IngestionRecord.model_validate(row) for row in result.scalars().all()]

    async def find_stored(
        self, owner_id: str, content_hash: str
    ) -> IngestionRecord | None:
        """Find the stored record for identical owner and content."""
        query = select(self.model).filter(
            self.model.owner_id == owner_id,
            self.model.content_hash == content_hash,
            self.model.status == RecordStatus.STORED.value,
        )
        result = await self.session.execute(query)
        return self._to_record(result.scalars().first())

    async def find_stored_by_transfer(
        self, transfer_ref: str
    ) -> IngestionRecord | None:
        """Find the stored record that redeemed a transfer."""
        query = select(self.model).filter(
            self.model.transfer_ref == transfer_ref,
            self.model.status == RecordStatus.STORED.value,
        )
        result = await self.session.execute(query)
        return self._to_record(result.scalars().first())

    async def find_pending(
        self, owner_id: str, content_hash: str, transfer_ref: str | None
    ) -> IngestionRecord | None:
        """Find a resumable pending record for the same request."""
        query = select(self.model).filter(
            self.model.owner_id == owner_id,
            self.model.content_hash == content_hash,
            self.model.status == RecordStatus.PENDING.value,
        )
        if transfer_ref is None:
            query = query.filter(self.model.transfer_ref.is_(None))
        else:
            query = query.filter(self.model.transfer_ref == transfer_ref)
        query = query.order_by(self.model.accepted_at.desc()).limit(1)
        result = await self.session.execute(query)
        return self._to_record(result.scalars().first())

    async def list_stale_pending(
        self, older_than: datetime, limit: int = 100
    ) -> list[IngestionRecord]:
        """List pending records accepted before a cutoff, oldest first."""
        query = (
            select(self.model)
            .filter(
                self.model.status == RecordStatus.PENDING.value,
                self.model.accepted_at < older_than,
            )
            .order_by(self.model.accepted_at)
            .limit(limit)
        )
        result = await self.session.execute(query)
        return [IngestionRecord.model_validate(row) for row in result.scalars().all()]

    async def count_by_status(self) -> dict[str, int]:
        """Count records per status."""
        query = select(self.model.status, func.count()).group_by(self.model.status)
        result = await self.session.execute(query)
        counts = {status.value: 0 for status in RecordStatus}
        for status, total in result.all():
            counts[status] = total
        return counts
