"""Serving stored content and ingestion records."""

import hashlib

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.content_store.store import ContentStore
from app.core.errors import (
    ContentNotFound,
    IngestionError,
    IntegrityMismatch,
    InvalidRequest,
    NotFound,
    ProviderUnavailable,
    StorageUnavailable,
)
from app.core.logging import get_logger
from app.database.repositories import IngestionRecordRepository
from app.ingestion.metrics import RETRIEVALS
from app.ingestion.validation import normalize_owner_id
from app.models.ingestion import IngestionRecord, RecordStatus, RetrievedContent

logger = get_logger().bind(module="ingestion.retrieval")


class RetrievalService:
    """Looks up stored records and reads their bytes from the content store.

    Unknown addresses fail with ``NotFound`` without calling the storage
    network. Content is trusted on write; re-hashing on read is opt-in.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        content_store: ContentStore,
        verify: bool = False,
    ) -> None:
        self._session_factory = session_factory
        self.content_store = content_store
        self.verify = verify

    async def retrieve(self, content_address: str) -> RetrievedContent:
        """Read the bytes stored under a content address.

        Args:
            content_address: Address returned by the storage write

        Returns:
            RetrievedContent with the owning record and the payload

        Raises:
            NotFound: No stored record, or the store no longer holds it
            StorageUnavailable: The store could not serve the read
            IntegrityMismatch: Verification is on and the bytes changed
        """
        try:
            retrieved = await self._retrieve(content_address)
        except IngestionError as e:
            RETRIEVALS.labels(outcome=e.kind).inc()
            raise
        RETRIEVALS.labels(outcome="served").inc()
        return retrieved

    async def _retrieve(self, content_address: str) -> RetrievedContent:
        address = (content_address or "").strip()
        if not address:
            raise InvalidRequest("content_address is required")

        async with self._session_factory() as session:
            record = await IngestionRecordRepository(session).get_by_content_address(
                address
            )
        if record is None:
            raise NotFound(f"No stored content for address {address}")

        try:
            data = await self.content_store.get(address)
        except ContentNotFound as e:
            logger.error(
                "stored_content_missing", content_address=address, record_id=record.id
            )
            raise NotFound(
                f"Storage network does not hold {address}", record_id=record.id
            ) from e
        except ProviderUnavailable as e:
            logger.warning(
                "storage_read_failed", content_address=address, error=str(e)
            )
            raise StorageUnavailable(
                f"Storage network unavailable: {e}", record_id=record.id
            ) from e

        if self.verify:
            actual = hashlib.sha256(data).hexdigest()
            if actual != record.content_hash:
                logger.error(
                    "stored_content_corrupted",
                    content_address=address,
                    record_id=record.id,
                    expected=record.content_hash,
                    actual=actual,
                )
                raise IntegrityMismatch(
                    f"Content at {address} does not match its recorded hash",
                    record_id=record.id,
                )

        return RetrievedContent(record=record, data=data)

    async def get_record(self, record_id: str) -> IngestionRecord:
        """Get one ingestion record by id.

        Raises:
            NotFound: If no record has this id
        """
        async with self._session_factory() as session:
            record = await IngestionRecordRepository(session).get(record_id)
        if record is None:
            raise NotFound(f"Record {record_id} not found")
        return record

    async def list_by_owner(
        self,
        owner_id: str,
        status: RecordStatus | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[IngestionRecord]:
        """List an owner's records, most recent first."""
        owner = normalize_owner_id(owner_id)
        async with self._session_factory() as session:
            return await IngestionRecordRepository(session).list_by_owner(
                owner, status=status, limit=limit, offset=offset
            )
