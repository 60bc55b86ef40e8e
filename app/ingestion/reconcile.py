"""Inputs for reconciling stuck pending records.

Resolution itself (re-driving, refunding) is an administrative action. These
helpers find candidates and record the decision.
"""

from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.errors import NotFound
from app.core.logging import get_logger
from app.database.repositories import IngestionRecordRepository
from app.ingestion.metrics import RECONCILED_RECORDS
from app.models.ingestion import IngestionRecord, RecordStatus

logger = get_logger().bind(module="ingestion.reconcile")


async def find_stale_pending(
    session_factory: async_sessionmaker[AsyncSession],
    grace: timedelta,
    limit: int = 100,
    now: datetime | None = None,
) -> list[IngestionRecord]:
    """List pending records accepted longer than ``grace`` ago, oldest first."""
    cutoff = (now or datetime.now(timezone.utc)) - grace
    async with session_factory() as session:
        return await IngestionRecordRepository(session).list_stale_pending(
            cutoff, limit=limit
        )


async def mark_failed(
    session_factory: async_sessionmaker[AsyncSession],
    record_id: str,
    reason: str,
) -> bool:
    """Mark a pending record failed.

    Returns:
        True if the record was pending and is now failed, False if it had
        already left the pending state

    Raises:
        NotFound: If no record has this id
    """
    async with session_factory() as session:
        repository = IngestionRecordRepository(session)
        if await repository.get(record_id) is None:
            raise NotFound(f"Record {record_id} not found")
        updated = await repository.update(
            record_id,
            expected_status=RecordStatus.PENDING,
            status=RecordStatus.FAILED,
            last_error=reason,
        )

    if updated:
        RECONCILED_RECORDS.labels(action="marked_failed").inc()
        logger.info("record_marked_failed", record_id=record_id, reason=reason)
    else:
        logger.warning("record_not_pending", record_id=record_id)
    return updated


async def status_counts(
    session_factory: async_sessionmaker[AsyncSession],
) -> dict[str, int]:
    """Count records per status."""
    async with session_factory() as session:
        return await IngestionRecordRepository(session).count_by_status()
