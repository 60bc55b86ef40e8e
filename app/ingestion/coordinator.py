"""Settlement-gated ingestion of payloads into the content store."""

import asyncio
import hashlib
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.content_store.store import ContentStore
from app.core.config import Settings, settings as default_settings
from app.core.errors import (
    ExternalServiceError,
    IngestionError,
    IntegrityMismatch,
    InvalidRequest,
    PaymentNotConfirmed,
    StorageWriteFailed,
    TransferAlreadyRedeemed,
)
from app.core.logging import get_logger
from app.database.repositories import IngestionRecordRepository
from app.ingestion.metrics import INGESTED_BYTES, INGESTION_DURATION, INGESTIONS
from app.ingestion.validation import (
    normalize_file_name,
    normalize_owner_id,
    normalize_transfer_ref,
    parse_declared_hash,
    parse_payment_amount,
    validate_payload,
)
from app.models.ingestion import IngestionRecord, IngestionResult, RecordStatus
from app.settlement.watcher import ProgressCallback, TransferWatcher

logger = get_logger().bind(module="ingestion.coordinator")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IngestionCoordinator:
    """Accepts a payment proof and a payload and stores the payload.

    The storage write never happens before the settlement wait reports a
    satisfactory terminal state. A ``pending`` record is written before any
    blocking call and is never deleted here, so every failure after that
    point leaves state a reconciliation job can find.

    No lock serializes ingestions. Replay rejection and idempotency under
    concurrency come from the unique indexes on stored records.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        watcher: TransferWatcher,
        content_store: ContentStore,
        settings: Settings | None = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the coordinator.

        Args:
            session_factory: Factory for short-lived database sessions
            watcher: Settlement watcher used to gate storage writes
            content_store: Storage network boundary
            settings: Application settings, defaults to the global settings
            now: Wall clock used for record timestamps
        """
        config = settings or default_settings
        self._session_factory = session_factory
        self.watcher = watcher
        self.content_store = content_store
        self.require_transfer_ref = config.REQUIRE_TRANSFER_REF
        self.settlement_timeout = config.SETTLEMENT_WAIT_TIMEOUT
        self.max_payload_bytes = min(
            config.MAX_PAYLOAD_BYTES, content_store.max_payload_bytes
        )
        self._now = now

    @asynccontextmanager
    async def _records(self) -> AsyncIterator[IngestionRecordRepository]:
        async with self._session_factory() as session:
            yield IngestionRecordRepository(session)

    async def ingest(
        self,
        owner_id: str,
        payload: bytes,
        payment_amount: int | str,
        transfer_ref: str | None = None,
        declared_hash: str | None = None,
        file_name: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> IngestionResult:
        """Ingest a payload once its payment has settled.

        Args:
            owner_id: Account the content is attributed to
            payload: Raw payload bytes
            payment_amount: Amount in the token's smallest unit
            transfer_ref: Settlement transfer gating this ingestion
            declared_hash: Optional SHA-256 the payload must match
            file_name: Optional client-side file name
            on_progress: Optional settlement progress callback

        Returns:
            IngestionResult for the stored record

        Raises:
            InvalidRequest: Invalid input, nothing persisted
            IntegrityMismatch: Payload does not match ``declared_hash``
            PaymentNotConfirmed: Settlement wait timed out, record stays pending
            TransferAlreadyRedeemed: Transfer already redeemed by another record
            StorageWriteFailed: Storage write failed, record stays pending
        """
        started = time.monotonic()
        try:
            result = await self._ingest(
                owner_id,
                payload,
                payment_amount,
                transfer_ref,
                declared_hash,
                file_name,
                on_progress,
            )
        except IngestionError as e:
            INGESTIONS.labels(outcome=e.kind).inc()
            raise
        except asyncio.CancelledError:
            INGESTIONS.labels(outcome="cancelled").inc()
            raise
        finally:
            INGESTION_DURATION.observe(time.monotonic() - started)

        INGESTIONS.labels(
            outcome="deduplicated" if result.deduplicated else "completed"
        ).inc()
        return result

    async def _ingest(
        self,
        owner_id: Any,
        payload: Any,
        payment_amount: Any,
        transfer_ref: Any,
        declared_hash: Any,
        file_name: Any,
        on_progress: ProgressCallback | None,
    ) -> IngestionResult:
        owner = normalize_owner_id(owner_id)
        data = validate_payload(payload, self.max_payload_bytes)
        amount = parse_payment_amount(payment_amount)
        ref = normalize_transfer_ref(transfer_ref)
        declared = parse_declared_hash(declared_hash)
        name = normalize_file_name(file_name)
        if ref is None and self.require_transfer_ref:
            raise InvalidRequest("transfer_ref is required")

        content_hash = hashlib.sha256(data).hexdigest()
        if declared is not None and declared != content_hash:
            raise IntegrityMismatch(
                f"Declared hash {declared} does not match payload hash {content_hash}"
            )

        log = logger.bind(owner_id=owner, transfer_ref=ref, content_hash=content_hash)

        async with self._records() as records:
            existing = await records.find_stored(owner, content_hash)
        if existing is not None:
            log.info("ingestion_deduplicated", record_id=existing.id)
            return self._result(existing, deduplicated=True)

        record = await self._accept(owner, content_hash, ref, amount, len(data), name)
        log = log.bind(record_id=record.id)
        log.info("ingestion_accepted", size_bytes=len(data), payment_amount=str(amount))

        if ref is not None:
            if record.settled_at is None:
                await self._await_settlement(record, ref, on_progress, log)
            else:
                log.info("settlement_already_confirmed")

            async with self._records() as records:
                redeemed = await records.find_stored_by_transfer(ref)
            if redeemed is not None and redeemed.id != record.id:
                return await self._resolve_conflict(record, redeemed, log)

        try:
            stored = await self.content_store.put(
                data,
                metadata={
                    "owner_id": owner,
                    "content_hash": content_hash,
                    "record_id": record.id,
                    "transfer_ref": ref or "",
                    "file_name": name or "",
                },
            )
        except ExternalServiceError as e:
            await self._note_error(record.id, f"storage write failed: {e}")
            log.warning(
                "storage_write_failed", error=str(e), error_type=type(e).__name__
            )
            raise StorageWriteFailed(
                f"Storage write failed: {e}", record_id=record.id, cause=e
            ) from e

        return await self._finalize(
            record, stored.address, stored.provider_ref, len(data), log
        )

    async def _accept(
        self,
        owner: str,
        content_hash: str,
        transfer_ref: str | None,
        amount: int,
        size_bytes: int,
        file_name: str | None,
    ) -> IngestionRecord:
        """Resume a pending record for the same request or insert a new one."""
        async with self._records() as records:
            pending = await records.find_pending(owner, content_hash, transfer_ref)
            if pending is not None:
                logger.info(
                    "ingestion_resumed",
                    record_id=pending.id,
                    settled=pending.settled_at is not None,
                )
                return pending
            return await records.insert(
                IngestionRecord(
                    id=str(uuid4()),
                    owner_id=owner,
                    content_hash=content_hash,
                    transfer_ref=transfer_ref,
                    payment_amount=amount,
                    size_bytes=size_bytes,
                    file_name=file_name,
                    status=RecordStatus.PENDING,
                    accepted_at=self._now(),
                )
            )

    async def _await_settlement(
        self,
        record: IngestionRecord,
        transfer_ref: str,
        on_progress: ProgressCallback | None,
        log: Any,
    ) -> None:
        try:
            result = await self.watcher.wait(
                transfer_ref,
                timeout=self.settlement_timeout,
                on_progress=on_progress,
            )
        except asyncio.CancelledError:
            # The transfer may still land; the pending record stays for reconciliation
            log.warning("ingestion_cancelled_during_settlement")
            raise

        if not result.confirmed:
            await self._note_error(
                record.id,
                f"settlement not confirmed after {result.elapsed:.1f}s",
            )
            log.warning("payment_not_confirmed", elapsed=round(result.elapsed, 3))
            raise PaymentNotConfirmed(
                f"Transfer {transfer_ref} did not settle within "
                f"{self.settlement_timeout:g} seconds",
                record_id=record.id,
            )

        async with self._records() as records:
            await records.update(
                record.id,
                expected_status=RecordStatus.PENDING,
                settled_at=self._now(),
                last_error=None,
            )
        log.info("settlement_confirmed", outcome=result.outcome.value)

    async def _finalize(
        self,
        record: IngestionRecord,
        address: str,
        provider_ref: str | None,
        size_bytes: int,
        log: Any,
    ) -> IngestionResult:
        try:
            async with self._records() as records:
                updated = await records.update(
                    record.id,
                    expected_status=RecordStatus.PENDING,
                    status=RecordStatus.STORED,
                    content_address=address,
                    provider_ref=provider_ref,
                    size_bytes=size_bytes,
                    created_at=self._now(),
                    last_error=None,
                )
        except IntegrityError as e:
            async with self._records() as records:
                winner = await records.find_stored(record.owner_id, record.content_hash)
                if winner is None and record.transfer_ref is not None:
                    winner = await records.find_stored_by_transfer(record.transfer_ref)
            if winner is None:
                await self._note_error(record.id, f"record finalize failed: {e}")
                log.error("record_finalize_failed", error=str(e))
                raise StorageWriteFailed(
                    f"Could not record stored content for {record.id}",
                    record_id=record.id,
                    cause=e,
                ) from e
            return await self._resolve_conflict(record, winner, log)

        if not updated:
            # Resolved elsewhere (reconciliation) while the write was in flight
            async with self._records() as records:
                current = await records.get(record.id)
            if current is not None and current.is_stored:
                return self._result(current)
            raise StorageWriteFailed(
                f"Record {record.id} is no longer pending",
                record_id=record.id,
            )

        INGESTED_BYTES.inc(size_bytes)
        log.info(
            "ingestion_completed", content_address=address, provider_ref=provider_ref
        )
        return IngestionResult(id=record.id, content_address=address)

    async def _resolve_conflict(
        self, record: IngestionRecord, winner: IngestionRecord, log: Any
    ) -> IngestionResult:
        """Settle a losing record against the stored record that won."""
        same_content = (
            winner.owner_id == record.owner_id
            and winner.content_hash == record.content_hash
        )
        reason = (
            f"duplicate of stored record {winner.id}"
            if same_content
            else f"transfer already redeemed by record {winner.id}"
        )
        async with self._records() as records:
            await records.update(
                record.id,
                expected_status=RecordStatus.PENDING,
                status=RecordStatus.FAILED,
                last_error=reason,
            )

        if same_content:
            log.info("ingestion_deduplicated", winner_id=winner.id)
            return self._result(winner, deduplicated=True)

        log.warning("transfer_already_redeemed", winner_id=winner.id)
        raise TransferAlreadyRedeemed(
            f"Transfer {record.transfer_ref} was already redeemed",
            record_id=record.id,
        )

    async def _note_error(self, record_id: str, message: str) -> None:
        async with self._records() as records:
            await records.update(
                record_id, expected_status=RecordStatus.PENDING, last_error=message
            )

    @staticmethod
    def _result(record: IngestionRecord, deduplicated: bool = False) -> IngestionResult:
        return IngestionResult(
            id=record.id,
            content_address=record.content_address or "",
            deduplicated=deduplicated,
        )
