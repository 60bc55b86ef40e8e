"""Content store boundary and a local content-addressed implementation."""

import asyncio
import hashlib
import json
import os
import re
import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Mapping
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from uuid import uuid4

from app.content_store.models import ContentEntry, StoredContent
from app.content_store.retry import with_db_retry, with_transaction_retry
from app.core.errors import (
    CapacityError,
    ContentNotFound,
    ProviderUnavailable,
    SizeLimitError,
)
from app.core.logging import get_logger

logger = get_logger().bind(module="content_store")

DEFAULT_MAX_PAYLOAD_BYTES = 200 * 1024 * 1024


class ContentStore(ABC):
    """Boundary to the storage network.

    ``put`` is idempotent for identical bytes and returns a stable address,
    and ``get(put(data).address) == data`` for any payload within
    ``max_payload_bytes``.
    """

    max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES

    @abstractmethod
    async def put(
        self, data: bytes, metadata: Optional[Mapping[str, str]] = None
    ) -> StoredContent:
        """Write a payload.

        Args:
            data: Raw payload bytes
            metadata: String metadata stored alongside the payload

        Returns:
            StoredContent with the content address and provider reference

        Raises:
            SizeLimitError: If the payload exceeds the size bound
            CapacityError: If the store has no room for the payload
            ProviderUnavailable: If the store cannot be reached
        """
        raise NotImplementedError

    @abstractmethod
    async def get(self, address: str) -> bytes:
        """Read a payload by content address.

        Raises:
            ContentNotFound: If the address is not held by the store
            ProviderUnavailable: If the store cannot be reached
        """
        raise NotImplementedError

    @abstractmethod
    async def ping(self) -> bool:
        """Report whether the store is reachable."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release any held resources."""
        return None


class LocalContentStore(ContentStore):
    """Stores payloads on the local filesystem keyed by SHA-256.

    Layout under ``store_path``::

        content_store/
            content/<2-char prefix>/<hash>.bin
            content/<2-char prefix>/<hash>.json
            index.db

    Blocking file and index I/O runs in worker threads.
    """

    # SHA-256 produces 64 hex characters
    _HASH_PATTERN = re.compile(r"^[a-f0-9]{64}$")

    def __init__(
        self,
        store_path: Path,
        max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES,
        capacity_bytes: Optional[int] = None,
        provider_ref: str = "local",
    ):
        """Initialize content store.

        Args:
            store_path: Base directory for the store
            max_payload_bytes: Largest payload accepted by ``put``
            capacity_bytes: Optional limit on the total bytes held
            provider_ref: Reference reported for every write
        """
        self.store_path = Path(store_path)
        self.content_store_path = self.store_path / "content_store"
        self.max_payload_bytes = max_payload_bytes
        self.capacity_bytes = capacity_bytes
        self.provider_ref = provider_ref

        # Create directory structure
        self._init_directories()

        # Initialize SQLite index
        self._init_database()

    @property
    def db_path(self) -> Path:
        return self.content_store_path / "index.db"

    def _init_directories(self) -> None:
        """Create necessary directory structure."""
        (self.content_store_path / "content").mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, timeout=30)

    @with_db_retry()
    def _init_database(self) -> None:
        """Initialize SQLite database for content index."""
        with closing(self._connect()) as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS content_index (
                    address TEXT PRIMARY KEY,
                    size_bytes INTEGER NOT NULL,
                    content_path TEXT NOT NULL,
                    metadata TEXT,
                    created_at TIMESTAMP NOT NULL
                )
            """
            )
            conn.commit()

    @staticmethod
    def hash_content(data: bytes) -> str:
        """Generate SHA-256 hash of content.

        Args:
            data: Content to hash

        Returns:
            Hex string of SHA-256 hash
        """
        return hashlib.sha256(data).hexdigest()

    async def put(
        self, data: bytes, metadata: Optional[Mapping[str, str]] = None
    ) -> StoredContent:
        if len(data) > self.max_payload_bytes:
            raise SizeLimitError(
                f"Payload of {len(data)} bytes exceeds limit of "
                f"{self.max_payload_bytes} bytes"
            )
        return await asyncio.to_thread(self._put_sync, data, dict(metadata or {}))

    async def get(self, address: str) -> bytes:
        if not self._HASH_PATTERN.match(address):
            raise ContentNotFound(f"Content {address} not found")
        return await asyncio.to_thread(self._get_sync, address)

    async def ping(self) -> bool:
        return await asyncio.to_thread(self._ping_sync)

    def _put_sync(self, data: bytes, metadata: dict[str, str]) -> StoredContent:
        address = self.hash_content(data)
        content_path = self._get_content_path(address)

        try:
            if self.has_content(address) and content_path.exists():
                logger.debug("content_already_stored", address=address)
                return StoredContent(
                    address=address,
                    size_bytes=len(data),
                    provider_ref=self.provider_ref,
                )

            if self.capacity_bytes is not None:
                used = self._used_bytes()
                if used + len(data) > self.capacity_bytes:
                    raise CapacityError(
                        f"Store capacity exhausted: {used} of "
                        f"{self.capacity_bytes} bytes used, "
                        f"{len(data)} requested"
                    )

            content_path.parent.mkdir(parents=True, exist_ok=True)
            self._write_atomic(content_path, data)
            self._write_atomic(
                self._get_metadata_path(address),
                json.dumps(
                    {
                        "address": address,
                        "size_bytes": len(data),
                        "metadata": metadata,
                        "timestamp": datetime.now(timezone.utc).isoformat(),
                    },
                    indent=2,
                ).encode(),
            )
            self._index_content(address, len(data), content_path, metadata)
        except (OSError, sqlite3.Error) as e:
            raise ProviderUnavailable(f"Local store write failed: {e}") from e

        logger.info("content_stored", address=address, size_bytes=len(data))
        return StoredContent(
            address=address, size_bytes=len(data), provider_ref=self.provider_ref
        )

    def _get_sync(self, address: str) -> bytes:
        content_path = self._get_content_path(address)
        try:
            return content_path.read_bytes()
        except FileNotFoundError as e:
            raise ContentNotFound(f"Content {address} not found") from e
        except OSError as e:
            raise ProviderUnavailable(f"Local store read failed: {e}") from e

    def _ping_sync(self) -> bool:
        try:
            with closing(self._connect()) as conn:
                conn.execute("SELECT 1 FROM content_index LIMIT 1").fetchall()
            return (self.content_store_path / "content").is_dir()
        except (OSError, sqlite3.Error) as e:
            logger.warning("content_store_ping_failed", error=str(e))
            return False

    @staticmethod
    def _write_atomic(path: Path, data: bytes) -> None:
        # Concurrent writers of the same address each use their own temp file
        tmp_path = path.with_name(f".{path.name}.{uuid4().hex}.tmp")
        try:
            tmp_path.write_bytes(data)
            os.replace(tmp_path, path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

    @with_transaction_retry
    def _index_content(
        self,
        address: str,
        size_bytes: int,
        content_path: Path,
        metadata: dict[str, str],
    ) -> None:
        with closing(self._connect()) as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO content_index
                (address, size_bytes, content_path, metadata, created_at)
                VALUES (?, ?, ?, ?, ?)
            """,
                (
                    address,
                    size_bytes,
                    str(content_path),
                    json.dumps(metadata),
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            conn.commit()

    @with_db_retry()
    def _used_bytes(self) -> int:
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT COALESCE(SUM(size_bytes), 0) FROM content_index"
            ).fetchone()
        return int(row[0])

    @with_db_retry()
    def has_content(self, address: str) -> bool:
        """Check if content exists in store.

        Args:
            address: SHA-256 hash of content

        Returns:
            True if content exists

        Raises:
            ValueError: If hash format is invalid
        """
        self._validate_hash(address)
        with closing(self._connect()) as conn:
            cursor = conn.execute(
                "SELECT 1 FROM content_index WHERE address = ?", (address,)
            )
            return cursor.fetchone() is not None

    @with_db_retry()
    def get_entry(self, address: str) -> Optional[ContentEntry]:
        """Get the index entry for an address.

        Raises:
            ValueError: If hash format is invalid
        """
        self._validate_hash(address)
        with closing(self._connect()) as conn:
            row = conn.execute(
                """
                SELECT address, size_bytes, content_path, metadata, created_at
                FROM content_index WHERE address = ?
            """,
                (address,),
            ).fetchone()
        if row is None:
            return None
        return ContentEntry(
            address=row[0],
            size_bytes=row[1],
            content_path=row[2],
            metadata=json.loads(row[3]) if row[3] else {},
            created_at=row[4],
        )

    @with_db_retry()
    def get_statistics(self) -> dict:
        """Get statistics about stored content.

        Returns:
            Dictionary with statistics
        """
        with closing(self._connect()) as conn:
            total, total_bytes = conn.execute(
                "SELECT COUNT(*), COALESCE(SUM(size_bytes), 0) FROM content_index"
            ).fetchone()

        # Calculate on-disk size, including metadata sidecars
        store_size = sum(
            f.stat().st_size
            for f in (self.content_store_path / "content").rglob("*")
            if f.is_file()
        )

        return {
            "total_content": total,
            "content_bytes": total_bytes,
            "store_size_bytes": store_size,
            "capacity_bytes": self.capacity_bytes,
        }

    def _validate_hash(self, content_hash: str) -> None:
        """Validate hash format for security.

        Args:
            content_hash: Hash to validate

        Raises:
            ValueError: If hash format is invalid
        """
        if not self._HASH_PATTERN.match(content_hash):
            raise ValueError(
                f"Invalid hash format: expected 64 hex characters, got: {content_hash}"
            )

    def _get_content_path(self, content_hash: str) -> Path:
        """Get path for content file.

        Raises:
            ValueError: If hash format is invalid
        """
        self._validate_hash(content_hash)
        prefix = content_hash[:2]
        return self.content_store_path / "content" / prefix / f"{content_hash}.bin"

    def _get_metadata_path(self, content_hash: str) -> Path:
        """Get path for the metadata sidecar of a content file."""
        return self._get_content_path(content_hash).with_suffix(".json")
