"""Configuration for content store."""

from pathlib import Path
from typing import Optional

from app.content_store.gateway import HttpContentStore
from app.content_store.store import ContentStore, LocalContentStore
from app.core.config import Settings, settings as default_settings

# Global instance
_content_store_instance: Optional[ContentStore] = None


def get_content_store(config: Settings | None = None) -> ContentStore:
    """Get the configured content store instance.

    The backend is selected by ``STORAGE_BACKEND``:
    - ``local``: filesystem store under ``STORAGE_PATH``
    - ``http``: storage gateway at ``STORAGE_GATEWAY_URL``

    Returns:
        ContentStore instance
    """
    global _content_store_instance

    if _content_store_instance is None:
        _content_store_instance = create_content_store(config or default_settings)

    return _content_store_instance


def reset_content_store() -> None:
    """Reset content store singleton. Used for testing."""
    global _content_store_instance
    _content_store_instance = None


def create_content_store(config: Settings) -> ContentStore:
    """Create a content store from settings."""
    if config.STORAGE_BACKEND == "http":
        return HttpContentStore(
            base_url=config.STORAGE_GATEWAY_URL,
            timeout=config.STORAGE_REQUEST_TIMEOUT,
            max_payload_bytes=config.MAX_PAYLOAD_BYTES,
        )

    store_path = Path(config.STORAGE_PATH)
    store_path.mkdir(parents=True, exist_ok=True)
    return LocalContentStore(
        store_path=store_path,
        max_payload_bytes=config.MAX_PAYLOAD_BYTES,
        capacity_bytes=config.STORAGE_CAPACITY_BYTES,
    )
