"""Content-addressed storage boundary."""

from app.content_store.config import (
    create_content_store,
    get_content_store,
    reset_content_store,
)
from app.content_store.gateway import HttpContentStore
from app.content_store.models import ContentEntry, StoredContent
from app.content_store.store import ContentStore, LocalContentStore

__all__ = [
    "ContentEntry",
    "ContentStore",
    "HttpContentStore",
    "LocalContentStore",
    "StoredContent",
    "create_content_store",
    "get_content_store",
    "reset_content_store",
]
