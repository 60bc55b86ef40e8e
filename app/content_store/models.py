"""Data models for content store."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class StoredContent:
    """Result of a successful storage write."""

    address: str
    size_bytes: int
    provider_ref: Optional[str] = None


@dataclass
class ContentEntry:
    """Represents an entry in the local content index."""

    address: str
    size_bytes: int
    content_path: str
    metadata: dict[str, str] = field(default_factory=dict)
    created_at: Optional[str] = None
