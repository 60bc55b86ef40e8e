"""Test fixture package for bridgestore.

Contains fixtures for:
- Database engines and sessions (temporary SQLite through aiosqlite)
- Settlement test doubles driven by a fake clock
- Content stores rooted in temporary directories
- The FastAPI application and its HTTP client
"""

from .content_store import RecordingContentStore, local_store, recording_store
from .db import db_engine, db_session, db_session_factory, record_repository
from .settlement import FakeClock, FakeSettlementClient, fake_clock, watcher

__all__ = [
    # Database
    "db_engine",
    "db_session",
    "db_session_factory",
    "record_repository",
    # Settlement
    "FakeClock",
    "FakeSettlementClient",
    "fake_clock",
    "watcher",
    # Content store
    "RecordingContentStore",
    "local_store",
    "recording_store",
]
