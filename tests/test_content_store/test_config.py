"""Tests for content store configuration."""

from pathlib import Path

import pytest

from app.content_store import (
    HttpContentStore,
    LocalContentStore,
    create_content_store,
    get_content_store,
    reset_content_store,
)
from tests.fixtures.types.config import get_test_settings


class TestContentStoreConfig:
    """Test cases for content store configuration."""

    def test_should_create_local_store_under_storage_path(self, tmp_path: Path):
        config = get_test_settings(
            tmp_path,
            STORAGE_PATH=str(tmp_path / "nested" / "store"),
            STORAGE_CAPACITY_BYTES=4096,
        )

        store = create_content_store(config)

        assert isinstance(store, LocalContentStore)
        assert store.store_path == tmp_path / "nested" / "store"
        assert store.capacity_bytes == 4096
        assert store.max_payload_bytes == config.MAX_PAYLOAD_BYTES

    async def test_should_create_http_store_for_gateway_backend(self, tmp_path: Path):
        config = get_test_settings(
            tmp_path,
            STORAGE_BACKEND="http",
            STORAGE_GATEWAY_URL="http://gateway.test/",
        )

        store = create_content_store(config)
        try:
            assert isinstance(store, HttpContentStore)
            assert store.base_url == "http://gateway.test"
        finally:
            await store.close()

    def test_should_reject_unknown_backend(self, tmp_path: Path):
        with pytest.raises(ValueError, match="Unsupported STORAGE_BACKEND"):
            get_test_settings(tmp_path, STORAGE_BACKEND="s3")

    def test_should_return_singleton_until_reset(self, tmp_path: Path):
        config = get_test_settings(tmp_path)

        first = get_content_store(config)
        second = get_content_store()
        reset_content_store()
        third = get_content_store(config)

        assert first is second
        assert third is not first
