"""Content store backed by an HTTP storage gateway."""

import json
from collections.abc import Mapping
from typing import Any, Optional
from urllib.parse import quote

import httpx

from app.content_store.models import StoredContent
from app.content_store.store import DEFAULT_MAX_PAYLOAD_BYTES, ContentStore
from app.core.errors import (
    CapacityError,
    ContentNotFound,
    ProviderUnavailable,
    SizeLimitError,
)
from app.core.logging import get_logger

logger = get_logger().bind(module="content_store.gateway")

METADATA_HEADER = "X-Content-Metadata"


class HttpContentStore(ContentStore):
    """Client of a storage gateway that uploads to the storage network.

    The gateway exposes ``POST /upload`` (raw body, metadata as a JSON
    header), ``GET /download/{address}`` and ``GET /health``.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 120.0,
        max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the gateway client.

        Args:
            base_url: Root URL of the storage gateway
            timeout: Per-request timeout in seconds
            max_payload_bytes: Largest payload accepted by ``put``
            headers: Optional additional HTTP headers
            transport: Optional transport, used to inject a mock in tests
        """
        self.base_url = base_url.rstrip("/")
        self.max_payload_bytes = max_payload_bytes
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers=headers or {},
            transport=transport,
        )

    async def put(
        self, data: bytes, metadata: Optional[Mapping[str, str]] = None
    ) -> StoredContent:
        if len(data) > self.max_payload_bytes:
            raise SizeLimitError(
                f"Payload of {len(data)} bytes exceeds limit of "
                f"{self.max_payload_bytes} bytes"
            )

        try:
            response = await self._client.post(
                "/upload",
                content=data,
                headers={
                    "Content-Type": "application/octet-stream",
                    METADATA_HEADER: json.dumps(dict(metadata or {})),
                },
            )
        except httpx.HTTPError as e:
            raise ProviderUnavailable(f"Storage gateway unreachable: {e}") from e

        if response.status_code == 413:
            raise SizeLimitError(f"Storage gateway rejected size: {response.text}")
        if response.status_code == 507:
            raise CapacityError(f"Storage gateway out of capacity: {response.text}")
        if response.status_code >= 400:
            raise ProviderUnavailable(
                f"Storage gateway upload failed with {response.status_code}"
            )

        payload = self._json(response)
        # Older gateways report the piece commitment instead of an address
        address = payload.get("address") or payload.get("commp")
        if not address:
            raise ProviderUnavailable("Storage gateway response has no address")

        provider_ref = payload.get("providerRef") or payload.get("providerId")
        logger.info(
            "content_uploaded",
            address=address,
            provider_ref=provider_ref,
            size_bytes=len(data),
        )
        return StoredContent(
            address=str(address),
            size_bytes=int(payload.get("size", len(data))),
            provider_ref=str(provider_ref) if provider_ref is not None else None,
        )

    async def get(self, address: str) -> bytes:
        try:
            response = await self._client.get(f"/download/{quote(address, safe='')}")
        except httpx.HTTPError as e:
            raise ProviderUnavailable(f"Storage gateway unreachable: {e}") from e

        if response.status_code == 404:
            raise ContentNotFound(f"Content {address} not found")
        if response.status_code >= 400:
            raise ProviderUnavailable(
                f"Storage gateway download failed with {response.status_code}"
            )
        return response.content

    async def ping(self) -> bool:
        try:
            response = await self._client.get("/health")
        except httpx.HTTPError as e:
            logger.warning("storage_gateway_ping_failed", error=str(e))
            return False
        return response.status_code == 200

    async def close(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderUnavailable("Storage gateway returned invalid JSON") from e
        if not isinstance(payload, dict):
            raise ProviderUnavailable("Storage gateway returned unexpected payload")
        return payload
