"""Clients for the external settlement status API."""

from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import quote

import httpx

from app.core.errors import QueryError
from app.core.logging import get_logger
from app.settlement.models import TransferStatus

logger = get_logger().bind(module="settlement.client")


class SettlementClient(ABC):
    """Boundary to the settlement system that tracks cross-chain transfers.

    Implementations must be monotonic: once ``fulfilled`` was reported true
    for a transfer, a later call must not report it false.
    """

    @abstractmethod
    async def status(self, transfer_ref: str) -> TransferStatus:
        """Query the current status of a transfer.

        Args:
            transfer_ref: Opaque transfer request identifier

        Returns:
            Current transfer status

        Raises:
            QueryError: On transient failures reaching the settlement system
        """
        raise NotImplementedError

    async def close(self) -> None:
        """Release any held resources."""
        return None


class HttpSettlementClient(SettlementClient):
    """Settlement client backed by the settlement system's HTTP API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Root URL of the settlement status API
            timeout: Per-request timeout in seconds
            headers: Optional additional HTTP headers
            transport: Optional transport, used to inject a mock in tests
        """
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            headers=headers or {},
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def status(self, transfer_ref: str) -> TransferStatus:
        try:
            response = await self._client.get(
                f"/requests/{quote(transfer_ref, safe='')}"
            )
        except httpx.HTTPError as e:
            raise QueryError(f"Settlement query failed for {transfer_ref}: {e}") from e

        if response.status_code == 404:
            # Not indexed yet; the request may still be propagating
            logger.debug("settlement_request_unknown", transfer_ref=transfer_ref)
            return TransferStatus()

        if response.status_code >= 400:
            raise QueryError(
                f"Settlement API returned {response.status_code} for {transfer_ref}"
            )

        try:
            payload: Any = response.json()
        except ValueError as e:
            raise QueryError(
                f"Settlement API returned invalid JSON for {transfer_ref}"
            ) from e

        if not isinstance(payload, dict):
            raise QueryError(
                f"Settlement API returned unexpected payload for {transfer_ref}"
            )

        return TransferStatus.from_api(payload)

    async def close(self) -> None:
        await self._client.aclose()
