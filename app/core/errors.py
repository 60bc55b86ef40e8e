"""Error taxonomy for ingestion, retrieval and external collaborators.

Every failure a caller can observe is an ``IngestionError`` subclass with a
stable ``kind`` and a ``status_code`` used by the HTTP layer. Errors raised by
the settlement system and the storage network derive from
``ExternalServiceError`` and are translated by the coordinator before they
reach a caller.
"""

from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_402_PAYMENT_REQUIRED,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_422_UNPROCESSABLE_ENTITY,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
    HTTP_503_SERVICE_UNAVAILABLE,
)


class IngestionError(Exception):
    """Base class for failures surfaced to callers."""

    status_code: int = HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, record_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.record_id = record_id

    @property
    def kind(self) -> str:
        """Stable error kind, the class name."""
        return type(self).__name__

    def to_dict(self) -> dict[str, str | int | None]:
        return {
            "kind": self.kind,
            "message": self.message,
            "status_code": self.status_code,
            "record_id": self.record_id,
        }


class InvalidRequest(IngestionError):
    """Caller error; nothing was persisted and no external call was made."""

    status_code = HTTP_400_BAD_REQUEST


class IntegrityMismatch(IngestionError):
    """Content hash does not match the declared or recorded hash."""

    status_code = HTTP_422_UNPROCESSABLE_ENTITY


class PaymentNotConfirmed(IngestionError):
    """Settlement wait timed out; the record stays pending."""

    status_code = HTTP_402_PAYMENT_REQUIRED


class TransferAlreadyRedeemed(IngestionError):
    """The transfer is already linked to a different stored record."""

    status_code = HTTP_409_CONFLICT


class StorageWriteFailed(IngestionError):
    """Storage network rejected or failed the write; the record stays pending."""

    status_code = HTTP_502_BAD_GATEWAY

    def __init__(
        self,
        message: str,
        record_id: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, record_id)
        self.cause = cause


class NotFound(IngestionError):
    """No stored record for the requested content address."""

    status_code = HTTP_404_NOT_FOUND


class StorageUnavailable(IngestionError):
    """Storage network could not serve a read."""

    status_code = HTTP_503_SERVICE_UNAVAILABLE


class ExternalServiceError(Exception):
    """Base class for errors raised by external collaborators."""


class QueryError(ExternalServiceError):
    """Transient failure querying the settlement system."""


class CapacityError(ExternalServiceError):
    """Storage network has no capacity for the write."""


class SizeLimitError(ExternalServiceError):
    """Payload exceeds the storage network's size bound."""


class ProviderUnavailable(ExternalServiceError):
    """Storage provider could not be reached or failed the request."""


class ContentNotFound(ExternalServiceError):
    """Storage network does not hold the requested address."""
