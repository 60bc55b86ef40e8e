"""Input normalization for ingestion requests.

Every function raises ``InvalidRequest`` on bad input and has no side
effects, so validation can run before anything is persisted.
"""

import re
from typing import Any

from app.core.errors import InvalidRequest

_DIGITS = re.compile(r"^[0-9]+$")
_SHA256_HEX = re.compile(r"^[0-9a-f]{64}$")
_HASH_PREFIX = "sha256:"
_TRANSFER_REF = re.compile(r"^[A-Za-z0-9._:-]+$")
MAX_FILE_NAME_LENGTH = 255
MAX_TRANSFER_REF_LENGTH = 256


def normalize_owner_id(owner_id: Any) -> str:
    """Trim and lower-case an owner id (wallet addresses are case-insensitive)."""
    if not isinstance(owner_id, str) or not owner_id.strip():
        raise InvalidRequest("owner_id is required")
    return owner_id.strip().lower()


def parse_payment_amount(amount: Any) -> int:
    """Parse an amount in the token's smallest unit.

    Accepts a non-negative ``int`` or a string of decimal digits. Floats are
    rejected outright so no amount is ever rounded.
    """
    if amount is None:
        raise InvalidRequest("payment_amount is required")
    if isinstance(amount, bool):
        raise InvalidRequest("payment_amount must be an integer")
    if isinstance(amount, int):
        if amount < 0:
            raise InvalidRequest("payment_amount must not be negative")
        return amount
    if isinstance(amount, str):
        value = amount.strip()
        if not _DIGITS.match(value):
            raise InvalidRequest(
                "payment_amount must be a non-negative integer in the smallest unit"
            )
        return int(value)
    raise InvalidRequest("payment_amount must be an integer")


def normalize_transfer_ref(transfer_ref: Any) -> str | None:
    """Trim a transfer id; only letters, digits and `._:-` are accepted."""
    if transfer_ref is None:
        return None
    if not isinstance(transfer_ref, str):
        raise InvalidRequest("transfer_ref must be a string")
    value = transfer_ref.strip()
    if not value:
        return None
    if len(value) > MAX_TRANSFER_REF_LENGTH or not _TRANSFER_REF.match(value):
        raise InvalidRequest("transfer_ref is malformed")
    return value


def parse_declared_hash(declared_hash: Any) -> str | None:
    """Parse a declared SHA-256 digest, bare hex or ``sha256:<hex>``."""
    if declared_hash is None:
        return None
    if not isinstance(declared_hash, str):
        raise InvalidRequest("declared_hash must be a string")
    value = declared_hash.strip().lower()
    if not value:
        return None
    if value.startswith(_HASH_PREFIX):
        value = value[len(_HASH_PREFIX) :]
    if not _SHA256_HEX.match(value):
        raise InvalidRequest("declared_hash must be a SHA-256 hex digest")
    return value


def normalize_file_name(file_name: Any) -> str | None:
    """Keep only the final path component of a client-supplied file name."""
    if file_name is None:
        return None
    if not isinstance(file_name, str):
        raise InvalidRequest("file_name must be a string")
    value = re.split(r"[\\/]", file_name.strip())[-1].strip()
    if not value:
        return None
    return value[:MAX_FILE_NAME_LENGTH]


def validate_payload(payload: Any, max_bytes: int) -> bytes:
    if not isinstance(payload, (bytes, bytearray, memoryview)):
        raise InvalidRequest("payload must be bytes")
    data = bytes(payload)
    if not data:
        raise InvalidRequest("payload must not be empty")
    if len(data) > max_bytes:
        raise InvalidRequest(
            f"payload of {len(data)} bytes exceeds limit of {max_bytes} bytes"
        )
    return data
