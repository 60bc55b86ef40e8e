"""Storage API endpoints: ingest, list, download and record lookup."""

from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Path, Query, Response, UploadFile
from starlette import status

from app.api.v1.deps import get_app_state, get_coordinator, get_retrieval
from app.core.config import settings
from app.core.events import AppStateDict
from app.ingestion.coordinator import IngestionCoordinator
from app.ingestion.retrieval import RetrievalService
from app.models.ingestion import RecordStatus
from app.models.response import (
    ErrorResponse,
    FileListResponse,
    HealthResponse,
    IngestResponse,
    RecordSummary,
)

router = APIRouter(tags=["storage"])

ERROR_RESPONSES: dict[int | str, dict] = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
}

INGEST_ERROR_RESPONSES: dict[int | str, dict] = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_402_PAYMENT_REQUIRED: {"model": ErrorResponse},
    status.HTTP_409_CONFLICT: {"model": ErrorResponse},
    status.HTTP_422_UNPROCESSABLE_ENTITY: {"model": ErrorResponse},
    status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse},
}


def content_disposition(file_name: str | None, fallback: str) -> str:
    """Build an attachment header that survives non-ASCII file names."""
    name = file_name or fallback
    ascii_name = name.encode("ascii", "ignore").decode().replace('"', "") or fallback
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(name)}"


@router.post(
    "/ingest",
    response_model=IngestResponse,
    responses=INGEST_ERROR_RESPONSES,
)
async def ingest(
    file: Optional[UploadFile] = File(None, description="Payload to store"),
    owner_id: Optional[str] = Form(None, description="Account the file belongs to"),
    transfer_ref: Optional[str] = Form(
        None, description="Settlement transfer paying for this upload"
    ),
    payment_amount: Optional[str] = Form(
        None, description="Amount paid, integer in the token's smallest unit"
    ),
    declared_hash: Optional[str] = Form(
        None, description="Optional SHA-256 of the payload, hex or sha256:<hex>"
    ),
    coordinator: IngestionCoordinator = Depends(get_coordinator),
) -> IngestResponse:
    """
    Store a file once its payment transfer has settled.

    Blocks while the settlement system confirms the transfer, then writes
    the file to the storage network and returns its content address.
    Uploading identical content again for the same owner returns the
    earlier result without paying or uploading twice.
    """
    payload = b""
    file_name = None
    if file is not None:
        # Read one byte past the limit so oversize uploads are rejected unread
        payload = await file.read(coordinator.max_payload_bytes + 1)
        file_name = file.filename

    result = await coordinator.ingest(
        owner_id=owner_id,
        payload=payload,
        payment_amount=payment_amount,
        transfer_ref=transfer_ref,
        declared_hash=declared_hash,
        file_name=file_name,
    )
    return IngestResponse.model_validate(result.model_dump())


@router.get(
    "/files/{owner_id}",
    response_model=FileListResponse,
    responses=ERROR_RESPONSES,
)
async def list_files(
    owner_id: str = Path(..., description="Owner to list files for"),
    status_filter: Optional[RecordStatus] = Query(
        None, alias="status", description="Only records in this status"
    ),
    limit: int = Query(100, ge=1, le=1000, description="Maximum records"),
    offset: int = Query(0, ge=0, description="Records to skip"),
    retrieval: RetrievalService = Depends(get_retrieval),
) -> FileListResponse:
    """
    List an owner's ingestion records, most recent first.
    """
    records = await retrieval.list_by_owner(
        owner_id, status=status_filter, limit=limit, offset=offset
    )
    return FileListResponse(
        owner_id=owner_id.strip().lower(),
        count=len(records),
        files=[RecordSummary.from_record(record) for record in records],
    )


@router.get(
    "/download/{content_address}",
    response_class=Response,
    responses={
        **ERROR_RESPONSES,
        status.HTTP_200_OK: {"content": {"application/octet-stream": {}}},
    },
)
async def download(
    content_address: str = Path(..., description="Content address to fetch"),
    retrieval: RetrievalService = Depends(get_retrieval),
) -> Response:
    """
    Download stored content by its content address.
    """
    retrieved = await retrieval.retrieve(content_address)
    record = retrieved.record
    return Response(
        content=retrieved.data,
        media_type="application/octet-stream",
        headers={
            "Content-Disposition": content_disposition(
                record.file_name, content_address
            ),
            "X-Content-SHA256": record.content_hash,
            "X-Record-ID": record.id,
        },
    )


@router.get(
    "/records/{record_id}",
    response_model=RecordSummary,
    responses=ERROR_RESPONSES,
)
async def get_record(
    record_id: str = Path(..., description="Ingestion record id"),
    retrieval: RetrievalService = Depends(get_retrieval),
) -> RecordSummary:
    """
    Look up one ingestion record, including pending and failed ones.
    """
    return RecordSummary.from_record(await retrieval.get_record(record_id))


@router.get("/health", response_model=HealthResponse)
async def health_check(
    state: AppStateDict = Depends(get_app_state),
) -> HealthResponse:
    """
    Report whether the storage network and the database are reachable.
    """
    health = await state.health_check()
    return HealthResponse(
        status=health["status"],
        storage_reachable=health["storage_reachable"],
        database_reachable=health["database_reachable"],
        version=settings.version,
    )
