"""FastAPI dependencies resolving services from application state."""

from fastapi import Request

from app.core.events import AppStateDict
from app.core.errors import StorageUnavailable
from app.ingestion.coordinator import IngestionCoordinator
from app.ingestion.retrieval import RetrievalService


def get_app_state(request: Request) -> AppStateDict:
    state = getattr(request.app.state, "services", None)
    if state is None:
        raise StorageUnavailable("Service is starting up")
    return state


def get_coordinator(request: Request) -> IngestionCoordinator:
    coordinator = get_app_state(request).coordinator
    if coordinator is None:
        raise StorageUnavailable("Ingestion is not configured")
    return coordinator


def get_retrieval(request: Request) -> RetrievalService:
    retrieval = get_app_state(request).retrieval
    if retrieval is None:
        raise StorageUnavailable("Retrieval is not configured")
    return retrieval
