"""API v1 router module."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.api.v1.storage import router as storage_router

router = APIRouter(default_response_class=JSONResponse)

router.include_router(storage_router)
