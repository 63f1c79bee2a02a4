"""
Health check endpoints
"""
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import PlainTextResponse

from gha_exporter.app import Exporter

from .deps import get_exporter

router = APIRouter(tags=["Health"])

LIVENESS_PATH = "/liveness"
READINESS_PATH = "/readiness"


@router.get(LIVENESS_PATH, response_class=PlainTextResponse)
async def liveness():
    return "ok"


@router.get(READINESS_PATH, response_class=PlainTextResponse)
async def readiness(exporter: Exporter = Depends(get_exporter)):
    """Ready while the ingestion worker is running and accepting events."""
    if not exporter.is_ready:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="not ready")
    return "ok"
