"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...config import settings
from ...db.supabase import check_connection

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/database", status_code=status.HTTP_200_OK)
def health_database() -> dict:
    """Report whether Supabase is configured and answering queries."""
    configured = bool(settings.supabase_url and settings.supabase_key)
    if not configured:
        return {"service": "supabase", "configured": False, "healthy": False}
    return {"service": "supabase", "configured": True, "healthy": check_connection()}
