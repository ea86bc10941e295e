"""
Scheduled background jobs triggered by an external scheduler -> API endpoints.

Jobs:
  - expire-rfqs: hourly; closes open RFQs past expires_at
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from marketplace.config import settings
from marketplace.database import get_db
from marketplace.services.rfq_service import expire_rfqs

logger = structlog.get_logger()
router = APIRouter()


async def _require_internal_auth(request: Request):
    """
    Verify request comes from the scheduler or an internal service.
    Validates X-Internal-Secret header against INTERNAL_JOB_SECRET from settings.
    """
    secret = settings.INTERNAL_JOB_SECRET
    if not secret:
        # In development (DEBUG=True), allow unauthenticated internal calls
        if settings.DEBUG:
            return
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="INTERNAL_JOB_SECRET is not configured",
        )
    provided = request.headers.get("X-Internal-Secret")
    if not provided or provided != secret:
        logger.warning("internal_auth_failed", path=request.url.path)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden",
        )


@router.post("/expire-rfqs")
async def expire_overdue_rfqs(
    as_of: Optional[datetime] = Query(None, description="Naive UTC cutoff; defaults to now"),
    _auth: None = Depends(_require_internal_auth),
    db: AsyncSession = Depends(get_db),
):
    """Idempotent: RFQs already closed or rejected are never touched."""
    sweep = await expire_rfqs(db, now=as_of)
    logger.info("job_expire_rfqs_complete", expired=len(sweep.expired), failed=len(sweep.failed))
    return {
        "checked": sweep.checked,
        "expired": sweep.expired,
        "failed": sweep.failed,
    }
