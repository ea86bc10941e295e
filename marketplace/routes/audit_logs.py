from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database import get_db
from marketplace.middleware.auth import get_current_user
from marketplace.middleware.authorization import require_roles
from marketplace.schemas.common import PaginatedResponse, paginate
from marketplace.services.entity_store import AuditLogStore
from marketplace.utils import iso

router = APIRouter()


class AuditLogResponse(BaseModel):
    id: str
    actor_id: Optional[str] = None
    entity_type: str
    entity_id: str
    action: str
    before_status: Optional[str] = None
    after_status: str
    created_at: str


@router.get("", response_model=PaginatedResponse[AuditLogResponse])
async def list_audit_logs(
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(50, ge=1, le=200),
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[str] = Query(None),
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
):
    filters = {}
    if entity_type:
        filters["entity_type"] = entity_type
    if entity_id:
        filters["entity_id"] = entity_id
    logs = await AuditLogStore(db).list(**filters)

    items, meta = paginate(logs, page, limit)
    return PaginatedResponse(
        data=[
            AuditLogResponse(
                id=log.id,
                actor_id=log.actor_id,
                entity_type=log.entity_type,
                entity_id=log.entity_id,
                action=log.action,
                before_status=log.before_status,
                after_status=log.after_status,
                created_at=iso(log.created_at),
            )
            for log in items
        ],
        pagination=meta,
    )
