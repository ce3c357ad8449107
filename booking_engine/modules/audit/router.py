from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from booking_engine.core.db import get_session
from booking_engine.core.security import require_scopes
from booking_engine.modules.audit.service import AuditService

router = APIRouter()

@router.get("/audit", dependencies=[Depends(require_scopes("audit:read"))])
async def list_audit(
    session: AsyncSession = Depends(get_session),
    entity_type: str | None = None,
    entity_id: str | None = None,
    limit: int = Query(50, ge=1, le=200),
):
    rows = await AuditService(session).list(entity_type=entity_type, entity_id=entity_id, limit=limit)
    # Return raw dicts for simplicity
    return [
        {
            "id": row.id,
            "entity_type": row.entity_type,
            "entity_id": row.entity_id,
            "action": row.action,
            "description": row.description,
            "previous_value": row.previous_value,
            "new_value": row.new_value,
            "actor": row.actor,
            "occurred_at": row.occurred_at,
        }
        for row in rows
    ]
