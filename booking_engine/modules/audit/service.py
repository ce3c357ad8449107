from datetime import datetime
from typing import Any, Sequence
from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession
from booking_engine.modules.audit.models import AuditEvent

class AuditService:
    """Append-only activity log.

    ``log`` only flushes: the entry commits or rolls back together with the
    change it describes.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def log(self,
                  *,
                  entity_type: str,
                  entity_id: Any,
                  action: str,
                  description: str,
                  actor: str,
                  previous_value: Any = None,
                  new_value: Any = None,
                  occurred_at: datetime | None = None) -> AuditEvent:
        ev = AuditEvent(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action,
            description=description,
            previous_value=previous_value,
            new_value=new_value,
            actor=actor,
        )
        if occurred_at is not None:
            ev.occurred_at = occurred_at
        self.session.add(ev)
        await self.session.flush()
        return ev

    async def list(self, *, entity_type: str | None = None, entity_id: str | None = None, limit: int = 50) -> Sequence[AuditEvent]:
        q = select(AuditEvent)
        if entity_type:
            q = q.where(AuditEvent.entity_type == entity_type)
        if entity_id:
            q = q.where(AuditEvent.entity_id == entity_id)
        q = q.order_by(desc(AuditEvent.occurred_at), desc(AuditEvent.created_at)).limit(limit)
        res = await self.session.execute(q)
        return res.scalars().all()
