import uuid
from typing import Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from booking_engine.modules.directory.models import Candidate

class CandidateRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **data) -> Candidate:
        obj = Candidate(**data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, candidate_id: uuid.UUID) -> Candidate | None:
        q = select(Candidate).where(Candidate.id == candidate_id).execution_options(populate_existing=True)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list(self, *, status: str | None = None, limit: int = 50, offset: int = 0) -> Sequence[Candidate]:
        q = select(Candidate)
        if status:
            q = q.where(Candidate.status == status)
        q = q.order_by(Candidate.created_at.desc()).limit(limit).offset(offset)
        res = await self.session.execute(q)
        return res.scalars().all()
