import uuid
from datetime import datetime
from typing import Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, and_
from booking_engine.modules.booking_links.models import BookingLink

class BookingLinkRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **data) -> BookingLink:
        obj = BookingLink(**data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, link_id: uuid.UUID) -> BookingLink | None:
        q = select(BookingLink).where(BookingLink.id == link_id).execution_options(populate_existing=True)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def get_by_hash(self, token_hash: str) -> BookingLink | None:
        q = select(BookingLink).where(BookingLink.token_hash == token_hash).execution_options(populate_existing=True)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list(self, *, candidate_id: uuid.UUID | None = None, status: str | None = None, limit: int = 50) -> Sequence[BookingLink]:
        cond = []
        if candidate_id:
            cond.append(BookingLink.candidate_id == candidate_id)
        if status:
            cond.append(BookingLink.status == status)
        q = select(BookingLink).where(and_(*cond)).order_by(BookingLink.created_at.desc()).limit(limit)
        res = await self.session.execute(q)
        return res.scalars().all()

    async def expired_active(self, now: datetime, *, candidate_id: uuid.UUID | None = None, limit: int = 500) -> Sequence[BookingLink]:
        cond = [BookingLink.status == "active", BookingLink.expires_at < now]
        if candidate_id:
            cond.append(BookingLink.candidate_id == candidate_id)
        q = select(BookingLink).where(and_(*cond)).order_by(BookingLink.expires_at.asc()).limit(limit)
        res = await self.session.execute(q.execution_options(populate_existing=True))
        return res.scalars().all()

    async def has_open_link(self, candidate_id: uuid.UUID, kind: str, now: datetime) -> bool:
        q = select(BookingLink.id).where(and_(
            BookingLink.candidate_id == candidate_id,
            BookingLink.kind == kind,
            BookingLink.status == "active",
            BookingLink.expires_at >= now,
        )).limit(1)
        res = await self.session.execute(q)
        return res.first() is not None

    async def set_status(self, link_id: uuid.UUID, from_status: str, to_status: str, **values) -> bool:
        res = await self.session.execute(
            update(BookingLink)
            .where(and_(BookingLink.id == link_id, BookingLink.status == from_status))
            .values(status=to_status, **values)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    async def consume(self, link: BookingLink, *, interview_id: uuid.UUID, at: datetime) -> bool:
        """Count one use against ``link`` if nobody else did since we read it."""
        observed = link.use_count
        exhausted = observed + 1 >= link.max_uses
        res = await self.session.execute(
            update(BookingLink)
            .where(and_(
                BookingLink.id == link.id,
                BookingLink.status == "active",
                BookingLink.use_count == observed,
            ))
            .values(
                use_count=observed + 1,
                status="used" if exhausted else "active",
                used_at=at,
                interview_id=interview_id,
            )
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1
