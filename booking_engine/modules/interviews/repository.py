import uuid
from datetime import date, datetime, timedelta
from typing import Iterable, Sequence
from zoneinfo import ZoneInfo
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, and_, or_
from booking_engine.modules.availability.slots import BusyInterval, overlaps, local_date
from booking_engine.modules.interviews.models import Interview, BookingDayGuard, ACTIVE_STATUSES

# Longest booking we ever store (a trial). Used to widen range queries so an
# interview that starts before a range but runs into it is still found.
_MAX_SPAN = timedelta(days=1)

class InterviewRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **data) -> Interview:
        obj = Interview(**data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, interview_id: uuid.UUID) -> Interview | None:
        q = select(Interview).where(Interview.id == interview_id).execution_options(populate_existing=True)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list(self, *, status: str | None = None, candidate_id: uuid.UUID | None = None, limit: int = 50, offset: int = 0) -> Sequence[Interview]:
        cond = []
        if status:
            cond.append(Interview.status == status)
        if candidate_id:
            cond.append(Interview.candidate_id == candidate_id)
        q = select(Interview).where(and_(*cond)).order_by(Interview.scheduled_at.desc()).limit(limit).offset(offset)
        res = await self.session.execute(q)
        return res.scalars().all()

    async def active_in_range(self, start: datetime, end: datetime) -> Sequence[Interview]:
        q = select(Interview).where(and_(
            Interview.status.in_(ACTIVE_STATUSES),
            Interview.scheduled_at >= start - _MAX_SPAN,
            Interview.scheduled_at < end,
        )).execution_options(populate_existing=True)
        res = await self.session.execute(q)
        rows = res.scalars().all()
        return [r for r in rows if r.scheduled_at + timedelta(minutes=r.duration_minutes) > start]

    async def busy_intervals(self, start: datetime, end: datetime) -> Sequence[BusyInterval]:
        return [
            BusyInterval(r.scheduled_at, r.scheduled_at + timedelta(minutes=r.duration_minutes))
            for r in await self.active_in_range(start, end)
        ]

    async def find_overlapping(self, start: datetime, end: datetime, exclude_id: uuid.UUID | None = None) -> Interview | None:
        for b in await self.active_in_range(start, end):
            if b.id == exclude_id:
                continue
            if overlaps(start, end, b.scheduled_at, b.scheduled_at + timedelta(minutes=b.duration_minutes)):
                return b
        return None

    async def count_active_by_day(self, start: datetime, end: datetime, tz: ZoneInfo) -> dict[date, int]:
        q = select(Interview.scheduled_at).where(and_(
            Interview.status.in_(ACTIVE_STATUSES),
            Interview.scheduled_at >= start,
            Interview.scheduled_at < end,
        ))
        res = await self.session.execute(q)
        counts: dict[date, int] = {}
        for (at,) in res.all():
            d = local_date(at, tz)
            counts[d] = counts.get(d, 0) + 1
        return counts

    async def overdue(self, now: datetime, *, after: tuple[datetime, uuid.UUID] | None = None, limit: int = 500) -> Sequence[Interview]:
        """Active interviews whose time has passed, oldest first, keyset-paged on (scheduled_at, id)."""
        cond = [Interview.status.in_(ACTIVE_STATUSES), Interview.scheduled_at < now]
        if after is not None:
            at, last_id = after
            cond.append(or_(Interview.scheduled_at > at, and_(Interview.scheduled_at == at, Interview.id > last_id)))
        q = (
            select(Interview)
            .where(and_(*cond))
            .order_by(Interview.scheduled_at.asc(), Interview.id.asc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        res = await self.session.execute(q)
        return res.scalars().all()

    async def for_candidate(self, candidate_id: uuid.UUID, statuses: Iterable[str]) -> Sequence[Interview]:
        q = select(Interview).where(and_(
            Interview.candidate_id == candidate_id,
            Interview.status.in_(tuple(statuses)),
        )).execution_options(populate_existing=True)
        res = await self.session.execute(q)
        return res.scalars().all()

    async def transition(self, interview_id: uuid.UUID, from_statuses: Iterable[str], to_status: str, **values) -> bool:
        """Compare-and-set the status; False when someone else moved it first."""
        res = await self.session.execute(
            update(Interview)
            .where(and_(Interview.id == interview_id, Interview.status.in_(tuple(from_statuses))))
            .values(status=to_status, **values)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    # ---- day guard ----

    async def claim_day(self, day: date) -> bool:
        """Bump the guard row for ``day``.

        Returns False when another writer bumped it between our read and our
        update; a concurrent first insert surfaces as IntegrityError on flush.
        """
        res = await self.session.execute(select(BookingDayGuard.version).where(BookingDayGuard.day == day))
        version = res.scalar_one_or_none()
        if version is None:
            self.session.add(BookingDayGuard(day=day, version=1))
            await self.session.flush()
            return True
        res = await self.session.execute(
            update(BookingDayGuard)
            .where(and_(BookingDayGuard.day == day, BookingDayGuard.version == version))
            .values(version=version + 1)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1
