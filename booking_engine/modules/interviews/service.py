import uuid
import logging
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.clock import Clock, system_clock, business_tz
from booking_engine.core.config import settings
from booking_engine.core.errors import InvalidInput, InvalidTransition, NotFound, SlotConflict, TemporalError
from booking_engine.modules.availability.slots import local_date
from booking_engine.modules.directory.repository import CandidateRepository
from booking_engine.modules.interviews.guard import commit_with_day_guard
from booking_engine.modules.interviews.lifecycle import record_transition
from booking_engine.modules.interviews.models import Interview
from booking_engine.modules.interviews.repository import InterviewRepository

logger = logging.getLogger(__name__)

# Operator-driven moves; the sweeps and the booking flow have their own paths
VALID_NEXT = {
    "scheduled": {"confirmed", "completed", "cancelled", "no_show"},
    "confirmed": {"completed", "cancelled", "no_show"},
    "lapsed": {"resolved", "scheduled", "completed", "cancelled", "no_show"},
    "completed": set(),
    "cancelled": set(),
    "no_show": set(),
    "resolved": set(),
}

RESOLUTION_STATUS = {
    "rescheduled": "scheduled",
    "completed": "completed",
    "cancelled": "cancelled",
    "no_show": "no_show",
}

class InterviewService:
    def __init__(self, session: AsyncSession, *, clock: Clock = system_clock, tz: ZoneInfo | None = None):
        self.session = session
        self.clock = clock
        self.tz = tz or business_tz()
        self.interviews = InterviewRepository(session)
        self.candidates = CandidateRepository(session)

    async def get(self, interview_id: uuid.UUID) -> Interview:
        iv = await self.interviews.get(interview_id)
        if not iv:
            raise NotFound("Interview not found")
        return iv

    async def list(self, **filters):
        return await self.interviews.list(**filters)

    async def change_status(self, interview_id: uuid.UUID, new_status: str, *, actor: str) -> Interview:
        iv = await self.get(interview_id)
        previous = iv.status
        if new_status not in VALID_NEXT.get(previous, set()) or previous == "lapsed":
            raise InvalidTransition(f"Cannot move interview from {previous} to {new_status}")
        now = self.clock()
        values = {}
        if new_status == "completed":
            values["completed_at"] = now
        elif new_status == "cancelled":
            values["cancelled_at"] = now
        if not await self.interviews.transition(iv.id, (previous,), new_status, **values):
            raise InvalidTransition("Interview status changed concurrently; reload and retry")
        await record_transition(self.session, interview_id=iv.id, candidate_id=iv.candidate_id, previous=previous,
                                new=new_status, description=f"Marked {new_status}", actor=actor, at=now)
        if new_status == "no_show":
            await self._stamp_no_show(iv.candidate_id, now)
        await self.session.commit()
        return await self.get(interview_id)

    async def resolve_lapsed(self, interview_id: uuid.UUID, resolution: str, *, actor: str,
                             notes: str | None = None, new_date: datetime | None = None) -> dict:
        if resolution not in RESOLUTION_STATUS:
            raise InvalidInput(f"Unknown resolution: {resolution}")
        iv = await self.get(interview_id)
        if iv.status != "lapsed":
            raise InvalidTransition(f"Only lapsed interviews can be resolved (status is {iv.status})")
        now = self.clock()
        new_status = RESOLUTION_STATUS[resolution]
        candidate_id = iv.candidate_id
        description = f"Lapsed interview resolved: {resolution}" + (f" ({notes})" if notes else "")
        common = dict(resolved_at=now, resolved_by=actor, resolution_reason=resolution, resolution_notes=notes)

        if resolution == "rescheduled":
            if new_date is None:
                raise InvalidInput("new_date is required when rescheduling")
            if new_date <= now:
                raise TemporalError("The new date must be in the future", code="in_the_past")
            old_at = iv.scheduled_at
            new_end = new_date + timedelta(minutes=iv.duration_minutes)

            async def work():
                clash = await self.interviews.find_overlapping(new_date, new_end, exclude_id=interview_id)
                if clash is not None:
                    raise SlotConflict("The new time overlaps another booking")
                fresh = await self.interviews.get(interview_id)
                ok = await self.interviews.transition(
                    interview_id, ("lapsed",), "scheduled",
                    scheduled_at=new_date, rescheduled_from=old_at, lapsed_at=None,
                    reschedule_count=(fresh.reschedule_count or 0) + 1, **common,
                )
                if not ok:
                    raise InvalidTransition("Interview was resolved concurrently")
                await record_transition(self.session, interview_id=interview_id, candidate_id=candidate_id,
                                        previous="lapsed", new="scheduled", description=description, actor=actor, at=now)

            await commit_with_day_guard(self.session, local_date(new_date, self.tz), work,
                                        attempts=settings.BOOKING_COMMIT_RETRIES)
        else:
            values = dict(common)
            if new_status == "completed":
                values["completed_at"] = now
            elif new_status == "cancelled":
                values["cancelled_at"] = now
            if not await self.interviews.transition(interview_id, ("lapsed",), new_status, **values):
                raise InvalidTransition("Interview was resolved concurrently")
            await record_transition(self.session, interview_id=interview_id, candidate_id=candidate_id,
                                    previous="lapsed", new=new_status, description=description, actor=actor, at=now)
            if new_status == "no_show":
                await self._stamp_no_show(candidate_id, now)
            await self.session.commit()

        logger.info("Interview %s resolved as %s by %s", interview_id, resolution, actor)
        return {"interview_id": interview_id, "new_status": new_status}

    async def _stamp_no_show(self, candidate_id: uuid.UUID, at: datetime):
        candidate = await self.candidates.get(candidate_id)
        if candidate is not None:
            candidate.last_interview_no_show_at = at
            await self.session.flush()
