"""Keeps interview records in step with the clock and with the candidate.

``LapsedInterviewProcessor`` is the periodic sweep over interviews whose time
has passed; ``CandidateStatusRules`` is the reactive side, applied whenever a
candidate's pipeline status changes.  Every status write is a compare-and-set
on the status the decision was based on, so overlapping or repeated runs
change nothing twice.
"""
import logging
import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.clock import Clock, system_clock
from booking_engine.core.config import settings
from booking_engine.modules.audit.service import AuditService
from booking_engine.modules.directory.pipeline import (
    AUTO_RESOLVE_STATUSES,
    CANCEL_UPCOMING_STATUSES,
    COMPLETE_STATUS,
    has_moved_past,
)
from booking_engine.modules.directory.repository import CandidateRepository
from booking_engine.modules.events.outbox import OutboxDispatcher, OutboxService
from booking_engine.modules.interviews.models import ACTIVE_STATUSES
from booking_engine.modules.interviews.repository import InterviewRepository

log = logging.getLogger("interviews.lifecycle")


async def record_transition(session: AsyncSession, *, interview_id: uuid.UUID, candidate_id: uuid.UUID,
                            previous: str, new: str, description: str, actor: str, at: datetime) -> uuid.UUID:
    """Activity entry plus outbox event for one interview status change."""
    await AuditService(session).log(
        entity_type="interview",
        entity_id=interview_id,
        action="status_changed",
        description=description,
        previous_value=previous,
        new_value=new,
        actor=actor,
        occurred_at=at,
    )
    ev = await OutboxService(session).enqueue(
        "interview.status_changed", "interview", interview_id,
        {"interview_id": str(interview_id), "candidate_id": str(candidate_id), "from": previous, "to": new, "reason": description},
        occurred_at=at,
    )
    return ev.id


class CandidateStatusRules:
    """Interview side effects of a candidate status change.

    Only flushes; the caller owns the transaction.
    """

    def __init__(self, session: AsyncSession, *, clock: Clock = system_clock):
        self.session = session
        self.clock = clock
        self.interviews = InterviewRepository(session)

    async def apply(self, candidate_id: uuid.UUID, new_status: str, *, actor: str) -> dict:
        now = self.clock()
        resolved = cancelled = 0

        if new_status in AUTO_RESOLVE_STATUSES:
            reason = f"Auto-resolved: candidate status changed to {new_status}"
            for iv in await self.interviews.for_candidate(candidate_id, ("lapsed",)):
                ok = await self.interviews.transition(
                    iv.id, ("lapsed",), "resolved",
                    resolved_at=now, resolved_by=actor, resolution_reason=reason,
                )
                if ok:
                    resolved += 1
                    await record_transition(self.session, interview_id=iv.id, candidate_id=candidate_id,
                                            previous="lapsed", new="resolved", description=reason, actor=actor, at=now)

        if new_status in CANCEL_UPCOMING_STATUSES:
            reason = f"Candidate {new_status}"
            for iv in await self.interviews.for_candidate(candidate_id, ACTIVE_STATUSES):
                previous = iv.status
                ok = await self.interviews.transition(
                    iv.id, (previous,), "cancelled",
                    cancelled_at=now, resolved_by=actor, resolution_reason=reason,
                )
                if ok:
                    cancelled += 1
                    await record_transition(self.session, interview_id=iv.id, candidate_id=candidate_id,
                                            previous=previous, new="cancelled", description=reason, actor=actor, at=now)

        if resolved or cancelled:
            log.info("Candidate %s -> %s: resolved %d lapsed, cancelled %d upcoming interview(s)",
                     candidate_id, new_status, resolved, cancelled)
        return {"resolved": resolved, "cancelled": cancelled}


@dataclass
class LapsedSweepResult:
    scanned: int = 0
    completed: int = 0
    lapsed: int = 0
    resolved: int = 0
    skipped: int = 0
    failed: int = 0
    event_ids: list = field(default_factory=list, repr=False)

    def as_dict(self) -> dict:
        out = asdict(self)
        out.pop("event_ids")
        return out


class LapsedInterviewProcessor:
    ACTOR = "system:lapsed-interview-sweep"

    def __init__(self, session: AsyncSession, *, clock: Clock = system_clock, lapse_after_hours: int | None = None, page_size: int = 500):
        self.session = session
        self.page_size = page_size
        self.clock = clock
        self.lapse_after = timedelta(hours=lapse_after_hours or settings.LAPSE_AFTER_HOURS)
        self.interviews = InterviewRepository(session)
        self.candidates = CandidateRepository(session)

    async def run(self) -> LapsedSweepResult:
        now = self.clock()
        result = LapsedSweepResult()
        cursor = None
        while True:
            # plain tuples: a rollback below expires ORM instances
            page = [
                (iv.id, iv.status, iv.candidate_id, iv.kind, iv.scheduled_at)
                for iv in await self.interviews.overdue(now, after=cursor, limit=self.page_size)
            ]
            await self.session.commit()
            result.scanned += len(page)

            for interview_id, status, candidate_id, kind, scheduled_at in page:
                try:
                    outcome = await self._process(now, interview_id, status, candidate_id, kind, scheduled_at, result)
                    await self.session.commit()
                except Exception:
                    log.exception("Failed to process overdue interview %s", interview_id)
                    await self.session.rollback()
                    result.failed += 1
                    continue
                if outcome is None:
                    result.skipped += 1
                else:
                    setattr(result, outcome, getattr(result, outcome) + 1)

            if len(page) < self.page_size:
                break
            # rows that failed stay active; the cursor moves past them
            cursor = (page[-1][4], page[-1][0])

        if result.event_ids:
            await OutboxDispatcher(self.session).dispatch(result.event_ids)
        log.info("Lapsed interview sweep: %s", result.as_dict())
        return result

    async def _process(self, now, interview_id, status, candidate_id, kind, scheduled_at, result) -> str | None:
        candidate = await self.candidates.get(candidate_id)
        candidate_status = candidate.status if candidate else None

        if has_moved_past(candidate_status, kind):
            new, outcome = "resolved", "resolved"
            reason = f"Auto-resolved: candidate status is {candidate_status}"
            values = dict(resolved_at=now, resolved_by=self.ACTOR, resolution_reason=reason)
        elif now - scheduled_at < self.lapse_after:
            new, outcome = "completed", "completed"
            reason = f"Auto-completed: {kind} time passed"
            values = dict(completed_at=now, auto_completed=True)
        else:
            new, outcome = "lapsed", "lapsed"
            reason = f"Lapsed: no outcome recorded within {int(self.lapse_after.total_seconds() // 3600)}h"
            values = dict(lapsed_at=now)

        if not await self.interviews.transition(interview_id, (status,), new, **values):
            return None
        await record_transition(self.session, interview_id=interview_id, candidate_id=candidate_id,
                                previous=status, new=new, description=reason, actor=self.ACTOR, at=now)
        if new == "completed" and candidate is not None:
            ev = await OutboxService(self.session).enqueue(
                "candidate.status_advance", "candidate", candidate_id,
                {"candidate_id": str(candidate_id), "target_status": COMPLETE_STATUS[kind],
                 "reason": f"{kind.capitalize()} completed", "actor": self.ACTOR},
                occurred_at=now,
            )
            result.event_ids.append(ev.id)
        return outcome
