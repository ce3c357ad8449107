import uuid
import logging
from dataclasses import dataclass, asdict
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.clock import Clock, system_clock
from booking_engine.modules.audit.service import AuditService
from booking_engine.modules.booking_links.repository import BookingLinkRepository
from booking_engine.modules.directory.pipeline import WAITING_TO_BOOK
from booking_engine.modules.directory.repository import CandidateRepository
from booking_engine.modules.directory.service import DirectoryService
from booking_engine.modules.events.outbox import OutboxService
from booking_engine.modules.interviews.models import ACTIVE_STATUSES
from booking_engine.modules.interviews.repository import InterviewRepository

log = logging.getLogger("booking_links.sweeper")


@dataclass
class ExpiredLinkSweepResult:
    scanned: int = 0
    expired: int = 0
    withdrawn: int = 0
    failed: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


class ExpiredLinkSweeper:
    """Expires active links past their deadline and withdraws candidates who
    never booked.

    Each link is handled in its own transaction; the status compare-and-set
    makes a second run (or a concurrent one) a no-op for links already done.
    """

    ACTOR = "system:expired-link-sweep"

    def __init__(self, session: AsyncSession, *, clock: Clock = system_clock):
        self.session = session
        self.clock = clock
        self.links = BookingLinkRepository(session)

    async def run(self, candidate_id: uuid.UUID | None = None) -> ExpiredLinkSweepResult:
        now = self.clock()
        result = ExpiredLinkSweepResult()
        due = [
            (link.id, link.candidate_id, link.kind)
            for link in await self.links.expired_active(now, candidate_id=candidate_id)
        ]
        await self.session.commit()
        result.scanned = len(due)

        for link_id, link_candidate_id, kind in due:
            try:
                expired, withdrawn = await self._expire_one(now, link_id, link_candidate_id, kind)
                await self.session.commit()
            except Exception:
                log.exception("Failed to expire booking link %s", link_id)
                await self.session.rollback()
                result.failed += 1
                continue
            result.expired += expired
            result.withdrawn += withdrawn

        if result.scanned:
            log.info("Expired link sweep%s: %s", f" for candidate {candidate_id}" if candidate_id else "", result.as_dict())
        return result

    async def check_candidate(self, candidate_id: uuid.UUID) -> ExpiredLinkSweepResult:
        return await self.run(candidate_id=candidate_id)

    async def _expire_one(self, now, link_id, candidate_id, kind) -> tuple[int, int]:
        if not await self.links.set_status(link_id, "active", "expired", expired_at=now):
            return 0, 0
        await AuditService(self.session).log(
            entity_type="booking_link", entity_id=link_id, action="expired",
            description=f"{kind.capitalize()} booking link expired without a booking",
            previous_value="active", new_value="expired", actor=self.ACTOR, occurred_at=now,
        )
        await OutboxService(self.session).enqueue(
            "booking_link.expired", "booking_link", link_id,
            {"link_id": str(link_id), "candidate_id": str(candidate_id), "kind": kind}, occurred_at=now,
        )

        candidate = await CandidateRepository(self.session).get(candidate_id)
        if candidate is None or candidate.status not in WAITING_TO_BOOK:
            return 1, 0
        # another live link or a booking means the candidate is still engaged
        if await self.links.has_open_link(candidate_id, kind, now):
            return 1, 0
        if await InterviewRepository(self.session).for_candidate(candidate_id, ACTIVE_STATUSES):
            return 1, 0
        await DirectoryService(self.session, clock=self.clock).apply_status(
            candidate_id, "withdrawn", actor=self.ACTOR,
            reason=f"Booking link expired without booking ({kind})",
        )
        return 1, 1
