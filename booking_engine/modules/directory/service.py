import uuid
import logging
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.clock import Clock, system_clock
from booking_engine.core.errors import InvalidInput, NotFound
from booking_engine.modules.audit.service import AuditService
from booking_engine.modules.directory.models import Candidate
from booking_engine.modules.directory.pipeline import ALL_STATUSES, is_forward
from booking_engine.modules.directory.repository import CandidateRepository
from booking_engine.modules.interviews.lifecycle import CandidateStatusRules

logger = logging.getLogger(__name__)

class DirectoryService:
    def __init__(self, session: AsyncSession, *, clock: Clock = system_clock):
        self.session = session
        self.clock = clock
        self.candidates = CandidateRepository(session)

    async def create_candidate(self, *, name: str, email: str | None = None, phone: str | None = None,
                               status: str = "new", branch_id: uuid.UUID | None = None, actor: str = "system") -> Candidate:
        if status not in ALL_STATUSES:
            raise InvalidInput(f"Unknown candidate status: {status}")
        c = await self.candidates.create(name=name, email=email, phone=phone, status=status, branch_id=branch_id,
                                         status_updated_at=self.clock(), status_updated_by=actor)
        await AuditService(self.session).log(entity_type="candidate", entity_id=c.id, action="created",
                                             description=f"Candidate {name} added", new_value=status, actor=actor,
                                             occurred_at=self.clock())
        await self.session.commit()
        return c

    async def get(self, candidate_id: uuid.UUID) -> Candidate:
        c = await self.candidates.get(candidate_id)
        if not c:
            raise NotFound("Candidate not found")
        return c

    async def list(self, **filters):
        return await self.candidates.list(**filters)

    async def change_status(self, candidate_id: uuid.UUID, new_status: str, *, actor: str, reason: str | None = None) -> Candidate:
        c = await self.apply_status(candidate_id, new_status, actor=actor, reason=reason)
        await self.session.commit()
        return c

    async def apply_status(self, candidate_id: uuid.UUID, new_status: str, *, actor: str, reason: str | None = None) -> Candidate:
        """Set the status and run the interview rules; flushes, never commits."""
        if new_status not in ALL_STATUSES:
            raise InvalidInput(f"Unknown candidate status: {new_status}")
        c = await self.get(candidate_id)
        previous = c.status
        if previous == new_status:
            return c
        now = self.clock()
        c.status = new_status
        c.status_updated_at = now
        c.status_updated_by = actor
        if new_status == "withdrawn":
            c.withdrawn_at = now
            c.withdrawal_reason = reason
        await self.session.flush()

        description = f"Status changed from {previous} to {new_status}" + (f": {reason}" if reason else "")
        await AuditService(self.session).log(entity_type="candidate", entity_id=c.id, action="status_changed",
                                             description=description, previous_value=previous, new_value=new_status,
                                             actor=actor, occurred_at=now)
        await CandidateStatusRules(self.session, clock=self.clock).apply(c.id, new_status, actor=actor)
        logger.info("Candidate %s status %s -> %s by %s", c.id, previous, new_status, actor)
        return c

    async def advance_forward(self, candidate_id: uuid.UUID, target_status: str, *, actor: str, reason: str | None = None) -> bool:
        """Move the candidate to ``target_status`` only if that is forward progress."""
        c = await self.candidates.get(candidate_id)
        if c is None:
            logger.warning("Cannot advance missing candidate %s to %s", candidate_id, target_status)
            return False
        if not is_forward(c.status, target_status):
            logger.debug("Candidate %s already at %s; not moving to %s", candidate_id, c.status, target_status)
            return False
        await self.apply_status(candidate_id, target_status, actor=actor, reason=reason)
        return True
