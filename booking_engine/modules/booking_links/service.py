import uuid
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.clock import Clock, system_clock
from booking_engine.core.config import settings
from booking_engine.core.errors import InvalidToken, InvalidTransition, NotFound
from booking_engine.modules.audit.service import AuditService
from booking_engine.modules.availability.service import AvailabilityService
from booking_engine.modules.availability.slots import booking_duration
from booking_engine.modules.booking_links.models import BookingLink
from booking_engine.modules.booking_links.repository import BookingLinkRepository
from booking_engine.modules.booking_links.schemas import IssueLink, IssuedLink
from booking_engine.modules.booking_links.tokens import hash_token, new_token, well_formed
from booking_engine.modules.directory.repository import CandidateRepository
from booking_engine.modules.directory.service import DirectoryService

logger = logging.getLogger(__name__)

INVALID_LINK = "Invalid or expired booking link"
USED_LINK = "This booking link has already been used"

# Issuing a link moves the candidate to the "waiting to book" stage for that kind
INVITED_STATUS = {"interview": "invite_sent", "trial": "trial_invited"}


@dataclass(frozen=True)
class LinkGrant:
    """What a valid token entitles its holder to. Never carries the token."""
    link_id: uuid.UUID
    candidate_id: uuid.UUID
    candidate_name: str
    candidate_email: str | None
    kind: str
    duration_minutes: int
    expires_at: datetime
    job_id: uuid.UUID | None = None
    job_title: str | None = None
    branch_id: uuid.UUID | None = None
    branch_name: str | None = None
    branch_address: str | None = None

    @property
    def first_name(self) -> str:
        return (self.candidate_name or "").split(" ")[0]

    def public(self) -> dict:
        return {
            "candidate_first_name": self.first_name,
            "kind": self.kind,
            "duration_minutes": self.duration_minutes,
            "job_title": self.job_title,
            "branch_name": self.branch_name,
            "branch_address": self.branch_address,
            "expires_at": self.expires_at,
        }

    @classmethod
    def of(cls, link: BookingLink) -> "LinkGrant":
        return cls(
            link_id=link.id, candidate_id=link.candidate_id, candidate_name=link.candidate_name,
            candidate_email=link.candidate_email, kind=link.kind, duration_minutes=link.duration_minutes,
            expires_at=link.expires_at, job_id=link.job_id, job_title=link.job_title, branch_id=link.branch_id,
            branch_name=link.branch_name, branch_address=link.branch_address,
        )


class BookingLinkService:
    def __init__(self, session: AsyncSession, *, clock: Clock = system_clock):
        self.session = session
        self.clock = clock
        self.links = BookingLinkRepository(session)

    async def issue(self, payload: IssueLink, *, actor: str) -> IssuedLink:
        candidate = await CandidateRepository(self.session).get(payload.candidate_id)
        if candidate is None:
            raise NotFound("Candidate not found")
        config, _ = await AvailabilityService(self.session).get_config(payload.kind)
        now = self.clock()
        token = new_token()
        link = await self.links.create(
            token_hash=hash_token(token),
            candidate_id=candidate.id,
            candidate_name=candidate.name,
            candidate_email=candidate.email,
            kind=payload.kind,
            duration_minutes=booking_duration(payload.kind, config),
            job_id=payload.job_id,
            job_title=payload.job_title,
            branch_id=payload.branch_id,
            branch_name=payload.branch_name,
            branch_address=payload.branch_address,
            status="active",
            expires_at=now + timedelta(days=payload.expires_in_days or settings.BOOKING_LINK_TTL_DAYS),
            max_uses=payload.max_uses,
            use_count=0,
            created_by=actor,
        )
        await AuditService(self.session).log(
            entity_type="booking_link", entity_id=link.id, action="issued",
            description=f"{payload.kind.capitalize()} booking link sent to {candidate.name}",
            new_value={"candidate_id": str(candidate.id), "expires_at": link.expires_at.isoformat()},
            actor=actor, occurred_at=now,
        )
        await DirectoryService(self.session, clock=self.clock).advance_forward(
            candidate.id, INVITED_STATUS[payload.kind], actor=actor, reason="Booking link sent",
        )
        await self.session.commit()
        logger.info("Issued %s booking link %s for candidate %s", payload.kind, link.id, candidate.id)
        return IssuedLink(
            id=link.id, token=token, url=f"{settings.BOOKING_PAGE_URL.rstrip('/')}/book/{token}",
            kind=link.kind, duration_minutes=link.duration_minutes, expires_at=link.expires_at, max_uses=link.max_uses,
        )

    async def validate(self, token: str | None) -> LinkGrant:
        token = token.strip() if isinstance(token, str) else token
        if not well_formed(token):
            raise InvalidToken(INVALID_LINK)
        link = await self.links.get_by_hash(hash_token(token))
        if link is None or link.status != "active":
            raise InvalidToken(INVALID_LINK)
        now = self.clock()
        if link.expires_at < now:
            if await self.links.set_status(link.id, "active", "expired", expired_at=now):
                await AuditService(self.session).log(
                    entity_type="booking_link", entity_id=link.id, action="expired",
                    description="Booking link expired (seen on use)", actor="system:link-validator", occurred_at=now,
                )
            await self.session.commit()
            raise InvalidToken(INVALID_LINK)
        if link.use_count >= link.max_uses:
            raise InvalidToken(USED_LINK)
        return LinkGrant.of(link)

    async def revoke(self, link_id: uuid.UUID, *, actor: str) -> BookingLink:
        link = await self.links.get(link_id)
        if link is None:
            raise NotFound("Booking link not found")
        now = self.clock()
        if not await self.links.set_status(link_id, "active", "revoked", revoked_at=now):
            raise InvalidTransition(f"Booking link is {link.status}; only active links can be revoked")
        await AuditService(self.session).log(
            entity_type="booking_link", entity_id=link_id, action="revoked",
            description="Booking link revoked", previous_value="active", new_value="revoked", actor=actor, occurred_at=now,
        )
        await self.session.commit()
        return await self.links.get(link_id)

    async def list(self, **filters):
        return await self.links.list(**filters)
