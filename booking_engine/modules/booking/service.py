"""Candidate-facing booking flow: availability summary, per-day slot listing
and the transactional submit.

Every operation starts from the capability token; nothing here trusts a
candidate id supplied by the client.
"""
import logging
import secrets
import string
from dataclasses import asdict
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.clock import Clock, system_clock, business_tz
from booking_engine.core.config import settings
from booking_engine.core.errors import InvalidInput, InvalidToken, SlotConflict, TemporalError
from booking_engine.modules.audit.service import AuditService
from booking_engine.modules.availability.schemas import parse_hhmm
from booking_engine.modules.availability.service import AvailabilityService
from booking_engine.modules.availability.slots import (
    block_reason,
    booking_duration,
    evaluate_slots,
    fully_booked_dates,
    generate_slots,
    local_date,
    local_day_bounds,
    lunch_overlaps,
    to_instant,
)
from booking_engine.modules.booking.schemas import BookingReceipt
from booking_engine.modules.booking_links.repository import BookingLinkRepository
from booking_engine.modules.booking_links.service import BookingLinkService, INVALID_LINK, USED_LINK, LinkGrant
from booking_engine.modules.directory.pipeline import SCHEDULED_STATUS
from booking_engine.modules.events.outbox import OutboxDispatcher, OutboxService
from booking_engine.modules.interviews.guard import Contention, commit_with_day_guard
from booking_engine.modules.interviews.repository import InterviewRepository

logger = logging.getLogger(__name__)

OUTSIDE_WINDOW = "outside booking window"

_B36 = string.digits + string.ascii_lowercase


def _base36(n: int) -> str:
    out = ""
    while n:
        n, r = divmod(n, 36)
        out = _B36[r] + out
    return out or "0"


def confirmation_code(now: datetime) -> str:
    """e.g. AP-M3K9X2QF-7KQD"""
    suffix = "".join(secrets.choice(string.ascii_uppercase + string.digits) for _ in range(4))
    return f"AP-{_base36(int(now.timestamp() * 1000)).upper()}-{suffix}"


class BookingService:
    def __init__(self, session: AsyncSession, *, clock: Clock = system_clock, tz: ZoneInfo | None = None):
        self.session = session
        self.clock = clock
        self.tz = tz or business_tz()
        self.links = BookingLinkService(session, clock=clock)
        self.availability = AvailabilityService(session)
        self.interviews = InterviewRepository(session)

    def _window(self, advance_days: int) -> tuple[date, date]:
        today = local_date(self.clock(), self.tz)
        return today, today + timedelta(days=advance_days)

    async def validate(self, token: str) -> dict:
        grant = await self.links.validate(token)
        return grant.public()

    async def get_availability(self, token: str) -> dict:
        grant = await self.links.validate(token)
        config, _ = await self.availability.get_config(grant.kind)
        blocks = await self.availability.get_blocks()
        now = self.clock()
        first, last = self._window(config.advance_booking_days)
        counts = await self.interviews.count_active_by_day(now, now + timedelta(days=config.advance_booking_days), self.tz)
        return {
            "kind": grant.kind,
            "duration_minutes": booking_duration(grant.kind, config),
            "config": {
                "enabled": config.enabled,
                "schedule": {d: s.model_dump() for d, s in config.schedule.items()},
                "slot_duration_minutes": booking_duration(grant.kind, config),
                "advance_booking_days": config.advance_booking_days,
                "min_notice_hours": config.min_notice_hours,
            },
            "first_date": first,
            "last_date": last,
            "fully_booked_dates": fully_booked_dates(counts, settings.FULLY_BOOKED_THRESHOLD),
            "blocked_dates": sorted(d for d in blocks.holidays if d >= first),
            "lunch_block": blocks.lunch_block.model_dump(),
        }

    async def get_time_slots(self, token: str, day: date) -> dict:
        grant = await self.links.validate(token)
        config, _ = await self.availability.get_config(grant.kind)
        blocks = await self.availability.get_blocks()

        reason = block_reason(day, blocks)
        if reason:
            return {"date": day, "slots": [], "blocked": True, "block_reason": reason}
        first, last = self._window(config.advance_booking_days)
        if not first <= day <= last:
            return {"date": day, "slots": [], "blocked": True, "block_reason": OUTSIDE_WINDOW}

        day_start, day_end = local_day_bounds(day, self.tz)
        busy = await self.interviews.busy_intervals(day_start, day_end)
        statuses = evaluate_slots(
            day,
            generate_slots(day, grant.kind, config, blocks),
            busy=busy,
            buffer_minutes=config.buffer_minutes,
            min_notice_hours=config.min_notice_hours,
            now=self.clock(),
            tz=self.tz,
        )
        return {"date": day, "slots": [asdict(s) for s in statuses], "blocked": False, "block_reason": None}

    async def submit_booking(self, token: str, day: date, time_of_day: str) -> BookingReceipt:
        grant = await self.links.validate(token)
        config, _ = await self.availability.get_config(grant.kind)
        blocks = await self.availability.get_blocks()
        if not config.enabled:
            raise InvalidInput(f"{grant.kind.capitalize()} bookings are not currently open", code="booking_disabled")
        try:
            minute = parse_hhmm(time_of_day)
        except ValueError as ex:
            raise InvalidInput(str(ex))

        duration = booking_duration(grant.kind, config)
        start = to_instant(day, minute, self.tz)
        end = start + timedelta(minutes=duration)
        now = self.clock()

        if block_reason(day, blocks):
            raise TemporalError("This date is a bank holiday", code="blocked_holiday")
        if lunch_overlaps(minute, minute + duration, blocks.lunch_block):
            raise TemporalError("This time overlaps the lunch break", code="blocked_lunch")
        if start <= now:
            raise TemporalError("This time is in the past", code="in_the_past")
        if start < now + timedelta(hours=config.min_notice_hours):
            raise TemporalError(f"Bookings need at least {config.min_notice_hours} hours notice", code="too_short_notice")
        first, last = self._window(config.advance_booking_days)
        if not first <= day <= last:
            raise TemporalError(f"Bookings can be made up to {config.advance_booking_days} days ahead", code="outside_booking_window")
        if minute not in {c.start_minute for c in generate_slots(day, grant.kind, config, blocks)}:
            raise TemporalError("This time is not one of the offered slots", code="not_offered")
        if await self.interviews.find_overlapping(start, end) is not None:
            raise SlotConflict("This time slot is no longer available")

        await self.session.commit()
        interview_id, code, events = await commit_with_day_guard(
            self.session,
            day,
            lambda: self._commit_booking(grant, start, duration),
            attempts=settings.BOOKING_COMMIT_RETRIES,
        )
        logger.info("Booked %s %s for candidate %s at %s (%s)", grant.kind, interview_id, grant.candidate_id, start.isoformat(), code)

        await OutboxDispatcher(self.session).dispatch([ev_id for ev_id, _ in events])
        return BookingReceipt(
            interview_id=interview_id,
            confirmation_code=code,
            scheduled_at=start,
            duration_minutes=duration,
            side_effects=[ev_type for _, ev_type in events],
        )

    async def _commit_booking(self, grant: LinkGrant, start: datetime, duration: int):
        now = self.clock()
        links = BookingLinkRepository(self.session)
        link = await links.get(grant.link_id)
        if link is None or link.status != "active" or link.expires_at < now:
            raise InvalidToken(INVALID_LINK)
        if link.use_count >= link.max_uses:
            raise InvalidToken(USED_LINK)

        end = start + timedelta(minutes=duration)
        if await self.interviews.find_overlapping(start, end) is not None:
            raise SlotConflict("This time slot is no longer available")

        code = confirmation_code(now)
        iv = await self.interviews.create(
            candidate_id=grant.candidate_id,
            candidate_name=grant.candidate_name,
            candidate_email=grant.candidate_email,
            kind=grant.kind,
            scheduled_at=start,
            duration_minutes=duration,
            status="scheduled",
            booked_via="booking_link",
            booking_link_id=grant.link_id,
            confirmation_code=code,
            job_id=grant.job_id,
            job_title=grant.job_title,
            branch_id=grant.branch_id,
            branch_name=grant.branch_name,
            branch_address=grant.branch_address,
        )
        if not await links.consume(link, interview_id=iv.id, at=now):
            raise Contention("booking link consumed concurrently")

        actor = f"candidate:{grant.candidate_id}"
        local = start.astimezone(self.tz)
        await AuditService(self.session).log(
            entity_type="interview", entity_id=iv.id, action="booked",
            description=f"{grant.kind.capitalize()} booked via link for {local:%Y-%m-%d %H:%M}",
            new_value={"scheduled_at": start.isoformat(), "confirmation_code": code},
            actor=actor, occurred_at=now,
        )
        outbox = OutboxService(self.session)
        advance = await outbox.enqueue(
            "candidate.status_advance", "candidate", grant.candidate_id,
            {"candidate_id": str(grant.candidate_id), "target_status": SCHEDULED_STATUS[grant.kind],
             "reason": f"{grant.kind.capitalize()} booked ({code})", "actor": actor},
            occurred_at=now,
        )
        confirm = await outbox.enqueue(
            "booking.confirmed", "interview", iv.id,
            {
                "interview_id": str(iv.id),
                "candidate_id": str(grant.candidate_id),
                "candidate_name": grant.candidate_name,
                "candidate_email": grant.candidate_email,
                "kind": grant.kind,
                "scheduled_at": start.isoformat(),
                "date_label": f"{local:%A %d %B %Y}",
                "time_label": f"{local:%H:%M}",
                "duration_minutes": duration,
                "confirmation_code": code,
                "job_title": grant.job_title,
                "branch_name": grant.branch_name,
                "branch_address": grant.branch_address,
            },
            occurred_at=now,
        )
        return iv.id, code, [(advance.id, advance.event_type), (confirm.id, confirm.event_type)]
