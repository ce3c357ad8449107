"""In-process reactions to outbox events.

Handlers run inside the dispatcher's session and must tolerate being run more
than once for the same event.
"""
import uuid
import logging
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.modules.directory.service import DirectoryService
from booking_engine.modules.events.outbox import EventOutbox, Handler
from booking_engine.modules.notifications.service import NotificationsService
from booking_engine.platform.ports.notifier import NotifierPort

log = logging.getLogger("event.handlers")


async def advance_candidate(session: AsyncSession, ev: EventOutbox) -> None:
    p = ev.payload
    moved = await DirectoryService(session).advance_forward(
        uuid.UUID(p["candidate_id"]), p["target_status"],
        actor=p.get("actor") or "system:outbox", reason=p.get("reason"),
    )
    log.debug("candidate.status_advance %s -> %s applied=%s", p["candidate_id"], p["target_status"], moved)


def send_booking_confirmation(notifier: NotifierPort) -> Handler:
    async def handle(session: AsyncSession, ev: EventOutbox) -> None:
        p = ev.payload
        if not p.get("candidate_email"):
            log.warning("No email for candidate %s; skipping confirmation for %s", p.get("candidate_id"), p.get("interview_id"))
            return
        await NotificationsService(session, notifier).send_with_template(
            channel="email",
            to=p["candidate_email"],
            template_name=f"{p['kind']}_confirmation",
            variables={
                **p,
                "first_name": (p.get("candidate_name") or "").split(" ")[0],
                "job_suffix": f" for {p['job_title']}" if p.get("job_title") else "",
                "branch_suffix": f" at {p['branch_name']}" + (f", {p['branch_address']}" if p.get("branch_address") else "")
                if p.get("branch_name") else "",
            },
            source_event_id=str(ev.id),
        )
    return handle


def build_handlers(notifier: NotifierPort) -> dict[str, Handler]:
    return {
        "candidate.status_advance": advance_candidate,
        "booking.confirmed": send_booking_confirmation(notifier),
    }
