from string import Template
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from booking_engine.modules.notifications.models import OutboundMessage
from booking_engine.platform.ports.notifier import Notice, NotifierPort

TEMPLATES: dict[str, dict[str, str]] = {
    "interview_confirmation": {
        "subject": "Interview confirmed: ${date_label} at ${time_label}",
        "body": (
            "Hi ${first_name},\n\n"
            "Your interview${job_suffix} is booked for ${date_label} at ${time_label} "
            "(${duration_minutes} minutes)${branch_suffix}.\n\n"
            "Confirmation code: ${confirmation_code}\n"
        ),
    },
    "trial_confirmation": {
        "subject": "Trial shift confirmed: ${date_label} at ${time_label}",
        "body": (
            "Hi ${first_name},\n\n"
            "Your trial shift${job_suffix} is booked for ${date_label} at ${time_label} "
            "(${duration_minutes} minutes)${branch_suffix}.\n\n"
            "Confirmation code: ${confirmation_code}\n"
        ),
    },
}

class NotificationsService:
    def __init__(self, s: AsyncSession, notifier: NotifierPort):
        self.s = s
        self.notifier = notifier

    def render(self, template_name: str, variables: dict) -> tuple[str, str]:
        t = TEMPLATES.get(template_name)
        if not t:
            raise ValueError("template_not_found")
        return Template(t["subject"]).safe_substitute(variables), Template(t["body"]).safe_substitute(variables)

    async def send_with_template(self, *, channel: str, to: str, template_name: str, variables: dict, source_event_id: str | None = None) -> OutboundMessage:
        if source_event_id:
            res = await self.s.execute(select(OutboundMessage).where(OutboundMessage.source_event_id == source_event_id))
            existing = res.scalar_one_or_none()
            if existing is not None and existing.status == "sent":
                return existing
        subject, body = self.render(template_name, variables)
        m = OutboundMessage(channel=channel, to=to, template=template_name, subject=subject, body=body,
                            source_event_id=source_event_id, meta=variables, status="queued")
        self.s.add(m); await self.s.flush()
        await self.notifier.send(Notice(channel=channel, to=to, subject=subject, body=body, template=template_name, meta=variables))
        m.status = "sent"
        await self.s.flush()
        return m
