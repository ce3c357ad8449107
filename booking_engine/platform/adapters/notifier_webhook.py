import logging
from dataclasses import asdict
import httpx
from booking_engine.core.config import settings
from booking_engine.platform.ports.notifier import Notice, NotifierPort

log = logging.getLogger("notifier.webhook")

class WebhookNotifier(NotifierPort):
    """POSTs each notice as JSON to the mail-sending service.

    Non-2xx responses raise, which leaves the outbox row pending for retry.
    """

    def __init__(self, url: str | None = None, timeout: float | None = None):
        self.url = url or settings.NOTIFIER_WEBHOOK_URL
        if not self.url:
            raise RuntimeError("NOTIFIER_WEBHOOK_URL not configured")
        self.timeout = timeout or settings.NOTIFIER_TIMEOUT_SECONDS

    async def send(self, notice: Notice) -> None:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(self.url, json=asdict(notice))
            resp.raise_for_status()
        log.info("Notice %s delivered to webhook (status=%s)", notice.template, resp.status_code)
