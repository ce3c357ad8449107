import logging
from booking_engine.platform.ports.notifier import Notice, NotifierPort

log = logging.getLogger("notifier.log")

class LogNotifier(NotifierPort):
    """Local/dev notifier: writes the notice to the log and remembers it."""

    def __init__(self):
        self.sent: list[Notice] = []

    async def send(self, notice: Notice) -> None:
        log.info("[LOG NOTIFIER] %s to=%s subject=%r", notice.template, notice.to, notice.subject)
        self.sent.append(notice)
