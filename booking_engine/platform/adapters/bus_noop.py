import logging
from booking_engine.platform.ports.event_bus import EventBusPort

log = logging.getLogger("bus.noop")

class NoopEventBus(EventBusPort):
    """Logs events instead of shipping them; keeps the last few for inspection."""

    def __init__(self, keep: int = 100):
        self.keep = keep
        self.published: list[dict] = []

    async def publish(self, topic: str, key: str, value: dict, headers: dict | None = None) -> None:
        log.info("[NOOP BUS] topic=%s key=%s event=%s", topic, key, value.get("event_type"))
        self.published.append({"topic": topic, "key": key, "value": value, "headers": headers or {}})
        del self.published[:-self.keep]

    async def close(self) -> None:
        return None
