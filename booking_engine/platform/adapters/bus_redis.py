import json
import logging
from redis.asyncio import from_url as redis_from_url
from booking_engine.platform.ports.event_bus import EventBusPort
from booking_engine.core.config import settings

log = logging.getLogger("bus.redis")

class RedisEventBus(EventBusPort):
    """Appends booking events to a capped Redis stream (XADD ... MAXLEN ~)."""

    def __init__(self, url: str | None = None, stream: str | None = None, maxlen: int | None = None):
        url = url or settings.REDIS_URL
        if not url:
            raise RuntimeError("REDIS_URL not configured")
        self.redis = redis_from_url(url, encoding="utf-8", decode_responses=True)
        self.stream = stream or settings.REDIS_STREAM or "booking.events"
        self.maxlen = maxlen or settings.REDIS_STREAM_MAXLEN

    async def publish(self, topic: str, key: str, value: dict, headers: dict | None = None) -> None:
        entry = {
            "topic": topic,
            "key": key,
            "event_type": value.get("event_type", ""),
            "value": json.dumps(value, default=str),
            "headers": json.dumps(headers or {}),
        }
        msg_id = await self.redis.xadd(self.stream, entry, maxlen=self.maxlen, approximate=True)
        log.debug("XADD stream=%s id=%s event=%s key=%s", self.stream, msg_id, entry["event_type"], key)

    async def close(self) -> None:
        await self.redis.aclose()
