from booking_engine.core.config import settings
from booking_engine.platform.ports.event_bus import EventBusPort
from booking_engine.platform.adapters.bus_noop import NoopEventBus
from booking_engine.platform.adapters.bus_redis import RedisEventBus
from booking_engine.platform.ports.notifier import NotifierPort
from booking_engine.platform.adapters.notifier_log import LogNotifier
from booking_engine.platform.adapters.notifier_webhook import WebhookNotifier

class ProviderRegistry:
    _event_bus: EventBusPort | None = None
    _notifier: NotifierPort | None = None

    @classmethod
    def event_bus(cls) -> EventBusPort:
        if cls._event_bus is None:
            prov = (settings.EVENT_BUS_PROVIDER or "noop").lower()
            if prov == "redis":
                cls._event_bus = RedisEventBus()
            else:
                cls._event_bus = NoopEventBus()
        return cls._event_bus

    @classmethod
    def notifier(cls) -> NotifierPort:
        if cls._notifier is None:
            prov = (settings.NOTIFIER_PROVIDER or "log").lower()
            if prov == "webhook":
                cls._notifier = WebhookNotifier()
            else:
                cls._notifier = LogNotifier()
        return cls._notifier

    @classmethod
    async def close(cls) -> None:
        if cls._event_bus is not None:
            await cls._event_bus.close()
        cls._event_bus = None
        cls._notifier = None

registry = ProviderRegistry()
