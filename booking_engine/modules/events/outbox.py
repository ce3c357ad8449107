import uuid
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Iterable

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Text, JSON, select, and_, or_, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from booking_engine.core.base import Base, TimestampedMixin, AwareDateTime, utcnow
from booking_engine.platform.ports.event_bus import EventBusPort
from booking_engine.platform.provider_registry import registry

log = logging.getLogger("event.outbox")

TOPIC = "booking.events"
CLAIM_LEASE = timedelta(minutes=5)

class EventOutbox(Base, TimestampedMixin):
    event_type: Mapped[str] = mapped_column(String(64))
    subject_type: Mapped[str] = mapped_column(String(32))
    subject_id: Mapped[str] = mapped_column(String(64))
    payload: Mapped[dict] = mapped_column(JSON)

    occurred_at: Mapped[datetime] = mapped_column(AwareDateTime(), default=utcnow)

    status: Mapped[str] = mapped_column(String(16), default="pending", index=True)  # pending | processing | sent
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    next_attempt_at: Mapped[datetime] = mapped_column(AwareDateTime(), default=utcnow)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

Handler = Callable[[AsyncSession, EventOutbox], Awaitable[None]]

class OutboxRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def enqueue(self, *, event_type: str, subject_type: str, subject_id: str, payload: dict, occurred_at: datetime | None = None) -> EventOutbox:
        now = datetime.now(timezone.utc)
        obj = EventOutbox(
            event_type=event_type,
            subject_type=subject_type,
            subject_id=str(subject_id),
            payload=payload,
            occurred_at=occurred_at or now,
            status="pending",
            attempts=0,
            next_attempt_at=now,
        )
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, event_id: uuid.UUID) -> EventOutbox | None:
        q = select(EventOutbox).where(EventOutbox.id == event_id).execution_options(populate_existing=True)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def due_ids(self, limit: int = 50) -> list[uuid.UUID]:
        now = datetime.now(timezone.utc)
        q = (
            select(EventOutbox.id)
            .where(
                and_(
                    # processing rows whose lease ran out were abandoned by a dead worker
                    or_(EventOutbox.status == "pending", EventOutbox.status == "processing"),
                    EventOutbox.next_attempt_at <= now,
                )
            )
            .order_by(EventOutbox.created_at.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def claim(self, event_id: uuid.UUID) -> bool:
        """pending (or lease-expired processing) -> processing; False if another worker has it."""
        now = datetime.now(timezone.utc)
        res = await self.session.execute(
            update(EventOutbox)
            .where(and_(
                EventOutbox.id == event_id,
                EventOutbox.status.in_(("pending", "processing")),
                EventOutbox.next_attempt_at <= now,
            ))
            .values(status="processing", next_attempt_at=now + CLAIM_LEASE)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    async def mark_sent(self, obj: EventOutbox):
        obj.status = "sent"
        obj.last_error = None
        await self.session.flush()

    async def mark_failed(self, obj: EventOutbox, error: str):
        obj.status = "pending"  # retry
        obj.attempts = (obj.attempts or 0) + 1
        backoff = min(60, 2 ** min(obj.attempts - 1, 6))  # 1,2,4,8,16,32,60s
        obj.next_attempt_at = datetime.now(timezone.utc) + timedelta(seconds=backoff)
        obj.last_error = error[:2000]  # truncate
        await self.session.flush()

class OutboxService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = OutboxRepository(session)

    async def enqueue(self, event_type: str, subject_type: str, subject_id: str | uuid.UUID, payload: dict, occurred_at: datetime | None = None) -> EventOutbox:
        return await self.repo.enqueue(event_type=event_type, subject_type=subject_type, subject_id=str(subject_id), payload=payload, occurred_at=occurred_at)


def default_handlers() -> dict[str, Handler]:
    from booking_engine.modules.events.handlers import build_handlers
    return build_handlers(registry.notifier())


class OutboxDispatcher:
    """Delivers outbox rows: runs the in-process handler (if any) for the
    event type, then publishes the event to the bus.

    Each event is claimed, delivered and committed on its own, so one bad
    event never holds up the others. Delivery is at-least-once; handlers are
    written to tolerate a repeat.
    """

    def __init__(self, session: AsyncSession, *, bus: EventBusPort | None = None, handlers: dict[str, Handler] | None = None):
        self.session = session
        self.repo = OutboxRepository(session)
        self.bus = bus or registry.event_bus()
        self.handlers = handlers if handlers is not None else default_handlers()

    async def dispatch(self, event_ids: Iterable[uuid.UUID]) -> int:
        """Best-effort immediate delivery right after the producing commit.

        Never raises: whatever is not delivered here stays pending for the relay.
        """
        sent = 0
        for event_id in event_ids:
            try:
                sent += await self._deliver(event_id)
            except Exception:
                log.exception("Immediate dispatch of %s failed; leaving it to the relay", event_id)
                await self.session.rollback()
        return sent

    async def dispatch_due(self, limit: int = 50) -> int:
        ids = await self.repo.due_ids(limit=limit)
        await self.session.commit()
        sent = 0
        for event_id in ids:
            sent += await self._deliver(event_id)
        return sent

    async def _deliver(self, event_id: uuid.UUID) -> int:
        if not await self.repo.claim(event_id):
            await self.session.rollback()
            return 0
        await self.session.commit()
        ev = await self.repo.get(event_id)
        if ev is None:
            return 0
        try:
            handler = self.handlers.get(ev.event_type)
            if handler is not None:
                await handler(self.session, ev)
            await self.bus.publish(topic=TOPIC, key=ev.subject_id or "-", value={
                "event_type": ev.event_type,
                "subject": {"type": ev.subject_type, "id": ev.subject_id},
                "payload": ev.payload,
                "occurred_at": ev.occurred_at.isoformat(),
                "outbox_id": str(ev.id),
            })
            await self.repo.mark_sent(ev)
            await self.session.commit()
            return 1
        except Exception as ex:  # noqa
            log.exception("Delivery of %s (%s) failed", ev.event_type, event_id)
            await self.session.rollback()
            ev = await self.repo.get(event_id)
            if ev is not None:
                await self.repo.mark_failed(ev, error=f"{ex.__class__.__name__}: {ex}")
                await self.session.commit()
            return 0

# ---- Background relay ----

async def run_outbox_relay(sessionmaker: async_sessionmaker[AsyncSession], poll_interval_seconds: float = 1.0):
    bus = registry.event_bus()
    log.info("Outbox relay started with bus=%s", bus.__class__.__name__)
    try:
        while True:
            async with sessionmaker() as session:
                try:
                    sent = await OutboxDispatcher(session, bus=bus).dispatch_due(limit=50)
                except Exception:
                    log.exception("Outbox relay iteration failed")
                    await session.rollback()
                    sent = 0
            if not sent:
                await asyncio.sleep(poll_interval_seconds)
            else:
                await asyncio.sleep(0)  # yield
    except asyncio.CancelledError:
        log.info("Outbox relay cancelled; shutting down")
        raise
