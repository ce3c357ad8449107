from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, JSON
from booking_engine.core.base import Base, TimestampedMixin

class OutboundMessage(Base, TimestampedMixin):
    channel: Mapped[str] = mapped_column(String(16))
    to: Mapped[str] = mapped_column(String(255))
    template: Mapped[str] = mapped_column(String(64))
    subject: Mapped[str | None] = mapped_column(String(200), nullable=True)
    body: Mapped[str] = mapped_column(Text)
    # dedupe key, e.g. the outbox row that produced the message
    source_event_id: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
    meta: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="queued")  # queued | sent
