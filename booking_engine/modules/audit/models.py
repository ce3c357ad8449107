from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, JSON
from booking_engine.core.base import Base, TimestampedMixin, AwareDateTime, utcnow

class AuditEvent(Base, TimestampedMixin):
    # What was touched
    entity_type: Mapped[str] = mapped_column(String(48), index=True)  # candidate | interview | booking_link | availability_settings | ...
    entity_id: Mapped[str] = mapped_column(String(64), index=True)    # UUID as string, or a key such as "interview"
    # What happened
    action: Mapped[str] = mapped_column(String(48))  # status_changed | booked | expired | resolved | updated | ...
    description: Mapped[str] = mapped_column(Text)
    previous_value: Mapped[dict | list | str | None] = mapped_column(JSON, nullable=True)
    new_value: Mapped[dict | list | str | None] = mapped_column(JSON, nullable=True)
    # Who: "user:<uuid>", "candidate:<uuid>" or "system:<job>"
    actor: Mapped[str] = mapped_column(String(64))
    occurred_at: Mapped[datetime] = mapped_column(AwareDateTime(), default=utcnow)
