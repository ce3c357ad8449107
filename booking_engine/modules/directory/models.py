import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text
from booking_engine.core.base import Base, TimestampedMixin, AwareDateTime

class Candidate(Base, TimestampedMixin):
    __tablename__ = "candidate"
    name: Mapped[str] = mapped_column(String(160), index=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    branch_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)

    # Pipeline position, see directory.pipeline
    status: Mapped[str] = mapped_column(String(32), default="new", index=True)
    status_updated_at: Mapped[datetime | None] = mapped_column(AwareDateTime(), nullable=True)
    status_updated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    withdrawal_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    withdrawn_at: Mapped[datetime | None] = mapped_column(AwareDateTime(), nullable=True)
    last_interview_no_show_at: Mapped[datetime | None] = mapped_column(AwareDateTime(), nullable=True)
