import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer
from booking_engine.core.base import Base, TimestampedMixin, AwareDateTime

class BookingLink(Base, TimestampedMixin):
    # sha256 hex of the secret; the secret itself is handed out once and never stored
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, index=True)

    candidate_id: Mapped[uuid.UUID] = mapped_column(index=True)
    candidate_name: Mapped[str] = mapped_column(String(160))
    candidate_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    kind: Mapped[str] = mapped_column(String(16))  # interview | trial
    duration_minutes: Mapped[int] = mapped_column(Integer)

    job_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    job_title: Mapped[str | None] = mapped_column(String(160), nullable=True)
    branch_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    branch_name: Mapped[str | None] = mapped_column(String(160), nullable=True)
    branch_address: Mapped[str | None] = mapped_column(String(255), nullable=True)

    status: Mapped[str] = mapped_column(String(16), default="active", index=True)  # active | used | expired | revoked
    expires_at: Mapped[datetime] = mapped_column(AwareDateTime(), index=True)
    max_uses: Mapped[int] = mapped_column(Integer, default=1)
    use_count: Mapped[int] = mapped_column(Integer, default=0)

    used_at: Mapped[datetime | None] = mapped_column(AwareDateTime(), nullable=True)
    expired_at: Mapped[datetime | None] = mapped_column(AwareDateTime(), nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(AwareDateTime(), nullable=True)
    interview_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
