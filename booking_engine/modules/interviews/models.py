import uuid
from datetime import date, datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, Integer, Boolean, Date
from booking_engine.core.base import Base, TimestampedMixin, AwareDateTime

ACTIVE_STATUSES = ("scheduled", "confirmed")

class Interview(Base, TimestampedMixin):
    # Candidate is referenced by id; name/email are copied at booking time
    candidate_id: Mapped[uuid.UUID] = mapped_column(index=True)
    candidate_name: Mapped[str] = mapped_column(String(160))
    candidate_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    kind: Mapped[str] = mapped_column(String(16))  # interview | trial
    scheduled_at: Mapped[datetime] = mapped_column(AwareDateTime(), index=True)
    duration_minutes: Mapped[int] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(16), default="scheduled", index=True)  # scheduled, confirmed, completed, cancelled, no_show, lapsed, resolved

    booked_via: Mapped[str] = mapped_column(String(16), default="admin")  # booking_link | admin
    booking_link_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    confirmation_code: Mapped[str | None] = mapped_column(String(32), nullable=True, unique=True)

    job_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    job_title: Mapped[str | None] = mapped_column(String(160), nullable=True)
    branch_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    branch_name: Mapped[str | None] = mapped_column(String(160), nullable=True)
    branch_address: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Lifecycle
    completed_at: Mapped[datetime | None] = mapped_column(AwareDateTime(), nullable=True)
    auto_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    lapsed_at: Mapped[datetime | None] = mapped_column(AwareDateTime(), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(AwareDateTime(), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(AwareDateTime(), nullable=True)
    resolved_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    resolution_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rescheduled_from: Mapped[datetime | None] = mapped_column(AwareDateTime(), nullable=True)
    reschedule_count: Mapped[int] = mapped_column(Integer, default=0)


# One row per local booking day. Every write that places an interview on a day
# bumps the version with a compare-and-set, so two such writes for the same day
# can never both commit on top of the same snapshot.
class BookingDayGuard(Base):
    __tablename__ = "bookingdayguard"
    day: Mapped[date] = mapped_column(Date, primary_key=True)
    version: Mapped[int] = mapped_column(Integer, default=0)
