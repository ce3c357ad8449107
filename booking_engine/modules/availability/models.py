from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, JSON
from booking_engine.core.base import Base, TimestampedMixin

# One row per booking kind ("interview" | "trial"); the config document is
# validated by AvailabilityConfig before it is written.
class AvailabilitySettings(Base, TimestampedMixin):
    kind: Mapped[str] = mapped_column(String(16), unique=True, index=True)
    config: Mapped[dict] = mapped_column(JSON)
    updated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

# Company-wide blocks: bank holidays + lunch exclusion. Single row keyed "default".
class BookingBlocks(Base, TimestampedMixin):
    key: Mapped[str] = mapped_column(String(16), unique=True, default="default")
    bank_holidays: Mapped[list] = mapped_column(JSON, default=list)   # ["2025-12-25", ...]
    lunch_block: Mapped[dict] = mapped_column(JSON, default=dict)     # {"enabled": false, "start": "12:00", "end": "13:00"}
    updated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
