import re
from datetime import date
from typing import Literal
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

BookingKind = Literal["interview", "trial"]

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

TRIAL_DURATION_MINUTES = 240

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def parse_hhmm(value: str) -> int:
    """'09:30' -> 570 (minutes past midnight)."""
    if not isinstance(value, str) or not _HHMM.match(value):
        raise ValueError(f"time must be HH:MM, got {value!r}")
    h, m = value.split(":")
    return int(h) * 60 + int(m)


def format_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


class TimeWindow(BaseModel):
    model_config = ConfigDict(extra="forbid")
    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def _hhmm(cls, v: str):
        parse_hhmm(v)
        return v

    @model_validator(mode="after")
    def _ordered(self):
        if parse_hhmm(self.start) >= parse_hhmm(self.end):
            raise ValueError(f"window start {self.start} must be before end {self.end}")
        return self

    @property
    def start_minute(self) -> int:
        return parse_hhmm(self.start)

    @property
    def end_minute(self) -> int:
        return parse_hhmm(self.end)


class DaySchedule(BaseModel):
    model_config = ConfigDict(extra="forbid")
    enabled: bool = False
    windows: list[TimeWindow] = []

    @model_validator(mode="after")
    def _no_overlap(self):
        ordered = sorted(self.windows, key=lambda w: w.start_minute)
        for prev, cur in zip(ordered, ordered[1:]):
            if cur.start_minute < prev.end_minute:
                raise ValueError(f"windows {prev.start}-{prev.end} and {cur.start}-{cur.end} overlap")
        self.windows = ordered
        return self


class AvailabilityConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    schedule: dict[str, DaySchedule]
    slot_duration_minutes: int = Field(gt=0, le=24 * 60)
    buffer_minutes: int = Field(ge=0, le=24 * 60)
    advance_booking_days: int = Field(gt=0, le=365)
    min_notice_hours: int = Field(ge=0, le=24 * 30)

    @field_validator("schedule")
    @classmethod
    def _weekday_keys(cls, v: dict[str, DaySchedule]):
        unknown = set(v) - set(WEEKDAYS)
        if unknown:
            raise ValueError(f"unknown weekday(s): {', '.join(sorted(unknown))}")
        return {d: v.get(d, DaySchedule()) for d in WEEKDAYS}

    def day(self, weekday: int) -> DaySchedule:
        return self.schedule.get(WEEKDAYS[weekday]) or DaySchedule()


class LunchBlock(BaseModel):
    model_config = ConfigDict(extra="forbid")
    enabled: bool = False
    start: str = "12:00"
    end: str = "13:00"

    @model_validator(mode="after")
    def _ordered(self):
        if parse_hhmm(self.start) >= parse_hhmm(self.end):
            raise ValueError("lunch start must be before end")
        return self


class BookingBlocksIn(BaseModel):
    model_config = ConfigDict(extra="forbid")
    bank_holidays: list[date] = []
    lunch_block: LunchBlock = LunchBlock()


class BookingBlocksOut(BaseModel):
    bank_holidays: list[date]
    lunch_block: LunchBlock

    @property
    def holidays(self) -> frozenset[date]:
        return frozenset(self.bank_holidays)


def _weekdays(start: str, end: str) -> dict[str, dict]:
    open_day = {"enabled": True, "windows": [{"start": start, "end": end}]}
    closed = {"enabled": False, "windows": []}
    return {d: (open_day if i < 5 else closed) for i, d in enumerate(WEEKDAYS)}


DEFAULT_CONFIGS: dict[str, dict] = {
    "interview": {
        "enabled": True,
        "schedule": _weekdays("09:00", "17:00"),
        "slot_duration_minutes": 30,
        "buffer_minutes": 15,
        "advance_booking_days": 14,
        "min_notice_hours": 24,
    },
    "trial": {
        "enabled": True,
        "schedule": _weekdays("09:00", "17:00"),
        "slot_duration_minutes": TRIAL_DURATION_MINUTES,
        "buffer_minutes": 30,
        "advance_booking_days": 21,
        "min_notice_hours": 48,
    },
}

# UK (England & Wales) bank holidays
DEFAULT_BANK_HOLIDAYS: tuple[str, ...] = (
    "2025-01-01", "2025-04-18", "2025-04-21", "2025-05-05",
    "2025-05-26", "2025-08-25", "2025-12-25", "2025-12-26",
    "2026-01-01", "2026-04-03", "2026-04-06", "2026-05-04",
    "2026-05-25", "2026-08-31", "2026-12-25", "2026-12-28",
)


def default_config(kind: str) -> AvailabilityConfig:
    return AvailabilityConfig.model_validate(DEFAULT_CONFIGS[kind])


def default_blocks() -> BookingBlocksOut:
    return BookingBlocksOut(
        bank_holidays=[date.fromisoformat(d) for d in DEFAULT_BANK_HOLIDAYS],
        lunch_block=LunchBlock(),
    )


def merge_with_defaults(kind: str, stored: dict | None) -> AvailabilityConfig:
    """Stored document overlaid on the kind's defaults.

    Missing or zero numeric fields fall back field by field; a missing
    schedule (or weekday) falls back to the default one.
    """
    base = DEFAULT_CONFIGS[kind]
    stored = stored or {}
    merged: dict = {"enabled": stored.get("enabled", base["enabled"])}
    schedule = dict(base["schedule"])
    for day, value in (stored.get("schedule") or {}).items():
        schedule[day] = value
    merged["schedule"] = schedule
    for field in ("slot_duration_minutes", "buffer_minutes", "advance_booking_days", "min_notice_hours"):
        value = stored.get(field)
        merged[field] = value if value else base[field]
    if kind == "trial":
        merged["slot_duration_minutes"] = TRIAL_DURATION_MINUTES
    return AvailabilityConfig.model_validate(merged)


# ---- API payloads ----

class AvailabilityConfigOut(AvailabilityConfig):
    kind: BookingKind
    is_default: bool = False
