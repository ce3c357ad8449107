"""Slot generation and conflict evaluation.

Pure functions only: callers load the config, blocks and existing bookings
and pass them in, so everything here can be exercised without a database.

Times of day are minutes past local midnight in the business timezone;
instants handed in or out are UTC-aware datetimes.
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Iterator, Sequence
from zoneinfo import ZoneInfo

from booking_engine.modules.availability.schemas import (
    AvailabilityConfig,
    BookingBlocksOut,
    LunchBlock,
    TRIAL_DURATION_MINUTES,
    format_hhmm,
    parse_hhmm,
)

BLOCKED_HOLIDAY = "blocked: holiday"

REASON_NOTICE = "too short notice"
REASON_BOOKED = "already booked"
REASON_LUNCH = "lunch"


@dataclass(frozen=True)
class SlotCandidate:
    start_minute: int
    end_minute: int
    in_lunch: bool = False

    @property
    def time(self) -> str:
        return format_hhmm(self.start_minute)


@dataclass(frozen=True)
class SlotStatus:
    time: str
    available: bool
    reason: str | None = None


@dataclass(frozen=True)
class BusyInterval:
    start: datetime
    end: datetime


def booking_duration(kind: str, config: AvailabilityConfig) -> int:
    if kind == "trial":
        return TRIAL_DURATION_MINUTES
    return config.slot_duration_minutes or 30


def overlaps(a_start, a_end, b_start, b_end) -> bool:
    # half-open intervals
    return a_start < b_end and a_end > b_start


def lunch_overlaps(start_minute: int, end_minute: int, lunch: LunchBlock) -> bool:
    if not lunch.enabled:
        return False
    return overlaps(start_minute, end_minute, parse_hhmm(lunch.start), parse_hhmm(lunch.end))


def block_reason(day: date, blocks: BookingBlocksOut) -> str | None:
    if day in blocks.holidays:
        return BLOCKED_HOLIDAY
    return None


def generate_slots(day: date, kind: str, config: AvailabilityConfig, blocks: BookingBlocksOut) -> Iterator[SlotCandidate]:
    """Lazily yield candidate start times for ``day``.

    Nothing is yielded on a holiday, on a disabled weekday or when bookings of
    this kind are switched off. A slot never runs past the end of its window.
    """
    if not config.enabled or block_reason(day, blocks):
        return
    schedule = config.day(day.weekday())
    if not schedule.enabled or not schedule.windows:
        return
    duration = booking_duration(kind, config)
    step = duration + config.buffer_minutes
    for window in schedule.windows:
        t = window.start_minute
        while t + duration <= window.end_minute:
            yield SlotCandidate(t, t + duration, lunch_overlaps(t, t + duration, blocks.lunch_block))
            t += step


def to_instant(day: date, minute: int, tz: ZoneInfo) -> datetime:
    local = datetime.combine(day, time(minute // 60, minute % 60), tzinfo=tz)
    return local.astimezone(timezone.utc)


def local_day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time(0, 0), tzinfo=tz).astimezone(timezone.utc)
    end = datetime.combine(day + timedelta(days=1), time(0, 0), tzinfo=tz).astimezone(timezone.utc)
    return start, end


def local_date(instant: datetime, tz: ZoneInfo) -> date:
    return instant.astimezone(tz).date()


def evaluate_slots(
    day: date,
    candidates: Iterable[SlotCandidate],
    *,
    busy: Sequence[BusyInterval],
    buffer_minutes: int,
    min_notice_hours: int,
    now: datetime,
    tz: ZoneInfo,
) -> list[SlotStatus]:
    """Mark each candidate available or not.

    The candidate's interval is widened by the buffer on both sides and tested
    against the raw existing intervals. Reasons take precedence in the order
    notice, booked, lunch.
    """
    earliest = now + timedelta(hours=min_notice_hours)
    buffer = timedelta(minutes=buffer_minutes)
    out: list[SlotStatus] = []
    for c in candidates:
        start = to_instant(day, c.start_minute, tz)
        end = to_instant(day, c.end_minute, tz)
        if start < earliest:
            out.append(SlotStatus(c.time, False, REASON_NOTICE))
        elif any(overlaps(start - buffer, end + buffer, b.start, b.end) for b in busy):
            out.append(SlotStatus(c.time, False, REASON_BOOKED))
        elif c.in_lunch:
            out.append(SlotStatus(c.time, False, REASON_LUNCH))
        else:
            out.append(SlotStatus(c.time, True))
    return out


def fully_booked_dates(counts: dict[date, int], threshold: int) -> list[date]:
    return sorted(d for d, n in counts.items() if n >= threshold)
