from datetime import datetime, timezone
from typing import Callable
from zoneinfo import ZoneInfo

from fastapi import Request

from booking_engine.core.config import settings

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    return datetime.now(timezone.utc)


def business_tz(name: str | None = None) -> ZoneInfo:
    return ZoneInfo(name or settings.BUSINESS_TIMEZONE)


# FastAPI dependencies: the app factory may pin a clock/zone on app.state
def get_clock(request: Request) -> Clock:
    return getattr(request.app.state, "clock", None) or system_clock


def get_tz(request: Request) -> ZoneInfo:
    return getattr(request.app.state, "tz", None) or business_tz()
