from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from booking_engine.core.db import build_engine, build_sessionmaker, init_models
from booking_engine.modules.booking_links.schemas import IssueLink
from booking_engine.modules.booking_links.service import BookingLinkService
from booking_engine.modules.directory.service import DirectoryService
from booking_engine.modules.interviews.repository import InterviewRepository
from booking_engine.platform.adapters.bus_noop import NoopEventBus
from booking_engine.platform.adapters.notifier_log import LogNotifier
from booking_engine.platform.provider_registry import ProviderRegistry

UTC = ZoneInfo("UTC")

# Monday 2 June 2025, 08:00 UTC
MONDAY_8AM = datetime(2025, 6, 2, 8, 0, tzinfo=timezone.utc)


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta):
        self.now = self.now + timedelta(**delta)


@pytest.fixture
def clock():
    return FrozenClock(MONDAY_8AM)


@pytest.fixture
def tz():
    return UTC


@pytest.fixture
async def engine(tmp_path):
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'booking.db'}")
    await init_models(eng, manage="create_all")
    yield eng
    await eng.dispose()


@pytest.fixture
def sessionmaker(engine):
    return build_sessionmaker(engine)


@pytest.fixture
async def session(sessionmaker):
    async with sessionmaker() as s:
        yield s


@pytest.fixture(autouse=True)
def providers(monkeypatch):
    bus, notifier = NoopEventBus(), LogNotifier()
    monkeypatch.setattr(ProviderRegistry, "_event_bus", bus)
    monkeypatch.setattr(ProviderRegistry, "_notifier", notifier)
    return bus, notifier


@pytest.fixture
def notifier(providers):
    return providers[1]


@pytest.fixture
def bus(providers):
    return providers[0]


@pytest.fixture
def make_candidate(session, clock):
    async def make(name="Jane Doe", status="invite_sent", email="jane@example.com"):
        return await DirectoryService(session, clock=clock).create_candidate(name=name, email=email, status=status)
    return make


@pytest.fixture
def issue_link(session, clock):
    async def issue(candidate, kind="interview", **extra):
        return await BookingLinkService(session, clock=clock).issue(
            IssueLink(candidate_id=candidate.id, kind=kind, **extra), actor="user:test"
        )
    return issue


@pytest.fixture
def add_interview(session):
    async def add(candidate, scheduled_at, *, status="scheduled", kind="interview", duration=30):
        iv = await InterviewRepository(session).create(
            candidate_id=candidate.id,
            candidate_name=candidate.name,
            candidate_email=candidate.email,
            kind=kind,
            scheduled_at=scheduled_at,
            duration_minutes=duration,
            status=status,
            booked_via="admin",
        )
        await session.commit()
        return iv
    return add
