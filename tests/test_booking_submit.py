import asyncio
import re
from datetime import date, datetime, timezone

import pytest
from sqlalchemy import func, select

from booking_engine.core.errors import InvalidToken, SlotConflict, TemporalError
from booking_engine.modules.availability.schemas import BookingBlocksIn, LunchBlock
from booking_engine.modules.availability.service import AvailabilityService
from booking_engine.modules.booking.service import BookingService
from booking_engine.modules.booking_links.models import BookingLink
from booking_engine.modules.directory.repository import CandidateRepository
from booking_engine.modules.events.outbox import EventOutbox
from booking_engine.modules.interviews.models import Interview

TUESDAY = date(2025, 6, 3)


@pytest.fixture
def booking(session, clock, tz):
    return BookingService(session, clock=clock, tz=tz)


async def count_interviews(session) -> int:
    return (await session.execute(select(func.count()).select_from(Interview))).scalar_one()


async def test_successful_booking(session, booking, notifier, bus, make_candidate, issue_link):
    candidate = await make_candidate()
    issued = await issue_link(candidate, job_title="Barista")

    receipt = await booking.submit_booking(issued.token, TUESDAY, "09:45")

    assert re.match(r"^AP-[0-9A-Z]+-[0-9A-Z]{4}$", receipt.confirmation_code)
    assert receipt.scheduled_at == datetime(2025, 6, 3, 9, 45, tzinfo=timezone.utc)
    assert receipt.side_effects == ["candidate.status_advance", "booking.confirmed"]

    iv = (await session.execute(select(Interview))).scalar_one()
    assert iv.status == "scheduled" and iv.booked_via == "booking_link" and iv.duration_minutes == 30

    link = (await session.execute(select(BookingLink).execution_options(populate_existing=True))).scalar_one()
    assert link.status == "used" and link.use_count == 1 and link.interview_id == iv.id

    # side effects ran right after commit
    assert (await CandidateRepository(session).get(candidate.id)).status == "interview_scheduled"
    assert [n.template for n in notifier.sent] == ["interview_confirmation"]
    assert receipt.confirmation_code in notifier.sent[0].body
    assert {p["value"]["event_type"] for p in bus.published} == {"candidate.status_advance", "booking.confirmed"}
    statuses = (await session.execute(select(EventOutbox.status))).scalars().all()
    assert statuses == ["sent", "sent"]


async def test_token_cannot_be_reused(booking, make_candidate, issue_link):
    issued = await issue_link(await make_candidate())
    await booking.submit_booking(issued.token, TUESDAY, "09:00")
    with pytest.raises(InvalidToken):
        await booking.submit_booking(issued.token, TUESDAY, "11:15")


async def test_multi_use_link_stays_active_until_exhausted(session, booking, make_candidate, issue_link):
    issued = await issue_link(await make_candidate(), max_uses=2)
    await booking.submit_booking(issued.token, TUESDAY, "09:00")
    link = (await session.execute(select(BookingLink).execution_options(populate_existing=True))).scalar_one()
    assert (link.status, link.use_count) == ("active", 1)

    await booking.submit_booking(issued.token, TUESDAY, "14:15")
    with pytest.raises(InvalidToken):
        await booking.submit_booking(issued.token, TUESDAY, "15:45")
    assert await count_interviews(session) == 2


async def test_taken_slot_is_a_conflict(session, booking, make_candidate, issue_link):
    first = await issue_link(await make_candidate(name="A One", email="a@example.com"))
    second = await issue_link(await make_candidate(name="B Two", email="b@example.com"))
    await booking.submit_booking(first.token, TUESDAY, "10:30")
    with pytest.raises(SlotConflict):
        await booking.submit_booking(second.token, TUESDAY, "10:30")
    assert await count_interviews(session) == 1


async def test_listing_reflects_booking_with_buffer(booking, make_candidate, issue_link, add_interview):
    candidate = await make_candidate()
    await add_interview(candidate, datetime(2025, 6, 3, 10, 0, tzinfo=timezone.utc))
    issued = await issue_link(await make_candidate(name="Sam Roe", email="sam@example.com"))

    listing = await booking.get_time_slots(issued.token, TUESDAY)
    by_time = {s["time"]: s for s in listing["slots"]}
    assert by_time["09:00"]["available"]
    assert by_time["09:45"] == {"time": "09:45", "available": False, "reason": "already booked"}
    assert by_time["11:15"]["available"]


async def test_listing_on_holiday_is_blocked(booking, make_candidate, issue_link):
    issued = await issue_link(await make_candidate())
    listing = await booking.get_time_slots(issued.token, date(2025, 8, 25))
    assert listing["slots"] == [] and listing["blocked"] and listing["block_reason"] == "blocked: holiday"


async def test_listing_outside_window_is_blocked(booking, make_candidate, issue_link):
    issued = await issue_link(await make_candidate())
    listing = await booking.get_time_slots(issued.token, date(2025, 6, 30))
    assert listing["blocked"] and listing["block_reason"] == "outside booking window"


async def test_availability_summary(session, booking, clock, make_candidate, issue_link, add_interview):
    other = await make_candidate(name="Busy Person", email="busy@example.com")
    for hour in range(9, 17):
        await add_interview(other, datetime(2025, 6, 4, hour, 0, tzinfo=timezone.utc))
    issued = await issue_link(await make_candidate())

    summary = await booking.get_availability(issued.token)
    assert summary["fully_booked_dates"] == [date(2025, 6, 4)]
    assert summary["config"]["advance_booking_days"] == 14
    assert date(2025, 8, 25) in summary["blocked_dates"]
    assert summary["lunch_block"]["enabled"] is False


@pytest.mark.parametrize("day,time_of_day,code", [
    (date(2025, 6, 1), "09:00", "in_the_past"),
    (date(2025, 6, 2), "09:00", "too_short_notice"),
    (date(2025, 6, 30), "09:00", "outside_booking_window"),
    (TUESDAY, "09:10", "not_offered"),
    (date(2025, 6, 7), "09:00", "not_offered"),
])
async def test_temporal_rejections(booking, make_candidate, issue_link, day, time_of_day, code):
    issued = await issue_link(await make_candidate())
    with pytest.raises(TemporalError) as exc:
        await booking.submit_booking(issued.token, day, time_of_day)
    assert exc.value.code == code


async def test_holiday_and_lunch_rejections(session, booking, make_candidate, issue_link):
    await AvailabilityService(session).update_blocks(
        BookingBlocksIn(bank_holidays=[date(2025, 6, 4)], lunch_block=LunchBlock(enabled=True)), actor="user:test",
    )
    issued = await issue_link(await make_candidate())
    with pytest.raises(TemporalError) as exc:
        await booking.submit_booking(issued.token, date(2025, 6, 4), "09:00")
    assert exc.value.code == "blocked_holiday"
    with pytest.raises(TemporalError) as exc:
        await booking.submit_booking(issued.token, TUESDAY, "12:00")
    assert exc.value.code == "blocked_lunch"


async def test_trial_booking_takes_four_hours(session, booking, make_candidate, issue_link):
    candidate = await make_candidate(status="trial_invited")
    issued = await issue_link(candidate, kind="trial")
    receipt = await booking.submit_booking(issued.token, date(2025, 6, 5), "09:00")
    assert receipt.duration_minutes == 240
    assert (await CandidateRepository(session).get(candidate.id)).status == "trial_scheduled"


async def test_concurrent_bookings_for_one_slot_yield_exactly_one(sessionmaker, clock, tz, make_candidate, issue_link):
    tokens = []
    for i in range(2):
        c = await make_candidate(name=f"Racer {i}", email=f"racer{i}@example.com")
        tokens.append((await issue_link(c)).token)

    async def attempt(token):
        async with sessionmaker() as s:
            return await BookingService(s, clock=clock, tz=tz).submit_booking(token, TUESDAY, "13:30")

    results = await asyncio.gather(*(attempt(t) for t in tokens), return_exceptions=True)
    wins = [r for r in results if not isinstance(r, Exception)]
    losses = [r for r in results if isinstance(r, Exception)]
    assert len(wins) == 1
    assert len(losses) == 1 and isinstance(losses[0], SlotConflict)

    async with sessionmaker() as s:
        assert await count_interviews(s) == 1


async def test_concurrent_reuse_of_one_token_books_once(sessionmaker, clock, tz, make_candidate, issue_link):
    token = (await issue_link(await make_candidate())).token

    async def attempt(time_of_day):
        async with sessionmaker() as s:
            return await BookingService(s, clock=clock, tz=tz).submit_booking(token, TUESDAY, time_of_day)

    results = await asyncio.gather(attempt("09:00"), attempt("15:00"), return_exceptions=True)
    wins = [r for r in results if not isinstance(r, Exception)]
    losses = [r for r in results if isinstance(r, Exception)]
    assert len(wins) == 1
    assert len(losses) == 1 and isinstance(losses[0], (InvalidToken, SlotConflict))

    async with sessionmaker() as s:
        assert await count_interviews(s) == 1
        link = (await s.execute(select(BookingLink))).scalar_one()
        assert link.use_count == 1
