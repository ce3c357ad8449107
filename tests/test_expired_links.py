from datetime import timedelta

from sqlalchemy import select

from booking_engine.modules.booking_links.models import BookingLink
from booking_engine.modules.booking_links.sweeper import ExpiredLinkSweeper
from booking_engine.modules.directory.repository import CandidateRepository
from booking_engine.modules.directory.service import DirectoryService


async def link_status(session, link_id):
    q = select(BookingLink.status).where(BookingLink.id == link_id).execution_options(populate_existing=True)
    return (await session.execute(q)).scalar_one()


async def test_expired_link_withdraws_waiting_candidate(session, clock, make_candidate, issue_link):
    candidate = await make_candidate()
    issued = await issue_link(candidate)
    clock.advance(days=8)

    result = await ExpiredLinkSweeper(session, clock=clock).run()

    assert (result.scanned, result.expired, result.withdrawn) == (1, 1, 1)
    assert await link_status(session, issued.id) == "expired"
    c = await CandidateRepository(session).get(candidate.id)
    assert c.status == "withdrawn"
    assert c.withdrawal_reason == "Booking link expired without booking (interview)"


async def test_candidate_who_moved_on_keeps_status(session, clock, make_candidate, issue_link):
    candidate = await make_candidate()
    issued = await issue_link(candidate)
    await DirectoryService(session, clock=clock).change_status(candidate.id, "interview_complete", actor="user:test")
    clock.advance(days=8)

    result = await ExpiredLinkSweeper(session, clock=clock).run()

    assert (result.expired, result.withdrawn) == (1, 0)
    assert await link_status(session, issued.id) == "expired"
    assert (await CandidateRepository(session).get(candidate.id)).status == "interview_complete"


async def test_candidate_with_active_interview_is_not_withdrawn(session, clock, make_candidate, issue_link, add_interview):
    candidate = await make_candidate()
    await issue_link(candidate)
    await add_interview(candidate, clock.now + timedelta(days=10))
    clock.advance(days=8)

    result = await ExpiredLinkSweeper(session, clock=clock).run()

    assert (result.expired, result.withdrawn) == (1, 0)
    assert (await CandidateRepository(session).get(candidate.id)).status == "invite_sent"


async def test_newer_open_link_prevents_withdrawal(session, clock, make_candidate, issue_link):
    candidate = await make_candidate()
    await issue_link(candidate)
    clock.advance(days=5)
    fresh = await issue_link(candidate)
    clock.advance(days=3)

    result = await ExpiredLinkSweeper(session, clock=clock).run()

    assert (result.expired, result.withdrawn) == (1, 0)
    assert await link_status(session, fresh.id) == "active"
    assert (await CandidateRepository(session).get(candidate.id)).status == "invite_sent"


async def test_sweep_is_idempotent(session, clock, make_candidate, issue_link):
    await issue_link(await make_candidate())
    clock.advance(days=8)

    await ExpiredLinkSweeper(session, clock=clock).run()
    again = await ExpiredLinkSweeper(session, clock=clock).run()

    assert (again.scanned, again.expired, again.withdrawn) == (0, 0, 0)


async def test_unexpired_links_are_left_alone(session, clock, make_candidate, issue_link):
    issued = await issue_link(await make_candidate())
    clock.advance(days=6)
    result = await ExpiredLinkSweeper(session, clock=clock).run()
    assert result.scanned == 0
    assert await link_status(session, issued.id) == "active"


async def test_sweep_scoped_to_one_candidate(session, clock, make_candidate, issue_link):
    first = await make_candidate(name="First Person", email="first@example.com")
    second = await make_candidate(name="Second Person", email="second@example.com")
    first_link = await issue_link(first)
    second_link = await issue_link(second)
    clock.advance(days=8)

    result = await ExpiredLinkSweeper(session, clock=clock).check_candidate(first.id)

    assert result.expired == 1
    assert await link_status(session, first_link.id) == "expired"
    assert await link_status(session, second_link.id) == "active"
    assert (await CandidateRepository(session).get(second.id)).status == "invite_sent"
