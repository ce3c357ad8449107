import pytest
from sqlalchemy import select

from booking_engine.core.errors import InvalidToken, InvalidTransition
from booking_engine.modules.booking_links.models import BookingLink
from booking_engine.modules.booking_links.service import BookingLinkService
from booking_engine.modules.booking_links.tokens import hash_token
from booking_engine.modules.directory.repository import CandidateRepository


async def test_issue_returns_token_once_and_stores_only_its_hash(session, make_candidate, issue_link):
    candidate = await make_candidate(status="screening")
    issued = await issue_link(candidate)

    assert len(issued.token) == 64
    assert issued.url.endswith(f"/book/{issued.token}")
    assert issued.duration_minutes == 30

    link = (await session.execute(select(BookingLink))).scalar_one()
    assert link.token_hash == hash_token(issued.token)
    assert issued.token not in (link.token_hash, link.candidate_name)
    assert link.status == "active" and link.use_count == 0 and link.max_uses == 1


async def test_issue_moves_candidate_to_invited(session, make_candidate, issue_link):
    candidate = await make_candidate(status="screening")
    await issue_link(candidate, kind="trial")
    refreshed = await CandidateRepository(session).get(candidate.id)
    assert refreshed.status == "trial_invited"


async def test_trial_link_carries_four_hour_duration(make_candidate, issue_link):
    issued = await issue_link(await make_candidate(), kind="trial")
    assert issued.duration_minutes == 240


async def test_valid_token_grants_first_name_only(session, clock, make_candidate, issue_link):
    issued = await issue_link(await make_candidate(name="Jane Anne Doe"), job_title="Barista", branch_name="Soho")
    grant = await BookingLinkService(session, clock=clock).validate(f"  {issued.token}  ")
    public = grant.public()
    assert public["candidate_first_name"] == "Jane"
    assert public["job_title"] == "Barista"
    assert "token" not in public and "token_hash" not in public
    assert "Doe" not in str(public)


@pytest.mark.parametrize("token", ["", "short", "x" * 65, "bad token with spaces", "semi;colon-token", None])
async def test_malformed_tokens_are_rejected(session, clock, token):
    with pytest.raises(InvalidToken) as exc:
        await BookingLinkService(session, clock=clock).validate(token)
    assert exc.value.message == "Invalid or expired booking link"


async def test_unknown_token_is_rejected(session, clock):
    with pytest.raises(InvalidToken):
        await BookingLinkService(session, clock=clock).validate("a" * 64)


async def test_expired_token_is_rejected_and_marked_expired(session, clock, make_candidate, issue_link):
    issued = await issue_link(await make_candidate())
    clock.advance(days=8)
    with pytest.raises(InvalidToken):
        await BookingLinkService(session, clock=clock).validate(issued.token)

    link = (await session.execute(select(BookingLink).execution_options(populate_existing=True))).scalar_one()
    assert link.status == "expired"
    assert link.expired_at == clock.now


async def test_revoked_token_is_rejected(session, clock, make_candidate, issue_link):
    issued = await issue_link(await make_candidate())
    service = BookingLinkService(session, clock=clock)
    revoked = await service.revoke(issued.id, actor="user:test")
    assert revoked.status == "revoked"
    with pytest.raises(InvalidToken):
        await service.validate(issued.token)
    with pytest.raises(InvalidTransition):
        await service.revoke(issued.id, actor="user:test")
