from datetime import timedelta

import pytest
from sqlalchemy import select

from courtmatch.exceptions import (
    DuplicateRequest,
    Forbidden,
    InvalidRequest,
    InvalidState,
    NotFound,
)
from courtmatch.models import Match, MatchRequest, MatchStatus, RequestStatus
from courtmatch.services import requests as request_service
from courtmatch.time_utils import coerce_utc, utcnow

from factories import create_profile, future


@pytest.mark.anyio
async def test_send_request_sets_expiry(session_factory, monkeypatch):
    monkeypatch.setenv("REQUEST_TTL_HOURS", "48")
    alice = await create_profile(session_factory, "alice")
    bob = await create_profile(session_factory, "bob")
    now = utcnow()

    async with session_factory() as session:
        far = await request_service.send_request(
            session, alice.id, bob.id, now + timedelta(days=7), now=now, message="Sunday?"
        )
    assert far.status == RequestStatus.PENDING
    assert far.proposed_format == "best_of_3"
    assert coerce_utc(far.expires_at) == now + timedelta(hours=48)

    async with session_factory() as session:
        soon = await request_service.send_request(
            session, bob.id, alice.id, now + timedelta(hours=3), now=now
        )
    assert coerce_utc(soon.expires_at) == now + timedelta(hours=3)


@pytest.mark.anyio
async def test_send_request_rejections(session_factory):
    alice = await create_profile(session_factory, "alice")
    bob = await create_profile(session_factory, "bob")
    hidden = await create_profile(session_factory, "hidden", is_public=False)

    async with session_factory() as session:
        with pytest.raises(InvalidRequest):
            await request_service.send_request(session, alice.id, alice.id, future())
        with pytest.raises(InvalidRequest):
            await request_service.send_request(
                session, alice.id, bob.id, future(), match_format="best_of_7"
            )
        with pytest.raises(NotFound):
            await request_service.send_request(session, alice.id, "nobody", future())
        with pytest.raises(NotFound):
            await request_service.send_request(session, alice.id, hidden.id, future())

        await request_service.send_request(session, alice.id, bob.id, future())
        with pytest.raises(DuplicateRequest) as exc:
            await request_service.send_request(session, alice.id, bob.id, future(48))
    assert exc.value.code == "request_duplicate"

    # The reverse direction is a different pair.
    async with session_factory() as session:
        await request_service.send_request(session, bob.id, alice.id, future())


@pytest.mark.anyio
async def test_lapsed_pending_request_does_not_block_a_new_one(session_factory):
    alice = await create_profile(session_factory, "alice")
    bob = await create_profile(session_factory, "bob")
    earlier = utcnow() - timedelta(days=5)

    async with session_factory() as session:
        old = await request_service.send_request(
            session, alice.id, bob.id, earlier + timedelta(hours=2), now=earlier
        )
        new = await request_service.send_request(session, alice.id, bob.id, future())

    async with session_factory() as session:
        stored_old = await session.get(MatchRequest, old.id)
        stored_new = await session.get(MatchRequest, new.id)
        assert stored_old.status == RequestStatus.EXPIRED
        assert stored_new.status == RequestStatus.PENDING


@pytest.mark.anyio
async def test_accept_creates_match(session_factory):
    alice = await create_profile(session_factory, "alice")
    bob = await create_profile(session_factory, "bob")
    proposed = future(30)

    async with session_factory() as session:
        req = await request_service.send_request(
            session,
            alice.id,
            bob.id,
            proposed,
            match_format="best_of_5",
            location_name="Centre Court",
            location_city="Ghent",
        )
        with pytest.raises(Forbidden):
            await request_service.respond_to_request(session, req.id, alice.id, accept=True)
        accepted, match = await request_service.respond_to_request(
            session, req.id, bob.id, accept=True
        )

    assert accepted.status == RequestStatus.ACCEPTED
    assert accepted.match_id == match.id
    async with session_factory() as session:
        stored = await session.get(Match, match.id)
        assert stored.status == MatchStatus.ACCEPTED
        assert (stored.player1_id, stored.player2_id) == (alice.id, bob.id)
        assert stored.format == "best_of_5"
        assert stored.location_name == "Centre Court"
        assert coerce_utc(stored.scheduled_at) == proposed

    async with session_factory() as session:
        with pytest.raises(InvalidState):
            await request_service.respond_to_request(session, req.id, bob.id, accept=False)


@pytest.mark.anyio
async def test_decline_creates_no_match(session_factory):
    alice = await create_profile(session_factory, "alice")
    bob = await create_profile(session_factory, "bob")

    async with session_factory() as session:
        req = await request_service.send_request(session, alice.id, bob.id, future())
        declined, match = await request_service.respond_to_request(
            session, req.id, bob.id, accept=False
        )
    assert declined.status == RequestStatus.DECLINED
    assert match is None
    async with session_factory() as session:
        assert (await session.execute(select(Match))).scalars().all() == []


@pytest.mark.anyio
async def test_cannot_accept_after_expiry(session_factory):
    alice = await create_profile(session_factory, "alice")
    bob = await create_profile(session_factory, "bob")

    async with session_factory() as session:
        req = await request_service.send_request(session, alice.id, bob.id, future(2))
        with pytest.raises(InvalidState) as exc:
            await request_service.respond_to_request(
                session, req.id, bob.id, accept=True, now=utcnow() + timedelta(hours=3)
            )
    assert "expired" in exc.value.detail


@pytest.mark.anyio
async def test_withdraw_is_requester_only(session_factory):
    alice = await create_profile(session_factory, "alice")
    bob = await create_profile(session_factory, "bob")

    async with session_factory() as session:
        req = await request_service.send_request(session, alice.id, bob.id, future())
        with pytest.raises(Forbidden):
            await request_service.withdraw_request(session, req.id, bob.id)
        withdrawn = await request_service.withdraw_request(session, req.id, alice.id)
        assert withdrawn.status == RequestStatus.WITHDRAWN
        with pytest.raises(InvalidState):
            await request_service.withdraw_request(session, req.id, alice.id)
        with pytest.raises(NotFound):
            await request_service.withdraw_request(session, "missing", alice.id)


@pytest.mark.anyio
async def test_list_requests_by_direction(session_factory):
    alice = await create_profile(session_factory, "alice")
    bob = await create_profile(session_factory, "bob")
    carol = await create_profile(session_factory, "carol")

    async with session_factory() as session:
        to_bob = await request_service.send_request(session, alice.id, bob.id, future())
        from_carol = await request_service.send_request(session, carol.id, alice.id, future())

        outgoing = await request_service.list_requests(session, alice.id, direction="outgoing")
        incoming = await request_service.list_requests(session, alice.id, direction="incoming")
        everything = await request_service.list_requests(session, alice.id)
        with pytest.raises(InvalidRequest):
            await request_service.list_requests(session, alice.id, direction="sideways")

    assert [r.id for r in outgoing] == [to_bob.id]
    assert [r.id for r in incoming] == [from_carol.id]
    assert {r.id for r in everything} == {to_bob.id, from_carol.id}
