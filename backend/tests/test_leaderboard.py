import uuid
from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient

from courtmatch.main import app
from courtmatch.models import RatingHistory
from courtmatch.services import leaderboard as leaderboard_service
from courtmatch.time_utils import utcnow

from factories import auth_header, create_profile

PREFIX = "/api/v0"


async def _field(session_factory):
    alice = await create_profile(session_factory, "alice", rating=1500, matches_played=12)
    bob = await create_profile(session_factory, "bob", rating=1400, matches_played=6)
    carol = await create_profile(session_factory, "carol", rating=1400, matches_played=30)
    newbie = await create_profile(session_factory, "newbie", rating=1600, matches_played=3)
    hidden = await create_profile(
        session_factory, "hidden", rating=1700, matches_played=20, is_public=False
    )
    return alice, bob, carol, newbie, hidden


async def _history(session_factory, player, delta, *, days_ago=1, reason="match_result"):
    async with session_factory() as session:
        session.add(
            RatingHistory(
                id=uuid.uuid4().hex,
                player_id=player.id,
                match_id=None,
                rating_before=player.rating - delta,
                rating_after=player.rating,
                delta=delta,
                reason=reason,
                provisional=False,
                recorded_at=utcnow() - timedelta(days=days_ago),
            )
        )
        await session.commit()


@pytest.mark.anyio
async def test_leaderboard_ranks_public_established_players(session_factory):
    alice, bob, carol, newbie, hidden = await _field(session_factory)
    tied = sorted([bob, carol], key=lambda p: p.id)

    async with session_factory() as session:
        ranked, total = await leaderboard_service.leaderboard(session)
        page, _ = await leaderboard_service.leaderboard(session, limit=1, offset=1)

    assert total == 3
    assert [(rank, p.id) for rank, p in ranked] == [
        (1, alice.id),
        (2, tied[0].id),
        (3, tied[1].id),
    ]
    assert [(rank, p.id) for rank, p in page] == [(2, tied[0].id)]


@pytest.mark.anyio
async def test_player_rank_matches_leaderboard_position(session_factory):
    alice, bob, carol, newbie, hidden = await _field(session_factory)
    tied = sorted([bob, carol], key=lambda p: p.id)

    async with session_factory() as session:
        assert await leaderboard_service.player_rank(session, alice) == 1
        assert await leaderboard_service.player_rank(session, tied[0]) == 2
        assert await leaderboard_service.player_rank(session, tied[1]) == 3
        assert await leaderboard_service.player_rank(session, newbie) is None
        assert await leaderboard_service.player_rank(session, hidden) is None


@pytest.mark.anyio
async def test_top_movers_are_recent_match_gains(session_factory):
    alice, bob, carol, newbie, hidden = await _field(session_factory)
    await _history(session_factory, alice, 30)
    await _history(session_factory, bob, 10)
    await _history(session_factory, carol, 50, days_ago=10)
    await _history(session_factory, newbie, 40, reason="adjustment")
    await _history(session_factory, hidden, 60)

    async with session_factory() as session:
        movers = await leaderboard_service.top_movers(session)
        top = await leaderboard_service.top_movers(session, limit=1)

    assert [(p.id, h.delta) for h, p in movers] == [(alice.id, 30), (bob.id, 10)]
    assert [p.id for _, p in top] == [alice.id]


@pytest.mark.anyio
async def test_leaderboard_routes(session_factory):
    alice, bob, carol, newbie, hidden = await _field(session_factory)
    await _history(session_factory, alice, 30)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.get(f"{PREFIX}/leaderboard", params={"limit": 2})
        assert resp.status_code == 200
        body = resp.json()
        assert body["total"] == 3
        assert [e["playerId"] for e in body["leaders"]][0] == alice.id
        assert [e["rank"] for e in body["leaders"]] == [1, 2]

        resp = await client.get(f"{PREFIX}/leaderboard/me", headers=auth_header(alice.id))
        assert resp.json()["rank"] == 1

        resp = await client.get(f"{PREFIX}/leaderboard/me", headers=auth_header(newbie.id))
        assert resp.status_code == 200
        assert resp.json()["rank"] is None
        assert resp.json()["matchesPlayed"] == 3

        resp = await client.get(f"{PREFIX}/leaderboard/movers")
        assert [(m["playerId"], m["delta"]) for m in resp.json()] == [(alice.id, 30)]
