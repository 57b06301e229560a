"""Row builders shared by the test modules."""

import uuid
from datetime import datetime, timedelta, timezone

import jwt

from courtmatch.models import Match, MatchStatus, Profile

JWT_SECRET = "x" * 32


def make_token(player_id: str, *, admin: bool = False) -> str:
    payload = {"sub": player_id}
    if admin:
        payload["admin"] = True
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


def auth_header(player_id: str, *, admin: bool = False) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(player_id, admin=admin)}"}


def future(hours: float = 24) -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0) + timedelta(hours=hours)


async def create_profile(
    session_factory,
    username: str,
    *,
    rating: int = 1200,
    matches_played: int = 0,
    is_public: bool = True,
) -> Profile:
    profile = Profile(
        id=uuid.uuid4().hex,
        username=username,
        rating=rating,
        rating_provisional=matches_played < 10,
        matches_played=matches_played,
        matches_won=0,
        matches_lost=0,
        is_public=is_public,
    )
    async with session_factory() as session:
        session.add(profile)
        await session.commit()
    return profile


async def create_match(
    session_factory,
    player1: Profile,
    player2: Profile,
    *,
    match_format: str = "best_of_3",
    status: str = MatchStatus.ACCEPTED,
) -> Match:
    match = Match(
        id=uuid.uuid4().hex,
        player1_id=player1.id,
        player2_id=player2.id,
        status=status,
        format=match_format,
    )
    async with session_factory() as session:
        session.add(match)
        await session.commit()
    return match
