"""Read-side rankings built from what the rating engine writes.

The leaderboard lists public profiles with at least
``LEADERBOARD_MIN_MATCHES`` rated matches, ordered by rating (ties broken by
id so pages are stable). Top movers are the largest ``match_result`` gains
recorded in the last seven days.
"""

from datetime import datetime, timedelta
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from .. import repository
from ..models import LEADERBOARD_MIN_MATCHES, Profile, RatingHistory
from ..time_utils import utcnow

TOP_MOVERS_WINDOW = timedelta(days=7)


async def leaderboard(
    session: AsyncSession, *, limit: int = 50, offset: int = 0
) -> tuple[list[tuple[int, Profile]], int]:
    """Return ``([(rank, profile), ...], total)`` for one page."""

    rows = await repository.list_leaderboard(session, limit=limit, offset=offset)
    total = await repository.count_leaderboard(session)
    return [(offset + i + 1, p) for i, p in enumerate(rows)], total


async def player_rank(session: AsyncSession, profile: Profile) -> int | None:
    if not profile.is_public or profile.matches_played < LEADERBOARD_MIN_MATCHES:
        return None
    return await repository.count_ranked_ahead_of(session, profile) + 1


async def top_movers(
    session: AsyncSession, *, limit: int = 10, now: datetime | None = None
) -> Sequence[tuple[RatingHistory, Profile]]:
    since = (now or utcnow()) - TOP_MOVERS_WINDOW
    return await repository.list_top_movers(session, since=since, limit=limit)
