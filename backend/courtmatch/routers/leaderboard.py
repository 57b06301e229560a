from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..models import Profile
from ..schemas import LeaderboardEntryOut, LeaderboardOut, PlayerRankOut, TopMoverOut
from ..services import leaderboard as leaderboard_service
from ..time_utils import coerce_utc
from .auth import get_current_player

# Resource-only prefix; no /api or /api/v0 here
router = APIRouter(prefix="/leaderboard", tags=["leaderboard"])


# GET /api/v0/leaderboard
@router.get("", response_model=LeaderboardOut)
async def leaderboard(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
) -> LeaderboardOut:
    ranked, total = await leaderboard_service.leaderboard(
        session, limit=limit, offset=offset
    )
    leaders = [
        LeaderboardEntryOut(
            rank=rank,
            playerId=p.id,
            username=p.username,
            rating=p.rating,
            ratingProvisional=p.rating_provisional,
            matchesPlayed=p.matches_played,
            matchesWon=p.matches_won,
            matchesLost=p.matches_lost,
        )
        for rank, p in ranked
    ]
    return LeaderboardOut(leaders=leaders, total=total, limit=limit, offset=offset)


# GET /api/v0/leaderboard/me
@router.get("/me", response_model=PlayerRankOut)
async def my_rank(
    session: AsyncSession = Depends(get_session),
    player: Profile = Depends(get_current_player),
) -> PlayerRankOut:
    # Profiles below the match threshold are unranked, not an error.
    rank = await leaderboard_service.player_rank(session, player)
    return PlayerRankOut(
        rank=rank,
        rating=player.rating,
        ratingProvisional=player.rating_provisional,
        matchesPlayed=player.matches_played,
    )


# GET /api/v0/leaderboard/movers
@router.get("/movers", response_model=list[TopMoverOut])
async def top_movers(
    limit: int = Query(10, ge=1, le=20),
    session: AsyncSession = Depends(get_session),
) -> list[TopMoverOut]:
    rows = await leaderboard_service.top_movers(session, limit=limit)
    return [
        TopMoverOut(
            playerId=p.id,
            username=p.username,
            rating=p.rating,
            delta=h.delta,
            matchId=h.match_id,
            recordedAt=coerce_utc(h.recorded_at),
        )
        for h, p in rows
    ]
