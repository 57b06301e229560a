from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from .. import repository
from ..db import get_session
from ..exceptions import NotFound, ProblemDetail
from ..models import Profile
from ..schemas import RatingHistoryOut
from ..time_utils import coerce_utc
from .auth import get_current_player

router = APIRouter(
    prefix="/ratings",
    tags=["ratings"],
    responses={404: {"model": ProblemDetail}},
)


@router.get("/{player_id}/history", response_model=list[RatingHistoryOut])
async def rating_history(
    player_id: str,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
    viewer: Profile = Depends(get_current_player),
) -> list[RatingHistoryOut]:
    profile = await repository.get_profile(session, player_id)
    # Private profiles are only visible to their owner.
    if profile is None or (not profile.is_public and profile.id != viewer.id):
        raise NotFound("profile", player_id)
    rows = await repository.list_rating_history(
        session, player_id, limit=limit, offset=offset
    )
    return [
        RatingHistoryOut(
            id=r.id,
            playerId=r.player_id,
            matchId=r.match_id,
            ratingBefore=r.rating_before,
            ratingAfter=r.rating_after,
            delta=r.delta,
            reason=r.reason,
            provisional=r.provisional,
            recordedAt=coerce_utc(r.recorded_at),
        )
        for r in rows
    ]
