from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..exceptions import ProblemDetail
from ..models import Match, Profile
from ..schemas import DisputeIn, MatchOut, MatchStatusLiteral, SetScoreIn, SubmitResultIn
from ..services import matches as match_service
from ..time_utils import coerce_utc
from .auth import get_current_player, limiter

# Resource-only prefix; versioning is added in main.py
router = APIRouter(
    prefix="/matches",
    tags=["matches"],
    responses={404: {"model": ProblemDetail}, 409: {"model": ProblemDetail}},
)


def to_match_out(match: Match, viewer_id: str | None = None) -> MatchOut:
    opponent_id = None
    if viewer_id is not None and match_service.slot_of(match, viewer_id):
        opponent_id = match_service.role_of(match, viewer_id).opponent_id
    return MatchOut(
        id=match.id,
        player1Id=match.player1_id,
        player2Id=match.player2_id,
        status=match.status,
        format=match.format,
        scheduledAt=coerce_utc(match.scheduled_at),
        playedAt=coerce_utc(match.played_at),
        locationName=match.location_name,
        locationCity=match.location_city,
        scoreDetail=(
            [SetScoreIn(**s) for s in match.score_detail]
            if match.score_detail is not None
            else None
        ),
        player1SetsWon=match.player1_sets_won,
        player2SetsWon=match.player2_sets_won,
        winnerId=match.winner_id,
        loserId=match.loser_id,
        resultSubmittedBy=match.result_submitted_by,
        resultConfirmedBy=match.result_confirmed_by,
        resultConfirmedAt=coerce_utc(match.result_confirmed_at),
        disputeReason=match.dispute_reason,
        player1RatingBefore=match.player1_rating_before,
        player2RatingBefore=match.player2_rating_before,
        player1RatingAfter=match.player1_rating_after,
        player2RatingAfter=match.player2_rating_after,
        player1RatingDelta=match.player1_rating_delta,
        player2RatingDelta=match.player2_rating_delta,
        opponentId=opponent_id,
    )


# GET /api/v0/matches
@router.get("", response_model=list[MatchOut])
async def list_matches(
    status: MatchStatusLiteral | None = None,
    limit: int = Query(20, ge=1, le=50),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
    player: Profile = Depends(get_current_player),
) -> list[MatchOut]:
    rows = await match_service.list_matches(
        session, player.id, status=status, limit=limit, offset=offset
    )
    return [to_match_out(m, player.id) for m in rows]


# GET /api/v0/matches/{mid}
@router.get("/{mid}", response_model=MatchOut)
async def get_match(
    mid: str,
    session: AsyncSession = Depends(get_session),
    player: Profile = Depends(get_current_player),
) -> MatchOut:
    match = await match_service.get_match(session, mid, player.id)
    return to_match_out(match, player.id)


# POST /api/v0/matches/{mid}/result
@router.post("/{mid}/result", response_model=MatchOut)
@limiter.limit("30/minute")
async def submit_result(
    request: Request,
    mid: str,
    body: SubmitResultIn,
    session: AsyncSession = Depends(get_session),
    player: Profile = Depends(get_current_player),
) -> MatchOut:
    match = await match_service.submit_result(
        session, mid, player.id, body.scoreDetail, body.format
    )
    return to_match_out(match, player.id)


# POST /api/v0/matches/{mid}/confirm
@router.post("/{mid}/confirm", response_model=MatchOut)
@limiter.limit("30/minute")
async def confirm_result(
    request: Request,
    mid: str,
    session: AsyncSession = Depends(get_session),
    player: Profile = Depends(get_current_player),
) -> MatchOut:
    match = await match_service.confirm_result(session, mid, player.id)
    return to_match_out(match, player.id)


# POST /api/v0/matches/{mid}/dispute
@router.post("/{mid}/dispute", response_model=MatchOut)
@limiter.limit("30/minute")
async def dispute_result(
    request: Request,
    mid: str,
    body: DisputeIn,
    session: AsyncSession = Depends(get_session),
    player: Profile = Depends(get_current_player),
) -> MatchOut:
    match = await match_service.dispute_result(session, mid, player.id, body.reason)
    return to_match_out(match, player.id)


# POST /api/v0/matches/{mid}/cancel
@router.post("/{mid}/cancel", response_model=MatchOut)
@limiter.limit("30/minute")
async def cancel_match(
    request: Request,
    mid: str,
    session: AsyncSession = Depends(get_session),
    player: Profile = Depends(get_current_player),
) -> MatchOut:
    match = await match_service.cancel_match(session, mid, player.id)
    return to_match_out(match, player.id)
