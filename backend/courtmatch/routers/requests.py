from typing import Literal

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..exceptions import ProblemDetail
from ..models import MatchRequest, Profile
from ..schemas import (
    MatchRequestCreate,
    MatchRequestOut,
    RequestResponseIn,
    RequestResponseOut,
    RequestStatusLiteral,
)
from ..services import requests as request_service
from ..time_utils import coerce_utc
from .auth import get_current_player, limiter
from .matches import to_match_out

router = APIRouter(
    prefix="/requests",
    tags=["requests"],
    responses={404: {"model": ProblemDetail}, 409: {"model": ProblemDetail}},
)


def _to_request_out(req: MatchRequest) -> MatchRequestOut:
    return MatchRequestOut(
        id=req.id,
        requesterId=req.requester_id,
        recipientId=req.recipient_id,
        status=req.status,
        proposedAt=coerce_utc(req.proposed_at),
        format=req.proposed_format,
        locationName=req.location_name,
        locationCity=req.location_city,
        message=req.message,
        expiresAt=coerce_utc(req.expires_at),
        matchId=req.match_id,
        createdAt=coerce_utc(req.created_at),
    )


@router.post("", response_model=MatchRequestOut, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def send_request(
    request: Request,
    body: MatchRequestCreate,
    session: AsyncSession = Depends(get_session),
    player: Profile = Depends(get_current_player),
) -> MatchRequestOut:
    req = await request_service.send_request(
        session,
        player.id,
        body.recipientId,
        body.proposedAt,
        match_format=body.format,
        location_name=body.locationName,
        location_city=body.locationCity,
        message=body.message,
    )
    return _to_request_out(req)


@router.get("", response_model=list[MatchRequestOut])
async def list_requests(
    type: Literal["incoming", "outgoing", "all"] = "all",
    status: RequestStatusLiteral | None = None,
    limit: int = Query(20, ge=1, le=50),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
    player: Profile = Depends(get_current_player),
) -> list[MatchRequestOut]:
    rows = await request_service.list_requests(
        session, player.id, direction=type, status=status, limit=limit, offset=offset
    )
    return [_to_request_out(r) for r in rows]


@router.post("/{rid}/respond", response_model=RequestResponseOut)
@limiter.limit("30/minute")
async def respond_to_request(
    request: Request,
    rid: str,
    body: RequestResponseIn,
    session: AsyncSession = Depends(get_session),
    player: Profile = Depends(get_current_player),
) -> RequestResponseOut:
    req, match = await request_service.respond_to_request(
        session, rid, player.id, accept=body.response == "accepted"
    )
    return RequestResponseOut(
        request=_to_request_out(req),
        match=to_match_out(match, player.id) if match is not None else None,
    )


@router.post("/{rid}/withdraw", response_model=MatchRequestOut)
@limiter.limit("30/minute")
async def withdraw_request(
    request: Request,
    rid: str,
    session: AsyncSession = Depends(get_session),
    player: Profile = Depends(get_current_player),
) -> MatchRequestOut:
    req = await request_service.withdraw_request(session, rid, player.id)
    return _to_request_out(req)
