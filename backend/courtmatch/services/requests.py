"""Match requests: one player proposes a match, the other accepts or declines.

Accepting creates the ``Match`` (in ``accepted``) and links it to the request
in the same transaction. Stale pending requests are expired by
``services.expiry``.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .. import repository
from ..config import request_ttl_hours
from ..db_errors import is_unique_violation
from ..exceptions import (
    DuplicateRequest,
    Forbidden,
    InvalidRequest,
    InvalidState,
    NotFound,
)
from ..models import Match, MatchRequest, MatchStatus, RequestStatus
from ..scoring.tennis import FORMAT_RULES
from ..time_utils import coerce_utc, utcnow

logger = logging.getLogger(__name__)

PENDING_PAIR_INDEX = "uq_match_request_pending_pair"
REQUEST_DIRECTIONS = ("incoming", "outgoing", "all")


def compute_expires_at(now: datetime, proposed_at: datetime) -> datetime:
    """A request lapses after the configured TTL, or when the proposed slot passes."""

    expires_at = now + timedelta(hours=request_ttl_hours())
    if proposed_at > now:
        expires_at = min(expires_at, proposed_at)
    return expires_at


async def send_request(
    session: AsyncSession,
    requester_id: str,
    recipient_id: str,
    proposed_at: datetime,
    *,
    match_format: str = "best_of_3",
    location_name: str | None = None,
    location_city: str | None = None,
    message: str | None = None,
    now: datetime | None = None,
) -> MatchRequest:
    now = now or utcnow()
    proposed_at = coerce_utc(proposed_at)
    if requester_id == recipient_id:
        raise InvalidRequest("you cannot send a match request to yourself")
    if match_format not in FORMAT_RULES:
        raise InvalidRequest(f"unknown match format '{match_format}'")

    recipient = await repository.get_profile(session, recipient_id)
    if recipient is None or not recipient.is_public:
        raise NotFound("profile", recipient_id)

    existing = await repository.get_pending_request_between(
        session, requester_id, recipient_id
    )
    if existing is not None:
        if coerce_utc(existing.expires_at) >= now:
            raise DuplicateRequest(recipient_id)
        # Lapsed but not swept yet; expire it so the pair can start over.
        await repository.update_request_status(
            session,
            existing.id,
            RequestStatus.PENDING,
            RequestStatus.EXPIRED,
            updated_at=now,
        )

    request = MatchRequest(
        id=uuid.uuid4().hex,
        requester_id=requester_id,
        recipient_id=recipient_id,
        status=RequestStatus.PENDING,
        proposed_at=proposed_at,
        proposed_format=match_format,
        location_name=location_name,
        location_city=location_city,
        message=message,
        expires_at=compute_expires_at(now, proposed_at),
        created_at=now,
    )
    session.add(request)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if is_unique_violation(exc, PENDING_PAIR_INDEX):
            raise DuplicateRequest(recipient_id)
        raise
    return request


async def _load_pending_for(
    session: AsyncSession,
    request_id: str,
    actor_id: str,
    *,
    owner_field: str,
    action: str,
) -> MatchRequest:
    request = await repository.get_request(session, request_id)
    if request is None:
        raise NotFound("request", request_id)
    if getattr(request, owner_field) != actor_id:
        raise Forbidden("request", f"only the {owner_field.removesuffix('_id')} can {action} this request")
    if request.status != RequestStatus.PENDING:
        raise InvalidState("request", request.status, action)
    return request


async def _lost_race(session: AsyncSession, request: MatchRequest, action: str) -> InvalidState:
    await session.rollback()
    await session.refresh(request)
    logger.info("request %s: %s lost a concurrent transition (now %s)", request.id, action, request.status)
    return InvalidState("request", request.status, action)


async def respond_to_request(
    session: AsyncSession,
    request_id: str,
    actor_id: str,
    *,
    accept: bool,
    now: datetime | None = None,
) -> tuple[MatchRequest, Match | None]:
    """Accept or decline a pending request addressed to ``actor_id``."""

    now = now or utcnow()
    action = "accept" if accept else "decline"
    request = await _load_pending_for(
        session, request_id, actor_id, owner_field="recipient_id", action=action
    )
    if coerce_utc(request.expires_at) < now:
        raise InvalidState(
            "request",
            request.status,
            action,
            detail="this match request has expired",
        )

    match: Match | None = None
    try:
        if accept:
            match = Match(
                id=uuid.uuid4().hex,
                player1_id=request.requester_id,
                player2_id=request.recipient_id,
                status=MatchStatus.ACCEPTED,
                format=request.proposed_format,
                scheduled_at=request.proposed_at,
                location_name=request.location_name,
                location_city=request.location_city,
                created_at=now,
            )
            session.add(match)
            await session.flush()
            won = await repository.update_request_status(
                session,
                request.id,
                RequestStatus.PENDING,
                RequestStatus.ACCEPTED,
                match_id=match.id,
                updated_at=now,
            )
        else:
            won = await repository.update_request_status(
                session,
                request.id,
                RequestStatus.PENDING,
                RequestStatus.DECLINED,
                updated_at=now,
            )
        if not won:
            raise await _lost_race(session, request, action)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    await session.refresh(request)
    if match is not None:
        logger.info("request %s accepted; created match %s", request.id, match.id)
    return request, match


async def withdraw_request(
    session: AsyncSession, request_id: str, actor_id: str
) -> MatchRequest:
    request = await _load_pending_for(
        session, request_id, actor_id, owner_field="requester_id", action="withdraw"
    )
    try:
        won = await repository.update_request_status(
            session,
            request.id,
            RequestStatus.PENDING,
            RequestStatus.WITHDRAWN,
            updated_at=utcnow(),
        )
        if not won:
            raise await _lost_race(session, request, "withdraw")
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    await session.refresh(request)
    return request


async def list_requests(
    session: AsyncSession,
    player_id: str,
    *,
    direction: str = "all",
    status: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> Sequence[MatchRequest]:
    if direction not in REQUEST_DIRECTIONS:
        raise InvalidRequest(f"direction must be one of {', '.join(REQUEST_DIRECTIONS)}")
    return await repository.list_requests_for_player(
        session,
        player_id,
        direction=direction,
        status=status,
        limit=limit,
        offset=offset,
    )
