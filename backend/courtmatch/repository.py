"""Store contract used by the match core.

Thin async functions over an ``AsyncSession``. Reads return ORM rows or
``None``; every status transition is a conditional ``UPDATE`` whose affected
row count tells the caller whether it won. None of these functions commit:
transaction boundaries belong to the service calling them.
"""

from datetime import datetime
from typing import Any, Iterable, Sequence

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    Booking,
    BookingStatus,
    CourtBookingGuard,
    LEADERBOARD_MIN_MATCHES,
    RATING_REASON_MATCH_RESULT,
    Match,
    MatchRequest,
    Profile,
    RatingHistory,
    RequestStatus,
)


async def get_match(session: AsyncSession, match_id: str) -> Match | None:
    return await session.get(Match, match_id)


async def get_match_status(session: AsyncSession, match_id: str) -> str | None:
    return (
        await session.execute(select(Match.status).where(Match.id == match_id))
    ).scalar_one_or_none()


async def update_match(
    session: AsyncSession,
    match_id: str,
    patch: dict[str, Any],
    *,
    expected_status: str | None = None,
) -> bool:
    """Apply ``patch`` to a match, only if it is still in ``expected_status``."""

    stmt = update(Match).where(Match.id == match_id)
    if expected_status is not None:
        stmt = stmt.where(Match.status == expected_status)
    result = await session.execute(stmt.values(**patch))
    return result.rowcount == 1


async def list_matches_for_player(
    session: AsyncSession,
    player_id: str,
    *,
    status: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> Sequence[Match]:
    stmt = select(Match).where(
        or_(Match.player1_id == player_id, Match.player2_id == player_id)
    )
    if status:
        stmt = stmt.where(Match.status == status)
    stmt = stmt.order_by(Match.created_at.desc(), Match.id).offset(offset).limit(limit)
    return (await session.execute(stmt)).scalars().all()


async def get_profile(session: AsyncSession, profile_id: str) -> Profile | None:
    return await session.get(Profile, profile_id)


async def get_profiles_for_update(
    session: AsyncSession, profile_ids: Iterable[str]
) -> dict[str, Profile]:
    """Load and row-lock profiles in id order so concurrent writers cannot deadlock."""

    ids = sorted(set(profile_ids))
    rows = (
        await session.execute(
            select(Profile)
            .where(Profile.id.in_(ids))
            .order_by(Profile.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalars().all()
    return {p.id: p for p in rows}


async def update_profile(
    session: AsyncSession, profile_id: str, patch: dict[str, Any]
) -> bool:
    result = await session.execute(
        update(Profile).where(Profile.id == profile_id).values(**patch)
    )
    return result.rowcount == 1


async def append_rating_history(session: AsyncSession, entry: RatingHistory) -> None:
    session.add(entry)
    await session.flush()


async def list_rating_history(
    session: AsyncSession, player_id: str, *, limit: int = 50, offset: int = 0
) -> Sequence[RatingHistory]:
    return (
        await session.execute(
            select(RatingHistory)
            .where(RatingHistory.player_id == player_id)
            .order_by(RatingHistory.recorded_at.desc(), RatingHistory.id)
            .offset(offset)
            .limit(limit)
        )
    ).scalars().all()


async def get_request(session: AsyncSession, request_id: str) -> MatchRequest | None:
    return await session.get(MatchRequest, request_id)


async def get_pending_request_between(
    session: AsyncSession, requester_id: str, recipient_id: str
) -> MatchRequest | None:
    return (
        await session.execute(
            select(MatchRequest).where(
                MatchRequest.requester_id == requester_id,
                MatchRequest.recipient_id == recipient_id,
                MatchRequest.status == RequestStatus.PENDING,
            )
        )
    ).scalars().first()


async def list_requests_for_player(
    session: AsyncSession,
    player_id: str,
    *,
    direction: str = "all",
    status: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> Sequence[MatchRequest]:
    if direction == "incoming":
        stmt = select(MatchRequest).where(MatchRequest.recipient_id == player_id)
    elif direction == "outgoing":
        stmt = select(MatchRequest).where(MatchRequest.requester_id == player_id)
    else:
        stmt = select(MatchRequest).where(
            or_(
                MatchRequest.requester_id == player_id,
                MatchRequest.recipient_id == player_id,
            )
        )
    if status:
        stmt = stmt.where(MatchRequest.status == status)
    stmt = stmt.order_by(MatchRequest.created_at.desc(), MatchRequest.id)
    return (await session.execute(stmt.offset(offset).limit(limit))).scalars().all()


async def get_pending_expired_requests(
    session: AsyncSession, now: datetime
) -> Sequence[str]:
    return (
        await session.execute(
            select(MatchRequest.id).where(
                MatchRequest.status == RequestStatus.PENDING,
                MatchRequest.expires_at < now,
            )
        )
    ).scalars().all()


async def update_request_status(
    session: AsyncSession,
    request_id: str,
    from_status: str,
    to_status: str,
    **extra: Any,
) -> bool:
    result = await session.execute(
        update(MatchRequest)
        .where(MatchRequest.id == request_id, MatchRequest.status == from_status)
        .values(status=to_status, **extra)
    )
    return result.rowcount == 1


async def get_booking(session: AsyncSession, booking_id: str) -> Booking | None:
    return await session.get(Booking, booking_id)


async def get_bookings_for_resource(
    session: AsyncSession,
    court_id: str,
    starts_at: datetime,
    ends_at: datetime,
    *,
    exclude_id: str | None = None,
) -> Sequence[Booking]:
    """Confirmed bookings of ``court_id`` overlapping ``[starts_at, ends_at)``."""

    stmt = select(Booking).where(
        Booking.court_id == court_id,
        Booking.status == BookingStatus.CONFIRMED,
        and_(Booking.starts_at < ends_at, Booking.ends_at > starts_at),
    )
    if exclude_id is not None:
        stmt = stmt.where(Booking.id != exclude_id)
    return (await session.execute(stmt.order_by(Booking.starts_at))).scalars().all()


async def lock_court(session: AsyncSession, court_id: str) -> None:
    """Bump the court's guard row, holding its write lock until commit."""

    dialect = session.get_bind().dialect.name
    insert_fn = pg_insert if dialect == "postgresql" else sqlite_insert
    stmt = insert_fn(CourtBookingGuard).values(court_id=court_id, version=1)
    stmt = stmt.on_conflict_do_update(
        index_elements=[CourtBookingGuard.court_id],
        set_={"version": CourtBookingGuard.version + 1},
    )
    await session.execute(stmt)


async def insert_booking(session: AsyncSession, booking: Booking) -> Booking:
    session.add(booking)
    await session.flush()
    return booking


async def update_booking(
    session: AsyncSession,
    booking_id: str,
    patch: dict[str, Any],
    *,
    expected_status: str | None = None,
) -> bool:
    stmt = update(Booking).where(Booking.id == booking_id)
    if expected_status is not None:
        stmt = stmt.where(Booking.status == expected_status)
    result = await session.execute(stmt.values(**patch))
    return result.rowcount == 1


async def list_bookings_for_player(
    session: AsyncSession,
    player_id: str,
    *,
    now: datetime,
    upcoming: bool = True,
    limit: int = 50,
) -> Sequence[Booking]:
    stmt = select(Booking).where(Booking.booked_by == player_id)
    if upcoming:
        stmt = stmt.where(
            Booking.starts_at >= now, Booking.status == BookingStatus.CONFIRMED
        ).order_by(Booking.starts_at.asc())
    else:
        stmt = stmt.where(Booking.starts_at < now).order_by(Booking.starts_at.desc())
    return (await session.execute(stmt.limit(limit))).scalars().all()


async def list_court_bookings_between(
    session: AsyncSession, court_id: str, day_start: datetime, day_end: datetime
) -> Sequence[Booking]:
    return (
        await session.execute(
            select(Booking)
            .where(
                Booking.court_id == court_id,
                Booking.status == BookingStatus.CONFIRMED,
                Booking.starts_at < day_end,
                Booking.ends_at > day_start,
            )
            .order_by(Booking.starts_at)
        )
    ).scalars().all()


def _on_leaderboard():
    return (
        Profile.is_public.is_(True),
        Profile.matches_played >= LEADERBOARD_MIN_MATCHES,
    )


async def list_leaderboard(
    session: AsyncSession, *, limit: int = 50, offset: int = 0
) -> Sequence[Profile]:
    return (
        await session.execute(
            select(Profile)
            .where(*_on_leaderboard())
            .order_by(Profile.rating.desc(), Profile.id)
            .offset(offset)
            .limit(limit)
        )
    ).scalars().all()


async def count_leaderboard(session: AsyncSession) -> int:
    return (
        await session.execute(
            select(func.count()).select_from(Profile).where(*_on_leaderboard())
        )
    ).scalar_one()


async def count_ranked_ahead_of(session: AsyncSession, profile: Profile) -> int:
    """Leaderboard profiles ordered before ``profile`` (rating desc, id asc)."""

    return (
        await session.execute(
            select(func.count())
            .select_from(Profile)
            .where(
                *_on_leaderboard(),
                or_(
                    Profile.rating > profile.rating,
                    and_(Profile.rating == profile.rating, Profile.id < profile.id),
                ),
            )
        )
    ).scalar_one()


async def list_top_movers(
    session: AsyncSession, *, since: datetime, limit: int = 10
) -> Sequence[tuple[RatingHistory, Profile]]:
    rows = await session.execute(
        select(RatingHistory, Profile)
        .join(Profile, Profile.id == RatingHistory.player_id)
        .where(
            RatingHistory.reason == RATING_REASON_MATCH_RESULT,
            RatingHistory.recorded_at >= since,
            Profile.is_public.is_(True),
        )
        .order_by(RatingHistory.delta.desc(), RatingHistory.recorded_at.desc(), RatingHistory.id)
        .limit(limit)
    )
    return [(history, profile) for history, profile in rows.all()]
