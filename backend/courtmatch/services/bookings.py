"""Court bookings and the conflict guard.

Intervals are half-open ``[starts_at, ends_at)``: a booking ending at 11:00
and one starting at 11:00 do not overlap. ``has_conflict`` is a fast
pre-check only; ``book_court`` serialises writers per court through the
court's guard row and, on PostgreSQL, the exclusion constraint rejects any
overlapping confirmed booking that slips past both.
"""

import logging
import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .. import repository
from ..db_errors import is_overlap_violation
from ..exceptions import (
    Forbidden,
    InvalidBooking,
    InvalidState,
    NotFound,
    PastBooking,
    SlotConflict,
)
from ..models import BOOKING_OVERLAP_CONSTRAINT, Booking, BookingStatus
from ..time_utils import coerce_utc, require_utc, utcnow
from .matches import slot_of

logger = logging.getLogger(__name__)


def intervals_overlap(
    s1: datetime, e1: datetime, s2: datetime, e2: datetime
) -> bool:
    return s1 < e2 and s2 < e1


async def has_conflict(
    session: AsyncSession,
    court_id: str,
    starts_at: datetime,
    ends_at: datetime,
    *,
    exclude_id: str | None = None,
) -> bool:
    """Return ``True`` if a confirmed booking of ``court_id`` overlaps the slot."""

    existing = await repository.get_bookings_for_resource(
        session,
        court_id,
        coerce_utc(starts_at),
        coerce_utc(ends_at),
        exclude_id=exclude_id,
    )
    return len(existing) > 0


def _normalize_slot(starts_at: datetime, ends_at: datetime) -> tuple[datetime, datetime]:
    try:
        starts_at = require_utc(starts_at, field_name="starts_at")
        ends_at = require_utc(ends_at, field_name="ends_at")
    except ValueError as exc:
        raise InvalidBooking(str(exc))
    if starts_at >= ends_at:
        raise InvalidBooking("starts_at must be before ends_at")
    return starts_at, ends_at


async def book_court(
    session: AsyncSession,
    court_id: str,
    actor_id: str,
    starts_at: datetime,
    ends_at: datetime,
    *,
    match_id: str | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> Booking:
    now = now or utcnow()
    starts_at, ends_at = _normalize_slot(starts_at, ends_at)
    if starts_at < now:
        raise PastBooking("cannot book a slot that starts in the past")

    if match_id is not None:
        match = await repository.get_match(session, match_id)
        if match is None:
            raise NotFound("match", match_id)
        if slot_of(match, actor_id) is None:
            raise Forbidden("booking", "you can only attach bookings to your own matches")

    booking = Booking(
        id=uuid.uuid4().hex,
        court_id=court_id,
        booked_by=actor_id,
        match_id=match_id,
        starts_at=starts_at,
        ends_at=ends_at,
        status=BookingStatus.CONFIRMED,
        notes=notes,
        created_at=now,
    )
    try:
        await repository.lock_court(session, court_id)
        if await has_conflict(session, court_id, starts_at, ends_at):
            raise SlotConflict(court_id)
        await repository.insert_booking(session, booking)
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if is_overlap_violation(exc, BOOKING_OVERLAP_CONSTRAINT):
            raise SlotConflict(court_id)
        raise
    except Exception:
        await session.rollback()
        raise
    return booking


async def cancel_booking(
    session: AsyncSession,
    booking_id: str,
    actor_id: str,
    *,
    now: datetime | None = None,
) -> Booking:
    """Cancel a future booking. Bookings are never deleted."""

    now = now or utcnow()
    booking = await repository.get_booking(session, booking_id)
    if booking is None:
        raise NotFound("booking", booking_id)
    if booking.booked_by != actor_id:
        raise Forbidden("booking", "not your booking")
    if booking.status != BookingStatus.CONFIRMED:
        raise InvalidState("booking", booking.status, "cancel")
    if coerce_utc(booking.starts_at) <= now:
        raise PastBooking("cannot cancel a booking that has already started")

    try:
        won = await repository.update_booking(
            session,
            booking.id,
            {"status": BookingStatus.CANCELLED},
            expected_status=BookingStatus.CONFIRMED,
        )
        if not won:
            await session.rollback()
            logger.info("booking %s: cancel lost a concurrent transition", booking.id)
            raise InvalidState("booking", BookingStatus.CANCELLED, "cancel")
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    await session.refresh(booking)
    return booking


async def court_availability(
    session: AsyncSession, court_id: str, day: date
) -> Sequence[Booking]:
    """Confirmed bookings of ``court_id`` that occupy any part of ``day`` (UTC)."""

    day_start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return await repository.list_court_bookings_between(
        session, court_id, day_start, day_start + timedelta(days=1)
    )


async def list_bookings(
    session: AsyncSession,
    player_id: str,
    *,
    upcoming: bool = True,
    now: datetime | None = None,
) -> Sequence[Booking]:
    return await repository.list_bookings_for_player(
        session, player_id, now=now or utcnow(), upcoming=upcoming
    )
