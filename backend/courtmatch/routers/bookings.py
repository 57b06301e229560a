from datetime import date

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..exceptions import ProblemDetail
from ..models import Booking, Profile
from ..schemas import BookingCreate, BookingOut
from ..services import bookings as booking_service
from ..time_utils import coerce_utc
from .auth import get_current_player, limiter

# Bookings and court availability share this router; paths are absolute.
router = APIRouter(
    tags=["bookings"],
    responses={404: {"model": ProblemDetail}, 409: {"model": ProblemDetail}},
)


def _to_booking_out(booking: Booking) -> BookingOut:
    return BookingOut(
        id=booking.id,
        courtId=booking.court_id,
        bookedBy=booking.booked_by,
        matchId=booking.match_id,
        startsAt=coerce_utc(booking.starts_at),
        endsAt=coerce_utc(booking.ends_at),
        status=booking.status,
        notes=booking.notes,
    )


@router.post("/bookings", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def book_court(
    request: Request,
    body: BookingCreate,
    session: AsyncSession = Depends(get_session),
    player: Profile = Depends(get_current_player),
) -> BookingOut:
    booking = await booking_service.book_court(
        session,
        body.courtId,
        player.id,
        body.startsAt,
        body.endsAt,
        match_id=body.matchId,
        notes=body.notes,
    )
    return _to_booking_out(booking)


@router.get("/bookings", response_model=list[BookingOut])
async def list_bookings(
    upcoming: bool = True,
    session: AsyncSession = Depends(get_session),
    player: Profile = Depends(get_current_player),
) -> list[BookingOut]:
    rows = await booking_service.list_bookings(session, player.id, upcoming=upcoming)
    return [_to_booking_out(b) for b in rows]


@router.post("/bookings/{bid}/cancel", response_model=BookingOut)
@limiter.limit("30/minute")
async def cancel_booking(
    request: Request,
    bid: str,
    session: AsyncSession = Depends(get_session),
    player: Profile = Depends(get_current_player),
) -> BookingOut:
    booking = await booking_service.cancel_booking(session, bid, player.id)
    return _to_booking_out(booking)


@router.get("/courts/{court_id}/availability", response_model=list[BookingOut])
async def court_availability(
    court_id: str,
    day: date = Query(..., alias="date"),
    session: AsyncSession = Depends(get_session),
    player: Profile = Depends(get_current_player),
) -> list[BookingOut]:
    rows = await booking_service.court_availability(session, court_id, day)
    return [_to_booking_out(b) for b in rows]
