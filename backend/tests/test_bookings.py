from datetime import datetime, timedelta, timezone

import pytest

from courtmatch.exceptions import (
    Forbidden,
    InvalidBooking,
    InvalidState,
    NotFound,
    PastBooking,
    SlotConflict,
)
from courtmatch.models import Booking, BookingStatus, CourtBookingGuard
from courtmatch.services import bookings as booking_service

from factories import create_match, create_profile


def _slot(start_hour: int, end_hour: int, days_ahead: int = 2):
    day = (datetime.now(timezone.utc) + timedelta(days=days_ahead)).replace(
        hour=0, minute=0, second=0, microsecond=0
    )
    return day + timedelta(hours=start_hour), day + timedelta(hours=end_hour)


@pytest.mark.parametrize(
    "a, b, overlaps",
    [
        ((10, 11), (11, 12), False),
        ((10, 12), (11, 13), True),
        ((10, 14), (11, 12), True),
        ((10, 11), (9, 10), False),
        ((10, 11), (10, 11), True),
    ],
    ids=["touching", "partial", "contained", "touching-before", "identical"],
)
def test_intervals_are_half_open(a, b, overlaps) -> None:
    s1, e1 = _slot(*a)
    s2, e2 = _slot(*b)
    assert booking_service.intervals_overlap(s1, e1, s2, e2) is overlaps
    assert booking_service.intervals_overlap(s2, e2, s1, e1) is overlaps


@pytest.mark.anyio
async def test_back_to_back_bookings_are_allowed(session_factory):
    alice = await create_profile(session_factory, "alice")
    bob = await create_profile(session_factory, "bob")

    async with session_factory() as session:
        first = await booking_service.book_court(session, "court-1", alice.id, *_slot(10, 11))
        second = await booking_service.book_court(session, "court-1", bob.id, *_slot(11, 12))

    assert first.status == BookingStatus.CONFIRMED
    assert second.status == BookingStatus.CONFIRMED

    async with session_factory() as session:
        guard = await session.get(CourtBookingGuard, "court-1")
        assert guard.version == 2


@pytest.mark.anyio
async def test_overlapping_booking_is_rejected(session_factory):
    alice = await create_profile(session_factory, "alice")
    bob = await create_profile(session_factory, "bob")

    async with session_factory() as session:
        await booking_service.book_court(session, "court-1", alice.id, *_slot(10, 12))
        with pytest.raises(SlotConflict) as exc:
            await booking_service.book_court(session, "court-1", bob.id, *_slot(11, 13))
        # Another court is unaffected.
        await booking_service.book_court(session, "court-2", bob.id, *_slot(11, 13))
    assert exc.value.code == "booking_slot_conflict"

    async with session_factory() as session:
        assert await booking_service.has_conflict(session, "court-1", *_slot(11, 12))
        assert not await booking_service.has_conflict(session, "court-1", *_slot(12, 13))


@pytest.mark.anyio
async def test_has_conflict_can_ignore_a_booking(session_factory):
    alice = await create_profile(session_factory, "alice")

    async with session_factory() as session:
        booking = await booking_service.book_court(session, "court-1", alice.id, *_slot(10, 12))
        assert not await booking_service.has_conflict(
            session, "court-1", *_slot(10, 11), exclude_id=booking.id
        )


@pytest.mark.anyio
async def test_rejects_past_and_malformed_slots(session_factory):
    alice = await create_profile(session_factory, "alice")
    now = datetime.now(timezone.utc)

    async with session_factory() as session:
        with pytest.raises(PastBooking):
            await booking_service.book_court(
                session, "court-1", alice.id, now - timedelta(hours=1), now + timedelta(hours=1)
            )
        with pytest.raises(InvalidBooking):
            await booking_service.book_court(session, "court-1", alice.id, *_slot(12, 11))
        with pytest.raises(InvalidBooking):
            await booking_service.book_court(session, "court-1", alice.id, *_slot(11, 11))
        naive = datetime.now() + timedelta(days=1)
        with pytest.raises(InvalidBooking):
            await booking_service.book_court(
                session, "court-1", alice.id, naive, naive + timedelta(hours=1)
            )


@pytest.mark.anyio
async def test_booking_for_a_match_requires_participant(session_factory):
    alice = await create_profile(session_factory, "alice")
    bob = await create_profile(session_factory, "bob")
    carol = await create_profile(session_factory, "carol")
    match = await create_match(session_factory, alice, bob)

    async with session_factory() as session:
        with pytest.raises(NotFound):
            await booking_service.book_court(
                session, "court-1", alice.id, *_slot(9, 10), match_id="missing"
            )
        with pytest.raises(Forbidden):
            await booking_service.book_court(
                session, "court-1", carol.id, *_slot(9, 10), match_id=match.id
            )
        booking = await booking_service.book_court(
            session, "court-1", bob.id, *_slot(9, 10), match_id=match.id, notes="bring balls"
        )
    assert booking.match_id == match.id
    assert booking.notes == "bring balls"


@pytest.mark.anyio
async def test_cancel_booking_frees_the_slot(session_factory):
    alice = await create_profile(session_factory, "alice")
    bob = await create_profile(session_factory, "bob")

    async with session_factory() as session:
        booking = await booking_service.book_court(session, "court-1", alice.id, *_slot(10, 11))
        with pytest.raises(Forbidden):
            await booking_service.cancel_booking(session, booking.id, bob.id)
        cancelled = await booking_service.cancel_booking(session, booking.id, alice.id)
        assert cancelled.status == BookingStatus.CANCELLED
        with pytest.raises(InvalidState):
            await booking_service.cancel_booking(session, booking.id, alice.id)
        with pytest.raises(NotFound):
            await booking_service.cancel_booking(session, "missing", alice.id)

        rebooked = await booking_service.book_court(session, "court-1", bob.id, *_slot(10, 11))
    assert rebooked.status == BookingStatus.CONFIRMED

    async with session_factory() as session:
        # Cancelled bookings are kept.
        assert await session.get(Booking, booking.id) is not None


@pytest.mark.anyio
async def test_cannot_cancel_a_started_booking(session_factory):
    alice = await create_profile(session_factory, "alice")

    async with session_factory() as session:
        booking = await booking_service.book_court(session, "court-1", alice.id, *_slot(10, 11))
        with pytest.raises(PastBooking):
            await booking_service.cancel_booking(
                session, booking.id, alice.id, now=booking.starts_at + timedelta(minutes=5)
            )


@pytest.mark.anyio
async def test_availability_and_listing(session_factory):
    alice = await create_profile(session_factory, "alice")
    bob = await create_profile(session_factory, "bob")

    async with session_factory() as session:
        morning = await booking_service.book_court(session, "court-1", alice.id, *_slot(8, 9))
        evening = await booking_service.book_court(session, "court-1", bob.id, *_slot(18, 20))
        await booking_service.book_court(session, "court-1", alice.id, *_slot(8, 9, days_ahead=3))
        await booking_service.book_court(session, "court-2", alice.id, *_slot(8, 9))
        cancelled = await booking_service.book_court(session, "court-1", alice.id, *_slot(12, 13))
        await booking_service.cancel_booking(session, cancelled.id, alice.id)

        day = _slot(0, 1)[0].date()
        available = await booking_service.court_availability(session, "court-1", day)
        mine = await booking_service.list_bookings(session, alice.id)

    assert [b.id for b in available] == [morning.id, evening.id]
    assert len(mine) == 3
    assert all(b.booked_by == alice.id for b in mine)


@pytest.mark.anyio
async def test_availability_includes_bookings_across_midnight(session_factory):
    alice = await create_profile(session_factory, "alice")

    async with session_factory() as session:
        late = await booking_service.book_court(session, "court-1", alice.id, *_slot(23, 25))
        first_day = _slot(0, 1)[0].date()
        second_day = first_day + timedelta(days=1)
        third_day = first_day + timedelta(days=2)

        assert [b.id for b in await booking_service.court_availability(session, "court-1", first_day)] == [late.id]
        assert [b.id for b in await booking_service.court_availability(session, "court-1", second_day)] == [late.id]
        assert await booking_service.court_availability(session, "court-1", third_day) == []
