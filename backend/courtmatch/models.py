from sqlalchemy import (
    Column,
    String,
    DateTime,
    ForeignKey,
    JSON,
    Integer,
    Boolean,
    Text,
    Index,
    UniqueConstraint,
    CheckConstraint,
    DDL,
    event,
    text,
)
from sqlalchemy.sql import func
from .db import Base


class RequestStatus:
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"
    WITHDRAWN = "withdrawn"


class MatchStatus:
    ACCEPTED = "accepted"
    PENDING_CONFIRMATION = "pending_confirmation"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DISPUTED = "disputed"


class BookingStatus:
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


RATING_REASON_MATCH_RESULT = "match_result"
# Players need this many rated matches before they appear on the leaderboard.
LEADERBOARD_MIN_MATCHES = 5


class Profile(Base):
    """The slice of a player profile the match core reads and writes."""

    __tablename__ = "profile"
    id = Column(String, primary_key=True)
    username = Column(String, nullable=False, unique=True)
    rating = Column(Integer, nullable=False, default=1200)
    rating_provisional = Column(Boolean, nullable=False, default=True)
    matches_played = Column(Integer, nullable=False, default=0)
    matches_won = Column(Integer, nullable=False, default=0)
    matches_lost = Column(Integer, nullable=False, default=0)
    is_public = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("matches_played >= 0", name="ck_profile_matches_played"),
    )


class MatchRequest(Base):
    __tablename__ = "match_request"
    id = Column(String, primary_key=True)
    requester_id = Column(String, ForeignKey("profile.id"), nullable=False)
    recipient_id = Column(String, ForeignKey("profile.id"), nullable=False)
    status = Column(String, nullable=False, default=RequestStatus.PENDING)
    proposed_at = Column(DateTime(timezone=True), nullable=False)
    proposed_format = Column(String, nullable=False)  # "best_of_1" | "best_of_3" | "best_of_5"
    location_name = Column(String(200), nullable=True)
    location_city = Column(String(100), nullable=True)
    message = Column(String(500), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    match_id = Column(String, ForeignKey("match.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            "uq_match_request_pending_pair",
            requester_id,
            recipient_id,
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
        Index("ix_match_request_status_expires_at", status, expires_at),
    )


class Match(Base):
    __tablename__ = "match"
    id = Column(String, primary_key=True)
    player1_id = Column(String, ForeignKey("profile.id"), nullable=False)
    player2_id = Column(String, ForeignKey("profile.id"), nullable=False)
    status = Column(String, nullable=False, default=MatchStatus.ACCEPTED)
    format = Column(String, nullable=False)
    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    played_at = Column(DateTime(timezone=True), nullable=True)
    location_name = Column(String(200), nullable=True)
    location_city = Column(String(100), nullable=True)
    score_detail = Column(JSON, nullable=True)  # [{"p1": 6, "p2": 4}, ...]
    player1_sets_won = Column(Integer, nullable=True)
    player2_sets_won = Column(Integer, nullable=True)
    winner_id = Column(String, ForeignKey("profile.id"), nullable=True)
    loser_id = Column(String, ForeignKey("profile.id"), nullable=True)
    result_submitted_by = Column(String, ForeignKey("profile.id"), nullable=True)
    result_confirmed_by = Column(String, ForeignKey("profile.id"), nullable=True)
    result_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    dispute_reason = Column(Text, nullable=True)
    player1_rating_before = Column(Integer, nullable=True)
    player2_rating_before = Column(Integer, nullable=True)
    player1_rating_after = Column(Integer, nullable=True)
    player2_rating_after = Column(Integer, nullable=True)
    player1_rating_delta = Column(Integer, nullable=True)
    player2_rating_delta = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("player1_id <> player2_id", name="ck_match_distinct_players"),
        CheckConstraint(
            "result_confirmed_by IS NULL OR result_confirmed_by <> result_submitted_by",
            name="ck_match_confirmer_not_submitter",
        ),
        Index("ix_match_player1_id", player1_id),
        Index("ix_match_player2_id", player2_id),
    )


class RatingHistory(Base):
    """Append-only log of rating changes, one row per player per finalized match."""

    __tablename__ = "rating_history"
    id = Column(String, primary_key=True)
    player_id = Column(String, ForeignKey("profile.id"), nullable=False)
    match_id = Column(String, ForeignKey("match.id"), nullable=True)
    rating_before = Column(Integer, nullable=False)
    rating_after = Column(Integer, nullable=False)
    delta = Column(Integer, nullable=False)
    reason = Column(String, nullable=False, default=RATING_REASON_MATCH_RESULT)
    provisional = Column(Boolean, nullable=False)
    recorded_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "player_id", "match_id", name="uq_rating_history_player_id_match_id"
        ),
    )


class Booking(Base):
    __tablename__ = "court_booking"
    id = Column(String, primary_key=True)
    court_id = Column(String, nullable=False)
    booked_by = Column(String, ForeignKey("profile.id"), nullable=False)
    match_id = Column(String, ForeignKey("match.id"), nullable=True)
    starts_at = Column(DateTime(timezone=True), nullable=False)
    ends_at = Column(DateTime(timezone=True), nullable=False)
    status = Column(String, nullable=False, default=BookingStatus.CONFIRMED)
    notes = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("starts_at < ends_at", name="ck_court_booking_interval"),
        Index("ix_court_booking_court_id_starts_at", court_id, starts_at),
    )


class CourtBookingGuard(Base):
    """Per-court row bumped by every booking write to serialise them."""

    __tablename__ = "court_booking_guard"
    court_id = Column(String, primary_key=True)
    version = Column(Integer, nullable=False, default=0)


BOOKING_OVERLAP_CONSTRAINT = "ex_court_booking_no_overlap"

# PostgreSQL enforces the no-overlap invariant itself; other backends rely on
# the guard row serialising writers.
event.listen(
    Booking.__table__,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        f"ALTER TABLE court_booking ADD CONSTRAINT {BOOKING_OVERLAP_CONSTRAINT} "
        "EXCLUDE USING gist (court_id WITH =, tstzrange(starts_at, ends_at, '[)') WITH &&) "
        "WHERE (status = 'confirmed')"
    ).execute_if(dialect="postgresql"),
)
