from typing import List, Literal, Optional
from datetime import datetime
from pydantic import BaseModel, Field, field_validator, ConfigDict

from .time_utils import require_utc

MatchFormat = Literal["best_of_1", "best_of_3", "best_of_5"]
MatchStatusLiteral = Literal[
    "accepted", "pending_confirmation", "completed", "cancelled", "disputed"
]
RequestStatusLiteral = Literal["pending", "accepted", "declined", "expired", "withdrawn"]


class SetScoreIn(BaseModel):
    """A single set, e.g. ``{"p1": 6, "p2": 4}``."""

    p1: int = Field(..., ge=0, le=7, strict=True)
    p2: int = Field(..., ge=0, le=7, strict=True)

    model_config = ConfigDict(extra="forbid")


class SubmitResultIn(BaseModel):
    scoreDetail: List[SetScoreIn] = Field(..., min_length=1, max_length=5)
    format: MatchFormat


class DisputeIn(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)

    @field_validator("reason", mode="before")
    @classmethod
    def _strip_reason(cls, value: str) -> str:
        if not isinstance(value, str):
            raise TypeError("reason must be a string")
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("reason must not be empty")
        return trimmed


class MatchOut(BaseModel):
    id: str
    player1Id: str
    player2Id: str
    status: MatchStatusLiteral
    format: MatchFormat
    scheduledAt: Optional[datetime] = None
    playedAt: Optional[datetime] = None
    locationName: Optional[str] = None
    locationCity: Optional[str] = None
    scoreDetail: Optional[List[SetScoreIn]] = None
    player1SetsWon: Optional[int] = None
    player2SetsWon: Optional[int] = None
    winnerId: Optional[str] = None
    loserId: Optional[str] = None
    resultSubmittedBy: Optional[str] = None
    resultConfirmedBy: Optional[str] = None
    resultConfirmedAt: Optional[datetime] = None
    disputeReason: Optional[str] = None
    player1RatingBefore: Optional[int] = None
    player2RatingBefore: Optional[int] = None
    player1RatingAfter: Optional[int] = None
    player2RatingAfter: Optional[int] = None
    player1RatingDelta: Optional[int] = None
    player2RatingDelta: Optional[int] = None
    opponentId: Optional[str] = None


class MatchRequestCreate(BaseModel):
    recipientId: str = Field(..., min_length=1)
    proposedAt: datetime
    format: MatchFormat = "best_of_3"
    locationName: Optional[str] = Field(default=None, max_length=200)
    locationCity: Optional[str] = Field(default=None, max_length=100)
    message: Optional[str] = Field(default=None, max_length=500)

    @field_validator("proposedAt")
    @classmethod
    def _require_tz(cls, value: datetime) -> datetime:
        return require_utc(value, field_name="proposedAt")


class RequestResponseIn(BaseModel):
    response: Literal["accepted", "declined"]


class MatchRequestOut(BaseModel):
    id: str
    requesterId: str
    recipientId: str
    status: RequestStatusLiteral
    proposedAt: datetime
    format: MatchFormat
    locationName: Optional[str] = None
    locationCity: Optional[str] = None
    message: Optional[str] = None
    expiresAt: datetime
    matchId: Optional[str] = None
    createdAt: Optional[datetime] = None


class RequestResponseOut(BaseModel):
    request: MatchRequestOut
    match: Optional[MatchOut] = None


class BookingCreate(BaseModel):
    courtId: str = Field(..., min_length=1)
    startsAt: datetime
    endsAt: datetime
    matchId: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("startsAt", "endsAt")
    @classmethod
    def _require_tz(cls, value: datetime, info) -> datetime:
        return require_utc(value, field_name=info.field_name)


class BookingOut(BaseModel):
    id: str
    courtId: str
    bookedBy: str
    matchId: Optional[str] = None
    startsAt: datetime
    endsAt: datetime
    status: Literal["confirmed", "cancelled"]
    notes: Optional[str] = None


class RatingHistoryOut(BaseModel):
    id: str
    playerId: str
    matchId: Optional[str] = None
    ratingBefore: int
    ratingAfter: int
    delta: int
    reason: str
    provisional: bool
    recordedAt: Optional[datetime] = None


class SweepOut(BaseModel):
    expired: int



class LeaderboardEntryOut(BaseModel):
    rank: int
    playerId: str
    username: str
    rating: int
    ratingProvisional: bool
    matchesPlayed: int
    matchesWon: int
    matchesLost: int


class LeaderboardOut(BaseModel):
    leaders: List[LeaderboardEntryOut]
    total: int
    limit: int
    offset: int


class PlayerRankOut(BaseModel):
    rank: Optional[int] = None
    rating: int
    ratingProvisional: bool
    matchesPlayed: int


class TopMoverOut(BaseModel):
    playerId: str
    username: str
    rating: int
    delta: int
    matchId: Optional[str] = None
    recordedAt: Optional[datetime] = None
