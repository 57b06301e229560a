"""Match core services: scoring, ratings, match lifecycle, bookings, expiry."""

from .validation import ValidationError, check_score_detail, validate
from .rating import apply_result, expected_score, k_factor
from .matches import (
    cancel_match,
    confirm_result,
    dispute_result,
    role_of,
    submit_result,
)
from .bookings import book_court, cancel_booking, has_conflict
from .expiry import expire_stale_requests

__all__ = [
    "validate",
    "check_score_detail",
    "ValidationError",
    "apply_result",
    "expected_score",
    "k_factor",
    "role_of",
    "submit_result",
    "confirm_result",
    "dispute_result",
    "cancel_match",
    "has_conflict",
    "book_court",
    "cancel_booking",
    "expire_stale_requests",
]
