"""Elo rating engine for singles matches.

Pure functions only: no database access, no clock. Given the same inputs the
engine always produces the same output, which is what makes rating history
replayable.

- Expected score: ``1 / (1 + 10 ** ((opponent - player) / 400))``
- New rating: ``round(current + K * (score - expected))`` clamped to
  ``[RATING_FLOOR, RATING_CEILING]``
- K depends on the player's own experience and rating, so a new player and
  a veteran move by different amounts in the same match.
"""

import math
from typing import Literal, NamedTuple

STARTING_RATING = 1200
RATING_FLOOR = 800
RATING_CEILING = 3000
PROVISIONAL_THRESHOLD = 10
ESTABLISHED_THRESHOLD = 30
ELITE_RATING = 2000

Winner = Literal["player1", "player2"]


class PlayerSnapshot(NamedTuple):
    rating: int
    matches_played: int


class RatingResult(NamedTuple):
    rating1_after: int
    rating2_after: int
    delta1: int
    delta2: int


def expected_score(player_rating: float, opponent_rating: float) -> float:
    """Probability that ``player_rating`` beats ``opponent_rating``."""

    return 1 / (1 + 10 ** ((opponent_rating - player_rating) / 400))


def k_factor(matches_played: int, rating: int) -> int:
    if matches_played < PROVISIONAL_THRESHOLD:
        return 40
    if matches_played < ESTABLISHED_THRESHOLD:
        return 32
    if rating >= ELITE_RATING:
        return 16
    return 24


def is_provisional(matches_played: int) -> bool:
    return matches_played < PROVISIONAL_THRESHOLD


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def new_rating(
    current: int, opponent: int, score: Literal[0, 1], matches_played: int
) -> int:
    """Return the clamped rating after one result.

    Args:
        current: The player's rating before the match.
        opponent: The opponent's rating before the match.
        score: ``1`` for a win, ``0`` for a loss. Tennis has no draws.
        matches_played: Rated matches played *before* this one.
    """

    k = k_factor(matches_played, current)
    raw = _round_half_up(current + k * (score - expected_score(current, opponent)))
    return min(max(raw, RATING_FLOOR), RATING_CEILING)


def apply_result(
    player1: PlayerSnapshot, player2: PlayerSnapshot, winner: Winner
) -> RatingResult:
    """Compute both players' new ratings and stored-to-stored deltas."""

    if winner not in ("player1", "player2"):
        raise ValueError(f"winner must be 'player1' or 'player2', got {winner!r}")

    p1_score = 1 if winner == "player1" else 0
    p2_score = 1 - p1_score

    rating1_after = new_rating(
        player1.rating, player2.rating, p1_score, player1.matches_played
    )
    rating2_after = new_rating(
        player2.rating, player1.rating, p2_score, player2.matches_played
    )
    return RatingResult(
        rating1_after=rating1_after,
        rating2_after=rating2_after,
        delta1=rating1_after - player1.rating,
        delta2=rating2_after - player2.rating,
    )
