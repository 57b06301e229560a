"""Match lifecycle: result submission, confirmation, dispute and cancellation.

``accepted -> pending_confirmation -> completed``, ``accepted -> cancelled``
and ``pending_confirmation -> disputed``. Preconditions are checked before
anything is written, and every transition is a conditional update on the
expected status, so of two racing callers exactly one wins and the other
gets ``InvalidState``.
"""

import logging
import uuid
from typing import Any, Literal, NamedTuple, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from .. import repository
from ..exceptions import Forbidden, InvalidScore, InvalidState, NotFound, SelfConfirmation
from ..models import (
    RATING_REASON_MATCH_RESULT,
    Match,
    MatchStatus,
    Profile,
    RatingHistory,
)
from ..time_utils import utcnow
from .rating import PlayerSnapshot, apply_result, is_provisional
from .validation import ValidationError, check_score_detail
from ..scoring.tennis import tally_sets

logger = logging.getLogger(__name__)

Slot = Literal["player1", "player2"]
SLOTS: tuple[Slot, Slot] = ("player1", "player2")


class Roles(NamedTuple):
    slot: Slot
    opponent_slot: Slot
    opponent_id: str


def _other(slot: Slot) -> Slot:
    return "player2" if slot == "player1" else "player1"


def player_in_slot(match: Match, slot: Slot) -> str:
    return getattr(match, f"{slot}_id")


def slot_of(match: Match, player_id: str) -> Slot | None:
    for slot in SLOTS:
        if player_in_slot(match, slot) == player_id:
            return slot
    return None


def role_of(match: Match, player_id: str) -> Roles:
    """Resolve which side of ``match`` ``player_id`` plays on.

    Raises ``Forbidden`` when the player does not take part in the match.
    """

    slot = slot_of(match, player_id)
    if slot is None:
        raise Forbidden("match", "you are not a participant of this match")
    opponent_slot = _other(slot)
    return Roles(slot, opponent_slot, player_in_slot(match, opponent_slot))


async def _load(session: AsyncSession, match_id: str) -> Match:
    match = await repository.get_match(session, match_id)
    if match is None:
        raise NotFound("match", match_id)
    return match


async def _lost_race(session: AsyncSession, match_id: str, action: str) -> InvalidState:
    await session.rollback()
    current = await repository.get_match_status(session, match_id)
    # Concurrent transitions are expected; the conditional update is what arbitrates them.
    logger.info("match %s: %s lost a concurrent transition (now %s)", match_id, action, current)
    return InvalidState("match", current, action)


async def _transition(
    session: AsyncSession,
    match: Match,
    expected: str,
    patch: dict[str, Any],
    action: str,
) -> Match:
    patch = {**patch, "updated_at": utcnow()}
    try:
        won = await repository.update_match(
            session, match.id, patch, expected_status=expected
        )
        if not won:
            raise await _lost_race(session, match.id, action)
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    await session.refresh(match)
    return match


async def get_match(session: AsyncSession, match_id: str, actor_id: str) -> Match:
    match = await repository.get_match(session, match_id)
    # Non-participants get the same answer as for a missing match.
    if match is None or slot_of(match, actor_id) is None:
        raise NotFound("match", match_id)
    return match


async def list_matches(
    session: AsyncSession,
    player_id: str,
    *,
    status: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> Sequence[Match]:
    return await repository.list_matches_for_player(
        session, player_id, status=status, limit=limit, offset=offset
    )


async def submit_result(
    session: AsyncSession,
    match_id: str,
    actor_id: str,
    score_detail: Sequence[Any],
    match_format: str,
) -> Match:
    match = await _load(session, match_id)
    role_of(match, actor_id)
    if match.status != MatchStatus.ACCEPTED:
        raise InvalidState("match", match.status, "submit a result for")
    if match_format != match.format:
        raise InvalidScore(
            f"match was arranged as {match.format}, not {match_format}"
        )
    try:
        sets = check_score_detail(score_detail, match_format)
    except ValidationError as exc:
        raise InvalidScore(exc.detail)

    p1_sets, p2_sets = tally_sets(sets)
    return await _transition(
        session,
        match,
        MatchStatus.ACCEPTED,
        {
            "status": MatchStatus.PENDING_CONFIRMATION,
            "score_detail": [{"p1": s.p1, "p2": s.p2} for s in sets],
            "player1_sets_won": p1_sets,
            "player2_sets_won": p2_sets,
            "result_submitted_by": actor_id,
            "played_at": utcnow(),
        },
        "submit a result for",
    )


def _check_counterparty(match: Match, actor_id: str, action: str) -> None:
    role_of(match, actor_id)
    if match.result_submitted_by == actor_id:
        raise SelfConfirmation()
    if match.status != MatchStatus.PENDING_CONFIRMATION:
        raise InvalidState("match", match.status, action)


def _winner_slot(match: Match) -> Slot:
    # Decisiveness was guaranteed when the score was submitted.
    if (match.player1_sets_won or 0) > (match.player2_sets_won or 0):
        return "player1"
    return "player2"


async def confirm_result(session: AsyncSession, match_id: str, actor_id: str) -> Match:
    """Finalize a submitted result and apply the rating change.

    The status flip, both profile updates, the match's rating fields and the
    two history rows are written in one transaction; a failure anywhere
    rolls all of it back.
    """

    match = await _load(session, match_id)
    _check_counterparty(match, actor_id, "confirm")

    winner = _winner_slot(match)
    winner_id = player_in_slot(match, winner)
    loser_id = player_in_slot(match, _other(winner))
    now = utcnow()

    try:
        won = await repository.update_match(
            session,
            match.id,
            {
                "status": MatchStatus.COMPLETED,
                "result_confirmed_by": actor_id,
                "result_confirmed_at": now,
                "winner_id": winner_id,
                "loser_id": loser_id,
                "updated_at": now,
            },
            expected_status=MatchStatus.PENDING_CONFIRMATION,
        )
        if not won:
            raise await _lost_race(session, match.id, "confirm")

        player_ids = {slot: player_in_slot(match, slot) for slot in SLOTS}
        profiles = await repository.get_profiles_for_update(session, player_ids.values())
        missing = [pid for pid in player_ids.values() if pid not in profiles]
        if missing:
            raise NotFound("profile", missing[0])

        before = {slot: profiles[pid] for slot, pid in player_ids.items()}
        result = apply_result(
            PlayerSnapshot(before["player1"].rating, before["player1"].matches_played),
            PlayerSnapshot(before["player2"].rating, before["player2"].matches_played),
            winner,
        )
        after = {"player1": result.rating1_after, "player2": result.rating2_after}
        deltas = {"player1": result.delta1, "player2": result.delta2}

        rating_fields: dict[str, int] = {}
        for slot in SLOTS:
            rating_fields[f"{slot}_rating_before"] = before[slot].rating
            rating_fields[f"{slot}_rating_after"] = after[slot]
            rating_fields[f"{slot}_rating_delta"] = deltas[slot]
        await repository.update_match(session, match.id, rating_fields)

        for slot in SLOTS:
            await _apply_profile_change(
                session,
                before[slot],
                match_id=match.id,
                rating_after=after[slot],
                delta=deltas[slot],
                won=slot == winner,
            )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    await session.refresh(match)
    logger.info(
        "match %s completed: %s %+d, %s %+d",
        match.id,
        match.player1_id,
        match.player1_rating_delta,
        match.player2_id,
        match.player2_rating_delta,
    )
    return match


async def _apply_profile_change(
    session: AsyncSession,
    profile: Profile,
    *,
    match_id: str,
    rating_after: int,
    delta: int,
    won: bool,
) -> None:
    rating_before = profile.rating
    matches_played = profile.matches_played + 1
    provisional = is_provisional(matches_played)
    patch: dict[str, Any] = {
        "rating": rating_after,
        "matches_played": matches_played,
        "rating_provisional": provisional,
    }
    if won:
        patch["matches_won"] = profile.matches_won + 1
    else:
        patch["matches_lost"] = profile.matches_lost + 1
    await repository.update_profile(session, profile.id, patch)
    await repository.append_rating_history(
        session,
        RatingHistory(
            id=uuid.uuid4().hex,
            player_id=profile.id,
            match_id=match_id,
            rating_before=rating_before,
            rating_after=rating_after,
            delta=delta,
            reason=RATING_REASON_MATCH_RESULT,
            provisional=provisional,
            recorded_at=utcnow(),
        ),
    )


async def dispute_result(
    session: AsyncSession, match_id: str, actor_id: str, reason: str
) -> Match:
    """Flag a submitted result for external review. No rating change."""

    match = await _load(session, match_id)
    _check_counterparty(match, actor_id, "dispute")
    return await _transition(
        session,
        match,
        MatchStatus.PENDING_CONFIRMATION,
        {"status": MatchStatus.DISPUTED, "dispute_reason": reason},
        "dispute",
    )


async def cancel_match(session: AsyncSession, match_id: str, actor_id: str) -> Match:
    match = await _load(session, match_id)
    role_of(match, actor_id)
    if match.status != MatchStatus.ACCEPTED:
        raise InvalidState("match", match.status, "cancel")
    return await _transition(
        session,
        match,
        MatchStatus.ACCEPTED,
        {"status": MatchStatus.CANCELLED},
        "cancel",
    )
