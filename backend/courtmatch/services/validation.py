from typing import Any, List, Sequence

from ..scoring.tennis import SetScore, coerce_set, format_rule, set_winner, tally_sets


class ValidationError(Exception):
    """Raised when submitted set scores are invalid."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


def normalize_sets(sets: Sequence[Any]) -> List[SetScore]:
    if not isinstance(sets, Sequence) or isinstance(sets, (str, bytes)):
        raise ValidationError("Sets must be provided as a list.")

    normalized: List[SetScore] = []
    for i, raw in enumerate(sets, start=1):
        try:
            normalized.append(coerce_set(raw))
        except ValueError as exc:
            raise ValidationError(f"Set #{i}: {exc}.")
    return normalized


def check_score_detail(sets: Sequence[Any], match_format: str) -> List[SetScore]:
    """Validate a completed score sequence against a match format.

    Rules:
    - ``match_format`` must be one of ``best_of_1``/``best_of_3``/``best_of_5``
    - Number of sets must be within ``[sets_to_win, max_sets]``
    - Every set must be a completed set (6 games with a two game lead,
      or 7-6); games are integers in ``[0, 7]``
    - Exactly one side must reach ``sets_to_win``

    Returns the normalized sets; raises ``ValidationError`` otherwise.
    """

    try:
        rule = format_rule(match_format)
    except ValueError as exc:
        raise ValidationError(str(exc))

    normalized = normalize_sets(sets)
    if len(normalized) < rule.sets_to_win:
        raise ValidationError(
            f"Too few sets. {match_format} needs at least {rule.sets_to_win}."
        )
    if len(normalized) > rule.max_sets:
        raise ValidationError(f"Too many sets. Max allowed is {rule.max_sets}.")

    for i, s in enumerate(normalized, start=1):
        if set_winner(s.p1, s.p2) is None:
            raise ValidationError(f"Set #{i} ({s.p1}-{s.p2}) is not a completed set.")

    p1_sets, p2_sets = tally_sets(normalized)
    p1_done = p1_sets >= rule.sets_to_win
    p2_done = p2_sets >= rule.sets_to_win
    if p1_done == p2_done:
        raise ValidationError(
            f"Score {p1_sets}-{p2_sets} in sets is not a decisive {match_format} result."
        )
    return normalized


def validate(sets: Sequence[Any], match_format: str) -> bool:
    """Return ``True`` iff ``sets`` is a legal, decisive result for the format."""

    try:
        check_score_detail(sets, match_format)
    except ValidationError:
        return False
    return True
