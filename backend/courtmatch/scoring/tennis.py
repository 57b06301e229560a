"""Tennis set and match-format rules.
Decides who won a completed set and how many sets a format needs."""

from typing import Any, Mapping, NamedTuple, Sequence

MIN_GAMES = 0
MAX_GAMES = 7


class FormatRule(NamedTuple):
    sets_to_win: int
    max_sets: int


FORMAT_RULES: dict[str, FormatRule] = {
    "best_of_1": FormatRule(sets_to_win=1, max_sets=1),
    "best_of_3": FormatRule(sets_to_win=2, max_sets=3),
    "best_of_5": FormatRule(sets_to_win=3, max_sets=5),
}

MATCH_FORMATS = tuple(FORMAT_RULES)


class SetScore(NamedTuple):
    p1: int
    p2: int


def format_rule(match_format: str) -> FormatRule:
    try:
        return FORMAT_RULES[match_format]
    except KeyError:
        raise ValueError(f"unknown match format {match_format!r}") from None


def _wins(games: int, opponent: int) -> bool:
    return (games >= 6 and games - opponent >= 2) or (games == 7 and opponent == 6)


def set_winner(p1: int, p2: int) -> str | None:
    """Return ``"p1"``/``"p2"`` for a completed set, ``None`` otherwise.

    A set is won 6-x with a two game lead (7-5 included) or 7-6 on a
    tiebreak. Games outside ``[0, 7]`` never form a completed set.
    """

    if not (MIN_GAMES <= p1 <= MAX_GAMES and MIN_GAMES <= p2 <= MAX_GAMES):
        return None
    if _wins(p1, p2):
        return "p1"
    if _wins(p2, p1):
        return "p2"
    return None


def _games(value: Any) -> int:
    # bool is a subclass of int; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError("games must be integers")
    return value


def coerce_set(raw: Any) -> SetScore:
    """Accept ``{"p1", "p2"}``/``{"a", "b"}`` mappings or ``(p1, p2)`` pairs."""

    if isinstance(raw, SetScore):
        return raw
    if isinstance(raw, Mapping):
        for first, second in (("p1", "p2"), ("a", "b"), ("A", "B")):
            if first in raw and second in raw:
                return SetScore(_games(raw[first]), _games(raw[second]))
        raise ValueError("set must include both p1 and p2")
    if isinstance(raw, Sequence) and not isinstance(raw, (str, bytes)) and len(raw) == 2:
        return SetScore(_games(raw[0]), _games(raw[1]))
    if hasattr(raw, "p1") and hasattr(raw, "p2"):
        return SetScore(_games(raw.p1), _games(raw.p2))
    raise ValueError("set must be an object with p1 and p2")


def tally_sets(sets: Sequence[SetScore]) -> tuple[int, int]:
    """Count sets won by each side, ignoring sets without a winner."""

    p1_sets = p2_sets = 0
    for s in sets:
        winner = set_winner(s.p1, s.p2)
        if winner == "p1":
            p1_sets += 1
        elif winner == "p2":
            p2_sets += 1
    return p1_sets, p2_sets
