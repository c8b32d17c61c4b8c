"""
Fixture scheduling.

Pure functions over team ids and match-like objects (anything with
``match_number``, ``date`` and ``time`` attributes). Nothing here touches the
database; ``Tournament`` applies the results to its own matches.
"""
from typing import List, NamedTuple, Sequence, Tuple

LEAGUE_STAGE = 'League Stage'


class Fixture(NamedTuple):
    match_number: int
    team_a_id: str
    team_b_id: str
    round: str = LEAGUE_STAGE


def round_robin_pairings(team_ids: Sequence[str]) -> List[Tuple[str, str]]:
    """Every unordered pair once, in team order (i ascending, then j > i ascending)."""
    pairs = []
    for i in range(len(team_ids)):
        for j in range(i + 1, len(team_ids)):
            pairs.append((team_ids[i], team_ids[j]))
    return pairs


def generate_round_robin(team_ids: Sequence[str]) -> List[Fixture]:
    """
    Single round-robin for ``team_ids``.

    N teams give N(N-1)/2 fixtures numbered 1..M in pairing order.
    """
    return [
        Fixture(match_number=number, team_a_id=team_a, team_b_id=team_b)
        for number, (team_a, team_b) in enumerate(round_robin_pairings(team_ids), start=1)
    ]


def _present(value) -> bool:
    return bool(value)


def schedule_sort_key(match) -> tuple:
    """
    Dated before undated, then date; timed before untimed, then time;
    match_number last so equal slots keep their current order.
    """
    has_date = _present(match.date)
    has_time = _present(match.time)
    return (
        not has_date,
        match.date if has_date else '',
        not has_time,
        match.time if has_time else '',
        match.match_number,
    )


def reorder_and_renumber(matches: Sequence) -> list:
    """Sort ``matches`` chronologically and reassign dense 1-based match numbers."""
    ordered = sorted(matches, key=schedule_sort_key)
    for position, match in enumerate(ordered, start=1):
        match.match_number = position
    return ordered
