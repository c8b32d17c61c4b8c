"""
League table computed from finished matches.

Win 3, draw 1, loss 0. A penalty shoot-out decides the match winner but the
table still counts the match as a draw.
"""
from dataclasses import dataclass, asdict
from typing import Dict, List, Sequence

from shared.state_machine import MatchState

POINTS_WIN = 3
POINTS_DRAW = 1


@dataclass
class StandingRow:
    team_id: str
    played: int = 0
    won: int = 0
    drawn: int = 0
    lost: int = 0
    goals_for: int = 0
    goals_against: int = 0

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    @property
    def points(self) -> int:
        return self.won * POINTS_WIN + self.drawn * POINTS_DRAW

    def record(self, scored: int, conceded: int):
        self.played += 1
        self.goals_for += scored
        self.goals_against += conceded
        if scored > conceded:
            self.won += 1
        elif scored == conceded:
            self.drawn += 1
        else:
            self.lost += 1

    def to_dict(self) -> dict:
        data = asdict(self)
        data['goal_difference'] = self.goal_difference
        data['points'] = self.points
        return data


def compute_standings(team_ids: Sequence[str], matches: Sequence) -> List[StandingRow]:
    rows: Dict[str, StandingRow] = {team_id: StandingRow(team_id) for team_id in team_ids}

    for match in matches:
        if match.status != MatchState.FINISHED.value:
            continue
        if match.team_a_id in rows:
            rows[match.team_a_id].record(match.score_a, match.score_b)
        if match.team_b_id in rows:
            rows[match.team_b_id].record(match.score_b, match.score_a)

    order = {team_id: position for position, team_id in enumerate(team_ids)}
    return sorted(
        rows.values(),
        key=lambda r: (-r.points, -r.goal_difference, -r.goals_for, order[r.team_id])
    )
