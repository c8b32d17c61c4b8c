from enum import Enum
from dataclasses import dataclass
from datetime import datetime
import json


class EventType(str, Enum):
    # Schedule
    SCHEDULE_GENERATED = "schedule.generated"
    SCHEDULE_REORDERED = "schedule.reordered"

    # Team events
    TEAM_JOINED = "team.joined"

    # Match lifecycle
    MATCH_STARTED = "match.started"
    MATCH_FINISHED = "match.finished"

    # Live scoring
    GOAL_RECORDED = "match.goal"
    CARD_RECORDED = "match.card"
    PLAYER_OF_THE_MATCH = "match.player_of_the_match"


@dataclass
class Event:
    type: EventType
    tournament_id: str
    timestamp: str = None
    data: dict = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.utcnow().isoformat() + "Z"
        if self.data is None:
            self.data = {}

    def to_dict(self) -> dict:
        return {
            "type": self.type.value if isinstance(self.type, EventType) else self.type,
            "tournament_id": self.tournament_id,
            "timestamp": self.timestamp,
            "data": self.data
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict) -> "Event":
        return cls(
            type=EventType(data["type"]) if data["type"] in [e.value for e in EventType] else data["type"],
            tournament_id=data["tournament_id"],
            timestamp=data.get("timestamp"),
            data=data.get("data", {})
        )

    @classmethod
    def from_json(cls, json_str: str) -> "Event":
        return cls.from_dict(json.loads(json_str))


def schedule_generated_event(tournament_id: str, matches_count: int) -> Event:
    return Event(
        type=EventType.SCHEDULE_GENERATED,
        tournament_id=tournament_id,
        data={"matches_count": matches_count}
    )


def schedule_reordered_event(tournament_id: str, match_order: list) -> Event:
    return Event(
        type=EventType.SCHEDULE_REORDERED,
        tournament_id=tournament_id,
        data={"match_order": match_order}
    )


def team_joined_event(tournament_id: str, team_id: str) -> Event:
    return Event(
        type=EventType.TEAM_JOINED,
        tournament_id=tournament_id,
        data={"team_id": team_id}
    )


def match_started_event(tournament_id: str, match_id: str, match_number: int) -> Event:
    return Event(
        type=EventType.MATCH_STARTED,
        tournament_id=tournament_id,
        data={
            "match_id": match_id,
            "match_number": match_number
        }
    )


def match_finished_event(tournament_id: str, match_id: str, winner: str,
                         score_a: int, score_b: int) -> Event:
    return Event(
        type=EventType.MATCH_FINISHED,
        tournament_id=tournament_id,
        data={
            "match_id": match_id,
            "winner": winner,
            "score_a": score_a,
            "score_b": score_b
        }
    )


def goal_recorded_event(tournament_id: str, match_id: str, team_id: str,
                        score_a: int, score_b: int) -> Event:
    return Event(
        type=EventType.GOAL_RECORDED,
        tournament_id=tournament_id,
        data={
            "match_id": match_id,
            "team_id": team_id,
            "score_a": score_a,
            "score_b": score_b
        }
    )


def card_recorded_event(tournament_id: str, match_id: str, team_id: str, card_type: str) -> Event:
    return Event(
        type=EventType.CARD_RECORDED,
        tournament_id=tournament_id,
        data={
            "match_id": match_id,
            "team_id": team_id,
            "card_type": card_type
        }
    )


def player_of_the_match_event(tournament_id: str, match_id: str, player_id: str) -> Event:
    return Event(
        type=EventType.PLAYER_OF_THE_MATCH,
        tournament_id=tournament_id,
        data={
            "match_id": match_id,
            "player_id": player_id
        }
    )
