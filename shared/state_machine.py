from enum import Enum
from typing import List
from dataclasses import dataclass


class MatchState(str, Enum):
    SCHEDULED = "Scheduled"
    LIVE = "Live"
    FINISHED = "Finished"


class TransitionError(Exception):
    status_code = 409

    def __init__(self, from_state: str, to_state: str, reason: str = None):
        self.from_state = from_state
        self.to_state = to_state
        self.reason = reason or f"Cannot transition from {from_state} to {to_state}"
        super().__init__(self.reason)


@dataclass
class Transition:
    from_state: MatchState
    to_state: MatchState
    action: str


class MatchStateMachine:
    TRANSITIONS = [
        Transition(MatchState.SCHEDULED, MatchState.LIVE, "start"),
        Transition(MatchState.LIVE, MatchState.LIVE, "start"),
        Transition(MatchState.SCHEDULED, MatchState.FINISHED, "end"),
        Transition(MatchState.LIVE, MatchState.FINISHED, "end"),
    ]

    ALLOWED_ACTIONS = {
        MatchState.SCHEDULED: ["edit", "reschedule", "start", "end", "record_goal", "record_card", "set_potm"],
        MatchState.LIVE: ["reschedule", "start", "end", "record_goal", "record_card", "set_potm"],
        MatchState.FINISHED: ["reschedule", "set_potm"],
    }

    def __init__(self, initial_state: MatchState = MatchState.SCHEDULED):
        self._state = initial_state
        self._history: List[tuple] = []

    @property
    def state(self) -> MatchState:
        return self._state

    @property
    def allowed_actions(self) -> List[str]:
        return self.ALLOWED_ACTIONS.get(self._state, [])

    def can_transition(self, action: str) -> bool:
        for t in self.TRANSITIONS:
            if t.from_state == self._state and t.action == action:
                return True
        return False

    def can_perform(self, action: str) -> bool:
        return action in self.allowed_actions

    def require(self, action: str):
        """Raise TransitionError unless ``action`` is allowed in the current state."""
        if not self.can_perform(action):
            raise TransitionError(
                self._state.value,
                self._state.value,
                f"Cannot {action.replace('_', ' ')} on a {self._state.value} match"
            )

    def transition(self, action: str) -> MatchState:
        for t in self.TRANSITIONS:
            if t.from_state == self._state and t.action == action:
                old_state = self._state
                self._state = t.to_state
                self._history.append((old_state, action, self._state))
                return self._state

        raise TransitionError(
            self._state.value,
            "unknown",
            f"No valid transition for action '{action}' from state '{self._state.value}'"
        )

    def get_history(self) -> List[tuple]:
        return self._history.copy()

    @classmethod
    def from_state_string(cls, state_str: str) -> "MatchStateMachine":
        try:
            state = MatchState(state_str)
        except ValueError:
            state = MatchState.SCHEDULED
        return cls(initial_state=state)
