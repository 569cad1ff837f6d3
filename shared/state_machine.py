from enum import Enum
from typing import List
from dataclasses import dataclass


class StageState(str, Enum):
    EMPTY = "empty"
    FORMED = "formed"


class TransitionError(Exception):
    def __init__(self, from_state: str, to_state: str, reason: str = None):
        self.from_state = from_state
        self.to_state = to_state
        self.reason = reason or f"Cannot transition from {from_state} to {to_state}"
        super().__init__(self.reason)


@dataclass
class Transition:
    from_state: StageState
    to_state: StageState
    action: str


class StageStateMachine:
    """
    Lifecycle of one stage's grouping.

    Every "make" replaces the whole grouping, so FORMED loops back onto itself.
    A failed make never reaches ``transition`` and the state is unchanged.
    """
    TRANSITIONS = [
        Transition(StageState.EMPTY, StageState.FORMED, "make"),
        Transition(StageState.FORMED, StageState.FORMED, "make"),
    ]

    ALLOWED_ACTIONS = {
        StageState.EMPTY: ["make"],
        StageState.FORMED: ["make", "view"],
    }

    def __init__(self, initial_state: StageState = StageState.EMPTY):
        self._state = initial_state

    @property
    def state(self) -> StageState:
        return self._state

    @property
    def allowed_actions(self) -> List[str]:
        return self.ALLOWED_ACTIONS.get(self._state, [])

    def can_perform(self, action: str) -> bool:
        return action in self.allowed_actions

    def transition(self, action: str) -> StageState:
        for t in self.TRANSITIONS:
            if t.from_state == self._state and t.action == action:
                self._state = t.to_state
                return self._state

        raise TransitionError(
            self._state.value,
            "unknown",
            f"No valid transition for action '{action}' from state '{self._state.value}'"
        )

    @classmethod
    def from_state_string(cls, state_str: str) -> "StageStateMachine":
        try:
            state = StageState(state_str)
        except ValueError:
            state = StageState.EMPTY
        return cls(initial_state=state)
