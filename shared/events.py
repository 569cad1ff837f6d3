from enum import Enum
from dataclasses import dataclass
from datetime import datetime
import json


class EventType(str, Enum):
    STAGE_FORMED = "stage.formed"
    STAGE_FORMATION_FAILED = "stage.formation_failed"
    STATE_CHANGED = "state.changed"


@dataclass
class Event:
    type: EventType
    tournament_key: str
    timestamp: str = None
    data: dict = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.utcnow().isoformat() + "Z"
        if self.data is None:
            self.data = {}

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "tournament_key": self.tournament_key,
            "timestamp": self.timestamp,
            "data": self.data
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def stage_formed_event(tournament_key: str, stage: str, formation_id: int,
                       group_count: int, waiting_count: int) -> Event:
    return Event(
        type=EventType.STAGE_FORMED,
        tournament_key=tournament_key,
        data={
            "stage": stage,
            "formation_id": formation_id,
            "groups": group_count,
            "waiting": waiting_count
        }
    )


def formation_failed_event(tournament_key: str, stage: str, kind: str, reason: str) -> Event:
    return Event(
        type=EventType.STAGE_FORMATION_FAILED,
        tournament_key=tournament_key,
        data={
            "stage": stage,
            "kind": kind,
            "reason": reason
        }
    )


def state_changed_event(tournament_key: str, stage: str, from_state: str, to_state: str) -> Event:
    return Event(
        type=EventType.STATE_CHANGED,
        tournament_key=tournament_key,
        data={
            "stage": stage,
            "from_state": from_state,
            "to_state": to_state
        }
    )
