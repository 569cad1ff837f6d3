from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Union


def normalize_name(name: str) -> str:
    """Identity key for a player: surrounding whitespace dropped, case folded."""
    return (name or '').strip().casefold()


@dataclass(frozen=True)
class PlayerRef:
    name: str
    key: str

    @classmethod
    def from_name(cls, name: str) -> "PlayerRef":
        return cls(name=(name or '').strip(), key=normalize_name(name))

    def to_dict(self) -> dict:
        return {'name': self.name, 'key': self.key}


@dataclass
class SkillBucket:
    tier: int
    players: List[PlayerRef] = field(default_factory=list)


@dataclass(frozen=True)
class QualificationCandidate:
    player: PlayerRef
    tier: Optional[int] = None


@dataclass(frozen=True)
class PlacementCandidate:
    player: PlayerRef
    tier: Optional[int] = None
    placement: Optional[int] = None


@dataclass(frozen=True)
class RatingCandidate:
    player: PlayerRef
    tier: Optional[int] = None
    rank: int = 0


@dataclass(frozen=True)
class PointsCandidate:
    player: PlayerRef
    tier: Optional[int] = None
    points: float = 0


Candidate = Union[QualificationCandidate, PlacementCandidate, RatingCandidate, PointsCandidate]


@dataclass(frozen=True)
class RatingEntry:
    player: PlayerRef
    rank: int


# ==================== Ordering keys ====================

def tier_priority_key(tier: Optional[int]) -> Tuple[int, int]:
    """Lower tier numbers come first; players without a tier come last."""
    if tier is None:
        return (1, 0)
    return (0, tier)


def _name_key(player: PlayerRef) -> str:
    return player.name.casefold()


def placement_order_key(candidate: PlacementCandidate):
    return (candidate.placement, tier_priority_key(candidate.tier), _name_key(candidate.player))


def rating_order_key(candidate: RatingCandidate):
    return (candidate.rank, _name_key(candidate.player))


def points_order_key(candidate: PointsCandidate):
    """Fewer points is better."""
    return (candidate.points, _name_key(candidate.player))


def seed_order_key(candidate: Candidate):
    """Seeding order for any candidate variant, best first."""
    if isinstance(candidate, PlacementCandidate):
        return placement_order_key(candidate)
    if isinstance(candidate, RatingCandidate):
        return rating_order_key(candidate)
    if isinstance(candidate, PointsCandidate):
        return points_order_key(candidate)
    if isinstance(candidate, QualificationCandidate):
        return (tier_priority_key(candidate.tier), _name_key(candidate.player))
    raise TypeError(f"Unknown candidate type: {type(candidate).__name__}")


def build_tier_pool(buckets: Iterable[SkillBucket]) -> Dict[int, List[QualificationCandidate]]:
    """
    Turn skill buckets into tier -> candidates, in ascending tier order.

    A player listed more than once keeps only the first occurrence, with lower
    tiers visited first, so a normalized key appears at most once in the pool.
    """
    pool: Dict[int, List[QualificationCandidate]] = {}
    seen = set()
    for bucket in sorted(buckets, key=lambda b: b.tier):
        entries = pool.setdefault(bucket.tier, [])
        for player in bucket.players:
            if not player.key or player.key in seen:
                continue
            seen.add(player.key)
            entries.append(QualificationCandidate(player=player, tier=bucket.tier))
    return {tier: entries for tier, entries in pool.items() if entries}


# ==================== Output ====================

@dataclass
class GroupAssignment:
    group_id: int
    players: List[Candidate] = field(default_factory=list)
    maps: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'group_id': self.group_id,
            'players': [candidate_to_dict(c) for c in self.players],
            'maps': list(self.maps),
        }


@dataclass
class WaitingEntry:
    candidate: Candidate
    tier: Optional[int] = None

    def to_dict(self) -> dict:
        data = candidate_to_dict(self.candidate)
        data['tier'] = self.tier
        return data


@dataclass
class Formation:
    stage: str
    formation_id: int
    groups: List[GroupAssignment] = field(default_factory=list)
    waiting: List[WaitingEntry] = field(default_factory=list)

    def participants(self) -> List[Candidate]:
        return [c for g in self.groups for c in g.players]

    def to_dict(self) -> dict:
        return {
            'stage': self.stage,
            'formation_id': self.formation_id,
            'groups': [g.to_dict() for g in self.groups],
            'waiting': [w.to_dict() for w in self.waiting],
        }


def candidate_to_dict(candidate: Candidate) -> dict:
    data = {
        'name': candidate.player.name,
        'key': candidate.player.key,
        'tier': candidate.tier,
    }
    if isinstance(candidate, PlacementCandidate):
        data['placement'] = candidate.placement
    elif isinstance(candidate, RatingCandidate):
        data['rank'] = candidate.rank
    elif isinstance(candidate, PointsCandidate):
        data['points'] = candidate.points
    return data


def player_from_dict(data: dict) -> PlayerRef:
    name = data.get('name') or ''
    return PlayerRef(name=name.strip(), key=data.get('key') or normalize_name(name))
