from dataclasses import dataclass
from typing import Optional, Union

from .group_count import check_size_bounds
from .errors import MissingFixedCount, UnsatisfiableCapacity, ZeroGroups


@dataclass
class ClassicPolicy:
    max_per_group: int

    name = 'classic'

    def validate(self, stage: str = None):
        if self.max_per_group is None or self.max_per_group <= 0:
            raise ZeroGroups(0, stage)


@dataclass
class RecommendedSizePolicy:
    min_per_group: int
    recommended_per_group: int
    max_per_group: int

    name = 'recommended'

    def validate(self, stage: str = None):
        try:
            check_size_bounds(self.min_per_group, self.recommended_per_group, self.max_per_group)
        except UnsatisfiableCapacity as e:
            e.stage = stage
            raise


@dataclass
class FixedCountPolicy:
    group_count: Optional[int]
    max_per_group: int

    name = 'fixed'

    def validate(self, stage: str = None):
        if self.group_count is None:
            raise MissingFixedCount(stage)
        if self.group_count <= 0:
            raise ZeroGroups(self.group_count, stage)
        if self.max_per_group is None or self.max_per_group <= 0:
            raise UnsatisfiableCapacity(
                f"Maximum group size must be positive, got {self.max_per_group}", stage
            )


@dataclass
class EndPairingPolicy:
    """Capacity settings for result- or rating-seeded stages."""
    max_per_group: int
    total_cap: Optional[int] = None

    name = 'end_pairing'

    def validate(self, stage: str = None):
        if self.max_per_group is None or self.max_per_group <= 0:
            raise ZeroGroups(0, stage)


QualificationPolicy = Union[ClassicPolicy, RecommendedSizePolicy, FixedCountPolicy]


def _optional_int(value) -> Optional[int]:
    if value is None or value == '':
        return None
    return int(value)


def policy_from_dict(data: dict) -> QualificationPolicy:
    """Build a qualification policy from a settings mapping keyed by ``policy``."""
    kind = (data.get('policy') or 'classic').lower()
    if kind == 'classic':
        return ClassicPolicy(max_per_group=int(data['max_per_group']))
    if kind == 'recommended':
        return RecommendedSizePolicy(
            min_per_group=int(data['min_per_group']),
            recommended_per_group=int(data['recommended_per_group']),
            max_per_group=int(data['max_per_group'])
        )
    if kind == 'fixed':
        return FixedCountPolicy(
            group_count=_optional_int(data.get('group_count')),
            max_per_group=int(data['max_per_group'])
        )
    raise ValueError(f"Unknown group policy: {kind}")
