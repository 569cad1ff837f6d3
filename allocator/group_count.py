import math
from dataclasses import dataclass
from typing import List

from .errors import EmptyPool, UnsatisfiableCapacity


@dataclass
class GroupPlan:
    group_count: int
    targets: List[int]
    capacities: List[int]

    @property
    def total_capacity(self) -> int:
        return sum(self.capacities)

    def overflow(self, total: int) -> int:
        return max(0, total - self.total_capacity)


def check_size_bounds(min_size: int, recommended: int, max_size: int):
    if min_size <= 0 or recommended <= 0 or max_size <= 0:
        raise UnsatisfiableCapacity(
            f"Group sizes must be positive (min={min_size}, recommended={recommended}, max={max_size})"
        )
    if min_size > max_size:
        raise UnsatisfiableCapacity(
            f"Minimum group size {min_size} is greater than maximum {max_size}"
        )


def closer_to_recommended(deviation: float, best_deviation: float) -> bool:
    """Strict improvement only, so the first (smallest) group count wins ties."""
    return deviation < best_deviation


def choose_group_count(total: int, min_size: int, recommended: int, max_size: int) -> int:
    """
    Pick the number of groups whose average size is closest to ``recommended``.

    Candidates range from the fewest groups that keep every group within
    ``max_size`` to the most groups that keep every group at ``min_size`` or
    above.

    Raises:
        UnsatisfiableCapacity: if the bounds are invalid or no count fits them.
    """
    check_size_bounds(min_size, recommended, max_size)
    if total <= 0:
        raise EmptyPool()

    min_count = math.ceil(total / max_size)
    max_count = max(1, total // min_size)
    if min_count > max_count:
        raise UnsatisfiableCapacity(
            f"Cannot split {total} players into groups of {min_size}-{max_size}"
        )

    best_count = min_count
    best_deviation = abs(total / min_count - recommended)
    for k in range(min_count + 1, max_count + 1):
        deviation = abs(total / k - recommended)
        if closer_to_recommended(deviation, best_deviation):
            best_count = k
            best_deviation = deviation
    return best_count


def build_targets(total: int, group_count: int) -> List[int]:
    """Near-equal sizes; the first ``total % group_count`` groups get one extra."""
    base, remainder = divmod(total, group_count)
    return [base + 1 if i < remainder else base for i in range(group_count)]


def clamp_targets(targets: List[int], min_size: int, max_size: int) -> List[int]:
    return [min(max(t, min_size), max_size) for t in targets]


def plan_groups(total: int, min_size: int, recommended: int, max_size: int) -> GroupPlan:
    """
    Group count, near-equal targets and per-group capacities for ``total`` players.

    Capacities are the targets clamped into [min_size, max_size] and never
    exceed ``total``, so a pool smaller than ``min_size`` gets one group of
    exactly its own size.
    """
    group_count = choose_group_count(total, min_size, recommended, max_size)
    targets = build_targets(total, group_count)
    return GroupPlan(
        group_count=group_count,
        targets=targets,
        capacities=[min(c, total) for c in clamp_targets(targets, min_size, max_size)],
    )
