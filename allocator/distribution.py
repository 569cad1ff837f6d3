"""
Distributors that spread candidates over capacity-bounded groups.

Both distributors report candidates they could not place instead of dropping
them; the stage functions turn those into waiting entries.
"""
from typing import Dict, List, Optional, Sequence, Tuple, TypeVar

from .candidates import Candidate, WaitingEntry, tier_priority_key

T = TypeVar('T')


def ordered_tiers(buckets: Dict[int, Sequence]) -> List[int]:
    return sorted(buckets.keys(), key=tier_priority_key)


def _find_room(groups: List[list], capacities: Sequence[int], start: int) -> Optional[int]:
    """First group at or after ``start`` (cyclically) that still has room."""
    group_count = len(groups)
    for step in range(group_count):
        index = (start + step) % group_count
        if len(groups[index]) < capacities[index]:
            return index
    return None


def distribute_by_tier(
    buckets: Dict[int, Sequence[T]],
    capacities: Sequence[int]
) -> Tuple[List[List[T]], List[T]]:
    """
    Layered round robin over skill tiers.

    Layer ``L`` takes the ``L``-th candidate of every tier, lowest tier first.
    The candidate from the tier at index ``t`` starts looking for room at group
    ``(L + t) % group_count`` so no group is systematically served first.

    Returns:
        (groups, unplaced) where groups[i] never exceeds capacities[i]
    """
    group_count = len(capacities)
    groups: List[List[T]] = [[] for _ in range(group_count)]
    unplaced: List[T] = []
    if group_count == 0:
        for tier in ordered_tiers(buckets):
            unplaced.extend(buckets[tier])
        return groups, unplaced

    tiers = ordered_tiers(buckets)
    depth = max((len(buckets[t]) for t in tiers), default=0)
    for layer in range(depth):
        for tier_index, tier in enumerate(tiers):
            members = buckets[tier]
            if layer >= len(members):
                continue
            target = _find_room(groups, capacities, (layer + tier_index) % group_count)
            if target is None:
                unplaced.append(members[layer])
            else:
                groups[target].append(members[layer])
    return groups, unplaced


def select_within_capacity(
    buckets: Dict[int, Sequence[Candidate]],
    budget: int
) -> Tuple[Dict[int, List[Candidate]], List[WaitingEntry]]:
    """
    Trim a tier pool to ``budget`` candidates.

    Tiers are drained in ascending tier order, so when the pool is too large
    the highest-numbered tiers are the ones sent to waiting. Waiting entries
    keep tier-then-original order and are tagged with their source tier.
    """
    active: Dict[int, List[Candidate]] = {}
    waiting: List[WaitingEntry] = []
    remaining = max(0, budget)
    for tier in ordered_tiers(buckets):
        members = list(buckets[tier])
        taken = members[:remaining]
        remaining -= len(taken)
        if taken:
            active[tier] = taken
        waiting.extend(WaitingEntry(candidate=c, tier=tier) for c in members[len(taken):])
    return active, waiting


def distribute_end_pairing(
    ordered: Sequence[T],
    group_count: int,
    capacity: int
) -> Tuple[List[List[T]], List[T]]:
    """
    Seed a best-to-worst list by pairing both ends into the same group.

    Each round places the best and the worst remaining entries into one group,
    then moves on to the next group, so ranks 1..8 over two groups give
    {1, 8, 3, 6} and {2, 7, 4, 5}.

    Returns:
        (groups, unplaced) with unplaced in rank order
    """
    groups: List[List[T]] = [[] for _ in range(max(0, group_count))]
    capacities = [capacity] * len(groups)
    left, right = 0, len(ordered) - 1
    current = 0

    while left <= right and groups:
        target = _find_room(groups, capacities, current)
        if target is None:
            break
        groups[target].append(ordered[left])
        left += 1

        if left <= right:
            target = _find_room(groups, capacities, target)
            if target is None:
                break
            groups[target].append(ordered[right])
            right -= 1

        current = (target + 1) % len(groups)

    return groups, list(ordered[left:right + 1])
