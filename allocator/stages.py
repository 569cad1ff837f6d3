"""
Stage orchestrators: qualification, finals and superfinal.

Every function is a full rebuild from its inputs. It either returns a complete
Formation or raises a FormationError before any group is built.
"""
import logging
import math
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .candidates import (
    Candidate,
    Formation,
    GroupAssignment,
    PlacementCandidate,
    PointsCandidate,
    QualificationCandidate,
    RatingCandidate,
    RatingEntry,
    WaitingEntry,
    build_tier_pool,
    normalize_name,
    placement_order_key,
    points_order_key,
    rating_order_key,
    SkillBucket,
)
from .distribution import distribute_by_tier, distribute_end_pairing, select_within_capacity
from .errors import EmptyPool, InsufficientMaps, ZeroGroups
from .group_count import plan_groups
from .policies import (
    ClassicPolicy,
    EndPairingPolicy,
    FixedCountPolicy,
    QualificationPolicy,
    RecommendedSizePolicy,
)
from .randomness import secure_sample, secure_shuffle

logger = logging.getLogger(__name__)

QUALIFICATION = 'qualification'
FINALS = 'finals'
SUPERFINAL = 'superfinal'

STAGES = (QUALIFICATION, FINALS, SUPERFINAL)


def distinct_maps(maps: Iterable[str]) -> List[str]:
    """Map names without blanks or case-insensitive duplicates, first spelling kept."""
    seen = set()
    result = []
    for name in maps or []:
        name = str(name or '').strip()
        key = name.casefold()
        if not name or key in seen:
            continue
        seen.add(key)
        result.append(name)
    return result


def check_maps(maps: Sequence[str], maps_per_group: int, stage: str) -> List[str]:
    available = distinct_maps(maps)
    if maps_per_group < 0 or len(available) < maps_per_group:
        raise InsufficientMaps(len(available), maps_per_group, stage)
    return available


def _assemble(
    stage: str,
    formation_id: int,
    groups: List[List[Candidate]],
    waiting: List[WaitingEntry],
    maps: Sequence[str],
    maps_per_group: int
) -> Formation:
    assignments = [
        GroupAssignment(
            group_id=index + 1,
            players=members,
            maps=secure_sample(maps, maps_per_group)
        )
        for index, members in enumerate(groups)
    ]
    formation = Formation(stage=stage, formation_id=formation_id, groups=assignments, waiting=waiting)
    logger.info(
        f"Formed {stage} #{formation_id}: {len(assignments)} groups, "
        f"{sum(len(g.players) for g in assignments)} placed, {len(waiting)} waiting"
    )
    return formation


def _to_waiting(candidates: Iterable[Candidate]) -> List[WaitingEntry]:
    return [WaitingEntry(candidate=c, tier=c.tier) for c in candidates]


# ==================== Qualification ====================

def form_qualification(
    buckets: Iterable[SkillBucket],
    policy: QualificationPolicy,
    maps: Sequence[str],
    maps_per_group: int,
    formation_id: int = 1
) -> Formation:
    """
    Split the skill-tier pool into qualification groups.

    Classic places everyone into ceil(total / max) groups. Recommended-size and
    fixed-count trim the pool to their capacity first, sending the overflow
    from the highest tiers to waiting.
    """
    stage = QUALIFICATION
    policy.validate(stage)

    pool = build_tier_pool(buckets)
    total = sum(len(members) for members in pool.values())
    if total == 0:
        raise EmptyPool("No players in the skill tiers", stage)
    available_maps = check_maps(maps, maps_per_group, stage)

    if isinstance(policy, ClassicPolicy):
        group_count = math.ceil(total / policy.max_per_group)
        capacities = [policy.max_per_group] * group_count
    elif isinstance(policy, RecommendedSizePolicy):
        plan = plan_groups(
            total,
            policy.min_per_group,
            policy.recommended_per_group,
            policy.max_per_group
        )
        group_count = plan.group_count
        capacities = plan.capacities
    elif isinstance(policy, FixedCountPolicy):
        group_count = policy.group_count
        capacities = [policy.max_per_group] * group_count
    else:
        raise TypeError(f"Unsupported qualification policy: {type(policy).__name__}")

    if group_count <= 0:
        raise ZeroGroups(group_count, stage)

    active, waiting = select_within_capacity(pool, sum(capacities))
    if waiting:
        logger.info(f"{stage}: {len(waiting)} players over capacity {sum(capacities)}")

    for members in active.values():
        secure_shuffle(members)

    groups, unplaced = distribute_by_tier(active, capacities)
    waiting.extend(_to_waiting(unplaced))
    return _assemble(stage, formation_id, groups, waiting, available_maps, maps_per_group)


# ==================== Seeded stages ====================

def _form_seeded(
    stage: str,
    ordered: List[Candidate],
    policy: EndPairingPolicy,
    available_maps: List[str],
    maps_per_group: int,
    formation_id: int,
    cut: Sequence[Candidate] = ()
) -> Formation:
    group_count = math.ceil(len(ordered) / policy.max_per_group)
    if group_count <= 0:
        raise ZeroGroups(group_count, stage)
    groups, unplaced = distribute_end_pairing(ordered, group_count, policy.max_per_group)
    waiting = _to_waiting(list(unplaced) + list(cut))
    return _assemble(stage, formation_id, groups, waiting, available_maps, maps_per_group)


def _participant_index(participants: Iterable[Candidate]) -> Dict[str, Candidate]:
    index: Dict[str, Candidate] = {}
    for candidate in participants:
        index.setdefault(candidate.player.key, candidate)
    return index


def _rated_participants(
    rating: Iterable[RatingEntry],
    participants: Iterable[Candidate]
) -> List[RatingCandidate]:
    index = _participant_index(participants)
    rated: Dict[str, RatingCandidate] = {}
    for entry in rating:
        current = index.get(entry.player.key)
        if current is None:
            continue
        candidate = RatingCandidate(player=current.player, tier=current.tier, rank=entry.rank)
        best = rated.get(entry.player.key)
        if best is None or rating_order_key(candidate) < rating_order_key(best):
            rated[entry.player.key] = candidate
    return sorted(rated.values(), key=rating_order_key)


def form_finals_from_results(
    participants: Iterable[PlacementCandidate],
    policy: EndPairingPolicy,
    maps: Sequence[str],
    maps_per_group: int,
    formation_id: int = 1
) -> Formation:
    """
    Seed finals from qualification placements.

    Participants without a placement are skipped. The rest are ordered by
    placement, then tier, then name. With ``policy.total_cap`` set, everyone
    past the cap goes to the waiting list in seed order.
    """
    stage = FINALS
    policy.validate(stage)

    placed = {}
    for candidate in participants:
        if candidate.placement is None or candidate.player.key in placed:
            continue
        placed[candidate.player.key] = candidate
    if not placed:
        raise EmptyPool("No qualification results recorded", stage)
    available_maps = check_maps(maps, maps_per_group, stage)

    ordered = sorted(placed.values(), key=placement_order_key)
    cut = []
    if policy.total_cap is not None and policy.total_cap > 0:
        ordered, cut = ordered[:policy.total_cap], ordered[policy.total_cap:]
        if cut:
            logger.info(f"{stage}: {len(cut)} players below the cap of {policy.total_cap}")
    return _form_seeded(stage, ordered, policy, available_maps, maps_per_group, formation_id, cut)


def form_finals_from_rating(
    rating: Iterable[RatingEntry],
    participants: Iterable[Candidate],
    policy: EndPairingPolicy,
    maps: Sequence[str],
    maps_per_group: int,
    formation_id: int = 1
) -> Formation:
    """Seed finals from the curated rating; only current qualification players count."""
    stage = FINALS
    policy.validate(stage)

    ordered = _rated_participants(rating, participants)
    if not ordered:
        raise EmptyPool("Rating is empty or has no qualification participants", stage)
    available_maps = check_maps(maps, maps_per_group, stage)
    return _form_seeded(stage, ordered, policy, available_maps, maps_per_group, formation_id)


def form_superfinal_from_points(
    points: Mapping[str, float],
    participants: Iterable[Candidate],
    policy: EndPairingPolicy,
    maps: Sequence[str],
    maps_per_group: int,
    formation_id: int = 1
) -> Formation:
    """
    Seed the superfinal from finals point totals, fewest points first.

    ``points`` is keyed by player name; keys are normalized before matching.
    """
    stage = SUPERFINAL
    policy.validate(stage)

    totals = {normalize_name(name): value for name, value in points.items()}
    ordered = sorted(
        (
            PointsCandidate(player=c.player, tier=c.tier, points=totals[key])
            for key, c in _participant_index(participants).items()
            if totals.get(key) is not None
        ),
        key=points_order_key
    )
    if not ordered:
        raise EmptyPool("No finals points recorded for finals participants", stage)
    available_maps = check_maps(maps, maps_per_group, stage)
    return _form_seeded(stage, ordered, policy, available_maps, maps_per_group, formation_id)


def form_superfinal_from_rating(
    rating: Iterable[RatingEntry],
    participants: Iterable[Candidate],
    policy: EndPairingPolicy,
    maps: Sequence[str],
    maps_per_group: int,
    formation_id: int = 1
) -> Formation:
    stage = SUPERFINAL
    policy.validate(stage)

    ordered = _rated_participants(rating, participants)
    if not ordered:
        raise EmptyPool("Finals rating is empty or has no finals participants", stage)
    available_maps = check_maps(maps, maps_per_group, stage)
    return _form_seeded(stage, ordered, policy, available_maps, maps_per_group, formation_id)
