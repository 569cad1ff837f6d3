"""
Unit tests for the distributors.
Tests: distribute_by_tier, select_within_capacity, distribute_end_pairing
"""
import pytest

from allocator.candidates import PlayerRef, QualificationCandidate
from allocator.distribution import (
    distribute_by_tier,
    distribute_end_pairing,
    ordered_tiers,
    select_within_capacity,
)


def tier_pool(tiers):
    return {
        tier: [QualificationCandidate(player=PlayerRef.from_name(n), tier=tier) for n in names]
        for tier, names in tiers.items()
    }


def names(group):
    return [c.player.name if hasattr(c, 'player') else c for c in group]


class TestLayeredRoundRobin:

    def test_ten_players_three_groups(self):
        buckets = {1: ['a', 'b', 'c'], 2: ['d', 'e', 'f', 'g'], 3: ['h', 'i', 'j']}
        groups, unplaced = distribute_by_tier(buckets, [4, 4, 4])

        assert groups == [['a', 'i', 'f'], ['d', 'b', 'j', 'g'], ['h', 'e', 'c']]
        assert unplaced == []

    def test_each_group_gets_every_tier(self):
        buckets = {1: list('abc'), 2: list('def'), 3: list('ghi')}
        groups, _ = distribute_by_tier(buckets, [3, 3, 3])
        for group in groups:
            assert {m for m in group} & set('abc')
            assert {m for m in group} & set('def')
            assert {m for m in group} & set('ghi')

    def test_tiers_processed_in_ascending_order(self):
        """Insertion order of the mapping must not matter."""
        forward = distribute_by_tier({1: ['a'], 2: ['b']}, [1, 1])
        backward = distribute_by_tier({2: ['b'], 1: ['a']}, [1, 1])
        assert forward == backward == ([['a'], ['b']], [])

    def test_skips_full_groups(self):
        groups, unplaced = distribute_by_tier({1: list('abcd')}, [1, 1, 3])
        assert groups == [['a'], ['b'], ['c', 'd']]
        assert unplaced == []

    def test_reports_unplaced(self):
        groups, unplaced = distribute_by_tier({1: list('abcd')}, [1, 1, 1])
        assert groups == [['a'], ['b'], ['c']]
        assert unplaced == ['d']

    def test_capacity_respected_with_uneven_caps(self):
        buckets = {1: list('abcdef'), 2: list('ghijk'), 5: list('lmn')}
        capacities = [5, 4, 3, 2]
        groups, unplaced = distribute_by_tier(buckets, capacities)
        for group, cap in zip(groups, capacities):
            assert len(group) <= cap
        placed = [m for g in groups for m in g] + unplaced
        assert sorted(placed) == sorted('abcdefghijklmn')

    def test_no_groups(self):
        groups, unplaced = distribute_by_tier({2: ['b'], 1: ['a']}, [])
        assert groups == []
        assert unplaced == ['a', 'b']


class TestOverflowSelection:

    def test_highest_tier_overflows(self):
        pool = tier_pool({1: ['a', 'b', 'c'], 2: ['d', 'e', 'f', 'g'], 3: ['h', 'i', 'j']})
        active, waiting = select_within_capacity(pool, 8)

        assert sorted(active.keys()) == [1, 2, 3]
        assert names(active[3]) == ['h']
        assert names(w.candidate for w in waiting) == ['i', 'j']
        assert [w.tier for w in waiting] == [3, 3]

    def test_waiting_keeps_tier_then_original_order(self):
        pool = tier_pool({3: ['h', 'i', 'j'], 1: ['a', 'b', 'c'], 2: ['d', 'e', 'f', 'g']})
        active, waiting = select_within_capacity(pool, 5)

        assert names(active[1]) == ['a', 'b', 'c']
        assert names(active[2]) == ['d', 'e']
        assert 3 not in active
        assert names(w.candidate for w in waiting) == ['f', 'g', 'h', 'i', 'j']
        assert [w.tier for w in waiting] == [2, 2, 3, 3, 3]

    @pytest.mark.parametrize('budget', range(0, 12))
    def test_lower_tier_never_waits_for_higher(self, budget):
        pool = tier_pool({1: ['a', 'b', 'c'], 2: ['d', 'e', 'f', 'g'], 3: ['h', 'i', 'j']})
        active, waiting = select_within_capacity(pool, budget)

        active_tiers = [t for t, members in active.items() if members]
        for entry in waiting:
            assert all(t <= entry.tier for t in active_tiers)
        assert sum(len(m) for m in active.values()) + len(waiting) == 10

    def test_budget_covers_everyone(self):
        pool = tier_pool({1: ['a'], 2: ['b']})
        active, waiting = select_within_capacity(pool, 10)
        assert waiting == []
        assert names(active[1]) == ['a'] and names(active[2]) == ['b']

    def test_untiered_candidates_go_last(self):
        assert ordered_tiers({None: [], 2: [], 1: []}) == [1, 2, None]


class TestEndPairing:

    def test_eight_ranks_two_groups(self):
        groups, unplaced = distribute_end_pairing(list(range(1, 9)), 2, 4)
        assert groups == [[1, 8, 3, 6], [2, 7, 4, 5]]
        assert unplaced == []

    def test_odd_count(self):
        groups, unplaced = distribute_end_pairing([1, 2, 3, 4, 5], 2, 3)
        assert groups == [[1, 5, 3], [2, 4]]
        assert unplaced == []

    def test_pairs_share_a_group(self):
        ordered = list(range(12))
        groups, _ = distribute_end_pairing(ordered, 3, 4)
        where = {item: i for i, g in enumerate(groups) for item in g}
        for i in range(len(ordered) // 2):
            assert where[ordered[i]] == where[ordered[-1 - i]]
            assert where[ordered[i]] == i % 3

    def test_stops_when_full(self):
        groups, unplaced = distribute_end_pairing([1, 2, 3, 4, 5], 2, 2)
        assert groups == [[1, 5], [2, 4]]
        assert unplaced == [3]

    def test_advances_past_full_group(self):
        groups, unplaced = distribute_end_pairing([1, 2, 3], 3, 1)
        assert groups == [[1], [3], [2]]
        assert unplaced == []

    def test_empty_list(self):
        groups, unplaced = distribute_end_pairing([], 2, 4)
        assert groups == [[], []]
        assert unplaced == []
