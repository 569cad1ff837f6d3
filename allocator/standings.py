"""
Read-side helpers for displaying a stage: points tables, curated ratings and
map popularity.
"""
from typing import Dict, Iterable, List, Mapping

from .candidates import GroupAssignment, RatingEntry


def stage_rating_table(groups: Iterable[GroupAssignment], points: Mapping[str, float]) -> List[Dict]:
    """
    Rank a stage's participants by points, fewest first.

    Players are de-duplicated across groups; anyone without a points value is
    left out. Ties fall back to a case-insensitive name comparison.
    """
    seen = set()
    rows = []
    for group in groups:
        for candidate in group.players:
            key = candidate.player.key
            if not key or key in seen or key not in points:
                continue
            seen.add(key)
            rows.append({
                'name': candidate.player.name,
                'key': key,
                'points': points[key],
            })

    rows.sort(key=lambda r: (r['points'], r['name'].casefold()))
    for i, row in enumerate(rows):
        row['position'] = i + 1
    return rows


def sort_defined_rating(entries: Iterable[RatingEntry]) -> List[RatingEntry]:
    return sorted(entries, key=lambda e: (e.rank, e.player.name.casefold()))


def map_popularity(groups: Iterable[GroupAssignment]) -> List[Dict]:
    """How often each map was picked across groups, most used first."""
    counts: Dict[str, Dict] = {}
    for group in groups:
        for raw in group.maps:
            name = str(raw or '').strip()
            if not name:
                continue
            row = counts.setdefault(name.casefold(), {'name': name, 'count': 0})
            row['count'] += 1

    return sorted(counts.values(), key=lambda r: (-r['count'], r['name'].casefold()))
