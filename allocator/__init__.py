"""
Bracket allocation engine.

Partitions a pool of players into capacity-bounded groups:
- qualification groups from skill tiers (classic, recommended-size, fixed-count)
- finals groups from qualification placements or a curated rating
- superfinal groups from finals points or a curated rating

Pure computation: no I/O, no persistence, no state kept between calls.
"""
from .errors import (
    FormationError,
    InsufficientMaps,
    EmptyPool,
    UnsatisfiableCapacity,
    MissingFixedCount,
    ZeroGroups,
)
from .stages import (
    form_qualification,
    form_finals_from_results,
    form_finals_from_rating,
    form_superfinal_from_points,
    form_superfinal_from_rating,
)
