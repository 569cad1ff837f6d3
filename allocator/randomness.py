"""
Shuffling backed by the operating system CSPRNG.

Shuffles decide who plays whom and which maps are played, so they must not be
predictable from earlier output the way a seeded PRNG is.
"""
import secrets
from typing import List, MutableSequence, Sequence, TypeVar

T = TypeVar('T')


def secure_shuffle(sequence: MutableSequence[T]) -> MutableSequence[T]:
    """Fisher-Yates shuffle in place; returns the same sequence."""
    for i in range(len(sequence) - 1, 0, -1):
        j = secrets.randbelow(i + 1)
        sequence[i], sequence[j] = sequence[j], sequence[i]
    return sequence


def secure_sample(sequence: Sequence[T], k: int) -> List[T]:
    """Return ``k`` distinct elements in random order without touching the input."""
    pool = list(sequence)
    secure_shuffle(pool)
    return pool[:max(0, k)]
