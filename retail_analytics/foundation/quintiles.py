"""Rank-then-bucket scoring (``NTILE``) for RFM quintiles.

Buckets are assigned by rank position, never by value equality, so a
population with heavily duplicated values still spreads across buckets.
Ordering is made deterministic by a secondary sort on the customer id.

Bucket sizes follow SQL ``NTILE`` semantics: with ``n`` customers and
``k`` buckets, every bucket holds ``n // k`` customers and the first
``n % k`` buckets hold one extra. With fewer customers than buckets the
scores are simply ``1..n``.
"""

from __future__ import annotations

from typing import Hashable, Mapping, TypeVar

Key = TypeVar("Key", bound=Hashable)


def bucket_for_position(position: int, population: int, buckets: int) -> int:
    """Return the 1-based bucket for a 0-based rank position.

    >>> [bucket_for_position(p, 7, 5) for p in range(7)]
    [1, 1, 2, 2, 3, 4, 5]
    """
    if buckets <= 0:
        raise ValueError(f"buckets must be positive, got {buckets}")
    if not 0 <= position < population:
        raise ValueError(
            f"position must be in [0, {population}), got {position}"
        )
    size, remainder = divmod(population, buckets)
    large_span = remainder * (size + 1)
    if position < large_span:
        return position // (size + 1) + 1
    return remainder + (position - large_span) // size + 1


def ntile(
    values: Mapping[Key, float],
    buckets: int = 5,
    *,
    descending: bool = False,
) -> dict[Key, int]:
    """Assign each key to one of ``buckets`` equal-count rank buckets.

    Parameters
    ----------
    values:
        Mapping of key (customer id) to the value being ranked.
    buckets:
        Number of buckets (5 for quintiles).
    descending:
        Rank largest values first. Keys are always ordered ascending as the
        tie-breaker, regardless of direction.

    Returns
    -------
    dict
        Mapping of key to bucket number in ``[1, buckets]``. Bucket 1 holds
        the first-ranked keys.

    Examples
    --------
    >>> ntile({"C1": 10, "C2": 30, "C3": 20}, buckets=5)
    {'C1': 1, 'C3': 2, 'C2': 3}
    >>> ntile({"C1": 10, "C2": 30, "C3": 20}, buckets=5, descending=True)
    {'C2': 1, 'C3': 2, 'C1': 3}
    """
    if buckets <= 0:
        raise ValueError(f"buckets must be positive, got {buckets}")

    # Two stable sorts: key ascending first, then value in the requested direction.
    ordered = sorted(values, key=lambda k: k)
    ordered.sort(key=lambda k: values[k], reverse=descending)

    population = len(ordered)
    return {
        key: bucket_for_position(position, population, buckets)
        for position, key in enumerate(ordered)
    }
