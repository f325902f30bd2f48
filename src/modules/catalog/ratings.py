"""Rating aggregate arithmetic.

``counts`` is always five integers ordered from 5 stars down to 1 star.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Sequence

from modules.core.money import round2

STARS = (5, 4, 3, 2, 1)


def add_vote(counts: Sequence[int], rating: int) -> List[int]:
    if rating not in STARS:
        raise ValueError(f"rating must be between 1 and 5, got {rating!r}")
    updated = list(counts) if len(counts) == 5 else [0, 0, 0, 0, 0]
    updated[5 - rating] += 1
    return updated


def weighted_average(counts: Sequence[int]) -> Decimal:
    total = sum(counts)
    if total == 0:
        return Decimal("0.00")
    weighted = sum(star * votes for star, votes in zip(STARS, counts))
    return round2(Decimal(weighted) / Decimal(total))
