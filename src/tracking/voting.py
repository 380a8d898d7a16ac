"""
Vote aggregation for per-track demographic stabilization.
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Optional, TypeVar

T = TypeVar("T")


def majority_vote(observations: Iterable[T]) -> Optional[T]:
    """
    Most frequent observation in the window.

    Ties go to the tied label observed most recently. Observations are
    expected oldest first.
    """
    window = list(observations)
    if not window:
        return None

    counts = Counter(window)
    best = max(counts.values())
    for label in reversed(window):
        if counts[label] == best:
            return label
    return window[-1]
