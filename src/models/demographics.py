"""
Demographic snapshot model handed to the ad-queue consumer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable


@dataclass(frozen=True)
class DemographicCounts:
    """
    Point-in-time counts over live confirmed tracks.

    Derived every detection cycle; never the source of truth.
    """
    male: int = 0
    female: int = 0
    kid: int = 0
    young: int = 0
    adult: int = 0

    @property
    def total(self) -> int:
        return self.male + self.female

    @classmethod
    def from_results(cls, results: Iterable[Any]) -> "DemographicCounts":
        """Count anything exposing ``gender`` and ``age_group`` attributes."""
        counts = {"male": 0, "female": 0, "kid": 0, "young": 0, "adult": 0}
        for r in results:
            counts[r.gender.value] += 1
            counts[r.age_group.value] += 1
        return cls(**counts)

    def to_dict(self) -> Dict[str, int]:
        return {
            "male": self.male,
            "female": self.female,
            "kid": self.kid,
            "young": self.young,
            "adult": self.adult,
        }
