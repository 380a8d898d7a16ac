"""
Demographic classifier post-processor.

Maps a raw (age, gender probability) pair to an AgeGroup and a bias-corrected
gender. Detection models are empirically male-biased, so P(female) is boosted
in proportion to its headroom:

    corrected = min(1, raw + boost * (1 - raw))

which never lowers the probability and never exceeds 1.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from models.config import GenderCorrectionConfig
from models.detection import AgeGroup, FilteredDetection, Gender, RawDetection
from .heuristics import female_evidence

# Fixed business rules, not tunable per session
KID_MAX_AGE = 13
YOUNG_MAX_AGE = 35

MAX_FEMALE_BOOST = 0.30


def age_group_for(age: Optional[float]) -> AgeGroup:
    """kid below 13, young below 35, adult otherwise; boundaries go to the higher bucket."""
    if age is None:
        return AgeGroup.YOUNG
    if age < KID_MAX_AGE:
        return AgeGroup.KID
    if age < YOUNG_MAX_AGE:
        return AgeGroup.YOUNG
    return AgeGroup.ADULT


def boost_female_probability(raw: float, boost: float) -> float:
    raw = max(0.0, min(1.0, raw))
    boost = max(0.0, min(MAX_FEMALE_BOOST, boost))
    return min(1.0, raw + boost * (1.0 - raw))


@dataclass(frozen=True)
class GenderEstimate:
    gender: Gender
    confidence: float
    female_probability: float
    raw_female_probability: float


def resolve_gender(
    raw_female_probability: float,
    correction: GenderCorrectionConfig,
    evidence: float = 0.0,
) -> GenderEstimate:
    """
    Apply the boost, then any heuristic evidence, then pick the label.

    Args:
        raw_female_probability: Model P(female).
        correction: Boost factor and heuristic toggles.
        evidence: Non-negative heuristic weight toward female (0 when disabled).
    """
    corrected = boost_female_probability(raw_female_probability, correction.female_boost)
    if evidence > 0:
        corrected = min(1.0, corrected + min(1.0, evidence) * (1.0 - corrected))

    gender = Gender.FEMALE if corrected >= 0.5 else Gender.MALE
    return GenderEstimate(
        gender=gender,
        confidence=max(corrected, 1.0 - corrected),
        female_probability=corrected,
        raw_female_probability=max(0.0, min(1.0, raw_female_probability)),
    )


class DemographicClassifier:
    """Turns filtered raw detections into classified FilteredDetections."""

    def __init__(self, correction: Optional[GenderCorrectionConfig] = None):
        self.correction = correction or GenderCorrectionConfig()

    def classify(self, detection: RawDetection, frame: Optional[np.ndarray] = None) -> FilteredDetection:
        """
        Classify one detection whose box is already in source-frame pixels.

        Detections without attribute estimates are reported as male with
        zero confidence.
        """
        age_group = age_group_for(detection.age)
        raw_female = detection.female_probability

        if raw_female is None:
            return FilteredDetection(
                bbox=detection.bbox,
                score=detection.score,
                gender=Gender.MALE,
                age_group=age_group,
                confidence=0.0,
                raw_age=detection.age,
                detector=detection.detector,
            )

        evidence = 0.0
        if self.correction.heuristics_enabled:
            evidence = female_evidence(frame, detection.bbox, self.correction)

        estimate = resolve_gender(raw_female, self.correction, evidence)
        return FilteredDetection(
            bbox=detection.bbox,
            score=detection.score,
            gender=estimate.gender,
            age_group=age_group,
            confidence=estimate.confidence,
            raw_age=detection.age,
            raw_female_probability=estimate.raw_female_probability,
            detector=detection.detector,
        )
