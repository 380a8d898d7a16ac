"""
Demographic post-processing: age bucketing and gender bias correction.
"""

from .classifier import (
    DemographicClassifier,
    GenderEstimate,
    age_group_for,
    boost_female_probability,
    resolve_gender,
)
from .heuristics import female_evidence, hair_evidence, shape_evidence

__all__ = [
    "DemographicClassifier",
    "GenderEstimate",
    "age_group_for",
    "boost_female_probability",
    "resolve_gender",
    "female_evidence",
    "hair_evidence",
    "shape_evidence",
]
