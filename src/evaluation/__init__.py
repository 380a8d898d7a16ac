"""
Ground-truth labeling and accuracy metrics for detection output.
"""

from .labels import (
    EvaluationMetrics,
    GenderConfusion,
    GroundTruthLabel,
    LabelStore,
    compute_metrics,
)

__all__ = [
    "EvaluationMetrics",
    "GenderConfusion",
    "GroundTruthLabel",
    "LabelStore",
    "compute_metrics",
]
