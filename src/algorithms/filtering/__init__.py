"""
False-positive filtering for raw face detections.

- geometric: score, size, aspect-ratio and containment rules (hard gate)
- texture:   edge-variance and skin-tone checks (best-effort, opt-in)
"""

from .geometric import FaceFilter, FilterThresholds, rejection_reason
from .texture import edge_variance, looks_like_face, skin_ratio

__all__ = [
    "FaceFilter",
    "FilterThresholds",
    "rejection_reason",
    "edge_variance",
    "looks_like_face",
    "skin_ratio",
]
