"""
Advisory heuristics that add evidence toward the female hypothesis.

Both signals are in [0, 1] and are weighted by the correction config; they
adjust the model's estimate but never replace it.
"""

from __future__ import annotations

from typing import Optional

import cv2
import numpy as np

from models.config import GenderCorrectionConfig
from models.detection import BoundingBox

# Value (HSV) below which a pixel counts as dark hair
HAIR_DARK_VALUE = 80
# Face width/height below which the shape signal starts contributing
NARROW_FACE_ASPECT = 0.85


def shape_evidence(bbox: BoundingBox) -> float:
    """Narrower face boxes score higher."""
    aspect = bbox.aspect_ratio
    if aspect <= 0:
        return 0.0
    return float(np.clip((NARROW_FACE_ASPECT - aspect) / 0.15, 0.0, 1.0))


def hair_evidence(frame: np.ndarray, bbox: BoundingBox) -> float:
    """
    Share of dark, textured pixels in strips beside the lower half of the face.

    Long hair falls on both sides of the jaw line; short hair leaves those
    strips as background or neck/shoulders.
    """
    h, w = frame.shape[:2]
    strip_w = max(2, int(bbox.width * 0.25))
    top = int(max(0, bbox.y1 + bbox.height * 0.5))
    bottom = int(min(h, bbox.y2 + bbox.height * 0.3))
    if bottom - top < 2:
        return 0.0

    strips = []
    left_x1 = int(max(0, bbox.x1 - strip_w))
    if int(bbox.x1) - left_x1 >= 2:
        strips.append(frame[top:bottom, left_x1:int(bbox.x1)])
    right_x2 = int(min(w, bbox.x2 + strip_w))
    if right_x2 - int(bbox.x2) >= 2:
        strips.append(frame[top:bottom, int(bbox.x2):right_x2])
    if not strips:
        return 0.0

    ratios = []
    for strip in strips:
        if strip.ndim == 2:
            value = strip
        else:
            value = cv2.cvtColor(strip, cv2.COLOR_BGR2HSV)[..., 2]
        ratios.append(float(np.count_nonzero(value < HAIR_DARK_VALUE)) / float(value.size))

    # Both sides need hair; use the weaker side
    return float(np.clip((min(ratios) - 0.3) / 0.4, 0.0, 1.0))


def female_evidence(
    frame: Optional[np.ndarray],
    bbox: BoundingBox,
    correction: GenderCorrectionConfig,
) -> float:
    evidence = correction.shape_weight * shape_evidence(bbox)
    if frame is not None:
        evidence += correction.hair_weight * hair_evidence(frame, bbox)
    return max(0.0, evidence)
