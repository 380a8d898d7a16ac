"""
Texture and skin-tone heuristics for rejecting flat or non-skin regions.

Best-effort only: an empty or unreadable crop is never rejected here.
"""

from __future__ import annotations

import cv2
import numpy as np

from models.config import TextureFilterConfig
from models.detection import BoundingBox

# YCrCb skin range (Cr, Cb); Y unconstrained
SKIN_LOWER = np.array([0, 133, 77], dtype=np.uint8)
SKIN_UPPER = np.array([255, 173, 127], dtype=np.uint8)

# Mean absolute channel difference under which a crop is treated as grayscale (IR)
GRAYSCALE_TOLERANCE = 4.0


def _crop(frame: np.ndarray, bbox: BoundingBox) -> np.ndarray:
    h, w = frame.shape[:2]
    x1, y1 = max(0, int(bbox.x1)), max(0, int(bbox.y1))
    x2, y2 = min(w, int(round(bbox.x2))), min(h, int(round(bbox.y2)))
    return frame[y1:y2, x1:x2]


def edge_variance(crop: np.ndarray) -> float:
    """Variance of the Laplacian; low values mean a flat/uniform surface."""
    gray = crop if crop.ndim == 2 else cv2.cvtColor(crop, cv2.COLOR_BGR2GRAY)
    return float(cv2.Laplacian(gray, cv2.CV_64F).var())


def is_grayscale(crop: np.ndarray) -> bool:
    if crop.ndim == 2 or crop.shape[2] == 1:
        return True
    c = crop.astype(np.int16)
    diff = np.abs(c[..., 0] - c[..., 1]) + np.abs(c[..., 1] - c[..., 2])
    return float(diff.mean()) < GRAYSCALE_TOLERANCE


def skin_ratio(crop: np.ndarray) -> float:
    """Fraction of pixels falling in the YCrCb skin-tone range."""
    ycrcb = cv2.cvtColor(crop, cv2.COLOR_BGR2YCrCb)
    mask = cv2.inRange(ycrcb, SKIN_LOWER, SKIN_UPPER)
    return float(np.count_nonzero(mask)) / float(mask.size)


def looks_like_face(frame: np.ndarray, bbox: BoundingBox, cfg: TextureFilterConfig) -> bool:
    crop = _crop(frame, bbox)
    if crop.size == 0 or min(crop.shape[:2]) < 3:
        return True

    if edge_variance(crop) < cfg.min_edge_variance:
        return False

    # Skin hue is meaningless on IR/grayscale footage
    if cfg.skin_check and not is_grayscale(crop):
        if skin_ratio(crop) < cfg.min_skin_ratio:
            return False

    return True
