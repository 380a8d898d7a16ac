"""
Geometric/score filter.

A detection survives iff every rule holds, evaluated in source-frame pixels
after undoing any upscale and ROI offset. The rules are independent AND
conditions, so loosening any threshold can only admit more detections.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import List, Optional, Tuple

import numpy as np

from models.config import DetectionConfig, TextureFilterConfig
from models.detection import BoundingBox, RawDetection
from preprocessing.enhance import FrameTransform
from .texture import looks_like_face


@dataclass(frozen=True)
class FilterThresholds:
    """Numeric bounds for the geometric/score rules."""
    min_score: float = 0.4
    min_size_px: float = 40
    min_size_percent: float = 2.0
    max_size_percent: float = 35.0
    aspect_ratio_min: float = 0.6
    aspect_ratio_max: float = 1.8

    @classmethod
    def from_config(cls, cfg: DetectionConfig) -> "FilterThresholds":
        return cls(
            min_score=cfg.effective_min_score,
            min_size_px=cfg.min_face_size_px,
            min_size_percent=cfg.min_face_size_percent,
            max_size_percent=cfg.max_face_size_percent,
            aspect_ratio_min=cfg.aspect_ratio_min,
            aspect_ratio_max=cfg.aspect_ratio_max,
        )


def rejection_reason(
    bbox: BoundingBox,
    score: float,
    frame_width: int,
    frame_height: int,
    thresholds: FilterThresholds,
) -> Optional[str]:
    """
    Return the first rule a detection fails, or None if it passes.

    Args:
        bbox: Box in source-frame pixels.
        score: Detector confidence.
        frame_width: Source frame width.
        frame_height: Source frame height.
        thresholds: Bounds to apply.
    """
    if score < thresholds.min_score:
        return "score"

    if bbox.width < thresholds.min_size_px or bbox.height < thresholds.min_size_px:
        return "min_size_px"

    frame_area = float(frame_width * frame_height)
    area_percent = bbox.area / frame_area * 100.0 if frame_area > 0 else 0.0
    if area_percent < thresholds.min_size_percent:
        return "min_size_percent"
    if area_percent > thresholds.max_size_percent:
        return "max_size_percent"

    aspect = bbox.aspect_ratio
    if not (thresholds.aspect_ratio_min <= aspect <= thresholds.aspect_ratio_max):
        return "aspect_ratio"

    if bbox.x1 < 0 or bbox.y1 < 0 or bbox.x2 > frame_width or bbox.y2 > frame_height:
        return "out_of_frame"

    return None


class FaceFilter:
    """The single false-positive guard between the detector and the tracker."""

    def __init__(
        self,
        thresholds: FilterThresholds,
        texture: Optional[TextureFilterConfig] = None,
    ):
        self.thresholds = thresholds
        self.texture = texture or TextureFilterConfig()

    @classmethod
    def from_config(cls, cfg: DetectionConfig) -> "FaceFilter":
        return cls(FilterThresholds.from_config(cfg), cfg.texture_filter)

    def apply(
        self,
        detections: List[RawDetection],
        transform: FrameTransform,
        frame_size: Tuple[int, int],
        frame: Optional[np.ndarray] = None,
    ) -> List[RawDetection]:
        """
        Rescale detections to source-frame pixels and drop those failing a rule.

        Args:
            detections: Raw detections in detector-frame pixels.
            transform: Geometry of the frame the detector was fed.
            frame_size: Source frame (width, height).
            frame: Source frame, needed only for the texture check.

        Returns:
            Surviving detections with boxes in source-frame pixels.
        """
        frame_w, frame_h = frame_size
        kept: List[RawDetection] = []
        for det in detections:
            bbox = transform.to_source(det.bbox)
            reason = rejection_reason(bbox, det.score, frame_w, frame_h, self.thresholds)
            if reason is None and self.texture.enabled and frame is not None:
                if not looks_like_face(frame, bbox, self.texture):
                    reason = "texture"
            if reason is not None:
                logging.debug(
                    f"[FILTER] rejected ({reason}): score={det.score:.2f} "
                    f"box={tuple(round(v) for v in bbox.as_xywh())}"
                )
                continue
            kept.append(replace(det, bbox=bbox))
        return kept
