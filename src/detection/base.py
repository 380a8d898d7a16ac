"""
Face detector interface.

Every backend produces the same normalized RawDetection shape, in the pixel
space of the frame it was fed, regardless of the underlying model:
- tiny: fast/lightweight detector for few-face, low-latency scenes
- ssd:  slower detector with higher recall on small or many faces
"""

from __future__ import annotations

import logging
import threading
from typing import List, Optional, Protocol, Tuple

import numpy as np

from models.detection import BoundingBox, Gender, RawDetection
from .errors import DetectorUnavailable

FAST_DETECTOR = "tiny"
ACCURATE_DETECTOR = "ssd"


class AttributeEstimator(Protocol):
    """Estimates (age, gender label, probability of that label) from a face crop."""

    name: str

    @property
    def is_loaded(self) -> bool:
        ...

    def estimate(self, face: np.ndarray) -> Tuple[float, Gender, float]:
        ...


def crop_face(frame: np.ndarray, bbox: BoundingBox) -> Optional[np.ndarray]:
    """Crop a box out of the frame, clipped to the frame bounds."""
    h, w = frame.shape[:2]
    x1 = max(0, int(bbox.x1))
    y1 = max(0, int(bbox.y1))
    x2 = min(w, int(round(bbox.x2)))
    y2 = min(h, int(round(bbox.y2)))
    if x2 - x1 < 2 or y2 - y1 < 2:
        return None
    return frame[y1:y2, x1:x2]


class FaceDetector:
    """
    Base class for detector adapters.

    Subclasses implement load() and _locate(); detect() guards against
    unloaded weights and attaches age/gender estimates when an attribute
    estimator is available.
    """

    name: str = ""

    def __init__(self, attributes: Optional[AttributeEstimator] = None):
        self.attributes = attributes
        self._lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        raise NotImplementedError

    def load(self) -> None:
        raise NotImplementedError

    def detect(
        self,
        frame: np.ndarray,
        input_size: int,
        score_threshold: float,
    ) -> List[RawDetection]:
        """
        Detect faces in the frame.

        Args:
            frame: BGR image (already cropped/enhanced by the caller).
            input_size: Detector-internal resize target, not the frame size.
            score_threshold: Confidence floor for returned boxes.

        Raises:
            DetectorUnavailable: If the weights are not loaded.
        """
        if not self.is_loaded:
            raise DetectorUnavailable(self.name)

        # Model objects are not safe for concurrent use
        with self._lock:
            located = self._locate(frame, input_size, score_threshold)
            return [self._describe(frame, bbox, score) for bbox, score in located]

    def _locate(
        self,
        frame: np.ndarray,
        input_size: int,
        score_threshold: float,
    ) -> List[Tuple[BoundingBox, float]]:
        raise NotImplementedError

    def _describe(self, frame: np.ndarray, bbox: BoundingBox, score: float) -> RawDetection:
        estimator = self.attributes
        if estimator is None or not estimator.is_loaded:
            return RawDetection(bbox=bbox, score=score, detector=self.name)

        face = crop_face(frame, bbox)
        if face is None:
            return RawDetection(bbox=bbox, score=score, detector=self.name)

        try:
            age, gender, probability = estimator.estimate(face)
        except Exception as e:
            logging.warning(f"[DETECT] {estimator.name} attribute estimation failed: {e}")
            return RawDetection(bbox=bbox, score=score, detector=self.name)

        return RawDetection(
            bbox=bbox,
            score=score,
            age=age,
            gender=gender,
            gender_probability=probability,
            detector=self.name,
        )
