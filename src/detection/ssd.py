"""
Accurate face detector backed by the OpenCV res10 SSD (Caffe) model.
"""

from __future__ import annotations

import logging
import os
from typing import List, Optional, Tuple

import cv2
import numpy as np

from models.detection import BoundingBox
from .base import ACCURATE_DETECTOR, AttributeEstimator, FaceDetector
from .errors import DetectorUnavailable

# BGR mean the res10 model was trained with
SSD_MEAN = (104.0, 177.0, 123.0)


class SsdDetector(FaceDetector):
    """Single-shot face detector; higher recall on small faces, higher cost."""

    name = ACCURATE_DETECTOR

    def __init__(
        self,
        prototxt_path: str,
        weights_path: str,
        attributes: Optional[AttributeEstimator] = None,
    ):
        super().__init__(attributes)
        self.prototxt_path = prototxt_path
        self.weights_path = weights_path
        self._net = None

    @property
    def is_loaded(self) -> bool:
        return self._net is not None

    def load(self) -> None:
        for path in (self.prototxt_path, self.weights_path):
            if not os.path.exists(path):
                raise DetectorUnavailable(self.name, f"model not found: {path}")
        try:
            self._net = cv2.dnn.readNetFromCaffe(self.prototxt_path, self.weights_path)
        except cv2.error as e:
            raise DetectorUnavailable(self.name, str(e)) from e
        logging.info(f"SSD detector loaded: {self.weights_path}")

    def _locate(
        self,
        frame: np.ndarray,
        input_size: int,
        score_threshold: float,
    ) -> List[Tuple[BoundingBox, float]]:
        h, w = frame.shape[:2]
        blob = cv2.dnn.blobFromImage(
            frame, 1.0, (input_size, input_size), SSD_MEAN, swapRB=False, crop=False
        )
        self._net.setInput(blob)
        detections = self._net.forward()

        out: List[Tuple[BoundingBox, float]] = []
        for i in range(detections.shape[2]):
            score = float(detections[0, 0, i, 2])
            if score < score_threshold:
                continue
            x1, y1, x2, y2 = detections[0, 0, i, 3:7] * np.array([w, h, w, h])
            out.append((BoundingBox(float(x1), float(y1), float(x2), float(y2)), score))
        return out
