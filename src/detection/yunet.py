"""
Fast face detector backed by OpenCV YuNet (cv2.FaceDetectorYN).
"""

from __future__ import annotations

import logging
import os
from typing import List, Optional, Tuple

import cv2
import numpy as np

from models.detection import BoundingBox
from .base import AttributeEstimator, FaceDetector, FAST_DETECTOR
from .errors import DetectorUnavailable


class YuNetDetector(FaceDetector):
    """
    Lightweight ONNX face detector.

    The frame is resized so its long side equals ``input_size`` before
    inference; boxes are scaled back to the fed frame.
    """

    name = FAST_DETECTOR

    def __init__(
        self,
        model_path: str,
        attributes: Optional[AttributeEstimator] = None,
        nms_threshold: float = 0.3,
        top_k: int = 50,
    ):
        super().__init__(attributes)
        self.model_path = model_path
        self.nms_threshold = nms_threshold
        self.top_k = top_k
        self._net = None

    @property
    def is_loaded(self) -> bool:
        return self._net is not None

    def load(self) -> None:
        if not os.path.exists(self.model_path):
            raise DetectorUnavailable(self.name, f"model not found: {self.model_path}")
        try:
            self._net = cv2.FaceDetectorYN.create(
                self.model_path, "", (320, 320), 0.5, self.nms_threshold, self.top_k
            )
        except cv2.error as e:
            raise DetectorUnavailable(self.name, str(e)) from e
        logging.info(f"YuNet detector loaded: {self.model_path}")

    def _locate(
        self,
        frame: np.ndarray,
        input_size: int,
        score_threshold: float,
    ) -> List[Tuple[BoundingBox, float]]:
        h, w = frame.shape[:2]
        scale = input_size / float(max(w, h))
        in_w = max(1, int(round(w * scale)))
        in_h = max(1, int(round(h * scale)))
        resized = frame if (in_w, in_h) == (w, h) else cv2.resize(frame, (in_w, in_h))

        self._net.setInputSize((in_w, in_h))
        self._net.setScoreThreshold(float(score_threshold))
        _, faces = self._net.detect(resized)
        if faces is None:
            return []

        out: List[Tuple[BoundingBox, float]] = []
        for row in faces:
            x, y, fw, fh = (float(v) / scale for v in row[:4])
            score = float(row[-1])
            if score < score_threshold:
                continue
            out.append((BoundingBox.from_xywh(x, y, fw, fh), score))
        return out
