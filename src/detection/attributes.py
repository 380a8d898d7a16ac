"""
Age and gender estimation with the OpenCV DNN Caffe age/gender nets.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Tuple

import cv2
import numpy as np

from models.detection import Gender
from .errors import DetectorUnavailable

# Output buckets of the age net, in years
AGE_BUCKETS = [(0, 2), (4, 6), (8, 12), (15, 20), (25, 32), (38, 43), (48, 53), (60, 100)]
GENDER_LABELS = [Gender.MALE, Gender.FEMALE]

# Mean values used to normalize input images for the DNNs
MODEL_MEAN_VALUES = (78.4263377603, 87.7689143744, 114.895847746)
INPUT_SIZE = (227, 227)


def expected_age(probabilities: np.ndarray) -> float:
    """Probability-weighted midpoint of the age buckets."""
    probs = np.asarray(probabilities, dtype=np.float64).ravel()
    total = probs.sum()
    if total <= 0:
        return 30.0
    midpoints = np.array([(lo + hi) / 2.0 for lo, hi in AGE_BUCKETS])
    return float(np.dot(probs / total, midpoints))


class CaffeAgeGenderEstimator:
    """Predicts a raw age (years) and gender probability for a face crop."""

    name = "age_gender"

    def __init__(
        self,
        age_prototxt: str,
        age_weights: str,
        gender_prototxt: str,
        gender_weights: str,
    ):
        self.age_prototxt = age_prototxt
        self.age_weights = age_weights
        self.gender_prototxt = gender_prototxt
        self.gender_weights = gender_weights
        self._age_net = None
        self._gender_net = None
        # Shared by every detector adapter; the nets are not safe for concurrent use
        self._lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._age_net is not None and self._gender_net is not None

    def load(self) -> None:
        paths = (self.age_prototxt, self.age_weights, self.gender_prototxt, self.gender_weights)
        for path in paths:
            if not os.path.exists(path):
                raise DetectorUnavailable(self.name, f"model not found: {path}")
        try:
            self._age_net = cv2.dnn.readNet(self.age_weights, self.age_prototxt)
            self._gender_net = cv2.dnn.readNet(self.gender_weights, self.gender_prototxt)
        except cv2.error as e:
            self._age_net = self._gender_net = None
            raise DetectorUnavailable(self.name, str(e)) from e
        logging.info("Age/gender estimator loaded")

    def estimate(self, face: np.ndarray) -> Tuple[float, Gender, float]:
        blob = cv2.dnn.blobFromImage(face, 1.0, INPUT_SIZE, MODEL_MEAN_VALUES, swapRB=False)

        with self._lock:
            self._gender_net.setInput(blob)
            gender_probs = self._gender_net.forward()[0]
            self._age_net.setInput(blob)
            age_probs = self._age_net.forward()[0]
        gender_idx = int(np.argmax(gender_probs))

        return expected_age(age_probs), GENDER_LABELS[gender_idx], float(gender_probs[gender_idx])
