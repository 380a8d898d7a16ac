"""
Post-process stage: filter raw detections, then classify the survivors.

This stage:
- Maps boxes from the detector's frame back to source-frame pixels
- Drops detections failing any geometric/score rule
- Buckets age and applies the gender bias correction
- Does NOT touch tracks
"""

from __future__ import annotations

from typing import List

import numpy as np

from algorithms.demographics.classifier import DemographicClassifier
from algorithms.filtering.geometric import FaceFilter
from detection.orchestrator import PassResult
from models.config import DetectionConfig
from models.detection import FilteredDetection


class PostProcessStage:
    """
    Example:
        stage = PostProcessStage.from_config(config)
        filtered = stage.process(pass_result, frame)
    """

    def __init__(self, face_filter: FaceFilter, classifier: DemographicClassifier):
        self.face_filter = face_filter
        self.classifier = classifier

    @classmethod
    def from_config(cls, config: DetectionConfig) -> "PostProcessStage":
        return cls(FaceFilter.from_config(config), DemographicClassifier(config.gender_correction))

    def process(self, pass_result: PassResult, frame: np.ndarray) -> List[FilteredDetection]:
        kept = self.face_filter.apply(
            pass_result.detections,
            pass_result.transform,
            pass_result.frame_size,
            frame,
        )
        return [self.classifier.classify(det, frame) for det in kept]
