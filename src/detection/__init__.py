"""
Face detection: detector adapters, model loading and the multi-pass
orchestrator.
"""

from .base import ACCURATE_DETECTOR, FAST_DETECTOR, FaceDetector
from .errors import (
    DetectionError,
    DetectionTimeout,
    DetectorUnavailable,
    NoUsableDetector,
    VideoSourceNotReady,
)
from .loader import DetectorSet, LoadResult, load_detectors
from .orchestrator import MultiPassOrchestrator, PassResult

__all__ = [
    "ACCURATE_DETECTOR",
    "FAST_DETECTOR",
    "FaceDetector",
    "DetectionError",
    "DetectionTimeout",
    "DetectorUnavailable",
    "NoUsableDetector",
    "VideoSourceNotReady",
    "DetectorSet",
    "LoadResult",
    "load_detectors",
    "MultiPassOrchestrator",
    "PassResult",
]
