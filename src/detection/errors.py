"""
Detection error taxonomy.

All of these are contained within a single detection cycle except
NoUsableDetector, which disables detection for the rest of the session.
"""

from __future__ import annotations


class DetectionError(RuntimeError):
    """Base class for detection pipeline errors."""


class DetectorUnavailable(DetectionError):
    """A specific detector's weights are not loaded."""

    def __init__(self, detector: str, reason: str = "weights not loaded"):
        super().__init__(f"Detector '{detector}' unavailable: {reason}")
        self.detector = detector
        self.reason = reason


class DetectionTimeout(DetectionError):
    """A detection cycle exceeded its time budget."""

    def __init__(self, timeout_s: float):
        super().__init__(f"Detection cycle exceeded {timeout_s:.1f}s")
        self.timeout_s = timeout_s


class VideoSourceNotReady(DetectionError):
    """The frame source cannot be decoded yet."""


class NoUsableDetector(DetectionError):
    """Every configured detector failed to load."""
