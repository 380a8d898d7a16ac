"""
Multi-pass detection orchestrator.

One detection cycle runs up to three passes, strictly in sequence, and
returns the first that yields detections:

1. standard: configured detector(s) on the (ROI-cropped) raw frame
2. rescue:   enhanced + upscaled frame, accurate detector then fast detector
             at a larger input size (CCTV profile with rescue enabled only)
3. fallback: fast detector at an alternate input size, lowest threshold

At most one cycle is in flight at a time; a cycle that exceeds its time
budget is abandoned and reported as zero detections.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from models.config import DetectionConfig
from models.detection import RawDetection
from preprocessing.enhance import FrameTransform, PreparedFrame, prepare_frame
from .base import ACCURATE_DETECTOR, FAST_DETECTOR
from .errors import DetectionTimeout, DetectorUnavailable, NoUsableDetector
from .loader import DetectorSet, MODE_DETECTORS


@dataclass
class PassResult:
    """
    Outcome of one detection cycle.

    Attributes:
        detections: Raw detections in the fed frame's pixel space.
        pass_used: 1, 2 or 3; 0 when no pass produced detections.
        detector_used: Detector that produced the returned detections.
        transform: Maps detection boxes back to source-frame pixels.
        frame_size: Source frame (width, height).
        preprocessed: Whether the returned pass ran on an enhanced frame.
        upscaled: Whether the returned pass ran on an upscaled frame.
        roi_active: Whether an ROI crop was applied.
        timed_out: Whether the cycle was abandoned on timeout.
    """
    detections: List[RawDetection] = field(default_factory=list)
    pass_used: int = 0
    detector_used: str = ""
    transform: FrameTransform = field(default_factory=FrameTransform)
    frame_size: Tuple[int, int] = (0, 0)
    preprocessed: bool = False
    upscaled: bool = False
    roi_active: bool = False
    timed_out: bool = False

    @property
    def raw_count(self) -> int:
        return len(self.detections)


class MultiPassOrchestrator:
    """Selects the first usable detection pass for a frame."""

    def __init__(self, detectors: DetectorSet, config: DetectionConfig, timeout_s: float = 10.0):
        self.detectors = detectors
        self.config = config
        self.timeout_s = timeout_s
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def rescue_enabled(self) -> bool:
        return self.config.is_cctv and self.config.rescue_passes

    @property
    def standard_threshold(self) -> float:
        cfg = self.config
        return max(cfg.min_threshold_floor, max(cfg.min_face_score, cfg.sensitivity) - cfg.threshold_margin)

    @property
    def rescue_threshold(self) -> float:
        return max(self.config.min_threshold_floor, self.standard_threshold - self.config.rescue_threshold_drop)

    @property
    def fallback_threshold(self) -> float:
        return max(self.config.min_threshold_floor, self.standard_threshold - self.config.fallback_threshold_drop)

    async def run_cycle(self, frame: np.ndarray) -> Optional[PassResult]:
        """
        Run one detection cycle.

        Returns None without touching any detector if a previous cycle is
        still in flight.

        Raises:
            NoUsableDetector: If every detector has become unavailable.
        """
        if self._in_flight:
            logging.debug("[DETECT] Previous cycle still in flight, skipping tick")
            return None

        self._in_flight = True
        try:
            return await asyncio.wait_for(self._run_passes(frame), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            err = DetectionTimeout(self.timeout_s)
            logging.warning(f"[DETECT] {err}; treating cycle as zero detections")
            h, w = frame.shape[:2]
            return PassResult(frame_size=(w, h), roi_active=self.config.roi.enabled, timed_out=True)
        finally:
            self._in_flight = False

    async def _run_passes(self, frame: np.ndarray) -> PassResult:
        cfg = self.config
        h, w = frame.shape[:2]

        base = prepare_frame(frame, None, 1.0, cfg.roi)
        threshold = self.standard_threshold
        for name in self._standard_order():
            detections = await self._attempt(name, base.image, cfg.standard_input_size, threshold)
            if detections:
                return self._result(1, name, detections, base, (w, h))

        if not self.rescue_enabled:
            return self._empty(base, (w, h))

        enhanced = prepare_frame(frame, cfg.preprocessing, cfg.upscale, cfg.roi)
        threshold = self.rescue_threshold
        logging.debug(
            f"[PASS] Pass 1 empty, rescue on {enhanced.size[0]}x{enhanced.size[1]} "
            f"at threshold {threshold:.2f}"
        )
        rescue_order = [ACCURATE_DETECTOR, FAST_DETECTOR]
        for name in rescue_order:
            detections = await self._attempt(name, enhanced.image, cfg.rescue_input_size, threshold)
            if detections:
                return self._result(2, name, detections, enhanced, (w, h))

        threshold = self.fallback_threshold
        name = self._fast_or_remaining()
        if name is not None:
            detections = await self._attempt(name, enhanced.image, cfg.fallback_input_size, threshold)
            if detections:
                return self._result(3, name, detections, enhanced, (w, h))

        return self._empty(base, (w, h))

    def _standard_order(self) -> List[str]:
        """Detectors to try in pass 1, fast first; falls back to whatever is loaded."""
        order = [n for n in MODE_DETECTORS.get(self.config.detector, ()) if n in self.detectors.available]
        if order:
            return order
        if not self.detectors.has_usable:
            raise NoUsableDetector("All detectors are unavailable")
        return sorted(self.detectors.available, key=lambda n: n != FAST_DETECTOR)

    def _fast_or_remaining(self) -> Optional[str]:
        available = self.detectors.available
        if FAST_DETECTOR in available:
            return FAST_DETECTOR
        return next(iter(sorted(available)), None)

    async def _attempt(
        self,
        name: str,
        image: np.ndarray,
        input_size: int,
        threshold: float,
    ) -> List[RawDetection]:
        detector = self.detectors.get(name)
        if detector is None:
            return []
        try:
            return await asyncio.to_thread(detector.detect, image, input_size, threshold)
        except DetectorUnavailable as e:
            if self.detectors.exclude(name, e.reason):
                logging.warning(f"[DETECT] {e}; excluding '{name}' for this session")
            if not self.detectors.has_usable:
                raise NoUsableDetector("All detectors are unavailable") from e
            return []

    def _result(
        self,
        pass_used: int,
        detector: str,
        detections: List[RawDetection],
        prepared: PreparedFrame,
        frame_size: Tuple[int, int],
    ) -> PassResult:
        if self.config.debug_mode:
            logging.debug(f"[PASS] pass={pass_used} detector={detector} raw={len(detections)}")
        return PassResult(
            detections=list(detections),
            pass_used=pass_used,
            detector_used=detector,
            transform=prepared.transform,
            frame_size=frame_size,
            preprocessed=prepared.enhanced,
            upscaled=prepared.upscaled,
            roi_active=prepared.roi_active,
        )

    def _empty(self, prepared: PreparedFrame, frame_size: Tuple[int, int]) -> PassResult:
        return PassResult(
            transform=prepared.transform,
            frame_size=frame_size,
            roi_active=prepared.roi_active,
        )
