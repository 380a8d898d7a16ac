"""
Per-cycle diagnostics. Pure telemetry; no control logic reads it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class DebugInfo:
    """
    Diagnostic record produced once per detection cycle.

    Attributes:
        fps: Detection cycles per second (smoothed).
        latency_ms: Wall time of this cycle.
        backend: Inference backend label.
        detector_used: Detector that produced the final pass ("" if none).
        pass_used: 1 standard, 2 rescue, 3 fallback, 0 when no pass yielded results.
        raw_detections: Detections returned by the winning pass.
        filtered_detections: Detections that survived filtering.
        tracked_faces: Live tracks after the update.
        preprocessing: Whether an enhanced frame was used.
        upscaled: Whether the winning pass ran on an upscaled frame.
        frame_size: Source frame (width, height).
        roi_active: Whether detection was restricted to an ROI.
        timed_out: Whether the cycle hit its time budget.
        unavailable_detectors: Detectors excluded this session.
    """
    fps: float = 0.0
    latency_ms: float = 0.0
    backend: str = "opencv-dnn"
    detector_used: str = ""
    pass_used: int = 0
    raw_detections: int = 0
    filtered_detections: int = 0
    tracked_faces: int = 0
    preprocessing: bool = False
    upscaled: bool = False
    frame_size: Tuple[int, int] = (0, 0)
    roi_active: bool = False
    timed_out: bool = False
    unavailable_detectors: List[str] = field(default_factory=list)
    timestamp: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fps": self.fps,
            "latency_ms": self.latency_ms,
            "backend": self.backend,
            "detector_used": self.detector_used,
            "pass_used": self.pass_used,
            "raw_detections": self.raw_detections,
            "filtered_detections": self.filtered_detections,
            "tracked_faces": self.tracked_faces,
            "preprocessing": self.preprocessing,
            "upscaled": self.upscaled,
            "frame_size": {"width": self.frame_size[0], "height": self.frame_size[1]},
            "roi_active": self.roi_active,
            "timed_out": self.timed_out,
            "unavailable_detectors": list(self.unavailable_detectors),
            "timestamp": self.timestamp,
        }
