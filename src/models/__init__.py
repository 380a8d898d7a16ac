"""
Typed models for the face demographics application.

These are the data shapes exchanged between the pipeline stages, the
tracker, and the status API.
"""

from .frame import FrameData
from .detection import (
    AgeGroup,
    BoundingBox,
    DetectionResult,
    FilteredDetection,
    Gender,
    RawDetection,
)
from .track import TrackedFace, TrackStatus
from .demographics import DemographicCounts
from .debug import DebugInfo
from .config import (
    AppConfig,
    CCTV_PRESET,
    DetectionConfig,
    GenderCorrectionConfig,
    ModelPaths,
    PreprocessingOptions,
    PROFILE_PRESETS,
    RoiConfig,
    SchedulerConfig,
    SourceConfig,
    TextureFilterConfig,
    WEBCAM_PRESET,
    WebConfig,
)

__all__ = [
    # Frame
    "FrameData",
    # Detection
    "AgeGroup",
    "BoundingBox",
    "DetectionResult",
    "FilteredDetection",
    "Gender",
    "RawDetection",
    # Tracking
    "TrackedFace",
    "TrackStatus",
    # Aggregation / diagnostics
    "DemographicCounts",
    "DebugInfo",
    # Config
    "AppConfig",
    "CCTV_PRESET",
    "DetectionConfig",
    "GenderCorrectionConfig",
    "ModelPaths",
    "PreprocessingOptions",
    "PROFILE_PRESETS",
    "RoiConfig",
    "SchedulerConfig",
    "SourceConfig",
    "TextureFilterConfig",
    "WEBCAM_PRESET",
    "WebConfig",
]
