"""
Pipeline module for the face demographics system.

The pipeline orchestrates the per-cycle flow:
- Frame acquisition from observation sources
- Multi-pass detection
- Filtering and demographic classification (PostProcessStage)
- Tracking and snapshot aggregation
"""

from .engine import CycleOutput, DetectionPipeline, PipelineStats
from .scheduler import CaptureSession
from .stages.postprocess import PostProcessStage

__all__ = [
    "CycleOutput",
    "DetectionPipeline",
    "PipelineStats",
    "CaptureSession",
    "PostProcessStage",
]
