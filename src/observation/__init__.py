"""
Observation layer for pluggable video sources.

This layer abstracts the source of frames (camera, video file, remote stream)
from the detection pipeline. Each source implements the ObservationSource
interface and returns FrameData objects.
"""

from models.config import SourceConfig

from .base import ObservationSource, ObservationConfig
from .opencv_source import OpenCVSource, OpenCVSourceConfig


def create_source(source_cfg: SourceConfig) -> ObservationSource:
    """Factory: build an observation source from the app's source config."""
    return OpenCVSource(OpenCVSourceConfig.from_source_config(source_cfg))


__all__ = [
    "ObservationSource",
    "ObservationConfig",
    "OpenCVSource",
    "OpenCVSourceConfig",
    "create_source",
]
