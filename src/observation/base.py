"""
ObservationSource interface for pluggable frame sources.

The detection pipeline needs only three things from a source: the current
frame on demand, its dimensions, and a readiness predicate. Sources are
acquired for the duration of a capture session and released afterwards so
camera hardware is not held while idle.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple

from models.frame import FrameData


@dataclass
class ObservationConfig:
    """
    Base configuration for observation sources.

    Attributes:
        source_id: Unique identifier for this source (e.g., "webcam-0", "lobby.mp4").
        resolution: Target resolution as (width, height). None = use source default.
        fps: Target frames per second. None = use source default.
    """
    source_id: str = "default"
    resolution: Optional[Tuple[int, int]] = None
    fps: Optional[int] = None


class ObservationSource(ABC):
    """
    Abstract base class for observation sources.

    Lifecycle:
        1. Create instance with config
        2. Call open() to acquire the source
        3. Poll is_ready, then call read() for the current frame
        4. Call close() to release it

    Can also be used as a context manager, which guarantees release:
        with OpenCVSource(config) as source:
            frame_data = source.read()
    """

    def __init__(self, config: ObservationConfig):
        self._config = config
        self._is_open = False
        self._frame_index = 0
        self._frame_size: Optional[Tuple[int, int]] = None

    @property
    def source_id(self) -> str:
        """Unique identifier for this source."""
        return self._config.source_id

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def frame_index(self) -> int:
        """Number of frames read since open."""
        return self._frame_index

    @property
    def frame_size(self) -> Optional[Tuple[int, int]]:
        """(width, height) of the last decoded frame, None until one is decoded."""
        return self._frame_size

    @property
    def is_ready(self) -> bool:
        """Whether a frame can be read now (source open and decodable)."""
        return self._is_open

    @abstractmethod
    def open(self) -> None:
        """
        Acquire the source.

        Raises:
            RuntimeError: If the source cannot be opened.
        """

    @abstractmethod
    def read(self) -> Optional[FrameData]:
        """
        Read the current frame.

        Returns:
            FrameData, or None if no frame is decodable right now.
        """

    @abstractmethod
    def close(self) -> None:
        """Release the source. Safe to call multiple times."""

    def _record(self, frame_data: FrameData) -> FrameData:
        self._frame_index += 1
        self._frame_size = (frame_data.width, frame_data.height)
        return frame_data

    def __enter__(self) -> "ObservationSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
