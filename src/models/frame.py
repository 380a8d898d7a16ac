"""
Frame handed from an observation source to a detection cycle.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class FrameData:
    """
    One decoded BGR frame, held only for the cycle that reads it.

    Attributes:
        frame: Pixel data, shape (height, width, 3).
        timestamp: Unix time the frame was decoded; the tracker uses it
                   as the cycle time.
        frame_index: Frames read since the source was opened (1-based).
        source_id: Source the frame came from.
    """
    frame: np.ndarray
    timestamp: float
    frame_index: int = 0
    source_id: Optional[str] = None

    @property
    def width(self) -> int:
        return int(self.frame.shape[1]) if self.frame.ndim >= 2 else 0

    @property
    def height(self) -> int:
        return int(self.frame.shape[0]) if self.frame.ndim >= 2 else 0

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height) in pixels."""
        return (self.width, self.height)

    @property
    def is_decodable(self) -> bool:
        """False for empty or non-image buffers, which must not reach a detector."""
        return self.frame.ndim == 3 and self.width > 0 and self.height > 0
