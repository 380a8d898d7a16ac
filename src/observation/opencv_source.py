"""
OpenCV-based observation source.

Supports:
- USB webcams (device_id as int, e.g., 0)
- Network streams (device_id as URL)
- Video files (device_id as file path), optionally looping for kiosk playback
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import cv2

from models.config import SourceConfig
from models.frame import FrameData
from .base import ObservationSource, ObservationConfig


@dataclass
class OpenCVSourceConfig(ObservationConfig):
    """
    Configuration for OpenCV-based observation sources.

    Attributes:
        device_id: Camera index (int), stream URL (str), or file path (str).
        loop: Restart video files from the first frame when they end.
        buffer_size: OpenCV capture buffer size (reduces latency for live feeds).
        max_retries: Maximum attempts to open the device.
    """
    device_id: Union[int, str] = 0
    loop: bool = True
    buffer_size: int = 1
    max_retries: int = 3

    @classmethod
    def from_source_config(cls, source_cfg: SourceConfig) -> "OpenCVSourceConfig":
        """Adapter: Create OpenCVSourceConfig from the app's SourceConfig."""
        resolution = tuple(source_cfg.resolution) if source_cfg.resolution else None
        device_id = source_cfg.device_id
        if isinstance(device_id, str) and device_id.isdigit():
            device_id = int(device_id)
        return cls(
            source_id=_source_id_for(device_id),
            resolution=resolution,
            fps=source_cfg.fps,
            device_id=device_id,
            loop=source_cfg.loop,
        )


def _source_id_for(device_id: Union[int, str]) -> str:
    if isinstance(device_id, int):
        return f"camera-{device_id}"
    return os.path.basename(str(device_id)) or str(device_id)


class OpenCVSource(ObservationSource):
    """
    Observation source for cameras, streams and video files via cv2.VideoCapture.

    Example:
        config = OpenCVSourceConfig(device_id="lobby.mp4", loop=True)
        with OpenCVSource(config) as source:
            if source.is_ready:
                process(source.read().frame)
    """

    def __init__(self, config: OpenCVSourceConfig):
        super().__init__(config)
        self._opencv_config = config
        self._cap: Optional[cv2.VideoCapture] = None

    @property
    def device_id(self) -> Union[int, str]:
        return self._opencv_config.device_id

    @property
    def is_file(self) -> bool:
        return isinstance(self.device_id, str) and os.path.isfile(self.device_id)

    @property
    def is_ready(self) -> bool:
        return self._is_open and self._cap is not None and self._cap.isOpened()

    def open(self) -> None:
        """Open the video source."""
        if self._is_open:
            return

        self._initialize()
        self._is_open = True
        self._frame_index = 0
        self._frame_size = None

        logging.info(
            f"OpenCVSource opened: source_id={self.source_id}, "
            f"resolution={self._opencv_config.resolution}"
        )

    def _initialize(self) -> None:
        cfg = self._opencv_config
        for attempt in range(1, cfg.max_retries + 1):
            self._cap = cv2.VideoCapture(self.device_id)
            if self._cap.isOpened():
                break
            self._cap.release()
            self._cap = None
            if attempt < cfg.max_retries:
                wait_time = min(2 ** attempt, 10)
                logging.warning(
                    f"Failed to open {self.source_id} (attempt {attempt}/{cfg.max_retries}), "
                    f"retrying in {wait_time}s"
                )
                time.sleep(wait_time)
        else:
            raise RuntimeError(f"Failed to open {self.source_id} after {cfg.max_retries} attempts")

        # Capture properties only apply to local cameras
        if isinstance(self.device_id, int):
            if cfg.resolution:
                w, h = cfg.resolution
                self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, w)
                self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
            if cfg.fps:
                self._cap.set(cv2.CAP_PROP_FPS, cfg.fps)
            self._cap.set(cv2.CAP_PROP_BUFFERSIZE, cfg.buffer_size)

    def read(self) -> Optional[FrameData]:
        """Read the next frame; files loop to the start when configured."""
        if not self.is_ready:
            return None

        ret, frame = self._cap.read()
        if (not ret or frame is None) and self.is_file and self._opencv_config.loop:
            self._cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
            ret, frame = self._cap.read()

        if not ret or frame is None:
            logging.debug(f"No decodable frame from {self.source_id}")
            return None

        return self._record(FrameData(
            frame=frame,
            timestamp=time.time(),
            frame_index=self._frame_index + 1,
            source_id=self.source_id,
        ))

    def close(self) -> None:
        """Close the video source and release resources."""
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        if self._is_open:
            logging.info(f"OpenCVSource closed: source_id={self.source_id}")
        self._is_open = False

    def get_video_info(self) -> Dict[str, Any]:
        if self._cap is None or not self._cap.isOpened():
            return {}

        return {
            "width": int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            "height": int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            "fps": self._cap.get(cv2.CAP_PROP_FPS),
            "frame_count": int(self._cap.get(cv2.CAP_PROP_FRAME_COUNT)) if self.is_file else None,
        }
