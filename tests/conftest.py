"""
Pytest configuration and shared fixtures.
"""

import os
import sys
import threading
import time
from typing import Callable, List, Optional

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from detection.errors import DetectorUnavailable
from detection.loader import DetectorSet, LoadResult
from models.config import DetectionConfig
from models.detection import Gender, RawDetection
from models.frame import FrameData
from observation.base import ObservationConfig, ObservationSource


def make_raw(
    x: float,
    y: float,
    w: float,
    h: float,
    score: float = 0.9,
    age: Optional[float] = 28.0,
    female_probability: Optional[float] = 0.2,
    detector: str = "tiny",
) -> RawDetection:
    """Build a RawDetection; attributes are expressed as P(female)."""
    gender = None if female_probability is None else Gender.FEMALE
    return RawDetection.from_xywh(
        x, y, w, h,
        score=score,
        age=age,
        gender=gender,
        gender_probability=female_probability,
        detector=detector,
    )


class FakeDetector:
    """
    In-process stand-in for a detector adapter.

    ``respond`` receives (image, input_size, score_threshold) and returns the
    detections for that call; boxes are in the fed image's pixels. Results
    below the threshold are dropped, as a real detector would.
    """

    def __init__(
        self,
        name: str,
        respond: Optional[Callable[[np.ndarray, int, float], List[RawDetection]]] = None,
        loaded: bool = True,
        block: Optional[threading.Event] = None,
    ):
        self.name = name
        self._respond = respond or (lambda image, size, threshold: [])
        self._loaded = loaded
        self.block = block
        self.calls = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def detect(self, image, input_size, score_threshold):
        if not self._loaded:
            raise DetectorUnavailable(self.name)
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            self.calls.append((image.shape[1], image.shape[0], input_size, score_threshold))
        try:
            if self.block is not None:
                self.block.wait(5)
            detections = self._respond(image, input_size, score_threshold)
            return [d for d in detections if d.score >= score_threshold]
        finally:
            with self._lock:
                self.active -= 1


def detector_set(*detectors) -> DetectorSet:
    return DetectorSet(
        {d.name: d for d in detectors},
        [LoadResult(name=d.name, ok=True) for d in detectors],
    )


class FakeSource(ObservationSource):
    """Serves a fixed frame; ``ready`` toggles decodability."""

    def __init__(self, frame: Optional[np.ndarray] = None, source_id: str = "fake", ready: bool = True):
        super().__init__(ObservationConfig(source_id=source_id))
        self.frame = frame if frame is not None else blank_frame()
        self.ready = ready
        self.open_count = 0
        self.close_count = 0

    @property
    def is_ready(self) -> bool:
        return self._is_open and self.ready

    def open(self) -> None:
        self._is_open = True
        self.open_count += 1

    def read(self):
        if not self.is_ready:
            return None
        return self._record(FrameData(
            frame=self.frame, timestamp=time.time(), frame_index=self._frame_index + 1, source_id=self.source_id
        ))

    def close(self) -> None:
        self._is_open = False
        self.close_count += 1


def blank_frame(width: int = 640, height: int = 480, value: int = 120) -> np.ndarray:
    return np.full((height, width, 3), value, dtype=np.uint8)


@pytest.fixture
def frame():
    return blank_frame()


@pytest.fixture
def webcam_config():
    return DetectionConfig.for_profile("webcam")


@pytest.fixture
def cctv_config():
    return DetectionConfig.for_profile("cctv")


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
source:
  device_id: 0
  loop: true
  resolution: [640, 480]
  fps: 15

detection:
  profile: webcam

scheduler:
  interval_s: 1.0
  timeout_s: 10.0

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "source": {
            "device_id": 0,
            "loop": True,
            "resolution": [1280, 720],
            "fps": 15,
        },
        "detection": {
            "profile": "cctv",
            "sensitivity": 0.35,
        },
        "scheduler": {
            "interval_s": 1.0,
            "timeout_s": 10.0,
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }
