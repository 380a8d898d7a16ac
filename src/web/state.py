import threading
import time
from typing import Any, Dict, List, Optional

from evaluation.labels import LabelStore
from models.debug import DebugInfo
from models.demographics import DemographicCounts
from models.detection import DetectionResult


class PublishedState:
    """
    Latest published detection output, shared between the capture loop
    (writer) and the web server thread (reader).

    Passed explicitly to the app factory; there is no module-level instance.
    """

    def __init__(self, profile: Optional[str] = None):
        self._lock = threading.Lock()
        self.results: List[DetectionResult] = []
        self.snapshot = DemographicCounts()
        self.debug: Optional[DebugInfo] = None
        self.profile = profile
        self.source_id: Optional[str] = None
        self.start_time = time.time()
        self.last_cycle_ts: Optional[float] = None
        self.detection_disabled = False
        self.disabled_reason: Optional[str] = None
        self.unavailable_detectors: List[str] = []
        self.labels = LabelStore()

    def publish_cycle(self, output) -> None:
        """CaptureSession listener: store one completed cycle."""
        with self._lock:
            self.results = list(output.results)
            self.snapshot = output.snapshot
            self.debug = output.debug
            self.last_cycle_ts = output.debug.timestamp or time.time()
            self.unavailable_detectors = list(output.debug.unavailable_detectors)

    def set_source(self, source_id: Optional[str]) -> None:
        with self._lock:
            self.source_id = source_id
            self.results = []
            self.snapshot = DemographicCounts()

    def set_detection_disabled(self, reason: str) -> None:
        with self._lock:
            self.detection_disabled = True
            self.disabled_reason = reason

    def set_unavailable_detectors(self, names: List[str]) -> None:
        with self._lock:
            self.unavailable_detectors = sorted(names)

    def get_results(self) -> List[DetectionResult]:
        with self._lock:
            return list(self.results)

    def find_result(self, tracking_id: str) -> Optional[DetectionResult]:
        with self._lock:
            for r in self.results:
                if r.tracking_id == tracking_id:
                    return r
        return None

    def get_snapshot(self) -> DemographicCounts:
        with self._lock:
            return self.snapshot

    def get_debug(self) -> Optional[DebugInfo]:
        with self._lock:
            return self.debug

    def get_status_copy(self) -> Dict[str, Any]:
        """Return a shallow copy of status fields."""
        with self._lock:
            return {
                "profile": self.profile,
                "source_id": self.source_id,
                "start_time": self.start_time,
                "last_cycle_ts": self.last_cycle_ts,
                "fps": self.debug.fps if self.debug else 0.0,
                "detection_disabled": self.detection_disabled,
                "disabled_reason": self.disabled_reason,
                "unavailable_detectors": list(self.unavailable_detectors),
            }
