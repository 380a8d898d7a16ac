from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from analytics.aggregator import SessionAggregator
from detection.loader import DetectorSet
from models.config import DetectionConfig
from tracking.tracker import FaceTracker


@dataclass
class SessionContext:
    """Holds per-session detection state; avoids global singletons."""

    config: DetectionConfig
    detectors: DetectorSet
    tracker: FaceTracker = None
    aggregator: SessionAggregator = None
    source_id: Optional[str] = None

    # Set once every detector has failed; detection stays off for the session
    detection_disabled: bool = False
    disabled_reason: Optional[str] = None
    on_disabled: Optional[Callable[[str], None]] = None

    def __post_init__(self):
        if self.tracker is None:
            self.tracker = FaceTracker.from_config(self.config)
        if self.aggregator is None:
            self.aggregator = SessionAggregator(self.tracker)

    def reset(self, source_id: Optional[str] = None):
        """Clear tracks for a new source or session; loaded detectors are kept."""
        self.tracker.reset()
        self.source_id = source_id
        logging.info(f"Session reset (source={source_id})")

    def disable(self, reason: str):
        if self.detection_disabled:
            return
        self.detection_disabled = True
        self.disabled_reason = reason
        logging.error(f"[DETECT] Detection disabled for this session: {reason}")
        if self.on_disabled is not None:
            self.on_disabled(reason)

    @property
    def unavailable_detectors(self):
        return sorted(self.detectors.excluded)
