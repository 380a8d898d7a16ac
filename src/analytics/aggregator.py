from __future__ import annotations

from typing import List

from models.demographics import DemographicCounts
from models.detection import DetectionResult
from tracking.tracker import FaceTracker


class SessionAggregator:
    """
    Converts the live track set into demographic snapshots.

    Only tracks that cleared the consecutive-hit bar are counted; the
    aggregator keeps no history of its own beyond the tracker's live set.
    """

    def __init__(self, tracker: FaceTracker):
        self.tracker = tracker

    def current_results(self) -> List[DetectionResult]:
        return self.tracker.detection_results()

    def current_snapshot(self) -> DemographicCounts:
        return DemographicCounts.from_results(self.current_results())
