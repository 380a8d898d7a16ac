"""
Track models for face tracking state.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Optional, Tuple

from .detection import AgeGroup, BoundingBox, DetectionResult, Gender


class TrackStatus(str, Enum):
    """Lifecycle state of a tracked face."""
    PROVISIONAL = "provisional"
    CONFIRMED = "confirmed"
    HELD = "held"
    EXPIRED = "expired"


@dataclass
class TrackedFace:
    """
    A persistent identity hypothesis for one person across frames.

    Attributes:
        track_id: Unique identifier for this track.
        bbox: Current bounding box (extrapolated while held).
        last_matched_bbox: Box of the most recent matched detection.
        velocity: Estimated center movement (vx, vy) in pixels per cycle.
        confidence: Smoothed gender confidence.
        face_score: Smoothed detector score.
        gender: Current voted gender.
        age_group: Current voted age group.
        consecutive_hits: Frames matched since the track was created.
        missed_frames: Frames since the last match.
        first_seen_at: Unix timestamp of creation.
        last_seen_at: Unix timestamp of the last match.
        detector_used: Detector that produced the most recent match.
        gender_votes: Rolling window of gender observations (newest last).
        age_votes: Rolling window of age-group observations (newest last).
    """
    track_id: str
    bbox: BoundingBox
    last_matched_bbox: BoundingBox
    velocity: Tuple[float, float] = (0.0, 0.0)
    confidence: float = 0.0
    face_score: float = 0.0
    gender: Gender = Gender.MALE
    age_group: AgeGroup = AgeGroup.YOUNG
    consecutive_hits: int = 1
    missed_frames: int = 0
    first_seen_at: float = 0.0
    last_seen_at: float = 0.0
    detector_used: str = ""
    raw_age: Optional[float] = None
    raw_female_probability: Optional[float] = None
    expired: bool = False
    gender_votes: Deque[Gender] = field(default_factory=lambda: deque(maxlen=5))
    age_votes: Deque[AgeGroup] = field(default_factory=lambda: deque(maxlen=5))

    def is_confirmed(self, min_consecutive_frames: int) -> bool:
        """Whether the track has cleared the stability bar for reporting."""
        return not self.expired and self.consecutive_hits >= min_consecutive_frames

    def status(self, min_consecutive_frames: int) -> TrackStatus:
        if self.expired:
            return TrackStatus.EXPIRED
        if self.missed_frames > 0:
            return TrackStatus.HELD
        if self.consecutive_hits >= min_consecutive_frames:
            return TrackStatus.CONFIRMED
        return TrackStatus.PROVISIONAL

    def to_result(self) -> DetectionResult:
        return DetectionResult(
            tracking_id=self.track_id,
            bbox=self.bbox,
            gender=self.gender,
            age_group=self.age_group,
            confidence=self.confidence,
            face_score=self.face_score,
            last_seen=self.last_seen_at,
            raw_age=self.raw_age,
            raw_female_probability=self.raw_female_probability,
        )
