"""
Face tracking module for keeping person identity across detection cycles.

This module implements IoU-based matching against velocity-predicted boxes.
Each track keeps a short rolling window of (gender, age group) observations
and reports the majority vote, so a single noisy classification does not flip
the reported demographic.

Note: Counting is NOT done here. Use `analytics.aggregator.SessionAggregator`.
"""

from __future__ import annotations

import logging
import math
import time
from collections import deque
from typing import Dict, List, Optional, Tuple

from models.config import DetectionConfig
from models.detection import BoundingBox, DetectionResult, FilteredDetection
from models.track import TrackedFace
from .voting import majority_vote

# Weight of the newest observation in velocity/score smoothing
SMOOTHING = 0.5

# Size change tolerated by the distance fallback (area ratio bounds)
MIN_AREA_RATIO = 0.5
MAX_AREA_RATIO = 2.0


class FaceTracker:
    """
    Tracks faces across cycles using IoU matching with velocity prediction.

    This tracker is responsible for:
    - Predicting each track's box from its last match and velocity
    - Greedily matching detections to tracks (highest IoU first)
    - Holding unmatched tracks for a few cycles before expiring them
    - Voting gender/age group over a rolling window

    The track set is owned by a single detection cycle at a time and is not
    safe for concurrent mutation.
    """

    def __init__(
        self,
        min_consecutive_frames: int = 1,
        hold_frames: int = 2,
        max_velocity_px: float = 200.0,
        iou_threshold: float = 0.3,
        vote_window: int = 5,
        distance_fallback: bool = True,
    ):
        """
        Initialize the face tracker.

        Args:
            min_consecutive_frames: Matches needed before a track is reported
            hold_frames: Cycles a track may go unmatched before it expires
            max_velocity_px: Largest plausible center displacement per cycle
            iou_threshold: IoU a predicted box must exceed to match a detection
            vote_window: Number of recent observations used for voting
            distance_fallback: Match leftover pairs by center distance when
                               IoU is too low (fast motion on small faces)
        """
        self.min_consecutive_frames = max(1, int(min_consecutive_frames))
        self.hold_frames = max(0, int(hold_frames))
        self.max_velocity_px = float(max_velocity_px)
        self.iou_threshold = iou_threshold
        self.vote_window = max(1, int(vote_window))
        self.distance_fallback = distance_fallback

        self.tracks: Dict[str, TrackedFace] = {}
        self.next_track_id = 0

        logging.info(
            f"Face tracker initialized (min_hits={self.min_consecutive_frames}, "
            f"hold={self.hold_frames}, max_velocity={self.max_velocity_px:.0f}px)"
        )

    @classmethod
    def from_config(cls, config: DetectionConfig) -> "FaceTracker":
        return cls(
            min_consecutive_frames=config.min_consecutive_frames,
            hold_frames=config.hold_frames,
            max_velocity_px=config.max_velocity_px,
            iou_threshold=config.iou_threshold,
            vote_window=config.vote_window,
            distance_fallback=config.distance_fallback,
        )

    def update(
        self,
        detections: List[FilteredDetection],
        timestamp: Optional[float] = None,
    ) -> List[TrackedFace]:
        """
        Update tracker with one cycle's filtered detections.

        Args:
            detections: Classified detections in source-frame pixels
            timestamp: Cycle time (defaults to now)

        Returns:
            Live tracks after the update (provisional, confirmed and held)
        """
        now = time.time() if timestamp is None else timestamp

        matches, unmatched_tracks, unmatched_detections = self._match(detections)

        for track_id, det_idx in matches:
            self._apply_match(self.tracks[track_id], detections[det_idx], now)

        for track_id in unmatched_tracks:
            self._hold(self.tracks[track_id])

        for det_idx in unmatched_detections:
            self._create_track(detections[det_idx], now)

        self._remove_expired_tracks()
        return self.get_active_tracks()

    def predict_box(self, track: TrackedFace) -> BoundingBox:
        """Expected box this cycle: last matched box advanced by velocity."""
        elapsed = track.missed_frames + 1
        vx, vy = track.velocity
        return track.last_matched_bbox.translate(vx * elapsed, vy * elapsed)

    def _calculate_iou(self, bbox1: BoundingBox, bbox2: BoundingBox) -> float:
        """
        Calculate Intersection over Union (IoU) between two bounding boxes.

        Returns:
            IoU value between 0 and 1
        """
        x1_i = max(bbox1.x1, bbox2.x1)
        y1_i = max(bbox1.y1, bbox2.y1)
        x2_i = min(bbox1.x2, bbox2.x2)
        y2_i = min(bbox1.y2, bbox2.y2)

        if x2_i <= x1_i or y2_i <= y1_i:
            return 0.0

        intersection = (x2_i - x1_i) * (y2_i - y1_i)
        union = bbox1.area + bbox2.area - intersection

        if union <= 0:
            return 0.0

        return intersection / union

    def _calculate_distance(self, a: BoundingBox, b: BoundingBox) -> float:
        (ax, ay), (bx, by) = a.center, b.center
        return math.hypot(ax - bx, ay - by)

    def _within_velocity(self, track: TrackedFace, bbox: BoundingBox) -> bool:
        """Displacement since the last match must be physically plausible."""
        elapsed = track.missed_frames + 1
        return self._calculate_distance(track.last_matched_bbox, bbox) <= self.max_velocity_px * elapsed

    def _match(
        self,
        detections: List[FilteredDetection],
    ) -> Tuple[List[Tuple[str, int]], List[str], List[int]]:
        """Greedy one-to-one assignment of detections to tracks."""
        predicted = {tid: self.predict_box(t) for tid, t in self.tracks.items()}

        candidates = []
        for tid, box in predicted.items():
            track = self.tracks[tid]
            for idx, det in enumerate(detections):
                iou = self._calculate_iou(box, det.bbox)
                if iou > self.iou_threshold and self._within_velocity(track, det.bbox):
                    candidates.append((iou, tid, idx))

        # Highest IoU first; ties resolved by older track, then detection order
        candidates.sort(key=lambda c: (-c[0], c[1], c[2]))

        matched_tracks = set()
        matched_detections = set()
        matches: List[Tuple[str, int]] = []
        for _, tid, idx in candidates:
            if tid in matched_tracks or idx in matched_detections:
                continue
            matches.append((tid, idx))
            matched_tracks.add(tid)
            matched_detections.add(idx)

        if self.distance_fallback:
            fallback = []
            for tid, box in predicted.items():
                if tid in matched_tracks:
                    continue
                track = self.tracks[tid]
                for idx, det in enumerate(detections):
                    if idx in matched_detections:
                        continue
                    if not self._within_velocity(track, det.bbox):
                        continue
                    if box.area <= 0:
                        continue
                    ratio = det.bbox.area / box.area
                    if not (MIN_AREA_RATIO <= ratio <= MAX_AREA_RATIO):
                        continue
                    fallback.append((self._calculate_distance(box, det.bbox), tid, idx))

            fallback.sort(key=lambda c: (c[0], c[1], c[2]))
            for _, tid, idx in fallback:
                if tid in matched_tracks or idx in matched_detections:
                    continue
                matches.append((tid, idx))
                matched_tracks.add(tid)
                matched_detections.add(idx)

        unmatched_tracks = [tid for tid in self.tracks if tid not in matched_tracks]
        unmatched_detections = [i for i in range(len(detections)) if i not in matched_detections]
        return matches, unmatched_tracks, unmatched_detections

    def _apply_match(self, track: TrackedFace, detection: FilteredDetection, now: float):
        elapsed = track.missed_frames + 1
        (ox, oy), (nx, ny) = track.last_matched_bbox.center, detection.bbox.center
        dx = (nx - ox) / elapsed
        dy = (ny - oy) / elapsed

        vx, vy = track.velocity
        vx = SMOOTHING * dx + (1 - SMOOTHING) * vx
        vy = SMOOTHING * dy + (1 - SMOOTHING) * vy
        speed = math.hypot(vx, vy)
        if speed > self.max_velocity_px > 0:
            vx, vy = vx * self.max_velocity_px / speed, vy * self.max_velocity_px / speed

        track.velocity = (vx, vy)
        track.bbox = detection.bbox
        track.last_matched_bbox = detection.bbox
        track.consecutive_hits += 1
        track.missed_frames = 0
        track.last_seen_at = now
        track.detector_used = detection.detector
        track.face_score = SMOOTHING * detection.score + (1 - SMOOTHING) * track.face_score
        track.confidence = SMOOTHING * detection.confidence + (1 - SMOOTHING) * track.confidence
        track.raw_age = detection.raw_age
        track.raw_female_probability = detection.raw_female_probability

        track.gender_votes.append(detection.gender)
        track.age_votes.append(detection.age_group)
        track.gender = majority_vote(track.gender_votes)
        track.age_group = majority_vote(track.age_votes)

    def _hold(self, track: TrackedFace):
        """Unmatched: keep the voted demographic, advance the box by prediction only."""
        track.missed_frames += 1
        if track.missed_frames > self.hold_frames:
            track.expired = True
            logging.debug(f"[TRACK] {track.track_id} expired after {track.missed_frames} missed cycles")
            return
        vx, vy = track.velocity
        track.bbox = track.last_matched_bbox.translate(vx * track.missed_frames, vy * track.missed_frames)

    def _create_track(self, detection: FilteredDetection, now: float) -> TrackedFace:
        track_id = f"face-{self.next_track_id}"
        self.next_track_id += 1

        track = TrackedFace(
            track_id=track_id,
            bbox=detection.bbox,
            last_matched_bbox=detection.bbox,
            confidence=detection.confidence,
            face_score=detection.score,
            gender=detection.gender,
            age_group=detection.age_group,
            first_seen_at=now,
            last_seen_at=now,
            detector_used=detection.detector,
            raw_age=detection.raw_age,
            raw_female_probability=detection.raw_female_probability,
            gender_votes=deque([detection.gender], maxlen=self.vote_window),
            age_votes=deque([detection.age_group], maxlen=self.vote_window),
        )
        self.tracks[track_id] = track
        logging.debug(f"[TRACK] New track {track_id} at {detection.bbox.as_int_tuple()}")
        return track

    def _remove_expired_tracks(self):
        expired = [tid for tid, t in self.tracks.items() if t.expired]
        for tid in expired:
            del self.tracks[tid]

    def get_active_tracks(self) -> List[TrackedFace]:
        """Get all live tracks (provisional, confirmed and held)."""
        return [t for t in self.tracks.values() if not t.expired]

    def get_confirmed_tracks(self) -> List[TrackedFace]:
        """Get tracks that have cleared the stability bar, including held ones."""
        return [t for t in self.tracks.values() if t.is_confirmed(self.min_consecutive_frames)]

    def get_all_tracks(self) -> Dict[str, TrackedFace]:
        return self.tracks

    def detection_results(self) -> List[DetectionResult]:
        return [t.to_result() for t in self.get_confirmed_tracks()]

    def reset(self):
        """Drop every track (source switch or session reset)."""
        self.tracks.clear()
        self.next_track_id = 0
        logging.info("Face tracker reset")
