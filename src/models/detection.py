"""
Detection models for face detection results.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Gender(str, Enum):
    """Reported gender label."""
    MALE = "male"
    FEMALE = "female"


class AgeGroup(str, Enum):
    """Three-bucket age grouping used by ad targeting."""
    KID = "kid"
    YOUNG = "young"
    ADULT = "adult"


@dataclass(frozen=True)
class BoundingBox:
    """
    A bounding box in pixel coordinates.

    Attributes:
        x1: Left edge x coordinate.
        y1: Top edge y coordinate.
        x2: Right edge x coordinate.
        y2: Bottom edge y coordinate.
    """
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.x1 + self.x2) / 2, (self.y1 + self.y2) / 2)

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def aspect_ratio(self) -> float:
        """Width divided by height (0 for degenerate boxes)."""
        return self.width / self.height if self.height > 0 else 0.0

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """Return as (x1, y1, x2, y2) tuple."""
        return (self.x1, self.y1, self.x2, self.y2)

    def as_int_tuple(self) -> Tuple[int, int, int, int]:
        """Return as integer (x1, y1, x2, y2) tuple."""
        return (int(self.x1), int(self.y1), int(self.x2), int(self.y2))

    def as_xywh(self) -> Tuple[float, float, float, float]:
        """Return as (x, y, width, height) tuple."""
        return (self.x1, self.y1, self.width, self.height)

    def translate(self, dx: float, dy: float) -> "BoundingBox":
        return BoundingBox(self.x1 + dx, self.y1 + dy, self.x2 + dx, self.y2 + dy)

    def scale(self, factor: float) -> "BoundingBox":
        """Scale all coordinates about the origin."""
        return BoundingBox(
            self.x1 * factor, self.y1 * factor, self.x2 * factor, self.y2 * factor
        )

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x1, "y": self.y1, "width": self.width, "height": self.height}

    @classmethod
    def from_tuple(cls, t: Tuple[float, float, float, float]) -> "BoundingBox":
        """Create from (x1, y1, x2, y2) tuple."""
        return cls(x1=t[0], y1=t[1], x2=t[2], y2=t[3])

    @classmethod
    def from_xywh(cls, x: float, y: float, w: float, h: float) -> "BoundingBox":
        """Create from (x, y, width, height) format."""
        return cls(x1=x, y1=y, x2=x + w, y2=y + h)


@dataclass(frozen=True)
class RawDetection:
    """
    Output of a single detector invocation.

    The box is in the coordinate space of the frame that was fed to the
    detector (possibly cropped and upscaled). Attribute fields are None when
    no age/gender estimator is loaded.

    Attributes:
        bbox: Bounding box in detector-frame pixels.
        score: Detector confidence (0-1).
        age: Raw age estimate in years.
        gender: Label the gender probability refers to.
        gender_probability: Probability of ``gender``.
        detector: Name of the detector that produced the box.
    """
    bbox: BoundingBox
    score: float
    age: Optional[float] = None
    gender: Optional[Gender] = None
    gender_probability: Optional[float] = None
    detector: str = ""

    @property
    def female_probability(self) -> Optional[float]:
        """Gender probability normalized to P(female)."""
        if self.gender is None or self.gender_probability is None:
            return None
        if self.gender == Gender.FEMALE:
            return float(self.gender_probability)
        return 1.0 - float(self.gender_probability)

    @classmethod
    def from_xywh(
        cls,
        x: float,
        y: float,
        w: float,
        h: float,
        score: float,
        age: Optional[float] = None,
        gender: Optional[Gender] = None,
        gender_probability: Optional[float] = None,
        detector: str = "",
    ) -> "RawDetection":
        return cls(
            bbox=BoundingBox.from_xywh(x, y, w, h),
            score=score,
            age=age,
            gender=gender,
            gender_probability=gender_probability,
            detector=detector,
        )


@dataclass(frozen=True)
class FilteredDetection:
    """
    A detection that passed the geometric/score filter and was classified.

    Attributes:
        bbox: Bounding box in source-frame pixels.
        score: Detector confidence (0-1).
        gender: Classified gender.
        age_group: Classified age group.
        confidence: Probability of the chosen gender after bias correction.
        raw_age: Age estimate before bucketing.
        raw_female_probability: P(female) before bias correction.
        detector: Name of the detector that produced the box.
    """
    bbox: BoundingBox
    score: float
    gender: Gender
    age_group: AgeGroup
    confidence: float
    raw_age: Optional[float] = None
    raw_female_probability: Optional[float] = None
    detector: str = ""


@dataclass(frozen=True)
class DetectionResult:
    """
    Per-person result derived from a confirmed track, published every cycle.

    Carries enough identity (tracking id, box, raw scores) for per-detection
    ground-truth labeling.
    """
    tracking_id: str
    bbox: BoundingBox
    gender: Gender
    age_group: AgeGroup
    confidence: float
    face_score: float
    last_seen: float
    raw_age: Optional[float] = None
    raw_female_probability: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tracking_id": self.tracking_id,
            "bounding_box": self.bbox.to_dict(),
            "gender": self.gender.value,
            "age_group": self.age_group.value,
            "confidence": self.confidence,
            "face_score": self.face_score,
            "last_seen": self.last_seen,
            "raw_age": self.raw_age,
            "raw_female_probability": self.raw_female_probability,
        }
