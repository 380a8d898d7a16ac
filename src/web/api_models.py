from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from models.detection import AgeGroup, Gender


class StatusResponse(BaseModel):
    status: str = Field(..., description="running|degraded|offline")
    alerts: List[str]
    detection_enabled: bool
    disabled_reason: Optional[str] = None
    profile: Optional[str] = None
    source_id: Optional[str] = None
    fps: float
    last_cycle_age: Optional[float] = Field(None, description="Seconds since the last completed cycle")
    uptime_seconds: Optional[int] = None
    unavailable_detectors: List[str] = Field(default_factory=list)
    timestamp: float


class DemographicsResponse(BaseModel):
    male: int
    female: int
    kid: int
    young: int
    adult: int
    total: int
    timestamp: float


class BoundingBoxModel(BaseModel):
    x: float
    y: float
    width: float
    height: float


class DetectionItem(BaseModel):
    tracking_id: str
    bounding_box: BoundingBoxModel
    gender: Gender
    age_group: AgeGroup
    confidence: float
    face_score: float
    last_seen: float
    raw_age: Optional[float] = None
    raw_female_probability: Optional[float] = None


class DetectionsResponse(BaseModel):
    count: int
    detections: List[DetectionItem]


class LabelRequest(BaseModel):
    """
    Operator correction for one published detection.

    Either mark the box as not a face, or give the actual gender and age group.
    """
    tracking_id: str
    actual_gender: Optional[Gender] = None
    actual_age_group: Optional[AgeGroup] = None
    is_false_positive: bool = False


class LabelResponse(BaseModel):
    label_id: str
    tracking_id: str
    total_labels: int


class EvaluationResponse(BaseModel):
    total: int
    faces: int
    false_positives: int
    gender_accuracy: float
    female_recall: float
    male_recall: float
    age_accuracy: float
    age_accuracy_by_group: Dict[str, float]
    false_positive_rate: float
    avg_confidence_correct: float
    avg_confidence_incorrect: float
    raw_gender_accuracy: Optional[float] = None
    confusion: Dict[str, int]
