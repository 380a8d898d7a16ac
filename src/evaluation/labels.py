"""
In-memory ground-truth labels and the accuracy metrics derived from them.

An operator corrects individual published detections (actual gender and age
group, or "not a face"). Labels are attributed to a detection through its
tracking id, box and raw scores, so the bias correction can be compared with
the uncorrected model output. Nothing is persisted.
"""

from __future__ import annotations

import csv
import io
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from models.detection import AgeGroup, DetectionResult, Gender

CSV_COLUMNS = [
    "label_id",
    "timestamp",
    "tracking_id",
    "detected_gender",
    "actual_gender",
    "detected_age_group",
    "actual_age_group",
    "confidence",
    "face_score",
    "raw_female_probability",
    "is_false_positive",
]


@dataclass(frozen=True)
class GroundTruthLabel:
    """
    One operator correction of one published detection.

    Attributes:
        label_id: Unique identifier for this label.
        tracking_id: Track the detection belonged to.
        detected_gender: Gender the pipeline reported.
        detected_age_group: Age group the pipeline reported.
        confidence: Reported (bias-corrected) gender confidence.
        face_score: Detector score.
        raw_female_probability: Model P(female) before correction, if known.
        actual_gender: Operator's gender label (None for false positives).
        actual_age_group: Operator's age label (None for false positives).
        is_false_positive: The box was not a face.
        timestamp: Unix timestamp when the label was recorded.
    """
    label_id: str
    tracking_id: str
    detected_gender: Gender
    detected_age_group: AgeGroup
    confidence: float
    face_score: float
    raw_female_probability: Optional[float] = None
    actual_gender: Optional[Gender] = None
    actual_age_group: Optional[AgeGroup] = None
    is_false_positive: bool = False
    bbox: Optional[Dict[str, float]] = None
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def for_result(
        cls,
        result: DetectionResult,
        actual_gender: Optional[Gender] = None,
        actual_age_group: Optional[AgeGroup] = None,
        is_false_positive: bool = False,
    ) -> "GroundTruthLabel":
        if not is_false_positive and (actual_gender is None or actual_age_group is None):
            raise ValueError("actual_gender and actual_age_group are required unless is_false_positive")
        return cls(
            label_id=uuid.uuid4().hex[:12],
            tracking_id=result.tracking_id,
            detected_gender=result.gender,
            detected_age_group=result.age_group,
            confidence=result.confidence,
            face_score=result.face_score,
            raw_female_probability=result.raw_female_probability,
            actual_gender=None if is_false_positive else actual_gender,
            actual_age_group=None if is_false_positive else actual_age_group,
            is_false_positive=is_false_positive,
            bbox=result.bbox.to_dict(),
        )

    @property
    def raw_gender(self) -> Optional[Gender]:
        """What the model said before bias correction."""
        if self.raw_female_probability is None:
            return None
        return Gender.FEMALE if self.raw_female_probability >= 0.5 else Gender.MALE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label_id": self.label_id,
            "tracking_id": self.tracking_id,
            "detected_gender": self.detected_gender.value,
            "detected_age_group": self.detected_age_group.value,
            "confidence": self.confidence,
            "face_score": self.face_score,
            "raw_female_probability": self.raw_female_probability,
            "actual_gender": self.actual_gender.value if self.actual_gender else None,
            "actual_age_group": self.actual_age_group.value if self.actual_age_group else None,
            "is_false_positive": self.is_false_positive,
            "bbox": self.bbox,
            "timestamp": self.timestamp,
        }

    def to_row(self) -> List[str]:
        """One CSV row, in CSV_COLUMNS order."""
        d = self.to_dict()
        d["timestamp"] = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(self.timestamp))
        d["confidence"] = f"{self.confidence:.2f}"
        d["face_score"] = f"{self.face_score:.2f}"
        if self.raw_female_probability is not None:
            d["raw_female_probability"] = f"{self.raw_female_probability:.2f}"
        d["is_false_positive"] = "yes" if self.is_false_positive else "no"
        return ["" if d[c] is None else str(d[c]) for c in CSV_COLUMNS]


@dataclass
class GenderConfusion:
    """Rows are actual gender, columns the reported one."""
    male_as_male: int = 0
    male_as_female: int = 0
    female_as_male: int = 0
    female_as_female: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "male_as_male": self.male_as_male,
            "male_as_female": self.male_as_female,
            "female_as_male": self.female_as_male,
            "female_as_female": self.female_as_female,
        }


@dataclass
class EvaluationMetrics:
    """Accuracy summary over a set of labels; rates are 0-1."""
    total: int = 0
    faces: int = 0
    false_positives: int = 0
    gender_accuracy: float = 0.0
    female_recall: float = 0.0
    male_recall: float = 0.0
    age_accuracy: float = 0.0
    age_accuracy_by_group: Dict[str, float] = field(default_factory=dict)
    false_positive_rate: float = 0.0
    avg_confidence_correct: float = 0.0
    avg_confidence_incorrect: float = 0.0
    raw_gender_accuracy: Optional[float] = None
    confusion: GenderConfusion = field(default_factory=GenderConfusion)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "faces": self.faces,
            "false_positives": self.false_positives,
            "gender_accuracy": self.gender_accuracy,
            "female_recall": self.female_recall,
            "male_recall": self.male_recall,
            "age_accuracy": self.age_accuracy,
            "age_accuracy_by_group": dict(self.age_accuracy_by_group),
            "false_positive_rate": self.false_positive_rate,
            "avg_confidence_correct": self.avg_confidence_correct,
            "avg_confidence_incorrect": self.avg_confidence_incorrect,
            "raw_gender_accuracy": self.raw_gender_accuracy,
            "confusion": self.confusion.to_dict(),
        }


def _ratio(num: int, den: int) -> float:
    return num / den if den else 0.0


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def compute_metrics(labels: List[GroundTruthLabel]) -> EvaluationMetrics:
    """
    Compute accuracy metrics.

    False positives count toward the false-positive rate only; every other
    rate is over real faces.
    """
    faces = [l for l in labels if not l.is_false_positive]
    false_positives = len(labels) - len(faces)

    confusion = GenderConfusion()
    correct_conf: List[float] = []
    incorrect_conf: List[float] = []
    for l in faces:
        correct = l.detected_gender == l.actual_gender
        (correct_conf if correct else incorrect_conf).append(l.confidence)
        if l.actual_gender == Gender.MALE:
            if l.detected_gender == Gender.MALE:
                confusion.male_as_male += 1
            else:
                confusion.male_as_female += 1
        else:
            if l.detected_gender == Gender.FEMALE:
                confusion.female_as_female += 1
            else:
                confusion.female_as_male += 1

    by_group: Dict[str, float] = {}
    for group in AgeGroup:
        in_group = [l for l in faces if l.actual_age_group == group]
        by_group[group.value] = _ratio(
            sum(1 for l in in_group if l.detected_age_group == group), len(in_group)
        )

    with_raw = [l for l in faces if l.raw_gender is not None]
    raw_accuracy = None
    if with_raw:
        raw_accuracy = _ratio(sum(1 for l in with_raw if l.raw_gender == l.actual_gender), len(with_raw))

    actual_female = confusion.female_as_female + confusion.female_as_male
    actual_male = confusion.male_as_male + confusion.male_as_female

    return EvaluationMetrics(
        total=len(labels),
        faces=len(faces),
        false_positives=false_positives,
        gender_accuracy=_ratio(len(correct_conf), len(faces)),
        female_recall=_ratio(confusion.female_as_female, actual_female),
        male_recall=_ratio(confusion.male_as_male, actual_male),
        age_accuracy=_ratio(sum(1 for l in faces if l.detected_age_group == l.actual_age_group), len(faces)),
        age_accuracy_by_group=by_group,
        false_positive_rate=_ratio(false_positives, len(labels)),
        avg_confidence_correct=_mean(correct_conf),
        avg_confidence_incorrect=_mean(incorrect_conf),
        raw_gender_accuracy=raw_accuracy,
        confusion=confusion,
    )


class LabelStore:
    """Thread-safe in-memory label collection (written by the API thread)."""

    def __init__(self):
        self._labels: List[GroundTruthLabel] = []
        self._lock = threading.Lock()

    def add(self, label: GroundTruthLabel) -> GroundTruthLabel:
        with self._lock:
            self._labels.append(label)
        return label

    def all(self) -> List[GroundTruthLabel]:
        with self._lock:
            return list(self._labels)

    def clear(self) -> None:
        with self._lock:
            self._labels.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._labels)

    def metrics(self) -> EvaluationMetrics:
        return compute_metrics(self.all())

    def to_csv(self) -> str:
        """Export every label, header first."""
        out = io.StringIO()
        writer = csv.writer(out, lineterminator="\n")
        writer.writerow(CSV_COLUMNS)
        for label in self.all():
            writer.writerow(label.to_row())
        return out.getvalue()
