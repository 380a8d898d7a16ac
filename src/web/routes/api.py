from __future__ import annotations

import time
from typing import List, Optional, Tuple

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse

from evaluation.labels import GroundTruthLabel
from ..api_models import (
    DemographicsResponse,
    DetectionsResponse,
    EvaluationResponse,
    LabelRequest,
    LabelResponse,
    StatusResponse,
)
from ..state import PublishedState

router = APIRouter()


def _published(request: Request) -> PublishedState:
    return request.app.state.published


def _derive_status(
    last_cycle_age: Optional[float],
    detection_disabled: bool,
    unavailable_detectors: List[str],
) -> Tuple[str, List[str]]:
    """
    Lightweight status classifier used by /api/status.
    Thresholds: detection disabled or no cycle for >10s => offline; >3s => degraded;
    any excluded detector => degraded.
    """
    level = "running"
    alerts: List[str] = []
    if detection_disabled:
        return "offline", ["detection_disabled"]

    if last_cycle_age is None or last_cycle_age > 10:
        level = "offline"
        alerts.append("source_offline")
    elif last_cycle_age > 3:
        level = "degraded"
        alerts.append("source_stale")

    for name in unavailable_detectors:
        alerts.append(f"detector_unavailable:{name}")
        if level == "running":
            level = "degraded"

    return level, alerts


@router.get("/status", response_model=StatusResponse)
def status(request: Request):
    """
    Aggregate system status for the UI.
    Fields:
    - status: running|degraded|offline
    - alerts: detection_disabled, source_offline, source_stale, detector_unavailable:<name>
    - last_cycle_age: seconds since the last completed detection cycle (None if never)
    """
    now = time.time()
    info = _published(request).get_status_copy()
    last_ts = info["last_cycle_ts"]
    last_cycle_age = now - last_ts if last_ts else None
    level, alerts = _derive_status(last_cycle_age, info["detection_disabled"], info["unavailable_detectors"])

    return {
        "status": level,
        "alerts": alerts,
        "detection_enabled": not info["detection_disabled"],
        "disabled_reason": info["disabled_reason"],
        "profile": info["profile"],
        "source_id": info["source_id"],
        "fps": info["fps"],
        "last_cycle_age": last_cycle_age,
        "uptime_seconds": int(now - info["start_time"]),
        "unavailable_detectors": info["unavailable_detectors"],
        "timestamp": now,
    }


@router.get("/demographics", response_model=DemographicsResponse)
def demographics(request: Request):
    snapshot = _published(request).get_snapshot()
    return {**snapshot.to_dict(), "total": snapshot.total, "timestamp": time.time()}


@router.get("/detections", response_model=DetectionsResponse)
def detections(request: Request):
    results = _published(request).get_results()
    return {"count": len(results), "detections": [r.to_dict() for r in results]}


@router.get("/debug")
def debug(request: Request):
    info = _published(request).get_debug()
    if info is None:
        raise HTTPException(status_code=404, detail="No detection cycle has completed yet")
    return info.to_dict()


@router.post("/labels", response_model=LabelResponse)
def add_label(request: Request, body: LabelRequest):
    """Attach a ground-truth correction to a currently published detection."""
    published = _published(request)
    result = published.find_result(body.tracking_id)
    if result is None:
        raise HTTPException(status_code=404, detail=f"Unknown tracking id: {body.tracking_id}")

    try:
        label = GroundTruthLabel.for_result(
            result,
            actual_gender=body.actual_gender,
            actual_age_group=body.actual_age_group,
            is_false_positive=body.is_false_positive,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    published.labels.add(label)
    return {"label_id": label.label_id, "tracking_id": label.tracking_id, "total_labels": len(published.labels)}


@router.get("/labels")
def list_labels(request: Request):
    labels = _published(request).labels.all()
    return {"count": len(labels), "labels": [l.to_dict() for l in labels]}


@router.get("/labels/export.csv")
def export_labels(request: Request):
    """Labeled detections as CSV, for offline accuracy analysis."""
    body = _published(request).labels.to_csv()
    return StreamingResponse(
        iter([body]),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=labels.csv", "Cache-Control": "no-store"},
    )


@router.get("/evaluation", response_model=EvaluationResponse)
def evaluation(request: Request):
    return _published(request).labels.metrics().to_dict()


@router.delete("/labels")
def clear_labels(request: Request):
    _published(request).labels.clear()
    return {"cleared": True}
