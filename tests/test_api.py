"""
Tests for the status API routes.

Route functions are called directly with a minimal request object that
carries app.state.published.
"""

import time
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from models.debug import DebugInfo
from models.demographics import DemographicCounts
from models.detection import AgeGroup, BoundingBox, DetectionResult, Gender
from pipeline.engine import CycleOutput
from web.api_models import LabelRequest
from web.app import create_app
from web.routes import api
from web.state import PublishedState


def make_request(published):
    return SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(published=published)))


def published_with_face(unavailable=None):
    published = PublishedState(profile="webcam")
    face = DetectionResult(
        tracking_id="face-0",
        bbox=BoundingBox.from_xywh(270, 190, 100, 100),
        gender=Gender.FEMALE,
        age_group=AgeGroup.ADULT,
        confidence=0.8,
        face_score=0.9,
        last_seen=time.time(),
        raw_female_probability=0.7,
    )
    published.publish_cycle(CycleOutput(
        results=[face],
        snapshot=DemographicCounts.from_results([face]),
        debug=DebugInfo(fps=1.0, pass_used=1, timestamp=time.time(),
                        unavailable_detectors=list(unavailable or [])),
    ))
    return published


class TestDeriveStatus:
    """Status level classification."""

    def test_running(self):
        assert api._derive_status(0.5, False, []) == ("running", [])

    def test_stale(self):
        assert api._derive_status(5.0, False, []) == ("degraded", ["source_stale"])

    def test_offline(self):
        assert api._derive_status(None, False, []) == ("offline", ["source_offline"])
        assert api._derive_status(11.0, False, []) == ("offline", ["source_offline"])

    def test_disabled(self):
        assert api._derive_status(0.5, True, []) == ("offline", ["detection_disabled"])

    def test_unavailable_detector_degrades(self):
        level, alerts = api._derive_status(0.5, False, ["ssd"])
        assert level == "degraded"
        assert alerts == ["detector_unavailable:ssd"]


class TestRoutes:
    """Route handlers."""

    def test_status_without_cycles(self):
        """Before any cycle the loop is reported offline."""
        body = api.status(make_request(PublishedState(profile="cctv")))

        assert body["status"] == "offline"
        assert body["detection_enabled"] is True
        assert body["profile"] == "cctv"
        assert body["last_cycle_age"] is None

    def test_status_after_cycle(self):
        body = api.status(make_request(published_with_face(unavailable=["ssd"])))

        assert body["status"] == "degraded"
        assert body["unavailable_detectors"] == ["ssd"]
        assert body["fps"] == 1.0

    def test_status_disabled(self):
        published = PublishedState()
        published.set_detection_disabled("All detectors are unavailable")

        body = api.status(make_request(published))

        assert body["status"] == "offline"
        assert body["detection_enabled"] is False
        assert body["disabled_reason"] == "All detectors are unavailable"

    def test_demographics(self):
        body = api.demographics(make_request(published_with_face()))

        assert body["female"] == 1
        assert body["adult"] == 1
        assert body["male"] == 0
        assert body["total"] == 1

    def test_detections(self):
        body = api.detections(make_request(published_with_face()))

        assert body["count"] == 1
        assert body["detections"][0]["tracking_id"] == "face-0"
        assert body["detections"][0]["bounding_box"]["width"] == 100

    def test_debug_missing(self):
        with pytest.raises(HTTPException) as exc:
            api.debug(make_request(PublishedState()))
        assert exc.value.status_code == 404

    def test_debug(self):
        body = api.debug(make_request(published_with_face()))
        assert body["pass_used"] == 1


class TestLabels:
    """Ground-truth labeling endpoints."""

    def test_label_unknown_track(self):
        request = make_request(published_with_face())
        body = LabelRequest(tracking_id="face-9", actual_gender=Gender.MALE, actual_age_group=AgeGroup.KID)

        with pytest.raises(HTTPException) as exc:
            api.add_label(request, body)
        assert exc.value.status_code == 404

    def test_label_missing_actuals(self):
        request = make_request(published_with_face())

        with pytest.raises(HTTPException) as exc:
            api.add_label(request, LabelRequest(tracking_id="face-0"))
        assert exc.value.status_code == 400

    def test_label_and_evaluate(self):
        """A recorded label shows up in the evaluation metrics."""
        published = published_with_face()
        request = make_request(published)

        body = api.add_label(request, LabelRequest(
            tracking_id="face-0", actual_gender=Gender.MALE, actual_age_group=AgeGroup.ADULT,
        ))
        assert body["total_labels"] == 1

        metrics = api.evaluation(request)
        assert metrics["faces"] == 1
        assert metrics["gender_accuracy"] == 0.0
        assert metrics["age_accuracy"] == 1.0
        assert metrics["raw_gender_accuracy"] == 0.0

        api.clear_labels(request)
        assert len(published.labels) == 0

    def test_false_positive_label(self):
        request = make_request(published_with_face())

        api.add_label(request, LabelRequest(tracking_id="face-0", is_false_positive=True))

        assert api.evaluation(request)["false_positive_rate"] == 1.0

    def test_list_and_export_labels(self):
        """Recorded labels can be listed and downloaded as CSV."""
        request = make_request(published_with_face())
        api.add_label(request, LabelRequest(tracking_id="face-0", is_false_positive=True))

        listed = api.list_labels(request)
        assert listed["count"] == 1
        assert listed["labels"][0]["tracking_id"] == "face-0"

        response = api.export_labels(request)
        assert response.media_type == "text/csv"
        assert "labels.csv" in response.headers["content-disposition"]


class TestCreateApp:
    """App factory."""

    def test_binds_published_state(self):
        published = PublishedState()
        app = create_app(published)

        assert app.state.published is published
        paths = set(app.openapi()["paths"])
        assert "/api/status" in paths
        assert "/api/labels" in paths

    def test_default_state(self):
        assert isinstance(create_app().state.published, PublishedState)
