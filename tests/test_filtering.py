"""
Tests for the geometric/score filter and texture heuristics.
"""

from dataclasses import replace

import numpy as np
import pytest

from algorithms.filtering import FaceFilter, FilterThresholds, rejection_reason
from algorithms.filtering.texture import looks_like_face
from models.config import TextureFilterConfig
from models.detection import BoundingBox
from preprocessing.enhance import FrameTransform

from conftest import make_raw

W, H = 640, 480
THRESHOLDS = FilterThresholds(
    min_score=0.4,
    min_size_px=40,
    min_size_percent=2.0,
    max_size_percent=35.0,
    aspect_ratio_min=0.6,
    aspect_ratio_max=1.8,
)


class TestRejectionRules:
    """Each rule rejects independently."""

    def test_clean_face_passes(self):
        """A 100x100 face at score 0.9 passes every rule."""
        assert rejection_reason(BoundingBox.from_xywh(100, 100, 100, 100), 0.9, W, H, THRESHOLDS) is None

    def test_low_score(self):
        """Score below the floor is rejected."""
        assert rejection_reason(BoundingBox.from_xywh(100, 100, 100, 100), 0.3, W, H, THRESHOLDS) == "score"

    def test_too_small_in_pixels(self):
        """Either side below min_size_px is rejected."""
        box = BoundingBox.from_xywh(100, 100, 120, 35)
        assert rejection_reason(box, 0.9, W, H, THRESHOLDS) == "min_size_px"

    def test_too_small_in_percent(self):
        """Area share below min_size_percent is rejected."""
        thresholds = replace(THRESHOLDS, min_size_px=10)
        box = BoundingBox.from_xywh(100, 100, 50, 50)  # 0.81%
        assert rejection_reason(box, 0.9, W, H, thresholds) == "min_size_percent"

    def test_oversized_box(self):
        """A box covering 40% of the frame is rejected."""
        box = BoundingBox.from_xywh(0, 0, 384, 320)
        assert rejection_reason(box, 0.9, W, H, THRESHOLDS) == "max_size_percent"

    def test_aspect_ratio(self):
        """Boxes outside the aspect bounds are rejected."""
        wide = BoundingBox.from_xywh(100, 100, 200, 100)
        assert rejection_reason(wide, 0.9, W, H, THRESHOLDS) == "aspect_ratio"

    def test_out_of_frame(self):
        """Boxes extending past the frame edge are rejected."""
        box = BoundingBox.from_xywh(600, 100, 100, 100)
        assert rejection_reason(box, 0.9, W, H, THRESHOLDS) == "out_of_frame"

    def test_box_on_frame_edge_passes(self):
        """Touching the frame boundary is allowed."""
        box = BoundingBox.from_xywh(540, 380, 100, 100)
        assert rejection_reason(box, 0.9, W, H, THRESHOLDS) is None


class TestMonotonicity:
    """Loosening any threshold never rejects a previously passing detection."""

    CANDIDATES = [
        (BoundingBox.from_xywh(x, y, w, h), s)
        for x, y in ((0, 0), (100, 80), (500, 300))
        for w, h in ((30, 30), (45, 60), (100, 100), (150, 90), (300, 260))
        for s in (0.25, 0.45, 0.9)
    ]

    LOOSER = [
        replace(THRESHOLDS, min_score=0.2),
        replace(THRESHOLDS, min_size_px=20),
        replace(THRESHOLDS, min_size_percent=0.5),
        replace(THRESHOLDS, max_size_percent=60.0),
        replace(THRESHOLDS, aspect_ratio_min=0.4, aspect_ratio_max=2.5),
    ]

    @pytest.mark.parametrize("looser", LOOSER)
    def test_looser_thresholds_keep_passing_detections(self, looser):
        """Every detection passing the strict set also passes the looser set."""
        for bbox, score in self.CANDIDATES:
            if rejection_reason(bbox, score, W, H, THRESHOLDS) is None:
                assert rejection_reason(bbox, score, W, H, looser) is None


class TestFaceFilter:
    """FaceFilter.apply maps boxes back to source pixels before filtering."""

    def test_rescales_boxes_to_source(self, webcam_config):
        """Boxes from an upscaled frame are divided back down."""
        face_filter = FaceFilter.from_config(webcam_config)
        det = make_raw(150, 150, 150, 150, score=0.9)
        kept = face_filter.apply([det], FrameTransform(scale_x=1.5, scale_y=1.5), (W, H))
        assert len(kept) == 1
        assert kept[0].bbox.as_tuple() == pytest.approx((100, 100, 200, 200))

    def test_roi_offset_applied(self, webcam_config):
        """ROI offsets realign boxes with the full frame."""
        face_filter = FaceFilter.from_config(webcam_config)
        det = make_raw(10, 10, 100, 100)
        kept = face_filter.apply([det], FrameTransform(offset_x=200, offset_y=100), (W, H))
        assert kept[0].bbox.x1 == 210
        assert kept[0].bbox.y1 == 110

    def test_drops_failing_detections(self, webcam_config):
        """Only passing detections are returned."""
        face_filter = FaceFilter.from_config(webcam_config)
        dets = [
            make_raw(100, 100, 100, 100, score=0.9),
            make_raw(0, 0, 384, 320, score=0.9),
            make_raw(300, 100, 100, 100, score=0.1),
        ]
        kept = face_filter.apply(dets, FrameTransform(), (W, H))
        assert len(kept) == 1

    def test_texture_check_rejects_flat_region(self, webcam_config, frame):
        """With the texture check on, a uniform wall patch is rejected."""
        cfg = replace(webcam_config, texture_filter=TextureFilterConfig(enabled=True))
        face_filter = FaceFilter.from_config(cfg)
        kept = face_filter.apply([make_raw(100, 100, 100, 100)], FrameTransform(), (W, H), frame)
        assert kept == []

    def test_texture_check_off_by_default(self, webcam_config, frame):
        """The texture check is opt-in."""
        face_filter = FaceFilter.from_config(webcam_config)
        kept = face_filter.apply([make_raw(100, 100, 100, 100)], FrameTransform(), (W, H), frame)
        assert len(kept) == 1


class TestTexture:
    """Texture heuristic details."""

    def test_textured_grayscale_crop_passes(self):
        """IR-like grayscale texture passes without a skin check."""
        rng = np.random.default_rng(0)
        gray = rng.integers(0, 255, size=(100, 100), dtype=np.uint8)
        frame = np.dstack([gray, gray, gray])
        assert looks_like_face(frame, BoundingBox(10, 10, 90, 90), TextureFilterConfig(enabled=True))

    def test_tiny_crop_not_rejected(self, frame):
        """Crops too small to judge are never rejected."""
        assert looks_like_face(frame, BoundingBox(10, 10, 11, 11), TextureFilterConfig(enabled=True))
