"""
Tests for frame preprocessing (tone, denoise, sharpen, upscale, ROI).
"""

import numpy as np
import pytest

from models.config import PreprocessingOptions, RoiConfig
from models.detection import BoundingBox
from preprocessing.enhance import FrameTransform, build_tone_lut, prepare_frame
from preprocessing.presets import SCENARIO_PRESETS, get_preset


class TestToneLut:
    """Gamma and contrast lookup table."""

    def test_identity(self):
        """Unit gamma and contrast map every value to itself."""
        lut = build_tone_lut(1.0, 1.0)
        assert np.array_equal(lut.ravel(), np.arange(256, dtype=np.uint8))

    def test_gamma_brightens(self):
        """gamma > 1 brightens mid-tones: 255 * (v/255)^(1/gamma)."""
        lut = build_tone_lut(2.0, 1.0).ravel()
        expected = 255.0 * (64 / 255.0) ** 0.5
        assert abs(int(lut[64]) - expected) <= 1
        assert lut[0] == 0
        assert lut[255] == 255

    def test_contrast_around_mid_gray(self):
        """Contrast stretches around 128 and clamps."""
        lut = build_tone_lut(1.0, 2.0).ravel()
        assert lut[128] == 128
        assert lut[138] == 148
        assert lut[250] == 255
        assert lut[10] == 0


class TestPrepareFrame:
    """prepare_frame geometry and flags."""

    def test_identity_returns_same_array(self, frame):
        """No options, no upscale, no ROI: the input is returned untouched."""
        prepared = prepare_frame(frame)
        assert prepared.image is frame
        assert prepared.transform.is_identity
        assert not prepared.enhanced
        assert not prepared.upscaled

    def test_upscale_size(self, frame):
        """Upscale multiplies both dimensions."""
        prepared = prepare_frame(frame, None, 1.5)
        assert prepared.size == (960, 720)
        assert prepared.upscaled
        assert prepared.transform.scale_x == pytest.approx(1.5)

    def test_roi_crop_and_offset(self, frame):
        """ROI crops first and records its top-left offset."""
        roi = RoiConfig(enabled=True, x=0.5, y=0.5, width=0.5, height=0.5)
        prepared = prepare_frame(frame, None, 2.0, roi)
        assert prepared.size == (640, 480)
        assert prepared.roi_active
        assert prepared.transform.offset_x == 320
        assert prepared.transform.offset_y == 240

    def test_edge_roi_upscales(self, frame):
        """A zero-width ROI at the frame edge still yields an image to resize."""
        roi = RoiConfig(enabled=True, x=1.0, width=0.5).clamped()
        prepared = prepare_frame(frame, None, 1.5, roi)
        assert prepared.image.size > 0
        assert prepared.transform.offset_x == 639

    def test_transform_maps_back_to_source(self, frame):
        """Boxes found in the prepared frame map back to source pixels."""
        roi = RoiConfig(enabled=True, x=0.5, y=0.5, width=0.5, height=0.5)
        prepared = prepare_frame(frame, None, 2.0, roi)
        source_box = prepared.transform.to_source(BoundingBox(100, 100, 200, 200))
        assert source_box.as_tuple() == pytest.approx((370, 290, 420, 340))

    def test_enhancement_changes_pixels(self, frame):
        """Non-identity options produce an enhanced copy."""
        options = PreprocessingOptions(gamma=1.5, contrast=1.2, sharpen=0.3, denoise=True)
        prepared = prepare_frame(frame, options)
        assert prepared.enhanced
        assert prepared.image is not frame
        assert prepared.image.shape == frame.shape
        assert prepared.image.mean() > frame.mean()

    def test_transform_default_identity(self):
        """A default transform leaves boxes unchanged."""
        box = BoundingBox(1, 2, 3, 4)
        assert FrameTransform().to_source(box) == box


class TestPresets:
    """Scenario presets are a declarative table."""

    def test_all_scenarios_present(self):
        """Every capture scenario has a preset."""
        assert set(SCENARIO_PRESETS) == {
            "indoor", "outdoor", "night_ir", "low_light", "low_quality_cctv", "crowd",
        }

    def test_unknown_preset(self):
        """Unknown names raise ValueError."""
        with pytest.raises(ValueError):
            get_preset("underwater")
