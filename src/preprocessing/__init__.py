"""
Frame preprocessing: ROI cropping, upscaling and tone/sharpness enhancement.
"""

from .enhance import FrameTransform, PreparedFrame, build_tone_lut, prepare_frame
from .presets import SCENARIO_PRESETS, get_preset

__all__ = [
    "FrameTransform",
    "PreparedFrame",
    "build_tone_lut",
    "prepare_frame",
    "SCENARIO_PRESETS",
    "get_preset",
]
