"""
Frame enhancement for rescue detection passes.

Steps, in order: ROI crop, upscale, gamma + contrast (single lookup table),
optional 3x3 box-blur denoise, unsharp-mask sharpen. The returned transform
maps boxes found on the enhanced frame back to source-frame pixels.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

from models.config import PreprocessingOptions, RoiConfig
from models.detection import BoundingBox


_SHARPEN_KERNEL = np.array(
    [[0, -1, 0],
     [-1, 5, -1],
     [0, -1, 0]],
    dtype=np.float32,
)


@dataclass(frozen=True)
class FrameTransform:
    """Maps detector-frame coordinates back to source-frame coordinates."""
    scale_x: float = 1.0
    scale_y: float = 1.0
    offset_x: int = 0
    offset_y: int = 0

    @property
    def is_identity(self) -> bool:
        return (
            self.scale_x == 1.0 and self.scale_y == 1.0
            and self.offset_x == 0 and self.offset_y == 0
        )

    def to_source(self, bbox: BoundingBox) -> BoundingBox:
        return BoundingBox(
            x1=bbox.x1 / self.scale_x + self.offset_x,
            y1=bbox.y1 / self.scale_y + self.offset_y,
            x2=bbox.x2 / self.scale_x + self.offset_x,
            y2=bbox.y2 / self.scale_y + self.offset_y,
        )


@dataclass
class PreparedFrame:
    """A frame ready to be fed to a detector, plus how to undo its geometry."""
    image: np.ndarray
    transform: FrameTransform
    enhanced: bool = False
    upscaled: bool = False
    roi_active: bool = False

    @property
    def size(self) -> Tuple[int, int]:
        h, w = self.image.shape[:2]
        return (w, h)


def build_tone_lut(gamma: float, contrast: float) -> np.ndarray:
    """
    Build a 256-entry lookup table combining gamma and contrast.

    gamma:    out = 255 * (in / 255) ** (1 / gamma)
    contrast: out = clamp((in - 128) * contrast + 128)
    """
    values = np.arange(256, dtype=np.float64)
    if gamma > 0 and gamma != 1.0:
        values = 255.0 * np.power(values / 255.0, 1.0 / gamma)
    if contrast != 1.0:
        values = (values - 128.0) * contrast + 128.0
    return np.clip(np.round(values), 0, 255).astype(np.uint8)


def apply_tone(image: np.ndarray, gamma: float, contrast: float) -> np.ndarray:
    if gamma == 1.0 and contrast == 1.0:
        return image
    return cv2.LUT(image, build_tone_lut(gamma, contrast))


def box_blur(image: np.ndarray) -> np.ndarray:
    """3x3 average filter."""
    return cv2.blur(image, (3, 3))


def sharpen(image: np.ndarray, strength: float) -> np.ndarray:
    """Blend a 3x3 sharpened copy into the image by ``strength`` (0-1)."""
    strength = max(0.0, min(1.0, strength))
    if strength == 0.0:
        return image
    sharpened = cv2.filter2D(image, -1, _SHARPEN_KERNEL)
    return cv2.addWeighted(image, 1.0 - strength, sharpened, strength, 0)


def crop_roi(image: np.ndarray, roi: Optional[RoiConfig]) -> Tuple[np.ndarray, Tuple[int, int]]:
    """Crop to the ROI; returns the crop and its top-left offset in source pixels."""
    h, w = image.shape[:2]
    if roi is None or not roi.enabled:
        return image, (0, 0)
    x, y, rw, rh = roi.pixel_rect(w, h)
    return image[y:y + rh, x:x + rw], (x, y)


def prepare_frame(
    frame: np.ndarray,
    options: Optional[PreprocessingOptions] = None,
    upscale: float = 1.0,
    roi: Optional[RoiConfig] = None,
) -> PreparedFrame:
    """
    Produce the frame a detector will see.

    With no options, unit upscale and no ROI the input array is returned
    untouched (no copy).
    """
    cropped, (ox, oy) = crop_roi(frame, roi)
    roi_active = roi is not None and roi.enabled
    crop_h, crop_w = cropped.shape[:2]

    image = cropped
    scale_x = scale_y = 1.0
    upscaled = False
    if upscale and upscale > 1.0:
        new_w = max(1, int(round(crop_w * upscale)))
        new_h = max(1, int(round(crop_h * upscale)))
        image = cv2.resize(cropped, (new_w, new_h), interpolation=cv2.INTER_CUBIC)
        scale_x = new_w / crop_w
        scale_y = new_h / crop_h
        upscaled = True

    enhanced = False
    if options is not None and not options.is_identity:
        image = apply_tone(image, options.gamma, options.contrast)
        if options.denoise:
            image = box_blur(image)
        image = sharpen(image, options.sharpen)
        enhanced = True

    return PreparedFrame(
        image=image,
        transform=FrameTransform(scale_x=scale_x, scale_y=scale_y, offset_x=ox, offset_y=oy),
        enhanced=enhanced,
        upscaled=upscaled,
        roi_active=roi_active,
    )
