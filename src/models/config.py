"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Optional, Tuple, Union

DETECTOR_MODES = ("tiny", "ssd", "dual")
PROFILES = ("webcam", "cctv")

SENSITIVITY_RANGE = (0.2, 0.6)
FEMALE_BOOST_RANGE = (0.0, 0.30)
UPSCALE_RANGE = (1.0, 2.0)


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


@dataclass(frozen=True)
class PreprocessingOptions:
    """Image enhancement parameters applied before rescue detection."""
    gamma: float = 1.0
    contrast: float = 1.0
    sharpen: float = 0.0
    denoise: bool = False

    @property
    def is_identity(self) -> bool:
        return (
            self.gamma == 1.0
            and self.contrast == 1.0
            and self.sharpen == 0.0
            and not self.denoise
        )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PreprocessingOptions":
        return cls(
            gamma=float(d.get("gamma", 1.0)),
            contrast=float(d.get("contrast", 1.0)),
            sharpen=float(d.get("sharpen", 0.0)),
            denoise=bool(d.get("denoise", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gamma": self.gamma,
            "contrast": self.contrast,
            "sharpen": self.sharpen,
            "denoise": self.denoise,
        }


@dataclass(frozen=True)
class RoiConfig:
    """Region of interest as fractions of the frame (0-1)."""
    enabled: bool = False
    x: float = 0.0
    y: float = 0.0
    width: float = 1.0
    height: float = 1.0

    def pixel_rect(self, frame_width: int, frame_height: int) -> Tuple[int, int, int, int]:
        """
        Return the ROI as integer (x, y, width, height) in frame pixels.

        A disabled ROI covers the whole frame.
        """
        if not self.enabled:
            return (0, 0, frame_width, frame_height)
        # At least one pixel row and column always remain inside the frame
        x = min(int(round(self.x * frame_width)), frame_width - 1)
        y = min(int(round(self.y * frame_height)), frame_height - 1)
        w = int(round(self.width * frame_width))
        h = int(round(self.height * frame_height))
        w = max(1, min(w, frame_width - x))
        h = max(1, min(h, frame_height - y))
        return (x, y, w, h)

    def clamped(self) -> "RoiConfig":
        x = _clamp(self.x, 0.0, 1.0)
        y = _clamp(self.y, 0.0, 1.0)
        return replace(
            self,
            x=x,
            y=y,
            width=_clamp(self.width, 0.0, 1.0 - x),
            height=_clamp(self.height, 0.0, 1.0 - y),
        )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RoiConfig":
        return cls(
            enabled=bool(d.get("enabled", False)),
            x=float(d.get("x", 0.0)),
            y=float(d.get("y", 0.0)),
            width=float(d.get("width", 1.0)),
            height=float(d.get("height", 1.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True)
class TextureFilterConfig:
    """Secondary texture/skin-tone validation, independent of the numeric filters."""
    enabled: bool = False
    min_edge_variance: float = 15.0
    skin_check: bool = True
    min_skin_ratio: float = 0.05

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TextureFilterConfig":
        return cls(
            enabled=bool(d.get("enabled", False)),
            min_edge_variance=float(d.get("min_edge_variance", 15.0)),
            skin_check=bool(d.get("skin_check", True)),
            min_skin_ratio=float(d.get("min_skin_ratio", 0.05)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "min_edge_variance": self.min_edge_variance,
            "skin_check": self.skin_check,
            "min_skin_ratio": self.min_skin_ratio,
        }


@dataclass(frozen=True)
class GenderCorrectionConfig:
    """
    Bias correction applied to the model's gender probability.

    Setting female_boost to 0 and heuristics_enabled to False yields the raw
    model output.
    """
    female_boost: float = 0.10
    heuristics_enabled: bool = False
    hair_weight: float = 0.08
    shape_weight: float = 0.04

    @property
    def is_disabled(self) -> bool:
        return self.female_boost == 0.0 and not self.heuristics_enabled

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "GenderCorrectionConfig":
        return cls(
            female_boost=float(d.get("female_boost", 0.10)),
            heuristics_enabled=bool(d.get("heuristics_enabled", False)),
            hair_weight=float(d.get("hair_weight", 0.08)),
            shape_weight=float(d.get("shape_weight", 0.04)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "female_boost": self.female_boost,
            "heuristics_enabled": self.heuristics_enabled,
            "hair_weight": self.hair_weight,
            "shape_weight": self.shape_weight,
        }


_NESTED = {
    "preprocessing": PreprocessingOptions,
    "roi": RoiConfig,
    "texture_filter": TextureFilterConfig,
    "gender_correction": GenderCorrectionConfig,
}


@dataclass(frozen=True)
class DetectionConfig:
    """
    Per-session detection configuration.

    Immutable for the lifetime of a session; build a new one (and reset the
    tracker) to change settings.
    """
    profile: str = "webcam"
    detector: str = "tiny"
    sensitivity: float = 0.4

    preprocessing: PreprocessingOptions = field(default_factory=PreprocessingOptions)
    upscale: float = 1.0
    roi: RoiConfig = field(default_factory=RoiConfig)

    # Filtering
    min_face_score: float = 0.45
    min_face_size_px: float = 40
    min_face_size_percent: float = 2.0
    max_face_size_percent: float = 35.0
    aspect_ratio_min: float = 0.6
    aspect_ratio_max: float = 1.8
    texture_filter: TextureFilterConfig = field(default_factory=TextureFilterConfig)

    # Classification
    gender_correction: GenderCorrectionConfig = field(default_factory=GenderCorrectionConfig)

    # Tracking
    min_consecutive_frames: int = 1
    hold_frames: int = 2
    max_velocity_px: float = 200.0
    iou_threshold: float = 0.3
    vote_window: int = 5
    distance_fallback: bool = True

    # Multi-pass detection
    rescue_passes: bool = False
    standard_input_size: int = 320
    rescue_input_size: int = 608
    fallback_input_size: int = 512
    threshold_margin: float = 0.05
    rescue_threshold_drop: float = 0.10
    fallback_threshold_drop: float = 0.15
    min_threshold_floor: float = 0.15

    debug_mode: bool = False

    @property
    def is_cctv(self) -> bool:
        return self.profile == "cctv"

    @property
    def effective_min_score(self) -> float:
        """Score floor applied by the filter."""
        return min(self.min_face_score, self.sensitivity)

    def clamped(self) -> "DetectionConfig":
        """Range-clamp operator-supplied values."""
        gc = self.gender_correction
        return replace(
            self,
            sensitivity=_clamp(self.sensitivity, *SENSITIVITY_RANGE),
            upscale=_clamp(self.upscale, *UPSCALE_RANGE),
            roi=self.roi.clamped(),
            gender_correction=replace(
                gc, female_boost=_clamp(gc.female_boost, *FEMALE_BOOST_RANGE)
            ),
            min_consecutive_frames=max(1, int(self.min_consecutive_frames)),
            hold_frames=max(0, int(self.hold_frames)),
            vote_window=max(1, int(self.vote_window)),
        )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectionConfig":
        """
        Adapter: Create from config dictionary.

        Missing keys fall back to the preset named by ``profile``.
        """
        profile = d.get("profile", "webcam")
        base = PROFILE_PRESETS.get(profile, WEBCAM_PRESET)
        kwargs: Dict[str, Any] = {}
        for f in fields(cls):
            if f.name not in d:
                kwargs[f.name] = getattr(base, f.name)
            elif f.name == "preprocessing" and isinstance(d[f.name], str):
                # Scenario preset name (indoor, outdoor, night_ir, ...)
                from preprocessing.presets import get_preset
                kwargs[f.name] = get_preset(d[f.name])
            elif f.name in _NESTED:
                merged = getattr(base, f.name).to_dict()
                merged.update(d[f.name] or {})
                kwargs[f.name] = _NESTED[f.name].from_dict(merged)
            else:
                kwargs[f.name] = d[f.name]
        kwargs["profile"] = profile
        return cls(**kwargs).clamped()

    @classmethod
    def for_profile(cls, profile: str, overrides: Optional[Dict[str, Any]] = None) -> "DetectionConfig":
        d = dict(overrides or {})
        d["profile"] = profile
        return cls.from_dict(d)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            d[f.name] = value.to_dict() if f.name in _NESTED else value
        return d


WEBCAM_PRESET = DetectionConfig(
    profile="webcam",
    detector="tiny",
    sensitivity=0.4,
    preprocessing=PreprocessingOptions(gamma=1.0, contrast=1.0, sharpen=0.0, denoise=False),
    upscale=1.0,
    min_face_score=0.45,
    min_face_size_px=40,
    min_face_size_percent=2.0,
    max_face_size_percent=35.0,
    aspect_ratio_min=0.6,
    aspect_ratio_max=1.8,
    min_consecutive_frames=1,
    hold_frames=2,
    max_velocity_px=200.0,
    rescue_passes=False,
    standard_input_size=320,
)

CCTV_PRESET = DetectionConfig(
    profile="cctv",
    detector="dual",
    sensitivity=0.35,
    preprocessing=PreprocessingOptions(gamma=1.2, contrast=1.3, sharpen=0.3, denoise=False),
    upscale=1.5,
    min_face_score=0.3,
    min_face_size_px=24,
    min_face_size_percent=1.0,
    max_face_size_percent=35.0,
    aspect_ratio_min=0.5,
    aspect_ratio_max=2.0,
    min_consecutive_frames=2,
    hold_frames=4,
    max_velocity_px=150.0,
    rescue_passes=True,
    standard_input_size=416,
)

PROFILE_PRESETS: Dict[str, DetectionConfig] = {
    "webcam": WEBCAM_PRESET,
    "cctv": CCTV_PRESET,
}


@dataclass
class ModelPaths:
    """Locations of detector and attribute model weights."""
    tiny: str = "models/face_detection_yunet_2023mar.onnx"
    ssd_prototxt: str = "models/deploy.prototxt"
    ssd_weights: str = "models/res10_300x300_ssd_iter_140000.caffemodel"
    age_prototxt: str = "models/age_deploy.prototxt"
    age_weights: str = "models/age_net.caffemodel"
    gender_prototxt: str = "models/gender_deploy.prototxt"
    gender_weights: str = "models/gender_net.caffemodel"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ModelPaths":
        defaults = cls()
        return cls(**{f.name: d.get(f.name, getattr(defaults, f.name)) for f in fields(cls)})

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class SourceConfig:
    """Video source configuration."""
    device_id: Union[int, str] = 0
    loop: bool = True
    resolution: Optional[List[int]] = None
    fps: Optional[int] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SourceConfig":
        return cls(
            device_id=d.get("device_id", 0),
            loop=d.get("loop", True),
            resolution=d.get("resolution"),
            fps=d.get("fps"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "device_id": self.device_id,
            "loop": self.loop,
            "resolution": self.resolution,
            "fps": self.fps,
        }


@dataclass
class SchedulerConfig:
    """Detection cycle timing."""
    interval_s: float = 1.0
    timeout_s: float = 10.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SchedulerConfig":
        return cls(
            interval_s=float(d.get("interval_s", 1.0)),
            timeout_s=float(d.get("timeout_s", 10.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"interval_s": self.interval_s, "timeout_s": self.timeout_s}


@dataclass
class WebConfig:
    """Status API server settings."""
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 5000

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WebConfig":
        return cls(
            enabled=d.get("enabled", True),
            host=d.get("host", "0.0.0.0"),
            port=d.get("port", 5000),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "host": self.host, "port": self.port}


@dataclass
class AppConfig:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    source: SourceConfig = field(default_factory=SourceConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    models: ModelPaths = field(default_factory=ModelPaths)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    web: WebConfig = field(default_factory=WebConfig)
    log_path: str = "logs/face_demographics.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AppConfig":
        """Adapter: Create AppConfig from raw dictionary (e.g., from load_config)."""
        return cls(
            source=SourceConfig.from_dict(d.get("source", {}) or {}),
            detection=DetectionConfig.from_dict(d.get("detection", {}) or {}),
            models=ModelPaths.from_dict(d.get("models", {}) or {}),
            scheduler=SchedulerConfig.from_dict(d.get("scheduler", {}) or {}),
            web=WebConfig.from_dict(d.get("web", {}) or {}),
            log_path=d.get("log_path", "logs/face_demographics.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source.to_dict(),
            "detection": self.detection.to_dict(),
            "models": self.models.to_dict(),
            "scheduler": self.scheduler.to_dict(),
            "web": self.web.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
