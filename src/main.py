"""
Main application: live face demographics for ad scheduling.

Loads detectors once, serves the status API on a background thread, and runs
a capture session that samples the video source every interval until
interrupted.

Usage:
    python src/main.py --config config/config.yaml --profile cctv

Arguments:
    --config: Path to configuration file
    --source: Override source.device_id (camera index, URL or file)
    --profile: Override detection.profile (webcam or cctv)
    --no-web: Do not start the status API
"""

import os
import sys
import argparse
import asyncio
import logging
import threading
from typing import Dict, Any, Tuple, Optional

import yaml
import uvicorn

from detection.errors import NoUsableDetector
from detection.loader import load_detectors
from models.config import AppConfig, DETECTOR_MODES, PROFILES
from observation import create_source
from ops.logging import setup_logging
from pipeline.engine import DetectionPipeline
from pipeline.scheduler import CaptureSession
from runtime.context import SessionContext
from web.app import create_app
from web.state import PublishedState

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        base_path = os.path.join(os.path.dirname(config_path), "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(os.path.dirname(config_path), "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        if os.path.exists(config_path) and os.path.abspath(config_path) != os.path.abspath(local_overrides_path):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Operator-tunable ranges (sensitivity, boost, upscale, ROI) are clamped
    later rather than rejected here; only types and structure are checked.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['source', 'detection', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    source = config.get('source') or {}
    if 'device_id' not in source:
        return False, "Missing source.device_id"
    if not isinstance(source['device_id'], (int, str)) or isinstance(source['device_id'], bool):
        return False, "source.device_id must be an integer (index) or string (URL or file path)"
    if isinstance(source['device_id'], int) and source['device_id'] < 0:
        return False, "source.device_id integer must be non-negative"
    resolution = source.get('resolution')
    if resolution is not None:
        if not isinstance(resolution, list) or len(resolution) != 2:
            return False, "source.resolution must be a list of [width, height]"
        if not all(isinstance(x, int) and x > 0 for x in resolution):
            return False, "source.resolution values must be positive integers"

    detection = config.get('detection') or {}
    profile = detection.get('profile', 'webcam')
    if profile not in PROFILES:
        return False, f"detection.profile must be one of: {', '.join(PROFILES)}"
    if 'detector' in detection and detection['detector'] not in DETECTOR_MODES:
        return False, f"detection.detector must be one of: {', '.join(DETECTOR_MODES)}"

    for key in ('sensitivity', 'upscale', 'min_face_score', 'min_face_size_px',
                'min_face_size_percent', 'max_face_size_percent', 'max_velocity_px'):
        if key in detection and not _is_number(detection[key]):
            return False, f"detection.{key} must be a number"
    for key in ('min_consecutive_frames', 'hold_frames', 'vote_window'):
        if key in detection and (not isinstance(detection[key], int) or detection[key] < 0):
            return False, f"detection.{key} must be a non-negative integer"
    if 'iou_threshold' in detection:
        iou = detection['iou_threshold']
        if not _is_number(iou) or not (0 < iou <= 1):
            return False, "detection.iou_threshold must be between 0 and 1"
    lo = detection.get('aspect_ratio_min')
    hi = detection.get('aspect_ratio_max')
    if lo is not None and hi is not None and (not _is_number(lo) or not _is_number(hi) or lo > hi):
        return False, "detection.aspect_ratio_min must not exceed aspect_ratio_max"

    scheduler = config.get('scheduler') or {}
    for key in ('interval_s', 'timeout_s'):
        if key in scheduler and (not _is_number(scheduler[key]) or scheduler[key] <= 0):
            return False, f"scheduler.{key} must be a positive number"

    if not isinstance(config['log_path'], str):
        return False, "log_path must be a string"
    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def apply_cli_overrides(config: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    if args.source is not None:
        source = args.source
        config.setdefault('source', {})['device_id'] = int(source) if source.isdigit() else source
    if args.profile is not None:
        config.setdefault('detection', {})['profile'] = args.profile
    if args.no_web:
        config.setdefault('web', {})['enabled'] = False
    return config


def start_web_server(app_cfg: AppConfig, published: PublishedState) -> threading.Thread:
    def run_web_app():
        uvicorn.run(
            create_app(published),
            host=app_cfg.web.host,
            port=app_cfg.web.port,
            log_level="info",
        )

    web_thread = threading.Thread(target=run_web_app, daemon=True)
    web_thread.start()
    logging.info(f"Status API started on port {app_cfg.web.port}")
    return web_thread


async def run(app_cfg: AppConfig, published: PublishedState) -> None:
    detection_cfg = app_cfg.detection
    try:
        detectors = await load_detectors(app_cfg.models, detection_cfg.detector)
    except NoUsableDetector as e:
        # Ad playback and the status API keep running without detection
        logging.error(f"[DETECT] {e}")
        published.set_detection_disabled(str(e))
        await asyncio.Event().wait()
        return

    session = SessionContext(
        config=detection_cfg,
        detectors=detectors,
        on_disabled=published.set_detection_disabled,
    )
    published.set_unavailable_detectors(session.unavailable_detectors)
    pipeline = DetectionPipeline(session, timeout_s=app_cfg.scheduler.timeout_s)
    source = create_source(app_cfg.source)
    published.set_source(source.source_id)

    capture = CaptureSession(
        pipeline,
        source,
        interval_s=app_cfg.scheduler.interval_s,
        listeners=[published.publish_cycle],
        on_window_end=lambda counts: logging.info(f"Window demographics: {counts.to_dict()}"),
    )
    await capture.run()


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='Face Demographics - live audience analysis')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--source', type=str, default=None,
                        help='Camera index, stream URL or video file (overrides config)')
    parser.add_argument('--profile', type=str, choices=list(PROFILES), default=None,
                        help='Detection profile (overrides config)')
    parser.add_argument('--no-web', action='store_true',
                        help='Do not start the status API')
    args = parser.parse_args()

    config = apply_cli_overrides(load_config(args.config), args)

    is_valid, error_msg = validate_config(config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    app_cfg = AppConfig.from_dict(config)
    setup_logging(app_cfg.log_path, app_cfg.log_level, app_cfg.detection.debug_mode)
    logging.info(
        f"Starting Face Demographics (profile={app_cfg.detection.profile}, "
        f"detector={app_cfg.detection.detector})"
    )

    published = PublishedState(profile=app_cfg.detection.profile)
    if app_cfg.web.enabled:
        start_web_server(app_cfg, published)

    try:
        asyncio.run(run(app_cfg, published))
    except KeyboardInterrupt:
        logging.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
