"""
Detector loading and the per-session capability set.

Weights are loaded once at startup; the outcome per detector is recorded
as a LoadResult and the loaded detectors are shared read-only afterwards.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional

from models.config import ModelPaths
from .attributes import CaffeAgeGenderEstimator
from .base import ACCURATE_DETECTOR, FAST_DETECTOR, FaceDetector
from .errors import DetectorUnavailable, NoUsableDetector
from .ssd import SsdDetector
from .yunet import YuNetDetector

MODE_DETECTORS: Dict[str, tuple] = {
    "tiny": (FAST_DETECTOR,),
    "ssd": (ACCURATE_DETECTOR,),
    "dual": (FAST_DETECTOR, ACCURATE_DETECTOR),
}


@dataclass(frozen=True)
class LoadResult:
    """Outcome of loading one model."""
    name: str
    ok: bool
    error: Optional[str] = None


class DetectorSet:
    """
    Detectors available to a session.

    A detector that fails at runtime with DetectorUnavailable is excluded for
    the remainder of the session.
    """

    def __init__(self, detectors: Dict[str, FaceDetector], load_results: Iterable[LoadResult] = ()):
        self._detectors = dict(detectors)
        self.load_results: List[LoadResult] = list(load_results)
        self.excluded: Dict[str, str] = {
            r.name: r.error or "failed to load"
            for r in self.load_results
            if not r.ok and r.name in (FAST_DETECTOR, ACCURATE_DETECTOR)
        }

    @property
    def available(self) -> FrozenSet[str]:
        return frozenset(n for n in self._detectors if n not in self.excluded)

    @property
    def has_usable(self) -> bool:
        return bool(self.available)

    def get(self, name: str) -> Optional[FaceDetector]:
        if name in self.excluded:
            return None
        return self._detectors.get(name)

    def exclude(self, name: str, reason: str) -> bool:
        """Exclude a detector; returns True only the first time."""
        if name in self.excluded:
            return False
        self.excluded[name] = reason
        return True


async def _load(model, name: str) -> LoadResult:
    try:
        await asyncio.to_thread(model.load)
    except DetectorUnavailable as e:
        logging.warning(f"[LOAD] {e}")
        return LoadResult(name=name, ok=False, error=e.reason)
    except Exception as e:
        logging.warning(f"[LOAD] {name} failed to load: {e}")
        return LoadResult(name=name, ok=False, error=str(e))
    return LoadResult(name=name, ok=True)


def build_detectors(paths: ModelPaths, mode: str) -> Dict[str, FaceDetector]:
    """Construct (but do not load) the detectors a detector mode needs."""
    attributes = CaffeAgeGenderEstimator(
        paths.age_prototxt, paths.age_weights, paths.gender_prototxt, paths.gender_weights
    )
    detectors: Dict[str, FaceDetector] = {}
    for name in MODE_DETECTORS[mode]:
        if name == FAST_DETECTOR:
            detectors[name] = YuNetDetector(paths.tiny, attributes=attributes)
        else:
            detectors[name] = SsdDetector(paths.ssd_prototxt, paths.ssd_weights, attributes=attributes)
    return detectors


async def load_detectors(paths: ModelPaths, mode: str) -> DetectorSet:
    """
    Load every detector the mode needs, plus the shared age/gender estimator.

    Raises:
        NoUsableDetector: If no face detector could be loaded.
    """
    if mode not in MODE_DETECTORS:
        raise ValueError(f"Unknown detector mode: {mode}")

    detectors = build_detectors(paths, mode)
    results: List[LoadResult] = []

    attributes = next(iter(detectors.values())).attributes
    attr_result = await _load(attributes, attributes.name)
    results.append(attr_result)
    if not attr_result.ok:
        logging.warning("Age/gender estimator unavailable; faces will be reported without attributes")

    for name, detector in detectors.items():
        results.append(await _load(detector, name))

    loaded = {name: d for name, d in detectors.items() if d.is_loaded}
    if not loaded:
        raise NoUsableDetector(
            "No face detector could be loaded: "
            + ", ".join(f"{r.name} ({r.error})" for r in results if not r.ok)
        )

    logging.info(f"Detectors ready: {sorted(loaded)}")
    return DetectorSet(detectors, results)
