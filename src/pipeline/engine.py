"""
Pipeline engine for one detection cycle.

A cycle reads the current frame, runs the multi-pass orchestrator (the only
suspending step), then filters, classifies, tracks and aggregates
synchronously. Every per-cycle error is contained here so the periodic
scheduler never sees it.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

from detection.errors import NoUsableDetector, VideoSourceNotReady
from detection.orchestrator import MultiPassOrchestrator, PassResult
from models.debug import DebugInfo
from models.demographics import DemographicCounts
from models.detection import DetectionResult
from models.frame import FrameData
from observation.base import ObservationSource
from pipeline.stages.postprocess import PostProcessStage
from runtime.context import SessionContext

# Weight of the newest cycle in the FPS estimate
FPS_SMOOTHING = 0.3


@dataclass
class CycleOutput:
    """Everything published after one completed detection cycle."""
    results: List[DetectionResult]
    snapshot: DemographicCounts
    debug: DebugInfo


@dataclass
class PipelineStats:
    """Runtime statistics for the pipeline."""
    cycle_count: int = 0
    skipped_not_ready: int = 0
    skipped_in_flight: int = 0
    timeouts: int = 0
    errors: int = 0
    fps: float = 0.0
    last_cycle_at: Optional[float] = None
    start_time: float = field(default_factory=time.time)


class DetectionPipeline:
    """
    Runs detection cycles for one session.

    Example:
        pipeline = DetectionPipeline(session, timeout_s=10.0)
        output = await pipeline.run_cycle(source)
    """

    def __init__(self, session: SessionContext, timeout_s: float = 10.0):
        self.session = session
        self.orchestrator = MultiPassOrchestrator(session.detectors, session.config, timeout_s)
        self.stage = PostProcessStage.from_config(session.config)
        self.stats = PipelineStats()

    @property
    def in_flight(self) -> bool:
        return self.orchestrator.in_flight

    async def run_cycle(self, source: ObservationSource) -> Optional[CycleOutput]:
        """
        Run one detection cycle against the source's current frame.

        Returns:
            CycleOutput, or None when the cycle was skipped (detection
            disabled, previous cycle in flight, source not ready, or an
            error was contained).
        """
        session = self.session
        if session.detection_disabled:
            return None

        if self.orchestrator.in_flight:
            self.stats.skipped_in_flight += 1
            logging.debug("[DETECT] Previous cycle still in flight, skipping tick")
            return None

        try:
            frame_data = self._read_frame(source)
        except VideoSourceNotReady as e:
            self.stats.skipped_not_ready += 1
            logging.debug(f"[DETECT] Skipping cycle: {e}")
            return None

        start = time.perf_counter()
        try:
            pass_result = await self.orchestrator.run_cycle(frame_data.frame)
        except NoUsableDetector as e:
            session.disable(str(e))
            return None
        except Exception as e:
            self.stats.errors += 1
            logging.error(f"[DETECT] Cycle failed: {e}", exc_info=session.config.debug_mode)
            return None

        if pass_result is None:
            self.stats.skipped_in_flight += 1
            return None

        return self._complete(frame_data, pass_result, start)

    def _read_frame(self, source: ObservationSource) -> FrameData:
        if not source.is_ready:
            raise VideoSourceNotReady(f"Source {source.source_id} is not ready")
        frame_data = source.read()
        if frame_data is None or not frame_data.is_decodable:
            raise VideoSourceNotReady(f"Source {source.source_id} has no decodable frame")
        return frame_data

    def _complete(self, frame_data: FrameData, pass_result: PassResult, start: float) -> CycleOutput:
        session = self.session
        if pass_result.timed_out:
            self.stats.timeouts += 1

        filtered = self.stage.process(pass_result, frame_data.frame)
        tracks = session.tracker.update(filtered, frame_data.timestamp)
        results = session.aggregator.current_results()
        snapshot = session.aggregator.current_snapshot()

        now = time.time()
        self._update_fps(now)
        self.stats.cycle_count += 1

        debug = DebugInfo(
            fps=round(self.stats.fps, 2),
            latency_ms=round((time.perf_counter() - start) * 1000.0, 1),
            detector_used=pass_result.detector_used,
            pass_used=pass_result.pass_used,
            raw_detections=pass_result.raw_count,
            filtered_detections=len(filtered),
            tracked_faces=len(tracks),
            preprocessing=pass_result.preprocessed,
            upscaled=pass_result.upscaled,
            frame_size=pass_result.frame_size,
            roi_active=pass_result.roi_active,
            timed_out=pass_result.timed_out,
            unavailable_detectors=session.unavailable_detectors,
            timestamp=now,
        )

        if session.config.debug_mode:
            logging.debug(
                f"[PASS] cycle={self.stats.cycle_count} pass={debug.pass_used} "
                f"detector={debug.detector_used or '-'} raw={debug.raw_detections} "
                f"filtered={debug.filtered_detections} tracks={debug.tracked_faces} "
                f"latency={debug.latency_ms:.0f}ms"
            )

        return CycleOutput(results=results, snapshot=snapshot, debug=debug)

    def _update_fps(self, now: float):
        last = self.stats.last_cycle_at
        self.stats.last_cycle_at = now
        if last is None or now <= last:
            return
        instant = 1.0 / (now - last)
        if self.stats.fps == 0.0:
            self.stats.fps = instant
        else:
            self.stats.fps = FPS_SMOOTHING * instant + (1 - FPS_SMOOTHING) * self.stats.fps

    def reset(self, source_id: Optional[str] = None):
        """Forget tracks and timing (source switch)."""
        self.session.reset(source_id)
        self.stats.last_cycle_at = None
        self.stats.fps = 0.0
