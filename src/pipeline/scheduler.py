"""
Capture session scheduling.

A CaptureSession acquires the frame source, fires a detection cycle every
interval on the running event loop, publishes each completed cycle to its
listeners and, when the capture window ends, hands the final demographic
snapshot to the ad-queue consumer. The source is released on stop, source
switch or error.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, List, Optional, Set

from models.demographics import DemographicCounts
from observation.base import ObservationSource
from .engine import CycleOutput, DetectionPipeline

CycleListener = Callable[[CycleOutput], None]
WindowEndConsumer = Callable[[DemographicCounts], None]


class CaptureSession:
    """
    Periodic detection over one source for one capture window.

    Ticks are fire-and-forget tasks; the pipeline's in-flight guard turns a
    tick that lands on a pending cycle into a no-op.

    Example:
        session = CaptureSession(pipeline, source, interval_s=1.0,
                                 on_window_end=ad_queue.score)
        session.add_listener(published.publish_cycle)
        snapshot = await session.run(duration_s=30)
    """

    def __init__(
        self,
        pipeline: DetectionPipeline,
        source: ObservationSource,
        interval_s: float = 1.0,
        listeners: Optional[List[CycleListener]] = None,
        on_window_end: Optional[WindowEndConsumer] = None,
    ):
        self.pipeline = pipeline
        self.source = source
        self.interval_s = interval_s
        self._listeners: List[CycleListener] = list(listeners or [])
        self._on_window_end = on_window_end
        self._stop_event: Optional[asyncio.Event] = None
        self._pending_source: Optional[ObservationSource] = None
        self._tasks: Set[asyncio.Task] = set()
        self._running = False
        self.last_output: Optional[CycleOutput] = None

    @property
    def is_running(self) -> bool:
        return self._running

    def add_listener(self, listener: CycleListener) -> None:
        """
        Add a callback to be called after each completed cycle.

        Args:
            listener: Function taking the CycleOutput.
        """
        self._listeners.append(listener)

    def stop(self) -> None:
        """Request the capture window to end after the current tick."""
        if self._stop_event is not None:
            self._stop_event.set()

    def switch_source(self, source: ObservationSource) -> None:
        """Replace the source at the next tick; tracks are reset."""
        self._pending_source = source
        if not self._running:
            self.source = source

    async def run(self, duration_s: Optional[float] = None) -> DemographicCounts:
        """
        Run the capture window until stopped or until duration_s elapses.

        Returns:
            The final demographic snapshot (also handed to on_window_end).
        """
        self._stop_event = asyncio.Event()
        self._running = True
        deadline = None if duration_s is None else time.monotonic() + duration_s
        self.pipeline.reset(self.source.source_id)

        try:
            await self._acquire(self.source)
            logging.info(f"Capture session started: source={self.source.source_id}, interval={self.interval_s}s")

            while not self._stop_event.is_set():
                if self._pending_source is not None:
                    await self._swap_source()
                elif not self.source.is_open:
                    await self._acquire(self.source)

                self._spawn_tick()

                wait_s = self.interval_s
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        break
                    wait_s = min(wait_s, remaining)
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=wait_s)
                except asyncio.TimeoutError:
                    pass
        finally:
            await self._drain_ticks()
            self.source.close()
            self._running = False

        snapshot = self.pipeline.session.aggregator.current_snapshot()
        logging.info(f"Capture session ended: {snapshot.to_dict()}")
        if self._on_window_end is not None:
            try:
                self._on_window_end(snapshot)
            except Exception as e:
                logging.warning(f"Window-end consumer error: {e}")
        return snapshot

    def _spawn_tick(self) -> None:
        task = asyncio.create_task(self._tick(self.source))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _tick(self, source: ObservationSource) -> None:
        try:
            output = await self.pipeline.run_cycle(source)
        except Exception as e:
            # run_cycle contains its own errors; this guards the timer only
            logging.error(f"[DETECT] Unexpected tick failure: {e}")
            return

        if output is None or source is not self.source:
            return

        self.last_output = output
        for listener in self._listeners:
            try:
                listener(output)
            except Exception as e:
                logging.warning(f"Listener error: {e}")

    async def _swap_source(self) -> None:
        new_source, self._pending_source = self._pending_source, None
        await self._drain_ticks()
        old_id = self.source.source_id
        self.source.close()
        self.source = new_source
        self.pipeline.reset(new_source.source_id)
        await self._acquire(new_source)
        logging.info(f"Capture source switched: {old_id} -> {new_source.source_id}")

    async def _acquire(self, source: ObservationSource) -> bool:
        """
        Open the source off the event loop.

        A failed open is logged and the source stays closed; ticks against it
        are skipped as not ready and the open is retried on the next tick.
        """
        try:
            await asyncio.to_thread(source.open)
        except Exception as e:
            logging.warning(f"[DETECT] Could not open source {source.source_id}: {e}")
            return False
        return True

    async def _drain_ticks(self) -> None:
        if not self._tasks:
            return
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
