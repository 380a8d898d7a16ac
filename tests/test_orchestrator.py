"""
Tests for the multi-pass detection orchestrator.
"""

import asyncio
import threading

import pytest

from detection.errors import NoUsableDetector
from detection.orchestrator import MultiPassOrchestrator

from conftest import FakeDetector, detector_set, make_raw


def at_size(size, *detections):
    """Respond only when called with the given input size."""
    return lambda image, input_size, threshold: list(detections) if input_size == size else []


class TestThresholds:
    """Per-pass score thresholds."""

    def test_webcam_standard_threshold(self, webcam_config):
        """max(min_face_score, sensitivity) - margin."""
        orch = MultiPassOrchestrator(detector_set(FakeDetector("tiny")), webcam_config)
        assert orch.standard_threshold == pytest.approx(0.40)

    def test_cctv_thresholds(self, cctv_config):
        """Rescue and fallback lower the threshold but never below the floor."""
        orch = MultiPassOrchestrator(detector_set(FakeDetector("tiny")), cctv_config)
        assert orch.standard_threshold == pytest.approx(0.30)
        assert orch.rescue_threshold == pytest.approx(0.20)
        assert orch.fallback_threshold == pytest.approx(0.15)


class TestPasses:
    """Pass selection and ordering."""

    def test_pass_one(self, webcam_config, frame):
        """The standard pass returns the fast detector's results."""
        tiny = FakeDetector("tiny", lambda *a: [make_raw(100, 100, 100, 100)])
        orch = MultiPassOrchestrator(detector_set(tiny), webcam_config)

        result = asyncio.run(orch.run_cycle(frame))

        assert result.pass_used == 1
        assert result.detector_used == "tiny"
        assert result.raw_count == 1
        assert tiny.calls == [(640, 480, 320, pytest.approx(0.40))]
        assert not result.upscaled

    def test_webcam_never_rescues(self, webcam_config, frame):
        """Without rescue passes an empty pass 1 ends the cycle."""
        tiny = FakeDetector("tiny")
        orch = MultiPassOrchestrator(detector_set(tiny), webcam_config)

        result = asyncio.run(orch.run_cycle(frame))

        assert result.pass_used == 0
        assert result.detections == []
        assert len(tiny.calls) == 1

    def test_dual_mode_tries_fast_first(self, cctv_config, frame):
        """In dual mode pass 1 runs the fast detector before the accurate one."""
        tiny = FakeDetector("tiny")
        ssd = FakeDetector("ssd", at_size(416, make_raw(100, 100, 80, 80, detector="ssd")))
        orch = MultiPassOrchestrator(detector_set(tiny, ssd), cctv_config)

        result = asyncio.run(orch.run_cycle(frame))

        assert result.pass_used == 1
        assert result.detector_used == "ssd"
        assert len(tiny.calls) == 1

    def test_rescue_with_accurate_detector(self, cctv_config, frame):
        """An empty pass 1 triggers pass 2 on the enhanced, upscaled frame."""
        tiny = FakeDetector("tiny")
        ssd = FakeDetector("ssd", at_size(608, make_raw(450, 300, 90, 90, score=0.32, detector="ssd")))
        orch = MultiPassOrchestrator(detector_set(tiny, ssd), cctv_config)

        result = asyncio.run(orch.run_cycle(frame))

        assert result.pass_used == 2
        assert result.detector_used == "ssd"
        assert result.upscaled
        assert result.preprocessed
        assert ssd.calls[-1] == (960, 720, 608, pytest.approx(0.20))
        assert result.transform.to_source(result.detections[0].bbox).as_xywh() == pytest.approx((300, 200, 60, 60))

    def test_rescue_retries_fast_detector(self, cctv_config, frame):
        """If the accurate detector stays empty, pass 2 retries the fast one."""
        tiny = FakeDetector("tiny", at_size(608, make_raw(450, 300, 90, 90, score=0.25)))
        ssd = FakeDetector("ssd")
        orch = MultiPassOrchestrator(detector_set(tiny, ssd), cctv_config)

        result = asyncio.run(orch.run_cycle(frame))

        assert result.pass_used == 2
        assert result.detector_used == "tiny"

    def test_fallback_pass(self, cctv_config, frame):
        """Pass 3 uses the fast detector at the alternate size and lowest threshold."""
        tiny = FakeDetector("tiny", at_size(512, make_raw(450, 300, 90, 90, score=0.17)))
        ssd = FakeDetector("ssd")
        orch = MultiPassOrchestrator(detector_set(tiny, ssd), cctv_config)

        result = asyncio.run(orch.run_cycle(frame))

        assert result.pass_used == 3
        assert result.detector_used == "tiny"
        assert tiny.calls[-1][2:] == (512, pytest.approx(0.15))

    def test_rescue_disabled_in_cctv(self, cctv_config, frame):
        """CCTV with rescue passes off behaves like a single pass."""
        from dataclasses import replace
        tiny = FakeDetector("tiny", at_size(608, make_raw(450, 300, 90, 90)))
        ssd = FakeDetector("ssd")
        orch = MultiPassOrchestrator(detector_set(tiny, ssd), replace(cctv_config, rescue_passes=False))

        result = asyncio.run(orch.run_cycle(frame))

        assert result.pass_used == 0
        assert len(tiny.calls) == 1
        assert len(ssd.calls) == 1


class TestInFlightGuard:
    """At most one cycle runs at a time."""

    def test_second_cycle_is_noop(self, webcam_config, frame):
        """A cycle issued while another is pending does not reach the detector."""
        gate = threading.Event()
        tiny = FakeDetector("tiny", lambda *a: [make_raw(100, 100, 100, 100)], block=gate)
        orch = MultiPassOrchestrator(detector_set(tiny), webcam_config)

        async def scenario():
            first = asyncio.create_task(orch.run_cycle(frame))
            await asyncio.sleep(0.05)
            assert orch.in_flight
            second = await orch.run_cycle(frame)
            gate.set()
            return await first, second

        first, second = asyncio.run(scenario())

        assert second is None
        assert first.pass_used == 1
        assert len(tiny.calls) == 1
        assert tiny.max_active == 1
        assert not orch.in_flight


class TestTimeout:
    """Cycles are bounded by a hard timeout."""

    def test_timeout_returns_empty_and_releases_guard(self, webcam_config, frame):
        """A slow detector yields an empty timed-out result; the next cycle proceeds."""
        gate = threading.Event()
        tiny = FakeDetector("tiny", lambda *a: [make_raw(100, 100, 100, 100)], block=gate)
        orch = MultiPassOrchestrator(detector_set(tiny), webcam_config, timeout_s=0.05)

        async def scenario():
            timed_out = await orch.run_cycle(frame)
            released = not orch.in_flight
            gate.set()
            following = await orch.run_cycle(frame)
            return timed_out, released, following

        timed_out, released, following = asyncio.run(scenario())

        assert timed_out.timed_out
        assert timed_out.detections == []
        assert timed_out.frame_size == (640, 480)
        assert released
        assert following.pass_used == 1
        assert not following.timed_out


class TestDegradation:
    """Unavailable detectors are excluded for the session."""

    def test_unavailable_detector_excluded(self, cctv_config, frame):
        """A failing accurate detector is excluded; the fast one keeps working."""
        tiny = FakeDetector("tiny", at_size(608, make_raw(450, 300, 90, 90)))
        ssd = FakeDetector("ssd", loaded=False)
        detectors = detector_set(tiny, ssd)
        orch = MultiPassOrchestrator(detectors, cctv_config)

        result = asyncio.run(orch.run_cycle(frame))

        assert "ssd" in detectors.excluded
        assert detectors.available == frozenset({"tiny"})
        assert result.pass_used == 2
        assert result.detector_used == "tiny"

    def test_all_unavailable_raises(self, webcam_config, frame):
        """Losing the last detector raises NoUsableDetector and releases the guard."""
        tiny = FakeDetector("tiny", loaded=False)
        orch = MultiPassOrchestrator(detector_set(tiny), webcam_config)

        with pytest.raises(NoUsableDetector):
            asyncio.run(orch.run_cycle(frame))
        assert not orch.in_flight

    def test_mode_detector_missing_uses_remaining(self, webcam_config, frame):
        """If the mode's detector failed to load, pass 1 uses what is loaded."""
        ssd = FakeDetector("ssd", lambda *a: [make_raw(100, 100, 100, 100, detector="ssd")])
        orch = MultiPassOrchestrator(detector_set(ssd), webcam_config)

        result = asyncio.run(orch.run_cycle(frame))

        assert result.detector_used == "ssd"
