"""Per-frame composition: hand input → pinch detector → workflow → microphone."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from pinch_engine.config import EngineConfig
from pinch_engine.detector import PinchGestureDetector
from pinch_engine.events import PinchEvent, PinchEventBus
from pinch_engine.hands import Handed, HandInputSource, HandSample
from pinch_engine.microphone import AudioDevice, ClipStore, MicrophoneRecorder
from pinch_engine.profiler import TickProfiler
from pinch_engine.storage import NpzClipStore
from pinch_engine.workflow import PostProcessor, RecordingStatus, RecordingWorkflow

logger = logging.getLogger("pinch_engine.pipeline")


@dataclass
class TickResult:
    """Everything a frame's display needs."""
    events: list[PinchEvent]
    status: RecordingStatus
    intensity: float


@dataclass
class PipelineStats:
    total_ticks: int
    total_events: int
    sessions_completed: int
    over_budget_ticks: int = 0
    profiler_summary: dict = field(default_factory=dict)


class PinchPipeline:
    """Owns one event bus and wires the detector and workflow to it.

    ``tick`` runs the components in a fixed order: detector, workflow,
    microphone. Pinch events are delivered synchronously inside the detector
    step, so by the time the workflow's own update runs it has seen every
    event for this frame. A stop forced by the microphone during its update
    is picked up by the workflow on the following tick.

    Usage:
        pipeline = PinchPipeline(device=SoundDeviceAudio(), source=MediaPipeHandSource())
        while running:
            result = pipeline.tick()
    """

    def __init__(
        self,
        device: AudioDevice,
        store: Optional[ClipStore] = None,
        source: Optional[HandInputSource] = None,
        config: Optional[EngineConfig] = None,
        post_processor: Optional[PostProcessor] = None,
        enable_profiling: bool = True,
        frame_budget_ms: Optional[float] = None,
    ):
        self.config = config or EngineConfig()
        self.config.validate()
        self.source = source

        self.bus = PinchEventBus()
        self.detector = PinchGestureDetector(
            self.bus,
            pinch_threshold=self.config.pinch_threshold,
            release_threshold=self.config.release_threshold,
        )
        self.recorder = MicrophoneRecorder(
            device,
            store if store is not None else NpzClipStore(self.config.clips_dir),
            permission_granted=self.config.microphone_permission,
            sample_rate=self.config.sample_rate,
            target_peak=self.config.target_peak,
            smoothing=self.config.intensity_smoothing,
            max_seconds=self.config.max_recording_seconds,
            min_restart_interval=self.config.min_restart_interval,
        )
        self.workflow = RecordingWorkflow(self.bus, self.recorder, post_processor)

        self.profiler = TickProfiler(frame_budget_ms=frame_budget_ms)
        self.profiler.enabled = enable_profiling
        self._total_ticks = 0
        self._total_events = 0

    def tick(
        self,
        samples: Optional[dict[Handed, HandSample]] = None,
        timestamp: Optional[float] = None,
    ) -> TickResult:
        """Advance one frame.

        Args:
            samples: Hand samples for this frame. Polled from the source when
                omitted.
            timestamp: Current time (monotonic).
        """
        now = timestamp if timestamp is not None else time.monotonic()
        if samples is None:
            if self.source is None:
                raise ValueError("no hand samples given and no input source configured")
            samples = self.source.poll()

        with self.profiler.stage("total"):
            with self.profiler.stage("detection"):
                events = self.detector.update(samples, now)
            with self.profiler.stage("workflow"):
                self.workflow.update(now)
            with self.profiler.stage("capture"):
                self.recorder.update(now)

        self._total_ticks += 1
        self._total_events += len(events)
        return TickResult(
            events=events,
            status=self.workflow.status(now),
            intensity=self.recorder.intensity,
        )

    @property
    def stats(self) -> PipelineStats:
        return PipelineStats(
            total_ticks=self._total_ticks,
            total_events=self._total_events,
            sessions_completed=self.workflow.sessions_completed,
            over_budget_ticks=self.profiler.over_budget,
            profiler_summary=self.profiler.summary(),
        )

    def close(self, timestamp: Optional[float] = None):
        """Stop any running capture and detach the workflow."""
        if self.recorder.is_recording:
            logger.info("Closing pipeline with a recording in progress")
            self.recorder.stop(timestamp)
        self.workflow.update(timestamp)
        self.workflow.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
