"""Right-hand pinch recording workflow.

Two states, IDLE and RECORDING. A right-hand pinch start begins a recording,
holding the pinch logs position samples, and releasing it stops the
microphone and hands the finished recording to post-processing. Left-hand
events are ignored.

The microphone can also end a recording on its own (duration guard). The
workflow notices on its next ``update`` and closes the session as if the
pinch had been released.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from pinch_engine.events import PinchEvent, PinchEventBus, PinchKind
from pinch_engine.hands import Handed, format_vec3
from pinch_engine.microphone import MicrophoneRecorder

logger = logging.getLogger("pinch_engine.workflow")


class WorkflowState(Enum):
    IDLE = "idle"
    RECORDING = "recording"


@dataclass
class RecordingSession:
    is_active: bool = False
    started_at: float = 0.0
    event_log: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RecordingStatus:
    """Read-only snapshot for display. ``elapsed`` is in seconds."""
    is_recording: bool
    elapsed: float
    event_count: int
    last_recorded_audio_path: Optional[str] = None


@dataclass(frozen=True)
class RecordingSummary:
    """What post-processing receives when a recording finishes."""
    started_at: float
    duration: float
    event_log: tuple[str, ...]
    clip_ref: Optional[str]
    forced_stop: bool = False


PostProcessor = Callable[[RecordingSummary], None]


class RecordingWorkflow:
    """Drives the microphone from right-hand pinch events.

    Usage:
        workflow = RecordingWorkflow(bus, recorder)
        # per tick, after the detector has published:
        workflow.update(now)
        status = workflow.status(now)
    """

    HAND = Handed.RIGHT

    def __init__(
        self,
        bus: PinchEventBus,
        recorder: MicrophoneRecorder,
        post_processor: Optional[PostProcessor] = None,
    ):
        self.bus = bus
        self.recorder = recorder
        self.post_processor = post_processor
        self.last_recorded_audio_path: Optional[str] = None
        self.sessions_completed = 0
        self._session = RecordingSession()

        self._handlers = {
            PinchKind.START: self._on_start,
            PinchKind.HOLD: self._on_hold,
            PinchKind.END: self._on_end,
        }
        for kind, handler in self._handlers.items():
            bus.subscribe(kind, handler)

    @property
    def state(self) -> WorkflowState:
        return WorkflowState.RECORDING if self._session.is_active else WorkflowState.IDLE

    @property
    def is_recording(self) -> bool:
        return self._session.is_active

    @property
    def event_log(self) -> tuple[str, ...]:
        return tuple(self._session.event_log)

    def elapsed(self, timestamp: Optional[float] = None) -> float:
        if not self._session.is_active:
            return 0.0
        now = timestamp if timestamp is not None else time.monotonic()
        return now - self._session.started_at

    def status(self, timestamp: Optional[float] = None) -> RecordingStatus:
        return RecordingStatus(
            is_recording=self._session.is_active,
            elapsed=self.elapsed(timestamp),
            event_count=len(self._session.event_log),
            last_recorded_audio_path=self.last_recorded_audio_path,
        )

    # --- Event handlers ---

    def _on_start(self, event: PinchEvent):
        if event.hand is not self.HAND:
            return
        self.update(event.timestamp)
        if self._session.is_active:
            return
        if not self.recorder.start(event.timestamp):
            reason = self.recorder.last_error.value if self.recorder.last_error else "unknown"
            logger.warning("Right-hand pinch did not start a recording (%s)", reason)
            return

        self._session = RecordingSession(
            is_active=True,
            started_at=event.timestamp,
            event_log=[f"Recording started at {format_vec3(event.position)}"],
        )
        logger.info("Recording workflow started via right-hand pinch gesture")

    def _on_hold(self, event: PinchEvent):
        if event.hand is not self.HAND:
            return
        self.update(event.timestamp)
        if not self._session.is_active:
            return
        self._session.event_log.append(
            f"Hold at {format_vec3(event.position)} - Duration: {self.elapsed(event.timestamp):.2f}s"
        )

    def _on_end(self, event: PinchEvent):
        if event.hand is not self.HAND:
            return
        self.update(event.timestamp)
        if not self._session.is_active:
            return
        clip_ref = self.recorder.stop(event.timestamp)
        self._finish(event.timestamp, clip_ref, f"Recording ended at {format_vec3(event.position)}")

    # --- Per-tick ---

    def update(self, timestamp: Optional[float] = None):
        """Catch up with a recording the microphone ended by itself.

        Also runs ahead of every right-hand event, so an event arriving
        before this tick's update still sees the session closed.
        """
        if self._session.is_active and not self.recorder.is_recording:
            now = timestamp if timestamp is not None else time.monotonic()
            logger.warning("Microphone stopped on its own; closing recording session")
            self._finish(
                now,
                self.recorder.last_clip_ref,
                "Recording stopped by microphone",
                forced=True,
            )

    def _finish(self, now: float, clip_ref: Optional[str], entry: str, forced: bool = False):
        duration = now - self._session.started_at
        self._session.event_log.append(f"{entry} - Total duration: {duration:.2f}s")
        self._session.is_active = False
        self.last_recorded_audio_path = clip_ref
        self.sessions_completed += 1
        logger.info("Recording workflow stopped. Duration: %.2fs", duration)

        self._process(RecordingSummary(
            started_at=self._session.started_at,
            duration=duration,
            event_log=tuple(self._session.event_log),
            clip_ref=clip_ref,
            forced_stop=forced,
        ))

    def _process(self, summary: RecordingSummary):
        logger.info(
            "Processing recording with %d events (clip: %s)",
            len(summary.event_log), summary.clip_ref or "none",
        )
        if self.post_processor is None:
            return
        try:
            self.post_processor(summary)
        except Exception:
            logger.exception("Post-processing failed for recording %s", summary.clip_ref)

    def close(self):
        """Unsubscribe from the bus."""
        for kind, handler in self._handlers.items():
            self.bus.unsubscribe(kind, handler)
