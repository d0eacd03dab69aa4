"""Microphone capture with metering, duration guards and peak normalization.

The recorder owns one capture session at a time. It is driven from the frame
loop: ``start``/``stop`` come from the recording workflow, ``update`` runs
once per tick to drain new samples and refresh the intensity meter.

Usage:
    recorder = MicrophoneRecorder(SoundDeviceAudio(), NpzClipStore("clips/"))
    if recorder.start(now):
        ...
        recorder.update(now)      # every tick
        ...
        ref = recorder.stop(now)  # path of the saved clip, or None
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol, Sequence

import numpy as np

logger = logging.getLogger("pinch_engine.microphone")

SAMPLE_RATE = 16000
CHANNELS = 1
TARGET_PEAK = 0.8
INTENSITY_SMOOTHING = 0.8
MAX_RECORDING_SECONDS = 300.0
MIN_RESTART_INTERVAL = 0.5


@dataclass(frozen=True, eq=False)
class NormalizedClip:
    """Speech-recognition-ready audio: mono float32 at 16 kHz."""
    samples: np.ndarray
    sample_rate: int = SAMPLE_RATE
    channels: int = CHANNELS

    @property
    def duration(self) -> float:
        return len(self.samples) / float(self.sample_rate)


class AudioDevice(Protocol):
    """Raw capture device: a start/stop switch plus a drainable sample stream."""

    def list_devices(self) -> Sequence[str]:
        ...

    def start(self) -> bool:
        ...

    def stop(self) -> None:
        ...

    @property
    def unread_count(self) -> int:
        ...

    def drain(self, max_count: int) -> np.ndarray:
        ...


class ClipStore(Protocol):
    """Persists a clip and returns an opaque reference, or None on failure."""

    def save(self, clip: NormalizedClip) -> Optional[str]:
        ...


class CaptureError(Enum):
    PERMISSION_DENIED = "permission_denied"
    NO_DEVICE = "no_device"
    ALREADY_ACTIVE = "already_active"
    TOO_SOON = "too_soon"
    DEVICE_FAILED = "device_failed"
    NO_DATA = "no_data"
    STORE_FAILED = "store_failed"


def rms(samples: np.ndarray) -> float:
    """Root-mean-square of a sample block; 0.0 for an empty block."""
    samples = np.asarray(samples, dtype=np.float64)
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(samples))))


def peak_normalize(samples: np.ndarray, target: float = TARGET_PEAK) -> np.ndarray:
    """Scale samples so the loudest one reaches ``target`` of full scale.

    Silent input (peak of zero) is returned unchanged.
    """
    samples = np.asarray(samples, dtype=np.float32)
    if samples.size == 0:
        return samples.copy()
    peak = float(np.max(np.abs(samples)))
    if peak <= 0.0:
        return samples.copy()
    return (samples.astype(np.float64) * (target / peak)).astype(np.float32)


class MicrophoneRecorder:
    """Owns the capture session between a workflow start and stop.

    Guards:
    - Long recordings: past ``max_seconds`` the recorder stops itself on the
      next ``update`` and still saves the clip through the normal stop path.
    - Rapid repeats: a ``start`` within ``min_restart_interval`` of the
      previous successful start is refused, which absorbs double pinches
      caused by tracking jitter.

    None of the failures here raise. They return False/None, are logged and
    are kept in ``last_error``.
    """

    def __init__(
        self,
        device: AudioDevice,
        store: ClipStore,
        permission_granted: bool = True,
        sample_rate: int = SAMPLE_RATE,
        target_peak: float = TARGET_PEAK,
        smoothing: float = INTENSITY_SMOOTHING,
        max_seconds: float = MAX_RECORDING_SECONDS,
        min_restart_interval: float = MIN_RESTART_INTERVAL,
    ):
        self.device = device
        self.store = store
        self.permission_granted = permission_granted
        self.sample_rate = sample_rate
        self.target_peak = target_peak
        self.smoothing = smoothing
        self.max_seconds = max_seconds
        self.min_restart_interval = min_restart_interval

        self.devices = list(device.list_devices())
        if self.devices:
            logger.info("Found %d capture device(s): %s", len(self.devices), ", ".join(self.devices))
        else:
            logger.warning("No capture devices found; recording is disabled")

        self._active = False
        self._started_at = 0.0
        self._last_start_at: Optional[float] = None
        self._chunks: list[np.ndarray] = []
        self._sample_count = 0
        self._intensity = 0.0
        self._auto_stopped = False
        self.last_clip_ref: Optional[str] = None
        self.last_error: Optional[CaptureError] = None

    def start(self, timestamp: Optional[float] = None) -> bool:
        """Open a capture session. Returns False if none was started."""
        now = timestamp if timestamp is not None else time.monotonic()

        if not self.permission_granted:
            return self._refuse(CaptureError.PERMISSION_DENIED, "microphone permission not granted")
        if not self.devices:
            return self._refuse(CaptureError.NO_DEVICE, "no capture device available")
        if self._active:
            self.last_error = CaptureError.ALREADY_ACTIVE
            logger.debug("Capture already active, ignoring start")
            return False
        if self._last_start_at is not None and now - self._last_start_at < self.min_restart_interval:
            self.last_error = CaptureError.TOO_SOON
            logger.info(
                "Ignoring start %.2fs after the previous one (min %.2fs)",
                now - self._last_start_at, self.min_restart_interval,
            )
            return False
        if not self.device.start():
            return self._refuse(CaptureError.DEVICE_FAILED, "capture device failed to start")

        self._active = True
        self._started_at = now
        self._last_start_at = now
        self._chunks = []
        self._sample_count = 0
        self._intensity = 0.0
        self._auto_stopped = False
        self.last_error = None
        logger.info("Microphone capture started (%d Hz mono)", self.sample_rate)
        return True

    def _refuse(self, error: CaptureError, reason: str) -> bool:
        self.last_error = error
        logger.warning("Cannot start recording: %s", reason)
        return False

    def stop(self, timestamp: Optional[float] = None) -> Optional[str]:
        """Close the session and persist the normalized clip.

        Returns the store's reference for the clip, or None when nothing was
        active, nothing was captured, or the store failed.
        """
        now = timestamp if timestamp is not None else time.monotonic()
        if not self._active:
            logger.debug("Capture not active, ignoring stop")
            return None

        self.device.stop()
        self._drain()
        self._active = False
        elapsed = now - self._started_at
        self.last_clip_ref = None

        if self._sample_count == 0:
            self.last_error = CaptureError.NO_DATA
            logger.warning("Recording stopped after %.2fs with no audio captured", elapsed)
            return None

        raw = np.concatenate(self._chunks)
        self._chunks = []
        clip = NormalizedClip(
            samples=peak_normalize(raw, self.target_peak),
            sample_rate=self.sample_rate,
            channels=CHANNELS,
        )

        try:
            ref = self.store.save(clip)
        except Exception:
            logger.exception("Failed to save %.2fs clip", clip.duration)
            ref = None
        if ref is None:
            self.last_error = CaptureError.STORE_FAILED
            logger.error("Clip of %d samples could not be saved", len(clip.samples))
            return None

        self.last_clip_ref = ref
        logger.info("Recording stopped after %.2fs, %d samples saved to %s", elapsed, len(clip.samples), ref)
        return ref

    def update(self, timestamp: Optional[float] = None):
        """Per-tick: enforce the duration limit, drain samples, update the meter."""
        if not self._active:
            return
        now = timestamp if timestamp is not None else time.monotonic()

        if now - self._started_at > self.max_seconds:
            logger.warning("Recording exceeded %.0fs, stopping automatically", self.max_seconds)
            self._auto_stopped = True
            self.stop(now)
            return

        new = self._drain()
        if new.size:
            self._intensity = self._intensity * self.smoothing + rms(new) * (1.0 - self.smoothing)

    def _drain(self) -> np.ndarray:
        pending = self.device.unread_count
        if pending <= 0:
            return np.zeros(0, dtype=np.float32)
        block = np.asarray(self.device.drain(pending), dtype=np.float32).ravel()
        if block.size:
            self._chunks.append(block)
            self._sample_count += block.size
        return block

    @property
    def is_recording(self) -> bool:
        return self._active

    @property
    def intensity(self) -> float:
        """Smoothed input level, for UI feedback only."""
        return self._intensity

    @property
    def sample_count(self) -> int:
        return self._sample_count

    @property
    def auto_stopped(self) -> bool:
        """True if the last session was ended by the duration guard."""
        return self._auto_stopped

    def elapsed(self, timestamp: Optional[float] = None) -> float:
        if not self._active:
            return 0.0
        now = timestamp if timestamp is not None else time.monotonic()
        return now - self._started_at
