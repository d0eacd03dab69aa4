"""Microphone input through sounddevice.

PortAudio delivers blocks on its own thread; they are queued here and only
drained from the frame loop, so the recorder never blocks on the device.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Optional

import numpy as np

try:
    import sounddevice as sd
except (ImportError, OSError):
    # OSError: the wheel is installed but PortAudio is missing
    sd = None

from pinch_engine.microphone import CHANNELS, SAMPLE_RATE

logger = logging.getLogger("pinch_engine.audio")


class SoundDeviceAudio:
    """16 kHz mono float32 capture from a sounddevice input stream."""

    def __init__(
        self,
        device: Optional[str | int] = None,
        sample_rate: int = SAMPLE_RATE,
        blocksize: int = 1600,
        max_buffered_seconds: float = 10.0,
    ):
        if sd is None:
            raise ImportError(
                "sounddevice is required. Install with: pip install sounddevice"
            )
        self.device = device
        self.sample_rate = sample_rate
        self.blocksize = blocksize
        self._max_buffered = int(max_buffered_seconds * sample_rate)
        self._blocks: deque[np.ndarray] = deque()
        self._unread = 0
        self._dropped = 0
        self._lock = threading.Lock()
        self._stream = None

    def list_devices(self) -> list[str]:
        try:
            devices = sd.query_devices()
        except sd.PortAudioError as e:
            logger.warning("Could not query audio devices: %s", e)
            return []
        return [d["name"] for d in devices if d["max_input_channels"] > 0]

    def start(self) -> bool:
        if self._stream is not None:
            return False
        with self._lock:
            self._blocks.clear()
            self._unread = 0
        try:
            stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=CHANNELS,
                dtype="float32",
                device=self.device,
                blocksize=self.blocksize,
                callback=self._callback,
            )
            stream.start()
        except (sd.PortAudioError, ValueError) as e:
            logger.warning("Failed to open input stream: %s", e)
            return False
        self._stream = stream
        return True

    def stop(self) -> None:
        if self._stream is None:
            return
        try:
            self._stream.stop()
            self._stream.close()
        except sd.PortAudioError as e:
            logger.warning("Error closing input stream: %s", e)
        finally:
            self._stream = None
        if self._dropped:
            logger.warning("Dropped %d samples that were never drained", self._dropped)
            self._dropped = 0

    def _callback(self, indata, frames, time_info, status):
        if status:
            logger.debug("Input stream status: %s", status)
        block = np.array(indata[:, 0], dtype=np.float32)
        with self._lock:
            self._blocks.append(block)
            self._unread += len(block)
            while self._unread > self._max_buffered and len(self._blocks) > 1:
                old = self._blocks.popleft()
                self._unread -= len(old)
                self._dropped += len(old)

    @property
    def unread_count(self) -> int:
        with self._lock:
            return self._unread

    def drain(self, max_count: int) -> np.ndarray:
        """Pop up to ``max_count`` samples in arrival order."""
        out: list[np.ndarray] = []
        remaining = max_count
        with self._lock:
            while remaining > 0 and self._blocks:
                block = self._blocks[0]
                if len(block) <= remaining:
                    out.append(self._blocks.popleft())
                    remaining -= len(block)
                else:
                    out.append(block[:remaining])
                    self._blocks[0] = block[remaining:]
                    remaining = 0
            taken = max_count - remaining
            self._unread -= taken
        if not out:
            return np.zeros(0, dtype=np.float32)
        return np.concatenate(out)


class SimulatedAudio:
    """A sine tone that produces a fixed block per drain.

    Used for replays and dry runs on machines without a microphone. Like a
    real stream, the last block stays readable after ``stop`` until drained.
    """

    def __init__(
        self,
        frequency: float = 220.0,
        amplitude: float = 0.3,
        sample_rate: int = SAMPLE_RATE,
        block_size: int = 533,  # ~1/30 s at 16 kHz
    ):
        self.frequency = frequency
        self.amplitude = amplitude
        self.sample_rate = sample_rate
        self.block_size = block_size
        self._active = False
        self._phase = 0
        self._tail = 0

    def list_devices(self) -> list[str]:
        return ["simulated"]

    def start(self) -> bool:
        self._active = True
        self._phase = 0
        self._tail = 0
        return True

    def stop(self) -> None:
        if self._active:
            self._tail = self.block_size
        self._active = False

    @property
    def unread_count(self) -> int:
        return self.block_size if self._active else self._tail

    def drain(self, max_count: int) -> np.ndarray:
        n = min(max_count, self.unread_count)
        if not self._active:
            self._tail -= n
        t = (np.arange(n) + self._phase) / self.sample_rate
        self._phase += n
        return (self.amplitude * np.sin(2 * np.pi * self.frequency * t)).astype(np.float32)
