"""Shared fakes for the hand input and audio device collaborators."""

import numpy as np
import pytest

from pinch_engine.hands import Handed, HandSample, untracked, vec3
from pinch_engine.microphone import MicrophoneRecorder
from pinch_engine.storage import MemoryClipStore


class FakeAudioDevice:
    """Audio device whose pending samples are pushed by the test."""

    def __init__(self, devices=("Fake Mic",), start_ok=True):
        self.devices = list(devices)
        self.start_ok = start_ok
        self.active = False
        self.start_calls = 0
        self.stop_calls = 0
        self.drained = 0
        self._pending = np.zeros(0, dtype=np.float32)

    def list_devices(self):
        return self.devices

    def start(self):
        self.start_calls += 1
        if self.start_ok:
            self.active = True
            self._pending = np.zeros(0, dtype=np.float32)
        return self.start_ok

    def stop(self):
        self.stop_calls += 1
        self.active = False

    def push(self, samples):
        block = np.asarray(samples, dtype=np.float32)
        self._pending = np.concatenate([self._pending, block])

    @property
    def unread_count(self):
        return len(self._pending)

    def drain(self, max_count):
        out, self._pending = self._pending[:max_count], self._pending[max_count:]
        self.drained += len(out)
        return out


def hand(handed=Handed.RIGHT, strength=0.0, tracked=True, index=(0.0, 0.0, 0.0), thumb=(0.0, 0.0, 0.0)):
    return HandSample(
        handedness=handed,
        is_tracked=tracked,
        pinch_strength=strength,
        index_tip=vec3(*index),
        thumb_tip=vec3(*thumb),
    )


def right(strength, **kwargs):
    return {Handed.RIGHT: hand(Handed.RIGHT, strength, **kwargs), Handed.LEFT: untracked(Handed.LEFT)}


def left(strength, **kwargs):
    return {Handed.LEFT: hand(Handed.LEFT, strength, **kwargs), Handed.RIGHT: untracked(Handed.RIGHT)}


@pytest.fixture
def device():
    return FakeAudioDevice()


@pytest.fixture
def store():
    return MemoryClipStore()


@pytest.fixture
def mic(device, store):
    return MicrophoneRecorder(device, store)
