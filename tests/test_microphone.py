"""Tests for microphone capture, metering, guards and normalization."""

import numpy as np
import pytest

from conftest import FakeAudioDevice
from pinch_engine.microphone import (
    CaptureError,
    MicrophoneRecorder,
    NormalizedClip,
    peak_normalize,
    rms,
)
from pinch_engine.storage import MemoryClipStore


class TestSignalMath:
    def test_rms_constant(self):
        assert rms(np.full(100, 0.5)) == pytest.approx(0.5)

    def test_rms_sine(self):
        t = np.arange(16000) / 16000
        assert rms(np.sin(2 * np.pi * 100 * t)) == pytest.approx(1 / np.sqrt(2), rel=1e-3)

    def test_rms_empty(self):
        assert rms(np.zeros(0)) == 0.0

    def test_normalize_peak_reaches_target(self):
        rng = np.random.default_rng(7)
        for scale in (0.01, 0.3, 1.0, 4.0):
            samples = (rng.standard_normal(1000) * scale).astype(np.float32)
            out = peak_normalize(samples)
            assert np.max(np.abs(out)) == pytest.approx(0.8, abs=1e-6)

    def test_normalize_negative_peak(self):
        out = peak_normalize(np.array([0.1, -0.5, 0.25], dtype=np.float32))
        np.testing.assert_allclose(out, [0.16, -0.8, 0.4], atol=1e-6)

    def test_normalize_silence_is_noop(self):
        silent = np.zeros(256, dtype=np.float32)
        out = peak_normalize(silent)
        np.testing.assert_array_equal(out, silent)

    def test_normalize_does_not_mutate_input(self):
        samples = np.array([0.1, 0.2], dtype=np.float32)
        peak_normalize(samples)
        np.testing.assert_array_equal(samples, [0.1, 0.2])

    def test_clip_duration(self):
        clip = NormalizedClip(samples=np.zeros(8000, dtype=np.float32))
        assert clip.duration == pytest.approx(0.5)
        assert clip.sample_rate == 16000
        assert clip.channels == 1


class TestStart:
    def test_start_success(self, mic, device):
        assert mic.start(0.0)
        assert mic.is_recording
        assert device.active
        assert mic.last_error is None

    def test_permission_denied(self, device, store):
        mic = MicrophoneRecorder(device, store, permission_granted=False)
        assert not mic.start(0.0)
        assert mic.last_error is CaptureError.PERMISSION_DENIED
        assert device.start_calls == 0

    def test_no_device(self, store):
        mic = MicrophoneRecorder(FakeAudioDevice(devices=()), store)
        assert not mic.start(0.0)
        assert mic.last_error is CaptureError.NO_DEVICE

    def test_device_fails(self, store):
        mic = MicrophoneRecorder(FakeAudioDevice(start_ok=False), store)
        assert not mic.start(0.0)
        assert not mic.is_recording
        assert mic.last_error is CaptureError.DEVICE_FAILED

    def test_start_while_active_is_noop(self, mic, device):
        assert mic.start(0.0)
        assert not mic.start(2.0)
        assert mic.last_error is CaptureError.ALREADY_ACTIVE
        assert mic.is_recording
        assert device.start_calls == 1


class TestRapidRepeat:
    def test_restart_within_interval_blocked(self, mic, device):
        assert mic.start(0.0)
        mic.stop(0.1)
        assert not mic.start(0.2)
        assert mic.last_error is CaptureError.TOO_SOON
        assert not mic.is_recording
        assert device.start_calls == 1

    def test_restart_after_interval(self, mic):
        assert mic.start(0.0)
        mic.stop(0.1)
        assert mic.start(0.5)

    def test_failed_start_does_not_arm_guard(self, device, store):
        mic = MicrophoneRecorder(device, store, permission_granted=False)
        mic.start(0.0)
        mic.permission_granted = True
        assert mic.start(0.1)


class TestStop:
    def test_stop_inactive_returns_none(self, mic, device):
        assert mic.stop(0.0) is None
        assert device.stop_calls == 0

    def test_stop_normalizes_and_saves(self, mic, device, store):
        mic.start(0.0)
        device.push([0.1, -0.2, 0.05])
        mic.update(0.1)
        device.push([0.4, -0.1])
        ref = mic.stop(0.2)

        assert ref == "memory://0"
        assert mic.last_clip_ref == ref
        clip = store.get(ref)
        np.testing.assert_allclose(clip.samples, [0.2, -0.4, 0.1, 0.8, -0.2], atol=1e-6)
        assert clip.sample_rate == 16000
        assert not mic.is_recording
        assert not device.active

    def test_stop_drains_remaining_samples(self, mic, device, store):
        mic.start(0.0)
        device.push(np.full(10, 0.1))
        ref = mic.stop(1.0)
        assert len(store.get(ref).samples) == 10
        assert device.unread_count == 0

    def test_silent_capture_saved_unchanged(self, mic, device, store):
        mic.start(0.0)
        device.push(np.zeros(32))
        ref = mic.stop(1.0)
        np.testing.assert_array_equal(store.get(ref).samples, np.zeros(32))

    def test_no_data(self, mic, store):
        mic.start(0.0)
        assert mic.stop(1.0) is None
        assert mic.last_error is CaptureError.NO_DATA
        assert store.clips == []

    def test_store_returns_none(self, device):
        class RefusingStore:
            def save(self, clip):
                return None

        mic = MicrophoneRecorder(device, RefusingStore())
        mic.start(0.0)
        device.push([0.5])
        assert mic.stop(1.0) is None
        assert mic.last_error is CaptureError.STORE_FAILED
        assert not mic.is_recording

    def test_store_raises(self, device):
        class BrokenStore:
            def save(self, clip):
                raise OSError("disk full")

        mic = MicrophoneRecorder(device, BrokenStore())
        mic.start(0.0)
        device.push([0.5])
        assert mic.stop(1.0) is None
        assert mic.last_error is CaptureError.STORE_FAILED

    def test_new_session_starts_with_empty_buffer(self, mic, device, store):
        mic.start(0.0)
        device.push([0.5, 0.5])
        mic.stop(1.0)
        mic.start(2.0)
        device.push([0.25])
        ref = mic.stop(3.0)
        assert len(store.get(ref).samples) == 1


class TestUpdate:
    def test_update_inactive_is_noop(self, mic, device):
        device.push([0.3] * 4)
        mic.update(0.0)
        assert device.unread_count == 4
        assert mic.intensity == 0.0

    def test_intensity_smoothing(self, mic, device):
        mic.start(0.0)
        device.push(np.full(100, 0.5))
        mic.update(0.1)
        assert mic.intensity == pytest.approx(0.1)  # 0*0.8 + 0.5*0.2
        device.push(np.full(100, 0.5))
        mic.update(0.2)
        assert mic.intensity == pytest.approx(0.18)  # 0.1*0.8 + 0.5*0.2

    def test_no_new_samples_keeps_intensity(self, mic, device):
        mic.start(0.0)
        device.push(np.full(10, 1.0))
        mic.update(0.1)
        before = mic.intensity
        mic.update(0.2)
        assert mic.intensity == before

    def test_sample_count(self, mic, device):
        mic.start(0.0)
        device.push(np.zeros(40))
        mic.update(0.1)
        device.push(np.zeros(2))
        mic.update(0.2)
        assert mic.sample_count == 42

    def test_elapsed(self, mic):
        assert mic.elapsed(5.0) == 0.0
        mic.start(1.0)
        assert mic.elapsed(3.5) == pytest.approx(2.5)


class TestLongRecordingGuard:
    def test_auto_stop_after_limit(self, device):
        store = MemoryClipStore()
        mic = MicrophoneRecorder(device, store)
        mic.start(0.0)
        t = 0.0
        while t <= 301.0:
            device.push(np.full(160, 0.1))
            mic.update(t)
            t += 1.0

        assert not mic.is_recording
        assert mic.auto_stopped
        assert device.stop_calls == 1
        assert len(store.clips) == 1
        assert mic.last_clip_ref == "memory://0"

    def test_no_drain_after_auto_stop(self, mic, device):
        mic.start(0.0)
        device.push(np.full(16, 0.2))
        mic.update(300.0)
        assert mic.is_recording
        mic.update(300.5)
        assert not mic.is_recording
        drained = device.drained

        device.push(np.full(16, 0.2))
        mic.update(301.0)
        mic.update(302.0)
        assert device.drained == drained
        assert device.unread_count == 16

    def test_exactly_at_limit_keeps_recording(self, mic):
        mic.start(0.0)
        mic.update(300.0)
        assert mic.is_recording
        assert not mic.auto_stopped

    def test_auto_flag_cleared_on_next_start(self, mic, device):
        mic.start(0.0)
        device.push([0.1])
        mic.update(301.0)
        assert mic.auto_stopped
        mic.start(400.0)
        assert not mic.auto_stopped
