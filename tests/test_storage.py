"""Tests for clip stores."""

from pathlib import Path

import numpy as np
import pytest

from pinch_engine.microphone import NormalizedClip
from pinch_engine.storage import MemoryClipStore, NpzClipStore, load_clip


def make_clip(n=1600):
    t = np.arange(n) / 16000
    return NormalizedClip(samples=(0.8 * np.sin(2 * np.pi * 440 * t)).astype(np.float32))


class TestNpzClipStore:
    def test_save_and_load(self, tmp_path):
        store = NpzClipStore(tmp_path / "clips")
        clip = make_clip()
        ref = store.save(clip)

        assert ref is not None
        assert Path(ref).exists()
        assert Path(ref).name.startswith("clip_")
        loaded = load_clip(ref)
        np.testing.assert_array_equal(loaded.samples, clip.samples)
        assert loaded.sample_rate == 16000
        assert loaded.channels == 1
        assert loaded.duration == pytest.approx(0.1)

    def test_distinct_paths(self, tmp_path):
        store = NpzClipStore(tmp_path, prefix="take")
        refs = {store.save(make_clip(10)) for _ in range(3)}
        assert len(refs) == 3
        assert all(Path(r).name.startswith("take_") for r in refs)

    def test_unwritable_directory_returns_none(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        store = NpzClipStore(blocker / "clips")
        assert store.save(make_clip()) is None


class TestMemoryClipStore:
    def test_refs_index_clips(self):
        store = MemoryClipStore()
        a, b = make_clip(10), make_clip(20)
        assert store.save(a) == "memory://0"
        assert store.save(b) == "memory://1"
        assert store.get("memory://1") is b

    def test_unknown_ref(self):
        store = MemoryClipStore()
        assert store.get("memory://3") is None
        assert store.get("memory://x") is None
