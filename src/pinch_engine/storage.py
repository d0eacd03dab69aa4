"""Clip persistence.

Clips are stored as compressed numpy archives rather than encoded audio
files; whoever uploads or transcribes them loads the float samples back with
``load_clip``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import numpy as np

from pinch_engine.microphone import NormalizedClip

logger = logging.getLogger("pinch_engine.storage")


class NpzClipStore:
    """Writes each clip to ``<directory>/clip_<timestamp>.npz``."""

    def __init__(self, directory: str | Path, prefix: str = "clip"):
        self.directory = Path(directory)
        self.prefix = prefix

    def save(self, clip: NormalizedClip) -> Optional[str]:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Cannot create clip directory %s: %s", self.directory, e)
            return None

        stamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        path = self.directory / f"{self.prefix}_{stamp}.npz"
        try:
            np.savez_compressed(
                path,
                samples=clip.samples.astype(np.float32),
                sample_rate=np.array(clip.sample_rate, dtype=np.int32),
                channels=np.array(clip.channels, dtype=np.int32),
            )
        except OSError as e:
            logger.error("Failed to write clip %s: %s", path, e)
            return None
        logger.debug("Saved %.2fs clip to %s", clip.duration, path)
        return str(path)


def load_clip(path: str | Path) -> NormalizedClip:
    """Load a clip written by NpzClipStore."""
    data = np.load(Path(path), allow_pickle=False)
    return NormalizedClip(
        samples=data["samples"],
        sample_rate=int(data["sample_rate"]),
        channels=int(data["channels"]),
    )


class MemoryClipStore:
    """Keeps clips in memory; references are ``memory://<index>``."""

    def __init__(self):
        self.clips: list[NormalizedClip] = []

    def save(self, clip: NormalizedClip) -> Optional[str]:
        self.clips.append(clip)
        return f"memory://{len(self.clips) - 1}"

    def get(self, ref: str) -> Optional[NormalizedClip]:
        try:
            index = int(ref.rsplit("/", 1)[-1])
        except ValueError:
            return None
        if 0 <= index < len(self.clips):
            return self.clips[index]
        return None
