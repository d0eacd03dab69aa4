"""Engine configuration.

Defaults live on the dataclass; a YAML file may override any of them:

    pinch_threshold: 0.75
    release_threshold: 0.25
    clips_dir: ~/pinch_clips
    max_recording_seconds: 120
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

from pinch_engine.detector import PINCH_THRESHOLD, RELEASE_THRESHOLD
from pinch_engine.microphone import (
    INTENSITY_SMOOTHING,
    MAX_RECORDING_SECONDS,
    MIN_RESTART_INTERVAL,
    SAMPLE_RATE,
    TARGET_PEAK,
)

logger = logging.getLogger("pinch_engine.config")


@dataclass
class EngineConfig:
    pinch_threshold: float = PINCH_THRESHOLD
    release_threshold: float = RELEASE_THRESHOLD
    sample_rate: int = SAMPLE_RATE
    target_peak: float = TARGET_PEAK
    intensity_smoothing: float = INTENSITY_SMOOTHING
    max_recording_seconds: float = MAX_RECORDING_SECONDS
    min_restart_interval: float = MIN_RESTART_INTERVAL
    microphone_permission: bool = True
    audio_device: Optional[str] = None
    camera_index: int = 0
    clips_dir: str = "clips"
    log_level: str = "INFO"

    def validate(self):
        """Raise ValueError on settings the engine cannot run with."""
        if not 0.0 <= self.release_threshold <= self.pinch_threshold <= 1.0:
            raise ValueError(
                "release_threshold must not exceed pinch_threshold, both in [0, 1]"
            )
        if not 0.0 < self.target_peak <= 1.0:
            raise ValueError("target_peak must be in (0, 1]")
        if not 0.0 <= self.intensity_smoothing < 1.0:
            raise ValueError("intensity_smoothing must be in [0, 1)")
        if self.max_recording_seconds <= 0:
            raise ValueError("max_recording_seconds must be positive")
        if self.min_restart_interval < 0:
            raise ValueError("min_restart_interval must not be negative")
        if self.sample_rate <= 0:
            raise ValueError("sample_rate must be positive")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> EngineConfig:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(unknown))
        config = cls(**{k: v for k, v in data.items() if k in known})
        config.validate()
        return config


def load_config(path: str | Path | None = None) -> EngineConfig:
    """Load config from a YAML file, or defaults if no path is given."""
    if path is None:
        return EngineConfig()
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return EngineConfig.from_dict(data)


def save_config(config: EngineConfig, path: str | Path):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
