"""Tests for YAML configuration."""

import logging

import pytest
import yaml

from pinch_engine.config import EngineConfig, load_config, save_config


class TestDefaults:
    def test_default_values(self):
        cfg = load_config()
        assert cfg.pinch_threshold == 0.7
        assert cfg.release_threshold == 0.3
        assert cfg.sample_rate == 16000
        assert cfg.target_peak == 0.8
        assert cfg.max_recording_seconds == 300.0
        assert cfg.min_restart_interval == 0.5
        assert cfg.microphone_permission

    def test_defaults_are_valid(self):
        EngineConfig().validate()


class TestLoad:
    def test_overrides_from_file(self, tmp_path):
        path = tmp_path / "engine.yml"
        path.write_text("pinch_threshold: 0.8\nrelease_threshold: 0.2\nclips_dir: out\n")
        cfg = load_config(path)
        assert cfg.pinch_threshold == 0.8
        assert cfg.release_threshold == 0.2
        assert cfg.clips_dir == "out"
        assert cfg.sample_rate == 16000

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert load_config(path) == EngineConfig()

    def test_unknown_keys_warn(self, tmp_path, caplog):
        path = tmp_path / "engine.yml"
        path.write_text("gesture_cooldown: 2\n")
        with caplog.at_level(logging.WARNING, logger="pinch_engine.config"):
            cfg = load_config(path)
        assert cfg == EngineConfig()
        assert "gesture_cooldown" in caplog.text

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "list.yml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ValueError):
            load_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            load_config(tmp_path / "nope.yml")


class TestValidate:
    @pytest.mark.parametrize("overrides", [
        {"pinch_threshold": 0.2},
        {"release_threshold": -0.1},
        {"pinch_threshold": 1.5},
        {"target_peak": 0.0},
        {"intensity_smoothing": 1.0},
        {"max_recording_seconds": 0},
        {"min_restart_interval": -1},
        {"sample_rate": 0},
    ])
    def test_invalid(self, overrides):
        with pytest.raises(ValueError):
            EngineConfig.from_dict(overrides)

    def test_equal_thresholds_allowed(self):
        EngineConfig(pinch_threshold=0.5, release_threshold=0.5).validate()


class TestSave:
    def test_save_then_load(self, tmp_path):
        cfg = EngineConfig(pinch_threshold=0.9, audio_device="USB Mic", camera_index=2)
        path = tmp_path / "sub" / "engine.yml"
        save_config(cfg, path)
        assert yaml.safe_load(path.read_text())["audio_device"] == "USB Mic"
        assert load_config(path) == cfg
