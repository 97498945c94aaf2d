"""
Tests for the YAML configuration singleton.
"""

import pytest

from reelread.utils.config import Config, clamp_speed, config


class TestConfig:
    def test_singleton(self):
        assert Config() is config

    def test_defaults(self):
        assert config.get("chunking", "target_words") == 40
        assert config.narration_engine == "heuristic"
        assert config.words_per_minute == 150
        assert config.poll_interval_ms == 50
        assert config.boundary_timeout_ms == 1000
        assert config.reading_words_per_minute == 200
        assert config.voice is None

    def test_missing_keys_return_default(self):
        assert config.get("nope", "missing", default=7) == 7
        assert config.get("chunking", "target_words", "deeper", default="x") == "x"

    def test_set_overrides_in_memory(self):
        config.set("narration", "engine", "boundary")
        assert config.narration_engine == "boundary"
        config.reload()
        assert config.narration_engine == "heuristic"

    def test_yaml_file_is_merged_over_defaults(self, tmp_path, monkeypatch):
        settings = tmp_path / "settings.yaml"
        settings.write_text(
            "chunking:\n  target_words: 25\nnarration:\n  speed: 5\n",
            encoding="utf-8",
        )
        monkeypatch.setenv("REELREAD_CONFIG", str(settings))
        config.reload()

        assert config.get("chunking", "target_words") == 25
        assert config.get("chunking", "max_words") == 60
        assert config.voice_speed == 2.0

    def test_empty_yaml_file(self, tmp_path, monkeypatch):
        settings = tmp_path / "settings.yaml"
        settings.write_text("", encoding="utf-8")
        monkeypatch.setenv("REELREAD_CONFIG", str(settings))
        config.reload()
        assert config.get("chunking", "target_words") == 40

    def test_relative_paths_resolve_under_project_root(self):
        assert config.get_path("library") == config.project_root / "library"


@pytest.mark.parametrize("speed,expected", [(0.1, 0.5), (0.5, 0.5), (1.25, 1.25), (2.0, 2.0), (3, 2.0)])
def test_clamp_speed(speed, expected):
    assert clamp_speed(speed) == expected
