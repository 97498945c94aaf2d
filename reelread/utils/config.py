"""
Configuration loader for the reel reader.
"""

import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

CONFIG_ENV_VAR = "REELREAD_CONFIG"

SPEED_MIN = 0.5
SPEED_MAX = 2.0


def clamp_speed(speed: float) -> float:
    """Clamp a narration speed multiplier to the supported range."""
    return max(SPEED_MIN, min(SPEED_MAX, float(speed)))


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """Configuration manager for chunking and narration."""

    _instance: Optional["Config"] = None
    _config: Dict[str, Any] = {}

    def __new__(cls) -> "Config":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if not self._config:
            self._load_config()

    def _get_project_root(self) -> Path:
        """Get the project root directory."""
        # Navigate up from reelread/utils to project root
        current = Path(__file__).resolve()
        return current.parent.parent.parent

    def _config_path(self) -> Path:
        override = os.environ.get(CONFIG_ENV_VAR)
        if override:
            return Path(override)
        return self._get_project_root() / "config" / "settings.yaml"

    def _load_config(self) -> None:
        """Load configuration from YAML file, merged over the defaults."""
        config_path = self._config_path()
        defaults = self._get_defaults()

        if config_path.exists():
            with open(config_path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
            self._config = _deep_merge(defaults, loaded)
        else:
            # Use defaults if config doesn't exist
            self._config = defaults

    def reload(self) -> None:
        """Re-read the configuration file."""
        self._config = {}
        self._load_config()

    def _get_defaults(self) -> Dict[str, Any]:
        """Return default configuration."""
        return {
            "chunking": {
                "target_words": 40,
                "max_words": 60,
                "min_words": 20,
                "preserve_paragraphs": True,
            },
            "narration": {
                "engine": "heuristic",
                "words_per_minute": 150,
                "speed": 1.0,
                "poll_interval_ms": 50,
                "boundary_timeout_ms": 1000,
                "voice": None,
            },
            "reading": {
                "words_per_minute": 200,
            },
            "elevenlabs": {
                "api_url": "https://api.elevenlabs.io/v1",
                "voice_id": "21m00Tcm4TlvDq8ikWAM",
                "model_id": "eleven_multilingual_v2",
                "stability": 0.5,
                "similarity_boost": 0.75,
                "style": 0.0,
                "use_speaker_boost": True,
                "timeout": 30,
            },
            "edge": {
                "voice": "en-US-DavisNeural",
            },
            "paths": {
                "library": "library",
            },
            "logging": {
                "verbose": False,
            },
        }

    def get(self, *keys: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Example:
            config.get("chunking", "target_words") -> 40
        """
        value = self._config
        for key in keys:
            if isinstance(value, dict):
                value = value.get(key)
            else:
                return default
            if value is None:
                return default
        return value

    def set(self, *keys: str, value: Any) -> None:
        """Override a configuration value in memory."""
        node = self._config
        for key in keys[:-1]:
            node = node.setdefault(key, {})
        node[keys[-1]] = value

    def get_path(self, key: str) -> Path:
        """Get a path configuration as absolute Path."""
        relative_path = Path(self.get("paths", key, default=key))
        if relative_path.is_absolute():
            return relative_path
        return self._get_project_root() / relative_path

    @property
    def project_root(self) -> Path:
        """Get the project root directory."""
        return self._get_project_root()

    @property
    def narration_engine(self) -> str:
        """Get the configured timing strategy name."""
        return self.get("narration", "engine", default="heuristic")

    @property
    def words_per_minute(self) -> int:
        """Get the baseline narration rate."""
        return self.get("narration", "words_per_minute", default=150)

    @property
    def voice_speed(self) -> float:
        """Get the narration speed multiplier."""
        return clamp_speed(self.get("narration", "speed", default=1.0))

    @property
    def poll_interval_ms(self) -> int:
        """Get the word-index polling cadence."""
        return self.get("narration", "poll_interval_ms", default=50)

    @property
    def boundary_timeout_ms(self) -> int:
        """Get how long boundary events may stall before estimation takes over."""
        return self.get("narration", "boundary_timeout_ms", default=1000)

    @property
    def voice(self) -> Optional[str]:
        """Get the default voice."""
        return self.get("narration", "voice")

    @property
    def reading_words_per_minute(self) -> int:
        return self.get("reading", "words_per_minute", default=200)


# Singleton instance
config = Config()
