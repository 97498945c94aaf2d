"""
Timed TTS Strategy Selection

Picks the word timing strategy used for narration.

Engines:
  heuristic  - local estimation from words per minute (default)
  boundary   - local system speech with word boundary events (pyttsx3)
  alignment  - ElevenLabs speech with character timestamps
  duration   - Edge TTS speech, words spread over the clip duration

Set the engine in config (narration.engine) or with the REELREAD_ENGINE
environment variable, which takes precedence.
"""

import os
from typing import Any, Dict, List, Optional, Type

from reelread.readalong.errors import ConfigError
from reelread.readalong.timed_tts_base import TimingStrategy
from reelread.readalong.timed_tts_edge import DurationTimingStrategy
from reelread.readalong.timed_tts_elevenlabs import AlignmentTimingStrategy
from reelread.readalong.timed_tts_local import (
    BoundaryTimingStrategy,
    EstimatedTimingStrategy,
    Pyttsx3Speaker,
)
from reelread.utils.config import config

ENGINE_ENV_VAR = "REELREAD_ENGINE"

ENGINES: Dict[str, Type[TimingStrategy]] = {
    "heuristic": EstimatedTimingStrategy,
    "boundary": BoundaryTimingStrategy,
    "alignment": AlignmentTimingStrategy,
    "duration": DurationTimingStrategy,
}


def available_engines() -> List[str]:
    """Return the names of the timing strategies."""
    return list(ENGINES)


def get_tts_engine() -> str:
    """Return the name of the configured timing strategy."""
    return (os.environ.get(ENGINE_ENV_VAR) or config.narration_engine).lower()


def create_strategy(
    engine: Optional[str] = None,
    speak_aloud: bool = False,
    **kwargs: Any,
) -> TimingStrategy:
    """
    Build a timing strategy.

    Args:
        engine: Strategy name; defaults to the configured engine
        speak_aloud: For the heuristic engine, also speak through pyttsx3
        **kwargs: Passed to the strategy constructor

    Returns:
        A fresh TimingStrategy
    """
    name = (engine or get_tts_engine()).lower()
    try:
        strategy_cls = ENGINES[name]
    except KeyError:
        raise ConfigError(
            f"Unknown narration engine {name!r}. Choose one of: {', '.join(ENGINES)}"
        ) from None

    if strategy_cls is BoundaryTimingStrategy or (strategy_cls is EstimatedTimingStrategy and speak_aloud):
        if "speaker" not in kwargs:
            kwargs["speaker"] = Pyttsx3Speaker(speed=kwargs.get("speed"))

    return strategy_cls(**kwargs)


__all__ = [
    "ENGINES",
    "TimingStrategy",
    "available_engines",
    "create_strategy",
    "get_tts_engine",
]
