"""
Timing Map Module

Reduces character-level alignment tables from remote narration providers to
word timings, and manages word timing maps for a chunk's narration.
Supports JSON export so a narrated chunk can be replayed without the provider.
"""

import json
from bisect import bisect_right
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Sequence

from reelread.utils import logger

# Characters that close a word group in an alignment table
WORD_SEPARATORS = frozenset(" \n\t")


@dataclass(frozen=True)
class WordTiming:
    """Single timing entry for one spoken word."""

    word: str
    start: int  # Start time in milliseconds
    end: int  # End time in milliseconds

    def __post_init__(self):
        if self.start < 0 or self.end < self.start:
            raise ValueError(
                f"invalid word timing for {self.word!r}: start={self.start}, end={self.end}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON export."""
        return {"word": self.word, "start": self.start, "end": self.end}


def seconds_to_ms(seconds: float) -> int:
    return int(round(seconds * 1000))


def words_from_alignment(
    characters: Sequence[str],
    start_times: Sequence[float],
    end_times: Sequence[float],
) -> List[WordTiming]:
    """
    Convert character-level timings to word-level timings.

    Consecutive non-whitespace characters form a word. Each word starts at its
    first character's start time and ends at its last character's end time,
    converted from seconds to whole milliseconds.

    Args:
        characters: One entry per spoken character
        start_times: Character start times in seconds
        end_times: Character end times in seconds

    Returns:
        List of WordTiming in spoken order
    """
    if not len(characters) == len(start_times) == len(end_times):
        raise ValueError(
            "alignment arrays differ in length: "
            f"{len(characters)} characters, {len(start_times)} starts, {len(end_times)} ends"
        )

    timings: List[WordTiming] = []
    current = ""
    word_start = 0.0
    word_end = 0.0

    for char, start, end in zip(characters, start_times, end_times):
        if char in WORD_SEPARATORS:
            if current:
                timings.append(WordTiming(current, seconds_to_ms(word_start), seconds_to_ms(word_end)))
                current = ""
            continue

        if not current:
            word_start = start
        current += char
        word_end = end

    # Don't forget the last word
    if current:
        timings.append(WordTiming(current, seconds_to_ms(word_start), seconds_to_ms(word_end)))

    return timings


@dataclass
class WordTimingMap:
    """Word timings for one chunk's narration."""

    text: str
    timings: List[WordTiming] = field(default_factory=list)
    voice: str = ""
    version: str = "1.0"

    def __post_init__(self):
        self._ends = [t.end for t in self.timings]

    @classmethod
    def from_alignment(cls, text: str, alignment: Dict[str, Any], voice: str = "") -> "WordTimingMap":
        """Build from a provider alignment payload with characters and second offsets."""
        return cls(
            text=text,
            timings=words_from_alignment(
                alignment["characters"],
                alignment["character_start_times_seconds"],
                alignment["character_end_times_seconds"],
            ),
            voice=voice,
        )

    @property
    def duration_ms(self) -> int:
        return self.timings[-1].end if self.timings else 0

    def __len__(self) -> int:
        return len(self.timings)

    def index_at(self, position_ms: float) -> int:
        """
        Find the word being spoken at a playback position.

        Inside a word's [start, end) that word is returned. In a silent gap the
        next word is returned, before the first word 0, and after the last word
        the last index. An empty map returns -1.
        """
        if not self.timings:
            return -1
        index = bisect_right(self._ends, position_ms)
        return min(index, len(self.timings) - 1)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON export."""
        return {
            "version": self.version,
            "text": self.text,
            "voice": self.voice,
            "durationMs": self.duration_ms,
            "wordTimings": [t.to_dict() for t in self.timings],
        }

    def save(self, output_path: Path) -> Path:
        """Save timing map to JSON file."""
        output_path = Path(output_path).with_suffix(".json")
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)

        logger.success(f"Saved timing map: {output_path}")
        return output_path

    @classmethod
    def load(cls, path: Path) -> "WordTimingMap":
        """Load timing map from JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        return cls(
            text=data["text"],
            timings=[
                WordTiming(word=t["word"], start=t["start"], end=t["end"])
                for t in data.get("wordTimings", [])
            ],
            voice=data.get("voice", ""),
            version=data.get("version", "1.0"),
        )
