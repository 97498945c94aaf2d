"""
Playback clock and word index resolvers.

A resolver turns one kind of timing signal (elapsed time, a character offset,
an audio position) into a raw word index. Strategies feed those raw indices
through the monotonic guard in timed_tts_base.
"""

import math
import time
from typing import Callable, List, Optional, Sequence

from reelread.readalong.timing_map import WordTiming, WordTimingMap


class PlaybackClock:
    """
    Elapsed-time clock that can be frozen.

    pause() freezes elapsed_ms and resume() continues from the frozen value,
    so estimation after a resume picks up where it stopped instead of at 0.
    """

    def __init__(self, time_source: Callable[[], float] = time.monotonic):
        self._time_source = time_source
        self._origin: Optional[float] = None
        self._frozen_ms = 0.0
        self._paused = False

    def _now_ms(self) -> float:
        return self._time_source() * 1000.0

    def start(self, offset_ms: float = 0.0) -> None:
        self._frozen_ms = offset_ms
        self._origin = self._now_ms()
        self._paused = False

    def pause(self) -> None:
        if self.running:
            self._frozen_ms = self.elapsed_ms
            self._paused = True

    def resume(self) -> None:
        if self._paused:
            self._origin = self._now_ms()
            self._paused = False

    def reset(self) -> None:
        self._origin = None
        self._frozen_ms = 0.0
        self._paused = False

    @property
    def running(self) -> bool:
        return self._origin is not None and not self._paused

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def elapsed_ms(self) -> float:
        if self._origin is None:
            return 0.0
        if self._paused:
            return self._frozen_ms
        return self._frozen_ms + (self._now_ms() - self._origin)


class HeuristicResolver:
    """Estimates the spoken word from elapsed time and a words-per-minute baseline."""

    def __init__(self, word_count: int, words_per_minute: float = 150, speed: float = 1.0):
        if words_per_minute <= 0 or speed <= 0:
            raise ValueError("words_per_minute and speed must be positive")
        self.word_count = word_count
        self.ms_per_word = 60000.0 / (words_per_minute * speed)

    @property
    def total_ms(self) -> float:
        return self.word_count * self.ms_per_word

    def resolve(self, elapsed_ms: float) -> int:
        if self.word_count == 0:
            return -1
        index = int(elapsed_ms // self.ms_per_word)
        return max(0, min(index, self.word_count - 1))


class BoundaryResolver:
    """Maps boundary-event character offsets to word indices."""

    def __init__(self, words: Sequence[str]):
        self._starts: List[int] = []
        position = 0
        for word in words:
            self._starts.append(position)
            position += len(word) + 1  # +1 for the separating space

    def resolve(self, char_offset: int) -> Optional[int]:
        """
        Return the first word whose start is at or after char_offset.

        None means the offset lies past the last word start and the event
        should be ignored.
        """
        for index, start in enumerate(self._starts):
            if start >= char_offset:
                return index
        return None


class AlignmentResolver:
    """Resolves playback position against a precomputed word timing table."""

    def __init__(self, timings: Sequence[WordTiming]):
        self._map = WordTimingMap(text="", timings=list(timings))

    @property
    def duration_ms(self) -> int:
        return self._map.duration_ms

    def resolve(self, position_ms: float) -> int:
        return self._map.index_at(position_ms)


class DurationResolver:
    """
    Spreads words evenly over an audio duration.

    The duration is unknown until audio metadata loads; until then the index
    stays at the base. rebase() recomputes the per-word interval from the
    remaining time and remaining words, which is what resume needs.
    """

    def __init__(self, word_count: int):
        self.word_count = word_count
        self.duration_ms: Optional[float] = None
        self.ms_per_word: Optional[float] = None
        self._base_position = 0.0
        self._base_index = 0

    def set_duration(self, duration_ms: float) -> None:
        self.duration_ms = duration_ms
        self.rebase(0.0, 0)

    def rebase(self, position_ms: float, current_index: int) -> None:
        self._base_position = position_ms
        self._base_index = max(current_index, 0)
        if self.duration_ms is None:
            return
        remaining_words = self.word_count - self._base_index
        remaining_ms = self.duration_ms - position_ms
        if remaining_words > 0 and remaining_ms > 0:
            self.ms_per_word = remaining_ms / remaining_words
        else:
            self.ms_per_word = None

    def resolve(self, position_ms: float) -> int:
        if self.word_count == 0:
            return -1
        if not self.ms_per_word:
            return max(0, min(self._base_index, self.word_count - 1))
        steps = math.floor((position_ms - self._base_position) / self.ms_per_word)
        index = self._base_index + max(steps, 0)
        return min(index, self.word_count - 1)
