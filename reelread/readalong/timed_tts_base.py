"""
Timing Strategy Base

Every narration back-end exposes the same surface to the sync controller:
prepare, play, pause, resume, cancel, and three listener hooks (word index,
completion, error). Subclasses only decide how a raw word index is resolved
and how their output is driven.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence

from reelread.readalong.clock import PlaybackClock
from reelread.utils import logger
from reelread.utils.config import config

WordIndexCallback = Callable[[int], None]
CompleteCallback = Callable[[], None]
ErrorCallback = Callable[[str], None]


class TimingStrategy(ABC):
    """
    Base class for word timing strategies.

    Word indices reported to listeners are clamped to [0, len(words) - 1],
    never decrease within one run, and each value is reported at most once.
    A run starts with prepare() and ends with completion, failure or cancel().
    Pausing and resuming stay inside the same run.

    Polling happens on an asyncio task every poll_interval_ms. Without a
    running event loop no task is created and tick() must be called directly.
    """

    name = "base"
    requires_preparation = False

    def __init__(
        self,
        poll_interval_ms: Optional[int] = None,
        time_source: Callable[[], float] = time.monotonic,
    ):
        self.poll_interval_ms = min(poll_interval_ms or config.poll_interval_ms, 100)
        self.time_source = time_source
        self.clock = PlaybackClock(time_source)
        self.text = ""
        self.words: List[str] = []
        self.current_index = -1
        self.voice: Optional[str] = None

        self._playing = False
        self._paused = False
        self._finished = False
        self._poll_task: Optional[asyncio.Task] = None

        self._word_listeners: List[WordIndexCallback] = []
        self._complete_listeners: List[CompleteCallback] = []
        self._error_listeners: List[ErrorCallback] = []

    # ------------------------------------------------------------------
    # Listener registration
    # ------------------------------------------------------------------

    def on_word_index(self, callback: WordIndexCallback) -> WordIndexCallback:
        self._word_listeners.append(callback)
        return callback

    def on_complete(self, callback: CompleteCallback) -> CompleteCallback:
        self._complete_listeners.append(callback)
        return callback

    def on_error(self, callback: ErrorCallback) -> ErrorCallback:
        self._error_listeners.append(callback)
        return callback

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    @property
    def playing(self) -> bool:
        return self._playing and not self._paused

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def finished(self) -> bool:
        return self._finished

    async def prepare(self, text: str, words: Sequence[str], voice: Optional[str] = None) -> None:
        """
        Get ready to narrate text.

        Args:
            text: The text that will be spoken
            words: Tokens of text, indexed by the reported word index
            voice: Optional voice identifier for the back-end
        """
        self.cancel()
        self.text = text
        self.words = list(words)
        self.voice = voice
        self.current_index = -1
        self._finished = False
        await self._prepare()

    def play(self) -> None:
        """Start output and word tracking from the first word."""
        self._playing = True
        self._paused = False
        self._start_output()
        self.clock.start()
        self._advance(0)
        self._start_polling()

    def pause(self) -> None:
        """Freeze word tracking and the timing origin."""
        if not self.playing or self._finished:
            return
        self._paused = True
        self.clock.pause()
        self._stop_polling()
        self._pause_output()

    def resume(self) -> None:
        """Continue from the frozen point."""
        if not self._paused or self._finished:
            return
        self._paused = False
        self._resume_output()
        self.clock.resume()
        self._start_polling()

    def cancel(self) -> None:
        """Stop output and tracking. Safe to call repeatedly."""
        self._stop_polling()
        if self._playing:
            self._cancel_output()
        self._playing = False
        self._paused = False
        self.clock.reset()

    def tick(self) -> None:
        """Resolve the current word index once and check for completion."""
        if not self.playing or self._finished:
            return
        index = self._resolve()
        if index is not None:
            self._advance(index)
        self._check_complete()

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------

    async def _prepare(self) -> None:
        """Load whatever the strategy needs before play()."""

    @abstractmethod
    def _resolve(self) -> Optional[int]:
        """Return the raw word index for the current moment, or None."""

    def _check_complete(self) -> None:
        """Call _finish() once output has ended."""

    def _start_output(self) -> None:
        pass

    def _pause_output(self) -> None:
        pass

    def _resume_output(self) -> None:
        pass

    def _cancel_output(self) -> None:
        pass

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------

    def _advance(self, index: int) -> None:
        if not self.words or self._finished:
            return
        index = max(0, min(index, len(self.words) - 1))
        if index <= self.current_index:
            return
        self.current_index = index
        for callback in list(self._word_listeners):
            callback(index)

    def _finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        self._stop_polling()
        self._playing = False
        self._paused = False
        logger.debug(f"{self.name} narration finished at word {self.current_index}")
        for callback in list(self._complete_listeners):
            callback()

    def _fail(self, message: str) -> None:
        if self._finished:
            return
        self._finished = True
        self._stop_polling()
        if self._playing:
            self._cancel_output()
        self._playing = False
        self._paused = False
        for callback in list(self._error_listeners):
            callback(message)

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def _start_polling(self) -> None:
        self._stop_polling()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._poll_task = loop.create_task(self._poll_loop())

    def _stop_polling(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is not None and task is not _current_task():
            task.cancel()

    async def _poll_loop(self) -> None:
        interval = self.poll_interval_ms / 1000.0
        while self.playing and not self._finished:
            try:
                self.tick()
            except Exception as e:
                logger.debug(f"{self.name} tracking failed: {e!r}")
                self._fail(f"Playback failed: {e}")
                break
            await asyncio.sleep(interval)


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
