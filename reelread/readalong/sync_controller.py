"""
Sync Controller Module

Runs one narration session per chunk and relays word-index, state and error
events to the reel renderer.

States:
    IDLE -> LOADING (strategies that prepare asynchronously) -> PLAYING
    PLAYING <-> PAUSED
    PLAYING -> COMPLETED
    LOADING / PLAYING / PAUSED -> ERRORED
    any -> IDLE on stop()

Every start() takes a new generation number. Callbacks from a strategy carry
the generation they were registered under and are dropped once it is stale,
so a late narration result can never touch a newer session.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence

from reelread.readalong.chunker import Chunk
from reelread.readalong.errors import PlaybackError, PreparationError, StaleCallbackIgnored
from reelread.readalong.timed_tts import create_strategy
from reelread.readalong.timed_tts_base import TimingStrategy
from reelread.utils import logger

StrategyFactory = Callable[[], TimingStrategy]


class PlaybackState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERRORED = "errored"


STARTABLE_STATES = (PlaybackState.IDLE, PlaybackState.COMPLETED, PlaybackState.ERRORED)


@dataclass
class PlaybackSession:
    """The chunk currently being narrated."""

    text: str
    words: List[str]
    strategy: TimingStrategy
    generation: int
    chunk: Optional[Chunk] = None
    current_word_index: int = -1
    state: PlaybackState = PlaybackState.IDLE
    error: Optional[str] = None


class NarrationOutput:
    """
    Owner of the single narration output.

    Only one controller may drive narration at a time. Acquiring the output
    stops whichever controller held it before.
    """

    _owner: Optional["SyncController"] = None

    @classmethod
    def acquire(cls, controller: "SyncController") -> None:
        previous = cls._owner
        if previous is not None and previous is not controller:
            logger.debug("Stopping previous narration session")
            previous.stop()
        cls._owner = controller

    @classmethod
    def release(cls, controller: "SyncController") -> None:
        if cls._owner is controller:
            cls._owner = None

    @classmethod
    def owner(cls) -> Optional["SyncController"]:
        return cls._owner


@dataclass
class _Listeners:
    word_index: List[Callable[[int], None]] = field(default_factory=list)
    state: List[Callable[[PlaybackState], None]] = field(default_factory=list)
    error: List[Callable[[str], None]] = field(default_factory=list)
    complete: List[Callable[[], None]] = field(default_factory=list)


class SyncController:
    """
    Orchestrates narration of one chunk at a time.

    Example:
        controller = SyncController()
        controller.on_word_index(lambda i: render(chunk.words[i]))
        await controller.start(chunk.text, chunk.words)
    """

    def __init__(
        self,
        strategy_factory: Optional[StrategyFactory] = None,
        voice: Optional[str] = None,
    ):
        """
        Args:
            strategy_factory: Builds a fresh strategy for each start();
                defaults to the configured engine
            voice: Voice passed to the strategy's prepare()
        """
        self.strategy_factory = strategy_factory or create_strategy
        self.voice = voice
        self.session: Optional[PlaybackSession] = None

        self._state = PlaybackState.IDLE
        self._generation = 0
        self._prepare_task: Optional[asyncio.Task] = None
        self._listeners = _Listeners()
        self.last_error: Optional[str] = None

    # ------------------------------------------------------------------
    # Listener registration
    # ------------------------------------------------------------------

    def on_word_index(self, callback: Callable[[int], None]) -> Callable[[int], None]:
        self._listeners.word_index.append(callback)
        return callback

    def on_state_change(self, callback: Callable[[PlaybackState], None]) -> Callable[[PlaybackState], None]:
        self._listeners.state.append(callback)
        return callback

    def on_error(self, callback: Callable[[str], None]) -> Callable[[str], None]:
        self._listeners.error.append(callback)
        return callback

    def on_complete(self, callback: Callable[[], None]) -> Callable[[], None]:
        self._listeners.complete.append(callback)
        return callback

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def current_word_index(self) -> int:
        return self.session.current_word_index if self.session else -1

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def start(self, text: str, words: Sequence[str], chunk: Optional[Chunk] = None) -> None:
        """
        Narrate text, reporting indices into words.

        A session that is still loading, playing or paused is stopped first.
        """
        if self._state not in STARTABLE_STATES:
            self.stop()

        NarrationOutput.acquire(self)
        self._cancel_preparation()
        self._generation += 1
        generation = self._generation

        strategy = self.strategy_factory()
        self.session = PlaybackSession(
            text=text,
            words=list(words),
            strategy=strategy,
            generation=generation,
            chunk=chunk,
        )
        self.last_error = None
        self._bind(strategy, generation)

        if strategy.requires_preparation:
            self._set_state(PlaybackState.LOADING)
            task = asyncio.ensure_future(strategy.prepare(text, words, self.voice))
            self._prepare_task = task
            try:
                await task
            except asyncio.CancelledError:
                if generation != self._generation:
                    return
                raise
            except Exception as e:
                if generation != self._generation:
                    logger.debug(f"Ignoring preparation failure of stale session: {e}")
                    return
                self._fail(self._message(e, PreparationError))
                return
            finally:
                if self._prepare_task is task:
                    self._prepare_task = None

            if generation != self._generation:
                # stop() or a newer start() happened while loading
                strategy.cancel()
                return
        else:
            try:
                await strategy.prepare(text, words, self.voice)
            except Exception as e:
                self._fail(self._message(e, PreparationError))
                return

        self._set_state(PlaybackState.PLAYING)
        try:
            strategy.play()
        except Exception as e:
            if generation == self._generation:
                self._fail(self._message(e, PlaybackError))

    async def start_chunk(self, chunk: Chunk) -> None:
        """Narrate a chunk."""
        await self.start(chunk.text, chunk.words, chunk=chunk)

    def pause(self) -> None:
        """Pause narration. Only valid while playing."""
        if self._state is not PlaybackState.PLAYING:
            return
        self.session.strategy.pause()
        self._set_state(PlaybackState.PAUSED)

    def resume(self) -> None:
        """Resume narration. Only valid while paused."""
        if self._state is not PlaybackState.PAUSED:
            return
        self._set_state(PlaybackState.PLAYING)
        self.session.strategy.resume()

    def stop(self) -> None:
        """Stop narration from any state. Idempotent."""
        self._generation += 1
        self._cancel_preparation()

        session, self.session = self.session, None
        if session is not None:
            session.strategy.cancel()

        NarrationOutput.release(self)
        self._set_state(PlaybackState.IDLE)

    # ------------------------------------------------------------------
    # Strategy callbacks
    # ------------------------------------------------------------------

    def _bind(self, strategy: TimingStrategy, generation: int) -> None:
        strategy.on_word_index(lambda index: self._guarded(generation, self._handle_word_index, index))
        strategy.on_complete(lambda: self._guarded(generation, self._handle_complete))
        strategy.on_error(lambda message: self._guarded(generation, self._handle_error, message))

    def _check_generation(self, generation: int) -> None:
        if generation != self._generation or self.session is None:
            raise StaleCallbackIgnored(f"generation {generation} superseded by {self._generation}")

    def _guarded(self, generation: int, handler: Callable, *args) -> None:
        try:
            self._check_generation(generation)
        except StaleCallbackIgnored as e:
            logger.debug(f"Dropped late narration callback: {e}")
            return
        handler(*args)

    def _handle_word_index(self, index: int) -> None:
        if self._state is not PlaybackState.PLAYING:
            return
        session = self.session
        if index <= session.current_word_index:
            return
        session.current_word_index = index
        for callback in list(self._listeners.word_index):
            callback(index)

    def _handle_complete(self) -> None:
        # also accepted while paused, the output may end before the pause lands
        if self._state not in (PlaybackState.PLAYING, PlaybackState.PAUSED):
            return
        self.session.current_word_index = -1
        NarrationOutput.release(self)
        self._set_state(PlaybackState.COMPLETED)
        for callback in list(self._listeners.complete):
            callback()

    def _handle_error(self, message: str) -> None:
        # Errored is reachable from Loading, Playing and Paused
        if self._state not in (PlaybackState.LOADING, PlaybackState.PLAYING, PlaybackState.PAUSED):
            return
        self._fail(message or "Audio playback failed")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fail(self, message: str) -> None:
        session = self.session
        if session is not None:
            session.strategy.cancel()
            session.current_word_index = -1
            session.error = message
        self.last_error = message
        logger.error(f"Narration failed: {message}")
        NarrationOutput.release(self)
        self._set_state(PlaybackState.ERRORED)
        for callback in list(self._listeners.error):
            callback(message)

    def _cancel_preparation(self) -> None:
        task, self._prepare_task = self._prepare_task, None
        if task is not None and not task.done():
            task.cancel()

    def _set_state(self, state: PlaybackState) -> None:
        if self.session is not None:
            self.session.state = state
        if state is self._state:
            return
        self._state = state
        for callback in list(self._listeners.state):
            callback(state)

    @staticmethod
    def _message(error: Exception, kind: type) -> str:
        if isinstance(error, kind) or str(error):
            return str(error) or kind.__name__
        return f"{kind.__name__}: {type(error).__name__}"
