"""
Local Timing Strategies

Word tracking for narration spoken on this machine, with no network:

- EstimatedTimingStrategy guesses the spoken word from elapsed time and a
  words-per-minute baseline.
- BoundaryTimingStrategy follows word boundary events reported by the speech
  engine, and falls back to estimation when those events stop arriving.

Speech itself comes from an optional Speaker. Pyttsx3Speaker drives the
system voices through pyttsx3.
"""

import asyncio
import queue
import threading
from typing import Callable, Optional, Protocol, Tuple

from reelread.readalong.clock import BoundaryResolver, HeuristicResolver
from reelread.readalong.timed_tts_base import TimingStrategy
from reelread.utils import logger
from reelread.utils.config import clamp_speed, config

BoundaryCallback = Callable[[int], None]

# Positions in Pyttsx3Speaker._callbacks
_ON_BOUNDARY, _ON_END, _ON_ERROR = 0, 1, 2

# Seconds an idle speaker worker waits for another utterance before exiting
_WORKER_IDLE_S = 5.0


class Speaker(Protocol):
    """Speech output for local strategies. Callbacks arrive on the event loop."""

    def speak(
        self,
        text: str,
        on_boundary: Optional[BoundaryCallback],
        on_end: Callable[[], None],
        on_error: Callable[[str], None],
    ) -> None: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...

    def stop(self) -> None: ...


class EstimatedTimingStrategy(TimingStrategy):
    """
    Estimate word timing from elapsed time.

    Without a speaker the run completes once the estimated duration has
    elapsed. With a speaker the run completes when the speaker says so.
    """

    name = "heuristic"

    def __init__(
        self,
        speaker: Optional[Speaker] = None,
        words_per_minute: Optional[float] = None,
        speed: Optional[float] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.speaker = speaker
        self.words_per_minute = words_per_minute or config.words_per_minute
        self.speed = clamp_speed(speed) if speed else config.voice_speed
        self.estimator: Optional[HeuristicResolver] = None

    async def _prepare(self) -> None:
        self.estimator = HeuristicResolver(len(self.words), self.words_per_minute, self.speed)

    def _resolve(self) -> Optional[int]:
        return self.estimator.resolve(self.clock.elapsed_ms)

    def _check_complete(self) -> None:
        if self.speaker is None and self.clock.elapsed_ms >= self.estimator.total_ms:
            self._finish()

    def _start_output(self) -> None:
        if self.speaker is not None:
            self.speaker.speak(self.text, self._boundary_callback(), self._on_speaker_end, self._fail)

    def _boundary_callback(self) -> Optional[BoundaryCallback]:
        return None

    def _on_speaker_end(self) -> None:
        if not self._playing:
            return
        self._finish()

    def _pause_output(self) -> None:
        if self.speaker is not None:
            self.speaker.pause()

    def _resume_output(self) -> None:
        if self.speaker is not None:
            self.speaker.resume()

    def _cancel_output(self) -> None:
        if self.speaker is not None:
            self.speaker.stop()


class BoundaryTimingStrategy(EstimatedTimingStrategy):
    """
    Follow boundary events that carry a character offset into the spoken text.

    While events keep arriving they drive the word index. If none arrives for
    boundary_timeout_ms the elapsed-time estimate takes over; the monotonic
    guard keeps it from moving the index backwards. A later event takes
    control again.
    """

    name = "boundary"

    def __init__(self, speaker: Optional[Speaker] = None, boundary_timeout_ms: Optional[int] = None, **kwargs):
        super().__init__(speaker=speaker, **kwargs)
        self.boundary_timeout_ms = boundary_timeout_ms or config.boundary_timeout_ms
        self.boundaries: Optional[BoundaryResolver] = None
        self._last_event_ms = 0.0
        self._estimating = False

    async def _prepare(self) -> None:
        await super()._prepare()
        self.boundaries = BoundaryResolver(self.words)
        self._last_event_ms = 0.0
        self._estimating = False

    def _boundary_callback(self) -> Optional[BoundaryCallback]:
        return self.feed_boundary

    def feed_boundary(self, char_offset: int) -> None:
        """Handle a word boundary event at char_offset."""
        if not self.playing or self.finished:
            return
        self._last_event_ms = self.clock.elapsed_ms
        if self._estimating:
            logger.debug("Boundary events resumed")
            self._estimating = False
        index = self.boundaries.resolve(char_offset)
        if index is not None:
            self._advance(index)

    def _resolve(self) -> Optional[int]:
        elapsed = self.clock.elapsed_ms
        if elapsed - self._last_event_ms < self.boundary_timeout_ms:
            return None
        if not self._estimating:
            logger.debug(
                f"No boundary event for {self.boundary_timeout_ms}ms, estimating word timing"
            )
            self._estimating = True
        return self.estimator.resolve(elapsed)


class Pyttsx3Speaker:
    """
    Speak through pyttsx3 system voices.

    pyttsx3 blocks in runAndWait and its engine is not safe to share between
    threads, so one worker thread owns the engine and speaks utterances from a
    queue in order. The worker exits once the queue has been idle for a few
    seconds. Every callback is handed back to the event loop.

    pyttsx3 cannot pause, so pause stops the engine and resume speaks again
    from the current word, shifting boundary offsets back into the full text.
    """

    def __init__(
        self,
        voice: Optional[str] = None,
        speed: Optional[float] = None,
        words_per_minute: Optional[float] = None,
    ):
        self.voice = voice or config.voice
        self.speed = clamp_speed(speed) if speed else config.voice_speed
        self.words_per_minute = words_per_minute or config.words_per_minute

        self._engine = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._text = ""
        self._word_offset = 0
        self._token = 0
        self._callbacks = None
        self._commands: "queue.Queue[Tuple[str, int, int]]" = queue.Queue()
        self._worker: Optional[threading.Thread] = None
        self._worker_lock = threading.Lock()
        self._utterance_offset = 0

    def _get_engine(self):
        """Lazy load pyttsx3 engine."""
        if self._engine is None:
            try:
                import pyttsx3
            except ImportError as e:
                raise RuntimeError("pyttsx3 not found. Install with: pip install pyttsx3") from e

            self._engine = pyttsx3.init()

            # Set voice if specified
            if self.voice:
                for v in self._engine.getProperty("voices"):
                    if self.voice.lower() in v.id.lower() or self.voice.lower() in v.name.lower():
                        self._engine.setProperty("voice", v.id)
                        break

            self._engine.setProperty("rate", int(self.words_per_minute * self.speed))
            self._engine.connect("started-word", self._on_started_word)
            self._engine.connect("finished-utterance", self._on_finished_utterance)

        return self._engine

    def speak(self, text, on_boundary, on_end, on_error) -> None:
        self._loop = asyncio.get_running_loop()
        self._text = text
        self._callbacks = (on_boundary, on_end, on_error)
        self._word_offset = 0
        self._start_from(0)

    def pause(self) -> None:
        self._token += 1
        if self._engine is not None:
            self._engine.stop()

    def resume(self) -> None:
        if self._callbacks is not None:
            self._start_from(self._word_offset)

    def stop(self) -> None:
        self._token += 1
        self._callbacks = None
        if self._engine is not None:
            self._engine.stop()

    def _start_from(self, offset: int) -> None:
        self._token += 1
        with self._worker_lock:
            self._commands.put((self._text[offset:], offset, self._token))
            if self._worker is None:
                self._worker = threading.Thread(target=self._work, name="pyttsx3-speaker", daemon=True)
                self._worker.start()

    def _work(self) -> None:
        while True:
            try:
                text, offset, token = self._commands.get(timeout=_WORKER_IDLE_S)
            except queue.Empty:
                with self._worker_lock:
                    if self._commands.empty():
                        self._worker = None
                        return
                continue
            if token != self._token:
                # superseded while an earlier utterance was still winding down
                continue
            self._utterance_offset = offset
            self._run(text, token)

    def _run(self, text: str, token: int) -> None:
        try:
            engine = self._get_engine()
            engine.say(text, name=str(token))
            engine.runAndWait()
        except Exception as e:
            self._post(token, _ON_ERROR, f"System speech failed: {e}")

    def _on_started_word(self, name, location, length) -> None:
        token = int(name) if name else self._token
        offset = self._utterance_offset + location
        if token == self._token:
            self._word_offset = offset
        self._post(token, _ON_BOUNDARY, offset)

    def _on_finished_utterance(self, name, completed) -> None:
        token = int(name) if name else self._token
        if completed:
            self._post(token, _ON_END)

    def _post(self, token: int, slot: int, *args) -> None:
        if self._loop is None:
            return
        self._loop.call_soon_threadsafe(self._deliver, token, slot, args)

    def _deliver(self, token: int, slot: int, args) -> None:
        if token != self._token or self._callbacks is None:
            return
        callback = self._callbacks[slot]
        if callback is not None:
            callback(*args)
