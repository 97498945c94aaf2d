"""
Timed TTS using edge-tts

Remote narration without word timestamps. The clip is synthesized with
Microsoft Edge's neural voices, its duration is read from the audio metadata
(or estimated from words per minute when the metadata is unreadable),
and words are spread evenly over that duration.
"""

from typing import Optional, Protocol

from reelread.readalong.clock import DurationResolver, HeuristicResolver
from reelread.readalong.errors import PreparationError
from reelread.readalong.playback import ClockedAudioPlayer
from reelread.readalong.timed_tts_base import TimingStrategy
from reelread.utils import logger
from reelread.utils.config import clamp_speed, config

# Good English voices from Edge TTS
EDGE_VOICES = {
    "male": "en-US-GuyNeural",
    "female": "en-US-JennyNeural",
    "british_male": "en-GB-RyanNeural",
    "british_female": "en-GB-SoniaNeural",
    "narrator": "en-US-DavisNeural",
}

DEFAULT_VOICE = "en-US-DavisNeural"


class SpeechSynthesizer(Protocol):
    async def synthesize(self, text: str, voice: Optional[str], speed: float) -> bytes: ...


def resolve_voice(voice: Optional[str]) -> str:
    """Map a shortcut such as "narrator" to a full Edge voice name."""
    if voice and voice.lower() in EDGE_VOICES:
        return EDGE_VOICES[voice.lower()]
    return voice or config.get("edge", "voice", default=DEFAULT_VOICE)


def rate_string(speed: float) -> str:
    """Convert speed multiplier to edge-tts rate string."""
    # Speed 1.0 = +0%, 0.5 = -50%, 2.0 = +100%
    percentage = int(round((speed - 1.0) * 100))
    if percentage >= 0:
        return f"+{percentage}%"
    return f"{percentage}%"


class EdgeSynthesizer:
    """Synthesize MP3 audio with edge-tts."""

    async def synthesize(self, text: str, voice: Optional[str] = None, speed: float = 1.0) -> bytes:
        try:
            import edge_tts
        except ImportError as e:
            raise PreparationError("edge-tts not found. Install with: pip install edge-tts") from e

        communicate = edge_tts.Communicate(text, resolve_voice(voice), rate=rate_string(speed))
        audio = bytearray()
        async for chunk in communicate.stream():
            if chunk["type"] == "audio":
                audio.extend(chunk["data"])

        if not audio:
            raise PreparationError("Edge TTS returned no audio")
        return bytes(audio)


class DurationTimingStrategy(TimingStrategy):
    """
    Advance the word index on a fixed interval of duration / word count.

    Until the clip's duration is known the index stays on the first word.
    On resume the interval is recomputed from the remaining time and the
    remaining words, so tracking continues from the frozen word.
    """

    name = "duration"
    requires_preparation = True

    def __init__(
        self,
        synthesizer: Optional[SpeechSynthesizer] = None,
        player: Optional[ClockedAudioPlayer] = None,
        speed: Optional[float] = None,
        words_per_minute: Optional[float] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.synthesizer = synthesizer or EdgeSynthesizer()
        self.player = player or ClockedAudioPlayer(self.time_source)
        self.speed = clamp_speed(speed) if speed else config.voice_speed
        self.words_per_minute = words_per_minute or config.words_per_minute
        self.resolver: Optional[DurationResolver] = None

    async def _prepare(self) -> None:
        try:
            audio = await self.synthesizer.synthesize(self.text, self.voice, self.speed)
        except PreparationError:
            raise
        except Exception as e:
            raise PreparationError(f"Speech generation failed: {e}") from e

        # Unreadable metadata falls back to the words-per-minute estimate
        estimate = HeuristicResolver(len(self.words), self.words_per_minute, self.speed)
        await self.player.load(audio, fallback_duration_ms=estimate.total_ms)
        if self.player.duration_estimated:
            logger.debug(f"Audio duration unknown, estimating {estimate.total_ms:.0f}ms")
        self.resolver = DurationResolver(len(self.words))
        self.resolver.set_duration(self.player.duration_ms)

    def _resolve(self) -> Optional[int]:
        return self.resolver.resolve(self.player.position_ms)

    def _check_complete(self) -> None:
        if self.player.ended:
            self._finish()

    def _start_output(self) -> None:
        self.player.play()

    def _pause_output(self) -> None:
        self.player.pause()

    def _resume_output(self) -> None:
        self.player.resume()
        self.resolver.rebase(self.player.position_ms, self.current_index)

    def _cancel_output(self) -> None:
        self.player.stop()
