"""
Clocked audio playback.

ClockedAudioPlayer is the playback position source for remote narration:
it holds the synthesized clip, learns its duration from the audio metadata,
and reports the position of a PlaybackClock running over that clip.
Sending samples to a sound device is left to the embedding application.
"""

import asyncio
import io
import time
from pathlib import Path
from typing import Callable, Optional

import soundfile as sf

from reelread.readalong.clock import PlaybackClock
from reelread.utils import logger


def audio_duration_ms(audio: bytes) -> Optional[float]:
    """
    Read the duration of an encoded clip from its metadata.

    Returns None when libsndfile cannot decode the format.
    """
    try:
        info = sf.info(io.BytesIO(audio))
    except RuntimeError as e:
        logger.debug(f"Could not read audio metadata: {e}")
        return None
    if not info.samplerate:
        return None
    return info.frames / info.samplerate * 1000.0


class ClockedAudioPlayer:
    """Playback position tracker for one audio clip."""

    def __init__(self, time_source: Callable[[], float] = time.monotonic):
        self.clock = PlaybackClock(time_source)
        self.audio: bytes = b""
        self.duration_ms: Optional[float] = None
        self.duration_estimated = False

    async def load(self, audio: bytes, fallback_duration_ms: Optional[float] = None) -> None:
        """
        Load a clip and read its duration off the event loop.

        Args:
            audio: Encoded audio (mp3, wav, ...)
            fallback_duration_ms: Used when the metadata cannot be read
        """
        self.stop()
        self.audio = audio
        duration = await asyncio.to_thread(audio_duration_ms, audio)
        self.duration_estimated = duration is None
        self.duration_ms = duration if duration is not None else fallback_duration_ms

    def play(self) -> None:
        self.clock.start()

    def pause(self) -> None:
        self.clock.pause()

    def resume(self) -> None:
        self.clock.resume()

    def stop(self) -> None:
        self.clock.reset()

    @property
    def position_ms(self) -> float:
        position = self.clock.elapsed_ms
        if self.duration_ms is not None:
            return min(position, self.duration_ms)
        return position

    @property
    def ended(self) -> bool:
        return self.duration_ms is not None and self.clock.elapsed_ms >= self.duration_ms

    def save(self, output_path: Path) -> Path:
        """Write the loaded clip to disk."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(self.audio)
        return output_path
