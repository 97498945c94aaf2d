"""
Timed TTS using ElevenLabs

Remote narration with precise word timing. ElevenLabs returns the audio and
a character-level alignment table; the table is reduced to word timings and
playback position is resolved against it.
"""

import asyncio
import base64
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Tuple

import requests

from reelread.readalong.clock import AlignmentResolver
from reelread.readalong.errors import PreparationError
from reelread.readalong.playback import ClockedAudioPlayer
from reelread.readalong.timed_tts_base import TimingStrategy
from reelread.readalong.timing_map import WordTimingMap
from reelread.utils import logger
from reelread.utils.config import clamp_speed, config

API_KEY_ENV_VAR = "ELEVENLABS_API_KEY"


@dataclass
class VoiceInfo:
    """ElevenLabs voice information."""

    id: str
    name: str
    category: str
    accent: Optional[str] = None
    gender: Optional[str] = None
    age: Optional[str] = None
    preview_url: str = ""


# Popular premade voices, used when the account voices can't be fetched
DEFAULT_VOICES = [
    VoiceInfo("21m00Tcm4TlvDq8ikWAM", "Rachel", "premade", "American", "Female", "Young"),
    VoiceInfo("EXAVITQu4vr4xnSDxMaL", "Sarah", "premade", "American", "Female", "Young"),
    VoiceInfo("ErXwobaYiN019PkySvjV", "Antoni", "premade", "American", "Male", "Young"),
    VoiceInfo("VR6AewLTigWG4xSOukaG", "Arnold", "premade", "American", "Male", "Middle Aged"),
    VoiceInfo("pNInz6obpgDQGcFmaJgB", "Adam", "premade", "American", "Male", "Middle Aged"),
    VoiceInfo("yoZ06aMxZJJ28mfd3POQ", "Sam", "premade", "American", "Male", "Young"),
    VoiceInfo("jBpfuIE2acCO8z3wKNLl", "Gigi", "premade", "American", "Female", "Young"),
    VoiceInfo("onwK4e9ZLuTAKqWW03F9", "Daniel", "premade", "British", "Male", "Middle Aged"),
]


@dataclass
class AlignedSpeech:
    """Synthesized audio with its word timing map."""

    audio: bytes
    timing_map: WordTimingMap


class AlignmentSynthesizer(Protocol):
    def synthesize(self, text: str, voice_id: Optional[str] = None, speed: float = 1.0) -> AlignedSpeech: ...


# In-memory cache so the same chunk is not synthesized twice
_speech_cache: Dict[str, AlignedSpeech] = {}


def _cache_key(voice_id: str, speed: float, text: str) -> str:
    return f"{voice_id}:{speed}:{text}"


def clear_cache() -> None:
    """Clear the synthesized speech cache."""
    _speech_cache.clear()


def remove_from_cache(voice_id: str, speed: float, text: str) -> None:
    """Remove one text from the cache."""
    _speech_cache.pop(_cache_key(voice_id, speed, text), None)


class ElevenLabsClient:
    """Minimal ElevenLabs client for speech with timestamps and voice listing."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key or os.environ.get(API_KEY_ENV_VAR)
        self.api_url = (api_url or config.get("elevenlabs", "api_url")).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout or config.get("elevenlabs", "timeout", default=30)

    def _voice_settings(self, speed: float) -> Dict[str, Any]:
        settings = {
            "stability": config.get("elevenlabs", "stability", default=0.5),
            "similarity_boost": config.get("elevenlabs", "similarity_boost", default=0.75),
            "style": config.get("elevenlabs", "style", default=0.0),
            "use_speaker_boost": config.get("elevenlabs", "use_speaker_boost", default=True),
        }
        if speed != 1.0:
            settings["speed"] = speed
        return settings

    def synthesize(self, text: str, voice_id: Optional[str] = None, speed: float = 1.0) -> AlignedSpeech:
        """
        Generate speech with character-level timestamps.

        Args:
            text: Text to speak
            voice_id: ElevenLabs voice ID (default from config)
            speed: Speech speed multiplier

        Returns:
            AlignedSpeech with decoded audio and word timings
        """
        if not text or not isinstance(text, str):
            raise PreparationError("Text is required")

        voice_id = voice_id or config.get("elevenlabs", "voice_id")
        key = _cache_key(voice_id, speed, text)
        if key in _speech_cache:
            return _speech_cache[key]

        if not self.api_key:
            raise PreparationError(
                f"TTS service is not configured. Set {API_KEY_ENV_VAR} in the environment."
            )

        try:
            response = self.session.post(
                f"{self.api_url}/text-to-speech/{voice_id}/with-timestamps",
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                    "xi-api-key": self.api_key,
                },
                json={
                    "text": text,
                    "model_id": config.get("elevenlabs", "model_id", default="eleven_multilingual_v2"),
                    "voice_settings": self._voice_settings(speed),
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise PreparationError(f"Could not reach ElevenLabs: {e}") from e

        if not response.ok:
            logger.warning(f"ElevenLabs API error: {response.status_code} {response.text[:200]}")
            if response.status_code == 401:
                raise PreparationError("Invalid API key")
            if response.status_code == 429:
                raise PreparationError("Rate limit exceeded. Please try again later.")
            raise PreparationError(f"Failed to generate speech (HTTP {response.status_code})")

        try:
            data = response.json()
            speech = AlignedSpeech(
                audio=base64.b64decode(data["audio_base64"]),
                timing_map=WordTimingMap.from_alignment(text, data["alignment"], voice=voice_id),
            )
        except (ValueError, KeyError, TypeError) as e:
            raise PreparationError(f"Malformed ElevenLabs response: {e}") from e

        _speech_cache[key] = speech
        return speech

    def list_voices(self) -> Tuple[List[VoiceInfo], bool]:
        """
        List the account's voices.

        Returns:
            (voices, is_default): the default catalogue is returned, with
            is_default True, when there is no API key or the request fails.
        """
        if not self.api_key:
            return list(DEFAULT_VOICES), True

        try:
            response = self.session.get(
                f"{self.api_url}/voices",
                headers={"xi-api-key": self.api_key},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Failed to fetch voices: {e}")
            return list(DEFAULT_VOICES), True

        voices = []
        for voice in payload.get("voices", []):
            labels = voice.get("labels") or {}
            voices.append(VoiceInfo(
                id=voice["voice_id"],
                name=voice["name"],
                category=voice.get("category", ""),
                accent=labels.get("accent"),
                gender=labels.get("gender"),
                age=labels.get("age"),
                preview_url=voice.get("preview_url") or "",
            ))
        return voices, False


class AlignmentTimingStrategy(TimingStrategy):
    """
    Resolve the spoken word from a precomputed word timing table.

    Inside a word's [start, end) that word is active; in a silent gap the next
    word is shown, never a stale index or nothing.
    """

    name = "alignment"
    requires_preparation = True

    def __init__(
        self,
        client: Optional[AlignmentSynthesizer] = None,
        player: Optional[ClockedAudioPlayer] = None,
        speed: Optional[float] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.client = client or ElevenLabsClient()
        self.player = player or ClockedAudioPlayer(self.time_source)
        self.speed = clamp_speed(speed) if speed else config.voice_speed
        self.timing_map: Optional[WordTimingMap] = None
        self.resolver: Optional[AlignmentResolver] = None

    async def _prepare(self) -> None:
        try:
            speech = await asyncio.to_thread(self.client.synthesize, self.text, self.voice, self.speed)
        except PreparationError:
            raise
        except Exception as e:
            raise PreparationError(f"Speech generation failed: {e}") from e

        self.timing_map = speech.timing_map
        self.resolver = AlignmentResolver(speech.timing_map.timings)
        if len(speech.timing_map) != len(self.words):
            logger.debug(
                f"Alignment has {len(speech.timing_map)} words, chunk has {len(self.words)}"
            )
        await self.player.load(speech.audio, fallback_duration_ms=self.resolver.duration_ms)

    def _resolve(self) -> Optional[int]:
        index = self.resolver.resolve(self.player.position_ms)
        return index if index >= 0 else None

    def _check_complete(self) -> None:
        if self.player.ended:
            self._finish()

    def _start_output(self) -> None:
        self.player.play()

    def _pause_output(self) -> None:
        self.player.pause()

    def _resume_output(self) -> None:
        self.player.resume()

    def _cancel_output(self) -> None:
        self.player.stop()
