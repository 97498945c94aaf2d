"""
Tests for the ElevenLabs client, with the HTTP session mocked.
"""

import base64
from unittest.mock import MagicMock

import pytest
import requests

from reelread.readalong.errors import PreparationError
from reelread.readalong.timed_tts_elevenlabs import (
    DEFAULT_VOICES,
    ElevenLabsClient,
    remove_from_cache,
)

ALIGNMENT = {
    "characters": ["H", "i", " ", "t", "h", "e", "r", "e"],
    "character_start_times_seconds": [0.0, 0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7],
    "character_end_times_seconds": [0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8],
}


def make_response(status=200, payload=None, text=""):
    response = MagicMock()
    response.status_code = status
    response.ok = status < 400
    response.text = text
    response.json.return_value = payload
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status} error")
    return response


@pytest.fixture
def session():
    session = MagicMock()
    session.post.return_value = make_response(
        payload={"audio_base64": base64.b64encode(b"mp3-bytes").decode(), "alignment": ALIGNMENT}
    )
    return session


@pytest.fixture
def client(session):
    return ElevenLabsClient(api_key="test-key", api_url="https://api.example.test/v1/", session=session)


class TestSynthesize:
    def test_request_shape(self, client, session):
        client.synthesize("Hi there", voice_id="voice123", speed=1.0)

        url = session.post.call_args.args[0]
        kwargs = session.post.call_args.kwargs
        assert url == "https://api.example.test/v1/text-to-speech/voice123/with-timestamps"
        assert kwargs["headers"]["xi-api-key"] == "test-key"
        assert kwargs["json"]["text"] == "Hi there"
        assert kwargs["json"]["model_id"] == "eleven_multilingual_v2"
        assert "speed" not in kwargs["json"]["voice_settings"]
        assert kwargs["timeout"] == 30

    def test_speed_sent_in_voice_settings(self, client, session):
        client.synthesize("Hi there", voice_id="voice123", speed=1.25)
        assert session.post.call_args.kwargs["json"]["voice_settings"]["speed"] == 1.25

    def test_decodes_audio_and_alignment(self, client):
        speech = client.synthesize("Hi there", voice_id="voice123")
        assert speech.audio == b"mp3-bytes"
        assert [(t.word, t.start, t.end) for t in speech.timing_map.timings] == [
            ("Hi", 0, 200),
            ("there", 300, 800),
        ]

    def test_default_voice_from_config(self, client, session):
        client.synthesize("Hi there")
        assert "/text-to-speech/21m00Tcm4TlvDq8ikWAM/" in session.post.call_args.args[0]

    def test_results_are_cached(self, client, session):
        first = client.synthesize("Hi there", voice_id="v", speed=1.0)
        second = client.synthesize("Hi there", voice_id="v", speed=1.0)
        assert first is second
        assert session.post.call_count == 1

        client.synthesize("Hi there", voice_id="v", speed=1.5)
        assert session.post.call_count == 2

    def test_remove_from_cache(self, client, session):
        client.synthesize("Hi there", voice_id="v", speed=1.0)
        remove_from_cache("v", 1.0, "Hi there")
        client.synthesize("Hi there", voice_id="v", speed=1.0)
        assert session.post.call_count == 2

    def test_api_key_from_environment(self, monkeypatch, session):
        monkeypatch.setenv("ELEVENLABS_API_KEY", "env-key")
        ElevenLabsClient(session=session).synthesize("Hi there")
        assert session.post.call_args.kwargs["headers"]["xi-api-key"] == "env-key"

    def test_missing_key(self, session):
        with pytest.raises(PreparationError, match="not configured"):
            ElevenLabsClient(session=session).synthesize("Hi there")
        session.post.assert_not_called()

    @pytest.mark.parametrize("text", ["", None])
    def test_missing_text(self, client, text):
        with pytest.raises(PreparationError, match="Text is required"):
            client.synthesize(text)

    @pytest.mark.parametrize(
        "status,message",
        [
            (401, "Invalid API key"),
            (429, "Rate limit exceeded"),
            (500, "HTTP 500"),
        ],
    )
    def test_http_errors(self, client, session, status, message):
        session.post.return_value = make_response(status=status, text="nope")
        with pytest.raises(PreparationError, match=message):
            client.synthesize("Hi there")

    def test_network_error(self, client, session):
        session.post.side_effect = requests.ConnectionError("no route")
        with pytest.raises(PreparationError, match="Could not reach ElevenLabs"):
            client.synthesize("Hi there")

    def test_malformed_response(self, client, session):
        session.post.return_value = make_response(payload={"audio_base64": "aGk="})
        with pytest.raises(PreparationError, match="Malformed"):
            client.synthesize("Hi there")


class TestListVoices:
    def test_defaults_without_key(self, session):
        voices, is_default = ElevenLabsClient(session=session).list_voices()
        assert is_default
        assert len(voices) == len(DEFAULT_VOICES) == 8
        session.get.assert_not_called()

    def test_account_voices(self, client, session):
        session.get.return_value = make_response(
            payload={
                "voices": [
                    {
                        "voice_id": "abc",
                        "name": "Narrator",
                        "category": "cloned",
                        "labels": {"accent": "Irish", "gender": "Female"},
                    }
                ]
            }
        )
        voices, is_default = client.list_voices()
        assert not is_default
        assert voices[0].id == "abc"
        assert voices[0].accent == "Irish"
        assert voices[0].age is None
        assert session.get.call_args.args[0] == "https://api.example.test/v1/voices"

    def test_falls_back_on_error(self, client, session):
        session.get.return_value = make_response(status=503)
        voices, is_default = client.list_voices()
        assert is_default
        assert voices == DEFAULT_VOICES
