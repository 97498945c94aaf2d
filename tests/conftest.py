"""Shared fixtures for the reel reader tests."""

import pytest

from reelread.readalong.sync_controller import NarrationOutput
from reelread.readalong.timed_tts_elevenlabs import clear_cache
from reelread.utils.config import config


class FakeTime:
    """Manually advanced time source, in seconds like time.monotonic."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms / 1000.0


class FakeSpeaker:
    """Speaker that records calls and lets tests fire its callbacks."""

    def __init__(self):
        self.calls = []
        self.on_boundary = None
        self.on_end = None
        self.on_error = None

    def speak(self, text, on_boundary, on_end, on_error):
        self.calls.append(("speak", text))
        self.on_boundary = on_boundary
        self.on_end = on_end
        self.on_error = on_error

    def pause(self):
        self.calls.append(("pause",))

    def resume(self):
        self.calls.append(("resume",))

    def stop(self):
        self.calls.append(("stop",))


@pytest.fixture
def fake_time():
    return FakeTime()


@pytest.fixture
def fake_speaker():
    return FakeSpeaker()


@pytest.fixture(autouse=True)
def reset_state(monkeypatch):
    """Fresh configuration, narration output and speech cache for every test."""
    monkeypatch.delenv("REELREAD_CONFIG", raising=False)
    monkeypatch.delenv("REELREAD_ENGINE", raising=False)
    monkeypatch.delenv("ELEVENLABS_API_KEY", raising=False)
    config.reload()
    NarrationOutput._owner = None
    clear_cache()
    yield
    config.reload()
    NarrationOutput._owner = None
    clear_cache()
