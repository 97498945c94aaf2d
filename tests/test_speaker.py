"""
Tests for the pyttsx3 speaker's worker thread.

pyttsx3.init is replaced with an engine that, like the real drivers, refuses
to enter runAndWait while another run loop is still active.
"""

import asyncio
import threading
import time

import pytest

from reelread.readalong.timed_tts_local import Pyttsx3Speaker


class FakeEngine:
    """Blocks in runAndWait until stopped or finished, then winds down briefly."""

    def __init__(self, word_location=6, wind_down_s=0.05):
        self.word_location = word_location
        self.wind_down_s = wind_down_s
        self.handlers = {}
        self.said = []
        self.in_loop = False
        self._name = None
        self._stopped = threading.Event()
        self._released = threading.Event()

    def getProperty(self, name):
        return []

    def setProperty(self, name, value):
        pass

    def connect(self, topic, callback):
        self.handlers[topic] = callback

    def say(self, text, name=None):
        self.said.append(text)
        self._name = name

    def runAndWait(self):
        if self.in_loop:
            raise RuntimeError("run loop already started")
        self.in_loop = True
        try:
            self.handlers["started-word"](self._name, self.word_location, 5)
            while not (self._stopped.is_set() or self._released.is_set()):
                time.sleep(0.005)
            time.sleep(self.wind_down_s)
            completed = not self._stopped.is_set()
            self._stopped.clear()
            self._released.clear()
            self.handlers["finished-utterance"](self._name, completed)
        finally:
            self.in_loop = False

    def stop(self):
        self._stopped.set()

    def finish(self):
        self._released.set()


async def wait_until(condition, timeout=2.0):
    deadline = time.monotonic() + timeout
    while not condition():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def engine(monkeypatch):
    fake = FakeEngine()
    monkeypatch.setattr("pyttsx3.init", lambda: fake)
    return fake


class Calls:
    def __init__(self):
        self.boundaries = []
        self.ended = 0
        self.errors = []

    def end(self):
        self.ended += 1


class TestPyttsx3Speaker:
    @pytest.mark.asyncio
    async def test_speaks_and_reports_end(self, engine):
        speaker = Pyttsx3Speaker()
        calls = Calls()
        speaker.speak("Hello brave new world", calls.boundaries.append, calls.end, calls.errors.append)

        await wait_until(lambda: calls.boundaries == [6])
        engine.finish()
        await wait_until(lambda: calls.ended == 1)
        assert engine.said == ["Hello brave new world"]
        assert calls.errors == []

    @pytest.mark.asyncio
    async def test_resume_waits_for_stopped_utterance(self, engine):
        speaker = Pyttsx3Speaker()
        calls = Calls()
        speaker.speak("Hello brave new world", calls.boundaries.append, calls.end, calls.errors.append)
        await wait_until(lambda: calls.boundaries == [6])

        speaker.pause()
        speaker.resume()
        await wait_until(lambda: len(engine.said) == 2)

        # resumed from "brave", offsets shifted back into the full text
        assert engine.said[1] == "brave new world"
        await wait_until(lambda: calls.boundaries == [6, 12])

        engine.finish()
        await wait_until(lambda: calls.ended == 1)
        assert calls.errors == []

    @pytest.mark.asyncio
    async def test_stop_drops_pending_callbacks(self, engine):
        speaker = Pyttsx3Speaker()
        calls = Calls()
        speaker.speak("Hello brave new world", calls.boundaries.append, calls.end, calls.errors.append)
        await wait_until(lambda: calls.boundaries == [6])

        speaker.stop()
        await asyncio.sleep(engine.wind_down_s * 3)
        assert calls.ended == 0
        assert calls.errors == []
