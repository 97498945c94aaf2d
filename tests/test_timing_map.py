"""
Tests for alignment reduction and word timing maps.
"""

import pytest

from reelread.readalong.timing_map import (
    WordTiming,
    WordTimingMap,
    seconds_to_ms,
    words_from_alignment,
)


@pytest.fixture
def hi_there():
    return {
        "characters": ["H", "i", " ", "t", "h", "e", "r", "e"],
        "character_start_times_seconds": [0.0, 0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7],
        "character_end_times_seconds": [0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8],
    }


def gap_map() -> WordTimingMap:
    """Four words with 300 ms of silence between the third and fourth."""
    return WordTimingMap(
        text="one two three four",
        timings=[
            WordTiming("one", 0, 200),
            WordTiming("two", 200, 400),
            WordTiming("three", 400, 600),
            WordTiming("four", 900, 1100),
        ],
    )


class TestWordsFromAlignment:
    def test_hi_there(self, hi_there):
        timings = words_from_alignment(
            hi_there["characters"],
            hi_there["character_start_times_seconds"],
            hi_there["character_end_times_seconds"],
        )
        assert timings == [WordTiming("Hi", 0, 200), WordTiming("there", 300, 800)]

    def test_newlines_and_tabs_separate_words(self):
        timings = words_from_alignment(list("a\nb\tc"), [0, 0.1, 0.2, 0.3, 0.4], [0.1, 0.2, 0.3, 0.4, 0.5])
        assert [t.word for t in timings] == ["a", "b", "c"]

    def test_repeated_separators(self):
        timings = words_from_alignment(list("a  b "), [0, 0.1, 0.2, 0.3, 0.4], [0.1, 0.2, 0.3, 0.4, 0.5])
        assert [t.word for t in timings] == ["a", "b"]

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            words_from_alignment(["a", "b"], [0.0], [0.1, 0.2])

    @pytest.mark.parametrize("seconds,ms", [(0.0, 0), (0.1234, 123), (0.1236, 124), (1.5, 1500)])
    def test_seconds_to_ms_rounds(self, seconds, ms):
        assert seconds_to_ms(seconds) == ms


class TestWordTiming:
    def test_rejects_negative_start(self):
        with pytest.raises(ValueError):
            WordTiming("x", -1, 10)

    def test_rejects_end_before_start(self):
        with pytest.raises(ValueError):
            WordTiming("x", 10, 5)


class TestWordTimingMap:
    def test_from_alignment(self, hi_there):
        timing_map = WordTimingMap.from_alignment("Hi there", hi_there, voice="rachel")
        assert len(timing_map) == 2
        assert timing_map.duration_ms == 800
        assert timing_map.voice == "rachel"

    @pytest.mark.parametrize(
        "position,index",
        [
            (0, 0),
            (150, 0),
            (200, 1),
            (450, 2),
            (650, 3),  # in the gap after "three", the next word is shown
            (899, 3),
            (1000, 3),
            (5000, 3),
        ],
    )
    def test_index_at(self, position, index):
        assert gap_map().index_at(position) == index

    def test_index_at_empty(self):
        assert WordTimingMap(text="").index_at(100) == -1

    def test_save_and_load(self, tmp_path, hi_there):
        timing_map = WordTimingMap.from_alignment("Hi there", hi_there, voice="rachel")
        path = timing_map.save(tmp_path / "chunk_0")
        assert path.suffix == ".json"

        loaded = WordTimingMap.load(path)
        assert loaded.timings == timing_map.timings
        assert loaded.text == "Hi there"
        assert loaded.voice == "rachel"
        assert loaded.to_dict()["durationMs"] == 800
