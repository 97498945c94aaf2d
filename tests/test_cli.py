"""
Tests for the click CLI.
"""

import json

import pytest
from click.testing import CliRunner

from reelread.main import cli
from reelread.readalong.library import JsonLibrary
from reelread.utils.config import config

TEXT = (
    "It was the best of times. It was the worst of times.\n\n"
    "It was the age of wisdom. It was the age of foolishness."
)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def library(tmp_path):
    config.set("paths", "library", str(tmp_path / "library"))
    return JsonLibrary()


@pytest.fixture
def book_file(tmp_path):
    path = tmp_path / "two_cities.txt"
    path.write_text(TEXT, encoding="utf-8")
    return path


@pytest.fixture
def book(library):
    config.set("chunking", "target_words", 8)
    config.set("chunking", "max_words", 12)
    config.set("chunking", "min_words", 4)
    return library.add_book("Two Cities", TEXT, author="Dickens")


class TestChunkCommand:
    def test_json_output(self, runner, book_file):
        result = runner.invoke(cli, ["chunk", str(book_file), "--target", "6", "--max", "10", "--min", "3", "--json"])
        assert result.exit_code == 0, result.output
        chunks = json.loads(result.output)
        assert [c["id"] for c in chunks] == list(range(len(chunks)))
        assert chunks[0]["text"] == "It was the best of times."

    def test_invalid_policy(self, runner, book_file):
        result = runner.invoke(cli, ["chunk", str(book_file), "--target", "100"])
        assert result.exit_code == 1
        assert "min_words <= target_words <= max_words" in result.output

    def test_human_output(self, runner, book_file):
        result = runner.invoke(cli, ["chunk", str(book_file)])
        assert result.exit_code == 0, result.output
        assert "1 chunks" in result.output

    def test_empty_file(self, runner, tmp_path):
        empty = tmp_path / "empty.txt"
        empty.write_text("  \n", encoding="utf-8")
        result = runner.invoke(cli, ["chunk", str(empty)])
        assert result.exit_code == 1
        assert "No text found" in result.output


class TestLibraryCommands:
    def test_add_and_list(self, runner, library, book_file):
        result = runner.invoke(cli, ["add", str(book_file), "--author", "Dickens"])
        assert result.exit_code == 0, result.output
        assert "Two Cities" in result.output
        assert library.count() == 1

        result = runner.invoke(cli, ["list"])
        assert result.exit_code == 0, result.output
        assert "Two Cities" in result.output
        assert "Dickens" in result.output

    def test_list_empty(self, runner, library):
        result = runner.invoke(cli, ["list"])
        assert result.exit_code == 0
        assert "Library is empty" in result.output

    def test_show(self, runner, book):
        result = runner.invoke(cli, ["show", book.id])
        assert result.exit_code == 0, result.output
        assert "Two Cities" in result.output

    def test_show_chunk(self, runner, book):
        result = runner.invoke(cli, ["show", book.id, "--chunk", "0"])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == book.chunks[0].text

    def test_show_chunk_out_of_range(self, runner, book):
        result = runner.invoke(cli, ["show", book.id, "--chunk", "99"])
        assert result.exit_code == 1
        assert "out of range" in result.output

    def test_remove(self, runner, library, book):
        result = runner.invoke(cli, ["remove", book.id])
        assert result.exit_code == 0, result.output
        assert library.get(book.id) is None

    def test_remove_unknown(self, runner, library):
        result = runner.invoke(cli, ["remove", "missing"])
        assert result.exit_code == 1
        assert "Book not found" in result.output


class TestReadCommand:
    def test_reads_and_records_progress(self, runner, library, book):
        # 60000 wpm is 1 ms per word
        config.set("narration", "words_per_minute", 60000)
        assert len(book.chunks) == 2

        result = runner.invoke(cli, ["read", book.id, "--chunk", "0", "--engine", "heuristic"])
        assert result.exit_code == 0, result.output
        assert "Read 2 chunks" in result.output
        assert library.get(book.id).last_chunk_index == 1

    def test_count_limits_chunks(self, runner, library, book):
        config.set("narration", "words_per_minute", 60000)
        result = runner.invoke(cli, ["read", book.id, "--chunk", "0", "--count", "1"])
        assert result.exit_code == 0, result.output
        assert "Read 1 chunks" in result.output
        assert library.get(book.id).last_chunk_index == 0

    def test_unknown_book(self, runner, library):
        result = runner.invoke(cli, ["read", "missing"])
        assert result.exit_code == 1

    def test_bad_engine(self, runner, book):
        result = runner.invoke(cli, ["read", book.id, "--engine", "telepathy"])
        assert result.exit_code == 2


class TestInfoCommands:
    def test_estimate(self, runner, book_file):
        result = runner.invoke(cli, ["estimate", str(book_file)])
        assert result.exit_code == 0, result.output
        assert "Words" in result.output
        assert "24" in result.output

    def test_estimate_invalid_chunking_config(self, runner, book_file):
        config.set("chunking", "target_words", 100)
        result = runner.invoke(cli, ["estimate", str(book_file)])
        assert result.exit_code == 1
        assert "min_words <= target_words <= max_words" in result.output

    def test_read_help_mentions_silent_remote_engines(self, runner):
        result = runner.invoke(cli, ["read", "--help"])
        assert result.exit_code == 0
        assert "silently" in result.output

    def test_voices_without_key(self, runner):
        result = runner.invoke(cli, ["voices"])
        assert result.exit_code == 0, result.output
        assert "Rachel" in result.output
        assert "ELEVENLABS_API_KEY" in result.output

    def test_edge_voices(self, runner):
        result = runner.invoke(cli, ["voices", "--engine", "duration"])
        assert result.exit_code == 0, result.output
        assert "en-US-DavisNeural" in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert "1.0.0" in result.output
