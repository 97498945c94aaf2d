#!/usr/bin/env python3
"""
ReelRead - Main CLI

Turns prose into short, sentence-bounded reels and narrates them with
word-synchronized highlighting.

Features:
- Sentence-aware chunking with paragraph preservation
- Local, boundary-tracked and remote narration engines
- Live highlighting of the spoken word
- Book library with reading progress
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from reelread.readalong.chunker import (
    Chunk,
    ChunkingPolicy,
    chunk_text,
    estimate_total_reading_time,
)
from reelread.readalong.errors import ReelReadError
from reelread.readalong.library import BookRecord, JsonLibrary
from reelread.readalong.sync_controller import PlaybackState, SyncController
from reelread.readalong.timed_tts import available_engines, create_strategy, get_tts_engine
from reelread.readalong.timed_tts_edge import EDGE_VOICES
from reelread.readalong.timed_tts_elevenlabs import ElevenLabsClient
from reelread.utils import logger
from reelread.utils.config import clamp_speed, config


def _format_duration(ms: float) -> str:
    seconds = int(round(ms / 1000))
    minutes, seconds = divmod(seconds, 60)
    if minutes >= 60:
        hours, minutes = divmod(minutes, 60)
        return f"{hours}h {minutes}m"
    return f"{minutes}m {seconds}s"


def _read_text(path: Path) -> str:
    if path.suffix.lower() not in (".txt", ".md", ""):
        logger.error(f"Unsupported file type: {path.suffix}. Use a plain text file.")
        sys.exit(1)
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        logger.error(f"No text found in {path.name}")
        sys.exit(1)
    return text


def _get_book(library: JsonLibrary, book_id: str) -> BookRecord:
    try:
        book = library.get(book_id)
    except ReelReadError as e:
        logger.error(str(e))
        sys.exit(1)
    if book is None:
        logger.error(f"Book not found: {book_id}")
        sys.exit(1)
    return book


@click.group()
@click.version_option(version="1.0.0")
def cli():
    """
    ReelRead

    Read books one short reel at a time, with optional narration
    and word-by-word highlighting.
    """
    pass


@cli.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--target", type=int, default=None, help="Target words per chunk")
@click.option("--max", "max_words", type=int, default=None, help="Hard word limit per chunk")
@click.option("--min", "min_words", type=int, default=None, help="Minimum words before a paragraph may close a chunk")
@click.option("--no-paragraphs", is_flag=True, help="Ignore paragraph boundaries")
@click.option("--json", "as_json", is_flag=True, help="Print chunks as JSON")
def chunk(
    input_file: str,
    target: Optional[int],
    max_words: Optional[int],
    min_words: Optional[int],
    no_paragraphs: bool,
    as_json: bool,
):
    """
    Split a text file into reading chunks.
    """
    input_path = Path(input_file)
    text = _read_text(input_path)

    try:
        policy = ChunkingPolicy.from_config(
            target_words=target,
            max_words=max_words,
            min_words=min_words,
            preserve_paragraphs=False if no_paragraphs else None,
        )
    except ReelReadError as e:
        logger.error(str(e))
        sys.exit(1)

    chunks = chunk_text(text, policy)

    if as_json:
        click.echo(json.dumps([c.to_dict() for c in chunks], indent=2, ensure_ascii=False))
        return

    logger.header(f"Chunking: {input_path.name}")
    for c in chunks:
        logger.console.print(f"[highlight]#{c.id}[/highlight] ({len(c.words)} words)")
        logger.console.print(f"  {c.text}\n", highlight=False)
    logger.success(f"{len(chunks)} chunks")


@cli.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
@click.option("-t", "--title", default=None, help="Book title (default: file name)")
@click.option("-a", "--author", default=None, help="Author name")
def add(input_file: str, title: Optional[str], author: Optional[str]):
    """
    Add a text file to the library.
    """
    input_path = Path(input_file)
    text = _read_text(input_path)
    book_title = title or input_path.stem.replace("_", " ").replace("-", " ").title()

    library = JsonLibrary()
    try:
        with logger.create_progress() as progress:
            task = progress.add_task(f"Chunking '{book_title}'", total=1)
            book = library.add_book(book_title, text, author=author)
            progress.update(task, completed=1)
    except ReelReadError as e:
        logger.error(str(e))
        sys.exit(1)

    logger.success(f"Added '{book.title}' ({len(book.chunks)} chunks)")
    logger.info(f"Book ID: {book.id}")


@cli.command(name="list")
def list_books():
    """
    List books in the library, most recently read first.
    """
    library = JsonLibrary()
    try:
        books = library.list()
    except ReelReadError as e:
        logger.error(str(e))
        sys.exit(1)

    if not books:
        logger.info("Library is empty. Add a book with: reelread add FILE")
        return

    logger.header(f"Library ({len(books)} books)")
    for book in books:
        author = f" by {book.author}" if book.author else ""
        logger.console.print(
            f"  {book.id}  [bold]{book.title}[/bold]{author}  "
            f"[dim]{len(book.chunks)} chunks, {book.progress:.0%} read[/dim]",
            highlight=False,
        )


@cli.command()
@click.argument("book_id")
def remove(book_id: str):
    """
    Remove a book from the library.
    """
    library = JsonLibrary()
    try:
        removed = library.delete(book_id)
    except ReelReadError as e:
        logger.error(str(e))
        sys.exit(1)
    if not removed:
        logger.error(f"Book not found: {book_id}")
        sys.exit(1)
    logger.success(f"Removed {book_id}")


@cli.command()
@click.argument("book_id")
@click.option("-c", "--chunk", "chunk_index", type=int, default=None, help="Print this chunk")
def show(book_id: str, chunk_index: Optional[int]):
    """
    Show a book's details, or one of its chunks.
    """
    book = _get_book(JsonLibrary(), book_id)

    if chunk_index is not None:
        if not 0 <= chunk_index < len(book.chunks):
            logger.error(f"Chunk {chunk_index} out of range (0-{len(book.chunks) - 1})")
            sys.exit(1)
        click.echo(book.chunks[chunk_index].text)
        return

    logger.header(book.title)
    if book.author:
        logger.console.print(f"Author:     {book.author}", highlight=False)
    logger.console.print(f"Chunks:     {len(book.chunks)}")
    logger.console.print(f"Progress:   chunk {book.last_chunk_index} ({book.progress:.0%})")
    logger.console.print(f"Read time:  {_format_duration(estimate_total_reading_time(book.chunks))}")


def _render_chunk(chunk: Chunk, index: int, title: str, total: int) -> Panel:
    text = Text()
    for i, word in enumerate(chunk.words):
        if i:
            text.append(" ")
        text.append(word, style="spoken" if i == index else None)
    return Panel(text, title=title, subtitle=f"{chunk.id + 1}/{total}")


async def _narrate(
    library: JsonLibrary,
    book: BookRecord,
    chunks: List[Chunk],
    controller: SyncController,
) -> bool:
    finished = asyncio.Event()
    current = {"chunk": chunks[0]}
    total = len(book.chunks)

    with Live(console=logger.console, auto_refresh=False) as live:

        @controller.on_word_index
        def render(index: int) -> None:
            live.update(_render_chunk(current["chunk"], index, book.title, total), refresh=True)

        controller.on_complete(finished.set)
        controller.on_error(lambda message: finished.set())

        for c in chunks:
            current["chunk"] = c
            finished.clear()
            live.update(_render_chunk(c, -1, book.title, total), refresh=True)

            await controller.start_chunk(c)
            if controller.state in (PlaybackState.PLAYING, PlaybackState.PAUSED):
                await finished.wait()
            if controller.state is not PlaybackState.COMPLETED:
                return False
            library.update_progress(book.id, c.id)

    return True


@cli.command()
@click.argument("book_id")
@click.option("-c", "--chunk", "chunk_index", type=int, default=None, help="Start at this chunk (default: last read)")
@click.option("-n", "--count", type=int, default=None, help="Number of chunks to read (default: to the end)")
@click.option("-e", "--engine", type=click.Choice(available_engines()), default=None, help="Narration engine")
@click.option("-s", "--speed", type=float, default=None, help="Speech speed (0.5-2.0)")
@click.option("--speak/--silent", default=False, help="Speak heuristic narration through system voices")
def read(
    book_id: str,
    chunk_index: Optional[int],
    count: Optional[int],
    engine: Optional[str],
    speed: Optional[float],
    speak: bool,
):
    """
    Narrate a book with live word highlighting.

    Progress is saved after each completed chunk. The alignment and duration
    engines synthesize each chunk remotely but only use the audio for timing,
    so their highlighting runs silently. Use --speak with the heuristic engine
    to hear the system voice.
    """
    library = JsonLibrary()
    book = _get_book(library, book_id)
    if not book.chunks:
        logger.error("Book has no chunks")
        sys.exit(1)

    start = book.last_chunk_index if chunk_index is None else chunk_index
    if not 0 <= start < len(book.chunks):
        logger.error(f"Chunk {start} out of range (0-{len(book.chunks) - 1})")
        sys.exit(1)
    end = start + count if count else len(book.chunks)
    chunks = book.chunks[start:end]

    engine = engine or get_tts_engine()
    speed = clamp_speed(speed) if speed else clamp_speed(book.settings.tts_speed)

    if engine not in available_engines():
        logger.error(f"Unknown narration engine {engine!r}. Choose one of: {', '.join(available_engines())}")
        sys.exit(1)

    controller = SyncController(
        strategy_factory=lambda: create_strategy(engine, speak_aloud=speak, speed=speed),
        voice=book.settings.tts_voice,
    )

    logger.step(f"Reading '{book.title}' with {engine} narration at {speed}x")
    try:
        completed = asyncio.run(_narrate(library, book, chunks, controller))
    except KeyboardInterrupt:
        controller.stop()
        logger.warning("Stopped")
        return

    if not completed:
        logger.error(controller.last_error or "Narration stopped")
        sys.exit(1)
    logger.success(f"Read {len(chunks)} chunks")


@cli.command()
@click.option("--engine", type=click.Choice(["alignment", "duration"]), default="alignment", help="Remote engine")
def voices(engine: str):
    """
    List available narration voices.
    """
    if engine == "duration":
        logger.header("Edge TTS Voices")
        for shortcut, voice_id in EDGE_VOICES.items():
            logger.console.print(f"  {shortcut:<16} {voice_id}")
        return

    voice_list, is_default = ElevenLabsClient().list_voices()
    logger.header("ElevenLabs Voices")
    for v in voice_list:
        details = ", ".join(part for part in (v.accent, v.gender, v.age) if part)
        logger.console.print(f"  {v.id:<24} {v.name:<12} [dim]{details}[/dim]", highlight=False)
    if is_default:
        logger.console.print("\n[dim]Default voices shown. Set ELEVENLABS_API_KEY to list account voices.[/dim]")
    logger.console.print(f"\nCurrent default: {config.get('elevenlabs', 'voice_id')}")


@cli.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
def estimate(input_file: str):
    """
    Estimate reading time for a text file.
    """
    input_path = Path(input_file)
    text = _read_text(input_path)
    try:
        chunks = chunk_text(text, ChunkingPolicy.from_config())
    except ReelReadError as e:
        logger.error(str(e))
        sys.exit(1)
    words = sum(len(c.words) for c in chunks)

    logger.header(f"Estimate: {input_path.name}")
    logger.info(f"Words:      {words:,}")
    logger.info(f"Chunks:     {len(chunks)}")
    logger.info(f"Read time:  {_format_duration(estimate_total_reading_time(chunks))}")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
