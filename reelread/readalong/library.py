"""
Book library persistence.

Books are stored one JSON file per record under <library>/books/, reader
settings in <library>/settings.json. Timestamps are milliseconds since the
epoch.
"""

import json
import re
import shutil
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from reelread.readalong.chunker import Chunk, ChunkingPolicy, chunk_text
from reelread.readalong.errors import ReelReadError
from reelread.utils import logger
from reelread.utils.config import clamp_speed, config

_BOOK_ID = re.compile(r"^[\w-]+$")


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class BookSettings:
    """Per-book reader settings."""

    tts_voice: Optional[str] = None
    tts_speed: float = 1.0
    words_per_chunk: int = 40

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ttsVoice": self.tts_voice,
            "ttsSpeed": self.tts_speed,
            "wordsPerChunk": self.words_per_chunk,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BookSettings":
        return cls(
            tts_voice=data.get("ttsVoice"),
            tts_speed=clamp_speed(data.get("ttsSpeed", 1.0)),
            words_per_chunk=data.get("wordsPerChunk", 40),
        )


@dataclass
class AppSettings:
    """Global reader settings."""

    tts_enabled: bool = True
    tts_volume: float = 1.0
    auto_play: bool = False
    narration_engine: str = "heuristic"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ttsEnabled": self.tts_enabled,
            "ttsVolume": self.tts_volume,
            "autoPlay": self.auto_play,
            "narrationEngine": self.narration_engine,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppSettings":
        defaults = cls()
        return cls(
            tts_enabled=data.get("ttsEnabled", defaults.tts_enabled),
            tts_volume=data.get("ttsVolume", defaults.tts_volume),
            auto_play=data.get("autoPlay", defaults.auto_play),
            narration_engine=data.get("narrationEngine", defaults.narration_engine),
        )


@dataclass
class BookRecord:
    """A stored book with its chunks and reading progress."""

    id: str
    title: str
    text: str
    chunks: List[Chunk]
    author: Optional[str] = None
    created_at: int = 0
    last_read_at: Optional[int] = None
    last_chunk_index: int = 0
    settings: BookSettings = field(default_factory=BookSettings)

    @property
    def progress(self) -> float:
        """Fraction of chunks reached, 0.0 to 1.0."""
        if not self.chunks:
            return 0.0
        return min(1.0, (self.last_chunk_index + 1) / len(self.chunks))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "text": self.text,
            "chunks": [chunk.to_dict() for chunk in self.chunks],
            "createdAt": self.created_at,
            "lastReadAt": self.last_read_at,
            "lastChunkIndex": self.last_chunk_index,
            "settings": self.settings.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BookRecord":
        return cls(
            id=data["id"],
            title=data["title"],
            text=data["text"],
            chunks=[Chunk.from_dict(c) for c in data.get("chunks", [])],
            author=data.get("author"),
            created_at=data.get("createdAt", 0),
            last_read_at=data.get("lastReadAt"),
            last_chunk_index=data.get("lastChunkIndex", 0),
            settings=BookSettings.from_dict(data.get("settings") or {}),
        )


class BookStore(Protocol):
    """Persistence surface the reader needs."""

    def get(self, book_id: str) -> Optional[BookRecord]: ...

    def put(self, book: BookRecord) -> None: ...

    def delete(self, book_id: str) -> bool: ...

    def list(self) -> List[BookRecord]: ...


class JsonLibrary:
    """
    BookStore backed by JSON files.

    Example:
        library = JsonLibrary()
        book = library.add_book("Walden", text, author="Thoreau")
        library.update_progress(book.id, 3)
    """

    def __init__(self, root: Optional[Path] = None):
        self.root = Path(root) if root else config.get_path("library")
        self.books_dir = self.root / "books"
        self.settings_path = self.root / "settings.json"

    def _book_path(self, book_id: str) -> Path:
        if not _BOOK_ID.match(book_id or ""):
            raise ReelReadError(f"Invalid book id: {book_id!r}")
        return self.books_dir / f"{book_id}.json"

    @staticmethod
    def _read_json(path: Path) -> Dict[str, Any]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ReelReadError(f"Corrupt library file {path}: {e}") from e

    @staticmethod
    def _write_json(path: Path, data: Dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        tmp_path.replace(path)

    # ------------------------------------------------------------------
    # Books
    # ------------------------------------------------------------------

    def get(self, book_id: str) -> Optional[BookRecord]:
        path = self._book_path(book_id)
        if not path.exists():
            return None
        try:
            return BookRecord.from_dict(self._read_json(path))
        except (KeyError, TypeError, ValueError) as e:
            raise ReelReadError(f"Corrupt library file {path}: {e}") from e

    def put(self, book: BookRecord) -> None:
        self._write_json(self._book_path(book.id), book.to_dict())

    def delete(self, book_id: str) -> bool:
        path = self._book_path(book_id)
        if not path.exists():
            return False
        path.unlink()
        return True

    def list(self) -> List[BookRecord]:
        """All books, most recently read (or added) first."""
        if not self.books_dir.exists():
            return []
        books = []
        for path in self.books_dir.glob("*.json"):
            book = self.get(path.stem)
            if book is not None:
                books.append(book)
        books.sort(key=lambda b: b.last_read_at or b.created_at, reverse=True)
        return books

    def count(self) -> int:
        if not self.books_dir.exists():
            return 0
        return sum(1 for _ in self.books_dir.glob("*.json"))

    def add_book(
        self,
        title: str,
        text: str,
        author: Optional[str] = None,
        policy: Optional[ChunkingPolicy] = None,
    ) -> BookRecord:
        """Chunk text and store it as a new book."""
        policy = policy or ChunkingPolicy.from_config()
        chunks = chunk_text(text, policy)
        book = BookRecord(
            id=uuid.uuid4().hex,
            title=title,
            author=author,
            text=text,
            chunks=chunks,
            created_at=now_ms(),
            settings=BookSettings(words_per_chunk=policy.target_words),
        )
        self.put(book)
        logger.debug(f"Stored '{title}' as {book.id} ({len(chunks)} chunks)")
        return book

    def update_progress(self, book_id: str, chunk_index: int) -> BookRecord:
        """Record the chunk the reader reached."""
        book = self.get(book_id)
        if book is None:
            raise ReelReadError(f"Book not found: {book_id}")
        if book.chunks:
            chunk_index = max(0, min(chunk_index, len(book.chunks) - 1))
        else:
            chunk_index = 0
        book.last_chunk_index = chunk_index
        book.last_read_at = now_ms()
        self.put(book)
        return book

    def clear(self) -> None:
        """Delete every book and the saved settings."""
        if self.books_dir.exists():
            shutil.rmtree(self.books_dir)
        if self.settings_path.exists():
            self.settings_path.unlink()

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_settings(self) -> AppSettings:
        if not self.settings_path.exists():
            return AppSettings()
        return AppSettings.from_dict(self._read_json(self.settings_path))

    def save_settings(self, settings: AppSettings) -> None:
        self._write_json(self.settings_path, settings.to_dict())

    def update_settings(self, **changes: Any) -> AppSettings:
        settings = self.get_settings()
        for key, value in changes.items():
            if not hasattr(settings, key):
                raise ReelReadError(f"Unknown setting: {key}")
            setattr(settings, key, value)
        self.save_settings(settings)
        return settings
