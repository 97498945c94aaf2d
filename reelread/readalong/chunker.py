"""
Chunker Module

Splits book text into bite-sized chunks for the reel format. Each chunk is a
run of whole sentences sized for one screen of reading.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from reelread.readalong.errors import ConfigError
from reelread.readalong.sentence_splitter import (
    SentenceSplitter,
    normalize_text,
    split_paragraphs,
)
from reelread.readalong.tokenizer import count_words, split_words
from reelread.utils.config import config


@dataclass(frozen=True)
class ChunkingPolicy:
    """Sizing rules for the chunk builder."""

    target_words: int = 40
    max_words: int = 60
    min_words: int = 20
    preserve_paragraphs: bool = True

    def __post_init__(self):
        for name in ("target_words", "max_words", "min_words"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")
        if not self.min_words <= self.target_words <= self.max_words:
            raise ConfigError(
                "chunking policy requires min_words <= target_words <= max_words, "
                f"got {self.min_words} / {self.target_words} / {self.max_words}"
            )

    @classmethod
    def from_config(cls, **overrides: Any) -> "ChunkingPolicy":
        """Build a policy from the chunking config section, with overrides."""
        values = {
            "target_words": config.get("chunking", "target_words", default=40),
            "max_words": config.get("chunking", "max_words", default=60),
            "min_words": config.get("chunking", "min_words", default=20),
            "preserve_paragraphs": config.get("chunking", "preserve_paragraphs", default=True),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


@dataclass(frozen=True)
class Chunk:
    """A contiguous, sentence-bounded slice of text shown as one reel."""

    id: int
    text: str
    start_position: int
    end_position: int
    words: List[str] = field(default_factory=list)

    @classmethod
    def create(cls, id: int, text: str, start_position: int) -> "Chunk":
        return cls(
            id=id,
            text=text,
            start_position=start_position,
            end_position=start_position + len(text),
            words=split_words(text),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON export."""
        return {
            "id": self.id,
            "text": self.text,
            "words": list(self.words),
            "startPosition": self.start_position,
            "endPosition": self.end_position,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Chunk":
        text = data["text"]
        return cls(
            id=data["id"],
            text=text,
            start_position=data["startPosition"],
            end_position=data["endPosition"],
            # words are reproducible from text alone
            words=split_words(text),
        )


class ChunkBuilder:
    """
    Builds reel chunks from text.

    Sentences are never split. While walking sentences in order a chunk is
    closed, in priority order:

    1. before appending a sentence that would push a non-empty chunk past
       max_words (the sentence then starts the next chunk);
    2. after appending, once the chunk reaches target_words;
    3. at a paragraph boundary, when preserve_paragraphs is on and the chunk
       holds at least min_words.

    Whatever remains after the last paragraph becomes the final chunk.
    """

    def __init__(self, policy: Optional[ChunkingPolicy] = None):
        self.policy = policy or ChunkingPolicy()
        self.splitter = SentenceSplitter()

    def build(self, text: str) -> List[Chunk]:
        """
        Chunk text into reels.

        Args:
            text: Raw text; it is whitespace-normalized first

        Returns:
            Ordered list of Chunk objects (empty for empty text)
        """
        cleaned = normalize_text(text)
        if not cleaned:
            return []

        if self.policy.preserve_paragraphs:
            paragraphs = split_paragraphs(cleaned)
        else:
            paragraphs = [cleaned]

        return list(self._chunk_paragraphs(paragraphs))

    def _chunk_paragraphs(self, paragraphs: Iterable[str]):
        policy = self.policy
        sentences: List[str] = []
        word_count = 0
        position = 0
        chunk_id = 0

        def close():
            nonlocal sentences, word_count, position, chunk_id
            chunk = Chunk.create(chunk_id, " ".join(sentences), position)
            position = chunk.end_position + 1
            chunk_id += 1
            sentences = []
            word_count = 0
            return chunk

        for paragraph in paragraphs:
            for sentence in self.splitter.split_iter(paragraph.strip()):
                sentence_words = count_words(sentence)

                if sentences and word_count + sentence_words > policy.max_words:
                    yield close()

                sentences.append(sentence)
                word_count += sentence_words

                if word_count >= policy.target_words:
                    yield close()

            if policy.preserve_paragraphs and sentences and word_count >= policy.min_words:
                yield close()

        if sentences:
            yield close()


def chunk_text(text: str, policy: Optional[ChunkingPolicy] = None) -> List[Chunk]:
    """
    Convenience function to chunk text with a policy.

    Args:
        text: The full book text
        policy: Chunking policy (defaults from config)

    Returns:
        List of Chunk objects ready for display
    """
    return ChunkBuilder(policy or ChunkingPolicy.from_config()).build(text)


def estimate_reading_time(chunk: Chunk, words_per_minute: Optional[int] = None) -> float:
    """Estimate reading time for a chunk in milliseconds."""
    wpm = words_per_minute or config.reading_words_per_minute
    return (len(chunk.words) / wpm) * 60 * 1000


def estimate_total_reading_time(
    chunks: Sequence[Chunk],
    words_per_minute: Optional[int] = None,
) -> float:
    """Estimate total reading time for a book in milliseconds."""
    return sum(estimate_reading_time(chunk, words_per_minute) for chunk in chunks)
