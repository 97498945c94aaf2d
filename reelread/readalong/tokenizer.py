"""
Word tokenizer shared by chunking and narration highlighting.

Chunk.words and the highlighted word both come from split_words, so a word
index reported during narration points at the same token the reel renders.
"""

import re
from typing import List

_WHITESPACE = re.compile(r"\s+")

# Punctuation removed from the single large highlighted word
_HIGHLIGHT_PUNCTUATION = re.compile(r"[.,!?;:'\"()-]")


def split_words(text: str) -> List[str]:
    """Split text into maximal non-whitespace runs, keeping attached punctuation."""
    return [word for word in _WHITESPACE.split(text.strip()) if word]


def count_words(text: str) -> int:
    """Count words in a string."""
    return len(split_words(text))


def clean_word(word: str) -> str:
    """Strip punctuation from a word for the karaoke-style highlight."""
    if not word:
        return ""
    return _HIGHLIGHT_PUNCTUATION.sub("", word)


def highlighted_word(words: List[str], index: int) -> str:
    """Return the cleaned word at index, or "" for the -1 sentinel or out of range."""
    if 0 <= index < len(words):
        return clean_word(words[index])
    return ""
