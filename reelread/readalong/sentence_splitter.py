"""
Sentence Splitter Module

Splits normalized text into sentences for reel chunking.
Handles abbreviations so that "Mr." or "e.g." never end a sentence.
"""

import re
from typing import Generator, List

# Common abbreviations that shouldn't end sentences
ABBREVIATIONS = ("Mr", "Mrs", "Ms", "Dr", "Prof", "Sr", "Jr", "vs", "etc", "e.g", "i.e")

# Private-use character standing in for a protected period
PERIOD_PLACEHOLDER = "\ue000"

_ABBREVIATION_PATTERNS = [
    re.compile(rf"\b({re.escape(abbr)})\.", re.IGNORECASE) for abbr in ABBREVIATIONS
]

# A run of terminal punctuation followed by whitespace and a capital, or by the end
_SENTENCE_END = re.compile(r"[.!?]+(?=\s+[A-Z]|\s*\Z)")

_PARAGRAPH_BREAK = re.compile(r"\n\n+")


def normalize_text(text: str) -> str:
    """
    Normalize whitespace before chunking.

    CRLF becomes LF, three or more newlines collapse to a blank line,
    runs of spaces and tabs collapse to one space, and the result is trimmed.
    """
    text = text.replace("\r\n", "\n")
    text = re.sub(r"\n{3,}", "\n\n", text)
    text = re.sub(r"[ \t]+", " ", text)
    return text.strip()


def split_paragraphs(text: str) -> List[str]:
    """Split normalized text into blank-line delimited paragraphs."""
    paragraphs = _PARAGRAPH_BREAK.split(text)
    return [p.strip() for p in paragraphs if p.strip()]


class SentenceSplitter:
    """
    Sentence splitter for reel chunking.

    Handles:
    - Standard punctuation (. ! ?), including runs such as "?!" or "..."
    - Abbreviations (Mr., Dr., e.g., etc.)
    - Trailing text with no terminal punctuation
    """

    def __init__(self, abbreviations=ABBREVIATIONS):
        """
        Initialize the sentence splitter.

        Args:
            abbreviations: Tokens whose trailing period never ends a sentence
        """
        if abbreviations is ABBREVIATIONS:
            self._patterns = _ABBREVIATION_PATTERNS
        else:
            self._patterns = [
                re.compile(rf"\b({re.escape(abbr)})\.", re.IGNORECASE)
                for abbr in abbreviations
            ]

    def split(self, text: str) -> List[str]:
        """
        Split text into sentences.

        Args:
            text: Whitespace-normalized text

        Returns:
            List of sentence strings, in order
        """
        return list(self.split_iter(text))

    def split_iter(self, text: str) -> Generator[str, None, None]:
        """
        Generator version of split.

        Each call starts a fresh pass over the text, so the sequence can be
        iterated again by calling split_iter again.
        """
        protected = self._protect_abbreviations(text)
        last_index = 0

        for match in _SENTENCE_END.finditer(protected):
            sentence = protected[last_index:match.end()].strip()
            if sentence:
                yield self._restore_abbreviations(sentence)
            last_index = match.end()

        # Don't forget the last part if there's no ending punctuation
        remaining = protected[last_index:].strip()
        if remaining:
            yield self._restore_abbreviations(remaining)

    def _protect_abbreviations(self, text: str) -> str:
        """Replace abbreviation periods with a placeholder, keeping the original casing."""
        protected = text
        for pattern in self._patterns:
            protected = pattern.sub(r"\1" + PERIOD_PLACEHOLDER, protected)
        return protected

    def _restore_abbreviations(self, text: str) -> str:
        """Restore placeholders to periods."""
        return text.replace(PERIOD_PLACEHOLDER, ".")


def split_into_sentences(text: str) -> List[str]:
    """
    Convenience function to split text into sentences.

    Args:
        text: Text to split (normalized first)

    Returns:
        List of sentence strings
    """
    splitter = SentenceSplitter()
    return splitter.split(normalize_text(text))
