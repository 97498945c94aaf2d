"""
Read-Along Module

Chunks text into short reels and keeps a "currently spoken word" index in
step with narration, whatever the narration engine reports.
"""

from reelread.readalong.chunker import Chunk, ChunkBuilder, ChunkingPolicy, chunk_text
from reelread.readalong.library import BookRecord, JsonLibrary
from reelread.readalong.sentence_splitter import SentenceSplitter, split_into_sentences
from reelread.readalong.sync_controller import PlaybackState, SyncController
from reelread.readalong.timed_tts import TimingStrategy, create_strategy
from reelread.readalong.timing_map import WordTiming, WordTimingMap

__all__ = [
    "Chunk",
    "ChunkBuilder",
    "ChunkingPolicy",
    "chunk_text",
    "BookRecord",
    "JsonLibrary",
    "SentenceSplitter",
    "split_into_sentences",
    "PlaybackState",
    "SyncController",
    "TimingStrategy",
    "create_strategy",
    "WordTiming",
    "WordTimingMap",
]
