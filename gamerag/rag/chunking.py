"""
Overlapping word-window chunker for lore files.

Breaks text into windows of `chunk_size` words where each window repeats the
last `overlap` words of the previous one, so a sentence cut at a boundary is
still seen whole by at least one chunk.
"""

import re
import logging
from typing import List

logger = logging.getLogger(__name__)

MIN_CHUNK_SIZE = 128

_WHITESPACE = re.compile(r"\s+")


class WordWindowChunker:
    """
    Word-based chunker with overlapping windows.

    - chunk_size is raised to at least MIN_CHUNK_SIZE words
    - overlap is clamped to [0, chunk_size // 2]
    - newlines, tabs and runs of spaces are collapsed before splitting
    """

    def chunk(self, text: str, chunk_size: int, overlap: int) -> List[str]:
        """
        Chunk text into overlapping word windows.

        Args:
            text: Raw source text
            chunk_size: Words per window
            overlap: Words repeated at the start of the next window

        Returns:
            Ordered list of chunk strings (empty for blank input)
        """
        if not text or not text.strip():
            return []

        chunk_size = max(chunk_size, MIN_CHUNK_SIZE)
        overlap = min(max(overlap, 0), chunk_size // 2)

        words = self.normalize(text).split(" ")
        chunks = []
        start = 0

        while start < len(words):
            end = min(start + chunk_size, len(words))
            chunks.append(" ".join(words[start:end]))
            if end >= len(words):
                break
            start = max(0, end - overlap)

        logger.debug(
            f"Chunked {len(words)} words into {len(chunks)} chunks "
            f"(size={chunk_size}, overlap={overlap})"
        )
        return chunks

    @staticmethod
    def normalize(text: str) -> str:
        """Collapse all whitespace to single spaces."""
        return _WHITESPACE.sub(" ", text).strip()
