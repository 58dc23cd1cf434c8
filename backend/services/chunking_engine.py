"""Chunking engine with sentence-boundary cuts and keyword extraction."""
import logging
import re
from typing import List, Optional

from models.chunk import (
    Chunk,
    IndexConfig,
    POSITION_START,
    POSITION_MIDDLE,
    POSITION_END,
)
from config import MAX_KEYWORDS

logger = logging.getLogger(__name__)

# Sentence terminals, ASCII and full-width
SENTENCE_TERMINALS = ".!?。！？"

# A cut must land at least this many characters before the raw window end
BOUNDARY_MARGIN = 10

CJK_RUN_RE = re.compile(r"[一-龥]{2,6}")
LATIN_RUN_RE = re.compile(r"[a-zA-Z]{3,}")


def extract_keywords(text: str, max_keywords: int = MAX_KEYWORDS) -> List[str]:
    """
    Extract keywords from text.

    CJK runs of 2-6 characters come first, then Latin words of 3+ letters.
    Duplicates are dropped keeping the first occurrence.

    Args:
        text: Text to scan
        max_keywords: Maximum number of keywords to keep

    Returns:
        Ordered list of unique keywords
    """
    if not text:
        return []
    candidates = CJK_RUN_RE.findall(text) + LATIN_RUN_RE.findall(text)
    unique = list(dict.fromkeys(candidates))
    return unique[:max_keywords]


def position_for(index: int, total: int) -> str:
    """Position label of the index-th chunk out of total."""
    if index == 0:
        return POSITION_START
    if index == total - 1:
        return POSITION_END
    return POSITION_MIDDLE


class ChunkingEngine:
    """Segments chapter text into overlapping chunks."""

    def __init__(self, config: Optional[IndexConfig] = None):
        """
        Initialize ChunkingEngine.

        Args:
            config: Chunk size and overlap in characters (defaults from config.py)
        """
        self.config = config or IndexConfig()

    @property
    def chunk_size(self) -> int:
        return self.config.chunk_size

    @property
    def chunk_overlap(self) -> int:
        return self.config.chunk_overlap

    def chunk_chapter(self, chapter_id: str, content: str, title: str) -> List[Chunk]:
        """
        Chunk a chapter into Chunk records.

        Args:
            chapter_id: Chapter identifier, used to derive chunk ids
            content: Chapter body text
            title: Chapter title stored on every chunk

        Returns:
            Ordered list of chunks
        """
        pieces = self.chunk_content(content)
        chunks = [
            Chunk(
                id=f"{chapter_id}-chunk-{idx}",
                chapter_id=chapter_id,
                chapter_title=title,
                content=piece,
                keywords=extract_keywords(piece),
                position=position_for(idx, len(pieces)),
            )
            for idx, piece in enumerate(pieces)
        ]
        logger.debug(f"Chunked chapter {chapter_id} into {len(chunks)} chunks")
        return chunks

    def chunk_content(self, content: str) -> List[str]:
        """
        Split content with a sliding character window.

        Each window is cut after the last sentence terminal found strictly
        inside (start, start + chunk_size - 10). The next window starts
        chunk_overlap characters before the end of the previous chunk.

        Args:
            content: Text to split

        Returns:
            List of chunk texts; dropping the first chunk_overlap characters
            of every chunk after the first and concatenating gives back content
        """
        size = self.chunk_size
        overlap = self.chunk_overlap
        if len(content) <= size:
            return [content]

        chunks = []
        start = 0
        total = len(content)
        while start < total:
            end = min(start + size, total)
            piece = content[start:end]

            # The tail window is kept whole
            if end < total:
                cut = self._last_terminal(piece)
                # A cut that leaves no more than the overlap would stall the window
                if 0 < cut < size - BOUNDARY_MARGIN and cut + 1 > overlap:
                    piece = piece[:cut + 1]

            chunks.append(piece)
            if start + len(piece) >= total:
                break
            start += len(piece) - overlap

        return chunks

    @staticmethod
    def _last_terminal(text: str) -> int:
        return max(text.rfind(mark) for mark in SENTENCE_TERMINALS)
