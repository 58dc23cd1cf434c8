"""Chunk data models."""
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List

from config import CHUNK_SIZE, CHUNK_OVERLAP

POSITION_START = "start"
POSITION_MIDDLE = "middle"
POSITION_END = "end"
POSITIONS = (POSITION_START, POSITION_MIDDLE, POSITION_END)


@dataclass
class IndexConfig:
    """Chunking parameters for a ChunkIndex, in characters."""
    chunk_size: int = CHUNK_SIZE
    chunk_overlap: int = CHUNK_OVERLAP

    def __post_init__(self):
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if self.chunk_overlap < 0:
            raise ValueError("chunk_overlap cannot be negative")
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")


@dataclass
class Chunk:
    """A bounded slice of a chapter with its keywords and position tag."""
    id: str  # Format: "{chapter_id}-chunk-{ordinal}"
    chapter_id: str
    chapter_title: str
    content: str
    keywords: List[str] = field(default_factory=list)
    position: str = POSITION_START

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Chunk":
        position = data.get("position", POSITION_MIDDLE)
        if position not in POSITIONS:
            raise ValueError(f"Unknown chunk position: {position!r}")
        return cls(
            id=str(data["id"]),
            chapter_id=str(data["chapter_id"]),
            chapter_title=str(data.get("chapter_title", "")),
            content=str(data["content"]),
            keywords=[str(k) for k in data.get("keywords", [])],
            position=position,
        )


@dataclass
class ContextChunk:
    """Chunk handed to consumers, with a relevance score from retrieval."""
    id: str
    chapter_id: str
    chapter_title: str
    content: str
    keywords: List[str]
    position: str
    relevance: float  # 0.0 to 1.0

    @classmethod
    def from_chunk(cls, chunk: Chunk, relevance: float) -> "ContextChunk":
        return cls(
            id=chunk.id,
            chapter_id=chunk.chapter_id,
            chapter_title=chunk.chapter_title,
            content=chunk.content,
            keywords=list(chunk.keywords),
            position=chunk.position,
            relevance=max(0.0, min(1.0, relevance)),
        )
