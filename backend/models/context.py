"""Context pack models."""
from dataclasses import dataclass, field
from typing import List

from models.chunk import ContextChunk


@dataclass
class ChunkSource:
    """Provenance: which chunks of a chapter informed a pack."""
    chapter_id: str
    chunk_ids: List[str] = field(default_factory=list)


@dataclass
class ContextPack:
    """Bundle handed to the generation step."""
    project_context: str = ""
    related_chapters: List[ContextChunk] = field(default_factory=list)
    glossary: str = ""
    outline: str = ""
    sources: List[ChunkSource] = field(default_factory=list)


def group_sources(chunks: List[ContextChunk]) -> List[ChunkSource]:
    """Group chunk ids by owning chapter, in order of first appearance."""
    grouped = {}
    for chunk in chunks:
        grouped.setdefault(chunk.chapter_id, []).append(chunk.id)
    return [ChunkSource(chapter_id=chapter_id, chunk_ids=ids) for chapter_id, ids in grouped.items()]
