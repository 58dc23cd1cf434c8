"""Data models for the chapter context service."""
from .chunk import Chunk, ContextChunk, IndexConfig
from .context import ContextPack, ChunkSource
from .compression import (
    ChapterSummary,
    CompressedChapter,
    CompressionConfig,
    CompressionInput,
    CompressionResult,
    RelatedChapter,
)
from .generation import (
    ChapterDraft,
    ChapterIntent,
    GenerationContext,
    LLMGenerateParams,
    LLMGenerateResult,
    LLMProviderConfig,
)

__all__ = [
    "Chunk",
    "ContextChunk",
    "IndexConfig",
    "ContextPack",
    "ChunkSource",
    "ChapterSummary",
    "CompressedChapter",
    "CompressionConfig",
    "CompressionInput",
    "CompressionResult",
    "RelatedChapter",
    "ChapterDraft",
    "ChapterIntent",
    "GenerationContext",
    "LLMGenerateParams",
    "LLMGenerateResult",
    "LLMProviderConfig",
]
