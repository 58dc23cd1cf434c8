"""API request/response models."""
from typing import List, Optional

from pydantic import BaseModel, Field

from models.generation import ChapterIntent


class ChapterRef(BaseModel):
    project_id: str = Field(..., min_length=1)
    chapter_id: str = Field(..., min_length=1)


class PackCompressedRequest(ChapterRef):
    token_budget: Optional[int] = Field(default=None, gt=0)


class RetrieveRequest(ChapterRef):
    query: str = ""
    limit: int = Field(default=5, ge=0)


class IndexChapterRequest(ChapterRef):
    content: str


class ProjectRequest(BaseModel):
    project_id: str = Field(..., min_length=1)


class ContextChunkModel(BaseModel):
    id: str
    chapter_id: str
    chapter_title: str
    content: str
    keywords: List[str]
    position: str
    relevance: float


class SourceModel(BaseModel):
    chapter_id: str
    chunk_ids: List[str]


class ContextPackResponse(BaseModel):
    project_context: str
    related_chapters: List[ContextChunkModel]
    glossary: str
    outline: str
    sources: List[SourceModel]


class CompressedChapterModel(BaseModel):
    id: str
    chapter_id: str
    chapter_title: str
    content: str
    original_word_count: int
    compressed_word_count: int
    compression_ratio: float


class CompressionStats(BaseModel):
    strategy: str
    total_chars: int
    estimated_tokens: int
    compression_ratio: float
    related_chapters: List[CompressedChapterModel]


class CompressedPackResponse(BaseModel):
    context_pack: ContextPackResponse
    compression: CompressionStats


class ProjectContextResponse(BaseModel):
    project_context: str
    glossary: str
    outline: str


class IndexStatsResponse(BaseModel):
    total_chunks: int
    indexed_chapters: int


class GenerateRequest(ChapterRef):
    intent: ChapterIntent = ChapterIntent.CONTINUE
    title: str = ""
    content: str = ""
    target: str = ""
    custom_prompt: Optional[str] = None
    token_budget: Optional[int] = Field(default=None, gt=0)


class GenerateResponse(BaseModel):
    content: str
    model: str
    tokens: int
    prompt_tokens: int
    finish_reason: str
    strategy: str
    sources: List[SourceModel]
