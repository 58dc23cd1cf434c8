"""Compression data models."""
from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

from config import (
    MAX_PROJECT_CONTEXT_CHARS,
    MAX_RELATED_CHAPTERS,
    MAX_GLOSSARY_CHARS,
    MAX_CHAPTER_CHARS,
    TOKEN_BUDGET,
)

STRATEGY_SLICE = "slice"
STRATEGY_SUMMARY = "summary"
STRATEGY_CORE = "core"
STRATEGIES = (STRATEGY_SLICE, STRATEGY_SUMMARY, STRATEGY_CORE)


@dataclass
class CompressionConfig:
    """Limits applied by TieredCompressor."""
    max_project_context_chars: int = MAX_PROJECT_CONTEXT_CHARS
    max_related_chapters: int = MAX_RELATED_CHAPTERS
    max_glossary_chars: int = MAX_GLOSSARY_CHARS
    max_chapter_chars: int = MAX_CHAPTER_CHARS
    compression_strategy: str = STRATEGY_SLICE
    token_budget: int = TOKEN_BUDGET

    def __post_init__(self):
        if self.compression_strategy not in STRATEGIES:
            raise ValueError(f"Unknown compression strategy: {self.compression_strategy!r}")
        for name in ("max_project_context_chars", "max_glossary_chars", "max_chapter_chars", "token_budget"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.max_related_chapters < 0:
            raise ValueError("max_related_chapters cannot be negative")

    def updated(self, **updates) -> "CompressionConfig":
        """Return a validated copy with the given fields replaced."""
        return replace(self, **updates)


@dataclass
class ChapterSummary:
    """Authored structured summary of a chapter."""
    main_point: Optional[str] = None
    key_points: List[str] = field(default_factory=list)
    conclusion: Optional[str] = None

    def has_content(self) -> bool:
        return bool(
            (self.main_point and self.main_point.strip())
            or any(p.strip() for p in self.key_points)
            or (self.conclusion and self.conclusion.strip())
        )


@dataclass
class RelatedChapter:
    """A chapter excerpt entering compression."""
    id: str
    chapter_id: str
    chapter_title: str
    content: str
    summary: Optional[ChapterSummary] = None
    word_count: Optional[int] = None


@dataclass
class CompressionInput:
    """Raw context bundle."""
    project_context: str = ""
    related_chapters: List[RelatedChapter] = field(default_factory=list)
    glossary: str = ""
    outline: str = ""


@dataclass(frozen=True)
class CompressedChapter:
    id: str
    chapter_id: str
    chapter_title: str
    content: str
    original_word_count: int
    compressed_word_count: int
    compression_ratio: float


@dataclass(frozen=True)
class CompressionResult:
    """Output of a single compress_for_token_budget call."""
    project_context: str
    related_chapters: Tuple[CompressedChapter, ...]
    glossary: str
    outline: str
    strategy: str
    total_chars: int
    estimated_tokens: int
    compression_ratio: float
