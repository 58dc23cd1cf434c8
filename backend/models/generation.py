"""Generation request/response models shared by LLM clients."""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class ChapterIntent(str, Enum):
    """What the writer wants done with the current chapter."""
    CONTINUE = "continue"
    EXPAND = "expand"
    REWRITE = "rewrite"
    ADD_ARGUMENT = "add_argument"
    POLISH = "polish"
    SIMPLIFY = "simplify"


@dataclass
class GenerationContext:
    """Compressed context as plain text blocks."""
    project_context: str = ""
    related_chapters: List[str] = field(default_factory=list)
    glossary: str = ""
    outline: str = ""


@dataclass
class ChapterDraft:
    """The chapter being written."""
    id: str
    title: str
    content: str = ""
    target: str = ""


@dataclass
class LLMGenerateParams:
    context: GenerationContext
    chapter: ChapterDraft
    intent: ChapterIntent = ChapterIntent.CONTINUE
    custom_prompt: Optional[str] = None


@dataclass
class LLMGenerateResult:
    content: str
    model: str
    tokens: int
    finish_reason: str = "stop"  # stop | length | content_filter
    latency_ms: int = 0


@dataclass
class LLMProviderConfig:
    provider: str
    model: str
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    max_tokens: int = 4000
    temperature: float = 0.7
