"""Tiered compressor that fits a context bundle into a token budget."""
import logging
import math
import re
import threading
from typing import Callable, List, Optional

from models.compression import (
    ChapterSummary,
    CompressedChapter,
    CompressionConfig,
    CompressionInput,
    CompressionResult,
    RelatedChapter,
    STRATEGY_SLICE,
    STRATEGY_SUMMARY,
    STRATEGY_CORE,
)
from config import CHARS_PER_TOKEN

logger = logging.getLogger(__name__)

PARAGRAPH_SPLIT_RE = re.compile(r"\n\n+")
SENTENCE_SPLIT_RE = re.compile(r"[。！？\n]")

# A paragraph that overflows the slice cap is skipped (not a stop) below this share of the cap
SKIPPABLE_PARAGRAPH_SHARE = 0.3

SUMMARY_PARAGRAPHS = 3
CORE_MAX_CHAPTERS = 3
CORE_MAX_PARAGRAPHS = 3
CORE_KEY_TERMS = ("因此", "所以", "证明", "结论", "关键", "重要", "核心")

PROJECT_CONTEXT_MARKERS = ("目标", "背景", "限制", "读者")

MAIN_POINT_LABEL = "核心观点："
KEY_POINTS_LABEL = "关键要点："
CONCLUSION_LABEL = "小结："
KEY_POINT_SEPARATOR = "、"
FULL_STOP = "。"


def estimate_tokens(total_chars: int) -> int:
    return math.ceil(total_chars / CHARS_PER_TOKEN)


def render_summary(summary: ChapterSummary) -> str:
    """Render an authored summary as labeled lines."""
    parts = []
    if summary.main_point:
        parts.append(f"{MAIN_POINT_LABEL}{summary.main_point}")
    if summary.key_points:
        parts.append(f"{KEY_POINTS_LABEL}{KEY_POINT_SEPARATOR.join(summary.key_points)}")
    if summary.conclusion:
        parts.append(f"{CONCLUSION_LABEL}{summary.conclusion}")
    return "\n".join(parts)


def synthesize_summary(content: str) -> str:
    """
    Build a summary from the first sentence of each of the first three paragraphs.

    Args:
        content: Chapter text

    Returns:
        Sentences joined by a full stop, always ending with one
    """
    paragraphs = PARAGRAPH_SPLIT_RE.split(content)[:SUMMARY_PARAGRAPHS]
    sentences = []
    for para in paragraphs:
        first = SENTENCE_SPLIT_RE.split(para)[0].strip()
        if first:
            sentences.append(first)
    return FULL_STOP.join(sentences) + FULL_STOP


def slice_content(content: str, max_chars: int) -> str:
    """
    Keep whole paragraphs while they fit under max_chars.

    The running length counts paragraph text only. A paragraph that does not
    fit is skipped when it is small (at most 30% of the cap); a large one
    ends the slice. When no paragraph fits the content is hard-truncated.
    """
    if len(content) <= max_chars:
        return content

    kept = []
    current_length = 0
    for para in PARAGRAPH_SPLIT_RE.split(content):
        if current_length + len(para) <= max_chars:
            kept.append(para)
            current_length += len(para)
        elif len(para) <= max_chars * SKIPPABLE_PARAGRAPH_SHARE:
            continue
        else:
            break

    return "\n\n".join(kept) or content[:max_chars]


def extract_core(content: str) -> str:
    """First paragraph plus up to two later paragraphs containing a key term."""
    paragraphs = PARAGRAPH_SPLIT_RE.split(content)
    core = [paragraphs[0]] if paragraphs[0] else []
    for para in paragraphs[1:]:
        if len(core) >= CORE_MAX_PARAGRAPHS:
            break
        if any(term in para for term in CORE_KEY_TERMS):
            core.append(para)
    return "\n\n".join(core)


def _filter_then_truncate(text: str, cap: int, keep_line: Callable[[str], bool]) -> str:
    if not text:
        return ""
    if len(text) <= cap:
        return text
    kept = [line for line in text.split("\n") if keep_line(line)]
    source = "\n".join(kept) if kept else text
    return source[:cap]


class TieredCompressor:
    """
    Reduce a CompressionInput until its estimated token count fits the budget.

    Tiers run in order: slice, summary, core. The first tier whose result fits
    is returned; core is returned unconditionally. Configuration can be passed
    per call, so a shared instance never needs its config mutated to serve a
    one-off budget.
    """

    def __init__(self, config: Optional[CompressionConfig] = None):
        self._config = config or CompressionConfig()
        self._lock = threading.Lock()
        logger.info(
            f"Initialized TieredCompressor (token budget: {self._config.token_budget}, "
            f"max chapters: {self._config.max_related_chapters})"
        )

    def get_config(self) -> CompressionConfig:
        with self._lock:
            return self._config.updated()

    def set_config(self, **updates) -> CompressionConfig:
        """
        Replace config fields.

        Raises:
            ValueError: If a value is invalid
            TypeError: If a field name is unknown
        """
        with self._lock:
            self._config = self._config.updated(**updates)
            logger.info(f"Compression config updated: {updates}")
            return self._config.updated()

    def compress_for_token_budget(
        self,
        bundle: CompressionInput,
        config: Optional[CompressionConfig] = None
    ) -> CompressionResult:
        """
        Compress a context bundle for the configured token budget.

        Args:
            bundle: Raw context bundle
            config: Settings for this call only (defaults to the instance config)

        Returns:
            CompressionResult from the first tier that fits, or the core tier
        """
        config = config or self.get_config()
        budget = config.token_budget

        total_chars = self._original_chars(bundle, config)
        raw_tokens = estimate_tokens(total_chars)
        if raw_tokens <= budget:
            logger.debug(f"Context within budget ({raw_tokens}/{budget} tokens)")
            return self._passthrough(bundle, config, total_chars, raw_tokens)

        result = self.compress_with_slice(bundle, config)
        if result.estimated_tokens <= budget:
            logger.info(f"Compressed with slice: {raw_tokens} -> {result.estimated_tokens} tokens")
            return result

        result = self.compress_with_summary(bundle, config)
        if result.estimated_tokens <= budget:
            logger.info(f"Compressed with summary: {raw_tokens} -> {result.estimated_tokens} tokens")
            return result

        result = self.compress_with_core(bundle, config)
        if result.estimated_tokens > budget:
            logger.warning(
                f"Core compression still over budget ({result.estimated_tokens}/{budget} tokens)"
            )
        else:
            logger.info(f"Compressed with core: {raw_tokens} -> {result.estimated_tokens} tokens")
        return result

    def compress_with_slice(
        self,
        bundle: CompressionInput,
        config: Optional[CompressionConfig] = None
    ) -> CompressionResult:
        """Tier 1: keep whole paragraphs up to the per-chapter cap."""
        config = config or self.get_config()
        chapters = bundle.related_chapters[:config.max_related_chapters]
        compressed = [
            self._compress_chapter(ch, slice_content(ch.content, config.max_chapter_chars))
            for ch in chapters
        ]
        return self._build_result(bundle, config, compressed, STRATEGY_SLICE)

    def compress_with_summary(
        self,
        bundle: CompressionInput,
        config: Optional[CompressionConfig] = None
    ) -> CompressionResult:
        """Tier 2: authored summary when present, else a synthesized one."""
        config = config or self.get_config()
        chapters = bundle.related_chapters[:config.max_related_chapters]
        compressed = [self._compress_chapter(ch, self._summary_text(ch, config)) for ch in chapters]
        return self._build_result(bundle, config, compressed, STRATEGY_SUMMARY)

    def compress_with_core(
        self,
        bundle: CompressionInput,
        config: Optional[CompressionConfig] = None
    ) -> CompressionResult:
        """Tier 3: main point, or first paragraph plus key-term paragraphs."""
        config = config or self.get_config()
        chapters = bundle.related_chapters[:min(CORE_MAX_CHAPTERS, config.max_related_chapters)]
        compressed = [self._compress_chapter(ch, self._core_text(ch, config)) for ch in chapters]
        return self._build_result(bundle, config, compressed, STRATEGY_CORE)

    @staticmethod
    def _summary_text(chapter: RelatedChapter, config: CompressionConfig) -> str:
        # Never longer than the slice of the same chapter
        if chapter.summary is not None and chapter.summary.has_content():
            text = render_summary(chapter.summary)
        else:
            text = synthesize_summary(chapter.content)
        return text[:len(slice_content(chapter.content, config.max_chapter_chars))]

    def _core_text(self, chapter: RelatedChapter, config: CompressionConfig) -> str:
        # Never longer than the summary of the same chapter
        if chapter.summary is not None and chapter.summary.main_point:
            text = chapter.summary.main_point
        else:
            text = extract_core(chapter.content)
        return text[:len(self._summary_text(chapter, config))]

    def compress_project_context(self, context: str, config: Optional[CompressionConfig] = None) -> str:
        """Clip project context, preferring headings and marker lines."""
        config = config or self.get_config()
        return _filter_then_truncate(
            context,
            config.max_project_context_chars,
            lambda line: (
                line.startswith("##")
                or line.startswith("# ")
                or any(marker in line for marker in PROJECT_CONTEXT_MARKERS)
            ),
        )

    def compress_glossary(self, glossary: str, config: Optional[CompressionConfig] = None) -> str:
        """Clip the glossary, preferring term: definition lines."""
        config = config or self.get_config()
        return _filter_then_truncate(
            glossary,
            config.max_glossary_chars,
            lambda line: ":" in line or "：" in line,
        )

    def compress_outline(self, outline: str) -> str:
        # Outline is never truncated
        return outline or ""

    @staticmethod
    def _compress_chapter(chapter: RelatedChapter, text: str) -> CompressedChapter:
        return CompressedChapter(
            id=chapter.id,
            chapter_id=chapter.chapter_id,
            chapter_title=chapter.chapter_title,
            content=text,
            original_word_count=chapter.word_count or len(chapter.content),
            compressed_word_count=len(text),
            compression_ratio=len(text) / (len(chapter.content) or 1),
        )

    @staticmethod
    def _original_chars(bundle: CompressionInput, config: CompressionConfig) -> int:
        chapters = bundle.related_chapters[:config.max_related_chapters]
        return (
            len(bundle.project_context)
            + sum(len(ch.content) for ch in chapters)
            + len(bundle.glossary)
            + len(bundle.outline)
        )

    def _passthrough(
        self,
        bundle: CompressionInput,
        config: CompressionConfig,
        total_chars: int,
        estimated: int
    ) -> CompressionResult:
        chapters = bundle.related_chapters[:config.max_related_chapters]
        related: List[CompressedChapter] = [
            CompressedChapter(
                id=ch.id,
                chapter_id=ch.chapter_id,
                chapter_title=ch.chapter_title,
                content=ch.content,
                original_word_count=ch.word_count or len(ch.content),
                compressed_word_count=len(ch.content),
                compression_ratio=1.0,
            )
            for ch in chapters
        ]
        return CompressionResult(
            project_context=self.compress_project_context(bundle.project_context, config),
            related_chapters=tuple(related),
            glossary=self.compress_glossary(bundle.glossary, config),
            outline=self.compress_outline(bundle.outline),
            strategy=STRATEGY_SLICE,
            total_chars=total_chars,
            estimated_tokens=estimated,
            compression_ratio=1.0,
        )

    def _build_result(
        self,
        bundle: CompressionInput,
        config: CompressionConfig,
        chapters: List[CompressedChapter],
        strategy: str
    ) -> CompressionResult:
        project_context = self.compress_project_context(bundle.project_context, config)
        glossary = self.compress_glossary(bundle.glossary, config)
        outline = self.compress_outline(bundle.outline)

        total_chars = (
            len(project_context)
            + sum(len(ch.content) for ch in chapters)
            + len(glossary)
            + len(outline)
        )
        original_chars = self._original_chars(bundle, config)
        ratio = total_chars / original_chars if original_chars > 0 else 1.0

        return CompressionResult(
            project_context=project_context,
            related_chapters=tuple(chapters),
            glossary=glossary,
            outline=outline,
            strategy=strategy,
            total_chars=total_chars,
            estimated_tokens=estimate_tokens(total_chars),
            compression_ratio=ratio,
        )
