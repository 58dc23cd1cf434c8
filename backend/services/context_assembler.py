"""Context assembler: composes context packs for a target chapter."""
import logging
import re
from typing import Dict, List, Optional, Tuple

from models.chunk import ContextChunk, POSITION_MIDDLE
from models.compression import CompressionInput, CompressionResult, RelatedChapter
from models.context import ChunkSource, ContextPack, group_sources
from services.chunk_index import ChunkIndex
from services.context_compressor import TieredCompressor
from services.document_loader import DocumentLoader
from config import DEFAULT_RETRIEVE_LIMIT, PACK_RETRIEVE_LIMIT, PACK_RELEVANCE

logger = logging.getLogger(__name__)

# Lines of project metadata kept in a context pack besides headings
PROJECT_MARKERS = ("目标", "读者", "规模", "target", "objective", "reader", "audience", "scale")

PROJECT_NAME_LABEL = "项目名称"
BOLD_FIELD_RE = re.compile(r"- \*\*(.+?)\*\*:?\s*(.*)")


def filter_project_meta(content: str) -> str:
    """Keep heading lines and lines mentioning a target, reader or scale marker."""
    kept = []
    for line in content.split("\n"):
        lowered = line.lower()
        if line.lstrip().startswith("#") or any(marker in lowered for marker in PROJECT_MARKERS):
            kept.append(line)
    return "\n".join(kept).strip()


def summarize_project_meta(content: str) -> str:
    """
    Extract the project name and bold "- **Field**: value" entries.

    Example:
        "# Atlas\\n- **目标**: 介绍" -> "项目名称: Atlas\\n目标: 介绍"
    """
    lines = []
    for line in content.split("\n"):
        if line.startswith("# "):
            lines.append(f"{PROJECT_NAME_LABEL}: {line[2:].strip()}")
        elif line.startswith("- **"):
            match = BOLD_FIELD_RE.match(line)
            if match:
                lines.append(f"{match.group(1)}: {match.group(2)}")
    return "\n".join(lines)


class ContextAssembler:
    """Assemble raw and compressed context packs from the index and project files."""

    def __init__(
        self,
        chunk_index: ChunkIndex,
        compressor: Optional[TieredCompressor] = None,
        document_loader: Optional[DocumentLoader] = None
    ):
        """
        Initialize ContextAssembler.

        Args:
            chunk_index: Index the related chunks are retrieved from
            compressor: Compressor for budgeted packs
            document_loader: Reader for project artifacts (defaults to the index's loader)
        """
        self.chunk_index = chunk_index
        self.compressor = compressor or TieredCompressor()
        self.document_loader = document_loader or chunk_index.document_loader
        logger.info("Initialized ContextAssembler")

    def pack_context(self, project_id: str, chapter_id: str) -> ContextPack:
        """
        Build the uncompressed context pack for a chapter.

        Related chapters are the target chapter's own chunks in chunk order,
        each with a fixed relevance of 0.8.

        Args:
            project_id: Owning project
            chapter_id: Chapter being written

        Returns:
            ContextPack with sources grouped by chapter
        """
        project_context = filter_project_meta(self.document_loader.read_project_meta(project_id))
        glossary = self.document_loader.read_glossary(project_id)
        outline = self.document_loader.read_outline(project_id)

        chunks = self.chunk_index.retrieve(project_id, chapter_id, "", PACK_RETRIEVE_LIMIT)
        related = [ContextChunk.from_chunk(chunk, PACK_RELEVANCE) for chunk in chunks]

        logger.info(
            f"Packed context for {project_id}/{chapter_id}",
            extra={"project_id": project_id, "chapter_id": chapter_id, "chunks": len(related)},
        )
        return ContextPack(
            project_context=project_context,
            related_chapters=related,
            glossary=glossary,
            outline=outline,
            sources=group_sources(related),
        )

    def pack_compressed_context(
        self,
        project_id: str,
        chapter_id: str,
        token_budget: Optional[int] = None
    ) -> Tuple[ContextPack, CompressionResult]:
        """
        Pack a chapter's context and compress it for a token budget.

        The budget override applies to this call only.

        Args:
            project_id: Owning project
            chapter_id: Chapter being written
            token_budget: Budget for this call (defaults to the compressor's)

        Returns:
            Tuple of (compressed ContextPack, CompressionResult)
        """
        pack = self.pack_context(project_id, chapter_id)

        config = self.compressor.get_config()
        if token_budget is not None:
            config = config.updated(token_budget=token_budget)

        bundle = CompressionInput(
            project_context=pack.project_context,
            related_chapters=[
                RelatedChapter(
                    id=chunk.id,
                    chapter_id=chunk.chapter_id,
                    chapter_title=chunk.chapter_title,
                    content=chunk.content,
                )
                for chunk in pack.related_chapters
            ],
            glossary=pack.glossary,
            outline=pack.outline,
        )
        result = self.compressor.compress_for_token_budget(bundle, config)

        relevance = 1 - result.compression_ratio
        related = [
            ContextChunk(
                id=ch.id,
                chapter_id=ch.chapter_id,
                chapter_title=ch.chapter_title,
                content=ch.content,
                keywords=[],
                position=POSITION_MIDDLE,
                relevance=max(0.0, min(1.0, relevance)),
            )
            for ch in result.related_chapters
        ]
        compressed_pack = ContextPack(
            project_context=result.project_context,
            related_chapters=related,
            glossary=result.glossary,
            outline=result.outline,
            sources=[ChunkSource(chapter_id=ch.chapter_id, chunk_ids=[ch.id]) for ch in result.related_chapters],
        )
        logger.info(
            f"Compressed context for {project_id}/{chapter_id} with {result.strategy} "
            f"({result.estimated_tokens}/{config.token_budget} tokens)"
        )
        return compressed_pack, result

    def retrieve(
        self,
        project_id: str,
        chapter_id: str,
        query: str,
        limit: int = DEFAULT_RETRIEVE_LIMIT
    ) -> List[ContextChunk]:
        """Retrieve scored chunks, all reported with the pack relevance."""
        chunks = self.chunk_index.retrieve(project_id, chapter_id, query, limit)
        return [ContextChunk.from_chunk(chunk, PACK_RELEVANCE) for chunk in chunks]

    def index_chapter(self, project_id: str, chapter_id: str, content: str) -> int:
        """
        Index chapter content, taking the title from the chapter file.

        Returns:
            Number of chunks created
        """
        title = self.document_loader.get_chapter_title(project_id, chapter_id)
        return len(self.chunk_index.index_chapter(project_id, chapter_id, content, title))

    def remove_chapter_index(self, project_id: str, chapter_id: str) -> bool:
        return self.chunk_index.remove_chapter_index(project_id, chapter_id)

    def rebuild_index(self, project_id: str) -> Dict[str, int]:
        self.chunk_index.rebuild_project_index(project_id)
        return self.chunk_index.get_stats(project_id)

    def get_index_stats(self, project_id: str) -> Dict[str, int]:
        return self.chunk_index.get_stats(project_id)

    def clear_index(self, project_id: str) -> None:
        self.chunk_index.clear(project_id)

    def get_project_context(self, project_id: str) -> Dict[str, str]:
        """Project summary, glossary and outline as stored on disk."""
        return {
            "project_context": summarize_project_meta(self.document_loader.read_project_meta(project_id)),
            "glossary": self.document_loader.read_glossary(project_id),
            "outline": self.document_loader.read_outline(project_id),
        }
