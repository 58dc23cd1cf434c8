"""Chunk index with keyword scoring and a per-project JSON snapshot."""
import json
import logging
import os
import threading
from typing import Dict, List, Optional, Tuple

from models.chunk import Chunk, IndexConfig
from services.chunking_engine import ChunkingEngine, extract_keywords
from services.document_loader import DocumentLoader
from config import DEFAULT_RETRIEVE_LIMIT

logger = logging.getLogger(__name__)

SNAPSHOT_FILENAME = ".index.json"

TITLE_MATCH_SCORE = 10
KEYWORD_MATCH_SCORE = 5
CONTENT_MATCH_SCORE = 1


def score_chunk(chunk: Chunk, query: str, query_keywords: List[str]) -> int:
    """
    Score a chunk against a query.

    The title bonus applies when the title contains the whole query or one
    of its keywords. Each query keyword then adds 5 when it is one of the
    chunk keywords and 1 when it occurs anywhere in the chunk content.

    Args:
        chunk: Chunk to score
        query: Stripped query string
        query_keywords: Keywords extracted from the query

    Returns:
        Non-negative integer score
    """
    score = 0
    title = chunk.chapter_title or ""
    if query and (query in title or any(kw in title for kw in query_keywords)):
        score += TITLE_MATCH_SCORE

    chunk_keywords = set(chunk.keywords)
    for kw in query_keywords:
        if kw in chunk_keywords:
            score += KEYWORD_MATCH_SCORE
        if kw in chunk.content:
            score += CONTENT_MATCH_SCORE
    return score


class ChunkIndex:
    """
    In-memory chapter_id -> chunks map mirrored to one snapshot per project.

    One instance serves one runtime base path. It holds a single project at a
    time; calling an operation with another project id loads that project's
    snapshot (or rebuilds it from chapter files) first. Mutations are
    serialized by a re-entrant lock and each one rewrites the whole snapshot.
    """

    def __init__(
        self,
        runtime_base_path: str,
        config: Optional[IndexConfig] = None,
        document_loader: Optional[DocumentLoader] = None
    ):
        """
        Initialize the chunk index.

        Args:
            runtime_base_path: Directory holding one sub-directory per project
            config: Chunk size and overlap
            document_loader: Source of chapter files (defaults to one on the same base path)
        """
        self.runtime_base_path = runtime_base_path
        self.chunking_engine = ChunkingEngine(config)
        self.document_loader = document_loader or DocumentLoader(runtime_base_path)

        self._chapters: Dict[str, List[Chunk]] = {}
        self._project_id: Optional[str] = None
        self._loaded = False
        self._lock = threading.RLock()

    def snapshot_path(self, project_id: str) -> str:
        return os.path.join(self.runtime_base_path, project_id, SNAPSHOT_FILENAME)

    def index_chapter(self, project_id: str, chapter_id: str, content: str, title: str) -> List[Chunk]:
        """
        Replace the chunks of a chapter and persist the index.

        Args:
            project_id: Owning project
            chapter_id: Chapter identifier
            content: Chapter body
            title: Chapter title

        Returns:
            The new chunks of the chapter
        """
        with self._lock:
            self._ensure_loaded(project_id)
            self._chapters.pop(chapter_id, None)
            chunks = self.chunking_engine.chunk_chapter(chapter_id, content, title)
            self._chapters[chapter_id] = chunks
            self._persist(project_id)
            logger.info(f"Indexed chapter {chapter_id} of {project_id}: {len(chunks)} chunks")
            return chunks

    def remove_chapter_index(self, project_id: str, chapter_id: str) -> bool:
        """
        Drop a chapter's chunks from a project and persist the index.

        Returns:
            True when the chapter was indexed
        """
        with self._lock:
            self._ensure_loaded(project_id)
            removed = self._chapters.pop(chapter_id, None)
            if removed is None:
                return False
            self._persist(project_id)
            logger.info(f"Removed {len(removed)} chunks for chapter {chapter_id} of {project_id}")
            return True

    def retrieve(
        self,
        project_id: str,
        chapter_id: str,
        query: str = "",
        limit: int = DEFAULT_RETRIEVE_LIMIT
    ) -> List[Chunk]:
        """
        Retrieve the best scoring chunks of one chapter.

        Args:
            project_id: Owning project
            chapter_id: Only chunks of this chapter are considered
            query: Free text; an empty query scores every chunk 0
            limit: Maximum number of chunks to return

        Returns:
            Chunks by descending score, ties in original chunk order
        """
        return [chunk for chunk, _ in self.retrieve_scored(project_id, chapter_id, query, limit)]

    def retrieve_scored(
        self,
        project_id: str,
        chapter_id: str,
        query: str = "",
        limit: int = DEFAULT_RETRIEVE_LIMIT
    ) -> List[Tuple[Chunk, int]]:
        """Same as retrieve, keeping the score next to each chunk."""
        if limit < 0:
            raise ValueError("limit cannot be negative")

        with self._lock:
            self._ensure_loaded(project_id)
            chunks = list(self._chapters.get(chapter_id, []))

        if not chunks:
            logger.debug(f"No chunks indexed for chapter {chapter_id}")
            return []

        normalized_query = (query or "").strip()
        query_keywords = extract_keywords(normalized_query)
        scored = [(chunk, score_chunk(chunk, normalized_query, query_keywords)) for chunk in chunks]

        # sorted() is stable: equal scores keep chunk order
        scored = sorted(scored, key=lambda item: item[1], reverse=True)
        logger.debug(
            f"Scored {len(scored)} chunks for chapter {chapter_id} "
            f"(keywords: {query_keywords}, top score: {scored[0][1]})"
        )
        return scored[:limit]

    def get_chunks(self, project_id: str, chapter_id: str) -> List[Chunk]:
        with self._lock:
            self._ensure_loaded(project_id)
            return list(self._chapters.get(chapter_id, []))

    def get_stats(self, project_id: str) -> Dict[str, int]:
        """Total chunk count and number of indexed chapters."""
        with self._lock:
            self._ensure_loaded(project_id)
            return {
                "total_chunks": sum(len(chunks) for chunks in self._chapters.values()),
                "indexed_chapters": len(self._chapters),
            }

    def clear(self, project_id: str) -> None:
        """Empty the index of a project and persist the empty snapshot."""
        with self._lock:
            self._select(project_id)
            self._chapters.clear()
            self._persist(project_id)
            logger.info(f"Cleared index for {project_id}")

    def rebuild_project_index(self, project_id: str) -> None:
        """
        Rebuild a project's index from its chapter files.

        The previous in-memory index is discarded. A missing chapters
        directory leaves an empty index and writes no snapshot, so the
        next load tries again.
        """
        with self._lock:
            self._select(project_id)
            self._chapters.clear()

            if not self.document_loader.has_chapters_dir(project_id):
                logger.warning(f"No chapters directory for {project_id}; index left empty")
                return

            for chapter in self.document_loader.list_chapters(project_id):
                if not chapter.body:
                    continue
                self._chapters[chapter.chapter_id] = self.chunking_engine.chunk_chapter(
                    chapter.chapter_id, chapter.body, chapter.title
                )

            self._persist(project_id)
            logger.info(
                f"Rebuilt index for {project_id}: {len(self._chapters)} chapters, "
                f"{sum(len(c) for c in self._chapters.values())} chunks"
            )

    def _select(self, project_id: str) -> None:
        if self._project_id != project_id:
            self._chapters = {}
        self._project_id = project_id
        self._loaded = True

    def _ensure_loaded(self, project_id: str) -> None:
        if self._loaded and self._project_id == project_id:
            return
        self._select(project_id)
        if not self._load_snapshot(project_id):
            self.rebuild_project_index(project_id)

    def _load_snapshot(self, project_id: str) -> bool:
        path = self.snapshot_path(project_id)
        if not os.path.exists(path):
            logger.info(f"No index snapshot at {path}; rebuilding")
            return False

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("snapshot root must be an object")
            chapters = {
                str(chapter_id): [Chunk.from_dict(item) for item in items]
                for chapter_id, items in data.items()
            }
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Corrupt index snapshot {path}: {e}; rebuilding")
            return False

        self._chapters = chapters
        logger.debug(f"Loaded index snapshot {path} ({len(chapters)} chapters)")
        return True

    def _persist(self, project_id: str) -> None:
        path = self.snapshot_path(project_id)
        payload = {
            chapter_id: [chunk.to_dict() for chunk in chunks]
            for chapter_id, chunks in self._chapters.items()
        }
        tmp_path = f"{path}.tmp"
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
        except OSError as e:
            logger.warning(f"Could not persist index snapshot {path}: {e}")
