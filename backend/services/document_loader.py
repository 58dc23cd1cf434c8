"""Loads chapter sources and project artifacts from the runtime directory."""
import json
import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from models.compression import ChapterSummary

logger = logging.getLogger(__name__)

FRONT_MATTER_DELIMITER = "---"
CHAPTER_EXTENSION = ".md"


@dataclass
class ChapterSource:
    """A chapter file parsed into title, body and front-matter fields."""
    chapter_id: str
    title: str
    body: str
    target: str = ""
    summary: Optional[ChapterSummary] = None
    meta: dict = field(default_factory=dict)


def parse_summary(raw: str) -> Optional[ChapterSummary]:
    """Parse the JSON summary stored in chapter front matter."""
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning(f"Ignoring malformed chapter summary: {raw[:80]}")
        return None
    if not isinstance(data, dict):
        return None
    key_points = data.get("keyPoints", data.get("key_points")) or []
    return ChapterSummary(
        main_point=data.get("mainPoint", data.get("main_point")),
        key_points=[str(p) for p in key_points] if isinstance(key_points, list) else [],
        conclusion=data.get("conclusion"),
    )


def parse_chapter(chapter_id: str, text: str) -> ChapterSource:
    """
    Parse a chapter file.

    Layout: an optional "# Title" line, an optional front-matter block opened
    and closed by lines that are exactly "---", then the body.

    Args:
        chapter_id: Identifier used as the title when no heading exists
        text: Raw file content

    Returns:
        ChapterSource with a stripped body
    """
    lines = text.split("\n")
    title = ""
    meta = {}
    in_front_matter = False
    opened_at = -1
    body_start = 0

    for i, raw_line in enumerate(lines):
        line = raw_line.strip()
        if line == FRONT_MATTER_DELIMITER:
            if not in_front_matter:
                in_front_matter = True
                opened_at = i
                continue
            body_start = i + 1
            break
        if in_front_matter:
            key, sep, value = line.partition(": ")
            if sep:
                meta[key] = value
        elif line.startswith("# ") and not title:
            title = line[2:].strip()

    if in_front_matter and body_start == 0:
        # Unterminated block: everything after the opening line is body
        body_start = opened_at + 1

    summary = parse_summary(meta["summary"]) if "summary" in meta else None
    return ChapterSource(
        chapter_id=chapter_id,
        title=title or chapter_id,
        body="\n".join(lines[body_start:]).strip(),
        target=meta.get("target", ""),
        summary=summary,
        meta=meta,
    )


class DocumentLoader:
    """Reads chapter files and project artifacts for a runtime base path."""

    def __init__(self, runtime_base_path: str):
        """
        Initialize DocumentLoader.

        Args:
            runtime_base_path: Directory holding one sub-directory per project
        """
        self.runtime_base_path = runtime_base_path

    def project_dir(self, project_id: str) -> str:
        return os.path.join(self.runtime_base_path, project_id)

    def chapters_dir(self, project_id: str) -> str:
        return os.path.join(self.project_dir(project_id), "chapters")

    def has_chapters_dir(self, project_id: str) -> bool:
        return os.path.isdir(self.chapters_dir(project_id))

    def list_chapters(self, project_id: str) -> List[ChapterSource]:
        """
        Load and parse all chapter files of a project.

        Returns:
            Chapters sorted by file name; empty when the directory is missing
        """
        chapters_dir = self.chapters_dir(project_id)
        if not os.path.isdir(chapters_dir):
            logger.warning(f"Chapters directory not found: {chapters_dir}")
            return []

        chapter_files = sorted(f for f in os.listdir(chapters_dir) if f.endswith(CHAPTER_EXTENSION))
        logger.info(f"Found {len(chapter_files)} chapter files in {chapters_dir}")

        chapters = []
        for filename in chapter_files:
            chapter_id = filename[:-len(CHAPTER_EXTENSION)]
            text = self._read(os.path.join(chapters_dir, filename))
            if text is None:
                # Skip unreadable file and continue
                continue
            chapters.append(parse_chapter(chapter_id, text))
        return chapters

    def load_chapter(self, project_id: str, chapter_id: str) -> Optional[ChapterSource]:
        path = os.path.join(self.chapters_dir(project_id), f"{chapter_id}{CHAPTER_EXTENSION}")
        text = self._read(path)
        if text is None:
            return None
        return parse_chapter(chapter_id, text)

    def get_chapter_title(self, project_id: str, chapter_id: str) -> str:
        """Title from the chapter file, or the chapter id when unavailable."""
        chapter = self.load_chapter(project_id, chapter_id)
        return chapter.title if chapter else chapter_id

    def read_project_meta(self, project_id: str) -> str:
        return self._read(os.path.join(self.project_dir(project_id), "meta", "project.md")) or ""

    def read_glossary(self, project_id: str) -> str:
        return self._read(os.path.join(self.project_dir(project_id), "meta", "glossary.md")) or ""

    def read_outline(self, project_id: str) -> str:
        return self._read(os.path.join(self.project_dir(project_id), "outline", "outline.md")) or ""

    @staticmethod
    def _read(path: str) -> Optional[str]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            logger.debug(f"File not found: {path}")
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read {path}: {e}")
            return None
