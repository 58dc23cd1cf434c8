"""Unit tests for DocumentLoader and chapter parsing."""
import sys
sys.path.insert(0, 'backend')

import os

import pytest
from services.document_loader import DocumentLoader, parse_chapter, parse_summary


@pytest.fixture
def project(tmp_path):
    """Create a project directory with chapters and artifacts."""
    root = tmp_path / "book"
    (root / "chapters").mkdir(parents=True)
    (root / "meta").mkdir()
    (root / "outline").mkdir()
    (root / "chapters" / "02.md").write_text("# Second\n---\n---\nTwo.", encoding="utf-8")
    (root / "chapters" / "01.md").write_text("# First\n---\n---\nOne.", encoding="utf-8")
    (root / "chapters" / "notes.txt").write_text("ignored", encoding="utf-8")
    (root / "meta" / "project.md").write_text("# Book", encoding="utf-8")
    (root / "meta" / "glossary.md").write_text("预算：钱", encoding="utf-8")
    (root / "outline" / "outline.md").write_text("1. 引言", encoding="utf-8")
    return tmp_path


class TestParseChapter:
    """Test suite for chapter file parsing."""

    def test_title_front_matter_and_body(self):
        text = "# 第一章\n\n---\nnumber: 01\ntarget: 说明预算\n---\n\n正文第一段。\n\n正文第二段。\n"

        chapter = parse_chapter("01", text)

        assert chapter.title == "第一章"
        assert chapter.target == "说明预算"
        assert chapter.meta["number"] == "01"
        assert chapter.body == "正文第一段。\n\n正文第二段。"

    def test_no_front_matter(self):
        chapter = parse_chapter("01", "# Title\nBody line")

        assert chapter.title == "Title"
        assert chapter.body == "# Title\nBody line"

    def test_missing_title_falls_back_to_id(self):
        chapter = parse_chapter("ch-7", "---\n---\nBody")

        assert chapter.title == "ch-7"
        assert chapter.body == "Body"

    def test_unterminated_front_matter(self):
        chapter = parse_chapter("01", "# Title\n---\nBody after the only delimiter")

        assert chapter.title == "Title"
        assert chapter.body == "Body after the only delimiter"

    def test_summary_in_front_matter(self):
        text = '# T\n---\nsummary: {"mainPoint": "论点", "keyPoints": ["甲"], "conclusion": "完"}\n---\nBody'

        chapter = parse_chapter("01", text)

        assert chapter.summary.main_point == "论点"
        assert chapter.summary.key_points == ["甲"]
        assert chapter.summary.conclusion == "完"


class TestParseSummary:
    """Test suite for summary JSON parsing."""

    def test_snake_case_keys(self):
        summary = parse_summary('{"main_point": "p", "key_points": ["a", "b"]}')
        assert summary.main_point == "p"
        assert summary.key_points == ["a", "b"]

    def test_malformed_json_returns_none(self):
        assert parse_summary("{broken") is None

    def test_non_object_returns_none(self):
        assert parse_summary("[1, 2]") is None


class TestDocumentLoader:
    """Test suite for reading project files."""

    def test_list_chapters_sorted_markdown_only(self, project):
        loader = DocumentLoader(str(project))

        chapters = loader.list_chapters("book")

        assert [c.chapter_id for c in chapters] == ["01", "02"]
        assert [c.body for c in chapters] == ["One.", "Two."]

    def test_missing_chapters_dir(self, tmp_path):
        loader = DocumentLoader(str(tmp_path))

        assert loader.list_chapters("nothing") == []
        assert loader.has_chapters_dir("nothing") is False

    def test_chapter_title(self, project):
        loader = DocumentLoader(str(project))

        assert loader.get_chapter_title("book", "01") == "First"
        assert loader.get_chapter_title("book", "99") == "99"

    def test_project_artifacts(self, project):
        loader = DocumentLoader(str(project))

        assert loader.read_project_meta("book") == "# Book"
        assert loader.read_glossary("book") == "预算：钱"
        assert loader.read_outline("book") == "1. 引言"

    def test_missing_artifacts_are_empty(self, tmp_path):
        loader = DocumentLoader(str(tmp_path))

        assert loader.read_project_meta("none") == ""
        assert loader.read_glossary("none") == ""
        assert loader.read_outline("none") == ""

    def test_paths(self, tmp_path):
        loader = DocumentLoader(str(tmp_path))
        assert loader.chapters_dir("book") == os.path.join(str(tmp_path), "book", "chapters")
