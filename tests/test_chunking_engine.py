"""Unit tests for ChunkingEngine and keyword extraction."""
import sys
sys.path.insert(0, 'backend')

import pytest
from models.chunk import IndexConfig
from services.chunking_engine import ChunkingEngine, extract_keywords, position_for


def dechunk(chunks, overlap):
    """Drop the overlap prefix of every chunk after the first and concatenate."""
    return chunks[0] + "".join(chunk[overlap:] for chunk in chunks[1:])


class TestChunkContent:
    """Test suite for sliding-window segmentation."""

    @pytest.fixture
    def engine(self):
        return ChunkingEngine(IndexConfig(chunk_size=50, chunk_overlap=10))

    def test_short_content_is_single_chunk(self, engine):
        assert engine.chunk_content("Short text.") == ["Short text."]

    def test_content_equal_to_chunk_size_is_single_chunk(self, engine):
        content = "x" * 50
        assert engine.chunk_content(content) == [content]

    def test_window_without_terminals(self, engine):
        content = "a" * 120

        chunks = engine.chunk_content(content)

        assert [len(c) for c in chunks] == [50, 50, 40]
        assert dechunk(chunks, 10) == content

    def test_cuts_after_last_sentence_terminal(self, engine):
        content = "First sentence here. Second one is longer than that." + "z" * 60

        chunks = engine.chunk_content(content)

        assert chunks[0] == "First sentence here."
        assert dechunk(chunks, 10) == content

    def test_terminal_too_close_to_window_end_is_ignored(self, engine):
        # The only terminal sits at index 45, inside the 10-character margin
        content = "b" * 45 + "." + "c" * 60

        chunks = engine.chunk_content(content)

        assert len(chunks[0]) == 50

    def test_full_width_terminals(self, engine):
        content = "这是第一句话，内容比较长一些。" + "后" * 60

        chunks = engine.chunk_content(content)

        assert chunks[0].endswith("。")
        assert dechunk(chunks, 10) == content

    def test_coverage_on_prose(self):
        engine = ChunkingEngine(IndexConfig(chunk_size=200, chunk_overlap=20))
        content = " ".join(f"This is sentence number {i}, and it goes on a while." for i in range(60))

        chunks = engine.chunk_content(content)

        assert len(chunks) > 1
        assert dechunk(chunks, 20) == content
        assert all(len(c) <= 200 for c in chunks[:-1])

    def test_coverage_with_default_config(self):
        engine = ChunkingEngine()
        content = "\n\n".join("段落内容。" * 40 + f"Paragraph {i}!" for i in range(30))

        chunks = engine.chunk_content(content)

        assert dechunk(chunks, 200) == content
        assert all(len(c) <= 2000 for c in chunks[:-1])


class TestChunkChapter:
    """Test suite for Chunk record creation."""

    def test_single_chunk_is_start(self):
        engine = ChunkingEngine()
        chunks = engine.chunk_chapter("ch1", "Just one short chunk.", "Intro")

        assert len(chunks) == 1
        assert chunks[0].position == "start"
        assert chunks[0].id == "ch1-chunk-0"
        assert chunks[0].chapter_title == "Intro"

    def test_positions_and_ids(self):
        engine = ChunkingEngine(IndexConfig(chunk_size=50, chunk_overlap=10))
        chunks = engine.chunk_chapter("ch2", "a" * 160, "Body")

        assert [c.position for c in chunks] == ["start"] + ["middle"] * (len(chunks) - 2) + ["end"]
        assert [c.id for c in chunks] == [f"ch2-chunk-{i}" for i in range(len(chunks))]
        assert all(c.chapter_id == "ch2" for c in chunks)

    def test_two_chunks_are_start_and_end(self):
        engine = ChunkingEngine(IndexConfig(chunk_size=50, chunk_overlap=10))
        chunks = engine.chunk_chapter("ch3", "a" * 80, "Body")

        assert [c.position for c in chunks] == ["start", "end"]

    def test_chunk_keywords(self):
        engine = ChunkingEngine()
        chunks = engine.chunk_chapter("ch1", "We plan the budget carefully.", "Intro")

        assert chunks[0].keywords == ["plan", "the", "budget", "carefully"]

    def test_position_for(self):
        assert position_for(0, 1) == "start"
        assert position_for(0, 3) == "start"
        assert position_for(1, 3) == "middle"
        assert position_for(2, 3) == "end"


class TestExtractKeywords:
    """Test suite for keyword extraction."""

    def test_cjk_runs_come_before_latin_words(self):
        keywords = extract_keywords("budget 预算 plan 管理")
        assert keywords == ["预算", "管理", "budget", "plan"]

    def test_short_latin_words_are_skipped(self):
        assert extract_keywords("a an to the") == ["the"]

    def test_cjk_runs_split_at_six(self):
        assert extract_keywords("一二三四五六七八") == ["一二三四五六", "七八"]

    def test_single_cjk_character_is_skipped(self):
        assert extract_keywords("我 ok") == []

    def test_duplicates_removed_in_order(self):
        assert extract_keywords("budget plan budget plan") == ["budget", "plan"]

    def test_case_is_preserved(self):
        assert extract_keywords("budget, Intro") == ["budget", "Intro"]

    def test_capped_at_twenty(self):
        text = " ".join(chr(ord("a") + i) * 3 for i in range(26))

        keywords = extract_keywords(text)

        assert len(keywords) == 20
        assert keywords[0] == "aaa"

    def test_empty_text(self):
        assert extract_keywords("") == []


class TestIndexConfig:
    """Test suite for IndexConfig validation."""

    def test_defaults(self):
        config = IndexConfig()
        assert config.chunk_size == 2000
        assert config.chunk_overlap == 200

    def test_overlap_must_be_smaller_than_size(self):
        with pytest.raises(ValueError, match="chunk_overlap"):
            IndexConfig(chunk_size=100, chunk_overlap=100)

    def test_size_must_be_positive(self):
        with pytest.raises(ValueError, match="chunk_size"):
            IndexConfig(chunk_size=0, chunk_overlap=0)
