"""Integration tests for the HTTP API."""
import pytest
from fastapi.testclient import TestClient
from unittest.mock import Mock
import sys
import os

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))


@pytest.fixture
def project_base(tmp_path):
    root = tmp_path / "book"
    (root / "chapters").mkdir(parents=True)
    (root / "meta").mkdir()
    (root / "outline").mkdir()
    (root / "meta" / "project.md").write_text("# 预算手册\n- **目标**: 讲清预算\n", encoding="utf-8")
    (root / "meta" / "glossary.md").write_text("预算：钱", encoding="utf-8")
    (root / "outline" / "outline.md").write_text("1. Intro", encoding="utf-8")
    (root / "chapters" / "01.md").write_text(
        "# Intro\n---\nstatus: done\n---\nWe plan the budget carefully.", encoding="utf-8"
    )
    return str(tmp_path)


@pytest.fixture
def client(project_base):
    """Create a test client with services over a temporary project tree."""
    import main
    from services.chunk_index import ChunkIndex
    from services.context_assembler import ContextAssembler
    from services.context_compressor import TieredCompressor
    from services.llm_client import MockLLMClient

    main.context_assembler = ContextAssembler(ChunkIndex(project_base), TieredCompressor())
    main.llm_client = MockLLMClient()
    main.tiktoken_encoder = Mock()
    main.tiktoken_encoder.encode.return_value = [1] * 42

    yield TestClient(main.app)


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestContextEndpoints:
    """Test suite for context packing and retrieval endpoints."""

    def test_pack(self, client):
        response = client.post("/context/pack", json={"project_id": "book", "chapter_id": "01"})

        assert response.status_code == 200
        data = response.json()
        assert data["glossary"] == "预算：钱"
        assert data["related_chapters"][0]["relevance"] == 0.8
        assert data["sources"] == [{"chapter_id": "01", "chunk_ids": ["01-chunk-0"]}]

    def test_pack_compressed(self, client):
        response = client.post(
            "/context/pack/compressed",
            json={"project_id": "book", "chapter_id": "01", "token_budget": 1},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["compression"]["strategy"] == "core"
        assert data["context_pack"]["related_chapters"][0]["position"] == "middle"

    def test_pack_compressed_rejects_zero_budget(self, client):
        response = client.post(
            "/context/pack/compressed",
            json={"project_id": "book", "chapter_id": "01", "token_budget": 0},
        )
        assert response.status_code == 422

    def test_retrieve(self, client):
        response = client.post(
            "/context/retrieve",
            json={"project_id": "book", "chapter_id": "01", "query": "budget", "limit": 3},
        )

        assert response.status_code == 200
        chunks = response.json()["chunks"]
        assert [c["id"] for c in chunks] == ["01-chunk-0"]

    def test_project_context(self, client):
        response = client.post("/context/project", json={"project_id": "book"})

        assert response.status_code == 200
        assert response.json()["project_context"] == "项目名称: 预算手册\n目标: 讲清预算"

    def test_missing_project_id_is_validation_error(self, client):
        response = client.post("/context/pack", json={"chapter_id": "01"})
        assert response.status_code == 422


class TestIndexEndpoints:
    """Test suite for index management endpoints."""

    def test_index_chapter_then_stats(self, client):
        response = client.post(
            "/index/chapter",
            json={"project_id": "book", "chapter_id": "02", "content": "Another chapter."},
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "chunks": 1}

        stats = client.get("/index/book/stats").json()
        assert stats == {"total_chunks": 2, "indexed_chapters": 2}

    def test_rebuild(self, client):
        response = client.post("/index/rebuild", json={"project_id": "book"})

        assert response.status_code == 200
        assert response.json() == {"total_chunks": 1, "indexed_chapters": 1}

    def test_remove_and_clear(self, client):
        client.post("/index/rebuild", json={"project_id": "book"})

        removed = client.post("/index/remove", json={"project_id": "book", "chapter_id": "01"})
        assert removed.json() == {"success": True, "removed": True}

        client.post("/index/rebuild", json={"project_id": "book"})
        cleared = client.post("/index/book/clear")
        assert cleared.status_code == 200
        assert client.get("/index/book/stats").json()["indexed_chapters"] == 0

    def test_remove_uses_requested_project(self, client):
        client.post("/index/chapter", json={"project_id": "other", "chapter_id": "01", "content": "Other text."})

        removed = client.post("/index/remove", json={"project_id": "book", "chapter_id": "01"})

        assert removed.json() == {"success": True, "removed": True}
        assert client.get("/index/book/stats").json()["indexed_chapters"] == 0
        assert client.get("/index/other/stats").json()["indexed_chapters"] == 1

    def test_unexpected_error_returns_500(self, client):
        import main
        main.context_assembler = Mock()
        main.context_assembler.get_index_stats.side_effect = RuntimeError("disk gone")

        response = client.get("/index/book/stats")

        assert response.status_code == 500
        assert "disk gone" in response.json()["detail"]


class TestGenerateEndpoint:
    """Test suite for chapter generation."""

    def test_generate_with_mock_client(self, client):
        response = client.post(
            "/generate",
            json={
                "project_id": "book",
                "chapter_id": "01",
                "intent": "polish",
                "content": "草稿内容",
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["content"].startswith("\n\n润色内容：")
        assert data["prompt_tokens"] == 42
        assert data["model"] == "mock-model"
        assert data["strategy"] == "slice"
        assert data["sources"] == [{"chapter_id": "01", "chunk_ids": ["01-chunk-0"]}]

    def test_generate_uses_chapter_title_from_file(self, client):
        import main
        main.llm_client = Mock()
        from models.generation import LLMGenerateResult
        main.llm_client.generate.return_value = LLMGenerateResult(content="ok", model="m", tokens=1)

        client.post("/generate", json={"project_id": "book", "chapter_id": "01"})

        params = main.llm_client.generate.call_args.args[0]
        assert params.chapter.title == "Intro"

    def test_generate_llm_error_returns_503(self, client):
        import main
        from services.llm_client import LLMClientError, LLMError
        main.llm_client = Mock()
        main.llm_client.generate.side_effect = LLMClientError(
            LLMError(code="RATE_LIMIT_ERROR", message="Rate limit exceeded.", details={"retry_after": 60})
        )

        response = client.post("/generate", json={"project_id": "book", "chapter_id": "01"})

        assert response.status_code == 503
        assert response.json()["detail"]["error"]["code"] == "RATE_LIMIT_ERROR"

    def test_invalid_intent_is_validation_error(self, client):
        response = client.post(
            "/generate",
            json={"project_id": "book", "chapter_id": "01", "intent": "dance"},
        )
        assert response.status_code == 422


class TestLLMPing:

    def test_ping(self, client):
        response = client.get("/llm/ping")

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["config"]["provider"] == "mock"
