"""Main entry point for the Chapter Context API."""
import logging
import tiktoken
from dataclasses import asdict
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from config import PORT, LOG_LEVEL, CORS_ORIGINS, RUNTIME_BASE_PATH, LLM_PROVIDER
from logger import setup_logging
from models.api import (
    ChapterRef,
    CompressedPackResponse,
    CompressionStats,
    ContextPackResponse,
    GenerateRequest,
    GenerateResponse,
    IndexChapterRequest,
    IndexStatsResponse,
    PackCompressedRequest,
    ProjectContextResponse,
    ProjectRequest,
    RetrieveRequest,
    ContextChunkModel,
    SourceModel,
    CompressedChapterModel,
)
from models.context import ContextPack
from models.generation import ChapterDraft, GenerationContext, LLMGenerateParams
from services.chunk_index import ChunkIndex
from services.context_assembler import ContextAssembler
from services.context_compressor import TieredCompressor
from services.llm_client import BaseLLMClient, LLMClientError, build_prompt, create_llm_client

# Initialize logging
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Chapter Context API",
    description="Context retrieval and compression for long-form chapter writing",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services (will be done on startup)
context_assembler: ContextAssembler = None
llm_client: BaseLLMClient = None
tiktoken_encoder = None


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    global context_assembler, llm_client, tiktoken_encoder

    setup_logging(LOG_LEVEL)
    logger.info("Initializing Chapter Context services...")

    try:
        # Initialize tiktoken encoder for Llama 3 token counting
        tiktoken_encoder = tiktoken.get_encoding("o200k_base")
        logger.info("Initialized tiktoken encoder (o200k_base)")

        chunk_index = ChunkIndex(RUNTIME_BASE_PATH)
        context_assembler = ContextAssembler(chunk_index, TieredCompressor())
        logger.info(f"Initialized ContextAssembler (base path: {RUNTIME_BASE_PATH})")

        llm_client = create_llm_client(LLM_PROVIDER)
        logger.info(f"Initialized LLM client ({LLM_PROVIDER})")

        logger.info("All services initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}", exc_info=True)
        raise


def _pack_response(pack: ContextPack) -> ContextPackResponse:
    return ContextPackResponse(
        project_context=pack.project_context,
        related_chapters=[ContextChunkModel(**asdict(chunk)) for chunk in pack.related_chapters],
        glossary=pack.glossary,
        outline=pack.outline,
        sources=[SourceModel(**asdict(source)) for source in pack.sources],
    )


def _bad_request(e: ValueError) -> HTTPException:
    logger.warning(f"Rejected request: {e}")
    return HTTPException(status_code=400, detail=str(e))


def _internal_error(action: str, e: Exception) -> HTTPException:
    logger.error(f"Unexpected error while {action}: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "Chapter Context API"}


@app.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "service": "chapter-context-api",
        "version": "1.0.0"
    }


@app.post("/context/pack", response_model=ContextPackResponse)
async def pack_context_endpoint(request: ChapterRef) -> ContextPackResponse:
    """Uncompressed context pack for a chapter."""
    try:
        pack = context_assembler.pack_context(request.project_id, request.chapter_id)
        return _pack_response(pack)
    except ValueError as e:
        raise _bad_request(e)
    except Exception as e:
        raise _internal_error("packing context", e)


@app.post("/context/pack/compressed", response_model=CompressedPackResponse)
async def pack_compressed_endpoint(request: PackCompressedRequest) -> CompressedPackResponse:
    """
    Context pack compressed to fit a token budget.

    Args:
        request: Project, chapter and optional token budget for this call

    Returns:
        CompressedPackResponse with the pack and compression statistics
    """
    try:
        pack, result = context_assembler.pack_compressed_context(
            request.project_id, request.chapter_id, request.token_budget
        )
        return CompressedPackResponse(
            context_pack=_pack_response(pack),
            compression=CompressionStats(
                strategy=result.strategy,
                total_chars=result.total_chars,
                estimated_tokens=result.estimated_tokens,
                compression_ratio=result.compression_ratio,
                related_chapters=[CompressedChapterModel(**asdict(ch)) for ch in result.related_chapters],
            ),
        )
    except ValueError as e:
        raise _bad_request(e)
    except Exception as e:
        raise _internal_error("compressing context", e)


@app.post("/context/retrieve")
async def retrieve_endpoint(request: RetrieveRequest):
    """Chunks of a chapter ranked against a query."""
    try:
        chunks = context_assembler.retrieve(
            request.project_id, request.chapter_id, request.query, request.limit
        )
        return {"chunks": [ContextChunkModel(**asdict(chunk)) for chunk in chunks]}
    except ValueError as e:
        raise _bad_request(e)
    except Exception as e:
        raise _internal_error("retrieving chunks", e)


@app.post("/context/project", response_model=ProjectContextResponse)
async def project_context_endpoint(request: ProjectRequest) -> ProjectContextResponse:
    try:
        return ProjectContextResponse(**context_assembler.get_project_context(request.project_id))
    except Exception as e:
        raise _internal_error("reading project context", e)


@app.post("/index/chapter")
async def index_chapter_endpoint(request: IndexChapterRequest):
    try:
        chunk_count = context_assembler.index_chapter(
            request.project_id, request.chapter_id, request.content
        )
        return {"success": True, "chunks": chunk_count}
    except ValueError as e:
        raise _bad_request(e)
    except Exception as e:
        raise _internal_error("indexing chapter", e)


@app.post("/index/rebuild", response_model=IndexStatsResponse)
async def rebuild_index_endpoint(request: ProjectRequest) -> IndexStatsResponse:
    try:
        return IndexStatsResponse(**context_assembler.rebuild_index(request.project_id))
    except Exception as e:
        raise _internal_error("rebuilding index", e)


@app.post("/index/remove")
async def remove_chapter_endpoint(request: ChapterRef):
    try:
        removed = context_assembler.remove_chapter_index(request.project_id, request.chapter_id)
        return {"success": True, "removed": removed}
    except Exception as e:
        raise _internal_error("removing chapter index", e)


@app.get("/index/{project_id}/stats", response_model=IndexStatsResponse)
async def index_stats_endpoint(project_id: str) -> IndexStatsResponse:
    try:
        return IndexStatsResponse(**context_assembler.get_index_stats(project_id))
    except Exception as e:
        raise _internal_error("reading index stats", e)


@app.post("/index/{project_id}/clear")
async def clear_index_endpoint(project_id: str):
    try:
        context_assembler.clear_index(project_id)
        return {"success": True}
    except Exception as e:
        raise _internal_error("clearing index", e)


@app.post("/generate", response_model=GenerateResponse)
async def generate_endpoint(request: GenerateRequest) -> GenerateResponse:
    """
    Generate chapter text from a compressed context pack.

    Steps:
    1. Pack and compress the chapter context for the token budget
    2. Build the prompt and count its tokens with tiktoken
    3. Call the configured LLM client

    Raises:
        HTTPException: 400 for invalid input, 503 for LLM failures, 500 otherwise
    """
    try:
        pack, result = context_assembler.pack_compressed_context(
            request.project_id, request.chapter_id, request.token_budget
        )

        title = request.title or context_assembler.document_loader.get_chapter_title(
            request.project_id, request.chapter_id
        )
        params = LLMGenerateParams(
            context=GenerationContext(
                project_context=pack.project_context,
                related_chapters=[chunk.content for chunk in pack.related_chapters],
                glossary=pack.glossary,
                outline=pack.outline,
            ),
            chapter=ChapterDraft(
                id=request.chapter_id,
                title=title,
                content=request.content,
                target=request.target,
            ),
            intent=request.intent,
            custom_prompt=request.custom_prompt,
        )

        prompt = build_prompt(params)
        prompt_tokens = len(tiktoken_encoder.encode(prompt))
        logger.info(
            f"Generating {request.intent.value} for {request.project_id}/{request.chapter_id}",
            extra={"prompt_tokens": prompt_tokens, "strategy": result.strategy},
        )

        generated = llm_client.generate(params)

        return GenerateResponse(
            content=generated.content,
            model=generated.model,
            tokens=generated.tokens,
            prompt_tokens=prompt_tokens,
            finish_reason=generated.finish_reason,
            strategy=result.strategy,
            sources=[SourceModel(**asdict(source)) for source in pack.sources],
        )

    except LLMClientError as e:
        # Handle LLM client errors with structured error response
        logger.error(f"LLM client error: {e.error.message}")
        raise HTTPException(
            status_code=503,
            detail={
                "error": {
                    "code": e.error.code,
                    "message": e.error.message,
                    "details": e.error.details
                }
            }
        )
    except ValueError as e:
        raise _bad_request(e)
    except Exception as e:
        raise _internal_error("generating chapter text", e)


@app.get("/llm/ping")
async def llm_ping_endpoint():
    """Provider reachability and masked provider config."""
    config = llm_client.get_config()
    return {"ok": llm_client.ping(), "config": asdict(config)}


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting Chapter Context API on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
