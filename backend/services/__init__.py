"""Services for the Chapter Context API."""
from .document_loader import DocumentLoader
from .chunking_engine import ChunkingEngine
from .chunk_index import ChunkIndex
from .context_compressor import TieredCompressor
from .context_assembler import ContextAssembler
from .llm_client import LLMClient, MockLLMClient, LLMError, LLMClientError, create_llm_client

__all__ = [
    'DocumentLoader', 'ChunkingEngine', 'ChunkIndex', 'TieredCompressor', 'ContextAssembler',
    'LLMClient', 'MockLLMClient', 'LLMError', 'LLMClientError', 'create_llm_client'
]
