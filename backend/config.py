"""Configuration management for the chapter context service."""
import os
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Storage
RUNTIME_BASE_PATH = os.getenv("RUNTIME_BASE_PATH", "projects")

# LLM provider
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "mock")  # mock | groq
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
LLM_MODEL = os.getenv("LLM_MODEL", "llama-3.3-70b-versatile")
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "4000"))
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.7"))

# Server Configuration
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# CORS Configuration
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:3001"
).split(",")

# Chunking Configuration
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "2000"))  # characters
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "200"))  # characters
MAX_KEYWORDS = 20

# Retrieval Configuration
DEFAULT_RETRIEVE_LIMIT = 5
PACK_RETRIEVE_LIMIT = 10
PACK_RELEVANCE = 0.8

# Compression Configuration
MAX_PROJECT_CONTEXT_CHARS = int(os.getenv("MAX_PROJECT_CONTEXT_CHARS", "3000"))
MAX_RELATED_CHAPTERS = int(os.getenv("MAX_RELATED_CHAPTERS", "5"))
MAX_GLOSSARY_CHARS = int(os.getenv("MAX_GLOSSARY_CHARS", "2000"))
MAX_CHAPTER_CHARS = int(os.getenv("MAX_CHAPTER_CHARS", "4000"))
TOKEN_BUDGET = int(os.getenv("TOKEN_BUDGET", "8000"))
CHARS_PER_TOKEN = 2

# Logging Configuration
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
