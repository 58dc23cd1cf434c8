"""LLM clients for chapter generation: Groq-backed and offline mock."""
import math
import time
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional
from groq import Groq
from groq import RateLimitError, AuthenticationError, APIError, APITimeoutError
import logging

from models.generation import (
    ChapterIntent,
    LLMGenerateParams,
    LLMGenerateResult,
    LLMProviderConfig,
)
from config import GROQ_API_KEY, LLM_MODEL, LLM_MAX_TOKENS, LLM_TEMPERATURE, LLM_PROVIDER

logger = logging.getLogger(__name__)

RELATED_CHAPTER_CHARS = 500
CHAPTER_TAIL_CHARS = 2000

SYSTEM_PROMPTS = {
    ChapterIntent.CONTINUE: "你是一位专业的长文写作助手。请根据上下文续写内容，保持风格一致性。",
    ChapterIntent.EXPAND: "你是一位专业的长文写作助手。请扩展当前内容，增加更多细节、案例和说明。",
    ChapterIntent.REWRITE: "你是一位专业的长文写作助手。请重新组织并改写当前内容，使其更加清晰有力。",
    ChapterIntent.ADD_ARGUMENT: "你是一位专业的长文写作助手。请为当前内容补充更多论证、数据和证据。",
    ChapterIntent.POLISH: "你是一位专业的长文写作助手。请润色当前内容，使其更加流畅和专业。",
    ChapterIntent.SIMPLIFY: "你是一位专业的长文写作助手。请简化当前内容，去除冗余，保留核心要点。",
}

INTENT_LABELS = {
    ChapterIntent.CONTINUE: "续写内容",
    ChapterIntent.EXPAND: "扩展内容",
    ChapterIntent.REWRITE: "改写内容",
    ChapterIntent.ADD_ARGUMENT: "补充论证",
    ChapterIntent.POLISH: "润色内容",
    ChapterIntent.SIMPLIFY: "简化内容",
}


@dataclass
class LLMError:
    """Structured error response from LLM operations."""
    code: str
    message: str
    details: Dict[str, Any]


class LLMClientError(Exception):
    """Custom exception for LLM client errors with structured error information."""

    def __init__(self, error: LLMError):
        self.error = error
        super().__init__(error.message)


def mask_api_key(api_key: Optional[str]) -> Optional[str]:
    """Keep only the last four characters of an API key."""
    if not api_key:
        return None
    return "***" + api_key[-4:]


def build_prompt(params: LLMGenerateParams) -> str:
    """
    Build the generation prompt from compressed context and the current chapter.

    Sections appear in order: intent instruction, project background, outline,
    glossary, related chapters (each clipped to 500 characters) and the
    current chapter with the last 2000 characters of its content. Empty
    sections are omitted.

    Args:
        params: Generation parameters

    Returns:
        Complete prompt string
    """
    context = params.context
    chapter = params.chapter

    parts = [params.custom_prompt or SYSTEM_PROMPTS.get(params.intent, SYSTEM_PROMPTS[ChapterIntent.CONTINUE])]

    if context.project_context:
        parts.append(f"## 项目背景\n{context.project_context}")
    if context.outline:
        parts.append(f"## 大纲\n{context.outline}")
    if context.glossary:
        parts.append(f"## 术语表\n{context.glossary}")
    if context.related_chapters:
        related = "\n\n".join(f"### {text[:RELATED_CHAPTER_CHARS]}..." for text in context.related_chapters)
        parts.append(f"## 相关章节\n\n{related}")

    current = ["## 当前章节", f"标题: {chapter.title}"]
    if chapter.target:
        current.append(f"目标: {chapter.target}")
    current.append(f"当前内容:\n{chapter.content[-CHAPTER_TAIL_CHARS:]}")
    parts.append("\n\n".join(current))

    return "\n\n".join(parts)


class BaseLLMClient:
    """Shared config handling for LLM clients."""

    def __init__(self, config: LLMProviderConfig):
        self._config = config

    def get_config(self) -> LLMProviderConfig:
        """Current provider config with the API key masked."""
        return replace(self._config, api_key=mask_api_key(self._config.api_key))

    def update_config(self, **updates) -> LLMProviderConfig:
        self._config = replace(self._config, **updates)
        logger.info(f"LLM config updated: {sorted(updates)}")
        return self.get_config()

    def generate(self, params: LLMGenerateParams) -> LLMGenerateResult:
        raise NotImplementedError

    def ping(self) -> bool:
        raise NotImplementedError


class LLMClient(BaseLLMClient):
    """Client for interfacing with Groq API for chapter generation."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = LLM_MODEL,
        max_tokens: int = LLM_MAX_TOKENS,
        temperature: float = LLM_TEMPERATURE
    ):
        """
        Initialize LLM client with Groq API key.

        Args:
            api_key: Groq API key (defaults to GROQ_API_KEY from environment)
            model: Groq model name
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature
        """
        api_key = api_key or GROQ_API_KEY
        if not api_key:
            raise ValueError("GROQ_API_KEY must be provided or set in environment")

        super().__init__(LLMProviderConfig(
            provider="groq",
            model=model,
            api_key=api_key,
            max_tokens=max_tokens,
            temperature=temperature,
        ))
        self.client = Groq(api_key=api_key)
        logger.info("LLMClient initialized successfully")

    def update_config(self, **updates) -> LLMProviderConfig:
        config = super().update_config(**updates)
        if "api_key" in updates or "base_url" in updates:
            self.client = Groq(api_key=self._config.api_key, base_url=self._config.base_url)
        return config

    def generate(self, params: LLMGenerateParams) -> LLMGenerateResult:
        """
        Generate chapter text using Groq API.

        Args:
            params: Context, chapter draft and intent

        Returns:
            LLMGenerateResult with content, model, total tokens and latency

        Raises:
            LLMClientError: Structured error with code, message, and details
        """
        model = self._config.model
        prompt = build_prompt(params)
        start_time = time.time()

        try:
            logger.debug(f"Generating {params.intent.value} for chapter {params.chapter.id} with model: {model}")

            response = self.client.chat.completions.create(
                model=model,
                messages=[
                    {
                        "role": "user",
                        "content": prompt
                    }
                ],
                max_tokens=self._config.max_tokens,
                temperature=self._config.temperature
            )

            latency_ms = int((time.time() - start_time) * 1000)
            choice = response.choices[0]
            tokens = response.usage.total_tokens if response.usage else 0

            logger.info(
                f"Generated chapter text: model={model}, tokens={tokens}, latency={latency_ms}ms"
            )

            return LLMGenerateResult(
                content=choice.message.content or "",
                model=response.model or model,
                tokens=tokens,
                finish_reason=choice.finish_reason or "stop",
                latency_ms=latency_ms
            )

        except RateLimitError as e:
            raise self._error("RATE_LIMIT_ERROR", "Rate limit exceeded. Please try again in a few moments.",
                              model, start_time, e, retry_after=60)

        except AuthenticationError as e:
            raise self._error("AUTHENTICATION_ERROR", "Authentication failed. Please check your API key.",
                              model, start_time, e)

        except APITimeoutError as e:
            raise self._error("TIMEOUT_ERROR", "Request timed out. Please try again.",
                              model, start_time, e)

        except APIError as e:
            raise self._error("API_ERROR", f"Groq API error: {str(e)}", model, start_time, e)

        except Exception as e:
            raise self._error("UNKNOWN_ERROR", f"Unexpected error during generation: {str(e)}",
                              model, start_time, e, error_type=type(e).__name__)

    def ping(self) -> bool:
        """Check that the API answers with the configured key."""
        try:
            self.client.models.list()
            return True
        except APIError as e:
            logger.warning(f"Groq ping failed: {e}")
            return False

    @staticmethod
    def _error(code: str, message: str, model: str, start_time: float, exc: Exception, **extra) -> LLMClientError:
        latency_ms = int((time.time() - start_time) * 1000)
        error = LLMError(
            code=code,
            message=message,
            details={
                "model": model,
                "latency_ms": latency_ms,
                "original_error": str(exc),
                **extra
            }
        )
        logger.error(
            f"{code}: model={model}, latency={latency_ms}ms, error={exc}",
            exc_info=True,
            extra={"error_code": error.code, "error_details": error.details}
        )
        return LLMClientError(error)


class MockLLMClient(BaseLLMClient):
    """Deterministic offline client; echoes the chapter tail under an intent heading."""

    def __init__(self, model: str = "mock-model"):
        super().__init__(LLMProviderConfig(
            provider="mock",
            model=model,
            max_tokens=LLM_MAX_TOKENS,
            temperature=LLM_TEMPERATURE,
        ))

    def generate(self, params: LLMGenerateParams) -> LLMGenerateResult:
        prompt = build_prompt(params)
        label = INTENT_LABELS.get(params.intent, "生成内容")
        tail = params.chapter.content[-200:]
        content = f"\n\n{label}：\n\n{tail}"
        logger.debug(f"Mock generation for chapter {params.chapter.id} (prompt: {len(prompt)} chars)")
        return LLMGenerateResult(
            content=content,
            model=self._config.model,
            tokens=math.ceil(len(content) / 4),
            finish_reason="stop",
            latency_ms=0,
        )

    def ping(self) -> bool:
        return True


def create_llm_client(provider: str = LLM_PROVIDER) -> BaseLLMClient:
    """
    Create the LLM client for a provider.

    Args:
        provider: "groq" or "mock"

    Raises:
        ValueError: If the provider is unknown or Groq has no API key
    """
    if provider == "groq":
        return LLMClient()
    if provider == "mock":
        return MockLLMClient()
    raise ValueError(f"Unsupported LLM provider: {provider}")
