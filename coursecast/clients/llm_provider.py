"""
Multi-Provider LLM Configuration

OpenAI-compatible providers used for slide and course-layout generation:
- OpenRouter (default, routes to many hosted models)
- OpenAI
- Groq
- DeepSeek
- Ollama (self-hosted)

Usage:
    settings = LLMSettings.from_env()
    model = OpenAICompatibleModel.from_settings(settings)
    raw = await model.generate(SLIDE_SYSTEM_PROMPT, chapter_json)

Environment Variables:
    LLM_PROVIDER: "openrouter" | "openai" | "groq" | "deepseek" | "ollama"
    LLM_PROVIDER_API_KEY: API key for the selected provider (falls back to provider-specific keys)

    # Provider-specific keys (fallbacks)
    OPENROUTER_API_KEY, OPENAI_API_KEY, GROQ_API_KEY, DEEPSEEK_API_KEY
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from openai import AsyncOpenAI

from ..config.settings import LLMSettings

logger = logging.getLogger(__name__)


class LLMProvider(str, Enum):
    """Supported LLM providers"""
    OPENROUTER = "openrouter"
    OPENAI = "openai"
    GROQ = "groq"
    DEEPSEEK = "deepseek"
    OLLAMA = "ollama"           # Self-hosted via Ollama


@dataclass
class ProviderConfig:
    """Configuration for an LLM provider"""
    name: str
    base_url: str
    api_key_env: str
    max_context: int
    timeout: float = 120.0          # Request timeout in seconds
    max_retries: int = 2            # Number of retries on failure
    extra_headers: Dict[str, str] = field(default_factory=dict)


# Provider configurations
PROVIDER_CONFIGS: Dict[LLMProvider, ProviderConfig] = {
    LLMProvider.OPENROUTER: ProviderConfig(
        name="OpenRouter",
        base_url="https://openrouter.ai/api/v1",
        api_key_env="OPENROUTER_API_KEY",
        max_context=128000,
        timeout=300.0,              # Long slide decks take minutes
        extra_headers={"X-Title": "CourseCast"},
    ),
    LLMProvider.OPENAI: ProviderConfig(
        name="OpenAI",
        base_url="https://api.openai.com/v1",
        api_key_env="OPENAI_API_KEY",
        max_context=128000,
    ),
    LLMProvider.GROQ: ProviderConfig(
        name="Groq",
        base_url="https://api.groq.com/openai/v1",
        api_key_env="GROQ_API_KEY",
        max_context=128000,
    ),
    LLMProvider.DEEPSEEK: ProviderConfig(
        name="DeepSeek",
        base_url="https://api.deepseek.com",
        api_key_env="DEEPSEEK_API_KEY",
        max_context=128000,
    ),
    LLMProvider.OLLAMA: ProviderConfig(
        name="Ollama",
        base_url=os.getenv("OLLAMA_HOST", "http://localhost:11434") + "/v1",
        api_key_env="OLLAMA_API_KEY",   # Not required, any value works
        max_context=32000,
        timeout=600.0,              # Local inference is slow
    ),
}


def get_provider_config(provider: str) -> ProviderConfig:
    try:
        return PROVIDER_CONFIGS[LLMProvider(provider.lower())]
    except ValueError:
        logger.warning(f"Unknown LLM provider '{provider}', falling back to OpenRouter")
        return PROVIDER_CONFIGS[LLMProvider.OPENROUTER]


def resolve_api_key(config: ProviderConfig) -> str:
    return os.getenv("LLM_PROVIDER_API_KEY") or os.getenv(config.api_key_env, "") or "not-needed"


def create_llm_client(config: ProviderConfig, api_key: Optional[str] = None) -> AsyncOpenAI:
    """Build a client for one provider. Callers own the returned client."""
    return AsyncOpenAI(
        api_key=api_key or resolve_api_key(config),
        base_url=config.base_url,
        timeout=config.timeout,
        max_retries=config.max_retries,
        default_headers=config.extra_headers or None,
    )


class OpenAICompatibleModel:
    """
    Slide content model over any OpenAI-compatible chat endpoint.

    The primary model is tried first; any failure moves on to the fallback
    models in order. The last error is raised when all of them fail.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        fallback_models: Optional[List[str]] = None,
        temperature: float = 0.7,
        max_tokens: int = 32000,
    ):
        self.client = client
        self.models = [model] + [m for m in (fallback_models or []) if m and m != model]
        self.temperature = temperature
        self.max_tokens = max_tokens

    @classmethod
    def from_settings(cls, settings: LLMSettings, client: Optional[AsyncOpenAI] = None) -> "OpenAICompatibleModel":
        config = get_provider_config(settings.provider)
        logger.info(f"LLM provider: {config.name}, model: {settings.model}")
        return cls(
            client=client or create_llm_client(config),
            model=settings.model,
            fallback_models=[settings.fallback_model],
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
        )

    async def generate(self, system_prompt: str, user_input: str) -> str:
        last_error: Optional[Exception] = None

        for model in self.models:
            kwargs = dict(
                model=model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_input},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
            try:
                response = await self.client.chat.completions.create(**kwargs)
                content = response.choices[0].message.content or ""
                if not content.strip():
                    raise ValueError(f"Empty response from {model}")
                logger.info(f"{model} returned {len(content)} chars")
                return content
            except Exception as e:
                last_error = e
                logger.warning(f"Model {model} failed: {e}")

        raise last_error
