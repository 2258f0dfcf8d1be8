"""Generation gateway: the only way the core talks to a language model.

The planning code depends on the GenerationGateway protocol, never on a
concrete backend. The backend is chosen once, from an explicit Settings value,
when the gateway is built.
"""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

import httpx
from loguru import logger

from coachweek.config.settings import Settings
from coachweek.llm.backends import (
    GeminiBackend,
    HuggingFaceBackend,
    MistralBackend,
    OllamaBackend,
    OpenAIBackend,
)
from coachweek.llm.messages import ChatMessage, GenerationOptions


@runtime_checkable
class GenerationGateway(Protocol):
    async def generate(
        self,
        messages: Sequence[ChatMessage],
        options: GenerationOptions | None = None,
    ) -> str:
        """Return the raw model text for a conversation.

        Raises:
            GenerationError: On network failure, non-2xx response or empty content
        """
        ...


def build_gateway(settings: Settings, client: httpx.AsyncClient | None = None) -> GenerationGateway:
    """Build the backend selected by settings.llm_provider.

    Args:
        settings: Application settings
        client: Optional shared httpx client (HTTP backends only)

    Returns:
        A GenerationGateway implementation

    Raises:
        ValueError: If the provider is unknown
    """
    provider = settings.llm_provider
    timeout = settings.llm_timeout_seconds
    logger.info("Building generation gateway", provider=provider)

    if provider == "mistral":
        return MistralBackend(
            settings.mistral_api_key,
            url=settings.mistral_api_url,
            default_model=settings.mistral_model,
            timeout=timeout,
            client=client,
        )
    if provider == "ollama":
        return OllamaBackend(
            settings.ollama_base_url,
            default_model=settings.ollama_model,
            timeout=timeout,
            client=client,
        )
    if provider == "huggingface":
        return HuggingFaceBackend(
            settings.huggingface_api_key,
            default_model=settings.huggingface_model,
            timeout=timeout,
            client=client,
        )
    if provider == "gemini":
        return GeminiBackend(
            settings.gemini_api_key,
            default_model=settings.gemini_model,
            timeout=timeout,
            client=client,
        )
    if provider == "openai":
        return OpenAIBackend(
            settings.openai_api_key,
            default_model=settings.openai_model,
            timeout=timeout,
        )

    raise ValueError(f"Unsupported LLM provider: {provider}")
