"""Concrete text-generation backends.

Each backend turns a conversation into text and normalizes every failure to
GenerationError. None of them retries; retry belongs to the agent loop.

HTTP backends share one httpx.AsyncClient per instance, which is safe to
reuse across concurrent pipeline runs.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

import httpx
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from loguru import logger
from pydantic import SecretStr

from coachweek.llm.messages import ChatMessage, GenerationError, GenerationOptions

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 4000
HTTP_TIMEOUT = 60.0

# Status codes where repeating the same call cannot succeed
NON_RETRYABLE_STATUS = {401, 403}


def _error_detail(response: httpx.Response) -> str:
    """Best-effort human-readable cause from an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or response.text[:200]
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if body.get("message"):
            return str(body["message"])
        if body.get("detail"):
            return str(body["detail"])
    return response.reason_phrase or "unknown error"


def _join_text_parts(content: Any) -> str:
    """Flatten content that some APIs return as a list of typed chunks."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for chunk in content:
            if isinstance(chunk, str):
                parts.append(chunk)
            elif isinstance(chunk, dict) and isinstance(chunk.get("text"), str):
                parts.append(chunk["text"])
        return "".join(parts)
    return ""


class HTTPChatBackend(ABC):
    """Base class for backends reached with a JSON POST."""

    provider: str = "http"
    default_max_tokens: int = DEFAULT_MAX_TOKENS

    def __init__(
        self,
        *,
        default_model: str,
        timeout: float = HTTP_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.default_model = default_model
        self.timeout = timeout
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    def _check_credentials(self) -> None:
        """Raise a non-retryable GenerationError when the backend is not configured."""
        return None

    @abstractmethod
    async def _complete(self, messages: list[ChatMessage], options: GenerationOptions) -> str:
        """Send the conversation and return the raw text."""

    async def _post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        try:
            response = await self._get_client().post(url, json=payload, headers=headers, timeout=self.timeout)
        except httpx.RequestError as e:
            raise GenerationError(
                f"{self.provider}: request failed ({type(e).__name__}: {e})",
                provider=self.provider,
            ) from e

        if response.is_error:
            raise GenerationError(
                f"{self.provider} API {response.status_code}: {_error_detail(response)}",
                provider=self.provider,
                retryable=response.status_code not in NON_RETRYABLE_STATUS,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise GenerationError(f"{self.provider}: response body is not JSON", provider=self.provider) from e
        if not isinstance(data, dict):
            raise GenerationError(f"{self.provider}: unexpected response shape", provider=self.provider)
        return data

    async def generate(
        self,
        messages: Sequence[ChatMessage],
        options: GenerationOptions | None = None,
    ) -> str:
        options = options or GenerationOptions()
        self._check_credentials()
        text = await self._complete(list(messages), options)
        if not text or not text.strip():
            raise GenerationError(f"{self.provider}: empty response", provider=self.provider)
        return text


class OpenAICompatibleBackend(HTTPChatBackend):
    """Chat-completions style API (`choices[0].message.content`)."""

    api_key_name: str = "API_KEY"

    def __init__(self, api_key: str, *, url: str, default_model: str, **kwargs: Any) -> None:
        super().__init__(default_model=default_model, **kwargs)
        self.api_key = api_key
        self.url = url

    def _check_credentials(self) -> None:
        if not self.api_key:
            raise GenerationError(
                f"{self.provider}: {self.api_key_name} is not set",
                provider=self.provider,
                retryable=False,
            )

    def _endpoint(self, model: str) -> str:
        return self.url

    async def _complete(self, messages: list[ChatMessage], options: GenerationOptions) -> str:
        model = options.model or self.default_model
        payload = {
            "model": model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": options.temperature if options.temperature is not None else DEFAULT_TEMPERATURE,
            "max_tokens": options.max_tokens or self.default_max_tokens,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        data = await self._post_json(self._endpoint(model), payload, headers)

        choices = data.get("choices") or []
        if not choices:
            return ""
        message = choices[0].get("message") or {}
        return _join_text_parts(message.get("content"))


class MistralBackend(OpenAICompatibleBackend):
    provider = "mistral"
    api_key_name = "MISTRAL_API_KEY"


class HuggingFaceBackend(OpenAICompatibleBackend):
    """HuggingFace Inference API through its chat-completions route."""

    provider = "huggingface"
    api_key_name = "HUGGINGFACE_API_KEY"

    def __init__(self, api_key: str, *, default_model: str, **kwargs: Any) -> None:
        super().__init__(
            api_key,
            url="https://api-inference.huggingface.co/models",
            default_model=default_model,
            **kwargs,
        )

    def _endpoint(self, model: str) -> str:
        return f"{self.url}/{model}/v1/chat/completions"


class OllamaBackend(HTTPChatBackend):
    """Local Ollama server, non-streaming /api/chat."""

    provider = "ollama"

    def __init__(self, base_url: str, *, default_model: str, **kwargs: Any) -> None:
        super().__init__(default_model=default_model, **kwargs)
        self.base_url = base_url.rstrip("/")

    async def _complete(self, messages: list[ChatMessage], options: GenerationOptions) -> str:
        payload = {
            "model": options.model or self.default_model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "stream": False,
            "options": {
                "temperature": options.temperature if options.temperature is not None else DEFAULT_TEMPERATURE,
                "num_predict": options.max_tokens or self.default_max_tokens,
            },
        }
        data = await self._post_json(f"{self.base_url}/api/chat", payload)
        message = data.get("message") or {}
        return _join_text_parts(message.get("content"))


class GeminiBackend(HTTPChatBackend):
    """Google Gemini REST API (generateContent).

    Gemini has no assistant role: assistant turns are sent as `model` and the
    system turn becomes `systemInstruction`.
    """

    provider = "gemini"
    default_max_tokens = 4096
    base_url = "https://generativelanguage.googleapis.com/v1beta/models"

    def __init__(self, api_key: str, *, default_model: str, **kwargs: Any) -> None:
        super().__init__(default_model=default_model, **kwargs)
        self.api_key = api_key

    def _check_credentials(self) -> None:
        if not self.api_key:
            raise GenerationError("gemini: GEMINI_API_KEY is not set", provider=self.provider, retryable=False)

    async def _complete(self, messages: list[ChatMessage], options: GenerationOptions) -> str:
        model = options.model or self.default_model
        contents = [
            {
                "role": "model" if m.role == "assistant" else "user",
                "parts": [{"text": m.content}],
            }
            for m in messages
            if m.role != "system"
        ]
        payload: dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": options.temperature if options.temperature is not None else DEFAULT_TEMPERATURE,
                "maxOutputTokens": options.max_tokens or self.default_max_tokens,
            },
        }
        system_text = "\n\n".join(m.content for m in messages if m.role == "system")
        if system_text:
            payload["systemInstruction"] = {"parts": [{"text": system_text}]}

        data = await self._post_json(
            f"{self.base_url}/{model}:generateContent",
            payload,
            headers={"x-goog-api-key": self.api_key},
        )
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return _join_text_parts(parts)


def _to_langchain(messages: Sequence[ChatMessage]) -> list[BaseMessage]:
    converted: list[BaseMessage] = []
    for message in messages:
        if message.role == "system":
            converted.append(SystemMessage(content=message.content))
        elif message.role == "assistant":
            converted.append(AIMessage(content=message.content))
        else:
            converted.append(HumanMessage(content=message.content))
    return converted


class OpenAIBackend:
    """OpenAI chat models through LangChain's ChatOpenAI."""

    provider = "openai"

    def __init__(self, api_key: str, *, default_model: str, timeout: float = HTTP_TIMEOUT) -> None:
        self.api_key = api_key
        self.default_model = default_model
        self.timeout = timeout

    def _get_llm(self, options: GenerationOptions) -> ChatOpenAI:
        return ChatOpenAI(
            model=options.model or self.default_model,
            temperature=options.temperature if options.temperature is not None else DEFAULT_TEMPERATURE,
            max_tokens=options.max_tokens or DEFAULT_MAX_TOKENS,
            api_key=SecretStr(self.api_key),
            timeout=self.timeout,
            max_retries=0,
        )

    async def generate(
        self,
        messages: Sequence[ChatMessage],
        options: GenerationOptions | None = None,
    ) -> str:
        if not self.api_key:
            raise GenerationError("openai: OPENAI_API_KEY is not set", provider=self.provider, retryable=False)
        options = options or GenerationOptions()
        llm = self._get_llm(options)
        try:
            result = await llm.ainvoke(_to_langchain(messages))
        except Exception as e:
            status_code = getattr(e, "status_code", None)
            logger.debug("openai call failed", error_type=type(e).__name__, status_code=status_code)
            raise GenerationError(
                f"openai: {type(e).__name__}: {e}",
                provider=self.provider,
                retryable=status_code not in NON_RETRYABLE_STATUS,
            ) from e

        text = _join_text_parts(result.content)
        if not text.strip():
            raise GenerationError("openai: empty response", provider=self.provider)
        return text
