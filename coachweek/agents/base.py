"""Generic agent: one structured LLM round trip with bounded retry.

An agent builds a conversation from a typed input, sends it through the
generation gateway, sanitizes and decodes the reply, then hands the payload to
its own parser. Failures are tagged with an ErrorKind; transient and invalid
ones are retried with linear backoff, fatal ones stop the loop at once.

execute() never raises. Callers that prefer exceptions use execute_or_raise().
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from loguru import logger

from coachweek.agents.errors import (
    AgentExhaustedError,
    ErrorKind,
    FatalAgentError,
    TransientGenerationError,
    classify_error,
)
from coachweek.llm.gateway import GenerationGateway
from coachweek.llm.logging_helpers import log_llm_raw_response, log_llm_request
from coachweek.llm.messages import ChatMessage, GenerationOptions, system_message, user_message
from coachweek.llm.sanitizer import decode_payload, sanitize

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class AgentConfig:
    """Per-agent call settings.

    Attributes:
        name: Agent name used in logs and errors
        model: Model override; the backend default applies when None
        temperature: Sampling temperature
        max_tokens: Completion budget
        max_retries: Total number of attempts (not extra attempts)
        backoff_seconds: Sleep before attempt n+1 is backoff_seconds * n
        system_prompt: Optional system turn prepended to the conversation
        retry_invalid: Retry when the payload does not validate
    """

    name: str
    model: str | None = None
    temperature: float = 0.5
    max_tokens: int = 2000
    max_retries: int = 2
    backoff_seconds: float = 1.0
    system_prompt: str | None = None
    retry_invalid: bool = True


@dataclass
class AgentResult(Generic[OutputT]):
    success: bool
    data: OutputT | None = None
    error: str | None = None
    raw_response: str | None = None
    attempts: int = 0
    error_kind: ErrorKind | None = None


class BaseAgent(ABC, Generic[InputT, OutputT]):
    """Base class for every structured-output agent.

    Subclasses implement build_prompt() and parse_response(); everything
    else (gateway call, sanitizing, retry, logging) lives here.
    """

    def __init__(
        self,
        gateway: GenerationGateway,
        config: AgentConfig,
        sleep: Sleep | None = None,
    ) -> None:
        self.gateway = gateway
        self.config = config
        self._sleep = sleep or asyncio.sleep

    @property
    def name(self) -> str:
        return self.config.name

    @abstractmethod
    def build_prompt(self, agent_input: InputT) -> str:
        """Render the user prompt for this input."""

    @abstractmethod
    def parse_response(self, payload: Any, agent_input: InputT) -> OutputT:
        """Validate and coerce a decoded payload.

        Raises:
            SchemaError: If required fields are missing or malformed
        """

    def build_messages(self, agent_input: InputT) -> list[ChatMessage]:
        messages: list[ChatMessage] = []
        if self.config.system_prompt:
            messages.append(system_message(self.config.system_prompt))
        messages.append(user_message(self.build_prompt(agent_input)))
        return messages

    def generation_options(self) -> GenerationOptions:
        return GenerationOptions(
            model=self.config.model,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )

    def _should_retry(self, kind: ErrorKind) -> bool:
        if kind == ErrorKind.FATAL:
            return False
        if kind == ErrorKind.INVALID:
            return self.config.retry_invalid
        return True

    async def execute(self, agent_input: InputT) -> AgentResult[OutputT]:
        """Run the agent with retry.

        Args:
            agent_input: Typed input of this agent

        Returns:
            AgentResult; success is False once the retry budget is spent or a
            fatal error occurred
        """
        try:
            messages = self.build_messages(agent_input)
        except Exception as e:
            error = FatalAgentError(f"Prompt could not be built: {e}")
            logger.error("Agent prompt build failed", agent=self.name, error=str(e))
            return AgentResult(success=False, error=str(error), attempts=0, error_kind=ErrorKind.FATAL)

        options = self.generation_options()
        max_attempts = max(1, self.config.max_retries)
        raw_response: str | None = None
        last_error = "no attempt made"
        last_kind: ErrorKind | None = None

        for attempt in range(1, max_attempts + 1):
            started = time.perf_counter()
            try:
                log_llm_request(self.name, messages, attempt)
                raw_response = await self.gateway.generate(messages, options)
                if not raw_response or not raw_response.strip():
                    raise TransientGenerationError("Empty response from generation backend")
                log_llm_raw_response(self.name, raw_response, attempt)

                payload = decode_payload(sanitize(raw_response))
                data = self.parse_response(payload, agent_input)
            except Exception as e:
                elapsed_ms = round((time.perf_counter() - started) * 1000)
                last_kind = classify_error(e)
                last_error = f"{type(e).__name__}: {e}"
                logger.warning(
                    "Agent attempt failed",
                    agent=self.name,
                    attempt=attempt,
                    max_attempts=max_attempts,
                    elapsed_ms=elapsed_ms,
                    outcome=last_kind.value,
                    error=last_error,
                )
                if not self._should_retry(last_kind):
                    break
                if attempt < max_attempts:
                    await self._sleep(self.config.backoff_seconds * attempt)
                continue

            elapsed_ms = round((time.perf_counter() - started) * 1000)
            logger.info(
                "Agent attempt succeeded",
                agent=self.name,
                attempt=attempt,
                elapsed_ms=elapsed_ms,
                outcome="success",
            )
            return AgentResult(success=True, data=data, raw_response=raw_response, attempts=attempt)

        logger.error(
            "Agent gave up",
            agent=self.name,
            attempts=attempt,
            error_kind=last_kind.value if last_kind else None,
            error=last_error,
        )
        return AgentResult(
            success=False,
            error=last_error,
            raw_response=raw_response,
            attempts=attempt,
            error_kind=last_kind,
        )

    async def execute_or_raise(self, agent_input: InputT) -> OutputT:
        """Run the agent and return its data.

        Raises:
            AgentExhaustedError: If the agent did not succeed
        """
        result = await self.execute(agent_input)
        if not result.success or result.data is None:
            raise AgentExhaustedError(self.name, result.error or "unknown error", result.error_kind)
        return result.data
