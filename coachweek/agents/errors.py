"""Error taxonomy for agent calls and plan generation.

Every failure below the orchestrator boundary is tagged with an ErrorKind so
the retry loop can tell a transient backend hiccup from a payload that will
never validate or a call that cannot succeed at all:

- TRANSIENT: empty or failed gateway response, retried
- INVALID: payload undecodable or missing required fields, retried by default
- FATAL: retrying cannot help (prompt cannot be built, credentials refused)
"""

from enum import StrEnum

from coachweek.llm.messages import GenerationError


class ErrorKind(StrEnum):
    TRANSIENT = "transient"
    INVALID = "invalid"
    FATAL = "fatal"


class AgentError(Exception):
    """Base exception for errors raised inside an agent round trip."""

    kind: ErrorKind = ErrorKind.TRANSIENT


class TransientGenerationError(AgentError):
    """Raised when the backend answered with nothing usable."""

    kind = ErrorKind.TRANSIENT


class SchemaError(AgentError, ValueError):
    """Raised when a payload parses but does not match the agent's schema."""

    kind = ErrorKind.INVALID


class FatalAgentError(AgentError):
    """Raised when an agent call cannot succeed whatever the number of attempts."""

    kind = ErrorKind.FATAL


class AgentExhaustedError(RuntimeError):
    """Raised when an agent used its whole retry budget without success."""

    def __init__(self, agent: str, message: str, kind: ErrorKind | None = None):
        self.agent = agent
        self.kind = kind
        super().__init__(f"{agent} failed: {message}")


class PipelineStageError(RuntimeError):
    """Raised by the orchestrator when a stage fails; aborts the whole run.

    Attributes:
        stage: Pipeline stage that failed (e.g., "session_composition")
    """

    def __init__(self, stage: str, message: str):
        self.stage = stage
        super().__init__(f"Stage '{stage}' failed: {message}")


class FallbackExhaustedError(RuntimeError):
    """Raised when the single-call fallback generator exhausts its retries."""

    pass


class PlanGenerationFailedError(RuntimeError):
    """User-facing failure once both the pipeline and the fallback failed.

    The message is generic on purpose; the underlying error stays in
    __cause__ and in the logs.
    """

    def __init__(self, message: str, hint: str | None = None):
        self.hint = hint
        super().__init__(message)


def classify_error(error: Exception) -> ErrorKind:
    """Map any exception raised during an attempt to an ErrorKind."""
    if isinstance(error, AgentError):
        return error.kind
    if isinstance(error, GenerationError):
        return ErrorKind.TRANSIENT if error.retryable else ErrorKind.FATAL
    if isinstance(error, (KeyError, TypeError, ValueError)):
        # pydantic.ValidationError is a ValueError
        return ErrorKind.INVALID
    return ErrorKind.TRANSIENT
