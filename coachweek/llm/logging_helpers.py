"""Helper functions for logging LLM requests and responses."""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from coachweek.llm.messages import ChatMessage

# Raw model output can be long; keep log lines bounded
MAX_LOGGED_CHARS = 2000


def _truncate(text: str) -> str:
    if len(text) <= MAX_LOGGED_CHARS:
        return text
    return text[:MAX_LOGGED_CHARS] + "... (truncated)"


def log_llm_request(
    context: str,
    messages: Sequence[ChatMessage],
    attempt: int | None = None,
) -> None:
    """Log the prompt submitted to the LLM.

    Args:
        context: Context description (e.g., agent name)
        messages: Conversation sent to the gateway
        attempt: Optional attempt number for retries
    """
    extra_data: dict[str, str | int] = {
        "agent": context,
        "prompt": _truncate("\n\n".join(f"{m.role}: {m.content}" for m in messages)),
        "prompt_length": sum(len(m.content) for m in messages),
    }
    if attempt is not None:
        extra_data["attempt"] = attempt

    logger.debug("LLM request submitted", **extra_data)


def log_llm_raw_response(
    context: str,
    raw_response: str,
    attempt: int | None = None,
) -> None:
    """Log the raw text response from the LLM before sanitizing.

    The text goes into a keyword field, never into the message template,
    since model output is full of braces.
    """
    extra_data: dict[str, str | int] = {
        "agent": context,
        "raw_response": _truncate(raw_response),
        "raw_response_length": len(raw_response),
    }
    if attempt is not None:
        extra_data["attempt"] = attempt

    logger.debug("LLM raw response received", **extra_data)
