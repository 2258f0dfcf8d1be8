"""RAG context boundary.

Document indexing and similarity search live outside this package. The core
only consumes a ContextFetcher returning a text blob of labelled excerpts.
"""

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from loguru import logger
from pydantic import BaseModel

DEFAULT_EXCERPTS = 3


class ContextExcerpt(BaseModel):
    title: str
    content: str


@runtime_checkable
class ContextFetcher(Protocol):
    async def fetch_context(self, query: str, k: int = DEFAULT_EXCERPTS) -> str:
        """Return up to k excerpts relevant to the query, formatted by format_excerpts()."""
        ...


def format_excerpts(excerpts: Iterable[ContextExcerpt]) -> str:
    """Join excerpts as "[Source: title]\\ncontent" blocks separated by a blank line."""
    return "\n\n".join(f"[Source: {excerpt.title}]\n{excerpt.content}" for excerpt in excerpts)


async def fetch_context_safely(fetcher: ContextFetcher | None, query: str, k: int = DEFAULT_EXCERPTS) -> str:
    """Fetch context, degrading to an empty string when the fetcher fails."""
    if fetcher is None:
        return ""
    try:
        return await fetcher.fetch_context(query, k)
    except Exception as e:
        logger.warning("RAG context retrieval failed, proceeding without context", error=str(e))
        return ""
