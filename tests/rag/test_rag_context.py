"""Tests for the RAG context boundary."""

import pytest

from coachweek.rag.context import ContextExcerpt, ContextFetcher, fetch_context_safely, format_excerpts


class BrokenFetcher:
    async def fetch_context(self, query: str, k: int = 3) -> str:
        raise TimeoutError("index unavailable")


class EchoFetcher:
    async def fetch_context(self, query: str, k: int = 3) -> str:
        return f"{query}:{k}"


def test_format_excerpts():
    text = format_excerpts(
        [
            ContextExcerpt(title="Seuil", content="Deux séances maximum."),
            ContextExcerpt(title="VMA", content="Récupération égale à l'effort."),
        ]
    )
    assert text == "[Source: Seuil]\nDeux séances maximum.\n\n[Source: VMA]\nRécupération égale à l'effort."


def test_format_no_excerpts():
    assert format_excerpts([]) == ""


def test_fetchers_satisfy_protocol():
    assert isinstance(EchoFetcher(), ContextFetcher)


@pytest.mark.asyncio
async def test_fetch_context_safely_passes_through():
    assert await fetch_context_safely(EchoFetcher(), "seuil", 5) == "seuil:5"


@pytest.mark.asyncio
async def test_fetch_context_safely_degrades(log_records):
    assert await fetch_context_safely(BrokenFetcher(), "seuil") == ""
    assert any(r["message"].startswith("RAG context retrieval failed") for r in log_records)


@pytest.mark.asyncio
async def test_no_fetcher():
    assert await fetch_context_safely(None, "seuil") == ""
