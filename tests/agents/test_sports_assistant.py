"""Tests for the sports assistant agent and its RAG context handling."""

import json

import pytest

from coachweek.agents.errors import ErrorKind, SchemaError
from coachweek.agents.sports_assistant import (
    NO_CONTEXT,
    SportsAssistantAgent,
    SportsQuestion,
    answer_question,
)


class StaticFetcher:
    def __init__(self, context: str = "", fail: bool = False):
        self.context = context
        self.fail = fail
        self.queries: list[tuple[str, int]] = []

    async def fetch_context(self, query: str, k: int = 3) -> str:
        self.queries.append((query, k))
        if self.fail:
            raise ConnectionError("vector store down")
        return self.context


@pytest.fixture
def answer_payload() -> dict:
    return {
        "content": "Deux séances de seuil par semaine suffisent en période générale.",
        "artifacts": {
            "discipline": "running",
            "objective": "10 km",
            "training_plan": {
                "duration_weeks": 1,
                "weekly_volume_km": 55,
                "weekly_sessions": [
                    {
                        "day": "Mardi",
                        "session_type": "SEUIL",
                        "description": "SV1 > 3 x 3K r3",
                        "intensity": "moderate",
                        "volume_km": 18,
                        "zones_km": {"z1_endurance": 9, "z2_threshold": 9, "z3_max": 0, "sprint": 0},
                    }
                ],
            },
            "constraints": [],
            "scientific_rationale": ["Le seuil améliore l'endurance spécifique"],
            "sources": [{"title": "Guide seuil", "type": "coaching_methodology", "confidence_level": "medium"}],
        },
    }


def test_parse_answer(answer_payload):
    answer = SportsAssistantAgent(gateway=None).parse_response(answer_payload, SportsQuestion(query="q"))
    assert answer.artifacts.training_plan.weekly_sessions[0].zones_km.z2_threshold == 9
    assert answer.artifacts.sources[0].title == "Guide seuil"


def test_missing_training_plan_is_schema_error(answer_payload):
    del answer_payload["artifacts"]["training_plan"]
    with pytest.raises(SchemaError, match="training_plan"):
        SportsAssistantAgent(gateway=None).parse_response(answer_payload, SportsQuestion(query="q"))


def test_unknown_source_type_is_schema_error(answer_payload):
    answer_payload["artifacts"]["sources"][0]["type"] = "blog"
    with pytest.raises(SchemaError, match="does not match schema"):
        SportsAssistantAgent(gateway=None).parse_response(answer_payload, SportsQuestion(query="q"))


def test_prompt_without_context():
    prompt = SportsAssistantAgent(gateway=None).build_prompt(SportsQuestion(query="Combien de séances ?"))
    assert NO_CONTEXT in prompt
    assert "DISCIPLINE" not in prompt


@pytest.mark.asyncio
async def test_answer_question_uses_retrieved_context(answer_payload, scripted_gateway):
    fetcher = StaticFetcher("[Source: Guide seuil]\nDeux séances maximum.")
    gateway = scripted_gateway(json.dumps(answer_payload))

    result = await answer_question("  Combien de séances de seuil ?  ", gateway, fetcher=fetcher, discipline="running")

    assert result.success
    assert fetcher.queries == [("  Combien de séances de seuil ?  ", 3)]
    messages, options = gateway.calls[0]
    assert messages[0].role == "system"
    assert "[Source: Guide seuil]" in messages[1].content
    assert "DISCIPLINE: running" in messages[1].content
    assert messages[1].content.endswith("Combien de séances de seuil ?")
    assert options.temperature == 0.1


@pytest.mark.asyncio
async def test_failing_fetcher_degrades_to_no_context(answer_payload, scripted_gateway):
    gateway = scripted_gateway(json.dumps(answer_payload))
    result = await answer_question("Question", gateway, fetcher=StaticFetcher(fail=True))

    assert result.success
    assert NO_CONTEXT in gateway.prompt(0)


@pytest.mark.asyncio
async def test_rag_can_be_skipped(answer_payload, scripted_gateway):
    fetcher = StaticFetcher("ignored")
    gateway = scripted_gateway(json.dumps(answer_payload))
    await answer_question("Question", gateway, fetcher=fetcher, perform_rag=False)
    assert fetcher.queries == []


@pytest.mark.asyncio
async def test_empty_query_is_rejected(scripted_gateway):
    with pytest.raises(ValueError, match="Query is required"):
        await answer_question("   ", scripted_gateway())


@pytest.mark.asyncio
async def test_invalid_answer_reports_failure(scripted_gateway, recording_sleep):
    gateway = scripted_gateway('{"content": "ok"}', '{"content": "ok", "artifacts": {}}')
    agent = SportsAssistantAgent(gateway, sleep=recording_sleep)

    result = await agent.execute(SportsQuestion(query="q"))
    assert not result.success
    assert result.error_kind == ErrorKind.INVALID
