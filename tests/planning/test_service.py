"""Tests for the plan generation service (pipeline first, fallback second)."""

import json

import pytest

from coachweek.agents.errors import FallbackExhaustedError, PlanGenerationFailedError
from coachweek.llm.messages import GenerationError
from coachweek.planning.service import FAILURE_HINT, GENERIC_FAILURE_MESSAGE, generate_weekly_plan


@pytest.mark.asyncio
async def test_pipeline_result(generation_request, settings, pipeline_script, scripted_gateway, recording_sleep):
    gateway = scripted_gateway(*pipeline_script)
    result = await generate_weekly_plan(generation_request, gateway, settings, sleep=recording_sleep)

    assert result.source == "agents"
    assert result.actual_volume_km == pytest.approx(76.2)
    assert result.volume_target.target == pytest.approx(60.0)
    assert len(result.plan.days) == 7


@pytest.mark.asyncio
async def test_pipeline_failure_falls_back(
    generation_request, settings, fallback_payload, scripted_gateway, recording_sleep
):
    gateway = scripted_gateway(GenerationError("401", retryable=False), json.dumps(fallback_payload))
    result = await generate_weekly_plan(generation_request, gateway, settings, sleep=recording_sleep)

    assert result.source == "fallback"
    assert result.plan.objective == "Semaine de base"
    assert gateway.call_count == 2
    assert "Génère un planning hebdomadaire" in gateway.prompt(1)


@pytest.mark.asyncio
async def test_agents_disabled_goes_straight_to_fallback(
    generation_request, settings, fallback_payload, scripted_gateway, recording_sleep
):
    gateway = scripted_gateway(json.dumps(fallback_payload))
    result = await generate_weekly_plan(
        generation_request, gateway, settings, use_agents=False, sleep=recording_sleep
    )

    assert result.source == "fallback"
    assert gateway.call_count == 1


@pytest.mark.asyncio
async def test_setting_disables_agents(generation_request, settings, fallback_payload, scripted_gateway, recording_sleep):
    settings = settings.model_copy(update={"use_agentic_planning": False})
    gateway = scripted_gateway(json.dumps(fallback_payload))
    result = await generate_weekly_plan(generation_request, gateway, settings, sleep=recording_sleep)
    assert result.source == "fallback"


@pytest.mark.asyncio
async def test_double_failure_is_generic(generation_request, settings, scripted_gateway, recording_sleep):
    gateway = scripted_gateway(
        GenerationError("401", retryable=False),
        GenerationError("503"),
        GenerationError("503"),
        GenerationError("503"),
    )
    with pytest.raises(PlanGenerationFailedError) as exc_info:
        await generate_weekly_plan(generation_request, gateway, settings, sleep=recording_sleep)

    error = exc_info.value
    assert str(error) == GENERIC_FAILURE_MESSAGE
    assert error.hint == FAILURE_HINT
    assert "503" not in str(error)
    assert isinstance(error.__cause__, FallbackExhaustedError)
    # fallback: 3 attempts with 2 s linear backoff
    assert recording_sleep.delays == [2.0, 4.0]
