"""Root conftest for all tests.

Provides a scripted in-memory gateway, a recording sleep and canned stage
payloads so agent, orchestrator and service tests never touch the network.
"""

import json
from collections.abc import Sequence
from datetime import date

import pytest
from loguru import logger

from coachweek.agents.context_analyzer import ContextAnalyzerAgent, ContextAnalyzerInput
from coachweek.agents.session_composer import SessionComposerAgent, SessionComposerInput
from coachweek.agents.volume_allocator import VolumeAllocatorAgent, VolumeAllocatorInput
from coachweek.agents.week_structure import WeekStructureAgent, WeekStructureInput
from coachweek.config.settings import Settings, get_settings
from coachweek.llm.messages import ChatMessage, GenerationError, GenerationOptions
from coachweek.planning.schemas import AthleteStats, GenerationRequest, HistoricalDay, HistoricalPlan, VolumeTarget
from coachweek.planning.volume_target import calculate_target_volume


class ScriptedGateway:
    """Gateway double returning scripted replies in order.

    Each script item is either the raw text to return or an exception to
    raise. Every call is recorded with its messages and options.
    """

    def __init__(self, script: Sequence[str | Exception] = ()):
        self.script = list(script)
        self.calls: list[tuple[list[ChatMessage], GenerationOptions | None]] = []

    async def generate(
        self,
        messages: Sequence[ChatMessage],
        options: GenerationOptions | None = None,
    ) -> str:
        self.calls.append((list(messages), options))
        if not self.script:
            raise GenerationError("Script exhausted")
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def prompt(self, index: int = -1) -> str:
        """User prompt of a recorded call."""
        return self.calls[index][0][-1].content


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def log_records():
    """Loguru records emitted during the test (message plus extra kwargs)."""
    records: list[dict] = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def scripted_gateway():
    """Factory: scripted_gateway(["raw", GenerationError(...)])."""

    def _make(*script: str | Exception) -> ScriptedGateway:
        return ScriptedGateway(script)

    return _make


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        LLM_PROVIDER="mistral",
        MISTRAL_API_KEY="test-key",
        AGENT_MAX_RETRIES=2,
        AGENT_BACKOFF_SECONDS=1.0,
        FALLBACK_MAX_RETRIES=3,
        FALLBACK_BACKOFF_SECONDS=2.0,
    )


@pytest.fixture
def athlete_stats() -> AthleteStats:
    return AthleteStats(ctl=50.0, atl=50.0, acwr=1.0, weekly_volume=60.0)


@pytest.fixture
def historical_plans() -> list[HistoricalPlan]:
    return [
        HistoricalPlan(
            week_start=date(2024, 5, 6),
            days=[
                HistoricalDay(day_of_week=0, session_description="JOG 1H", zone1_km=12.0, total_km=12.0),
                HistoricalDay(day_of_week=1, session_description="VMA > 10 x 400", zone1_km=9.0, zone3_km=4.0, total_km=13.0),
                HistoricalDay(day_of_week=6, session_description="SL 18K", zone1_km=18.0, total_km=18.0),
            ],
        )
    ]


@pytest.fixture
def generation_request(athlete_stats, historical_plans) -> GenerationRequest:
    return GenerationRequest(
        athlete_stats=athlete_stats,
        objective="base",
        period="général",
        constraints="Pas de séance le vendredi",
        historical_plans=historical_plans,
    )


@pytest.fixture
def volume_target(generation_request) -> VolumeTarget:
    # 60 km base x 1.0 x 1.0 -> 54 / 60 / 66
    return calculate_target_volume(
        generation_request.athlete_stats, generation_request.objective, generation_request.period
    )


# -----------------------------
# Canned stage payloads
# -----------------------------
WEEK = [
    # (day, day type, intensity, description, session type, zone1, zone2, zone3, speed)
    (0, "MUSCU", "moderate", "MUSCU + JOG 40'", "AUTRE", 8.0, 0.0, 0.0, 0.0),
    (1, "VMA", "high", "VMA > 10 x 400 r1'", "VMA", 9.0, 0.0, 4.0, 0.0),
    (2, "ENDURANCE", "low", "JOG 1H", "ENDURANCE", 12.0, 0.0, 0.0, 0.0),
    (3, "SEUIL", "high", "SV1 > 3 x 3K r3", "SEUIL", 9.0, 9.0, 0.0, 0.0),
    (4, "REPOS", "rest", "REPOS", "RECUPERATION", 0.0, 0.0, 0.0, 0.0),
    (5, "FRACTIONNE", "moderate", "6 x 200 r1'", "FRACTIONNE", 8.0, 0.0, 0.0, 1.2),
    (6, "SORTIE_LONGUE", "moderate", "SL 18K", "ENDURANCE", 18.0, 0.0, 0.0, 0.0),
]


@pytest.fixture
def analysis_payload() -> dict:
    return {
        "athleteProfile": {
            "level": "confirmé",
            "currentForm": "stable",
            "fatigueRisk": "faible",
            "strengths": ["endurance"],
            "areasToImprove": ["vitesse"],
        },
        "weekRecommendation": {
            "type": "volume",
            "volumeMultiplier": 1.0,
            "intensityLevel": "modérée",
            "keyFocus": "base aérobie",
        },
        "volumeRecommendation": {"min": 54, "target": 60, "max": 66},
        "sessionMix": {"endurance": 65, "seuil": 15, "vma": 10, "vitesse": 5, "musculation": 5, "repos": 0},
        "historicalInsights": ["volume régulier"],
        "warnings": [],
    }


@pytest.fixture
def structure_payload() -> dict:
    return {
        "days": [
            {"dayOfWeek": day, "dayType": day_type, "intensity": intensity, "estimatedVolume": z1 + z2 + z3 + v}
            for day, day_type, intensity, _, _, z1, z2, z3, v in WEEK
        ],
        "weeklyObjective": "Développer la base aérobie",
        "keySessionDays": [1, 3],
    }


@pytest.fixture
def sessions_payload() -> dict:
    return {
        "sessions": [
            {
                "day": day,
                "sessionDescription": description,
                "sessionType": session_type,
                "targetZones": {"zone1": 100, "zone2": 0, "zone3": 0, "vitesse": 0},
                "rpeTarget": 7 if intensity == "high" else 4,
            }
            for day, _, intensity, description, session_type, *_ in WEEK
        ]
    }


@pytest.fixture
def allocations_payload() -> dict:
    return {
        "allocations": [
            {
                "day": day,
                "zone1Endurance": z1,
                "zone2Seuil": z2,
                "zone3SupraMax": z3,
                "zoneVitesse": v,
                "totalVolume": round(z1 + z2 + z3 + v, 2),
            }
            for day, _, _, _, _, z1, z2, z3, v in WEEK
        ]
    }


@pytest.fixture
def quality_payload() -> dict:
    return {
        "isValid": True,
        "score": 88,
        "issues": [],
        "suggestions": ["Ajouter des gammes le jeudi"],
        "perDayAdjustments": [{"day": 2, "adjustment": "Footing plus court", "zone1Endurance": 10.0, "totalVolume": 10.0}],
    }


@pytest.fixture
def pipeline_script(analysis_payload, structure_payload, sessions_payload, allocations_payload, quality_payload):
    """Raw replies for the five stages, in pipeline order."""
    return [
        json.dumps(analysis_payload),
        "```json\n" + json.dumps(structure_payload) + "\n```",
        json.dumps(sessions_payload),
        "Voici les volumes:\n" + json.dumps(allocations_payload),
        json.dumps(quality_payload),
    ]


@pytest.fixture
def fallback_payload() -> dict:
    return {
        "objective": "Semaine de base",
        "days": [
            {
                "day": day,
                "sessionDescription": description,
                "sessionType": session_type,
                "zone1Endurance": z1,
                "zone2Seuil": z2,
                "zone3SupraMax": z3,
                "zoneVitesse": v,
                "totalVolume": round(z1 + z2 + z3 + v, 2),
            }
            for day, _, _, description, session_type, z1, z2, z3, v in WEEK
        ],
    }


# -----------------------------
# Parsed stage outputs
# -----------------------------
@pytest.fixture
def context_analysis(analysis_payload, generation_request, volume_target):
    agent_input = ContextAnalyzerInput(request=generation_request, volume_target=volume_target)
    return ContextAnalyzerAgent(gateway=None).parse_response(analysis_payload, agent_input)


@pytest.fixture
def week_structure(structure_payload, generation_request, context_analysis):
    agent_input = WeekStructureInput(request=generation_request, analysis=context_analysis)
    return WeekStructureAgent(gateway=None).parse_response(structure_payload, agent_input)


@pytest.fixture
def session_designs(sessions_payload, generation_request, context_analysis, week_structure):
    agent_input = SessionComposerInput(request=generation_request, analysis=context_analysis, structure=week_structure)
    return SessionComposerAgent(gateway=None).parse_response(sessions_payload, agent_input)


@pytest.fixture
def volume_allocations(allocations_payload, generation_request, context_analysis, session_designs, volume_target):
    agent_input = VolumeAllocatorInput(
        request=generation_request,
        analysis=context_analysis,
        sessions=session_designs,
        volume_target=volume_target,
    )
    return VolumeAllocatorAgent(gateway=None).parse_response(allocations_payload, agent_input)
