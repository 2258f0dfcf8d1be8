"""Session composer agent: one terse session description per planned day."""

import re
from dataclasses import dataclass
from typing import Any

from loguru import logger

from coachweek.agents.base import AgentConfig, BaseAgent, Sleep
from coachweek.agents.errors import SchemaError
from coachweek.agents.prompt_blocks import JSON_ONLY, TERSE_NOTATION_RULES, athlete_stats_block, constraints_line
from coachweek.llm.gateway import GenerationGateway
from coachweek.planning.coercion import clamp, fold_label, normalize_percentages, to_float, to_int, to_text
from coachweek.planning.schemas import (
    DAY_NAMES,
    DAYS_PER_WEEK,
    ContextAnalysis,
    GenerationRequest,
    SessionDesign,
    SessionType,
    WeekStructure,
    ZonePercentages,
)

# Hard cap applied after parsing; the prompt asks for 30
MAX_DESCRIPTION_LENGTH = 40

_ZONE_KEYS = {
    "z1": "z1",
    "zone1": "z1",
    "z2": "z2",
    "zone2": "z2",
    "z3": "z3",
    "zone3": "z3",
    "speed": "speed",
    "vitesse": "speed",
    "v": "speed",
}


def coerce_session_type(value: Any) -> SessionType:
    label = fold_label(value)
    if label in SessionType.__members__:
        return SessionType[label]
    return SessionType.AUTRE


def shorten_description(text: str, limit: int = MAX_DESCRIPTION_LENGTH) -> str:
    """Collapse whitespace and cut overlong text on a token boundary."""
    collapsed = re.sub(r"\s+", " ", text).strip()
    if len(collapsed) <= limit:
        return collapsed
    cut = collapsed[: limit + 1]
    boundary = cut.rfind(" ")
    shortened = cut[:boundary] if boundary > 0 else collapsed[:limit]
    shortened = shortened.rstrip(" +&>-,;:")
    logger.warning(
        "Session description truncated",
        original=collapsed,
        truncated=shortened,
        limit=limit,
    )
    return shortened


def parse_zone_percentages(raw: Any) -> ZonePercentages:
    if not isinstance(raw, dict):
        return ZonePercentages()
    zones: dict[str, float] = {}
    for key, value in raw.items():
        field = _ZONE_KEYS.get(str(key).lower())
        if field:
            zones[field] = max(0.0, to_float(value))
    return ZonePercentages(**normalize_percentages(zones))


@dataclass(frozen=True)
class SessionComposerInput:
    request: GenerationRequest
    analysis: ContextAnalysis
    structure: WeekStructure


class SessionComposerAgent(BaseAgent[SessionComposerInput, list[SessionDesign]]):
    """Writes each day's session in the coach's terse notation."""

    def __init__(self, gateway: GenerationGateway, config: AgentConfig | None = None, sleep: Sleep | None = None):
        super().__init__(
            gateway,
            config or AgentConfig(name="SessionComposerAgent", temperature=0.5, max_tokens=3000),
            sleep,
        )

    def build_prompt(self, agent_input: SessionComposerInput) -> str:
        request = agent_input.request
        analysis = agent_input.analysis
        structure = agent_input.structure

        structure_lines = "\n".join(
            f"- {DAY_NAMES[d.day_of_week]} ({d.day_of_week}): {d.day_type.value} ({d.intensity.value})"
            f" - volume cible {d.estimated_volume_km:.0f} km" + (f" - {d.notes}" if d.notes else "")
            for d in structure.days
        )
        key_days = " et ".join(str(d) for d in structure.key_session_days) or "non précisées"

        return f"""Tu es un coach expert middle distance (800m-5000m). Compose les séances DÉTAILLÉES.

PROFIL ATHLÈTE:
- Niveau: {analysis.athlete_profile.level}
- Points forts: {", ".join(analysis.athlete_profile.strengths) or "-"}
- À améliorer: {", ".join(analysis.athlete_profile.areas_to_improve) or "-"}
{athlete_stats_block(request.athlete_stats)}

OBJECTIF SEMAINE: {structure.weekly_objective or request.objective}
SÉANCES CLÉS: jours {key_days}

STRUCTURE PLANIFIÉE:
{structure_lines}

{constraints_line(request.constraints, "CONTRAINTES UTILISATEUR (PRIORITAIRE)")}

{TERSE_NOTATION_RULES}

Types de séance autorisés: {", ".join(t.value for t in SessionType)}
Inclus les temps cibles quand pertinent (~1'08 pour 400m VMA, ~3'45/km pour SV1).

{JSON_ONLY}
{{
  "sessions": [
    {{
      "day": 0,
      "sessionDescription": "MUSCU + JOG 40'",
      "sessionType": "AUTRE",
      "targetZones": {{"zone1": 100, "zone2": 0, "zone3": 0, "vitesse": 0}},
      "targetTimes": null,
      "rpeTarget": 4
    }}
  ]
}}"""

    def parse_response(self, payload: Any, agent_input: SessionComposerInput) -> list[SessionDesign]:
        raw_sessions = payload.get("sessions") if isinstance(payload, dict) else payload
        if not isinstance(raw_sessions, list):
            raise SchemaError("Session composer must return a 'sessions' list")

        sessions: dict[int, SessionDesign] = {}
        for position, raw in enumerate(raw_sessions):
            if not isinstance(raw, dict):
                raise SchemaError(f"Session entry {position} is not an object")
            day = to_int(raw.get("day"), -1)
            if not 0 <= day < DAYS_PER_WEEK:
                logger.warning("Session dropped: day out of range", day=raw.get("day"))
                continue
            if day in sessions:
                logger.warning("Session dropped: duplicate day", day=day)
                continue
            description = to_text(raw.get("sessionDescription") or raw.get("description"))
            if not description:
                raise SchemaError(f"Session for day {day} has no description")

            sessions[day] = SessionDesign(
                day=day,
                short_description=shorten_description(description),
                session_type=coerce_session_type(raw.get("sessionType")),
                target_zone_percentages=parse_zone_percentages(raw.get("targetZones")),
                target_times=to_text(raw.get("targetTimes")),
                rpe_target=int(clamp(to_int(raw.get("rpeTarget"), 5), 1, 10)),
            )

        if not sessions:
            raise SchemaError("Session composer returned no usable session")
        return [sessions[day] for day in sorted(sessions)]
