"""Volume allocator agent: per-day kilometres in each intensity zone."""

from dataclasses import dataclass
from typing import Any

from loguru import logger

from coachweek.agents.base import AgentConfig, BaseAgent, Sleep
from coachweek.agents.errors import SchemaError
from coachweek.agents.prompt_blocks import JSON_ONLY, volume_target_block
from coachweek.llm.gateway import GenerationGateway
from coachweek.planning.coercion import reconcile_total, to_int, to_km
from coachweek.planning.schemas import (
    DAY_NAMES,
    DAYS_PER_WEEK,
    ContextAnalysis,
    GenerationRequest,
    SessionDesign,
    VolumeAllocation,
    VolumeTarget,
)
from coachweek.planning.session_zones import AthleteThresholds, calculate_session_zones

# First key found wins
_FIELD_KEYS = {
    "zone1_km": ("zone1Endurance", "zone1", "zone1_km", "z1"),
    "zone2_km": ("zone2Seuil", "zone2", "zone2_km", "z2"),
    "zone3_km": ("zone3SupraMax", "zone3", "zone3_km", "z3"),
    "speed_km": ("zoneVitesse", "vitesse", "speed_km", "speed"),
    "total_km": ("totalVolume", "total", "total_km"),
}


def pick(raw: dict[str, Any], field: str) -> Any:
    for key in _FIELD_KEYS[field]:
        if key in raw:
            return raw[key]
    return None


@dataclass(frozen=True)
class VolumeAllocatorInput:
    request: GenerationRequest
    analysis: ContextAnalysis
    sessions: list[SessionDesign]
    volume_target: VolumeTarget
    thresholds: AthleteThresholds | None = None


def reference_allocations(
    sessions: list[SessionDesign],
    thresholds: AthleteThresholds | None = None,
) -> list[VolumeAllocation]:
    """Deterministic per-day figures computed from each session's notation."""
    return [calculate_session_zones(s.short_description, thresholds, day=s.day) for s in sessions]


class VolumeAllocatorAgent(BaseAgent[VolumeAllocatorInput, list[VolumeAllocation]]):
    def __init__(self, gateway: GenerationGateway, config: AgentConfig | None = None, sleep: Sleep | None = None):
        super().__init__(
            gateway,
            config or AgentConfig(name="VolumeAllocatorAgent", temperature=0.3, max_tokens=2000),
            sleep,
        )

    def build_prompt(self, agent_input: VolumeAllocatorInput) -> str:
        week = agent_input.analysis.week_recommendation
        references = {a.day: a for a in reference_allocations(agent_input.sessions, agent_input.thresholds)}

        lines = []
        for session in agent_input.sessions:
            ref = references[session.day]
            zones = session.target_zone_percentages
            lines.append(
                f"Jour {session.day} ({DAY_NAMES[session.day]}): {session.short_description}"
                f" (RPE {session.rpe_target}) - Zones %: Z1={zones.z1:.0f}, Z2={zones.z2:.0f},"
                f" Z3={zones.z3:.0f}, V={zones.speed:.0f}"
                f" | Référence calculée: Z1={ref.zone1_km}, Z2={ref.zone2_km}, Z3={ref.zone3_km},"
                f" V={ref.speed_km}, total={ref.total_km} km"
            )
        sessions_block = "\n".join(lines)

        return f"""Tu es un expert en planification de charge d'entraînement.

{volume_target_block(agent_input.volume_target)}
MULTIPLICATEUR SEMAINE: x{week.volume_multiplier}
TYPE SEMAINE: {week.week_type}

SÉANCES PLANIFIÉES:
{sessions_block}

Les références calculées incluent 4.5 km d'échauffement et 4.5 km de retour au calme en Z1
pour les séances qualité. Pars de ces références et ajuste-les pour atteindre le volume cible.
Calcule les volumes PRÉCIS en km pour chaque jour et chaque zone.
totalVolume doit être égal à la somme des zones.

{JSON_ONLY}
{{
  "allocations": [
    {{"day": 0, "zone1Endurance": 8.0, "zone2Seuil": 0, "zone3SupraMax": 0, "zoneVitesse": 0, "totalVolume": 8.0}}
  ]
}}"""

    def parse_response(self, payload: Any, agent_input: VolumeAllocatorInput) -> list[VolumeAllocation]:
        raw_allocations = payload.get("allocations") if isinstance(payload, dict) else payload
        if not isinstance(raw_allocations, list):
            raise SchemaError("Volume allocator must return an 'allocations' list")

        allocations: list[VolumeAllocation] = []
        seen: set[int] = set()
        for position, raw in enumerate(raw_allocations):
            if not isinstance(raw, dict):
                raise SchemaError(f"Allocation entry {position} is not an object")
            day = to_int(raw.get("day"), -1)
            if not 0 <= day < DAYS_PER_WEEK or day in seen:
                logger.warning("Allocation dropped", day=raw.get("day"), position=position)
                continue
            seen.add(day)

            zones = {field: pick(raw, field) for field in ("zone1_km", "zone2_km", "zone3_km", "speed_km")}
            reported_total = to_km(pick(raw, "total_km"))
            zones, total = reconcile_total(zones, reported_total)
            if total != reported_total:
                logger.debug("Allocation total reconciled", day=day, reported=reported_total, total_km=total)
            allocations.append(VolumeAllocation(day=day, **zones, total_km=total))

        if not allocations:
            raise SchemaError("Volume allocator returned no usable allocation")
        return allocations
