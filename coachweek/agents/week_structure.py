"""Week structure agent: day type, intensity and volume estimate for each day."""

from dataclasses import dataclass
from typing import Any

from loguru import logger

from coachweek.agents.base import AgentConfig, BaseAgent, Sleep
from coachweek.agents.errors import SchemaError
from coachweek.agents.prompt_blocks import JSON_ONLY, constraints_line
from coachweek.llm.gateway import GenerationGateway
from coachweek.planning.coercion import fold_label, to_int, to_km, to_text
from coachweek.planning.schemas import (
    DAY_NAMES,
    DAYS_PER_WEEK,
    ContextAnalysis,
    DayPlan,
    DayType,
    GenerationRequest,
    Intensity,
    WeekStructure,
)

_DAY_TYPE_ALIASES = {
    "REST": DayType.REPOS,
    "OFF": DayType.REPOS,
    "HILLS": DayType.COTES,
    "SL": DayType.SORTIE_LONGUE,
    "LONG_RUN": DayType.SORTIE_LONGUE,
    "INTERVALS": DayType.FRACTIONNE,
    "THRESHOLD": DayType.SEUIL,
    "STRENGTH": DayType.MUSCU,
    "JOG": DayType.ENDURANCE,
    "RACE": DayType.COMPETITION,
}

_INTENSITY_ALIASES = {
    "REPOS": Intensity.REST,
    "NONE": Intensity.REST,
    "EASY": Intensity.LOW,
    "LEGERE": Intensity.LOW,
    "FAIBLE": Intensity.LOW,
    "MEDIUM": Intensity.MODERATE,
    "MODEREE": Intensity.MODERATE,
    "HAUTE": Intensity.HIGH,
    "ELEVEE": Intensity.HIGH,
    "TRES_HAUTE": Intensity.MAX,
    "MAXIMAL": Intensity.MAX,
}


def coerce_day_type(value: Any) -> DayType:
    """Map a day type label; unknown labels become ENDURANCE."""
    label = fold_label(value)
    if label in DayType.__members__:
        return DayType[label]
    return _DAY_TYPE_ALIASES.get(label, DayType.ENDURANCE)


def coerce_intensity(value: Any) -> Intensity:
    """Map an intensity label; unknown labels become moderate."""
    label = fold_label(value)
    try:
        return Intensity(label.lower())
    except ValueError:
        return _INTENSITY_ALIASES.get(label, Intensity.MODERATE)


@dataclass(frozen=True)
class WeekStructureInput:
    request: GenerationRequest
    analysis: ContextAnalysis


class WeekStructureAgent(BaseAgent[WeekStructureInput, WeekStructure]):
    def __init__(self, gateway: GenerationGateway, config: AgentConfig | None = None, sleep: Sleep | None = None):
        super().__init__(
            gateway,
            config or AgentConfig(name="WeekStructureAgent", temperature=0.4, max_tokens=1500),
            sleep,
        )

    def build_prompt(self, agent_input: WeekStructureInput) -> str:
        request = agent_input.request
        analysis = agent_input.analysis
        mix = analysis.session_mix
        volume = analysis.volume_recommendation
        warnings = f"AVERTISSEMENTS: {', '.join(analysis.warnings)}" if analysis.warnings else ""

        return f"""Tu es un coach expert middle distance qui planifie la STRUCTURE d'une semaine d'entraînement.

ANALYSE DE L'ATHLÈTE:
- Niveau: {analysis.athlete_profile.level}
- Forme: {analysis.athlete_profile.current_form}
- Risque fatigue: {analysis.athlete_profile.fatigue_risk}
- Type de semaine: {analysis.week_recommendation.week_type.upper()}
- Intensité: {analysis.week_recommendation.intensity_level}
- Focus: {analysis.week_recommendation.key_focus}

OBJECTIF: {request.objective}
PÉRIODE: {request.period}
VOLUME CIBLE: {volume.target:.0f} km (min: {volume.min:.0f}, max: {volume.max:.0f})

RÉPARTITION SOUHAITÉE:
- Endurance: {mix.endurance:.0f}%
- Seuils: {mix.threshold:.0f}%
- VMA: {mix.vma:.0f}%
- Vitesse: {mix.speed:.0f}%
- Musculation: {mix.strength:.0f}%
- Repos: {mix.rest:.0f}%

{warnings}
{constraints_line(request.constraints)}

Planifie la structure de la semaine ({", ".join(DAY_NAMES)}).

RÈGLES DE STRUCTURE:
1. Lundi (0) = souvent MUSCU + footing, ou repos après compétition
2. Mardi (1) = séance qualité (VMA ou fractionné)
3. Mercredi (2) = récupération ou endurance
4. Jeudi (3) = séance seuils ou VMA
5. Vendredi (4) = repos ou footing léger
6. Samedi (5) = côtes, compétition ou séance spécifique
7. Dimanche (6) = sortie longue

IMPORTANT:
- Exactement 7 jours, dayOfWeek de 0 à 6
- Au moins 1 jour de repos complet par semaine
- Pas 2 séances haute intensité consécutives

Types autorisés: {", ".join(t.value for t in DayType)}
Intensités autorisées: {", ".join(i.value for i in Intensity)}

{JSON_ONLY}
{{
  "days": [
    {{"dayOfWeek": 0, "dayType": "MUSCU", "intensity": "moderate", "estimatedVolume": 6, "notes": "Muscu + JOG"}},
    {{"dayOfWeek": 1, "dayType": "VMA", "intensity": "high", "estimatedVolume": 10}}
  ],
  "weeklyObjective": "objectif global de la semaine",
  "keySessionDays": [1, 3]
}}"""

    def parse_response(self, payload: Any, agent_input: WeekStructureInput) -> WeekStructure:
        if not isinstance(payload, dict) or not isinstance(payload.get("days"), list):
            raise SchemaError("Week structure must contain a 'days' list")

        raw_days = payload["days"]
        if len(raw_days) != DAYS_PER_WEEK:
            raise SchemaError(f"Week structure must contain exactly 7 days, got {len(raw_days)}")

        days: list[DayPlan] = []
        for position, raw in enumerate(raw_days):
            if not isinstance(raw, dict):
                raise SchemaError(f"Day entry {position} is not an object")
            day_of_week = to_int(raw.get("dayOfWeek", raw.get("day")), position)
            if not 0 <= day_of_week < DAYS_PER_WEEK:
                raise SchemaError(f"Day index out of range: {day_of_week}")
            days.append(
                DayPlan(
                    day_of_week=day_of_week,
                    day_type=coerce_day_type(raw.get("dayType") or raw.get("sessionType")),
                    intensity=coerce_intensity(raw.get("intensity") or raw.get("intensityLevel")),
                    estimated_volume_km=to_km(raw.get("estimatedVolume")),
                    notes=to_text(raw.get("notes") or raw.get("focus")),
                )
            )

        if sorted(d.day_of_week for d in days) != list(range(DAYS_PER_WEEK)):
            raise SchemaError("Week structure day indices must be unique and cover 0-6")

        days.sort(key=lambda d: d.day_of_week)
        key_days = [
            index
            for index in (to_int(v, -1) for v in payload.get("keySessionDays") or [])
            if 0 <= index < DAYS_PER_WEEK
        ]
        structure = WeekStructure(
            days=days,
            weekly_objective=to_text(payload.get("weeklyObjective")) or "",
            key_session_days=key_days,
        )
        logger.debug("Week structure parsed", total_volume_km=structure.total_volume_km)
        return structure
