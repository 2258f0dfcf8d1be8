"""Fallback plan generator: the whole week in a single model call.

Used when the multi-agent pipeline fails. Same gateway, same sanitizer, a
longer backoff and one more attempt. Volume and zone checks are soft: they log
warnings and never reject a plan.
"""

from dataclasses import dataclass
from typing import Any

from loguru import logger

from coachweek.agents.base import AgentConfig, BaseAgent, Sleep
from coachweek.agents.errors import FallbackExhaustedError, SchemaError
from coachweek.agents.prompt_blocks import JSON_ONLY, athlete_stats_block, history_detail
from coachweek.agents.session_composer import coerce_session_type, shorten_description
from coachweek.agents.volume_allocator import pick
from coachweek.llm.gateway import GenerationGateway
from coachweek.planning.coercion import reconcile_total, to_int, to_text
from coachweek.planning.schemas import (
    DAYS_PER_WEEK,
    ZONE_FIELDS,
    GeneratedDay,
    GeneratedPlan,
    GenerationRequest,
    SessionType,
    VolumeTarget,
)
from coachweek.planning.volume_target import calculate_target_volume

HISTORY_WEEKS = 4
VOLUME_SOFT_LOW = 0.8
VOLUME_SOFT_HIGH = 1.2
ZONE1_TOLERANCE_POINTS = 15.0


@dataclass(frozen=True)
class FallbackInput:
    request: GenerationRequest
    volume_target: VolumeTarget


def day_from_payload(raw: dict[str, Any], day: int) -> GeneratedDay:
    """Coerce one day of a model payload; the zone split wins over the total."""
    zones = {field: pick(raw, field) for field in ZONE_FIELDS}
    zones, total = reconcile_total(zones, pick(raw, "total_km"))
    description = to_text(raw.get("sessionDescription") or raw.get("description")) or "REPOS"
    session_type = coerce_session_type(raw.get("sessionType"))
    if description.upper() == "REPOS" and raw.get("sessionType") is None:
        session_type = SessionType.RECUPERATION
    return GeneratedDay(
        day=day,
        session_description=shorten_description(description),
        session_type=session_type,
        **zones,
        total_km=total,
        target_times=to_text(raw.get("targetTimes")),
        notes=to_text(raw.get("notes")),
    )


def soft_check_warnings(plan: GeneratedPlan, volume_target: VolumeTarget) -> list[str]:
    """Warnings for a plan far from its volume band or zone 1 share."""
    warnings: list[str] = []
    total = plan.total_km
    if total < volume_target.min * VOLUME_SOFT_LOW or total > volume_target.max * VOLUME_SOFT_HIGH:
        warnings.append(
            f"Volume total généré ({total:.1f} km) très éloigné de la fourchette recommandée "
            f"({volume_target.min:.0f}-{volume_target.max:.0f} km)"
        )
    if total > 0:
        zone1_percent = plan.zone_totals()["zone1_km"] / total * 100
        expected = volume_target.distribution.zone1 * 100
        if abs(zone1_percent - expected) > ZONE1_TOLERANCE_POINTS:
            warnings.append(f"Répartition Z1 ({zone1_percent:.1f}%) éloignée de la cible ({expected:.0f}%)")
    return warnings


class FallbackPlanAgent(BaseAgent[FallbackInput, GeneratedPlan]):
    def __init__(self, gateway: GenerationGateway, config: AgentConfig | None = None, sleep: Sleep | None = None):
        super().__init__(
            gateway,
            config
            or AgentConfig(
                name="FallbackPlanAgent",
                temperature=0.7,
                max_tokens=2000,
                max_retries=3,
                backoff_seconds=2.0,
            ),
            sleep,
        )

    def build_prompt(self, agent_input: FallbackInput) -> str:
        request = agent_input.request
        target = agent_input.volume_target
        dist = target.distribution
        constraints = f"**Contraintes spécifiques:** {request.constraints}" if request.constraints else ""

        return f"""Tu es un coach expert en course à pied middle distance (800m-5000m) pour des ATHLÈTES EXPÉRIMENTÉS.

Génère un planning hebdomadaire (7 jours, lundi à dimanche) pour un athlète avec les caractéristiques suivantes:

**Statistiques actuelles:**
{athlete_stats_block(request.athlete_stats)}

**VOLUME HEBDOMADAIRE CIBLE:**
- Volume MINIMUM: {target.min:.1f} km
- Volume MAXIMUM: {target.max:.1f} km
- Volume CIBLE: {target.target:.1f} km
- ⚠️ LE VOLUME TOTAL DE LA SEMAINE DOIT ÊTRE ENTRE {target.min:.0f} ET {target.max:.0f} KM

**RÉPARTITION DES ZONES (en % du volume total):**
- Zone 1 (Endurance): {dist.zone1 * 100:.0f}%
- Zone 2 (Seuils): {dist.zone2 * 100:.0f}%
- Zone 3 (Supra-max/VMA): {dist.zone3 * 100:.0f}%
- Zone Vitesse (Fractionné): {dist.speed * 100:.0f}%

**Objectif de la semaine:** {request.objective}
**Période d'entraînement:** {request.period}
{constraints}

**Historique récent ({HISTORY_WEEKS} dernières semaines):**
{history_detail(request.historical_plans, HISTORY_WEEKS)}

**Instructions:**
- Respecte la répartition des zones indiquée ci-dessus
- Inclus 1-2 jours de récupération active (JOG court) si nécessaire
- Utilise des séances courantes: JOG, SL, TEMPO, VMA, Fractionné, Côtes
- Descriptions courtes en notation coach (ex: "JOG 1H & MUSCU", "2 x (5 x 1' r1) R4")

{JSON_ONLY}
{{
  "objective": "description courte de l'objectif",
  "days": [
    {{
      "day": 0,
      "sessionDescription": "JOG 1H",
      "sessionType": "ENDURANCE|FRACTIONNE|SEUIL|VMA|RECUPERATION|COMPETITION|AUTRE",
      "zone1Endurance": 12.5,
      "zone2Seuil": 0,
      "zone3SupraMax": 0,
      "zoneVitesse": 0,
      "totalVolume": 12.5,
      "targetTimes": null,
      "notes": null
    }}
  ]
}}"""

    def parse_response(self, payload: Any, agent_input: FallbackInput) -> GeneratedPlan:
        if not isinstance(payload, dict) or not isinstance(payload.get("days"), list):
            raise SchemaError("Fallback plan must contain a 'days' list")
        raw_days = payload["days"]
        if len(raw_days) != DAYS_PER_WEEK:
            raise SchemaError(f"Le planning doit contenir exactement 7 jours (reçu {len(raw_days)})")

        days: dict[int, GeneratedDay] = {}
        for position, raw in enumerate(raw_days):
            if not isinstance(raw, dict):
                raise SchemaError(f"Day entry {position} is not an object")
            day = to_int(raw.get("day", raw.get("dayOfWeek")), -1)
            if not 0 <= day < DAYS_PER_WEEK or day in days:
                raise SchemaError(f"Invalid or duplicate day index: {raw.get('day')}")
            days[day] = day_from_payload(raw, day)

        request = agent_input.request
        plan = GeneratedPlan(
            objective=to_text(payload.get("objective")) or f"{request.objective} - {request.period}",
            days=[days[day] for day in range(DAYS_PER_WEEK)],
        )
        for warning in soft_check_warnings(plan, agent_input.volume_target):
            logger.warning("Fallback plan soft check", warning=warning)
        return plan


async def generate_fallback_plan(
    request: GenerationRequest,
    gateway: GenerationGateway,
    volume_target: VolumeTarget | None = None,
    *,
    max_retries: int = 3,
    backoff_seconds: float = 2.0,
    sleep: Sleep | None = None,
) -> GeneratedPlan:
    """Generate a week with the single-call generator.

    Args:
        request: Generation request
        gateway: Generation gateway
        volume_target: Precomputed target; computed from the request when None
        max_retries: Total number of attempts
        backoff_seconds: Sleep before attempt n+1 is backoff_seconds * n
        sleep: Injectable sleep coroutine

    Returns:
        GeneratedPlan with exactly 7 days

    Raises:
        FallbackExhaustedError: If every attempt failed
    """
    target = volume_target or calculate_target_volume(request.athlete_stats, request.objective, request.period)
    config = AgentConfig(
        name="FallbackPlanAgent",
        temperature=0.7,
        max_tokens=2000,
        max_retries=max_retries,
        backoff_seconds=backoff_seconds,
    )
    agent = FallbackPlanAgent(gateway, config, sleep)
    result = await agent.execute(FallbackInput(request=request, volume_target=target))
    if not result.success or result.data is None:
        raise FallbackExhaustedError(
            f"Fallback generation failed after {result.attempts} attempt(s): {result.error}"
        )
    logger.info("Fallback plan generated", attempts=result.attempts, total_km=result.data.total_km)
    return result.data
