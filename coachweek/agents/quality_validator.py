"""Quality validator agent.

The model reviews the assembled week and may propose per-day adjustments.
Code-level checks (deterministic_findings) run on the same data and their
findings are merged into the reported issues. Both are advisory: they end up
as notes and issues, they never reject the plan.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from loguru import logger

from coachweek.agents.base import AgentConfig, BaseAgent, Sleep
from coachweek.agents.errors import SchemaError
from coachweek.agents.prompt_blocks import JSON_ONLY, constraints_line, volume_target_block
from coachweek.agents.volume_allocator import pick
from coachweek.llm.gateway import GenerationGateway
from coachweek.planning.coercion import clamp, to_int, to_km, to_str_list, to_text
from coachweek.planning.schemas import (
    DAY_NAMES,
    DAYS_PER_WEEK,
    ZONE_FIELDS,
    ContextAnalysis,
    DayAdjustment,
    GenerationRequest,
    QualityCheck,
    SessionDesign,
    SessionType,
    VolumeAllocation,
    VolumeTarget,
)
from coachweek.planning.volume_target import normalize_objective

MIN_ZONE1_SHARE = 0.5
HIGH_RPE = 8
HIGH_INTENSITY_TYPES = {SessionType.VMA, SessionType.FRACTIONNE, SessionType.COMPETITION}


@dataclass(frozen=True)
class QualityValidatorInput:
    request: GenerationRequest
    analysis: ContextAnalysis
    sessions: list[SessionDesign]
    allocations: list[VolumeAllocation]
    volume_target: VolumeTarget


def _is_high_intensity(session: SessionDesign) -> bool:
    return session.session_type in HIGH_INTENSITY_TYPES or session.rpe_target >= HIGH_RPE


def _is_recovery_week(objective: str, analysis: ContextAnalysis | None) -> bool:
    if normalize_objective(objective) == "RECUPERATION":
        return True
    if analysis is None:
        return False
    return normalize_objective(analysis.week_recommendation.week_type) == "RECUPERATION"


def deterministic_findings(
    sessions: Sequence[SessionDesign],
    allocations: Sequence[VolumeAllocation],
    volume_target: VolumeTarget,
    objective: str,
    analysis: ContextAnalysis | None = None,
) -> list[str]:
    """Code-level plan checks.

    Args:
        sessions: Composed sessions
        allocations: Per-day volumes; days without an allocation count as rest
        volume_target: Deterministic weekly target
        objective: Week objective, used to relax the zone 1 rule in recovery weeks
        analysis: Optional context analysis (its week type also marks recovery weeks)

    Returns:
        Human-readable findings (French), empty when the plan passes
    """
    findings: list[str] = []
    totals = {day: 0.0 for day in range(DAYS_PER_WEEK)}
    for allocation in allocations:
        totals[allocation.day] = allocation.total_km
    total = round(sum(totals.values()), 2)

    if not volume_target.contains(total):
        findings.append(
            f"Volume total {total:.1f} km hors de la fourchette cible "
            f"({volume_target.min:.1f} - {volume_target.max:.1f} km)"
        )

    if all(value > 0 for value in totals.values()):
        findings.append("Aucun jour de repos complet dans la semaine")

    by_day = {s.day: s for s in sessions}
    for day in range(DAYS_PER_WEEK - 1):
        today, tomorrow = by_day.get(day), by_day.get(day + 1)
        if today and tomorrow and _is_high_intensity(today) and _is_high_intensity(tomorrow):
            findings.append(f"Deux séances haute intensité consécutives: {DAY_NAMES[day]} et {DAY_NAMES[day + 1]}")

    zone1 = sum(a.zone1_km for a in allocations)
    if total > 0 and not _is_recovery_week(objective, analysis) and zone1 / total < MIN_ZONE1_SHARE:
        findings.append(f"Zone 1 à {zone1 / total:.0%} du volume (minimum {MIN_ZONE1_SHARE:.0%})")

    return findings


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "oui", "1")
    return bool(value)


def parse_adjustment(raw: Any) -> DayAdjustment | None:
    if not isinstance(raw, dict):
        return None
    day = to_int(raw.get("day"), -1)
    text = to_text(raw.get("adjustment"))
    if not 0 <= day < DAYS_PER_WEEK or not text:
        return None
    figures = {}
    for field in (*ZONE_FIELDS, "total_km"):
        value = pick(raw, field)
        if value is not None:
            figures[field] = to_km(value)
    return DayAdjustment(day=day, adjustment=text, **figures)


class QualityValidatorAgent(BaseAgent[QualityValidatorInput, QualityCheck]):
    def __init__(self, gateway: GenerationGateway, config: AgentConfig | None = None, sleep: Sleep | None = None):
        super().__init__(
            gateway,
            config or AgentConfig(name="QualityValidatorAgent", temperature=0.2, max_tokens=2000),
            sleep,
        )

    def build_prompt(self, agent_input: QualityValidatorInput) -> str:
        request = agent_input.request
        allocations = {a.day: a for a in agent_input.allocations}
        lines = []
        for session in agent_input.sessions:
            allocation = allocations.get(session.day)
            volume = allocation.total_km if allocation else 0.0
            lines.append(f"{DAY_NAMES[session.day]} (jour {session.day}): {session.short_description} | {volume:.1f} km")
        total = sum(a.total_km for a in agent_input.allocations)
        zone1 = sum(a.zone1_km for a in agent_input.allocations)
        zone1_share = f"{zone1 / total:.0%}" if total > 0 else "n/a"

        return f"""Tu es un expert en qualité d'entraînement et prévention des blessures.

PLAN PROPOSÉ:
{chr(10).join(lines)}

VOLUME TOTAL: {total:.1f} km (Z1: {zone1:.1f} km, {zone1_share})
VOLUME HABITUEL ATHLÈTE: {request.athlete_stats.weekly_volume:.1f} km
ACWR: {request.athlete_stats.acwr:.2f}
RISQUE FATIGUE: {agent_input.analysis.athlete_profile.fatigue_risk}
{volume_target_block(agent_input.volume_target)}

{constraints_line(request.constraints, "CONTRAINTES UTILISATEUR")}

RÈGLES DE VALIDATION:
1. Volume total dans la fourchette min-max
2. Au moins 1 jour de repos (volume = 0)
3. Z1 (endurance) > 50% du volume total pour une semaine normale
4. Pas 2 séances haute intensité (VMA/Fractionné) consécutives
5. Dimanche = sortie longue si pas de compétition

Vérifie la qualité du plan. Un ajustement peut proposer de nouveaux volumes (km) pour le jour.

{JSON_ONLY}
{{
  "isValid": true,
  "score": 85,
  "issues": ["problème éventuel"],
  "suggestions": ["suggestion d'amélioration"],
  "perDayAdjustments": [
    {{"day": 2, "adjustment": "ajustement si nécessaire", "zone1Endurance": 10.0, "totalVolume": 10.0}}
  ]
}}"""

    def parse_response(self, payload: Any, agent_input: QualityValidatorInput) -> QualityCheck:
        if not isinstance(payload, dict):
            raise SchemaError("Quality check must be a JSON object")
        if "isValid" not in payload and "score" not in payload:
            raise SchemaError("Quality check must contain 'isValid' or 'score'")

        raw_adjustments = payload.get("perDayAdjustments", payload.get("finalAdjustments")) or []
        adjustments = [a for a in (parse_adjustment(raw) for raw in raw_adjustments) if a is not None]

        issues = to_str_list(payload.get("issues"))
        findings = deterministic_findings(
            agent_input.sessions,
            agent_input.allocations,
            agent_input.volume_target,
            agent_input.request.objective,
            agent_input.analysis,
        )
        if findings:
            logger.info("Deterministic quality findings", count=len(findings), findings=findings)
        issues.extend(f for f in findings if f not in issues)

        return QualityCheck(
            is_valid=_to_bool(payload.get("isValid", True)),
            score=int(clamp(to_int(payload.get("score"), 70), 0, 100)),
            issues=issues,
            suggestions=to_str_list(payload.get("suggestions")),
            per_day_adjustments=adjustments,
        )
