"""Context analyzer agent: athlete profile, week type and session mix."""

from dataclasses import dataclass
from typing import Any

from loguru import logger

from coachweek.agents.base import AgentConfig, BaseAgent, Sleep
from coachweek.agents.errors import SchemaError
from coachweek.agents.prompt_blocks import (
    JSON_ONLY,
    athlete_stats_block,
    constraints_line,
    history_summary,
    volume_target_block,
)
from coachweek.llm.gateway import GenerationGateway
from coachweek.planning.coercion import clamp, normalize_percentages, to_float, to_str_list, to_text
from coachweek.planning.schemas import (
    AthleteProfile,
    ContextAnalysis,
    GenerationRequest,
    SessionMix,
    VolumeRecommendation,
    VolumeTarget,
    WeekRecommendation,
)

RECOVERY_ACWR = 1.5
MIN_VOLUME_MULTIPLIER = 0.3
MAX_VOLUME_MULTIPLIER = 1.5

# Payload keys, French or English, mapped to SessionMix fields
_MIX_KEYS = {
    "endurance": "endurance",
    "seuil": "threshold",
    "threshold": "threshold",
    "vma": "vma",
    "vitesse": "speed",
    "speed": "speed",
    "musculation": "strength",
    "strength": "strength",
    "repos": "rest",
    "rest": "rest",
}

DEFAULT_SESSION_MIX = SessionMix(endurance=60, threshold=15, vma=10, speed=5, strength=5, rest=5)


@dataclass(frozen=True)
class ContextAnalyzerInput:
    request: GenerationRequest
    volume_target: VolumeTarget


def _require_mapping(payload: Any, key: str) -> dict[str, Any]:
    value = payload.get(key)
    if not isinstance(value, dict):
        raise SchemaError(f"Missing required field '{key}'")
    return value


def parse_session_mix(raw: Any) -> SessionMix:
    """Map a sessionMix payload and rescale it to 100 when it drifts past 10 points."""
    if not isinstance(raw, dict):
        return DEFAULT_SESSION_MIX
    mix: dict[str, float] = {}
    for key, value in raw.items():
        field = _MIX_KEYS.get(str(key).lower())
        if field:
            mix[field] = mix.get(field, 0.0) + max(0.0, to_float(value))
    total = sum(mix.values())
    if total <= 0:
        return DEFAULT_SESSION_MIX
    normalized = normalize_percentages(mix)
    if normalized != mix:
        logger.warning("Session mix rescaled to 100%", original_total=round(total, 1))
    return SessionMix(**normalized)


class ContextAnalyzerAgent(BaseAgent[ContextAnalyzerInput, ContextAnalysis]):
    """Reads load statistics and history, proposes the week type and mix."""

    def __init__(self, gateway: GenerationGateway, config: AgentConfig | None = None, sleep: Sleep | None = None):
        super().__init__(
            gateway,
            config or AgentConfig(name="ContextAnalyzerAgent", temperature=0.3, max_tokens=1500),
            sleep,
        )

    def build_prompt(self, agent_input: ContextAnalyzerInput) -> str:
        request = agent_input.request
        return f"""Tu es un coach expert middle distance (800m-5000m) qui analyse le profil d'un athlète pour planifier sa semaine.

DONNÉES ATHLÈTE:
{athlete_stats_block(request.athlete_stats)}
- Historique récent: {history_summary(request.historical_plans)}

OBJECTIF: {request.objective}
PÉRIODE: {request.period}
{constraints_line(request.constraints)}

{volume_target_block(agent_input.volume_target)}

RÈGLES D'ANALYSE:
1. Si ACWR > 1.5 → semaine "récupération" obligatoire
2. Si période = "affûtage" → semaine "compétition" avec volume réduit (-30%)
3. Si objectif = "base" → semaine "volume" (70% endurance)
4. Si objectif = "résistance" → semaine "intensité" (20% VMA, 15% seuils)

{JSON_ONLY}
{{
  "athleteProfile": {{
    "level": "débutant|intermédiaire|confirmé|élite",
    "currentForm": "description de la forme actuelle",
    "fatigueRisk": "faible|modéré|élevé|critique",
    "strengths": ["point fort"],
    "areasToImprove": ["axe de progrès"]
  }},
  "weekRecommendation": {{
    "type": "volume|intensité|mixte|récupération|compétition",
    "volumeMultiplier": 1.0,
    "intensityLevel": "légère|modérée|haute|très haute",
    "keyFocus": "focus principal de la semaine"
  }},
  "volumeRecommendation": {{"min": {agent_input.volume_target.min:.0f}, "target": {agent_input.volume_target.target:.0f}, "max": {agent_input.volume_target.max:.0f}}},
  "sessionMix": {{"endurance": 60, "seuil": 15, "vma": 10, "vitesse": 5, "musculation": 5, "repos": 5}},
  "historicalInsights": ["observation tirée de l'historique"],
  "warnings": ["avertissement si nécessaire"]
}}"""

    def parse_response(self, payload: Any, agent_input: ContextAnalyzerInput) -> ContextAnalysis:
        if not isinstance(payload, dict):
            raise SchemaError("Context analysis must be a JSON object")

        profile_raw = _require_mapping(payload, "athleteProfile")
        week_raw = _require_mapping(payload, "weekRecommendation")

        profile = AthleteProfile(
            level=to_text(profile_raw.get("level")) or "intermédiaire",
            current_form=to_text(profile_raw.get("currentForm")) or "",
            fatigue_risk=to_text(profile_raw.get("fatigueRisk")) or "modéré",
            strengths=to_str_list(profile_raw.get("strengths")),
            areas_to_improve=to_str_list(profile_raw.get("areasToImprove")),
        )

        week_type = to_text(week_raw.get("type") or week_raw.get("weekType") or payload.get("weekType"))
        if not week_type:
            raise SchemaError("Missing week type in 'weekRecommendation'")
        week = WeekRecommendation(
            week_type=week_type,
            volume_multiplier=clamp(
                to_float(week_raw.get("volumeMultiplier"), 1.0), MIN_VOLUME_MULTIPLIER, MAX_VOLUME_MULTIPLIER
            ),
            intensity_level=to_text(week_raw.get("intensityLevel")) or "",
            key_focus=to_text(week_raw.get("keyFocus")) or "",
        )

        target = agent_input.volume_target
        volume_raw = payload.get("volumeRecommendation")
        if isinstance(volume_raw, dict):
            volume = VolumeRecommendation(
                min=to_float(volume_raw.get("min"), target.min),
                target=to_float(volume_raw.get("target"), target.target),
                max=to_float(volume_raw.get("max"), target.max),
            )
        else:
            volume = VolumeRecommendation(min=target.min, target=target.target, max=target.max)

        warnings = to_str_list(payload.get("warnings"))
        acwr = agent_input.request.athlete_stats.acwr
        if acwr > RECOVERY_ACWR and "recup" not in week_type.lower().replace("é", "e"):
            warnings.append(f"ACWR {acwr:.2f} > {RECOVERY_ACWR}: une semaine de récupération est recommandée")

        return ContextAnalysis(
            athlete_profile=profile,
            week_recommendation=week,
            historical_insights=to_str_list(payload.get("historicalInsights") or payload.get("recommendations")),
            volume_recommendation=volume,
            session_mix=parse_session_mix(payload.get("sessionMix")),
            warnings=warnings,
        )
