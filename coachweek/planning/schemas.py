"""Data model of the plan generation pipeline.

Input side: AthleteStats, HistoricalPlan, GenerationRequest.
Stage outputs: ContextAnalysis, WeekStructure, SessionDesign, VolumeAllocation,
QualityCheck.
Output side: GeneratedDay, GeneratedPlan (the only type returned to callers).

Days are indexed 0 = Monday ... 6 = Sunday everywhere.
"""

from datetime import date
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from coachweek.planning.coercion import VOLUME_TOLERANCE_KM, to_km

DAYS_PER_WEEK = 7
DAY_NAMES = ["Lundi", "Mardi", "Mercredi", "Jeudi", "Vendredi", "Samedi", "Dimanche"]
ZONE_FIELDS = ("zone1_km", "zone2_km", "zone3_km", "speed_km")


class SessionType(StrEnum):
    ENDURANCE = "ENDURANCE"
    FRACTIONNE = "FRACTIONNE"
    SEUIL = "SEUIL"
    VMA = "VMA"
    RECUPERATION = "RECUPERATION"
    COMPETITION = "COMPETITION"
    AUTRE = "AUTRE"


class DayType(StrEnum):
    REPOS = "REPOS"
    ENDURANCE = "ENDURANCE"
    VMA = "VMA"
    SEUIL = "SEUIL"
    FRACTIONNE = "FRACTIONNE"
    COTES = "COTES"
    SORTIE_LONGUE = "SORTIE_LONGUE"
    MUSCU = "MUSCU"
    COMPETITION = "COMPETITION"


class Intensity(StrEnum):
    REST = "rest"
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    MAX = "max"


HIGH_INTENSITIES = {Intensity.HIGH, Intensity.MAX}


# -----------------------------
# Inputs
# -----------------------------
class AthleteStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    ctl: float = Field(0.0, ge=0)
    atl: float = Field(0.0, ge=0)
    acwr: float = Field(0.0, ge=0)
    weekly_volume: float = Field(0.0, ge=0, description="Recent average weekly distance (km)")

    @classmethod
    def from_loads(cls, ctl: float, atl: float, weekly_volume: float) -> "AthleteStats":
        """Build stats deriving ACWR = ATL / CTL (0 when CTL is 0)."""
        acwr = atl / ctl if ctl > 0 else 0.0
        return cls(ctl=ctl, atl=atl, acwr=acwr, weekly_volume=weekly_volume)


class HistoricalDay(BaseModel):
    model_config = ConfigDict(frozen=True)

    day_of_week: int = Field(..., ge=0, le=6)
    session_description: str = ""
    zone1_km: float | None = None
    zone2_km: float | None = None
    zone3_km: float | None = None
    speed_km: float | None = None
    total_km: float | None = None


class HistoricalPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    week_start: date
    days: list[HistoricalDay] = Field(default_factory=list)

    @property
    def total_km(self) -> float:
        return sum(d.total_km or 0.0 for d in self.days)


class GenerationRequest(BaseModel):
    """Immutable input of one pipeline run.

    Attributes:
        objective: base | résistance | compétition | récupération
        period: général | spécifique | affûtage
        constraints: Free-text coach constraints (optional)
        historical_plans: Past published weeks, most recent first
    """

    model_config = ConfigDict(frozen=True)

    athlete_stats: AthleteStats
    objective: str
    period: str
    constraints: str | None = None
    historical_plans: list[HistoricalPlan] = Field(default_factory=list)


class VolumeDistribution(BaseModel):
    """Zone split as fractions of the weekly volume."""

    model_config = ConfigDict(frozen=True)

    zone1: float
    zone2: float
    zone3: float
    speed: float


class VolumeTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: float
    target: float
    max: float
    distribution: VolumeDistribution

    def contains(self, volume_km: float) -> bool:
        return self.min <= volume_km <= self.max


# -----------------------------
# Stage outputs
# -----------------------------
class AthleteProfile(BaseModel):
    level: str
    current_form: str = ""
    fatigue_risk: str
    strengths: list[str] = Field(default_factory=list)
    areas_to_improve: list[str] = Field(default_factory=list)


class WeekRecommendation(BaseModel):
    week_type: str
    volume_multiplier: float = 1.0
    intensity_level: str = ""
    key_focus: str = ""


class VolumeRecommendation(BaseModel):
    min: float
    target: float
    max: float


class SessionMix(BaseModel):
    """Share of the week per session family, in percent."""

    endurance: float = 0.0
    threshold: float = 0.0
    vma: float = 0.0
    speed: float = 0.0
    strength: float = 0.0
    rest: float = 0.0

    @property
    def total(self) -> float:
        return self.endurance + self.threshold + self.vma + self.speed + self.strength + self.rest


class ContextAnalysis(BaseModel):
    athlete_profile: AthleteProfile
    week_recommendation: WeekRecommendation
    historical_insights: list[str] = Field(default_factory=list)
    volume_recommendation: VolumeRecommendation
    session_mix: SessionMix
    warnings: list[str] = Field(default_factory=list)


class DayPlan(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6)
    day_type: DayType
    intensity: Intensity
    estimated_volume_km: float = Field(0.0, ge=0)
    notes: str | None = None


class WeekStructure(BaseModel):
    days: list[DayPlan]
    weekly_objective: str = ""
    key_session_days: list[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_days(self) -> "WeekStructure":
        indices = sorted(d.day_of_week for d in self.days)
        if indices != list(range(DAYS_PER_WEEK)):
            raise ValueError(f"Week structure must cover days 0-6 exactly once, got {indices}")
        return self

    @property
    def total_volume_km(self) -> float:
        return round(sum(d.estimated_volume_km for d in self.days), 2)


class ZonePercentages(BaseModel):
    z1: float = 0.0
    z2: float = 0.0
    z3: float = 0.0
    speed: float = 0.0


class SessionDesign(BaseModel):
    day: int = Field(..., ge=0, le=6)
    short_description: str
    session_type: SessionType
    target_zone_percentages: ZonePercentages = Field(default_factory=ZonePercentages)
    target_times: str | None = None
    rpe_target: int = Field(5, ge=1, le=10)


class VolumeAllocation(BaseModel):
    day: int = Field(..., ge=0, le=6)
    zone1_km: float = 0.0
    zone2_km: float = 0.0
    zone3_km: float = 0.0
    speed_km: float = 0.0
    total_km: float = 0.0

    @field_validator(*ZONE_FIELDS, "total_km", mode="before")
    @classmethod
    def _coerce_km(cls, value: object) -> float:
        return to_km(value)

    @property
    def zone_sum(self) -> float:
        return round(self.zone1_km + self.zone2_km + self.zone3_km + self.speed_km, 2)

    def is_consistent(self, tolerance: float = VOLUME_TOLERANCE_KM) -> bool:
        return abs(self.total_km - self.zone_sum) <= tolerance


class DayAdjustment(BaseModel):
    """Validator proposal for one day; figures are only set when the validator gave them."""

    day: int = Field(..., ge=0, le=6)
    adjustment: str
    zone1_km: float | None = None
    zone2_km: float | None = None
    zone3_km: float | None = None
    speed_km: float | None = None
    total_km: float | None = None

    @property
    def has_figures(self) -> bool:
        return any(getattr(self, name) is not None for name in (*ZONE_FIELDS, "total_km"))


class QualityCheck(BaseModel):
    is_valid: bool
    score: int = Field(..., ge=0, le=100)
    issues: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    per_day_adjustments: list[DayAdjustment] = Field(default_factory=list)


# -----------------------------
# Output
# -----------------------------
class GeneratedDay(BaseModel):
    day: int = Field(..., ge=0, le=6)
    session_description: str
    session_type: SessionType
    zone1_km: float = 0.0
    zone2_km: float = 0.0
    zone3_km: float = 0.0
    speed_km: float = 0.0
    total_km: float = 0.0
    target_times: str | None = None
    notes: str | None = None

    @field_validator(*ZONE_FIELDS, "total_km", mode="before")
    @classmethod
    def _coerce_km(cls, value: object) -> float:
        return to_km(value)

    @classmethod
    def rest_day(cls, day: int) -> "GeneratedDay":
        return cls(day=day, session_description="REPOS", session_type=SessionType.RECUPERATION)


class GeneratedPlan(BaseModel):
    objective: str
    days: list[GeneratedDay]

    @model_validator(mode="after")
    def _check_days(self) -> "GeneratedPlan":
        indices = [d.day for d in self.days]
        if indices != list(range(DAYS_PER_WEEK)):
            raise ValueError(f"Plan must contain days 0-6 once each in ascending order, got {indices}")
        return self

    @property
    def total_km(self) -> float:
        return round(sum(d.total_km for d in self.days), 2)

    def zone_totals(self) -> dict[str, float]:
        return {name: round(sum(getattr(d, name) for d in self.days), 2) for name in ZONE_FIELDS}


class PlanGenerationResult(BaseModel):
    """Service output: the plan plus the figures a caller shows next to it."""

    plan: GeneratedPlan
    source: Literal["agents", "fallback"]
    volume_target: VolumeTarget
    actual_volume_km: float
