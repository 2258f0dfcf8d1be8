"""Session zone calculator.

Reads a terse coach notation ("VMA > 10 x 400", "SV1 > 3 x 10' r2",
"JOG 1H", "SL 18K", "REPOS") and converts it into per-zone distances using
the athlete's own pace thresholds.

Zones:
- zone 1: endurance (jogging, long runs, warm-up and cool-down)
- zone 2: threshold (SV1, SV2, tempo)
- zone 3: near-maximal aerobic (VMA, hills, races)
- speed: short intervals (fractionné)

Quality sessions always carry a fixed warm-up and cool-down in zone 1.
"""

import re
from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from coachweek.planning.schemas import VolumeAllocation

WARMUP_KM = 4.5
COOLDOWN_KM = 4.5

DEFAULT_VMA_KMH = 20.0
DEFAULT_SV1_KMH = 16.0
DEFAULT_SV2_KMH = 17.0
DEFAULT_AS10_KMH = 17.5

DEFAULT_ENDURANCE_KM = 10.0
DEFAULT_ENDURANCE_MIN = 60
DEFAULT_LONG_RUN_MIN = 90
DEFAULT_THRESHOLD_KM = 8.0
DEFAULT_VMA_KM = 2.4
DEFAULT_INTERVAL_KM = 1.5
DEFAULT_RACE_KM = 5.0


class SessionKind(StrEnum):
    REST = "rest"
    ENDURANCE = "endurance"
    THRESHOLD = "threshold"
    VMA = "vma"
    INTERVAL = "interval"
    STRENGTH = "strength"
    COMPETITION = "competition"


class AthleteThresholds(BaseModel):
    """Athlete-specific pace references.

    Attributes:
        vma: Maximal aerobic speed in km/h (e.g., 20.0)
        sv1: Aerobic threshold pace in decimal min/km (3.75 = 3'45/km)
        sv2: Anaerobic threshold pace in decimal min/km
        as10: 10 km race pace in decimal min/km
        as5: 5 km race pace in decimal min/km
    """

    model_config = ConfigDict(frozen=True)

    vma: float | None = Field(None, gt=0)
    sv1: float | None = Field(None, gt=0)
    sv2: float | None = Field(None, gt=0)
    as10: float | None = Field(None, gt=0)
    as5: float | None = Field(None, gt=0)

    @property
    def vma_kmh(self) -> float:
        return self.vma or DEFAULT_VMA_KMH

    @property
    def sv1_kmh(self) -> float:
        return 60 / self.sv1 if self.sv1 else DEFAULT_SV1_KMH

    @property
    def sv2_kmh(self) -> float:
        return 60 / self.sv2 if self.sv2 else DEFAULT_SV2_KMH

    @property
    def as10_kmh(self) -> float:
        return 60 / self.as10 if self.as10 else DEFAULT_AS10_KMH

    @property
    def endurance_kmh(self) -> float:
        # easy running sits 25% slower than SV1, or at 65% of VMA
        if self.sv1:
            return 60 / (self.sv1 * 1.25)
        return self.vma_kmh * 0.65


@dataclass(frozen=True)
class ParsedSession:
    kind: SessionKind
    duration_min: float | None = None
    distance_km: float | None = None
    reps: int | None = None
    rep_distance_km: float | None = None
    rep_duration_min: float | None = None
    intensity: str | None = None


_NESTED_REPS_RE = re.compile(r"(\d+)\s*X\s*\(\s*(\d+)\s*X\s*(\d+(?:[.,]\d+)?)\s*(KM|K|M|'|MIN)?")
_REPS_RE = re.compile(r"(\d+)\s*X\s*(\d+(?:[.,]\d+)?)\s*(KM|K|M|'|MIN)?")
_HOURS_RE = re.compile(r"(\d+)\s*H\s*(\d+)?")
_MINUTES_RE = re.compile(r"(\d+)\s*(?:'|MIN)")
_KM_RE = re.compile(r"(\d+(?:[.,]\d+)?)\s*(?:KM|K)\b")
_METERS_RE = re.compile(r"(\d+)\s*M\b")


def _number(text: str) -> float:
    return float(text.replace(",", "."))


def _parse_reps(desc: str) -> tuple[int, float | None, float | None] | None:
    """Extract a repetition token.

    Returns:
        (reps, rep_distance_km, rep_duration_min) or None. Bare numbers of 100
        and above are meters ("8 x 400"), smaller ones are minutes ("8 x 1").
    """
    nested = _NESTED_REPS_RE.search(desc)
    if nested:
        reps = int(nested.group(1)) * int(nested.group(2))
        value, unit = _number(nested.group(3)), nested.group(4)
    else:
        match = _REPS_RE.search(desc)
        if not match:
            return None
        reps = int(match.group(1))
        value, unit = _number(match.group(2)), match.group(3)

    if unit in ("K", "KM"):
        return reps, value, None
    if unit == "M" or (unit is None and value >= 100):
        return reps, value / 1000, None
    return reps, None, value


def _parse_duration(desc: str) -> float | None:
    hours = _HOURS_RE.search(desc)
    if hours:
        return int(hours.group(1)) * 60 + (int(hours.group(2)) if hours.group(2) else 0)
    minutes = _MINUTES_RE.search(desc)
    if minutes:
        return float(minutes.group(1))
    return None


def _parse_distance(desc: str) -> float | None:
    km = _KM_RE.search(desc)
    if km:
        return _number(km.group(1))
    meters = _METERS_RE.search(desc)
    if meters:
        return int(meters.group(1)) / 1000
    return None


def _rep_session(kind: SessionKind, desc: str, intensity: str | None = None) -> ParsedSession:
    reps = _parse_reps(desc)
    if reps is None:
        return ParsedSession(kind=kind, intensity=intensity)
    count, rep_distance, rep_duration = reps
    return ParsedSession(
        kind=kind,
        reps=count,
        rep_distance_km=rep_distance,
        rep_duration_min=rep_duration,
        intensity=intensity,
    )


def parse_session_description(description: str) -> ParsedSession:
    """Classify a terse session description and pull out its numbers.

    Keywords are checked in priority order: rest, endurance (JOG, SL, ACTIF),
    threshold (TEMPO, SV1, SV2), VMA, hills, strength, intervals, competition.
    Strength work written with sets ("GAINAGE 3 x 1'") stays strength.
    Anything else is read as one hour of endurance.
    """
    desc = description.upper().strip()

    if not desc or desc == "OFF" or "REPOS" in desc:
        return ParsedSession(kind=SessionKind.REST)

    if "JOG" in desc:
        return ParsedSession(kind=SessionKind.ENDURANCE, duration_min=_parse_duration(desc) or DEFAULT_ENDURANCE_MIN)

    if re.search(r"\bSL\b", desc) or "SORTIE LONGUE" in desc:
        duration = _parse_duration(desc)
        if duration:
            return ParsedSession(kind=SessionKind.ENDURANCE, duration_min=duration)
        distance = _parse_distance(desc)
        if distance:
            return ParsedSession(kind=SessionKind.ENDURANCE, distance_km=distance)
        return ParsedSession(kind=SessionKind.ENDURANCE, duration_min=DEFAULT_LONG_RUN_MIN)

    if "ACTIF" in desc:
        return ParsedSession(kind=SessionKind.ENDURANCE, duration_min=_parse_duration(desc) or DEFAULT_ENDURANCE_MIN)

    if "TEMPO" in desc:
        distance = _parse_distance(desc)
        if distance:
            return ParsedSession(kind=SessionKind.THRESHOLD, distance_km=distance, intensity="AS10")
        return ParsedSession(kind=SessionKind.THRESHOLD, duration_min=_parse_duration(desc), intensity="AS10")

    if "SV1" in desc or "SEUIL 1" in desc:
        return _rep_session(SessionKind.THRESHOLD, desc, intensity="SV1")

    if "SV2" in desc or "SEUIL 2" in desc or "SEUIL" in desc:
        return _rep_session(SessionKind.THRESHOLD, desc, intensity="SV2")

    if "VMA" in desc:
        return _rep_session(SessionKind.VMA, desc, intensity="100%")

    if "CÔTE" in desc or "COTE" in desc:
        return _rep_session(SessionKind.VMA, desc, intensity="COTES")

    if "MUSCU" in desc or "PPG" in desc or "GAINAGE" in desc:
        return ParsedSession(kind=SessionKind.STRENGTH)

    if _parse_reps(desc) is not None:
        return _rep_session(SessionKind.INTERVAL, desc)

    if "COMPET" in desc or re.search(r"\d+\s*(?:M|K|KM)\s*$", desc):
        return ParsedSession(kind=SessionKind.COMPETITION, distance_km=_parse_distance(desc))

    return ParsedSession(kind=SessionKind.ENDURANCE, duration_min=DEFAULT_ENDURANCE_MIN)


def _quality(day: int, main_zone: str, main_km: float) -> VolumeAllocation:
    zones = {
        "zone1_km": WARMUP_KM + COOLDOWN_KM,
        "zone2_km": 0.0,
        "zone3_km": 0.0,
        "speed_km": 0.0,
    }
    zones[main_zone] += main_km
    zones = {key: round(value, 1) for key, value in zones.items()}
    return VolumeAllocation(day=day, **zones, total_km=round(sum(zones.values()), 1))


def calculate_zones_from_session(
    parsed: ParsedSession,
    thresholds: AthleteThresholds | None = None,
    day: int = 0,
) -> VolumeAllocation:
    """Convert a parsed session into per-zone distances (km, 0.1 precision)."""
    thresholds = thresholds or AthleteThresholds()

    if parsed.kind in (SessionKind.REST, SessionKind.STRENGTH):
        return VolumeAllocation(day=day)

    if parsed.kind == SessionKind.ENDURANCE:
        distance = parsed.distance_km
        if not distance and parsed.duration_min:
            distance = parsed.duration_min / 60 * thresholds.endurance_kmh
        distance = round(distance or DEFAULT_ENDURANCE_KM, 1)
        return VolumeAllocation(day=day, zone1_km=distance, total_km=distance)

    if parsed.kind == SessionKind.THRESHOLD:
        if parsed.distance_km:
            main = parsed.distance_km
        elif parsed.reps and parsed.rep_distance_km:
            main = parsed.reps * parsed.rep_distance_km
        elif parsed.duration_min or (parsed.reps and parsed.rep_duration_min):
            minutes = parsed.duration_min or parsed.reps * parsed.rep_duration_min
            speed = {
                "SV1": thresholds.sv1_kmh,
                "AS10": thresholds.as10_kmh,
            }.get(parsed.intensity or "", thresholds.sv2_kmh)
            main = minutes / 60 * speed
        else:
            main = DEFAULT_THRESHOLD_KM
        return _quality(day, "zone2_km", main)

    if parsed.kind == SessionKind.VMA:
        if parsed.reps and parsed.rep_distance_km:
            main = parsed.reps * parsed.rep_distance_km
        elif parsed.reps and parsed.rep_duration_min:
            main = parsed.reps * parsed.rep_duration_min / 60 * thresholds.vma_kmh
        else:
            main = DEFAULT_VMA_KM
        return _quality(day, "zone3_km", main)

    if parsed.kind == SessionKind.INTERVAL:
        if parsed.reps and parsed.rep_distance_km:
            main = parsed.reps * parsed.rep_distance_km
        else:
            main = DEFAULT_INTERVAL_KM
        return _quality(day, "speed_km", main)

    # competition: race distance in zone 3 on top of warm-up and cool-down
    return _quality(day, "zone3_km", parsed.distance_km or DEFAULT_RACE_KM)


def calculate_session_zones(
    description: str,
    thresholds: AthleteThresholds | None = None,
    day: int = 0,
) -> VolumeAllocation:
    """Compute per-zone distances for a coach-typed session description.

    Args:
        description: Terse session notation (e.g., "VMA > 10 x 400")
        thresholds: Athlete pace references; defaults apply when omitted
        day: Day index to stamp on the result

    Returns:
        VolumeAllocation whose total equals the sum of its zones
    """
    return calculate_zones_from_session(parse_session_description(description), thresholds, day)
