"""Weekly volume target calculator.

Deterministic: turns load statistics, objective and period into a
min/target/max weekly distance and a zone split. Used to seed prompts and to
cross-check generated plans.
"""

from loguru import logger

from coachweek.planning.coercion import fold_label
from coachweek.planning.schemas import AthleteStats, VolumeDistribution, VolumeTarget

DEFAULT_BASE_VOLUME_KM = 80.0

OBJECTIVE_MULTIPLIERS = {
    "BASE": 1.0,
    "RESISTANCE": 1.15,
    "COMPETITION": 0.9,
    "RECUPERATION": 0.7,
}

PERIOD_MULTIPLIERS = {
    "AFFUTAGE": 0.75,
    "SPECIFIQUE": 1.1,
    "GENERAL": 1.0,
}

ACWR_HIGH = 1.3
ACWR_LOW = 0.8
ACWR_HIGH_MULTIPLIER = 0.85
ACWR_LOW_MULTIPLIER = 1.1

BAND_LOW = 0.9
BAND_HIGH = 1.1

DEFAULT_DISTRIBUTION = VolumeDistribution(zone1=0.65, zone2=0.20, zone3=0.10, speed=0.05)
OBJECTIVE_DISTRIBUTIONS = {
    "RESISTANCE": VolumeDistribution(zone1=0.55, zone2=0.30, zone3=0.10, speed=0.05),
    "COMPETITION": VolumeDistribution(zone1=0.50, zone2=0.25, zone3=0.15, speed=0.10),
    "RECUPERATION": VolumeDistribution(zone1=0.90, zone2=0.05, zone3=0.03, speed=0.02),
}


def normalize_objective(objective: str) -> str:
    """Fold an objective label ("Résistance", "compétition proche") to its key."""
    folded = fold_label(objective)
    for key in OBJECTIVE_MULTIPLIERS:
        if folded.startswith(key):
            return key
    return folded


def normalize_period(period: str) -> str:
    folded = fold_label(period)
    for key in PERIOD_MULTIPLIERS:
        if folded.startswith(key):
            return key
    return folded


def objective_multiplier(objective: str) -> float:
    return OBJECTIVE_MULTIPLIERS.get(normalize_objective(objective), 1.0)


def period_multiplier(period: str) -> float:
    return PERIOD_MULTIPLIERS.get(normalize_period(period), 1.0)


def acwr_multiplier(acwr: float) -> float:
    """Safety factor: back off above ACWR 1.3, push a little below 0.8."""
    if acwr > ACWR_HIGH:
        return ACWR_HIGH_MULTIPLIER
    if acwr < ACWR_LOW:
        return ACWR_LOW_MULTIPLIER
    return 1.0


def calculate_target_volume(stats: AthleteStats, objective: str, period: str) -> VolumeTarget:
    """Compute the weekly volume target.

    Args:
        stats: Athlete load statistics
        objective: Week objective (base, résistance, compétition, récupération)
        period: Training period (général, spécifique, affûtage)

    Returns:
        VolumeTarget with min = 0.9 x target and max = 1.1 x target
    """
    base = stats.weekly_volume or DEFAULT_BASE_VOLUME_KM
    multiplier = objective_multiplier(objective) * period_multiplier(period) * acwr_multiplier(stats.acwr)
    target = base * multiplier

    distribution = OBJECTIVE_DISTRIBUTIONS.get(normalize_objective(objective), DEFAULT_DISTRIBUTION)

    logger.debug(
        "Volume target computed",
        base=base,
        multiplier=round(multiplier, 4),
        target=round(target, 2),
        objective=objective,
        period=period,
        acwr=stats.acwr,
    )

    return VolumeTarget(
        min=round(target * BAND_LOW, 4),
        target=round(target, 4),
        max=round(target * BAND_HIGH, 4),
        distribution=distribution,
    )
