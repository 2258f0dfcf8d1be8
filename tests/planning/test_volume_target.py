"""Tests for the weekly volume target calculator."""

import pytest

from coachweek.planning.schemas import AthleteStats
from coachweek.planning.volume_target import (
    DEFAULT_DISTRIBUTION,
    acwr_multiplier,
    calculate_target_volume,
    normalize_objective,
    normalize_period,
)


def test_recovery_week_from_default_base():
    stats = AthleteStats(ctl=50, atl=50, acwr=1.0, weekly_volume=80)
    target = calculate_target_volume(stats, "récupération", "général")

    assert target.target == pytest.approx(56.0)
    assert target.min == pytest.approx(50.4)
    assert target.max == pytest.approx(61.6)
    assert target.distribution.zone1 == 0.90


def test_missing_weekly_volume_uses_80_km():
    target = calculate_target_volume(AthleteStats(acwr=1.0), "base", "général")
    assert target.target == pytest.approx(80.0)
    assert target.distribution == DEFAULT_DISTRIBUTION


def test_multipliers_compound():
    stats = AthleteStats(acwr=1.4, weekly_volume=60)
    target = calculate_target_volume(stats, "Résistance", "spécifique")
    # 60 x 1.15 x 1.1 x 0.85
    assert target.target == pytest.approx(64.515)
    assert target.distribution.zone2 == 0.30


def test_low_acwr_pushes_volume():
    target = calculate_target_volume(AthleteStats(acwr=0.5, weekly_volume=50), "compétition", "affûtage")
    # 50 x 0.9 x 0.75 x 1.1
    assert target.target == pytest.approx(37.125)


@pytest.mark.parametrize(
    ("acwr", "expected"),
    [(1.31, 0.85), (1.3, 1.0), (0.8, 1.0), (0.79, 1.1)],
)
def test_acwr_multiplier_boundaries(acwr, expected):
    assert acwr_multiplier(acwr) == expected


def test_labels_are_folded():
    assert normalize_objective("Compétition proche") == "COMPETITION"
    assert normalize_period("Affûtage") == "AFFUTAGE"


def test_unknown_labels_are_neutral():
    target = calculate_target_volume(AthleteStats(acwr=1.0, weekly_volume=70), "marathon", "hiver")
    assert target.target == pytest.approx(70.0)
    assert target.contains(63.0)
    assert not target.contains(77.1)
