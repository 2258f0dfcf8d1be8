"""Tests for plan assembly.

Tests verify that:
- allocations are matched by day, then by unclaimed position, then zero
- adjustments append notes and apply their figures
- missing days become rest days and the plan is ordered 0-6
"""

import pytest

from coachweek.planning.assembly import (
    ADJUSTMENT_PREFIX,
    apply_adjustments,
    assemble_plan,
    ensure_seven_days,
    merge_sessions_and_volumes,
    plan_objective,
)
from coachweek.planning.schemas import (
    DayAdjustment,
    GeneratedDay,
    QualityCheck,
    SessionDesign,
    SessionType,
    VolumeAllocation,
)


def _session(day: int, description: str = "JOG 1H") -> SessionDesign:
    return SessionDesign(day=day, short_description=description, session_type=SessionType.ENDURANCE)


def _allocation(day: int, zone1: float) -> VolumeAllocation:
    return VolumeAllocation(day=day, zone1_km=zone1, total_km=zone1)


def test_match_by_day_index():
    days = merge_sessions_and_volumes([_session(0), _session(2)], [_allocation(2, 12.0), _allocation(0, 8.0)])
    assert [(d.day, d.total_km) for d in days] == [(0, 8.0), (2, 12.0)]


def test_match_by_unclaimed_position():
    # allocation for day 5 matches no session; day 1 session sits at the same position
    days = merge_sessions_and_volumes([_session(0), _session(1)], [_allocation(0, 8.0), _allocation(5, 11.0)])
    assert days[1].day == 1
    assert days[1].total_km == 11.0


def test_claimed_position_is_not_reused():
    # position 0 holds the allocation of day 0, which belongs to another session
    days = merge_sessions_and_volumes([_session(3), _session(0)], [_allocation(0, 8.0)])
    assert days[0].day == 3
    assert days[0].total_km == 0.0
    assert days[1].total_km == 8.0


def test_no_allocation_means_zero_volume():
    days = merge_sessions_and_volumes([_session(4, "REPOS")], [])
    assert days[0].total_km == 0.0
    assert days[0].session_description == "REPOS"


def test_inconsistent_allocation_is_reconciled():
    allocation = VolumeAllocation(day=0, zone1_km=9.0, zone3_km=4.0, total_km=20.0)
    days = merge_sessions_and_volumes([_session(0)], [allocation])
    assert days[0].total_km == 13.0


def test_adjustment_note_only():
    day = GeneratedDay(day=2, session_description="JOG 1H", session_type=SessionType.ENDURANCE, zone1_km=12, total_km=12)
    adjusted = apply_adjustments([day], [DayAdjustment(day=2, adjustment="Allure très facile")])

    assert adjusted[0].notes == f"{ADJUSTMENT_PREFIX}Allure très facile"
    assert adjusted[0].total_km == 12


def test_adjustment_figures_are_applied_and_notes_joined():
    day = GeneratedDay(
        day=2,
        session_description="JOG 1H",
        session_type=SessionType.ENDURANCE,
        zone1_km=12,
        total_km=12,
        notes="Terrain plat",
    )
    adjusted = apply_adjustments([day], [DayAdjustment(day=2, adjustment="Raccourcir", zone1_km=10.0)])

    assert adjusted[0].zone1_km == 10.0
    assert adjusted[0].total_km == 10.0
    assert adjusted[0].notes == "Terrain plat | Ajusté: Raccourcir"


def test_adjustment_for_unknown_day_is_ignored(log_records):
    day = GeneratedDay.rest_day(4)
    assert apply_adjustments([day], [DayAdjustment(day=1, adjustment="x")]) == [day]
    warnings = [r for r in log_records if r["message"] == "Adjustment for a day absent from the plan ignored"]
    assert [r["extra"]["day"] for r in warnings] == [1]


def test_ensure_seven_days_fills_rest():
    days = ensure_seven_days([GeneratedDay(day=6, session_description="SL 18K", session_type=SessionType.ENDURANCE)])
    assert [d.day for d in days] == list(range(7))
    assert days[0].session_description == "REPOS"
    assert days[0].session_type == SessionType.RECUPERATION
    assert days[6].session_description == "SL 18K"


def test_plan_objective_format():
    assert plan_objective("base", "général", 85) == "base - général | Score: 85/100"


def test_assemble_fixture_week(session_designs, volume_allocations):
    quality = QualityCheck(
        is_valid=True,
        score=88,
        per_day_adjustments=[DayAdjustment(day=2, adjustment="Footing plus court", zone1_km=10.0, total_km=10.0)],
    )
    plan = assemble_plan(session_designs, volume_allocations, quality, "base", "général")

    assert plan.objective == "base - général | Score: 88/100"
    assert [d.day for d in plan.days] == list(range(7))
    assert plan.days[2].total_km == 10.0
    assert plan.days[2].notes == "Ajusté: Footing plus court"
    assert plan.total_km == pytest.approx(76.2)
    for day in plan.days:
        assert day.total_km == pytest.approx(day.zone1_km + day.zone2_km + day.zone3_km + day.speed_km, abs=0.05)


def test_assemble_with_partial_sessions():
    quality = QualityCheck(is_valid=True, score=60)
    plan = assemble_plan([_session(1, "VMA > 10 x 400")], [_allocation(1, 13.0)], quality, "base", "général")
    assert len(plan.days) == 7
    assert plan.total_km == 13.0
    assert sum(1 for d in plan.days if d.session_description == "REPOS") == 6


def test_adjustment_reaches_synthesized_rest_day():
    quality = QualityCheck(
        is_valid=True,
        score=75,
        per_day_adjustments=[DayAdjustment(day=3, adjustment="Ajouter un footing", zone1_km=8.0)],
    )
    plan = assemble_plan([_session(1, "VMA > 10 x 400")], [_allocation(1, 13.0)], quality, "base", "général")

    assert plan.days[3].session_description == "REPOS"
    assert plan.days[3].zone1_km == 8.0
    assert plan.days[3].total_km == 8.0
    assert plan.days[3].notes == f"{ADJUSTMENT_PREFIX}Ajouter un footing"
    assert plan.total_km == 21.0
