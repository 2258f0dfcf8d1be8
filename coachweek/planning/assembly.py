"""Assembly of the final week from the stage outputs.

Sessions and volume allocations are produced by two different agents, so
their day indices may disagree. Merge rule for each session:

1. the allocation with the same day index;
2. otherwise the allocation at the same position in the list, provided its
   day index is not claimed by another session (logged as a degradation);
3. otherwise zero volume.

Missing days are then filled with rest days, validator adjustments are
applied on the full week and every figure is coerced to a finite non-negative
number.
"""

from collections.abc import Sequence

from loguru import logger

from coachweek.planning.coercion import reconcile_total
from coachweek.planning.schemas import (
    DAYS_PER_WEEK,
    ZONE_FIELDS,
    DayAdjustment,
    GeneratedDay,
    GeneratedPlan,
    QualityCheck,
    SessionDesign,
    VolumeAllocation,
)

ADJUSTMENT_PREFIX = "Ajusté: "


def merge_sessions_and_volumes(
    sessions: Sequence[SessionDesign],
    allocations: Sequence[VolumeAllocation],
) -> list[GeneratedDay]:
    """Pair each session with its allocation.

    Returns:
        One GeneratedDay per session, in session order
    """
    by_day = {a.day: a for a in allocations}
    session_days = {s.day for s in sessions}
    days: list[GeneratedDay] = []

    for position, session in enumerate(sessions):
        allocation = by_day.get(session.day)
        if allocation is None and position < len(allocations):
            candidate = allocations[position]
            if candidate.day not in session_days:
                logger.warning(
                    "Allocation matched by position",
                    session_day=session.day,
                    allocation_day=candidate.day,
                    position=position,
                )
                allocation = candidate
        if allocation is None:
            logger.warning("No allocation for session, using zero volume", day=session.day)
            allocation = VolumeAllocation(day=session.day)

        zones, total = reconcile_total(
            {field: getattr(allocation, field) for field in ZONE_FIELDS},
            allocation.total_km,
        )
        days.append(
            GeneratedDay(
                day=session.day,
                session_description=session.short_description,
                session_type=session.session_type,
                **zones,
                total_km=total,
                target_times=session.target_times,
            )
        )
    return days


def apply_adjustments(days: Sequence[GeneratedDay], adjustments: Sequence[DayAdjustment]) -> list[GeneratedDay]:
    """Append adjustment text to notes; apply figures when the adjustment carries them."""
    by_day = {d.day: d for d in days}
    for adjustment in adjustments:
        day = by_day.get(adjustment.day)
        if day is None:
            logger.warning("Adjustment for a day absent from the plan ignored", day=adjustment.day)
            continue
        note = f"{ADJUSTMENT_PREFIX}{adjustment.adjustment}"
        notes = f"{day.notes} | {note}" if day.notes else note
        update: dict[str, object] = {"notes": notes}

        if adjustment.has_figures:
            zones = {
                field: getattr(adjustment, field) if getattr(adjustment, field) is not None else getattr(day, field)
                for field in ZONE_FIELDS
            }
            total = adjustment.total_km if adjustment.total_km is not None else sum(zones.values())
            zones, total = reconcile_total(zones, total)
            update.update(zones, total_km=total)

        by_day[adjustment.day] = day.model_copy(update=update)
    return [by_day[d.day] for d in days]


def ensure_seven_days(days: Sequence[GeneratedDay]) -> list[GeneratedDay]:
    """Fill missing days with rest days and sort by day index."""
    by_day = {d.day: d for d in days}
    missing = [day for day in range(DAYS_PER_WEEK) if day not in by_day]
    if missing:
        logger.warning("Missing days synthesized as rest", days=missing)
    return [by_day.get(day) or GeneratedDay.rest_day(day) for day in range(DAYS_PER_WEEK)]


def plan_objective(objective: str, period: str, score: int) -> str:
    return f"{objective} - {period} | Score: {score}/100"


def assemble_plan(
    sessions: Sequence[SessionDesign],
    allocations: Sequence[VolumeAllocation],
    quality: QualityCheck,
    objective: str,
    period: str,
) -> GeneratedPlan:
    """Build the final 7-day plan from the stage outputs."""
    days = merge_sessions_and_volumes(sessions, allocations)
    # synthesized rest days can still receive an adjustment
    days = ensure_seven_days(days)
    days = apply_adjustments(days, quality.per_day_adjustments)
    # model_copy skips validation; rebuild so every figure goes through coercion
    days = [GeneratedDay.model_validate(d.model_dump()) for d in days]
    return GeneratedPlan(objective=plan_objective(objective, period, quality.score), days=days)
