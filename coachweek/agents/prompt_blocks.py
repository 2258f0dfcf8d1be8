"""Prompt fragments shared by the planning agents.

All prompts are written in French, the language coaches use in the product.
"""

from collections.abc import Sequence

from coachweek.planning.schemas import DAY_NAMES, AthleteStats, HistoricalPlan, VolumeTarget

JSON_ONLY = "RÉPONDS UNIQUEMENT EN JSON (pas de markdown, pas de commentaires)."

TERSE_NOTATION_RULES = """NOTATION COURTE OBLIGATOIRE (JAMAIS de longues phrases):
✅ BON: "VMA > 12 x 400 r1'30"
✅ BON: "SV2 > 15 x 400 r45 (~1'12)"
✅ BON: "SV1 > 3 x 3K r3"
✅ BON: "CÔTES > 10 x 150 (80%)"
✅ BON: "MUSCU (Bulgare / Squat) + JOG 40'"
✅ BON: "JOG 1H"
✅ BON: "SL 18K"
✅ BON: "REPOS"
❌ INTERDIT: "JOG 16 km en endurance fondamentale + 6 x 100m foulées bondissantes..."
❌ INTERDIT: étirements, mobilité, hydratation dans la description

RÈGLE: description = MAX 30 CARACTÈRES, style télégraphique"""


def acwr_flag(acwr: float) -> str:
    if acwr > 1.5:
        return "⚠️ RISQUE BLESSURE"
    if acwr < 0.8:
        return "⚠️ SOUS-ENTRAÎNEMENT"
    return "✅ OK"


def athlete_stats_block(stats: AthleteStats) -> str:
    return (
        f"- CTL (charge chronique): {stats.ctl:.1f}\n"
        f"- ATL (charge aiguë): {stats.atl:.1f}\n"
        f"- ACWR (ratio de charge): {stats.acwr:.2f} {acwr_flag(stats.acwr)}\n"
        f"- Volume moyen: {stats.weekly_volume:.1f} km/semaine"
    )


def history_summary(plans: Sequence[HistoricalPlan], limit: int = 3) -> str:
    """One line per recent week: "Semaine du 2024-05-06: 62 km"."""
    if not plans:
        return "Pas d'historique"
    return ", ".join(f"Semaine du {plan.week_start.isoformat()}: {plan.total_km:.0f} km" for plan in plans[:limit])


def history_detail(plans: Sequence[HistoricalPlan], limit: int = 4) -> str:
    """Day-by-day listing of the most recent weeks."""
    if not plans:
        return "Aucun historique disponible."
    blocks = []
    for plan in plans[:limit]:
        lines = [f"Semaine du {plan.week_start.isoformat()} ({plan.total_km:.1f} km):"]
        for day in sorted(plan.days, key=lambda d: d.day_of_week):
            lines.append(f"  {DAY_NAMES[day.day_of_week]}: {day.session_description or 'REPOS'} ({day.total_km or 0:.1f} km)")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def constraints_line(constraints: str | None, label: str = "CONTRAINTES") -> str:
    return f"{label}: {constraints}" if constraints else ""


def volume_target_block(target: VolumeTarget) -> str:
    dist = target.distribution
    return (
        f"VOLUME CIBLE: {target.target:.1f} km (fourchette {target.min:.1f} - {target.max:.1f} km)\n"
        f"RÉPARTITION CIBLE: Z1 {dist.zone1:.0%}, Z2 {dist.zone2:.0%}, Z3 {dist.zone3:.0%}, Vitesse {dist.speed:.0%}"
    )
