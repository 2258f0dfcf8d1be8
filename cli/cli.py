"""CLI for the coachweek plan generator.

Developer CLI to run the generation pipeline locally against the configured
LLM provider, and to inspect the deterministic calculators without any
model call.
"""

import asyncio
import json
from pathlib import Path
from typing import Any

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from coachweek.agents.errors import PlanGenerationFailedError
from coachweek.config.settings import Settings, get_settings, normalize_provider
from coachweek.core.logger import setup_logger
from coachweek.llm.gateway import GenerationGateway, build_gateway
from coachweek.planning.schemas import DAY_NAMES, AthleteStats, GenerationRequest, PlanGenerationResult, VolumeTarget
from coachweek.planning.service import generate_weekly_plan
from coachweek.planning.session_zones import AthleteThresholds, calculate_session_zones
from coachweek.planning.volume_target import calculate_target_volume

console = Console()

app = typer.Typer(
    name="coachweek",
    help="coachweek - weekly training plan generation",
    add_completion=False,
)


def _load_request(path: Path) -> tuple[GenerationRequest, AthleteThresholds | None]:
    """Read a request file.

    The file holds a GenerationRequest (snake_case keys) plus an optional
    "thresholds" object. When "acwr" is absent it is derived from ctl/atl.
    """
    data: dict[str, Any] = json.loads(path.read_text(encoding="utf-8"))
    thresholds_data = data.pop("thresholds", None)
    stats = data.get("athlete_stats") or {}
    if "acwr" not in stats:
        data["athlete_stats"] = AthleteStats.from_loads(
            ctl=float(stats.get("ctl", 0.0)),
            atl=float(stats.get("atl", 0.0)),
            weekly_volume=float(stats.get("weekly_volume", 0.0)),
        )
    request = GenerationRequest.model_validate(data)
    thresholds = AthleteThresholds.model_validate(thresholds_data) if thresholds_data else None
    return request, thresholds


def _target_panel(target: VolumeTarget, actual: float | None = None) -> Panel:
    dist = target.distribution
    lines = [
        f"Target: {target.target:.1f} km  (min {target.min:.1f} / max {target.max:.1f})",
        f"Zones: Z1 {dist.zone1:.0%}  Z2 {dist.zone2:.0%}  Z3 {dist.zone3:.0%}  Speed {dist.speed:.0%}",
    ]
    style = "green"
    if actual is not None:
        within = target.contains(actual)
        style = "green" if within else "yellow"
        lines.append(f"Actual: {actual:.1f} km ({'within' if within else 'outside'} target band)")
    return Panel(Text("\n".join(lines)), title="Volume target", border_style=style)


def _plan_table(result: PlanGenerationResult) -> Table:
    table = Table(title=f"{result.plan.objective} [{result.source}]")
    table.add_column("Day")
    table.add_column("Session")
    table.add_column("Type")
    for header in ("Z1", "Z2", "Z3", "Speed", "Total"):
        table.add_column(header, justify="right")
    table.add_column("Notes")
    for day in result.plan.days:
        table.add_row(
            DAY_NAMES[day.day],
            day.session_description,
            day.session_type.value,
            f"{day.zone1_km:.1f}",
            f"{day.zone2_km:.1f}",
            f"{day.zone3_km:.1f}",
            f"{day.speed_km:.1f}",
            f"{day.total_km:.1f}",
            day.notes or "",
        )
    return table


async def _run_generate(
    request: GenerationRequest,
    thresholds: AthleteThresholds | None,
    settings: Settings,
    use_agents: bool | None,
) -> PlanGenerationResult:
    gateway: GenerationGateway = build_gateway(settings)
    try:
        return await generate_weekly_plan(request, gateway, settings, thresholds=thresholds, use_agents=use_agents)
    finally:
        close = getattr(gateway, "aclose", None)
        if close is not None:
            await close()


@app.command()
def generate(
    request_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Request JSON file"),
    provider: str | None = typer.Option(None, "--provider", help="Override LLM_PROVIDER"),
    agents: bool | None = typer.Option(None, "--agents/--no-agents", help="Force or skip the multi-agent pipeline"),
    output_file: Path | None = typer.Option(None, "--output", "-o", help="Write the result as JSON"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """Generate a 7-day plan for the request in REQUEST_FILE."""
    settings = get_settings()
    if provider:
        try:
            settings = settings.model_copy(update={"llm_provider": normalize_provider(provider)})
        except ValueError as e:
            console.print(f"[red]Invalid provider:[/red] {e}")
            raise typer.Exit(2) from e
    setup_logger(level="DEBUG" if debug else settings.log_level, log_file=settings.log_file)

    try:
        request, thresholds = _load_request(request_file)
    except (json.JSONDecodeError, ValueError) as e:
        console.print(f"[red]Invalid request file:[/red] {e}")
        raise typer.Exit(2) from e

    try:
        result = asyncio.run(_run_generate(request, thresholds, settings, agents))
    except PlanGenerationFailedError as e:
        console.print(Panel(Text(str(e), style="bold red"), subtitle=e.hint, border_style="red"))
        raise typer.Exit(1) from e

    console.print(_plan_table(result))
    console.print(_target_panel(result.volume_target, result.actual_volume_km))
    if output_file:
        output_file.write_text(result.model_dump_json(indent=2), encoding="utf-8")
        logger.info("Result written", path=str(output_file))


@app.command()
def target(
    volume: float = typer.Option(0.0, "--volume", help="Recent average weekly volume (km)"),
    ctl: float = typer.Option(0.0, "--ctl", help="Chronic training load"),
    atl: float = typer.Option(0.0, "--atl", help="Acute training load"),
    objective: str = typer.Option("base", "--objective", help="base | résistance | compétition | récupération"),
    period: str = typer.Option("général", "--period", help="général | spécifique | affûtage"),
) -> None:
    """Print the weekly volume target for the given load figures."""
    stats = AthleteStats.from_loads(ctl=ctl, atl=atl, weekly_volume=volume)
    result = calculate_target_volume(stats, objective, period)
    console.print(f"ACWR: {stats.acwr:.2f}")
    console.print(_target_panel(result))


@app.command()
def zones(
    description: str = typer.Argument(..., help='Session notation, e.g. "VMA > 10 x 400"'),
    vma: float | None = typer.Option(None, "--vma", help="VMA in km/h"),
    sv1: float | None = typer.Option(None, "--sv1", help="SV1 pace in decimal min/km"),
    sv2: float | None = typer.Option(None, "--sv2", help="SV2 pace in decimal min/km"),
) -> None:
    """Print per-zone distances for a session description."""
    allocation = calculate_session_zones(description, AthleteThresholds(vma=vma, sv1=sv1, sv2=sv2))
    table = Table(title=description)
    for header in ("Z1", "Z2", "Z3", "Speed", "Total"):
        table.add_column(header, justify="right")
    table.add_row(
        f"{allocation.zone1_km:.1f}",
        f"{allocation.zone2_km:.1f}",
        f"{allocation.zone3_km:.1f}",
        f"{allocation.speed_km:.1f}",
        f"{allocation.total_km:.1f}",
    )
    console.print(table)


if __name__ == "__main__":
    app()
