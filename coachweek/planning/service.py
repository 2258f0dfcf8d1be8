"""Plan generation service.

Caller-side policy: try the multi-agent pipeline first (when enabled), fall
back to the single-call generator when it fails, and turn a double failure
into a generic user-facing error. Internal details stay in the logs.
"""

from loguru import logger

from coachweek.agents.base import Sleep
from coachweek.agents.errors import FallbackExhaustedError, PipelineStageError, PlanGenerationFailedError
from coachweek.agents.fallback import generate_fallback_plan
from coachweek.config.settings import Settings
from coachweek.llm.gateway import GenerationGateway
from coachweek.planning.orchestrator import PlanOrchestrator
from coachweek.planning.schemas import GeneratedPlan, GenerationRequest, PlanGenerationResult
from coachweek.planning.session_zones import AthleteThresholds
from coachweek.planning.volume_target import calculate_target_volume

GENERIC_FAILURE_MESSAGE = "La génération du planning a échoué. Veuillez réessayer dans quelques instants."
FAILURE_HINT = (
    "Vérifiez la configuration du fournisseur LLM (LLM_PROVIDER et la clé API associée) "
    "ou créez le planning manuellement."
)


async def generate_weekly_plan(
    request: GenerationRequest,
    gateway: GenerationGateway,
    settings: Settings,
    *,
    thresholds: AthleteThresholds | None = None,
    use_agents: bool | None = None,
    sleep: Sleep | None = None,
) -> PlanGenerationResult:
    """Generate a weekly plan.

    Args:
        request: Generation request
        gateway: Generation gateway (built once by the caller)
        settings: Application settings (retry policy, agentic switch)
        thresholds: Optional athlete pace references for volume allocation
        use_agents: Overrides settings.use_agentic_planning when set
        sleep: Injectable sleep coroutine used for every backoff

    Returns:
        PlanGenerationResult with the plan, its source and the volume summary

    Raises:
        PlanGenerationFailedError: If both the pipeline and the fallback failed
    """
    volume_target = calculate_target_volume(request.athlete_stats, request.objective, request.period)
    agents_enabled = settings.use_agentic_planning if use_agents is None else use_agents

    plan: GeneratedPlan | None = None
    source = "fallback"

    if agents_enabled:
        orchestrator = PlanOrchestrator(
            gateway,
            max_retries=settings.agent_max_retries,
            backoff_seconds=settings.agent_backoff_seconds,
            sleep=sleep,
        )
        try:
            plan = await orchestrator.generate(request, thresholds, volume_target)
            source = "agents"
        except PipelineStageError as e:
            logger.warning("Agentic workflow failed, falling back to single-call generation", stage=e.stage, error=str(e))

    if plan is None:
        try:
            plan = await generate_fallback_plan(
                request,
                gateway,
                volume_target,
                max_retries=settings.fallback_max_retries,
                backoff_seconds=settings.fallback_backoff_seconds,
                sleep=sleep,
            )
        except FallbackExhaustedError as e:
            logger.error("Plan generation failed", error=str(e))
            raise PlanGenerationFailedError(GENERIC_FAILURE_MESSAGE, hint=FAILURE_HINT) from e

    actual = plan.total_km
    logger.info(
        "Weekly plan generated",
        source=source,
        total_km=actual,
        target_km=volume_target.target,
        within_target=volume_target.contains(actual),
    )
    return PlanGenerationResult(
        plan=plan,
        source=source,
        volume_target=volume_target,
        actual_volume_km=actual,
    )
