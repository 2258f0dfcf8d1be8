"""Multi-agent plan orchestrator.

Runs the five planning stages strictly in sequence, each one consuming the
outputs of the previous ones, then assembles the 7-day plan:

    START -> CONTEXT_ANALYZED -> STRUCTURE_PLANNED -> SESSIONS_DESIGNED
          -> VOLUMES_ALLOCATED -> QUALITY_CHECKED -> ASSEMBLED -> DONE

Any stage failure moves the run to FAILED and raises PipelineStageError.
There is no fallback here; that decision belongs to the caller.

Intermediate results live in an immutable PipelineRun record local to the
run, so one orchestrator can serve concurrent runs.
"""

import time
import uuid
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Any, TypeVar

from loguru import logger

from coachweek.agents.base import BaseAgent, Sleep
from coachweek.agents.context_analyzer import ContextAnalyzerAgent, ContextAnalyzerInput
from coachweek.agents.errors import PipelineStageError
from coachweek.agents.quality_validator import QualityValidatorAgent, QualityValidatorInput
from coachweek.agents.session_composer import SessionComposerAgent, SessionComposerInput
from coachweek.agents.volume_allocator import VolumeAllocatorAgent, VolumeAllocatorInput
from coachweek.agents.week_structure import WeekStructureAgent, WeekStructureInput
from coachweek.llm.gateway import GenerationGateway
from coachweek.planning.assembly import assemble_plan
from coachweek.planning.progress import emit_stage_complete, emit_stage_failed, emit_stage_start
from coachweek.planning.schemas import (
    ContextAnalysis,
    GeneratedPlan,
    GenerationRequest,
    QualityCheck,
    SessionDesign,
    VolumeAllocation,
    VolumeTarget,
    WeekStructure,
)
from coachweek.planning.session_zones import AthleteThresholds
from coachweek.planning.volume_target import calculate_target_volume

OutputT = TypeVar("OutputT")


class PipelineState(StrEnum):
    START = "START"
    CONTEXT_ANALYZED = "CONTEXT_ANALYZED"
    STRUCTURE_PLANNED = "STRUCTURE_PLANNED"
    SESSIONS_DESIGNED = "SESSIONS_DESIGNED"
    VOLUMES_ALLOCATED = "VOLUMES_ALLOCATED"
    QUALITY_CHECKED = "QUALITY_CHECKED"
    ASSEMBLED = "ASSEMBLED"
    DONE = "DONE"
    FAILED = "FAILED"


# Stage registry (explicit, ordered)
PIPELINE_STAGES = [
    ("context_analysis", PipelineState.CONTEXT_ANALYZED),
    ("week_structure", PipelineState.STRUCTURE_PLANNED),
    ("session_composition", PipelineState.SESSIONS_DESIGNED),
    ("volume_allocation", PipelineState.VOLUMES_ALLOCATED),
    ("quality_validation", PipelineState.QUALITY_CHECKED),
    ("assembly", PipelineState.ASSEMBLED),
]


@dataclass(frozen=True)
class PipelineRun:
    """Immutable record of one pipeline run.

    Fields are filled stage by stage; a stage only reads fields set by the
    stages before it. Use replace() to move forward.
    """

    run_id: str
    request: GenerationRequest
    volume_target: VolumeTarget
    thresholds: AthleteThresholds | None = None
    state: PipelineState = PipelineState.START
    started_at: float = 0.0

    analysis: ContextAnalysis | None = None
    structure: WeekStructure | None = None
    sessions: list[SessionDesign] | None = None
    allocations: list[VolumeAllocation] | None = None
    quality: QualityCheck | None = None
    plan: GeneratedPlan | None = None

    def replace(self, **changes: Any) -> "PipelineRun":
        return replace(self, **changes)

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)


class PlanOrchestrator:
    """Chains the planning agents over one shared gateway.

    Agents can be injected (tests, custom prompts); otherwise they are built
    with their default configuration and the given retry policy.
    """

    def __init__(
        self,
        gateway: GenerationGateway,
        *,
        context_analyzer: ContextAnalyzerAgent | None = None,
        week_structure: WeekStructureAgent | None = None,
        session_composer: SessionComposerAgent | None = None,
        volume_allocator: VolumeAllocatorAgent | None = None,
        quality_validator: QualityValidatorAgent | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        self.gateway = gateway
        self._max_retries = max_retries
        self._backoff_seconds = backoff_seconds
        self.context_analyzer = context_analyzer or self._tuned(ContextAnalyzerAgent(gateway, sleep=sleep))
        self.week_structure = week_structure or self._tuned(WeekStructureAgent(gateway, sleep=sleep))
        self.session_composer = session_composer or self._tuned(SessionComposerAgent(gateway, sleep=sleep))
        self.volume_allocator = volume_allocator or self._tuned(VolumeAllocatorAgent(gateway, sleep=sleep))
        self.quality_validator = quality_validator or self._tuned(QualityValidatorAgent(gateway, sleep=sleep))

    def _tuned(self, agent: BaseAgent) -> BaseAgent:
        changes: dict[str, Any] = {}
        if self._max_retries is not None:
            changes["max_retries"] = self._max_retries
        if self._backoff_seconds is not None:
            changes["backoff_seconds"] = self._backoff_seconds
        if changes:
            agent.config = replace(agent.config, **changes)
        return agent

    async def _run_agent(
        self,
        run: PipelineRun,
        stage: str,
        agent: BaseAgent[Any, OutputT],
        agent_input: Any,
    ) -> OutputT:
        start_time = emit_stage_start(run.run_id, stage)
        result = await agent.execute(agent_input)
        if not result.success or result.data is None:
            error = result.error or "unknown error"
            emit_stage_failed(run.run_id, stage, start_time, error)
            raise PipelineStageError(stage, error)
        emit_stage_complete(
            run.run_id,
            stage,
            self._state_after(stage),
            start_time,
            {"attempts": result.attempts, "elapsed_total_ms": run.elapsed_ms},
        )
        return result.data

    @staticmethod
    def _state_after(stage: str) -> str:
        return next(state for name, state in PIPELINE_STAGES if name == stage).value

    async def run_pipeline(
        self,
        request: GenerationRequest,
        thresholds: AthleteThresholds | None = None,
        volume_target: VolumeTarget | None = None,
    ) -> PipelineRun:
        """Run every stage and return the final run record (state DONE).

        Raises:
            PipelineStageError: If any stage fails
        """
        target = volume_target or calculate_target_volume(request.athlete_stats, request.objective, request.period)
        run = PipelineRun(
            run_id=uuid.uuid4().hex[:8],
            request=request,
            volume_target=target,
            thresholds=thresholds,
            started_at=time.monotonic(),
        )
        logger.info(
            "Starting multi-agent plan generation",
            run_id=run.run_id,
            objective=request.objective,
            period=request.period,
            target_km=target.target,
        )

        try:
            analysis = await self._run_agent(
                run, "context_analysis", self.context_analyzer, ContextAnalyzerInput(request=request, volume_target=target)
            )
            run = run.replace(analysis=analysis, state=PipelineState.CONTEXT_ANALYZED)

            structure = await self._run_agent(
                run, "week_structure", self.week_structure, WeekStructureInput(request=request, analysis=analysis)
            )
            run = run.replace(structure=structure, state=PipelineState.STRUCTURE_PLANNED)

            sessions = await self._run_agent(
                run,
                "session_composition",
                self.session_composer,
                SessionComposerInput(request=request, analysis=analysis, structure=structure),
            )
            run = run.replace(sessions=sessions, state=PipelineState.SESSIONS_DESIGNED)

            allocations = await self._run_agent(
                run,
                "volume_allocation",
                self.volume_allocator,
                VolumeAllocatorInput(
                    request=request,
                    analysis=analysis,
                    sessions=sessions,
                    volume_target=target,
                    thresholds=thresholds,
                ),
            )
            run = run.replace(allocations=allocations, state=PipelineState.VOLUMES_ALLOCATED)

            quality = await self._run_agent(
                run,
                "quality_validation",
                self.quality_validator,
                QualityValidatorInput(
                    request=request,
                    analysis=analysis,
                    sessions=sessions,
                    allocations=allocations,
                    volume_target=target,
                ),
            )
            run = run.replace(quality=quality, state=PipelineState.QUALITY_CHECKED)

            start_time = emit_stage_start(run.run_id, "assembly")
            try:
                plan = assemble_plan(sessions, allocations, quality, request.objective, request.period)
            except Exception as e:
                emit_stage_failed(run.run_id, "assembly", start_time, str(e))
                raise PipelineStageError("assembly", str(e)) from e
            emit_stage_complete(
                run.run_id, "assembly", PipelineState.ASSEMBLED.value, start_time, {"total_km": plan.total_km}
            )
            run = run.replace(plan=plan, state=PipelineState.ASSEMBLED)
        except PipelineStageError as e:
            logger.error(
                "Multi-agent plan generation failed",
                run_id=run.run_id,
                stage=e.stage,
                state=PipelineState.FAILED.value,
                last_state=run.state.value,
                elapsed_ms=run.elapsed_ms,
            )
            raise

        run = run.replace(state=PipelineState.DONE)
        logger.info(
            "Multi-agent plan generation complete",
            run_id=run.run_id,
            state=run.state.value,
            score=quality.score,
            total_km=plan.total_km,
            elapsed_ms=run.elapsed_ms,
        )
        return run

    async def generate(
        self,
        request: GenerationRequest,
        thresholds: AthleteThresholds | None = None,
        volume_target: VolumeTarget | None = None,
    ) -> GeneratedPlan:
        """Run the pipeline and return only the plan.

        Raises:
            PipelineStageError: If any stage fails
        """
        run = await self.run_pipeline(request, thresholds, volume_target)
        if run.plan is None:
            raise PipelineStageError("assembly", "pipeline finished without a plan")
        return run.plan
