"""Pipeline progress emission.

Each stage transition is logged as a structured "pipeline_progress" event
carrying the run id, stage, resulting state and duration.
"""

import time

from loguru import logger


def emit_pipeline_progress(
    run_id: str,
    stage: str,
    status: str,
    *,
    state: str | None = None,
    summary: dict[str, object] | None = None,
    error: str | None = None,
    duration_ms: int | None = None,
) -> None:
    """Emit a pipeline progress event.

    Args:
        run_id: Pipeline run identifier
        stage: Stage name (e.g., "context_analysis")
        status: "in_progress", "completed" or "failed"
        state: Pipeline state reached (completed stages only)
        summary: Optional stage-specific figures
        error: Error message (failed stages only)
        duration_ms: Stage duration in milliseconds
    """
    event: dict[str, object] = {
        "run_id": run_id,
        "stage": stage,
        "status": status,
    }
    if state is not None:
        event["state"] = state
    if summary:
        event["summary"] = summary
    if error:
        event["error"] = error
    if duration_ms is not None:
        event["duration_ms"] = duration_ms

    if status == "failed":
        logger.error("pipeline_progress", **event)
    else:
        logger.info("pipeline_progress", **event)


def emit_stage_start(run_id: str, stage: str) -> float:
    """Emit a stage start event and return the monotonic start time."""
    emit_pipeline_progress(run_id, stage, "in_progress")
    return time.monotonic()


def emit_stage_complete(
    run_id: str,
    stage: str,
    state: str,
    start_time: float,
    summary: dict[str, object] | None = None,
) -> None:
    duration_ms = int((time.monotonic() - start_time) * 1000)
    emit_pipeline_progress(run_id, stage, "completed", state=state, summary=summary, duration_ms=duration_ms)


def emit_stage_failed(run_id: str, stage: str, start_time: float | None, error: str) -> None:
    duration_ms = None
    if start_time is not None:
        duration_ms = int((time.monotonic() - start_time) * 1000)
    emit_pipeline_progress(run_id, stage, "failed", error=error, duration_ms=duration_ms)
