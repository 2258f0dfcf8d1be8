"""Logger configuration for coachweek.

The console shows the pipeline's correlation fields (run, stage, agent,
attempt) inline and leaves the rest of the structured payload to the JSON
file sink, so raw model text never floods the terminal.
"""

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FIELDS = ("run_id", "stage", "agent", "attempt", "outcome", "elapsed_ms")

_CONSOLE_PREFIX = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def console_format(record: dict) -> str:
    """Loguru format callable: message plus the known pipeline fields."""
    fields = " ".join(
        f"{key}={_escape(record['extra'][key])}" for key in CONSOLE_FIELDS if record["extra"].get(key) is not None
    )
    suffix = f" <magenta>{fields}</magenta>" if fields else ""
    return _CONSOLE_PREFIX + suffix + "\n{exception}"


def _escape(value: object) -> str:
    # the returned format string goes through str.format and color markup parsing
    return str(value).replace("{", "{{").replace("}", "}}").replace("<", r"\<")


def setup_logger(
    level: str = "INFO",
    log_file: str | None = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """Replace loguru's default handler with the coachweek sinks.

    Args:
        level: Minimum level for both sinks
        log_file: JSON-lines file sink; console only when None
        rotation: File rotation size or interval (e.g. "10 MB", "1 day")
        retention: How long rotated files are kept (e.g. "7 days")
    """
    logger.remove()
    logger.add(sys.stderr, format=console_format, level=level, colorize=True)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            level=level,
            rotation=rotation,
            retention=retention,
            compression="zip",
            serialize=True,
            backtrace=True,
            diagnose=False,
        )

    logger.debug("Logger initialized", level=level, log_file=log_file)
