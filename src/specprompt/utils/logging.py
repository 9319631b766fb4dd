"""Structured logging setup for specprompt."""

import structlog
from pathlib import Path
from typing import Any
import os


DEFAULT_LOG_DIR = Path.home() / ".cache" / "specprompt" / "logs"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _level_from_env() -> str:
    level = os.environ.get("SPECPROMPT_LOG_LEVEL", "INFO").upper()
    return level if level in LOG_LEVELS else "INFO"


def configure_logging(log_dir: Path | None = None) -> None:
    """
    Send structlog output as JSON lines to <log_dir>/specprompt.log.

    The level comes from SPECPROMPT_LOG_LEVEL (unknown values mean INFO):

    - DEBUG: prompt payloads, every streamed chunk, user cancellations
    - INFO: fragment resolution, request start/completion/cancel, refinements
    - WARNING: connection retries, output discarded after a cancel
    - ERROR: failures reported to the user, backend errors

    Follow a session with:
        tail -f ~/.cache/specprompt/logs/specprompt.log | jq .
    """
    log_dir = log_dir or DEFAULT_LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_level_from_env()),
        context_class=dict,
        logger_factory=structlog.WriteLoggerFactory(file=open(log_dir / "specprompt.log", "a")),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    """Structured logger for a module (pass ``__name__``)."""
    return structlog.get_logger(name)
