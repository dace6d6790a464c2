"""Structured logging for the planning core.

Planning events are only useful with the job they belong to, so
``planning_context`` binds the parent job, step, strategy and model for the
length of a planning call. Every event logged inside it, including the
planners' own debug events, carries those keys.

Outputs:
- Console through rich, level picked by verbosity.
- Optional ``{log_dir}/planner.jsonl`` with one JSON object per event.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from structlog.typing import EventDict, Processor, WrappedLogger

LOG_FILE_NAME = "planner.jsonl"

# Keys bound by planning_context, in the order the console shows them.
PLANNING_KEYS = ("job_id", "step_id", "strategy", "model_id")

_configured = False
_file_handler: logging.FileHandler | None = None


def _planning_prefix(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Fold bound planning keys into a ``job/step`` prefix for the console."""
    values = [event_dict.pop(key, None) for key in PLANNING_KEYS]
    parts = [str(value) for value in values if value]
    if parts:
        event_dict["event"] = f"[{'/'.join(parts)}] {event_dict.get('event', '')}"
    return event_dict


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def _formatter(*renderers: Processor) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_processors(),
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *renderers],
    )


def configure_logging(
    verbosity: int = 0,
    log_to_file: bool = False,
    log_dir: Path | None = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        verbosity: 0=WARNING (default), 1=INFO, 2+=DEBUG.
        log_to_file: Also write every event, at any level, to ``log_dir``.
        log_dir: Directory for ``planner.jsonl``. Required if log_to_file=True.

    Raises:
        ValueError: If log_to_file=True but log_dir is not provided.
    """
    global _configured

    if log_to_file and log_dir is None:
        raise ValueError("log_dir is required when log_to_file=True")

    close_file_logging()

    console_handler = RichHandler(
        console=Console(stderr=True),
        show_time=verbosity >= 1,
        show_path=False,
        markup=False,
        level={0: logging.WARNING, 1: logging.INFO}.get(verbosity, logging.DEBUG),
    )
    console_handler.setFormatter(
        _formatter(_planning_prefix, structlog.dev.ConsoleRenderer(colors=False))
    )
    handlers: list[logging.Handler] = [console_handler]

    if log_to_file and log_dir is not None:
        handlers.append(_open_file_log(log_dir))

    root_level = logging.DEBUG if (verbosity > 0 or log_to_file) else logging.WARNING
    logging.basicConfig(level=root_level, handlers=handlers, force=True)

    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        cache_logger_on_first_use=False,
    )
    _configured = True


def _open_file_log(log_dir: Path) -> logging.FileHandler:
    global _file_handler
    log_dir.mkdir(parents=True, exist_ok=True)
    _file_handler = logging.FileHandler(log_dir / LOG_FILE_NAME, mode="a", encoding="utf-8")
    _file_handler.setLevel(logging.DEBUG)
    _file_handler.setFormatter(_formatter(structlog.processors.JSONRenderer(default=str)))
    return _file_handler


def close_file_logging() -> None:
    """Flush and close ``planner.jsonl`` if it is open."""
    global _file_handler
    if _file_handler is not None:
        logging.getLogger().removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    """Get a structured logger, configuring defaults on first use."""
    if not _configured:
        configure_logging()

    logger: structlog.typing.FilteringBoundLogger = structlog.get_logger(name)
    return logger


@contextmanager
def planning_context(
    job_id: str,
    step_id: str,
    *,
    strategy: str | None = None,
    model_id: str | None = None,
) -> Iterator[None]:
    """Bind the planning job's identity to every event logged in the block.

    Example:
        with planning_context(parent.id, step.id, strategy="per_model"):
            log.debug("per_model_scoped", documents=3)
    """
    bound = {"job_id": job_id, "step_id": step_id, "strategy": strategy, "model_id": model_id}
    with structlog.contextvars.bound_contextvars(
        **{key: value for key, value in bound.items() if value is not None}
    ):
        yield
