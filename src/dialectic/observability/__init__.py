"""Observability helpers for the planning core."""

from dialectic.observability.logging import (
    close_file_logging,
    configure_logging,
    get_logger,
    planning_context,
)

__all__ = [
    "close_file_logging",
    "configure_logging",
    "get_logger",
    "planning_context",
]
