"""Planner configuration loading.

Workers embedding the planning core read ``planner.yaml``::

    jobs:
      db_path: .dialectic/jobs.db
      default_max_retries: 3
    logging:
      verbosity: 1
      log_to_file: true
      log_dir: .dialectic/logs

Resolution order for each setting:
1. Environment variable (``DIALECTIC_DB_PATH``, ``DIALECTIC_LOG_VERBOSITY``)
2. Config file
3. Defaults below
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ruamel.yaml import YAML

from dialectic.jobs.sqlite_store import SqliteJobStore
from dialectic.jobs.store import InMemoryJobStore
from dialectic.observability.logging import configure_logging

if TYPE_CHECKING:
    from dialectic.jobs.store import JobStore

CONFIG_FILE_NAME = "planner.yaml"
DEFAULT_MAX_RETRIES = 3

ENV_DB_PATH = "DIALECTIC_DB_PATH"
ENV_LOG_VERBOSITY = "DIALECTIC_LOG_VERBOSITY"


class PlannerConfigError(Exception):
    """Raised when planner configuration cannot be loaded."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load planner config at {path}: {reason}")


@dataclass
class LoggingConfig:
    """Console verbosity and optional JSONL file logging."""

    verbosity: int = 0
    log_to_file: bool = False
    log_dir: Path | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LoggingConfig:
        log_dir = data.get("log_dir")
        return cls(
            verbosity=int(data.get("verbosity", 0)),
            log_to_file=bool(data.get("log_to_file", False)),
            log_dir=Path(log_dir) if log_dir else None,
        )


@dataclass
class PlannerConfig:
    """Settings for a worker hosting the planner and blocker resolver.

    Attributes:
        db_path: SQLite job database; None keeps jobs in memory.
        default_max_retries: ``max_retries`` for planned jobs whose parent
            payload does not set one.
        logging: Logging settings.
    """

    db_path: Path | None = None
    default_max_retries: int = DEFAULT_MAX_RETRIES
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlannerConfig:
        """Create config from a parsed YAML mapping.

        Raises:
            ValueError: If a value has the wrong shape.
        """
        jobs = dict(data.get("jobs") or {})
        db_path = os.getenv(ENV_DB_PATH) or jobs.get("db_path")

        logging_config = LoggingConfig.from_dict(dict(data.get("logging") or {}))
        env_verbosity = os.getenv(ENV_LOG_VERBOSITY)
        if env_verbosity:
            logging_config.verbosity = int(env_verbosity)

        max_retries = int(jobs.get("default_max_retries", DEFAULT_MAX_RETRIES))
        if max_retries < 0:
            raise ValueError(f"default_max_retries must be >= 0, got {max_retries}")

        return cls(
            db_path=Path(db_path) if db_path else None,
            default_max_retries=max_retries,
            logging=logging_config,
        )

    def create_job_store(self) -> JobStore:
        """Open the configured job store."""
        if self.db_path is None:
            return InMemoryJobStore()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        return SqliteJobStore(self.db_path)

    def configure_logging(self) -> None:
        """Apply the logging settings."""
        configure_logging(
            verbosity=self.logging.verbosity,
            log_to_file=self.logging.log_to_file,
            log_dir=self.logging.log_dir,
        )


def load_planner_config(path: Path) -> PlannerConfig:
    """Load configuration from a YAML file, or ``planner.yaml`` in a directory.

    Args:
        path: Config file, or directory containing ``planner.yaml``.

    Raises:
        PlannerConfigError: If the file is missing, empty or invalid.
    """
    config_path = path / CONFIG_FILE_NAME if path.is_dir() else path

    if not config_path.exists():
        raise PlannerConfigError(config_path, "File not found")

    yaml = YAML(typ="safe")
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)

        if data is None:
            raise PlannerConfigError(config_path, "Empty file")
        if not isinstance(data, dict):
            raise PlannerConfigError(config_path, "Top level must be a mapping")

        return PlannerConfig.from_dict(data)
    except PlannerConfigError:
        raise
    except Exception as e:
        raise PlannerConfigError(config_path, str(e)) from e
