"""Run configuration.

Settings are read from the environment with ``Settings.from_env()`` and
may be overridden per invocation (the CLI passes its options through
``with_overrides``).

Environment variables:
    GFLOW_MAX_CONCURRENCY  Positive integer bound on running jobs (unset: unbounded)
    GFLOW_LOG_LEVEL        Logging level name (default INFO)
    GFLOW_STATE_DIR        State directory name under the workflow root (default .gflow)
    GFLOW_DURABLE_SYNC     "1"/"0": fsync every event log append (default 1)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace

from pygflow.errors import ConfigurationError
from pygflow.provision import DEFAULT_STATE_DIR

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    """Configuration for one workflow run."""

    max_concurrency: int | None = None
    log_level: str = "INFO"
    state_dir_name: str = DEFAULT_STATE_DIR
    durable_sync: bool = True

    def __post_init__(self):
        if self.max_concurrency is not None and self.max_concurrency < 1:
            raise ConfigurationError(
                f"max_concurrency must be a positive integer, got {self.max_concurrency}"
            )
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ConfigurationError(f"Unknown log level: {self.log_level!r}")
        if not self.state_dir_name or "/" in self.state_dir_name:
            raise ConfigurationError(f"Invalid state directory name: {self.state_dir_name!r}")

    @classmethod
    def from_env(cls) -> Settings:
        """
        Build settings from GFLOW_* environment variables.

        Unset variables keep their defaults.

        Raises:
            ConfigurationError: If a variable has an invalid value
        """
        max_concurrency = None
        raw = os.getenv("GFLOW_MAX_CONCURRENCY")
        if raw:
            try:
                max_concurrency = int(raw)
            except ValueError:
                raise ConfigurationError(
                    f"GFLOW_MAX_CONCURRENCY must be an integer, got {raw!r}"
                ) from None

        durable_sync = True
        raw = os.getenv("GFLOW_DURABLE_SYNC")
        if raw:
            if raw.lower() in _TRUE:
                durable_sync = True
            elif raw.lower() in _FALSE:
                durable_sync = False
            else:
                raise ConfigurationError(f"GFLOW_DURABLE_SYNC must be a boolean, got {raw!r}")

        return cls(
            max_concurrency=max_concurrency,
            log_level=os.getenv("GFLOW_LOG_LEVEL", "INFO"),
            state_dir_name=os.getenv("GFLOW_STATE_DIR", DEFAULT_STATE_DIR),
            durable_sync=durable_sync,
        )

    def with_overrides(self, **overrides) -> Settings:
        """Return a copy with every non-None override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)
