"""Client configuration.

All settings can be overridden via environment variables with the
MKULIMA_ prefix.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path

from .constants import (
    CHECK_INTERVAL_SECONDS,
    COMPACT_THRESHOLD,
    DEFAULT_DATA_DIR,
    MAX_ATTEMPTS,
    PROBE_HOST,
    PROBE_PORT,
    PROBE_TIMEOUT_SECONDS,
)

_TRUTHY = ("1", "true", "yes", "on")


@dataclass
class MkulimaConfig:
    """Offline client configuration."""

    # Storage
    data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)
    compact_threshold: int = COMPACT_THRESHOLD

    # Retry policy
    max_attempts: int | None = MAX_ATTEMPTS

    # Connectivity
    probe_host: str = PROBE_HOST
    probe_port: int = PROBE_PORT
    probe_timeout: float = PROBE_TIMEOUT_SECONDS
    check_interval: float = CHECK_INTERVAL_SECONDS

    # Payments
    escrow_enabled: bool = True

    tenant_id: str = "default"

    @classmethod
    def from_env(cls) -> "MkulimaConfig":
        """Load configuration from environment variables."""
        config = cls()

        if "MKULIMA_DATA_DIR" in os.environ:
            config.data_dir = Path(os.environ["MKULIMA_DATA_DIR"]).expanduser()
        if "MKULIMA_COMPACT_THRESHOLD" in os.environ:
            config.compact_threshold = int(os.environ["MKULIMA_COMPACT_THRESHOLD"])

        if "MKULIMA_MAX_ATTEMPTS" in os.environ:
            raw = os.environ["MKULIMA_MAX_ATTEMPTS"].strip()
            config.max_attempts = int(raw) if raw else None

        if "MKULIMA_PROBE_HOST" in os.environ:
            config.probe_host = os.environ["MKULIMA_PROBE_HOST"]
        if "MKULIMA_PROBE_PORT" in os.environ:
            config.probe_port = int(os.environ["MKULIMA_PROBE_PORT"])
        if "MKULIMA_PROBE_TIMEOUT" in os.environ:
            config.probe_timeout = float(os.environ["MKULIMA_PROBE_TIMEOUT"])
        if "MKULIMA_CHECK_INTERVAL" in os.environ:
            config.check_interval = float(os.environ["MKULIMA_CHECK_INTERVAL"])

        if "MKULIMA_ESCROW_ENABLED" in os.environ:
            config.escrow_enabled = os.environ["MKULIMA_ESCROW_ENABLED"].lower() in _TRUTHY

        if "MKULIMA_TENANT_ID" in os.environ:
            config.tenant_id = os.environ["MKULIMA_TENANT_ID"]

        return config

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if self.max_attempts is not None and self.max_attempts < 1:
            errors.append("max_attempts must be at least 1 when set")
        if self.compact_threshold < 1:
            errors.append("compact_threshold must be positive")
        if not 1 <= self.probe_port <= 65535:
            errors.append("probe_port must be between 1 and 65535")
        if self.probe_timeout <= 0:
            errors.append("probe_timeout must be positive")
        if self.check_interval <= 0:
            errors.append("check_interval must be positive")

        return errors
