"""Configuration for the snapwatch package."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

DEFAULT_LATENCY_MS = 50

# Below this the native provider coalesces faster than a window can drain
# and events may be lost before they reach the aggregator.
MIN_LATENCY_MS = 25

ENV_PREFIX = "SNAPWATCH_"


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class WatcherConfig:
    """
    Configuration options for a snapshot watcher.

    Attributes:
        root: Directory to watch
        ignored_folders: Folder names (not paths, no globbing) whose contents are never reported
        filter: Glob matched against file names; directories always pass
        recurse: Whether to watch subdirectories
        start_running: Whether the watcher starts enabled on construction
        latency_ms: Length of one batch window in milliseconds
        queue_size: Maximum number of batches waiting for the worker
        health_check_interval_ms: How often the worker checks the native observer
    """
    root: Path = field(default_factory=lambda: Path("."))
    ignored_folders: List[str] = field(default_factory=list)
    filter: str = "*"
    recurse: bool = True
    start_running: bool = True
    latency_ms: int = DEFAULT_LATENCY_MS
    queue_size: int = 1024
    health_check_interval_ms: int = 500

    def __post_init__(self):
        if isinstance(self.root, str):
            self.root = Path(self.root)
        if self.latency_ms <= 0:
            raise ValueError(f"latency_ms must be positive: {self.latency_ms}")
        if self.latency_ms < MIN_LATENCY_MS:
            logger.warning(
                f"latency_ms={self.latency_ms} is below {MIN_LATENCY_MS}ms; "
                "the native provider may drop events"
            )

    @property
    def latency(self) -> float:
        """Batch window length in seconds."""
        return self.latency_ms / 1000.0

    @classmethod
    def from_env(cls, environ: Optional[dict] = None, **overrides) -> "WatcherConfig":
        """
        Build a config from SNAPWATCH_* environment variables.

        Args:
            environ: Mapping to read instead of os.environ
            **overrides: Field values that take precedence over the environment

        Returns:
            A new WatcherConfig
        """
        env = os.environ if environ is None else environ
        values = {}

        if env.get(ENV_PREFIX + "ROOT"):
            values["root"] = Path(env[ENV_PREFIX + "ROOT"])
        if env.get(ENV_PREFIX + "IGNORE"):
            values["ignored_folders"] = [
                name.strip() for name in env[ENV_PREFIX + "IGNORE"].split(",") if name.strip()
            ]
        if env.get(ENV_PREFIX + "FILTER"):
            values["filter"] = env[ENV_PREFIX + "FILTER"]
        if env.get(ENV_PREFIX + "RECURSE"):
            values["recurse"] = _env_bool(env[ENV_PREFIX + "RECURSE"])
        if env.get(ENV_PREFIX + "LATENCY_MS"):
            values["latency_ms"] = int(env[ENV_PREFIX + "LATENCY_MS"])

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
