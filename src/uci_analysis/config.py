"""
Configuration for the UCI analysis driver.

All configuration can be set via environment variables with sensible defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


def _optional_int(name: str) -> int | None:
    value = os.environ.get(name, "").strip()
    return int(value) if value else None


@dataclass
class EngineConfig:
    """Configuration for a single engine session."""

    engine_path: Path = field(
        default_factory=lambda: Path(os.environ.get("UCI_ENGINE_PATH", "stockfish"))
    )
    threads: int = field(default_factory=lambda: int(os.environ.get("UCI_ENGINE_THREADS", "1")))
    hash_mb: int = field(default_factory=lambda: int(os.environ.get("UCI_ENGINE_HASH", "16")))
    elo: int | None = field(default_factory=lambda: _optional_int("UCI_ENGINE_ELO"))
    startup_timeout: float = 5.0  # seconds to wait for uciok
    shutdown_grace: float = 5.0  # seconds to wait for exit after quit
    response_timeout: float = 10.0  # slack on top of the search budget per line read


@dataclass
class SchedulerConfig:
    """Configuration for serialized analysis requests on one session."""

    min_move_time_ms: int = 250  # floor for the budget sent with go movetime
    wait_interval: float = 0.25  # seconds between idle re-checks while queued
    max_workers: int = field(
        default_factory=lambda: int(os.environ.get("UCI_SCHEDULER_WORKERS", "4"))
    )
