"""Engine configuration.

Defaults can be overridden per call or through environment variables::

    export TLEDELTA_MAX_WORKERS=16
    export TLEDELTA_FETCH_TIMEOUT=5
    export TLEDELTA_DEADLINE=120
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Optional

MANIFEST_NAME = "index.json"

PROBE_TIMES: tuple[str, ...] = (
    "000000", "060000", "120000", "180000",  # every 6 hours
    "013008", "073008", "133008", "193008",  # common publish times
)
"""Capture times probed when a date has no manifest."""


@dataclass(frozen=True)
class EngineConfig:
    """Tunables for a comparison run.

    Attributes:
        max_workers: Upper bound on concurrent fetches.
        fetch_timeout: Per-fetch timeout (seconds); a timed-out file is skipped.
        deadline: Wall-clock budget for the whole call (seconds). Once
            exceeded no new fetches start and the run returns what it has.
        manifest_name: Per-date manifest filename.
        probe_times: HHMMSS capture times probed when there is no manifest.
    """
    max_workers: int = 8
    fetch_timeout: Optional[float] = 10.0
    deadline: Optional[float] = None
    manifest_name: str = MANIFEST_NAME
    probe_times: tuple[str, ...] = field(default=PROBE_TIMES)

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")
        if self.fetch_timeout is not None and self.fetch_timeout <= 0:
            raise ValueError(f"fetch_timeout must be > 0, got {self.fetch_timeout}")
        if self.deadline is not None and self.deadline < 0:
            raise ValueError(f"deadline must be >= 0, got {self.deadline}")

    @classmethod
    def from_env(cls, environ: Optional[dict[str, str]] = None) -> EngineConfig:
        """Build a config from ``TLEDELTA_*`` environment variables."""
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            max_workers=_env_int(env, "TLEDELTA_MAX_WORKERS", defaults.max_workers),
            fetch_timeout=_env_float(
                env, "TLEDELTA_FETCH_TIMEOUT", defaults.fetch_timeout
            ),
            deadline=_env_float(env, "TLEDELTA_DEADLINE", defaults.deadline),
        )

    def with_overrides(self, **overrides) -> EngineConfig:
        """Copy with every non-None keyword applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def _env_int(env, key: str, default: int) -> int:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from exc


def _env_float(env, key: str, default: Optional[float]) -> Optional[float]:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be a number, got {raw!r}") from exc
