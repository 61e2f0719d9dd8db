"""Runtime settings read from the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from campus_scheduler.domain.models import ConflictType
from campus_scheduler.services.conflicts import DEFAULT_BLOCKING_TYPES


@dataclass(frozen=True)
class Settings:
    blocking_types: frozenset[ConflictType] = field(
        default_factory=lambda: DEFAULT_BLOCKING_TYPES
    )
    horizon_weeks: int = 16
    log_level: str = "INFO"


def _parse_blocking_types(raw: str) -> frozenset[ConflictType]:
    names = [part.strip().lower() for part in raw.split(",") if part.strip()]
    try:
        return frozenset(ConflictType(name) for name in names)
    except ValueError as exc:
        raise ValueError(f"Unknown conflict type in {raw!r}") from exc


def load_settings(environ: dict[str, str] | None = None) -> Settings:
    """Build ``Settings`` from ``CAMPUS_SCHEDULER_*`` environment variables."""
    env = os.environ if environ is None else environ
    settings = Settings()

    raw_types = env.get("CAMPUS_SCHEDULER_BLOCKING_TYPES")
    blocking_types = (
        _parse_blocking_types(raw_types)
        if raw_types is not None
        else settings.blocking_types
    )
    horizon_weeks = int(env.get("CAMPUS_SCHEDULER_HORIZON_WEEKS", settings.horizon_weeks))
    if horizon_weeks < 1:
        raise ValueError("CAMPUS_SCHEDULER_HORIZON_WEEKS must be at least 1")

    return Settings(
        blocking_types=blocking_types,
        horizon_weeks=horizon_weeks,
        log_level=env.get("CAMPUS_SCHEDULER_LOG_LEVEL", settings.log_level).upper(),
    )


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
