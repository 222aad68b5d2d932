"""Application configuration."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r; using %d", name, raw, default)
        return default
    return max(minimum, value)


@dataclass(frozen=True)
class Settings:
    db_path: Path
    testing_mode: bool
    completion_delay_ms: int
    log_level: str

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            db_path=Path(os.environ.get("SOLO_FITNESS_DB_PATH", PROJECT_ROOT / "data.sqlite3")),
            # Enables the simulated clock and the /testing endpoints.
            testing_mode=_env_flag("SOLO_FITNESS_TESTING_MODE"),
            completion_delay_ms=_env_int("SOLO_FITNESS_COMPLETION_DELAY_MS", 300),
            log_level=os.environ.get("SOLO_FITNESS_LOG_LEVEL", "INFO").upper(),
        )


settings = Settings.from_env()


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=level or settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
