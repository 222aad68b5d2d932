from __future__ import annotations

import logging

from solo_fitness.clock import build_clock
from solo_fitness.config import configure_logging, settings
from solo_fitness.engine import ActivationResult, ProgressionEngine

logger = logging.getLogger(__name__)


def run_midnight_tick(engine: ProgressionEngine | None = None) -> ActivationResult:
    """Roll the day over without waiting for the app to be opened.

    Run shortly after midnight from cron or a systemd timer. Activation is
    idempotent within a day, so a late or repeated run changes nothing. The
    daily login bonus is left for the player's own first activation.
    """
    engine = engine or ProgressionEngine(clock=build_clock(settings.testing_mode))
    result = engine.activate()
    if result.storage_error:
        logger.error("Midnight tick could not persist: %s", result.storage_error)
    return result


def main() -> None:
    configure_logging()
    result = run_midnight_tick()
    rollover = result.rollover
    logger.info(
        "Midnight tick for %s: rolled_over=%s streak %d -> %d, quests_generated=%s",
        rollover.today,
        rollover.rolled_over,
        rollover.streak_before,
        rollover.streak_after,
        result.quests_generated,
    )


if __name__ == "__main__":
    main()
