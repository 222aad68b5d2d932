from __future__ import annotations

import logging
from datetime import date

from solo_fitness import db
from solo_fitness.catalog import DAILY_LOGIN_BONUS_XP
from solo_fitness.engine import ExperienceGrant, ProgressionEngine

logger = logging.getLogger(__name__)


def claim_daily_login_bonus(engine: ProgressionEngine, today: date | None = None) -> ExperienceGrant | None:
    """Grant the once-per-day login bonus. Returns None if today's was already claimed.

    The last claim date is kept under its own storage key, apart from the
    player record. If that key cannot be read the bonus is skipped rather than
    handed out again on every activation.
    """
    today = today or engine.clock.today()
    try:
        last_login = db.kv_get(db.LAST_LOGIN_KEY)
    except db.StorageUnavailable as exc:
        logger.warning("Skipping daily login bonus: %s", exc)
        return None
    if last_login == today.isoformat():
        return None

    try:
        db.kv_set(db.LAST_LOGIN_KEY, today.isoformat())
    except db.StorageUnavailable as exc:
        logger.warning("Skipping daily login bonus: %s", exc)
        return None
    return engine.award_experience(DAILY_LOGIN_BONUS_XP, source="daily_login")
