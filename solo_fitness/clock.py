from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from solo_fitness import db

logger = logging.getLogger(__name__)


class SystemClock:
    def today(self) -> date:
        return date.today()


class SimulatedClock:
    """Testing-mode clock. The date lives in storage and only moves via ``advance``."""

    def today(self) -> date:
        try:
            raw = db.kv_get(db.SIMULATED_DATE_KEY)
            if raw:
                return date.fromisoformat(raw)
            current = date.today()
            db.kv_set(db.SIMULATED_DATE_KEY, current.isoformat())
            return current
        except (db.StorageUnavailable, ValueError) as exc:
            logger.warning("Simulated date unavailable (%s); using the real date", exc)
            return date.today()

    def advance(self, days: int = 1) -> date:
        new_date = self.today() + timedelta(days=days)
        db.kv_set(db.SIMULATED_DATE_KEY, new_date.isoformat())
        return new_date


def build_clock(testing_mode: bool) -> SystemClock | SimulatedClock:
    return SimulatedClock() if testing_mode else SystemClock()


def seconds_until_reset(now: datetime | None = None) -> int:
    now = now or datetime.now()
    midnight = datetime.combine(now.date() + timedelta(days=1), datetime.min.time())
    return int((midnight - now).total_seconds())
