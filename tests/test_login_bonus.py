from __future__ import annotations

import tempfile
import unittest
from datetime import date
from pathlib import Path
from unittest.mock import patch

import solo_fitness.db as db
from solo_fitness.catalog import DAILY_LOGIN_BONUS_XP
from solo_fitness.clock import SimulatedClock
from solo_fitness.engine import ProgressionEngine
from solo_fitness.login_bonus import claim_daily_login_bonus


class FixedClock:
    def __init__(self, today: date) -> None:
        self.current = today

    def today(self) -> date:
        return self.current


class DBIsolatedTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self._old_db = db.DB_PATH
        db.DB_PATH = Path(self._tmp.name) / "test.sqlite3"
        db.init_db()

    def tearDown(self) -> None:
        db.DB_PATH = self._old_db
        self._tmp.cleanup()


class DailyLoginBonusTests(DBIsolatedTestCase):
    def test_bonus_is_granted_once_per_day(self) -> None:
        clock = FixedClock(date(2026, 5, 1))
        engine = ProgressionEngine(clock=clock)

        first = claim_daily_login_bonus(engine)
        second = claim_daily_login_bonus(engine)

        self.assertEqual(first.amount, DAILY_LOGIN_BONUS_XP)
        self.assertEqual(first.source, "daily_login")
        self.assertIsNone(second)
        self.assertEqual(engine.record.experience, DAILY_LOGIN_BONUS_XP)
        self.assertEqual(db.kv_get(db.LAST_LOGIN_KEY), "2026-05-01")

    def test_new_day_grants_again(self) -> None:
        clock = FixedClock(date(2026, 5, 1))
        engine = ProgressionEngine(clock=clock)
        claim_daily_login_bonus(engine)

        clock.current = date(2026, 5, 2)
        grant = claim_daily_login_bonus(engine)

        self.assertIsNotNone(grant)
        self.assertEqual([e.level for e in grant.level_ups], [2])
        self.assertEqual(engine.record.experience, 0)

    def test_bonus_key_is_separate_from_player_record(self) -> None:
        engine = ProgressionEngine(clock=FixedClock(date(2026, 5, 1)))
        claim_daily_login_bonus(engine)

        reloaded = db.PlayerStore().load()

        self.assertEqual(reloaded.experience, DAILY_LOGIN_BONUS_XP)
        self.assertNotIn("last_login_date", reloaded.to_dict())

    def test_unreadable_key_skips_bonus(self) -> None:
        engine = ProgressionEngine(clock=FixedClock(date(2026, 5, 1)))

        with patch("solo_fitness.login_bonus.db.kv_get", side_effect=db.StorageUnavailable("locked")):
            self.assertIsNone(claim_daily_login_bonus(engine))

        self.assertEqual(engine.record.experience, 0)


class SimulatedClockTests(DBIsolatedTestCase):
    def test_advance_moves_stored_date(self) -> None:
        clock = SimulatedClock()
        start = clock.today()

        clock.advance(2)

        self.assertEqual((clock.today() - start).days, 2)
        self.assertEqual(db.kv_get(db.SIMULATED_DATE_KEY), clock.today().isoformat())

    def test_falls_back_to_real_date_when_storage_fails(self) -> None:
        with patch("solo_fitness.clock.db.kv_get", side_effect=db.StorageUnavailable("gone")):
            self.assertEqual(SimulatedClock().today(), date.today())


if __name__ == "__main__":
    unittest.main()
