from __future__ import annotations

import tempfile
import unittest
from datetime import date
from pathlib import Path
from unittest.mock import patch

import solo_fitness.db as db
from solo_fitness.engine import ActivationResult, ProgressionEngine, RolloverResult
from solo_fitness.jobs.midnight_tick import main, run_midnight_tick


class FixedClock:
    def __init__(self, today: date) -> None:
        self.current = today

    def today(self) -> date:
        return self.current


class MidnightTickTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.old_db = db.DB_PATH
        db.DB_PATH = Path(self.tmp.name) / "tick.sqlite3"
        db.init_db()

    def tearDown(self) -> None:
        db.DB_PATH = self.old_db
        self.tmp.cleanup()

    def test_tick_rolls_over_once_per_day(self) -> None:
        clock = FixedClock(date(2026, 2, 21))

        first = run_midnight_tick(ProgressionEngine(clock=clock))
        second = run_midnight_tick(ProgressionEngine(clock=clock))

        self.assertTrue(first.rollover.rolled_over)
        self.assertTrue(first.quests_generated)
        self.assertFalse(second.rollover.rolled_over)
        self.assertFalse(second.quests_generated)
        self.assertEqual(db.PlayerStore().load().last_reset_date, date(2026, 2, 21))

    def test_tick_does_not_claim_login_bonus(self) -> None:
        run_midnight_tick(ProgressionEngine(clock=FixedClock(date(2026, 2, 21))))

        self.assertIsNone(db.kv_get(db.LAST_LOGIN_KEY))
        self.assertEqual(db.PlayerStore().load().experience, 0)

    def test_app_keeps_what_the_tick_saved(self) -> None:
        app_clock = FixedClock(date(2026, 2, 21))
        app_engine = ProgressionEngine(clock=app_clock)
        for day in (21, 22):
            app_clock.current = date(2026, 2, day)
            app_engine.activate()
            for quest in list(app_engine.record.daily_quests):
                app_engine.complete_quest(quest.id)
        self.assertEqual(app_engine.record.streak, 2)

        tick = run_midnight_tick(ProgressionEngine(clock=FixedClock(date(2026, 2, 23))))
        self.assertIn("streak_3", [a.id for a in tick.achievements])

        app_clock.current = date(2026, 2, 24)
        app_engine.activate()

        stored = db.PlayerStore().load()
        self.assertIn("streak_3", stored.earned_achievements)
        self.assertEqual(stored.best_streak, 3)
        self.assertEqual(stored.streak, 0)
        self.assertEqual(stored.last_reset_date, date(2026, 2, 24))

    @patch("solo_fitness.jobs.midnight_tick.configure_logging")
    @patch("solo_fitness.jobs.midnight_tick.run_midnight_tick")
    def test_main_runs_tick(self, run_tick, configure_logging) -> None:
        run_tick.return_value = ActivationResult(
            rollover=RolloverResult(True, date(2026, 2, 21), 3, 0),
            quests_generated=True,
        )

        main()

        configure_logging.assert_called_once()
        run_tick.assert_called_once_with()


if __name__ == "__main__":
    unittest.main()
