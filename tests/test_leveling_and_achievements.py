from __future__ import annotations

import random
import unittest
from datetime import date, timedelta

from solo_fitness.catalog import ExerciseType, experience_to_next
from solo_fitness.engine import ProgressionEngine, evaluate_achievements, level_up
from solo_fitness.models import PlayerRecord, Stats


class FixedClock:
    def __init__(self, today: date) -> None:
        self.current = today

    def today(self) -> date:
        return self.current


class MemoryStore:
    def __init__(self, record: PlayerRecord | None = None) -> None:
        self.record = record
        self.saved: dict | None = None

    def load(self) -> PlayerRecord:
        if self.saved is not None:
            return PlayerRecord.from_dict(self.saved)
        return self.record or PlayerRecord()

    def save(self, record: PlayerRecord) -> None:
        self.saved = record.to_dict()


class LevelUpTests(unittest.TestCase):
    def test_large_award_crosses_several_levels(self) -> None:
        record = PlayerRecord(experience=250)

        events = level_up(record)

        self.assertEqual(record.level, 3)
        self.assertEqual(record.experience, 35)
        self.assertEqual([e.level for e in events], [2, 3])
        self.assertEqual(record.stats.strength, 14)
        self.assertEqual(events[0].stat_deltas, {"strength": 2, "endurance": 2, "agility": 2, "vitality": 2})
        self.assertEqual(events[1].old_stats["vitality"], 12)
        self.assertEqual(events[1].new_stats["vitality"], 14)

    def test_below_threshold_changes_nothing(self) -> None:
        record = PlayerRecord(experience=99)

        self.assertEqual(level_up(record), [])
        self.assertEqual((record.level, record.experience), (1, 99))

    def test_exact_threshold_levels_up_with_zero_left(self) -> None:
        record = PlayerRecord(experience=100)

        level_up(record)

        self.assertEqual((record.level, record.experience), (2, 0))

    def test_rank_boundary_is_flagged(self) -> None:
        record = PlayerRecord(level=9, experience=experience_to_next(9) + experience_to_next(10))

        events = level_up(record)

        self.assertEqual([(e.level, e.rank, e.rank_up) for e in events], [(10, "D", True), (11, "D", False)])


class AchievementEvaluationTests(unittest.TestCase):
    def test_every_new_unlock_is_reported_in_catalog_order(self) -> None:
        record = PlayerRecord(level=10, streak=7, best_streak=7)

        unlocked = evaluate_achievements(record)

        expected = ["streak_3", "streak_7", "level_5", "level_10", "best_streak_7"]
        self.assertEqual([a.id for a in unlocked], expected)
        self.assertEqual(record.earned_achievements, expected)

    def test_already_earned_are_not_reported_again(self) -> None:
        record = PlayerRecord(level=5)
        evaluate_achievements(record)

        self.assertEqual(evaluate_achievements(record), [])
        self.assertEqual(record.earned_achievements, ["level_5"])

    def test_earned_achievements_stay_after_condition_lapses(self) -> None:
        record = PlayerRecord(streak=3, best_streak=3)
        evaluate_achievements(record)
        record.streak = 0

        evaluate_achievements(record)

        self.assertIn("streak_3", record.earned_achievements)

    def test_stat_milestones(self) -> None:
        record = PlayerRecord(stats=Stats(strength=30, agility=31))

        ids = [a.id for a in evaluate_achievements(record)]

        self.assertEqual(ids, ["stat_str_30", "stat_agi_30"])


class ExperienceGrantTests(unittest.TestCase):
    def test_award_levels_up_and_unlocks(self) -> None:
        engine = ProgressionEngine(store=MemoryStore(PlayerRecord(level=4)), clock=FixedClock(date(2026, 5, 1)))

        grant = engine.award_experience(experience_to_next(4), source="test")

        self.assertEqual(engine.record.level, 5)
        self.assertEqual([e.level for e in grant.level_ups], [5])
        self.assertEqual([a.id for a in grant.achievements], ["level_5"])

    def test_negative_award_is_ignored(self) -> None:
        engine = ProgressionEngine(store=MemoryStore(), clock=FixedClock(date(2026, 5, 1)))

        grant = engine.award_experience(-40, source="test")

        self.assertEqual(grant.amount, 0)
        self.assertEqual(engine.record.experience, 0)


class MonotonicityTests(unittest.TestCase):
    def test_earned_set_never_shrinks_over_a_month(self) -> None:
        clock = FixedClock(date(2026, 5, 1))
        catalog = {"burpees": ExerciseType("burpees", "Burpees", 10, 40, 10)}
        engine = ProgressionEngine(store=MemoryStore(), clock=clock, rng=random.Random(3), exercise_types=catalog)
        sizes = []

        for day in range(30):
            engine.activate()
            sizes.append(len(engine.record.earned_achievements))
            # Skip every fifth day to break the streak now and then.
            if day % 5 != 4:
                for quest in list(engine.record.daily_quests):
                    engine.complete_quest(quest.id)
                    sizes.append(len(engine.record.earned_achievements))
            clock.current += timedelta(days=1)

        self.assertEqual(sizes, sorted(sizes))
        self.assertIn("streak_3", engine.record.earned_achievements)
        self.assertIn("quests_10", engine.record.earned_achievements)


if __name__ == "__main__":
    unittest.main()
