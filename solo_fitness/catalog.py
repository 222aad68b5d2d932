from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from solo_fitness.models import PlayerRecord

QUESTS_PER_DAY = 4
MAX_FATIGUE = 100
FATIGUE_RECOVERY_PER_DAY = 30
STAT_INCREASE_PER_LEVEL = 2
STREAK_BONUS_XP = 15
DAILY_LOGIN_BONUS_XP = 50
TARGET_GROWTH_PER_LEVEL = 0.1

XP_CURVE_BASE = 100
XP_CURVE_GROWTH = Decimal("1.15")

STAT_NAMES = ("strength", "endurance", "agility", "vitality")
BASE_STATS = {name: 10 for name in STAT_NAMES}

NORMAL = "normal"
HARD = "hard"
EXTREME = "extreme"

# Tier of each generated quest, in generation order.
TIER_PATTERN = (NORMAL, NORMAL, HARD, EXTREME)


@dataclass(frozen=True)
class ExerciseType:
    id: str
    name: str
    base_difficulty: int
    experience_reward: int
    fatigue_delta: int
    unit: str = "reps"


@dataclass(frozen=True)
class DifficultyTier:
    key: str
    label: str
    multiplier: float


@dataclass(frozen=True)
class Rank:
    name: str
    min_level: int


@dataclass(frozen=True)
class Achievement:
    id: str
    name: str
    description: str
    rarity: str
    check: Callable[["PlayerRecord"], bool]


EXERCISE_TYPES: dict[str, ExerciseType] = {
    "pushups": ExerciseType("pushups", "Push-ups", 10, 30, 15),
    "squats": ExerciseType("squats", "Squats", 15, 30, 15),
    "plank": ExerciseType("plank", "Plank Hold", 30, 25, 10, unit="sec"),
    "jumping_jacks": ExerciseType("jumping_jacks", "Jumping Jacks", 20, 20, 12),
    "run": ExerciseType("run", "Cardio Sprint", 60, 35, 20, unit="sec"),
}

DIFFICULTY_TIERS: dict[str, DifficultyTier] = {
    NORMAL: DifficultyTier(NORMAL, "NORMAL", 1.0),
    HARD: DifficultyTier(HARD, "HARD", 1.5),
    EXTREME: DifficultyTier(EXTREME, "EXTREME", 2.0),
}

RANKS: tuple[Rank, ...] = (
    Rank("E", 1),
    Rank("D", 10),
    Rank("C", 25),
    Rank("B", 45),
    Rank("A", 70),
    Rank("S", 100),
)


def experience_to_next(level: int) -> int:
    # Decimal keeps level 2 at 115 instead of floor(114.99999999999999).
    return math.floor(XP_CURVE_BASE * XP_CURVE_GROWTH ** (level - 1))


def rank_for(level: int) -> Rank:
    chosen = RANKS[0]
    for rank in RANKS:
        if level >= rank.min_level:
            chosen = rank
    return chosen


def tier_multiplier(tier: str) -> float:
    return DIFFICULTY_TIERS[tier].multiplier


def quest_target(exercise: ExerciseType, level: int) -> int:
    return math.floor(exercise.base_difficulty * (1 + (level - 1) * TARGET_GROWTH_PER_LEVEL))


def quest_reward(exercise: ExerciseType, tier: str) -> int:
    return math.floor(exercise.experience_reward * tier_multiplier(tier))


def _all_quests_done(p: "PlayerRecord") -> bool:
    return len(p.daily_quests) == QUESTS_PER_DAY and all(q.completed for q in p.daily_quests)


# History holds one entry per fully cleared day, so the "quests_N" counters
# count cleared days.
ACHIEVEMENTS: tuple[Achievement, ...] = (
    Achievement("first_quest", "First Step", "Complete your very first quest.", "common", lambda p: len(p.history) >= 1),
    Achievement("first_day_clear", "Day One", "Clear all 4 quests in a single day.", "common", _all_quests_done),
    Achievement("streak_3", "Hat Trick", "Reach a 3-day streak.", "common", lambda p: p.streak >= 3),
    Achievement("streak_7", "Week Warrior", "Reach a 7-day streak.", "rare", lambda p: p.streak >= 7),
    Achievement("streak_14", "Fortnight Fighter", "Reach a 14-day streak.", "rare", lambda p: p.streak >= 14),
    Achievement("streak_30", "Iron Will", "Reach a 30-day streak.", "legendary", lambda p: p.streak >= 30),
    Achievement("level_5", "Rising", "Reach level 5.", "common", lambda p: p.level >= 5),
    Achievement("level_10", "Rank D Unlocked", "Reach level 10.", "common", lambda p: p.level >= 10),
    Achievement("level_25", "Rank C Unlocked", "Reach level 25.", "rare", lambda p: p.level >= 25),
    Achievement("level_50", "Halfway Legend", "Reach level 50.", "epic", lambda p: p.level >= 50),
    Achievement("level_100", "Rank S Unlocked", "Reach the legendary level 100.", "legendary", lambda p: p.level >= 100),
    Achievement("quests_10", "Warm Up", "Complete 10 total quests.", "common", lambda p: len(p.history) >= 10),
    Achievement("quests_50", "Grinder", "Complete 50 total quests.", "rare", lambda p: len(p.history) >= 50),
    Achievement("quests_100", "Century", "Complete 100 total quests.", "epic", lambda p: len(p.history) >= 100),
    Achievement("stat_str_30", "Strong Arms", "Raise STR to 30.", "rare", lambda p: p.stats.strength >= 30),
    Achievement("stat_agi_30", "Quick Feet", "Raise AGI to 30.", "rare", lambda p: p.stats.agility >= 30),
    Achievement("best_streak_7", "Streak Master", "Have a best-ever streak of 7 days.", "epic", lambda p: p.best_streak >= 7),
)

ACHIEVEMENTS_BY_ID = {a.id: a for a in ACHIEVEMENTS}
