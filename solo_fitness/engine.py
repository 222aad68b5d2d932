"""Daily progression state machine.

The engine owns one ``PlayerRecord`` and is driven by two triggers: an
activation (the app was opened, or the midnight job ran) and a quest
completion. Every operation mutates the record, saves it straight away and
returns a plain result object describing what happened, so whatever renders
the game can react to level-ups, rank-ups and unlocked achievements without
the engine knowing about it.

Each trigger re-reads the stored record first, since the app and the
midnight job are separate processes writing the same key.

Saving is best effort. When storage is unavailable the session carries on
in memory, and the first result returned afterwards carries the error so the
caller can warn that progress will not survive a restart. If the record could
not be read at all, nothing is saved until it can be, so a stored record is
never replaced by a blank one.
"""

from __future__ import annotations

import logging
import random
import uuid
from dataclasses import dataclass, field
from datetime import date, timedelta

from solo_fitness.catalog import (
    ACHIEVEMENTS,
    EXERCISE_TYPES,
    FATIGUE_RECOVERY_PER_DAY,
    MAX_FATIGUE,
    QUESTS_PER_DAY,
    STAT_INCREASE_PER_LEVEL,
    STAT_NAMES,
    STREAK_BONUS_XP,
    TIER_PATTERN,
    Achievement,
    ExerciseType,
    Rank,
    experience_to_next,
    quest_reward,
    quest_target,
    rank_for,
)
from solo_fitness.clock import SystemClock
from solo_fitness.db import PlayerStore, StorageUnavailable
from solo_fitness.models import NAME_MAX_LENGTH, HistoryEntry, PlayerRecord, Quest

logger = logging.getLogger(__name__)

NO_QUESTS_YET = "no_quests_yet"
QUESTS_ACTIVE_INCOMPLETE = "quests_active_incomplete"
QUESTS_ACTIVE_ALL_COMPLETE = "quests_active_all_complete"


def achievement_dict(achievement: Achievement) -> dict:
    return {
        "id": achievement.id,
        "name": achievement.name,
        "description": achievement.description,
        "rarity": achievement.rarity,
    }


@dataclass(frozen=True)
class LevelUpEvent:
    level: int
    old_stats: dict[str, int]
    new_stats: dict[str, int]
    rank: str
    rank_up: bool

    @property
    def stat_deltas(self) -> dict[str, int]:
        return {name: self.new_stats[name] - self.old_stats[name] for name in STAT_NAMES}

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "old_stats": dict(self.old_stats),
            "new_stats": dict(self.new_stats),
            "stat_deltas": self.stat_deltas,
            "rank": self.rank,
            "rank_up": self.rank_up,
        }


@dataclass(frozen=True)
class RolloverResult:
    rolled_over: bool
    today: date
    streak_before: int
    streak_after: int

    @property
    def streak_changed(self) -> bool:
        return self.streak_before != self.streak_after

    def to_dict(self) -> dict:
        return {
            "rolled_over": self.rolled_over,
            "today": self.today.isoformat(),
            "streak_before": self.streak_before,
            "streak_after": self.streak_after,
            "streak_changed": self.streak_changed,
        }


@dataclass(frozen=True)
class PendingCompletion:
    """A validated completion whose effects have been decided but not applied."""

    quest_id: str
    base_experience: int
    streak_bonus: int

    @property
    def experience(self) -> int:
        return self.base_experience + self.streak_bonus


@dataclass
class CompletionResult:
    quest_id: str
    experience_awarded: int
    fatigue: int
    day_cleared: bool
    streak_started: bool
    streak: int
    level_ups: list[LevelUpEvent] = field(default_factory=list)
    achievements: list[Achievement] = field(default_factory=list)
    storage_error: str | None = None

    def to_dict(self) -> dict:
        return {
            "quest_id": self.quest_id,
            "experience_awarded": self.experience_awarded,
            "fatigue": self.fatigue,
            "day_cleared": self.day_cleared,
            "streak_started": self.streak_started,
            "streak": self.streak,
            "level_ups": [e.to_dict() for e in self.level_ups],
            "achievements": [achievement_dict(a) for a in self.achievements],
            "storage_error": self.storage_error,
        }


@dataclass
class ExperienceGrant:
    amount: int
    source: str
    level_ups: list[LevelUpEvent] = field(default_factory=list)
    achievements: list[Achievement] = field(default_factory=list)
    storage_error: str | None = None

    def to_dict(self) -> dict:
        return {
            "amount": self.amount,
            "source": self.source,
            "level_ups": [e.to_dict() for e in self.level_ups],
            "achievements": [achievement_dict(a) for a in self.achievements],
            "storage_error": self.storage_error,
        }


@dataclass
class ActivationResult:
    rollover: RolloverResult
    quests_generated: bool
    level_ups: list[LevelUpEvent] = field(default_factory=list)
    achievements: list[Achievement] = field(default_factory=list)
    storage_error: str | None = None

    def to_dict(self) -> dict:
        return {
            "rollover": self.rollover.to_dict(),
            "quests_generated": self.quests_generated,
            "level_ups": [e.to_dict() for e in self.level_ups],
            "achievements": [achievement_dict(a) for a in self.achievements],
            "storage_error": self.storage_error,
        }


def level_up(record: PlayerRecord) -> list[LevelUpEvent]:
    """Spend experience on as many levels as it covers, lowest level first."""
    events = []
    while record.experience >= experience_to_next(record.level):
        old_rank = rank_for(record.level)
        old_stats = record.stats.to_dict()
        record.experience -= experience_to_next(record.level)
        record.level += 1
        for name in STAT_NAMES:
            setattr(record.stats, name, getattr(record.stats, name) + STAT_INCREASE_PER_LEVEL)
        new_rank = rank_for(record.level)
        events.append(
            LevelUpEvent(
                level=record.level,
                old_stats=old_stats,
                new_stats=record.stats.to_dict(),
                rank=new_rank.name,
                rank_up=new_rank.name != old_rank.name,
            )
        )
    return events


def evaluate_achievements(record: PlayerRecord) -> list[Achievement]:
    unlocked = []
    for achievement in ACHIEVEMENTS:
        if achievement.id in record.earned_achievements:
            continue
        if achievement.check(record):
            unlocked.append(achievement)
    # Predicates are checked against the same snapshot before any id is added.
    record.earned_achievements.extend(a.id for a in unlocked)
    return unlocked


class ProgressionEngine:
    def __init__(
        self,
        store: PlayerStore | None = None,
        clock=None,
        rng: random.Random | None = None,
        exercise_types: dict[str, ExerciseType] | None = None,
    ) -> None:
        self.store = store or PlayerStore()
        self.clock = clock or SystemClock()
        self.rng = rng or random.Random()
        self.exercise_types = exercise_types or EXERCISE_TYPES
        self._storage_error: str | None = None
        self._storage_error_reported = False
        # Nothing is written until the stored record has been read once, so a
        # failed first load can never replace saved progress with defaults.
        self._loaded = False
        self._unsaved = False
        self.record = PlayerRecord()
        self.refresh()

    # -- storage -----------------------------------------------------------

    def refresh(self) -> PlayerRecord:
        """Re-read the stored record before acting on it.

        The midnight job and the app can both write the record, so every
        trigger starts from what is stored rather than from memory. Changes
        that failed to save are kept instead and written by the next save.
        """
        if self._unsaved:
            return self.record
        try:
            record = self.store.load()
        except StorageUnavailable as exc:
            self._note_storage_error(exc)
            return self.record
        self.record = record
        self._loaded = True
        self._note_storage_ok()
        return self.record

    def _persist(self) -> None:
        if not self._loaded:
            logger.debug("Stored record has not been read yet; not saving")
            return
        try:
            self.store.save(self.record)
        except StorageUnavailable as exc:
            self._unsaved = True
            self._note_storage_error(exc)
            return
        self._unsaved = False
        self._note_storage_ok()

    def _note_storage_error(self, exc: StorageUnavailable) -> None:
        if self._storage_error is None:
            logger.warning("Storage unavailable, progress is kept in memory only: %s", exc)
            self._storage_error = str(exc)
        else:
            logger.debug("Storage still unavailable: %s", exc)

    def _note_storage_ok(self) -> None:
        if self._storage_error is not None:
            logger.info("Storage available again")
            self._storage_error = None
            self._storage_error_reported = False

    def pop_storage_error(self) -> str | None:
        """Return the storage failure once; later calls return None."""
        if self._storage_error is None or self._storage_error_reported:
            return None
        self._storage_error_reported = True
        return self._storage_error

    @property
    def persistent(self) -> bool:
        """False while the record in memory is not what storage holds."""
        return self._storage_error is None

    # -- triggers ----------------------------------------------------------

    def activate(self) -> ActivationResult:
        self.refresh()
        today = self.clock.today()
        rollover = self.rollover(today)
        generated = False
        if not self.record.daily_quests:
            self.generate_daily_quests()
            generated = True
        level_ups = level_up(self.record)
        achievements = evaluate_achievements(self.record)
        if level_ups or achievements:
            self._persist()
        return ActivationResult(
            rollover=rollover,
            quests_generated=generated,
            level_ups=level_ups,
            achievements=achievements,
            storage_error=self.pop_storage_error(),
        )

    def rollover(self, today: date) -> RolloverResult:
        record = self.record
        before = record.streak
        if record.last_reset_date == today:
            return RolloverResult(False, today, before, before)

        if record.last_reset_date is not None:
            # History is the ledger of cleared days, so any gap breaks the
            # streak no matter how many days were skipped.
            yesterday = today - timedelta(days=1)
            if record.history_for(yesterday) is not None:
                record.streak += 1
            else:
                record.streak = 0
            record.best_streak = max(record.best_streak, record.streak)

        record.daily_quests = []
        record.last_reset_date = today
        record.fatigue = max(0, record.fatigue - FATIGUE_RECOVERY_PER_DAY)
        self._persist()
        logger.info("Rolled over to %s (streak %d -> %d)", today, before, record.streak)
        return RolloverResult(True, today, before, record.streak)

    def generate_daily_quests(self) -> list[Quest]:
        if self.record.daily_quests:
            return list(self.record.daily_quests)

        keys = list(self.exercise_types)
        picks = self.rng.sample(keys, min(QUESTS_PER_DAY, len(keys)))
        while len(picks) < QUESTS_PER_DAY:
            picks.append(self.rng.choice(keys))

        batch = uuid.uuid4().hex[:10]
        quests = []
        for index, (key, tier) in enumerate(zip(picks, TIER_PATTERN)):
            exercise = self.exercise_types[key]
            quests.append(
                Quest(
                    id=f"{exercise.id}_{batch}_{index}",
                    exercise_type=exercise.id,
                    name=exercise.name,
                    unit=exercise.unit,
                    difficulty_tier=tier,
                    target_value=quest_target(exercise, self.record.level),
                    experience_reward=quest_reward(exercise, tier),
                    fatigue_delta=exercise.fatigue_delta,
                )
            )
        self.record.daily_quests = quests
        self._persist()
        logger.info("Generated quests: %s", ", ".join(f"{q.exercise_type}/{q.difficulty_tier}" for q in quests))
        return list(quests)

    def prepare_completion(self, quest_id: str) -> PendingCompletion | None:
        self.refresh()
        quest = self.record.find_quest(quest_id)
        if quest is None or quest.completed:
            logger.debug("Ignoring completion of unknown or finished quest %s", quest_id)
            return None
        bonus = STREAK_BONUS_XP if self.record.streak > 0 else 0
        return PendingCompletion(quest_id=quest.id, base_experience=quest.experience_reward, streak_bonus=bonus)

    def apply_completion(self, pending: PendingCompletion) -> CompletionResult | None:
        self.refresh()
        record = self.record
        quest = record.find_quest(pending.quest_id)
        # Checked again here: another completion may have landed since prepare.
        if quest is None or quest.completed:
            logger.debug("Completion of %s already applied", pending.quest_id)
            return None

        quest.completed = True
        record.experience += pending.experience
        record.fatigue = min(MAX_FATIGUE, max(0, record.fatigue + quest.fatigue_delta))

        day_cleared = len(record.daily_quests) == QUESTS_PER_DAY and all(q.completed for q in record.daily_quests)
        streak_started = False
        if day_cleared:
            today = self.clock.today()
            if record.history_for(today) is None:
                record.history.append(HistoryEntry(today, QUESTS_PER_DAY))
            if record.streak == 0:
                record.streak = 1
                record.best_streak = max(record.best_streak, 1)
                streak_started = True

        level_ups = level_up(record)
        achievements = evaluate_achievements(record)
        self._persist()
        logger.info("Quest %s completed (+%d XP)", quest.id, pending.experience)
        return CompletionResult(
            quest_id=quest.id,
            experience_awarded=pending.experience,
            fatigue=record.fatigue,
            day_cleared=day_cleared,
            streak_started=streak_started,
            streak=record.streak,
            level_ups=level_ups,
            achievements=achievements,
            storage_error=self.pop_storage_error(),
        )

    def complete_quest(self, quest_id: str) -> CompletionResult | None:
        pending = self.prepare_completion(quest_id)
        if pending is None:
            return None
        return self.apply_completion(pending)

    def award_experience(self, amount: int, source: str) -> ExperienceGrant:
        amount = max(0, int(amount))
        self.refresh()
        self.record.experience += amount
        level_ups = level_up(self.record)
        achievements = evaluate_achievements(self.record)
        self._persist()
        logger.info("Awarded %d XP (%s)", amount, source)
        return ExperienceGrant(
            amount=amount,
            source=source,
            level_ups=level_ups,
            achievements=achievements,
            storage_error=self.pop_storage_error(),
        )

    def rename_hunter(self, new_name) -> bool:
        if not isinstance(new_name, str):
            return False
        name = new_name.strip()
        if not 0 < len(name) <= NAME_MAX_LENGTH:
            return False
        self.refresh()
        self.record.name = name
        self._persist()
        return True

    # -- read accessors ----------------------------------------------------

    def current_rank(self) -> Rank:
        return rank_for(self.record.level)

    def experience_to_next(self) -> int:
        return experience_to_next(self.record.level)

    def day_state(self) -> str:
        quests = self.record.daily_quests
        if not quests:
            return NO_QUESTS_YET
        if all(q.completed for q in quests):
            return QUESTS_ACTIVE_ALL_COMPLETE
        return QUESTS_ACTIVE_INCOMPLETE

    def snapshot(self) -> dict:
        data = self.record.to_dict()
        data["rank"] = self.current_rank().name
        data["experience_to_next"] = self.experience_to_next()
        data["day_state"] = self.day_state()
        data["streak_bonus"] = STREAK_BONUS_XP if self.record.streak > 0 else 0
        return data

    def history_buckets(self, days: int = 30, today: date | None = None) -> list[dict]:
        today = today or self.clock.today()
        buckets = []
        for offset in range(days - 1, -1, -1):
            day = today - timedelta(days=offset)
            entry = self.record.history_for(day)
            buckets.append({"date": day.isoformat(), "quests_done": entry.quests_done if entry else 0})
        return buckets

    def achievement_board(self) -> dict:
        earned = set(self.record.earned_achievements)
        entries = [{**achievement_dict(a), "earned": a.id in earned} for a in ACHIEVEMENTS]
        entries.sort(key=lambda entry: not entry["earned"])
        return {
            "achievements": entries,
            "earned": sum(1 for entry in entries if entry["earned"]),
            "total": len(ACHIEVEMENTS),
        }
