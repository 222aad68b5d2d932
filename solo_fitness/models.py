"""Player record and daily quest types, plus their JSON-shaped dict form.

``PlayerRecord.from_dict`` is the schema migration path: stored data is
merged onto the default record field by field, so saves written by older
versions load without losing anything they do carry.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date

from solo_fitness.catalog import BASE_STATS, MAX_FATIGUE, QUESTS_PER_DAY, STAT_NAMES

logger = logging.getLogger(__name__)

DEFAULT_NAME = "Hunter"
NAME_MAX_LENGTH = 20

# Short keys used by early saves.
_LEGACY_STAT_KEYS = {"str": "strength", "end": "endurance", "agi": "agility", "vit": "vitality"}


def _parse_date(raw) -> date | None:
    if not raw:
        return None
    try:
        return date.fromisoformat(str(raw))
    except ValueError:
        logger.warning("Ignoring unparseable stored date %r", raw)
        return None


def _as_int(raw, fallback: int, minimum: int | None = None) -> int:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return fallback
    if isinstance(raw, float) and not math.isfinite(raw):
        return fallback
    value = int(raw)
    if minimum is not None and value < minimum:
        return fallback
    return value


def _as_bool(raw, fallback: bool) -> bool:
    return raw if isinstance(raw, bool) else fallback


def _as_list(raw) -> list:
    return raw if isinstance(raw, list) else []


@dataclass
class Stats:
    strength: int = BASE_STATS["strength"]
    endurance: int = BASE_STATS["endurance"]
    agility: int = BASE_STATS["agility"]
    vitality: int = BASE_STATS["vitality"]

    def to_dict(self) -> dict:
        return {name: getattr(self, name) for name in STAT_NAMES}

    @classmethod
    def from_dict(cls, data) -> "Stats":
        stats = cls()
        if not isinstance(data, dict):
            return stats
        for key, raw in data.items():
            name = _LEGACY_STAT_KEYS.get(key, key)
            if name in STAT_NAMES:
                setattr(stats, name, _as_int(raw, getattr(stats, name)))
        return stats


@dataclass
class Quest:
    id: str
    exercise_type: str
    name: str
    unit: str
    difficulty_tier: str
    target_value: int
    experience_reward: int
    fatigue_delta: int
    completed: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "exercise_type": self.exercise_type,
            "name": self.name,
            "unit": self.unit,
            "difficulty_tier": self.difficulty_tier,
            "target_value": self.target_value,
            "experience_reward": self.experience_reward,
            "fatigue_delta": self.fatigue_delta,
            "completed": self.completed,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Quest":
        return cls(
            id=str(data["id"]),
            exercise_type=str(data["exercise_type"]),
            name=str(data.get("name", data["exercise_type"])),
            unit=str(data.get("unit", "reps")),
            difficulty_tier=str(data.get("difficulty_tier", "normal")),
            target_value=_as_int(data.get("target_value"), 0, minimum=0),
            experience_reward=_as_int(data.get("experience_reward"), 0, minimum=0),
            fatigue_delta=_as_int(data.get("fatigue_delta"), 0),
            completed=_as_bool(data.get("completed"), False),
        )


@dataclass
class HistoryEntry:
    date: date
    quests_done: int

    def to_dict(self) -> dict:
        return {"date": self.date.isoformat(), "quests_done": self.quests_done}


@dataclass
class PlayerRecord:
    name: str = DEFAULT_NAME
    level: int = 1
    experience: int = 0
    stats: Stats = field(default_factory=Stats)
    fatigue: int = 0
    daily_quests: list[Quest] = field(default_factory=list)
    last_reset_date: date | None = None
    streak: int = 0
    best_streak: int = 0
    history: list[HistoryEntry] = field(default_factory=list)
    earned_achievements: list[str] = field(default_factory=list)

    def history_for(self, day: date) -> HistoryEntry | None:
        for entry in self.history:
            if entry.date == day:
                return entry
        return None

    def find_quest(self, quest_id: str) -> Quest | None:
        for quest in self.daily_quests:
            if quest.id == quest_id:
                return quest
        return None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "level": self.level,
            "experience": self.experience,
            "stats": self.stats.to_dict(),
            "fatigue": self.fatigue,
            "daily_quests": [q.to_dict() for q in self.daily_quests],
            "last_reset_date": self.last_reset_date.isoformat() if self.last_reset_date else None,
            "streak": self.streak,
            "best_streak": self.best_streak,
            "history": [h.to_dict() for h in self.history],
            "earned_achievements": list(self.earned_achievements),
        }

    @classmethod
    def from_dict(cls, data) -> "PlayerRecord":
        record = cls()
        if not isinstance(data, dict):
            logger.warning("Stored player record is not an object; using defaults")
            return record

        name = data.get("name")
        if isinstance(name, str) and 0 < len(name.strip()) <= NAME_MAX_LENGTH:
            record.name = name.strip()
        record.level = _as_int(data.get("level"), record.level, minimum=1)
        record.experience = _as_int(data.get("experience"), record.experience, minimum=0)
        record.stats = Stats.from_dict(data.get("stats"))
        record.fatigue = min(MAX_FATIGUE, _as_int(data.get("fatigue"), record.fatigue, minimum=0))
        record.last_reset_date = _parse_date(data.get("last_reset_date"))
        record.streak = _as_int(data.get("streak"), record.streak, minimum=0)
        record.best_streak = max(record.streak, _as_int(data.get("best_streak"), record.best_streak, minimum=0))

        quests = []
        for raw in _as_list(data.get("daily_quests")):
            try:
                quests.append(Quest.from_dict(raw))
            except (KeyError, TypeError, AttributeError):
                logger.warning("Dropping malformed stored quest %r", raw)
        # A partial batch can never be cleared; activation generates a fresh one.
        record.daily_quests = quests if len(quests) == QUESTS_PER_DAY else []

        seen: set[date] = set()
        for raw in _as_list(data.get("history")):
            if not isinstance(raw, dict):
                continue
            day = _parse_date(raw.get("date"))
            if day is None or day in seen:
                continue
            seen.add(day)
            record.history.append(HistoryEntry(day, _as_int(raw.get("quests_done"), 4, minimum=0)))

        for achievement_id in _as_list(data.get("earned_achievements")):
            if isinstance(achievement_id, str) and achievement_id not in record.earned_achievements:
                record.earned_achievements.append(achievement_id)
        return record
