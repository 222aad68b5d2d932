from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator

from solo_fitness.config import settings
from solo_fitness.models import PlayerRecord

logger = logging.getLogger(__name__)

DB_PATH = settings.db_path

PLAYER_KEY = "player_record"
LAST_LOGIN_KEY = "last_login_date"
SIMULATED_DATE_KEY = "simulated_date"


class StorageUnavailable(RuntimeError):
    """Durable storage could not be read or written."""


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_conn() -> sqlite3.Connection:
    conn = sqlite3.connect(DB_PATH, timeout=5)
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def _connection() -> Iterator[sqlite3.Connection]:
    try:
        conn = get_conn()
    except (sqlite3.Error, OSError) as exc:
        raise StorageUnavailable(f"cannot open {DB_PATH}: {exc}") from exc
    try:
        yield conn
    except (sqlite3.Error, OSError) as exc:
        raise StorageUnavailable(str(exc)) from exc
    finally:
        conn.close()


def init_db() -> None:
    with _connection() as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        conn.commit()


def kv_get(key: str) -> str | None:
    with _connection() as conn:
        row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None


def kv_set(key: str, value: str) -> None:
    with _connection() as conn:
        conn.execute(
            """
            INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
            (key, value, utc_now_iso()),
        )
        conn.commit()


def kv_delete(key: str) -> None:
    with _connection() as conn:
        conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        conn.commit()


class PlayerStore:
    """Loads and saves the single player record under ``PLAYER_KEY``."""

    def load(self) -> PlayerRecord:
        init_db()
        raw = kv_get(PLAYER_KEY)
        if raw is None:
            record = PlayerRecord()
            self.save(record)
            logger.info("Initialized new player record")
            return record
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Stored player record is not valid JSON (%s); starting from defaults", exc)
            return PlayerRecord()
        return PlayerRecord.from_dict(data)

    def save(self, record: PlayerRecord) -> None:
        kv_set(PLAYER_KEY, json.dumps(record.to_dict()))
