from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent / "content_packs"

FALLBACK_QUOTE = "Arise, Hunter."


def _load_json(path: Path, fallback):
    if not path.exists():
        return fallback
    try:
        return json.loads(path.read_text(encoding="utf-8-sig"))
    except json.JSONDecodeError as exc:
        logger.warning("Content file %s is not valid JSON: %s", path, exc)
        return fallback


def load_quotes(pack: str = "quotes") -> list[str]:
    data = _load_json(BASE_DIR / f"{pack}.json", {})
    quotes = data.get("quotes") if isinstance(data, dict) else None
    if not isinstance(quotes, list):
        return []
    return [q for q in quotes if isinstance(q, str) and q.strip()]


def daily_quote(for_date: date, quotes: list[str] | None = None) -> str:
    """Quote of the day; the same weekday always shows the same line."""
    quotes = load_quotes() if quotes is None else quotes
    if not quotes:
        return FALLBACK_QUOTE
    # Weeks start on Sunday for the rotation.
    weekday = (for_date.weekday() + 1) % 7
    return quotes[weekday % len(quotes)]
