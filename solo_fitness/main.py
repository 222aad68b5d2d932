from __future__ import annotations

import asyncio
import logging

from fastapi import Depends, FastAPI, Form
from fastapi.responses import JSONResponse

from solo_fitness.clock import SimulatedClock, build_clock, seconds_until_reset
from solo_fitness.config import configure_logging, settings
from solo_fitness.content import daily_quote
from solo_fitness.db import StorageUnavailable, init_db
from solo_fitness.engine import ProgressionEngine
from solo_fitness.login_bonus import claim_daily_login_bonus

logger = logging.getLogger(__name__)

app = FastAPI(title="Solo Fitness")

# Every handler is ``async def`` so requests run one at a time on the event
# loop; mutations additionally take this lock so a paced completion cannot
# interleave with another write.
_write_lock = asyncio.Lock()
_engine: ProgressionEngine | None = None


@app.on_event("startup")
def startup() -> None:
    configure_logging()
    try:
        init_db()
    except StorageUnavailable as exc:
        logger.warning("Storage unavailable at startup: %s", exc)


async def get_engine() -> ProgressionEngine:
    global _engine
    if _engine is None:
        _engine = ProgressionEngine(clock=build_clock(settings.testing_mode))
    return _engine


@app.get("/api/state", response_class=JSONResponse)
async def state(engine: ProgressionEngine = Depends(get_engine)) -> JSONResponse:
    async with _write_lock:
        engine.refresh()
    today = engine.clock.today()
    return JSONResponse(
        {
            "today": today.isoformat(),
            "player": engine.snapshot(),
            "quote": daily_quote(today),
            "seconds_until_reset": seconds_until_reset(),
            "history": engine.history_buckets(today=today),
            "achievements": engine.achievement_board(),
            "persistent": engine.persistent,
            "storage_error": engine.pop_storage_error(),
            "testing_mode": settings.testing_mode,
        }
    )


@app.post("/api/activate", response_class=JSONResponse)
async def activate(engine: ProgressionEngine = Depends(get_engine)) -> JSONResponse:
    async with _write_lock:
        result = engine.activate()
        bonus = claim_daily_login_bonus(engine)
    payload = result.to_dict()
    payload["login_bonus"] = bonus.to_dict() if bonus else None
    return JSONResponse(payload)


@app.post("/api/quests/{quest_id}/complete", response_class=JSONResponse)
async def complete_quest(quest_id: str, engine: ProgressionEngine = Depends(get_engine)) -> JSONResponse:
    pending = engine.prepare_completion(quest_id)
    if pending is None:
        return JSONResponse({"quest_id": quest_id, "applied": False})

    # Pacing only: the award is already decided and is re-validated on apply.
    if settings.completion_delay_ms:
        await asyncio.sleep(settings.completion_delay_ms / 1000)
    async with _write_lock:
        result = engine.apply_completion(pending)
    if result is None:
        return JSONResponse({"quest_id": quest_id, "applied": False})
    return JSONResponse({"applied": True, **result.to_dict()})


@app.post("/api/hunter/name", response_class=JSONResponse)
async def rename_hunter(name: str = Form(""), engine: ProgressionEngine = Depends(get_engine)) -> JSONResponse:
    async with _write_lock:
        renamed = engine.rename_hunter(name)
    return JSONResponse({"renamed": renamed, "name": engine.record.name})


@app.post("/testing/advance-day", response_class=JSONResponse)
async def advance_day(engine: ProgressionEngine = Depends(get_engine)) -> JSONResponse:
    if not settings.testing_mode or not isinstance(engine.clock, SimulatedClock):
        return JSONResponse({"enabled": False})
    async with _write_lock:
        try:
            engine.clock.advance(1)
        except StorageUnavailable as exc:
            return JSONResponse({"enabled": True, "error": str(exc)}, status_code=503)
        result = engine.activate()
    return JSONResponse({"enabled": True, **result.to_dict()})


@app.post("/testing/add-xp", response_class=JSONResponse)
async def add_xp(amount: int = Form(...), engine: ProgressionEngine = Depends(get_engine)) -> JSONResponse:
    if not settings.testing_mode:
        return JSONResponse({"enabled": False})
    async with _write_lock:
        grant = engine.award_experience(amount, source="testing")
    return JSONResponse({"enabled": True, **grant.to_dict()})
