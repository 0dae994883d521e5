# propstats/routers/system_routes.py

from typing import Any, Dict, Optional

from fastapi import APIRouter, Header, HTTPException, Request
import logging

from propstats.core import config
from propstats.services.rolling_splits import RollingSplitsJob

logger = logging.getLogger("propstats.routes.system")

router = APIRouter(tags=["System"])


# ------------ Cache ------------
@router.get("/system/cache")
async def cache_stats(request: Request) -> Dict[str, Any]:
    return request.app.state.cache.stats().to_dict()


@router.delete("/system/cache/players/{playerId}")
async def invalidate_player(playerId: int, request: Request) -> Dict[str, Any]:
    removed = request.app.state.engine.invalidate_player(playerId)
    return {"playerId": playerId, "removed": removed}


# ------------ Fallback ------------
def _fallback_payload(request: Request) -> Dict[str, Any]:
    fallback = request.app.state.fallback
    return {
        **fallback.state().to_dict(),
        "secondsUntilRetry": fallback.seconds_until_retry(),
    }


@router.get("/system/fallback")
async def fallback_status(request: Request) -> Dict[str, Any]:
    return _fallback_payload(request)


@router.post("/system/fallback/retry")
async def fallback_retry(request: Request) -> Dict[str, Any]:
    ok = await request.app.state.fallback.force_retry()
    return {"ok": ok, **_fallback_payload(request)}


# ------------ Cron ------------
@router.post("/cron/rolling-splits")
async def cron_rolling_splits(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> Dict[str, Any]:
    secret = config.CRON_SECRET
    if not secret or authorization != f"Bearer {secret}":
        raise HTTPException(status_code=401, detail="Unauthorized")

    job = RollingSplitsJob(request.app.state.source, request.app.state.fallback)
    summary = await job.run()
    return {"success": True, **summary}
