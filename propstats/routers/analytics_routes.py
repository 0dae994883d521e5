# propstats/routers/analytics_routes.py

from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query, Request
import logging

from propstats.core.errors import EmptyInputToAdvancedMetrics
from propstats.models.projections import ProjectionType
from propstats.models.types import FilterSpec
from propstats.services.analytics import PlayerAnalyticsEngine

logger = logging.getLogger("propstats.routes.props")

router = APIRouter(prefix="/props", tags=["Props"])


def _engine(request: Request) -> PlayerAnalyticsEngine:
    return request.app.state.engine


def _parse_ids(raw: Optional[str]) -> List[int]:
    """'12,34, 56' -> [12, 34, 56]"""
    if not raw:
        return []
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError:
        raise ValueError(f"excludeTeammates must be comma-separated player ids, got {raw!r}")


def _build_filters(
    homeAway: Optional[str],
    minMinutes: Optional[float],
    lastNGames: Optional[int],
    opponentTeamId: Optional[int],
    startDate: Optional[date],
    endDate: Optional[date],
    excludeTeammates: Optional[str],
) -> FilterSpec:
    return FilterSpec(
        home_away=homeAway,
        min_minutes=minMinutes,
        last_n_games=lastNGames,
        opponent_team_id=opponentTeamId,
        start_date=startDate,
        end_date=endDate,
        exclude_teammates=frozenset(_parse_ids(excludeTeammates)),
    )


@router.get("/analyze")
async def analyze_prop(
    request: Request,
    playerId: int = Query(...),
    propType: str = Query(..., description="pts, reb, ast, ..., pra"),
    line: float = Query(...),
    homeAway: Optional[str] = Query(None, pattern="^(home|away)$"),
    minMinutes: Optional[float] = Query(None, ge=0),
    lastNGames: Optional[int] = Query(None, ge=1),
    opponentTeamId: Optional[int] = Query(None),
    startDate: Optional[date] = Query(None),
    endDate: Optional[date] = Query(None),
    excludeTeammates: Optional[str] = Query(None, description="comma-separated player ids"),
) -> Dict[str, Any]:
    try:
        filters = _build_filters(homeAway, minMinutes, lastNGames, opponentTeamId, startDate, endDate, excludeTeammates)
        result = await _engine(request).analyze(playerId, propType, line, filters)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"playerId": playerId, **result.to_dict()}


@router.get("/outcomes")
async def prop_outcomes(
    request: Request,
    playerId: int = Query(...),
    propType: str = Query(...),
    line: float = Query(...),
    homeAway: Optional[str] = Query(None, pattern="^(home|away)$"),
    minMinutes: Optional[float] = Query(None, ge=0),
    lastNGames: Optional[int] = Query(None, ge=1),
    opponentTeamId: Optional[int] = Query(None),
    startDate: Optional[date] = Query(None),
    endDate: Optional[date] = Query(None),
    excludeTeammates: Optional[str] = Query(None),
) -> Dict[str, Any]:
    try:
        filters = _build_filters(homeAway, minMinutes, lastNGames, opponentTeamId, startDate, endDate, excludeTeammates)
        outcomes = await _engine(request).game_outcomes(playerId, propType, line, filters)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "playerId": playerId,
        "propType": ProjectionType.parse(propType).key,
        "propLine": line,
        "games": [o.to_dict() for o in outcomes],
    }


@router.get("/advanced")
async def advanced_metrics(
    request: Request,
    playerId: int = Query(...),
    propType: str = Query(...),
    season: str = Query(..., description="e.g. 2023-24"),
) -> Dict[str, Any]:
    try:
        metrics = await _engine(request).advanced_metrics(playerId, propType, season)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except EmptyInputToAdvancedMetrics:
        raise HTTPException(404, f"No games for player {playerId} in season {season}")
    return {"playerId": playerId, "season": season, **metrics.to_dict()}


@router.get("/opponent-trends")
async def opponent_trends(
    request: Request,
    propType: str = Query(...),
    season: str = Query(..., description="e.g. 2023-24"),
) -> Dict[str, Any]:
    try:
        trends = await _engine(request).opponent_trends(propType, season)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "propType": ProjectionType.parse(propType).key,
        "season": season,
        "opponents": [t.to_dict() for t in trends],
    }


@router.get("/season-comparison")
async def season_comparison(
    request: Request,
    playerId: int = Query(...),
    propType: str = Query(...),
    season: str = Query(..., description="e.g. 2023-24"),
) -> Dict[str, Any]:
    try:
        comparison = await _engine(request).season_comparison(playerId, propType, season)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"playerId": playerId, "season": season, **comparison.to_dict()}


@router.get("/types")
async def projection_types() -> List[Dict[str, Any]]:
    return [
        {"key": p.key, "label": p.label, "kind": p.kind, "fields": list(p.fields)}
        for p in ProjectionType
    ]
