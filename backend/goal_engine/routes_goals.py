"""
Read-only reporting routes for goals and their funnels.
"""

import logging
from dataclasses import asdict
from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from goal_engine.config import FUNNEL_BOTTLENECK_LIMIT
from goal_engine.database import get_db
from goal_engine.date_range import DateRange
from goal_engine.exceptions import ConfigurationError, GoalDefinitionError, GoalNotFoundError
from goal_engine.funnel_analyzer import FunnelAnalyzer
from goal_engine.goal_service import GoalService
from goal_engine.models import Goal
from goal_engine.schemas import GoalOut
from goal_engine.stores import Scope

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/goals", tags=["Goals"])

DEFAULT_RANGE_DAYS = 30


# ── Helpers ─────────────────────────────────────────────────────────────

def get_scope(site_id: Optional[int] = Query(None), tenant_id: Optional[str] = Query(None)) -> Scope:
    return Scope(site_id=site_id, tenant_id=tenant_id)


def parse_range(start: Optional[str], end: Optional[str], field_name: str = "range") -> DateRange:
    """Builds a DateRange from ISO dates, defaulting to the last 30 days; 400 on bad input."""
    if start is None and end is None:
        return DateRange.last_days(DEFAULT_RANGE_DAYS)
    try:
        end = end or datetime.now().date().isoformat()
        start = start or (datetime.fromisoformat(end) - timedelta(days=DEFAULT_RANGE_DAYS)).date().isoformat()
        return DateRange.from_strings(start, end)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid {field_name}: {e}")


def get_goal_or_404(service: GoalService, goal_id: int) -> Goal:
    try:
        return service.get(goal_id)
    except GoalNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


def _analyzer(db: Session, scope: Scope) -> FunnelAnalyzer:
    return FunnelAnalyzer.for_db(db, scope)


# ── Goals ───────────────────────────────────────────────────────────────

@router.get("", response_model=List[GoalOut])
def list_goals(
    active: bool = False,
    type: Optional[str] = None,
    scope: Scope = Depends(get_scope),
    db: Session = Depends(get_db),
):
    service = GoalService(db, scope)
    goals = service.active(type) if active else service.all()
    if type is not None and not active:
        goals = [g for g in goals if g.type == type]
    return goals


@router.get("/{goal_id}", response_model=GoalOut)
def get_goal(goal_id: int, scope: Scope = Depends(get_scope), db: Session = Depends(get_db)):
    return get_goal_or_404(GoalService(db, scope), goal_id)


# ── Funnels ─────────────────────────────────────────────────────────────

@router.get("/{goal_id}/funnel")
def analyze_funnel(
    goal_id: int,
    start: Optional[str] = None,
    end: Optional[str] = None,
    scope: Scope = Depends(get_scope),
    db: Session = Depends(get_db),
):
    goal = get_goal_or_404(GoalService(db, scope), goal_id)
    date_range = parse_range(start, end)
    try:
        return _analyzer(db, scope).analyze(goal, date_range).to_dict()
    except (ConfigurationError, GoalDefinitionError) as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/{goal_id}/funnel/compare")
def compare_funnel(
    goal_id: int,
    start: Optional[str] = None,
    end: Optional[str] = None,
    previous_start: Optional[str] = None,
    previous_end: Optional[str] = None,
    scope: Scope = Depends(get_scope),
    db: Session = Depends(get_db),
):
    goal = get_goal_or_404(GoalService(db, scope), goal_id)
    current_range = parse_range(start, end)
    if previous_start is None and previous_end is None:
        previous_range = current_range.previous_period()
    else:
        previous_range = parse_range(previous_start, previous_end, "previous range")
    try:
        return _analyzer(db, scope).compare(goal, current_range, previous_range).to_dict()
    except (ConfigurationError, GoalDefinitionError) as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/{goal_id}/funnel/bottlenecks")
def funnel_bottlenecks(
    goal_id: int,
    start: Optional[str] = None,
    end: Optional[str] = None,
    limit: int = Query(FUNNEL_BOTTLENECK_LIMIT, ge=1, le=50),
    scope: Scope = Depends(get_scope),
    db: Session = Depends(get_db),
):
    goal = get_goal_or_404(GoalService(db, scope), goal_id)
    date_range = parse_range(start, end)
    try:
        steps = _analyzer(db, scope).get_bottlenecks(goal, date_range, limit)
    except (ConfigurationError, GoalDefinitionError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"goal_id": goal.id, "date_range": date_range.to_dict(), "bottlenecks": [asdict(s) for s in steps]}
