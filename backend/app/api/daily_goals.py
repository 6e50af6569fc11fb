# backend/app/api/daily_goals.py
"""
Daily Goals API Router
"""

import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.models.database import get_db, User
from app.services.auth import get_current_user_dependency as get_current_user
from app.services.daily_goals import DailyGoalsService
from app.services.stats_cache import get_stats_cache
from app.schemas.user import DailyGoalsUpdate, DailyGoalsResponse
from app.core.exceptions import NutritionTrackerError, raise_http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/daily-goals", tags=["Daily Goals"])


@router.get("", response_model=DailyGoalsResponse)
def get_daily_goals(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return DailyGoalsService(db).get_goals_response(current_user.id)


@router.put("", response_model=DailyGoalsResponse)
def update_daily_goals(
    request: DailyGoalsUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache=Depends(get_stats_cache)
):
    try:
        goals = DailyGoalsService(db).upsert_goals(current_user.id, request.model_dump())
    except NutritionTrackerError as e:
        raise_http_error(e)

    # Calendar scores depend on goals
    cache.invalidate_user(current_user.id)
    return goals
