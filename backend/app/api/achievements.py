# backend/app/api/achievements.py
"""
Achievements API Router
"""

import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.models.database import get_db, User
from app.services.auth import get_current_user_dependency as get_current_user
from app.services.achievement_service import AchievementService
from app.core.exceptions import NutritionTrackerError, raise_http_error

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Achievements"])


@router.get("/achievements")
def get_achievements(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Unlocked and locked achievements with the user's level/XP summary"""
    try:
        achievements = AchievementService(db).get_user_achievements(current_user.id)
    except NutritionTrackerError as e:
        raise_http_error(e)

    return {"success": True, "data": achievements}


@router.post("/achievements/check")
def check_achievements(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Manually re-evaluate achievements"""
    try:
        result = AchievementService(db).check_and_award(current_user.id)
    except NutritionTrackerError as e:
        raise_http_error(e)

    return {"success": True, "data": result}
