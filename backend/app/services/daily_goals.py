# backend/app/services/daily_goals.py
"""
Daily nutrition goals: per-user targets with configured fallbacks
"""

from typing import Dict, Any
import logging

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from app.models.database import NutritionGoal
from app.core.config import settings
from app.core.exceptions import ServiceError

logger = logging.getLogger(__name__)


def default_goals() -> Dict[str, float]:
    return {
        "calories": settings.default_calories_goal,
        "protein": settings.default_protein_goal,
        "carbs": settings.default_carbs_goal,
        "fat": settings.default_fat_goal,
        "water": settings.default_water_goal_ml,
    }


class DailyGoalsService:
    """Reads and stores a user's daily targets"""

    def __init__(self, db: Session):
        self.db = db

    def get_goals(self, user_id: int) -> Dict[str, float]:
        """Goals keyed calories/protein/carbs/fat/water, falling back to defaults"""
        goal = self.db.query(NutritionGoal).filter(NutritionGoal.user_id == user_id).first()
        if not goal:
            return default_goals()
        return {
            "calories": goal.calories,
            "protein": goal.protein_g,
            "carbs": goal.carbs_g,
            "fat": goal.fat_g,
            "water": goal.water_ml,
        }

    def get_goals_response(self, user_id: int) -> Dict[str, Any]:
        goal = self.db.query(NutritionGoal).filter(NutritionGoal.user_id == user_id).first()
        goals = self.get_goals(user_id)
        return {
            "calories": goals["calories"],
            "protein_g": goals["protein"],
            "carbs_g": goals["carbs"],
            "fat_g": goals["fat"],
            "water_ml": goals["water"],
            "is_default": goal is None,
        }

    def upsert_goals(self, user_id: int, values: Dict[str, float]) -> Dict[str, Any]:
        try:
            goal = self.db.query(NutritionGoal).filter(NutritionGoal.user_id == user_id).first()
            if goal is None:
                goal = NutritionGoal(user_id=user_id, **values)
                self.db.add(goal)
            else:
                for field, value in values.items():
                    setattr(goal, field, value)
            self.db.commit()
            logger.info(f"Saved daily goals for user {user_id}")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error saving daily goals: {str(e)}")
            raise ServiceError("Failed to save daily goals") from e

        return self.get_goals_response(user_id)
