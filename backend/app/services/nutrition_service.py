# backend/app/services/nutrition_service.py
"""
Nutrition Service
Meal CRUD, favorites/feedback, daily and range statistics, water intake.
Every write invalidates the user's cached statistics before returning.
"""

from typing import Dict, List, Optional, Any
from datetime import datetime, date, timezone
from collections import OrderedDict
import logging

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.exc import SQLAlchemyError

from app.models.database import Meal, WaterIntake, AnalysisStatus
from app.services import aggregation
from app.core.config import settings
from app.core.exceptions import NotFoundError, ServiceError, ValidationError

logger = logging.getLogger(__name__)

NUMERIC_FIELDS = [
    "calories",
    "protein_g",
    "carbs_g",
    "fats_g",
    "fiber_g",
    "sugar_g",
    "sodium_mg",
    "liquids_ml",
]

# Client payloads use either the column name or a short alias
FIELD_ALIASES = {
    "protein_g": "protein",
    "carbs_g": "carbs",
    "fats_g": "fat",
    "fiber_g": "fiber",
    "sugar_g": "sugar",
    "sodium_mg": "sodium",
}

UPDATABLE_FIELDS = set(NUMERIC_FIELDS) | {"meal_name", "meal_period", "ingredients", "image_url"}

RATING_FIELDS = {
    "tasteRating": "taste_rating",
    "satietyRating": "satiety_rating",
    "energyRating": "energy_rating",
    "heavinessRating": "heaviness_rating",
}


def transform_meal_for_client(meal: Meal) -> Dict[str, Any]:
    """Serialize a meal with both snake_case and camelCase keys"""
    additives = meal.additives or {}
    feedback = additives.get("feedback") or {}
    ingredients = meal.ingredients if isinstance(meal.ingredients, list) else []
    is_favorite = bool(additives.get("isFavorite", False))

    payload = {
        "meal_id": meal.id,
        "user_id": meal.user_id,
        "image_url": meal.image_url,
        "upload_time": meal.upload_time,
        "analysis_status": meal.analysis_status.value if meal.analysis_status else None,
        "meal_name": meal.meal_name,
        "meal_period": meal.meal_period,
        "created_at": meal.created_at,
        "updated_at": meal.updated_at,
        "id": str(meal.id),
        "name": meal.meal_name or "Unknown Meal",
        "description": meal.meal_name,
        "imageUrl": meal.image_url,
        "userId": meal.user_id,
        "ingredients": ingredients,
        "isFavorite": is_favorite,
        "is_favorite": is_favorite,
    }
    for field in NUMERIC_FIELDS:
        payload[field] = getattr(meal, field) or 0
    for column, alias in FIELD_ALIASES.items():
        payload[alias] = getattr(meal, column) or 0
    for camel, snake in RATING_FIELDS.items():
        payload[camel] = feedback.get(camel, 0)
        payload[snake] = feedback.get(camel, 0)
    return payload


def _to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _to_amount(field: str, raw: Any) -> float:
    """Coerce a nutrient amount, rejecting non-numeric and negative values"""
    try:
        value = float(raw or 0)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")
    if value < 0:
        raise ValidationError(f"{field} cannot be negative")
    return value


def map_meal_data(meal_data: Dict[str, Any]) -> Dict[str, Any]:
    """Map a client meal payload onto Meal column values"""
    values: Dict[str, Any] = {
        "meal_name": meal_data.get("meal_name") or meal_data.get("name") or "Unknown Meal",
        "meal_period": meal_data.get("meal_period") or meal_data.get("mealPeriod") or "other",
        "image_url": meal_data.get("image_url"),
        "ingredients": meal_data.get("ingredients") if isinstance(meal_data.get("ingredients"), list) else [],
        "additives": meal_data.get("additives") or {},
    }
    for field in NUMERIC_FIELDS:
        raw = meal_data.get(field)
        if raw is None and field in FIELD_ALIASES:
            raw = meal_data.get(FIELD_ALIASES[field])
        values[field] = _to_amount(field, raw)
    return values


class NutritionService:
    """Meal persistence and nutrition statistics"""

    def __init__(self, db: Session, cache):
        self.db = db
        self.cache = cache

    # ===== MEALS =====

    def save_meal(self, user_id: int, meal_data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            now = datetime.utcnow()
            meal = Meal(
                user_id=user_id,
                analysis_status=AnalysisStatus.COMPLETED,
                upload_time=now,
                created_at=_to_naive_utc(meal_data.get("created_at")) or now,
                **map_meal_data(meal_data)
            )
            self.db.add(meal)
            self.db.commit()
            self.db.refresh(meal)

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error saving meal: {str(e)}")
            raise ServiceError("Failed to save meal") from e

        self.cache.invalidate_user(user_id)
        logger.info(f"Meal {meal.id} saved for user {user_id}")
        return transform_meal_for_client(meal)

    def get_user_meals(self, user_id: int, offset: int = 0, limit: int = 100) -> List[Dict[str, Any]]:
        cached = self.cache.get(user_id, "meals", offset, limit)
        if cached is not None:
            logger.info("Using cached meals data")
            return cached

        try:
            meals = self.db.query(Meal).filter(
                Meal.user_id == user_id
            ).order_by(Meal.created_at.desc(), Meal.id.desc()).offset(offset).limit(limit).all()

        except SQLAlchemyError as e:
            logger.error(f"Error fetching meals: {str(e)}")
            raise ServiceError("Failed to fetch meals") from e

        result = [transform_meal_for_client(meal) for meal in meals]
        self.cache.set(user_id, result, "meals", offset, limit)
        return result

    def get_meal(self, user_id: int, meal_id: int) -> Dict[str, Any]:
        return transform_meal_for_client(self._get_owned_meal(user_id, meal_id))

    def update_meal(self, user_id: int, meal_id: int, updates: Dict[str, Any]) -> Dict[str, Any]:
        meal = self._get_owned_meal(user_id, meal_id)

        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        updates = {
            field: _to_amount(field, value) if field in NUMERIC_FIELDS else value
            for field, value in updates.items()
        }

        try:
            for field, value in updates.items():
                setattr(meal, field, value)
            meal.updated_at = datetime.utcnow()
            self.db.commit()
            self.db.refresh(meal)

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error updating meal: {str(e)}")
            raise ServiceError("Failed to update meal") from e

        self.cache.invalidate_user(user_id)
        logger.info(f"Meal {meal_id} updated for user {user_id}")
        return transform_meal_for_client(meal)

    def delete_meal(self, user_id: int, meal_id: int) -> None:
        meal = self._get_owned_meal(user_id, meal_id)
        try:
            self.db.delete(meal)
            self.db.commit()

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error deleting meal: {str(e)}")
            raise ServiceError("Failed to delete meal") from e

        self.cache.invalidate_user(user_id)
        logger.info(f"Meal {meal_id} deleted for user {user_id}")

    def toggle_favorite(self, user_id: int, meal_id: int) -> Dict[str, Any]:
        meal = self._get_owned_meal(user_id, meal_id)
        additives = dict(meal.additives or {})
        is_favorite = not bool(additives.get("isFavorite", False))
        additives["isFavorite"] = is_favorite
        additives["favoriteUpdatedAt"] = datetime.utcnow().isoformat()

        self._store_additives(meal, additives, "Failed to toggle favorite")
        self.cache.invalidate_user(user_id)
        return {"meal_id": meal_id, "isFavorite": is_favorite}

    def save_feedback(self, user_id: int, meal_id: int, feedback: Dict[str, Any]) -> Dict[str, Any]:
        meal = self._get_owned_meal(user_id, meal_id)
        additives = dict(meal.additives or {})
        merged = dict(additives.get("feedback") or {})
        merged.update(feedback)
        merged["updatedAt"] = datetime.utcnow().isoformat()
        additives["feedback"] = merged

        self._store_additives(meal, additives, "Failed to save feedback")
        self.cache.invalidate_user(user_id)
        return {"meal_id": meal_id, "feedback": feedback}

    def duplicate_meal(self, user_id: int, meal_id: int, new_date: Optional[str] = None) -> Dict[str, Any]:
        original = self._get_owned_meal(user_id, meal_id)
        created_at = self._parse_duplicate_date(new_date)

        try:
            duplicate = Meal(
                user_id=user_id,
                meal_name=original.meal_name,
                meal_period=original.meal_period,
                image_url=original.image_url,
                analysis_status=AnalysisStatus.COMPLETED,
                ingredients=list(original.ingredients or []),
                additives={},
                upload_time=datetime.utcnow(),
                created_at=created_at,
                **{field: getattr(original, field) or 0 for field in NUMERIC_FIELDS}
            )
            self.db.add(duplicate)
            self.db.commit()
            self.db.refresh(duplicate)

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error duplicating meal: {str(e)}")
            raise ServiceError("Failed to duplicate meal") from e

        self.cache.invalidate_user(user_id)
        logger.info(f"Meal {meal_id} duplicated as {duplicate.id} for user {user_id}")
        return transform_meal_for_client(duplicate)

    # ===== STATISTICS =====

    def get_daily_stats(self, user_id: int, day: date) -> Dict[str, Any]:
        cached = self.cache.get(user_id, "daily", day.isoformat())
        if cached is not None:
            return cached

        start, end = aggregation.day_window(day)
        try:
            meals = self.db.query(Meal).filter(
                Meal.user_id == user_id,
                Meal.created_at >= start,
                Meal.created_at < end
            ).all()

        except SQLAlchemyError as e:
            logger.error(f"Error fetching daily stats: {str(e)}")
            raise ServiceError("Failed to fetch daily stats") from e

        result = {"calories": 0.0, "protein": 0.0, "carbs": 0.0, "fat": 0.0, "fiber": 0.0, "sugar": 0.0, "meal_count": 0}
        for meal in meals:
            result["calories"] += meal.calories or 0
            result["protein"] += meal.protein_g or 0
            result["carbs"] += meal.carbs_g or 0
            result["fat"] += meal.fats_g or 0
            result["fiber"] += meal.fiber_g or 0
            result["sugar"] += meal.sugar_g or 0
            result["meal_count"] += 1

        self.cache.set(user_id, result, "daily", day.isoformat())
        return result

    def get_range_statistics(self, user_id: int, start_date: date, end_date: date) -> Dict[str, Any]:
        """
        Totals and per-day averages across a date range.

        Averages divide by the number of distinct days that have meals,
        not by the length of the range.
        """
        if start_date > end_date:
            raise ValidationError("startDate must be before or equal to endDate")

        cache_parts = ("range", start_date.isoformat(), end_date.isoformat())
        cached = self.cache.get(user_id, *cache_parts)
        if cached is not None:
            logger.info("Using cached statistics")
            return cached

        range_start, _ = aggregation.day_window(start_date)
        _, range_end = aggregation.day_window(end_date)
        try:
            meals = self.db.query(Meal).filter(
                Meal.user_id == user_id,
                Meal.created_at >= range_start,
                Meal.created_at < range_end
            ).order_by(Meal.created_at.asc()).all()

        except SQLAlchemyError as e:
            logger.error(f"Error getting range statistics: {str(e)}")
            raise ServiceError("Failed to fetch range statistics") from e

        totals = {field: 0.0 for field in NUMERIC_FIELDS}
        daily: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        for meal in meals:
            for field in NUMERIC_FIELDS:
                totals[field] += getattr(meal, field) or 0
            day_key = meal.created_at.date().isoformat()
            daily.setdefault(day_key, {"date": day_key, "meals": []})
            daily[day_key]["meals"].append({
                "meal_id": meal.id,
                "meal_name": meal.meal_name,
                "created_at": meal.created_at.isoformat(),
                **{field: getattr(meal, field) or 0 for field in NUMERIC_FIELDS},
            })

        total_days = len(daily)
        statistics: Dict[str, Any] = {
            "totalDays": total_days,
            "totalMeals": len(meals),
        }
        for field, value in totals.items():
            statistics[f"total_{field}"] = aggregation.round_2dp(value)
            statistics[f"average_{field}"] = aggregation.round_2dp(value / total_days) if total_days else 0
        statistics["dailyBreakdown"] = sorted(daily.values(), key=lambda entry: entry["date"])
        statistics["dateRange"] = {
            "startDate": start_date.isoformat(),
            "endDate": end_date.isoformat(),
        }

        self.cache.set(user_id, statistics, *cache_parts)
        logger.info(f"Range statistics calculated for user {user_id}: {total_days} days, {len(meals)} meals")
        return statistics

    # ===== WATER =====

    def log_water_intake(self, user_id: int, day: date, cups: int) -> Dict[str, Any]:
        """Set the day's water intake (one row per user and date)"""
        if cups < 0:
            raise ValidationError("Cups must be zero or more")

        try:
            intake = self.db.query(WaterIntake).filter(
                WaterIntake.user_id == user_id,
                WaterIntake.date == day
            ).first()
            if intake is None:
                intake = WaterIntake(user_id=user_id, date=day)
                self.db.add(intake)
            intake.cups_consumed = cups
            intake.milliliters = cups * settings.ml_per_cup
            self.db.commit()
            self.db.refresh(intake)

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error logging water intake: {str(e)}")
            raise ServiceError("Failed to log water intake") from e

        self.cache.invalidate_user(user_id)
        return {
            "date": intake.date.isoformat(),
            "cups_consumed": intake.cups_consumed,
            "milliliters": intake.milliliters,
            "goal_reached": intake.cups_consumed >= settings.water_goal_cups,
        }

    # ===== HELPERS =====

    def _get_owned_meal(self, user_id: int, meal_id: int) -> Meal:
        meal = self.db.query(Meal).filter(
            Meal.id == meal_id,
            Meal.user_id == user_id
        ).first()
        if not meal:
            raise NotFoundError("Meal not found")
        return meal

    def _store_additives(self, meal: Meal, additives: Dict[str, Any], failure_message: str) -> None:
        try:
            meal.additives = additives
            flag_modified(meal, "additives")
            self.db.commit()

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"{failure_message}: {str(e)}")
            raise ServiceError(failure_message) from e

    @staticmethod
    def _parse_duplicate_date(new_date: Optional[str]) -> datetime:
        if not new_date:
            return datetime.utcnow()
        try:
            parsed = datetime.fromisoformat(new_date)
        except ValueError as e:
            raise ValidationError(f"Invalid date: '{new_date}'") from e
        if len(new_date) == 10:
            # Date only: keep the current time of day
            return datetime.combine(parsed.date(), datetime.utcnow().time())
        return _to_naive_utc(parsed)
