# backend/app/api/nutrition.py
"""
Nutrition API Router
Meal CRUD, favorites and feedback, daily/range statistics and water intake
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import Optional

from app.models.database import get_db, User
from app.services.auth import get_current_user_dependency as get_current_user
from app.services.nutrition_service import NutritionService
from app.services.stats_cache import get_stats_cache
from app.services import aggregation
from app.schemas.meals import MealCreate, MealUpdate, FeedbackRequest, DuplicateRequest, WaterIntakeRequest
from app.core.exceptions import NutritionTrackerError, raise_http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/nutrition", tags=["Nutrition"])


def get_nutrition_service(
    db: Session = Depends(get_db),
    cache=Depends(get_stats_cache)
) -> NutritionService:
    return NutritionService(db, cache)


def parse_query_date(value: Optional[str], name: str):
    try:
        return aggregation.parse_iso_date(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{name} must be in YYYY-MM-DD format"
        )


# ===== MEALS =====

@router.post("/meals", status_code=status.HTTP_201_CREATED)
def save_meal(
    request: MealCreate,
    current_user: User = Depends(get_current_user),
    service: NutritionService = Depends(get_nutrition_service)
):
    try:
        meal = service.save_meal(current_user.id, request.model_dump(exclude_none=True))
    except NutritionTrackerError as e:
        raise_http_error(e)

    return {"success": True, "data": meal, "message": "Meal saved successfully"}


@router.get("/meals")
def get_meals(
    offset: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(get_current_user),
    service: NutritionService = Depends(get_nutrition_service)
):
    try:
        meals = service.get_user_meals(current_user.id, offset=offset, limit=limit)
    except NutritionTrackerError as e:
        raise_http_error(e)

    return {"success": True, "data": meals}


@router.get("/meals/{meal_id}")
def get_meal(
    meal_id: int,
    current_user: User = Depends(get_current_user),
    service: NutritionService = Depends(get_nutrition_service)
):
    try:
        meal = service.get_meal(current_user.id, meal_id)
    except NutritionTrackerError as e:
        raise_http_error(e)

    return {"success": True, "data": meal}


@router.put("/meals/{meal_id}")
def update_meal(
    meal_id: int,
    request: MealUpdate,
    current_user: User = Depends(get_current_user),
    service: NutritionService = Depends(get_nutrition_service)
):
    try:
        meal = service.update_meal(current_user.id, meal_id, request.model_dump(exclude_unset=True))
    except NutritionTrackerError as e:
        raise_http_error(e)

    return {"success": True, "data": meal, "message": "Meal updated successfully"}


@router.delete("/meals/{meal_id}")
def delete_meal(
    meal_id: int,
    current_user: User = Depends(get_current_user),
    service: NutritionService = Depends(get_nutrition_service)
):
    try:
        service.delete_meal(current_user.id, meal_id)
    except NutritionTrackerError as e:
        raise_http_error(e)

    return {"success": True, "message": "Meal deleted successfully"}


@router.post("/meals/{meal_id}/favorite")
def toggle_favorite(
    meal_id: int,
    current_user: User = Depends(get_current_user),
    service: NutritionService = Depends(get_nutrition_service)
):
    try:
        result = service.toggle_favorite(current_user.id, meal_id)
    except NutritionTrackerError as e:
        raise_http_error(e)

    message = "Meal added to favorites" if result["isFavorite"] else "Meal removed from favorites"
    return {"success": True, "data": result, "message": message}


@router.post("/meals/{meal_id}/feedback")
def save_feedback(
    meal_id: int,
    request: FeedbackRequest,
    current_user: User = Depends(get_current_user),
    service: NutritionService = Depends(get_nutrition_service)
):
    try:
        result = service.save_feedback(current_user.id, meal_id, request.model_dump(exclude_none=True))
    except NutritionTrackerError as e:
        raise_http_error(e)

    return {"success": True, "data": result, "message": "Feedback saved successfully"}


@router.post("/meals/{meal_id}/duplicate", status_code=status.HTTP_201_CREATED)
def duplicate_meal(
    meal_id: int,
    request: Optional[DuplicateRequest] = None,
    current_user: User = Depends(get_current_user),
    service: NutritionService = Depends(get_nutrition_service)
):
    new_date = request.newDate if request else None
    try:
        meal = service.duplicate_meal(current_user.id, meal_id, new_date)
    except NutritionTrackerError as e:
        raise_http_error(e)

    return {"success": True, "data": meal, "message": "Meal duplicated successfully"}


# ===== STATISTICS =====

@router.get("/stats/daily")
def get_daily_stats(
    date: Optional[str] = Query(None, description="YYYY-MM-DD, defaults to today"),
    current_user: User = Depends(get_current_user),
    service: NutritionService = Depends(get_nutrition_service)
):
    day = parse_query_date(date, "date") if date else aggregation.today()
    try:
        stats = service.get_daily_stats(current_user.id, day)
    except NutritionTrackerError as e:
        raise_http_error(e)

    return {"success": True, "data": stats}


@router.get("/stats/range")
def get_range_statistics(
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    service: NutritionService = Depends(get_nutrition_service)
):
    start_value = startDate or start
    end_value = endDate or end
    if not start_value or not end_value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Both startDate and endDate are required"
        )

    start_day = parse_query_date(start_value, "startDate")
    end_day = parse_query_date(end_value, "endDate")
    try:
        statistics = service.get_range_statistics(current_user.id, start_day, end_day)
    except NutritionTrackerError as e:
        raise_http_error(e)

    return {"success": True, "data": statistics}


# ===== WATER =====

@router.post("/water")
def log_water(
    request: WaterIntakeRequest,
    current_user: User = Depends(get_current_user),
    service: NutritionService = Depends(get_nutrition_service)
):
    day = parse_query_date(request.date, "date") if request.date else aggregation.today()
    try:
        intake = service.log_water_intake(current_user.id, day, request.cups)
    except NutritionTrackerError as e:
        raise_http_error(e)

    return {"success": True, "data": intake}
