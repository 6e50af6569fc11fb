# backend/app/schemas/meals.py
"""
Pydantic schemas for the Nutrition API.
Meal payloads accept column names or the short aliases mobile clients send
(name, protein, carbs, fat ...); mapping happens in the service layer.
"""

from pydantic import BaseModel, Field, validator
from typing import Any, List, Optional
from datetime import datetime


class MealCreate(BaseModel):
    """Meal to store; unknown keys are kept and ignored by the mapper"""
    meal_name: Optional[str] = Field(None, max_length=255)
    name: Optional[str] = Field(None, max_length=255)
    meal_period: Optional[str] = Field(None, description="breakfast, lunch, dinner, snack, other")
    image_url: Optional[str] = None
    calories: Optional[float] = Field(None, ge=0)
    protein_g: Optional[float] = Field(None, ge=0)
    carbs_g: Optional[float] = Field(None, ge=0)
    fats_g: Optional[float] = Field(None, ge=0)
    fiber_g: Optional[float] = Field(None, ge=0)
    sugar_g: Optional[float] = Field(None, ge=0)
    sodium_mg: Optional[float] = Field(None, ge=0)
    liquids_ml: Optional[float] = Field(None, ge=0)
    # Short aliases
    protein: Optional[float] = Field(None, ge=0)
    carbs: Optional[float] = Field(None, ge=0)
    fat: Optional[float] = Field(None, ge=0)
    fiber: Optional[float] = Field(None, ge=0)
    sugar: Optional[float] = Field(None, ge=0)
    sodium: Optional[float] = Field(None, ge=0)
    ingredients: Optional[List[Any]] = None
    created_at: Optional[datetime] = Field(None, description="Defaults to now")

    class Config:
        extra = "allow"


class MealUpdate(BaseModel):
    """Partial meal update; unknown keys are rejected by the service"""
    meal_name: Optional[str] = Field(None, max_length=255)
    meal_period: Optional[str] = None
    image_url: Optional[str] = None
    ingredients: Optional[List[Any]] = None
    calories: Optional[float] = Field(None, ge=0)
    protein_g: Optional[float] = Field(None, ge=0)
    carbs_g: Optional[float] = Field(None, ge=0)
    fats_g: Optional[float] = Field(None, ge=0)
    fiber_g: Optional[float] = Field(None, ge=0)
    sugar_g: Optional[float] = Field(None, ge=0)
    sodium_mg: Optional[float] = Field(None, ge=0)
    liquids_ml: Optional[float] = Field(None, ge=0)

    class Config:
        extra = "allow"


class FeedbackRequest(BaseModel):
    tasteRating: Optional[int] = Field(None, ge=0, le=5)
    satietyRating: Optional[int] = Field(None, ge=0, le=5)
    energyRating: Optional[int] = Field(None, ge=0, le=5)
    heavinessRating: Optional[int] = Field(None, ge=0, le=5)


class DuplicateRequest(BaseModel):
    newDate: Optional[str] = Field(None, description="ISO date or datetime for the copy")


class WaterIntakeRequest(BaseModel):
    cups: int = Field(..., ge=0, le=50)
    date: Optional[str] = Field(None, description="YYYY-MM-DD, defaults to today")

    @validator("date")
    def validate_date(cls, v):
        if v is not None and not v.strip():
            return None
        return v

