from pydantic import BaseModel, EmailStr, Field, validator
from typing import Optional
from datetime import datetime

# User Schemas
class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, description="Password must be at least 8 characters")

    @validator('password')
    def validate_password(cls, v):
        if not any(char.isdigit() for char in v):
            raise ValueError('Password must contain at least one digit')
        if not any(char.isupper() for char in v):
            raise ValueError('Password must contain at least one uppercase letter')
        return v

class UserResponse(BaseModel):
    id: int
    email: str
    is_active: bool
    created_at: datetime
    level: int
    total_points: int

    class Config:
        from_attributes = True

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: Optional[UserResponse] = None

# Daily Goal Schemas
class DailyGoalsUpdate(BaseModel):
    calories: float = Field(..., gt=0, le=10000)
    protein_g: float = Field(..., gt=0, le=1000)
    carbs_g: float = Field(..., gt=0, le=2000)
    fat_g: float = Field(..., gt=0, le=1000)
    water_ml: float = Field(..., gt=0, le=10000)

class DailyGoalsResponse(BaseModel):
    calories: float
    protein_g: float
    carbs_g: float
    fat_g: float
    water_ml: float
    is_default: bool = False
