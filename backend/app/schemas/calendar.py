# backend/app/schemas/calendar.py
"""
Pydantic schemas for the Calendar API
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import date as date_type, datetime


class EventCreate(BaseModel):
    """Request body for creating a calendar event; date and title are checked by the router"""
    date: Optional[str] = Field(None, description="Event date as YYYY-MM-DD")
    title: Optional[str] = Field(None, max_length=255)
    type: Optional[str] = Field("general", max_length=50, description="general, workout, health, social ...")
    description: Optional[str] = None


class EventResponse(BaseModel):
    id: int
    user_id: int
    date: date_type
    title: str
    type: str
    description: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
