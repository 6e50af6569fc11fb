# backend/app/api/calendar.py
"""
Calendar API Router
Monthly day-by-day nutrition data, statistics with badges, and user events
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.models.database import get_db, User
from app.services.auth import get_current_user_dependency as get_current_user
from app.services.calendar_service import CalendarService
from app.services import aggregation
from app.schemas.calendar import EventCreate, EventResponse
from app.core.exceptions import NutritionTrackerError, raise_http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["Calendar"])


# ===== HELPER FUNCTIONS =====

def validate_year_month(year: str, month: str) -> tuple:
    """Path params arrive as strings so malformed values give 400, not 422"""
    try:
        year_num = int(year)
        month_num = int(month)
    except ValueError:
        year_num, month_num = 0, 0

    if not aggregation.MIN_YEAR <= year_num <= aggregation.MAX_YEAR or not 1 <= month_num <= 12:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid year or month provided"
        )
    return year_num, month_num


def parse_date_param(value: str):
    try:
        return aggregation.parse_iso_date(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Date must be in YYYY-MM-DD format"
        )


# ===== ENDPOINTS =====

@router.get("/data/{year}/{month}")
def get_calendar_data(
    year: str,
    month: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Per-day nutrition totals, goals and quality score for a month"""
    year_num, month_num = validate_year_month(year, month)
    try:
        data = CalendarService(db).get_calendar_data(current_user.id, year_num, month_num)
    except NutritionTrackerError as e:
        raise_http_error(e)

    return {"success": True, "data": data}


@router.get("/statistics/{year}/{month}")
def get_statistics(
    year: str,
    month: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Monthly progress, streak, best/challenging week, badges and insights"""
    year_num, month_num = validate_year_month(year, month)
    try:
        statistics = CalendarService(db).get_statistics(current_user.id, year_num, month_num)
    except NutritionTrackerError as e:
        raise_http_error(e)

    return {"success": True, "data": statistics}


@router.get("/comparison/{year}/{month}")
def get_month_comparison(
    year: str,
    month: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    year_num, month_num = validate_year_month(year, month)
    try:
        comparison = CalendarService(db).get_month_comparison(current_user.id, year_num, month_num)
    except NutritionTrackerError as e:
        raise_http_error(e)

    return {"success": True, "data": comparison}


@router.post("/events", status_code=status.HTTP_201_CREATED)
def add_event(
    request: EventCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if not request.date or not request.title or not request.title.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Date and title are required"
        )
    event_date = parse_date_param(request.date)

    try:
        event = CalendarService(db).add_event(
            current_user.id,
            event_date,
            request.title.strip(),
            event_type=request.type or "general",
            description=request.description
        )
    except NutritionTrackerError as e:
        raise_http_error(e)

    return {
        "success": True,
        "data": EventResponse.model_validate(event),
        "message": "Event added successfully"
    }


@router.get("/events/{event_date}")
def get_events(
    event_date: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    day = parse_date_param(event_date)
    try:
        events = CalendarService(db).get_events_for_date(current_user.id, day)
    except NutritionTrackerError as e:
        raise_http_error(e)

    return {"success": True, "data": [EventResponse.model_validate(event) for event in events]}


@router.delete("/events/{event_id}")
def delete_event(
    event_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        CalendarService(db).delete_event(current_user.id, event_id)
    except NutritionTrackerError as e:
        raise_http_error(e)

    return {"success": True, "message": "Event deleted successfully"}
