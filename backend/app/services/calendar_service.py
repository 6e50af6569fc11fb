# backend/app/services/calendar_service.py
"""
Calendar Service
Builds the monthly nutrition calendar, month statistics, weekly insights
and gamification badges from raw meal, water and event records.
"""

from typing import Dict, List, Optional, Any
from datetime import datetime, date, timedelta
from collections import defaultdict
import json
import logging
import random

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from app.models.database import Meal, CalendarEvent, WaterIntake, GamificationBadge
from app.services.daily_goals import DailyGoalsService
from app.services import aggregation
from app.core.config import settings
from app.core.exceptions import NotFoundError, ServiceError

logger = logging.getLogger(__name__)


MOTIVATIONAL_MESSAGES = {
    "excellent": [
        "🎉 Outstanding! You're crushing your goals!",
        "🌟 Absolutely amazing progress!",
        "💪 You're on fire! Keep this momentum!",
    ],
    "great": [
        "💪 Great job! You're doing really well!",
        "🎯 Fantastic progress! You're almost there!",
        "🔥 Keep up the excellent work!",
    ],
    "good": [
        "👍 Good progress! Keep pushing forward!",
        "📈 You're making steady improvements!",
        "🌱 Great foundation! Keep building on it!",
    ],
    "encouraging": [
        "🌟 Every step counts! You've got this!",
        "💫 Progress takes time - you're doing great!",
        "🎯 Small steps lead to big changes!",
    ],
}

# metric is one of: streak_days, monthly_progress, perfect_days, goal_days
BADGE_RULES = [
    {
        "name": "Week Warrior",
        "description": "7 days streak of meeting goals",
        "icon": "🔥",
        "points": 100,
        "metric": "streak_days",
        "threshold": 7,
    },
    {
        "name": "Monthly Master",
        "description": "30 days streak - incredible!",
        "icon": "🏆",
        "points": 500,
        "metric": "streak_days",
        "threshold": 30,
    },
    {
        "name": "Monthly Champion",
        "description": "90%+ monthly goal achievement",
        "icon": "🥇",
        "points": 200,
        "metric": "monthly_progress",
        "threshold": 90,
    },
    {
        "name": "Quality King",
        "description": "5+ days of perfect nutrition",
        "icon": "💎",
        "points": 150,
        "metric": "perfect_days",
        "threshold": 5,
    },
    {
        "name": "Consistency Master",
        "description": "15+ days of goal achievement",
        "icon": "⭐",
        "points": 120,
        "metric": "goal_days",
        "threshold": 15,
    },
]

NO_DATA_LABEL = "No data available"
PERFECT_QUALITY_SCORE = 9
RECENT_BADGE_LIMIT = 10


def calories_progress(day: Dict[str, Any]) -> float:
    return aggregation.safe_ratio(day["calories_actual"], day["calories_goal"])


def is_goal_day(day: Dict[str, Any]) -> bool:
    return calories_progress(day) >= 1.0


class CalendarService:
    """Monthly calendar aggregation and gamification"""

    def __init__(self, db: Session):
        self.db = db
        self.goals_service = DailyGoalsService(db)

    # ===== CALENDAR DATA =====

    def get_calendar_data(self, user_id: int, year: int, month: int) -> Dict[str, Dict[str, Any]]:
        """
        Build one DayData entry per calendar day of the month.

        Meals are bucketed by the date of created_at, events and water
        intake by their own date column.
        """
        try:
            logger.info(f"Fetching calendar data for user {user_id}: {year}-{month:02d}")

            first_day, last_day = aggregation.month_bounds(year, month)
            window_start, window_end = aggregation.month_window(year, month)

            meals = self.db.query(Meal).filter(
                Meal.user_id == user_id,
                Meal.created_at >= window_start,
                Meal.created_at < window_end
            ).order_by(Meal.created_at.asc()).all()

            events = self.db.query(CalendarEvent).filter(
                CalendarEvent.user_id == user_id,
                CalendarEvent.date >= first_day,
                CalendarEvent.date <= last_day
            ).order_by(CalendarEvent.date.asc(), CalendarEvent.created_at.asc()).all()

            water_rows = self.db.query(WaterIntake).filter(
                WaterIntake.user_id == user_id,
                WaterIntake.date >= first_day,
                WaterIntake.date <= last_day
            ).all()

            logger.info(f"Found {len(meals)} meals and {len(events)} events for the month")

            goals = self.goals_service.get_goals(user_id)

            meals_by_date: Dict[str, List[Meal]] = defaultdict(list)
            for meal in meals:
                meals_by_date[meal.created_at.date().isoformat()].append(meal)

            events_by_date: Dict[str, List[CalendarEvent]] = defaultdict(list)
            for event in events:
                events_by_date[event.date.isoformat()].append(event)

            water_by_date = {row.date.isoformat(): row.milliliters or 0 for row in water_rows}

            calendar_data: Dict[str, Dict[str, Any]] = {}
            day = first_day
            while day <= last_day:
                date_str = day.isoformat()
                day_meals = meals_by_date.get(date_str, [])
                day_events = events_by_date.get(date_str, [])

                totals = self._sum_meal_totals(day_meals)
                totals["water"] += water_by_date.get(date_str, 0)

                calendar_data[date_str] = {
                    "date": date_str,
                    "calories_goal": goals["calories"],
                    "calories_actual": totals["calories"],
                    "protein_goal": goals["protein"],
                    "protein_actual": totals["protein"],
                    "carbs_goal": goals["carbs"],
                    "carbs_actual": totals["carbs"],
                    "fat_goal": goals["fat"],
                    "fat_actual": totals["fat"],
                    "meal_count": len(day_meals),
                    "quality_score": self.calculate_quality_score(totals, goals, day_events),
                    "water_intake_ml": totals["water"],
                    "events": [self._format_event_summary(event) for event in day_events],
                }
                day += timedelta(days=1)

            logger.info(f"Generated calendar data for {len(calendar_data)} days")
            return calendar_data

        except SQLAlchemyError as e:
            logger.error(f"Error fetching calendar data: {str(e)}")
            raise ServiceError("Failed to fetch calendar data") from e

    # ===== STATISTICS =====

    def get_statistics(self, user_id: int, year: int, month: int) -> Dict[str, Any]:
        """Month statistics compared against the previous month"""
        try:
            logger.info(f"Calculating statistics for user {user_id}: {year}-{month:02d}")

            current_days = list(self.get_calendar_data(user_id, year, month).values())
            prev_year, prev_month = aggregation.previous_month(year, month)
            prev_days = list(self.get_calendar_data(user_id, prev_year, prev_month).values())
        except ServiceError as e:
            logger.error(f"Error calculating statistics: {e.message}")
            raise ServiceError("Failed to calculate statistics") from e

        total_days = len(current_days)
        goal_days = sum(1 for day in current_days if is_goal_day(day))
        monthly_progress = (goal_days / total_days) * 100 if total_days > 0 else 0

        streak_days = self.calculate_streak_days(current_days)

        average_calories = sum(day["calories_actual"] for day in current_days) / total_days if total_days else 0
        average_protein = sum(day["protein_actual"] for day in current_days) / total_days if total_days else 0
        average_water = sum(day["water_intake_ml"] for day in current_days) / total_days if total_days else 0

        weekly_analysis = self.analyze_weeks_detailed(current_days)

        prev_goal_days = sum(1 for day in prev_days if is_goal_day(day))
        prev_progress = (prev_goal_days / len(prev_days)) * 100 if prev_days else 0
        improvement_percent = aggregation.round_half_up(monthly_progress - prev_progress)

        badges = self.check_and_award_badges(user_id, current_days, monthly_progress, streak_days)

        statistics = {
            "monthlyProgress": aggregation.round_half_up(monthly_progress),
            "streakDays": streak_days,
            "bestWeek": weekly_analysis["bestWeek"],
            "challengingWeek": weekly_analysis["challengingWeek"],
            "improvementPercent": improvement_percent,
            "totalGoalDays": goal_days,
            "averageCalories": aggregation.round_half_up(average_calories),
            "averageProtein": aggregation.round_half_up(average_protein),
            "averageWater": aggregation.round_half_up(average_water),
            "motivationalMessage": self.generate_motivational_message(
                monthly_progress, streak_days, improvement_percent
            ),
            "gamificationBadges": badges,
            "weeklyInsights": weekly_analysis["insights"],
        }

        logger.info(
            f"Statistics for user {user_id}: progress={statistics['monthlyProgress']}% "
            f"streak={streak_days} badges={len(badges)}"
        )
        return statistics

    def get_month_comparison(self, user_id: int, year: int, month: int) -> Dict[str, Any]:
        """Current vs previous month calendar data with mean daily calories"""
        current_month = self.get_calendar_data(user_id, year, month)
        prev_year, prev_month = aggregation.previous_month(year, month)
        previous_month = self.get_calendar_data(user_id, prev_year, prev_month)

        return {
            "currentMonth": current_month,
            "previousMonth": previous_month,
            "comparison": {
                "currentMonthAvg": self._average_calories(current_month),
                "previousMonthAvg": self._average_calories(previous_month),
            },
        }

    # ===== EVENTS =====

    def add_event(
        self,
        user_id: int,
        event_date: date,
        title: str,
        event_type: str = "general",
        description: Optional[str] = None
    ) -> CalendarEvent:
        try:
            event = CalendarEvent(
                user_id=user_id,
                date=event_date,
                title=title,
                type=event_type or "general",
                description=description
            )
            self.db.add(event)
            self.db.commit()
            self.db.refresh(event)

            logger.info(f"Event {event.id} created for user {user_id} on {event_date}")
            return event

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error adding event: {str(e)}")
            raise ServiceError("Failed to add event") from e

    def get_events_for_date(self, user_id: int, event_date: date) -> List[CalendarEvent]:
        try:
            return self.db.query(CalendarEvent).filter(
                CalendarEvent.user_id == user_id,
                CalendarEvent.date == event_date
            ).order_by(CalendarEvent.created_at.asc(), CalendarEvent.id.asc()).all()

        except SQLAlchemyError as e:
            logger.error(f"Error fetching events: {str(e)}")
            raise ServiceError("Failed to fetch events") from e

    def delete_event(self, user_id: int, event_id: int) -> int:
        """Delete an event owned by the user; raises NotFoundError when nothing matched"""
        try:
            deleted = self.db.query(CalendarEvent).filter(
                CalendarEvent.id == event_id,
                CalendarEvent.user_id == user_id
            ).delete(synchronize_session=False)
            self.db.commit()

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error deleting event: {str(e)}")
            raise ServiceError("Failed to delete event") from e

        if not deleted:
            raise NotFoundError("Event not found")

        logger.info(f"Event {event_id} deleted for user {user_id}")
        return deleted

    # ===== SCORING =====

    @staticmethod
    def calculate_quality_score(totals: Dict[str, float], goals: Dict[str, float], events: List[Any]) -> int:
        """
        Heuristic 1-10 nutrition quality score for a day, 0 when nothing was eaten.

        Calories are capped at 150% of goal, protein at 120%, water at 100%;
        each deviation from goal costs 2.0 / 1.5 / 1.0 points. Workout days
        get a 1.1 multiplier, fasting days 0.9 (fasting takes precedence).
        """
        if not totals.get("calories"):
            return 0

        calories_score = min(aggregation.safe_ratio(totals["calories"], goals["calories"]), 1.5)
        protein_score = min(aggregation.safe_ratio(totals["protein"], goals["protein"]), 1.2)
        water_score = min(aggregation.safe_ratio(totals["water"], goals["water"]), 1.0)

        event_multiplier = 1.0
        has_workout = any(_event_field(event, "type") == "workout" for event in events)
        has_fasting = any(
            _event_field(event, "type") == "health" and "fast" in (_event_field(event, "title") or "").lower()
            for event in events
        )
        if has_workout:
            event_multiplier = 1.1
        if has_fasting:
            event_multiplier = 0.9

        calories_penalty = abs(1 - calories_score) * 2
        protein_penalty = abs(1 - protein_score) * 1.5
        water_penalty = abs(1 - water_score) * 1.0

        final_score = max(1, (10 - calories_penalty - protein_penalty - water_penalty) * event_multiplier)
        return aggregation.round_half_up(final_score)

    @staticmethod
    def calculate_streak_days(days: List[Dict[str, Any]], as_of: Optional[date] = None) -> int:
        """Consecutive goal days counting back from the latest day not after as_of"""
        as_of = as_of or aggregation.today()
        past_days = sorted(
            (day for day in days if aggregation.parse_iso_date(day["date"]) <= as_of),
            key=lambda day: day["date"],
            reverse=True
        )

        streak = 0
        for day in past_days:
            if not is_goal_day(day):
                break
            streak += 1
        return streak

    @staticmethod
    def analyze_weeks_detailed(days: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Slice the month into 7-day windows and pick the best and most challenging"""
        sorted_days = sorted(days, key=lambda day: day["date"])
        weeks = []

        for i in range(0, len(sorted_days), 7):
            week_days = sorted_days[i:i + 7]
            if not week_days:
                continue

            count = len(week_days)
            average_progress = sum(min(calories_progress(day) * 100, 100) for day in week_days) / count
            goal_days = sum(1 for day in week_days if is_goal_day(day))
            average_quality = sum(day["quality_score"] for day in week_days) / count

            highlights = []
            challenges = []

            if goal_days >= 6:
                highlights.append("Almost perfect week!")
            if goal_days >= 4:
                highlights.append(f"{goal_days} days of goal achievement")
            if average_quality >= 8:
                highlights.append("Excellent nutrition quality")

            low_days = sum(1 for day in week_days if calories_progress(day) < 0.7)
            if low_days >= 2:
                challenges.append(f"{low_days} days below 70% of goal")

            over_days = sum(1 for day in week_days if calories_progress(day) > 1.1)
            if over_days >= 2:
                challenges.append(f"{over_days} days of overeating")

            weeks.append({
                "weekStart": week_days[0]["date"],
                "weekEnd": week_days[-1]["date"],
                "averageProgress": average_progress,
                "totalDays": count,
                "goalDays": goal_days,
                "highlights": highlights,
                "challenges": challenges,
            })

        if not weeks:
            return {
                "bestWeek": NO_DATA_LABEL,
                "challengingWeek": NO_DATA_LABEL,
                "insights": {
                    "bestWeekDetails": None,
                    "challengingWeekDetails": None,
                },
            }

        # Strict comparisons keep the earliest week on ties
        best_week = weeks[0]
        worst_week = weeks[0]
        for week in weeks[1:]:
            if week["averageProgress"] > best_week["averageProgress"]:
                best_week = week
            if week["averageProgress"] < worst_week["averageProgress"]:
                worst_week = week

        return {
            "bestWeek": _week_label(best_week),
            "challengingWeek": _week_label(worst_week),
            "insights": {
                "bestWeekDetails": best_week,
                "challengingWeekDetails": worst_week,
            },
        }

    @staticmethod
    def generate_motivational_message(monthly_progress: float, streak_days: int, improvement_percent: int) -> str:
        if monthly_progress >= 90:
            return random.choice(MOTIVATIONAL_MESSAGES["excellent"])
        if monthly_progress >= 75:
            return random.choice(MOTIVATIONAL_MESSAGES["great"])
        if monthly_progress >= 50:
            return random.choice(MOTIVATIONAL_MESSAGES["good"])
        if improvement_percent > 10:
            return "📈 Nice improvement from last month!"
        if streak_days >= 3:
            return f"🔥 {streak_days} day streak! Keep it going!"
        return random.choice(MOTIVATIONAL_MESSAGES["encouraging"])

    # ===== BADGES =====

    @staticmethod
    def eligible_badges(days: List[Dict[str, Any]], monthly_progress: float, streak_days: int) -> List[Dict[str, Any]]:
        """Badge rules whose thresholds the month meets"""
        metrics = {
            "streak_days": streak_days,
            "monthly_progress": monthly_progress,
            "perfect_days": sum(1 for day in days if day["quality_score"] >= PERFECT_QUALITY_SCORE),
            "goal_days": sum(1 for day in days if is_goal_day(day)),
        }
        return [rule for rule in BADGE_RULES if metrics[rule["metric"]] >= rule["threshold"]]

    def check_and_award_badges(
        self,
        user_id: int,
        days: List[Dict[str, Any]],
        monthly_progress: float,
        streak_days: int
    ) -> List[Dict[str, Any]]:
        """
        Award newly earned badges and return the user's recent ones.

        A badge name is never awarded twice inside the lookback window.
        Failures are logged and yield an empty list so statistics still render.
        """
        try:
            cutoff = datetime.utcnow() - timedelta(days=settings.badge_lookback_days)

            existing_names = {
                name for (name,) in self.db.query(GamificationBadge.name).filter(
                    GamificationBadge.user_id == user_id,
                    GamificationBadge.achieved_at >= cutoff
                ).all()
            }

            for rule in self.eligible_badges(days, monthly_progress, streak_days):
                if rule["name"] in existing_names:
                    continue

                self.db.add(GamificationBadge(
                    user_id=user_id,
                    name=rule["name"],
                    description=rule["description"],
                    icon=rule["icon"],
                    condition=json.dumps(rule, ensure_ascii=False),
                    points=rule["points"],
                    achieved_at=datetime.utcnow()
                ))
                existing_names.add(rule["name"])
                logger.info(f"Badge awarded to user {user_id}: {rule['name']}")

            self.db.commit()

            recent_badges = self.db.query(GamificationBadge).filter(
                GamificationBadge.user_id == user_id,
                GamificationBadge.achieved_at >= cutoff
            ).order_by(
                GamificationBadge.achieved_at.desc(),
                GamificationBadge.id.desc()
            ).limit(RECENT_BADGE_LIMIT).all()

            return [
                {
                    "id": badge.id,
                    "name": badge.name,
                    "description": badge.description,
                    "icon": badge.icon,
                    "achieved_at": badge.achieved_at.isoformat(),
                }
                for badge in recent_badges
            ]

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error checking badges: {str(e)}")
            return []

    # ===== HELPERS =====

    @staticmethod
    def _sum_meal_totals(meals: List[Meal]) -> Dict[str, float]:
        totals = {"calories": 0.0, "protein": 0.0, "carbs": 0.0, "fat": 0.0, "water": 0.0}
        for meal in meals:
            totals["calories"] += meal.calories or 0
            totals["protein"] += meal.protein_g or 0
            totals["carbs"] += meal.carbs_g or 0
            totals["fat"] += meal.fats_g or 0
            totals["water"] += meal.liquids_ml or 0
        return totals

    @staticmethod
    def _format_event_summary(event: CalendarEvent) -> Dict[str, Any]:
        return {
            "id": event.id,
            "title": event.title,
            "type": event.type,
            "created_at": event.created_at.isoformat() if event.created_at else None,
        }

    @staticmethod
    def _average_calories(calendar_data: Dict[str, Dict[str, Any]]) -> float:
        days = list(calendar_data.values())
        if not days:
            return 0
        return sum(day["calories_actual"] for day in days) / len(days)


def _event_field(event: Any, field: str) -> Any:
    if isinstance(event, dict):
        return event.get(field)
    return getattr(event, field, None)


def _week_label(week: Dict[str, Any]) -> str:
    return (
        f"{week['weekStart']} to {week['weekEnd']} "
        f"({aggregation.round_half_up(week['averageProgress'])}% avg)"
    )
