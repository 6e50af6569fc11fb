# backend/app/services/achievement_service.py
"""
Achievement Service
Tracks progress towards the achievement catalog, unlocks achievements and
converts their XP into levels (100 XP per level).
"""

from typing import Dict, List, Optional, Any
from datetime import datetime, timedelta
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from app.models.database import (
    User, Meal, WaterIntake, Achievement, UserAchievement,
    AchievementCategory, AchievementRarity
)
from app.services import aggregation
from app.core.config import settings
from app.core.exceptions import NotFoundError

logger = logging.getLogger(__name__)

CATEGORY_ICONS = {
    AchievementCategory.MILESTONE: "trophy",
    AchievementCategory.GOAL: "target",
    AchievementCategory.STREAK: "flame",
    AchievementCategory.LEVEL: "star",
    AchievementCategory.SPECIAL: "sparkles",
}

KEY_ICONS = {
    "first_water_goal": "droplets",
    "water_warrior": "waves",
    "hydration_habit": "droplets",
    "aqua_master": "mountain-snow",
    "first_scan": "camera",
    "calorie_champion": "apple",
    "protein_power": "dumbbell",
    "fiber_friend": "wheat",
    "early_bird": "sunrise",
    "night_owl": "moon",
    "weekend_warrior": "calendar",
    "consistency_king": "bar-chart-3",
    "macro_master": "target",
    "iron_will": "gem",
    "balanced_week": "scale",
}

RARITY_COLORS = {
    AchievementRarity.COMMON: "#CD7F32",
    AchievementRarity.UNCOMMON: "#16A085",
    AchievementRarity.RARE: "#3498DB",
    AchievementRarity.EPIC: "#9B59B6",
    AchievementRarity.LEGENDARY: "#F39C12",
}
DEFAULT_COLOR = "#95A5A6"


def _entry(key, title, description, category, rarity, points, max_progress):
    return {
        "key": key,
        "title": title,
        "description": description,
        "category": category,
        "rarity": rarity,
        "points_awarded": points,
        "max_progress": max_progress,
    }


C = AchievementCategory
R = AchievementRarity

ACHIEVEMENT_CATALOG: List[Dict[str, Any]] = [
    _entry("first_scan", "First Scan", "Analyze your first meal", C.MILESTONE, R.COMMON, 10, 1),
    _entry("first_water_goal", "First Drop", "Reach your water goal for the first time", C.GOAL, R.COMMON, 10, 1),
    _entry("first_complete_day", "Perfect Start", "Complete your first full day", C.MILESTONE, R.COMMON, 20, 1),
    _entry("hydration_habit", "Hydration Habit", "Reach your water goal 7 times", C.GOAL, R.UNCOMMON, 30, 7),
    _entry("water_warrior", "Water Warrior", "Reach your water goal 10 times", C.GOAL, R.UNCOMMON, 40, 10),
    _entry("aqua_master", "Aqua Master", "Reach your water goal 30 times", C.GOAL, R.RARE, 100, 30),
    _entry("calorie_champion", "Calorie Champion", "Reach your calorie goal on 10 days", C.GOAL, R.UNCOMMON, 50, 10),
    _entry("total_5_days", "Getting Started", "Complete 5 days", C.MILESTONE, R.COMMON, 25, 5),
    _entry("total_10_days", "Committed", "Complete 10 days", C.MILESTONE, R.UNCOMMON, 50, 10),
    _entry("total_25_days", "Dedicated", "Complete 25 days", C.MILESTONE, R.RARE, 100, 25),
    _entry("total_50_days", "Devoted", "Complete 50 days", C.MILESTONE, R.EPIC, 200, 50),
    _entry("total_100_days", "Centurion", "Complete 100 days", C.MILESTONE, R.LEGENDARY, 500, 100),
    _entry("streak_3_days", "On a Roll", "Keep a 3 day streak", C.STREAK, R.COMMON, 15, 3),
    _entry("streak_7_days", "Week Warrior", "Keep a 7 day streak", C.STREAK, R.UNCOMMON, 50, 7),
    _entry("streak_14_days", "Fortnight Force", "Keep a 14 day streak", C.STREAK, R.RARE, 100, 14),
    _entry("streak_30_days", "Monthly Master", "Keep a 30 day streak", C.STREAK, R.EPIC, 250, 30),
    _entry("streak_100_days", "Unstoppable", "Keep a 100 day streak", C.STREAK, R.LEGENDARY, 1000, 100),
    _entry("level_5", "Rising Star", "Reach level 5", C.LEVEL, R.UNCOMMON, 50, 5),
    _entry("level_10", "Seasoned", "Reach level 10", C.LEVEL, R.RARE, 100, 10),
    _entry("level_25", "Expert", "Reach level 25", C.LEVEL, R.EPIC, 250, 25),
    _entry("level_50", "Legend", "Reach level 50", C.LEVEL, R.LEGENDARY, 500, 50),
]

# Achievement key -> user stat that drives its progress
PROGRESS_SOURCES = {
    "first_scan": "aiRequestsCount",
    "first_water_goal": "totalWaterGoals",
    "hydration_habit": "totalWaterGoals",
    "water_warrior": "totalWaterGoals",
    "aqua_master": "totalWaterGoals",
    "calorie_champion": "totalCalorieGoals",
    "first_complete_day": "totalCompleteDays",
}
for _days in (5, 10, 25, 50, 100):
    PROGRESS_SOURCES[f"total_{_days}_days"] = "totalCompleteDays"
for _days in (3, 7, 14, 30, 100):
    PROGRESS_SOURCES[f"streak_{_days}_days"] = "currentStreak"
for _level in (5, 10, 25, 50):
    PROGRESS_SOURCES[f"level_{_level}"] = "level"


def icon_for(key: str, category: Any) -> str:
    if key in KEY_ICONS:
        return KEY_ICONS[key]
    try:
        return CATEGORY_ICONS.get(AchievementCategory(category), "award")
    except ValueError:
        return "award"


def color_for(rarity: Any) -> str:
    try:
        return RARITY_COLORS.get(AchievementRarity(rarity), DEFAULT_COLOR)
    except ValueError:
        return DEFAULT_COLOR


def calculate_achievement_progress(key: str, max_progress: int, user_stats: Dict[str, int]) -> int:
    """Current progress for an achievement, capped at its max_progress"""
    source = PROGRESS_SOURCES.get(key)
    if source is None:
        return 0
    return min(user_stats.get(source, 0), max_progress)


def seed_achievements(db: Session) -> int:
    """Insert catalog entries that are not in the database yet"""
    existing = {key for (key,) in db.query(Achievement.key).all()}
    created = 0
    for entry in ACHIEVEMENT_CATALOG:
        if entry["key"] in existing:
            continue
        db.add(Achievement(icon=icon_for(entry["key"], entry["category"]), **entry))
        created += 1

    if created:
        db.commit()
        logger.info(f"Seeded {created} achievements")
    return created


class AchievementService:
    """Achievement progress, unlocking and level-ups for one user at a time"""

    def __init__(self, db: Session):
        self.db = db

    def check_and_award(self, user_id: int) -> Dict[str, Any]:
        """
        Unlock every achievement whose progress reached max_progress.

        Returns {newAchievements, xpGained, leveledUp, newLevel?}. Database
        failures are logged and reported as nothing awarded.
        """
        user = self._get_user(user_id)
        user_stats = self._get_user_stats(user)

        try:
            unlocked_ids = {
                achievement_id for (achievement_id,) in self.db.query(UserAchievement.achievement_id).filter(
                    UserAchievement.user_id == user_id,
                    UserAchievement.unlocked.is_(True)
                ).all()
            }

            new_achievements = []
            xp_gained = 0
            now = datetime.utcnow()

            for achievement in self._all_achievements():
                if achievement.id in unlocked_ids:
                    continue

                progress = calculate_achievement_progress(achievement.key, achievement.max_progress, user_stats)
                if progress < achievement.max_progress:
                    continue

                user_achievement = self.db.query(UserAchievement).filter(
                    UserAchievement.user_id == user_id,
                    UserAchievement.achievement_id == achievement.id
                ).first()
                if user_achievement is None:
                    user_achievement = UserAchievement(user_id=user_id, achievement_id=achievement.id)
                    self.db.add(user_achievement)
                user_achievement.unlocked = True
                user_achievement.unlocked_date = now
                user_achievement.progress = achievement.max_progress

                new_achievements.append(
                    self._serialize(achievement, achievement.max_progress, True, now)
                )
                xp_gained += achievement.points_awarded or 0
                logger.info(f"Achievement unlocked: {achievement.title} (+{achievement.points_awarded} XP)")

            leveled_up = False
            previous_level = user.level or 1
            new_level = previous_level

            if xp_gained > 0:
                xp_per_level = settings.xp_per_level
                total_points = (user.total_points or 0) + xp_gained
                calculated_level = total_points // xp_per_level + 1
                if calculated_level > previous_level:
                    leveled_up = True
                    new_level = calculated_level
                    logger.info(f"User {user_id} leveled up from {previous_level} to {new_level}")

                user.total_points = total_points
                user.current_xp = ((user.current_xp or 0) + xp_gained) % xp_per_level
                user.level = new_level

            self.db.commit()

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error checking achievements: {str(e)}")
            return {"newAchievements": [], "xpGained": 0, "leveledUp": False}

        result = {
            "newAchievements": new_achievements,
            "xpGained": xp_gained,
            "leveledUp": leveled_up,
        }
        if leveled_up:
            result["newLevel"] = new_level
        return result

    def get_user_achievements(self, user_id: int) -> Dict[str, Any]:
        user = self._get_user(user_id)
        user_stats = self._get_user_stats(user)

        user_achievements = {
            ua.achievement_id: ua
            for ua in self.db.query(UserAchievement).filter(UserAchievement.user_id == user_id).all()
        }

        unlocked = []
        locked = []
        for achievement in self._all_achievements():
            user_achievement = user_achievements.get(achievement.id)
            if user_achievement is not None and user_achievement.unlocked:
                unlocked.append(self._serialize(
                    achievement, achievement.max_progress, True, user_achievement.unlocked_date
                ))
            else:
                progress = calculate_achievement_progress(achievement.key, achievement.max_progress, user_stats)
                locked.append(self._serialize(achievement, progress, False))

        xp_per_level = settings.xp_per_level
        current_xp = user.current_xp or 0
        return {
            "unlockedAchievements": unlocked,
            "lockedAchievements": locked,
            "userStats": {
                "level": user.level or 1,
                "currentXP": current_xp,
                "totalPoints": user.total_points or 0,
                "currentStreak": user.current_streak or 0,
                "bestStreak": user.best_streak or 0,
                "totalCompleteDays": user.total_complete_days or 0,
                "xpToNextLevel": xp_per_level - current_xp,
                "xpProgress": current_xp / xp_per_level * 100,
            },
        }

    def update_user_progress(self, user_id: int, complete_day: bool = False) -> Dict[str, Any]:
        """Record a completed day (streak bookkeeping) and re-check achievements"""
        if complete_day:
            user = self._get_user(user_id)
            yesterday = aggregation.today() - timedelta(days=1)
            new_streak = (user.current_streak or 0) + 1 if self._was_day_complete(user_id, yesterday) else 1

            try:
                user.current_streak = new_streak
                user.best_streak = max(new_streak, user.best_streak or 0)
                user.total_complete_days = (user.total_complete_days or 0) + 1
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Error updating user progress: {str(e)}")
                return {"newAchievements": [], "xpGained": 0, "leveledUp": False}

            logger.info(f"User {user_id} completed a day, streak is now {new_streak}")

        return self.check_and_award(user_id)

    # ===== HELPERS =====

    def _get_user(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User not found")
        return user

    def _all_achievements(self) -> List[Achievement]:
        return self.db.query(Achievement).order_by(Achievement.points_awarded.asc(), Achievement.id.asc()).all()

    def _get_user_stats(self, user: User) -> Dict[str, int]:
        water_goals = self.db.query(WaterIntake).filter(
            WaterIntake.user_id == user.id,
            WaterIntake.cups_consumed >= settings.water_goal_cups
        ).count()

        meal_day = func.date(Meal.created_at)
        calorie_days = self.db.query(meal_day).filter(
            Meal.user_id == user.id
        ).group_by(meal_day).having(
            func.sum(Meal.calories) >= settings.calorie_goal_day_threshold
        ).all()

        return {
            "currentStreak": user.current_streak or 0,
            "bestStreak": user.best_streak or 0,
            "totalCompleteDays": user.total_complete_days or 0,
            "level": user.level or 1,
            "totalWaterGoals": water_goals,
            "totalCalorieGoals": len(calorie_days),
            "totalXP": user.total_points or 0,
            "aiRequestsCount": user.ai_requests_count or 0,
        }

    def _was_day_complete(self, user_id: int, day) -> bool:
        """A day is complete when both the calorie and the water goal were met"""
        start, end = aggregation.day_window(day)
        calories = self.db.query(func.sum(Meal.calories)).filter(
            Meal.user_id == user_id,
            Meal.created_at >= start,
            Meal.created_at < end
        ).scalar() or 0

        water_met = self.db.query(WaterIntake).filter(
            WaterIntake.user_id == user_id,
            WaterIntake.date == day,
            WaterIntake.cups_consumed >= settings.water_goal_cups
        ).count() > 0

        return calories >= settings.calorie_goal_day_threshold and water_met

    @staticmethod
    def _serialize(achievement: Achievement, progress: int, unlocked: bool,
                   unlocked_date: Optional[datetime] = None) -> Dict[str, Any]:
        category = achievement.category.value if achievement.category else None
        rarity = achievement.rarity.value if achievement.rarity else None
        data = {
            "id": achievement.id,
            "key": achievement.key,
            "title": achievement.title,
            "description": achievement.description,
            "category": category,
            "xpReward": achievement.points_awarded,
            "icon": achievement.icon or icon_for(achievement.key, category),
            "rarity": rarity,
            "color": color_for(rarity),
            "progress": progress,
            "maxProgress": achievement.max_progress,
            "unlocked": unlocked,
        }
        if unlocked:
            data["unlockedDate"] = unlocked_date.isoformat() if unlocked_date else None
        return data
