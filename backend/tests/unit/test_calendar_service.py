"""
Tests for CalendarService: day rollups, quality score, streaks,
weekly analysis, statistics and badge de-duplication
"""

import pytest
from datetime import date, datetime, timedelta

from app.models.database import GamificationBadge, NutritionGoal
from app.services.calendar_service import (
    CalendarService,
    MOTIVATIONAL_MESSAGES,
    NO_DATA_LABEL,
)
from app.core.exceptions import NotFoundError

GOALS = {"calories": 2000, "protein": 150, "carbs": 250, "fat": 67, "water": 2000}


def make_day(day: date, calories: float, quality: int = 5, goal: float = 2000):
    return {
        "date": day.isoformat(),
        "calories_goal": goal,
        "calories_actual": calories,
        "quality_score": quality,
    }


def month_days(start: date, count: int, calories: float, quality: int = 5):
    return [make_day(start + timedelta(days=i), calories, quality) for i in range(count)]


# ===== QUALITY SCORE =====

@pytest.mark.unit
class TestQualityScore:

    def test_no_calories_scores_zero(self):
        totals = {"calories": 0, "protein": 100, "water": 2000}
        assert CalendarService.calculate_quality_score(totals, GOALS, []) == 0

    def test_all_goals_met_scores_ten(self):
        totals = {"calories": 2000, "protein": 150, "water": 2000}
        assert CalendarService.calculate_quality_score(totals, GOALS, []) == 10

    def test_ratios_are_capped(self):
        # calories capped at 1.5 (-1.0), protein at 1.2 (-0.3), water 0.5 (-0.5)
        totals = {"calories": 3000, "protein": 180, "water": 1000}
        assert CalendarService.calculate_quality_score(totals, GOALS, []) == 8

    def test_workout_multiplier(self):
        # 10 - 1.0 - 0.75 - 1.0 = 7.25
        totals = {"calories": 1000, "protein": 75, "water": 0}
        assert CalendarService.calculate_quality_score(totals, GOALS, []) == 7
        workout = [{"type": "workout", "title": "Leg day"}]
        assert CalendarService.calculate_quality_score(totals, GOALS, workout) == 8

    def test_fasting_takes_precedence_over_workout(self):
        totals = {"calories": 2000, "protein": 150, "water": 2000}
        events = [
            {"type": "workout", "title": "Run"},
            {"type": "health", "title": "Intermittent FASTING"},
        ]
        assert CalendarService.calculate_quality_score(totals, GOALS, events) == 9

    def test_health_event_without_fast_is_neutral(self):
        totals = {"calories": 2000, "protein": 150, "water": 2000}
        events = [{"type": "health", "title": "Doctor visit"}]
        assert CalendarService.calculate_quality_score(totals, GOALS, events) == 10

    def test_score_never_below_one(self):
        totals = {"calories": 1, "protein": 0, "water": 0}
        goals = dict(GOALS, calories=100000)
        assert CalendarService.calculate_quality_score(totals, goals, []) >= 1


# ===== STREAK =====

@pytest.mark.unit
class TestStreak:

    def test_counts_back_from_as_of(self):
        start = date(2024, 3, 1)
        days = month_days(start, 10, 2000)
        days[6]["calories_actual"] = 500  # March 7 missed
        assert CalendarService.calculate_streak_days(days, as_of=date(2024, 3, 10)) == 3

    def test_future_days_are_ignored(self):
        start = date(2024, 3, 1)
        days = month_days(start, 31, 0)
        for day in days[:5]:
            day["calories_actual"] = 2100
        assert CalendarService.calculate_streak_days(days, as_of=date(2024, 3, 5)) == 5

    def test_today_missed_breaks_streak(self):
        days = month_days(date(2024, 3, 1), 5, 2000)
        days[-1]["calories_actual"] = 100
        assert CalendarService.calculate_streak_days(days, as_of=date(2024, 3, 5)) == 0

    def test_uses_pinned_today_by_default(self, fixed_today):
        fixed_today(date(2024, 3, 3))
        days = month_days(date(2024, 3, 1), 31, 2000)
        assert CalendarService.calculate_streak_days(days) == 3


# ===== WEEKLY ANALYSIS =====

@pytest.mark.unit
class TestWeeklyAnalysis:

    def test_empty_month_has_no_data(self):
        result = CalendarService.analyze_weeks_detailed([])
        assert result["bestWeek"] == NO_DATA_LABEL
        assert result["challengingWeek"] == NO_DATA_LABEL
        assert result["insights"]["bestWeekDetails"] is None
        assert result["insights"]["challengingWeekDetails"] is None

    def test_best_and_challenging_weeks(self):
        start = date(2024, 3, 1)
        days = month_days(start, 7, 2000, quality=9) + month_days(start + timedelta(days=7), 7, 0, quality=0)

        result = CalendarService.analyze_weeks_detailed(days)

        assert result["bestWeek"] == "2024-03-01 to 2024-03-07 (100% avg)"
        assert result["challengingWeek"] == "2024-03-08 to 2024-03-14 (0% avg)"

        best = result["insights"]["bestWeekDetails"]
        assert best["goalDays"] == 7
        assert best["highlights"] == [
            "Almost perfect week!",
            "7 days of goal achievement",
            "Excellent nutrition quality",
        ]
        assert best["challenges"] == []

        worst = result["insights"]["challengingWeekDetails"]
        assert worst["challenges"] == ["7 days below 70% of goal"]

    def test_progress_is_capped_at_100_and_overeating_flagged(self):
        days = month_days(date(2024, 3, 1), 7, 3000)
        result = CalendarService.analyze_weeks_detailed(days)
        week = result["insights"]["bestWeekDetails"]
        assert week["averageProgress"] == 100
        assert "7 days of overeating" in week["challenges"]

    def test_ties_keep_first_week(self):
        days = month_days(date(2024, 3, 1), 14, 1000)
        result = CalendarService.analyze_weeks_detailed(days)
        assert result["bestWeek"].startswith("2024-03-01 to 2024-03-07")
        assert result["challengingWeek"].startswith("2024-03-01 to 2024-03-07")

    def test_last_window_may_be_short(self):
        days = month_days(date(2024, 3, 1), 31, 2000)
        days[-1]["calories_actual"] = 0
        days[-2]["calories_actual"] = 0
        days[-3]["calories_actual"] = 0
        result = CalendarService.analyze_weeks_detailed(days)
        worst = result["insights"]["challengingWeekDetails"]
        assert worst["weekStart"] == "2024-03-29"
        assert worst["weekEnd"] == "2024-03-31"
        assert worst["totalDays"] == 3


# ===== MOTIVATION =====

@pytest.mark.unit
class TestMotivationalMessage:

    @pytest.mark.parametrize("progress,pool", [(95, "excellent"), (80, "great"), (55, "good")])
    def test_progress_pools(self, progress, pool):
        assert CalendarService.generate_motivational_message(progress, 0, 0) in MOTIVATIONAL_MESSAGES[pool]

    def test_improvement_message(self):
        assert CalendarService.generate_motivational_message(20, 5, 15) == "📈 Nice improvement from last month!"

    def test_streak_message(self):
        assert CalendarService.generate_motivational_message(20, 4, 0) == "🔥 4 day streak! Keep it going!"

    def test_encouraging_fallback(self):
        assert CalendarService.generate_motivational_message(10, 1, 0) in MOTIVATIONAL_MESSAGES["encouraging"]


# ===== CALENDAR DATA =====

@pytest.mark.integration
class TestCalendarData:

    def test_every_day_of_month_present(self, test_db, test_user):
        data = CalendarService(test_db).get_calendar_data(test_user.id, 2024, 2)
        assert len(data) == 29
        assert list(data)[0] == "2024-02-01"
        assert list(data)[-1] == "2024-02-29"
        empty = data["2024-02-10"]
        assert empty["meal_count"] == 0
        assert empty["quality_score"] == 0
        assert empty["calories_goal"] == 2000
        assert empty["events"] == []

    def test_rollup_of_meals_water_and_events(self, test_db, test_user, add_meal, add_water):
        day = date(2024, 3, 5)
        add_meal(test_user.id, day, hour=8, calories=600, protein_g=40, carbs_g=70, fats_g=20, liquids_ml=250)
        add_meal(test_user.id, day, hour=19, calories=900, protein_g=60, carbs_g=90, fats_g=30)
        add_meal(test_user.id, date(2024, 4, 1), hour=0, calories=5000)
        add_water(test_user.id, day, 6)

        service = CalendarService(test_db)
        service.add_event(test_user.id, day, "Gym", event_type="workout")

        entry = service.get_calendar_data(test_user.id, 2024, 3)["2024-03-05"]
        assert entry["calories_actual"] == 1500
        assert entry["protein_actual"] == 100
        assert entry["carbs_actual"] == 160
        assert entry["fat_actual"] == 50
        assert entry["meal_count"] == 2
        assert entry["water_intake_ml"] == 1750
        assert [event["title"] for event in entry["events"]] == ["Gym"]
        assert 1 <= entry["quality_score"] <= 11

    def test_other_users_data_is_excluded(self, test_db, test_user, second_test_user, add_meal):
        add_meal(second_test_user.id, date(2024, 3, 5), calories=2500)
        data = CalendarService(test_db).get_calendar_data(test_user.id, 2024, 3)
        assert data["2024-03-05"]["calories_actual"] == 0

    def test_user_goals_are_used(self, test_db, test_user, add_meal):
        test_db.add(NutritionGoal(user_id=test_user.id, calories=1500, protein_g=100,
                                  carbs_g=200, fat_g=50, water_ml=1500))
        test_db.commit()
        data = CalendarService(test_db).get_calendar_data(test_user.id, 2024, 3)
        assert data["2024-03-01"]["calories_goal"] == 1500
        assert data["2024-03-01"]["protein_goal"] == 100


# ===== STATISTICS =====

@pytest.mark.integration
class TestStatistics:

    def test_perfect_month(self, test_db, test_user, add_meal, fixed_today):
        fixed_today(date(2024, 3, 31))
        for offset in range(31):
            add_meal(test_user.id, date(2024, 3, 1) + timedelta(days=offset), calories=2000)

        stats = CalendarService(test_db).get_statistics(test_user.id, 2024, 3)

        assert stats["monthlyProgress"] == 100
        assert stats["streakDays"] == 31
        assert stats["totalGoalDays"] == 31
        assert stats["improvementPercent"] == 100
        assert stats["averageCalories"] == 2000
        assert stats["averageWater"] == 0
        assert stats["motivationalMessage"] in MOTIVATIONAL_MESSAGES["excellent"]
        assert stats["bestWeek"] == "2024-03-01 to 2024-03-07 (100% avg)"
        names = {badge["name"] for badge in stats["gamificationBadges"]}
        assert names == {"Week Warrior", "Monthly Master", "Monthly Champion", "Consistency Master"}

    def test_january_compares_with_previous_december(self, test_db, test_user, add_meal, fixed_today):
        fixed_today(date(2024, 1, 31))
        for offset in range(31):
            add_meal(test_user.id, date(2023, 12, 1) + timedelta(days=offset), calories=2000)

        stats = CalendarService(test_db).get_statistics(test_user.id, 2024, 1)

        assert stats["monthlyProgress"] == 0
        assert stats["improvementPercent"] == -100
        assert stats["gamificationBadges"] == []

    def test_month_comparison_averages(self, test_db, test_user, add_meal):
        add_meal(test_user.id, date(2024, 2, 10), calories=2900)
        add_meal(test_user.id, date(2024, 3, 10), calories=3100)

        result = CalendarService(test_db).get_month_comparison(test_user.id, 2024, 3)

        assert result["comparison"]["currentMonthAvg"] == pytest.approx(100)
        assert result["comparison"]["previousMonthAvg"] == pytest.approx(100)
        assert len(result["previousMonth"]) == 29


# ===== BADGES =====

@pytest.mark.integration
class TestBadges:

    def test_eligible_badges(self):
        days = month_days(date(2024, 3, 1), 15, 2000, quality=9)
        names = [rule["name"] for rule in CalendarService.eligible_badges(days, 48, 7)]
        assert names == ["Week Warrior", "Quality King", "Consistency Master"]

    def test_badges_are_not_awarded_twice(self, test_db, test_user):
        service = CalendarService(test_db)
        days = month_days(date(2024, 3, 1), 15, 2000, quality=9)

        first = service.check_and_award_badges(test_user.id, days, 48, 7)
        second = service.check_and_award_badges(test_user.id, days, 48, 7)

        assert len(first) == 3
        assert sorted(badge["name"] for badge in second) == sorted(badge["name"] for badge in first)
        assert test_db.query(GamificationBadge).filter_by(user_id=test_user.id).count() == 3

    def test_badge_can_be_earned_again_after_lookback(self, test_db, test_user):
        test_db.add(GamificationBadge(
            user_id=test_user.id,
            name="Week Warrior",
            description="7 days streak of meeting goals",
            icon="🔥",
            points=100,
            achieved_at=datetime.utcnow() - timedelta(days=40)
        ))
        test_db.commit()

        badges = CalendarService(test_db).check_and_award_badges(test_user.id, [], 0, 7)

        assert [badge["name"] for badge in badges] == ["Week Warrior"]
        assert test_db.query(GamificationBadge).filter_by(user_id=test_user.id).count() == 2

    def test_awarded_badge_stores_rule(self, test_db, test_user):
        CalendarService(test_db).check_and_award_badges(test_user.id, [], 95, 0)
        badge = test_db.query(GamificationBadge).filter_by(user_id=test_user.id).one()
        assert badge.name == "Monthly Champion"
        assert badge.points == 200
        assert '"threshold": 90' in badge.condition


# ===== EVENTS =====

@pytest.mark.integration
class TestEvents:

    def test_add_and_list_events(self, test_db, test_user):
        service = CalendarService(test_db)
        service.add_event(test_user.id, date(2024, 3, 5), "Dinner party", event_type="social")
        service.add_event(test_user.id, date(2024, 3, 5), "Check-up", event_type=None, description="Annual")

        events = service.get_events_for_date(test_user.id, date(2024, 3, 5))
        assert [event.title for event in events] == ["Dinner party", "Check-up"]
        assert events[1].type == "general"

    def test_delete_is_scoped_to_owner(self, test_db, test_user, second_test_user):
        service = CalendarService(test_db)
        event = service.add_event(test_user.id, date(2024, 3, 5), "Gym", event_type="workout")

        with pytest.raises(NotFoundError):
            service.delete_event(second_test_user.id, event.id)

        assert service.delete_event(test_user.id, event.id) == 1
        assert service.get_events_for_date(test_user.id, date(2024, 3, 5)) == []

    def test_delete_missing_event(self, test_db, test_user):
        with pytest.raises(NotFoundError):
            CalendarService(test_db).delete_event(test_user.id, 9999)
