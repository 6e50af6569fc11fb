"""
API tests for /api/nutrition
"""

import pytest
from datetime import date

pytestmark = pytest.mark.api


def create_meal(client, **payload):
    body = {"name": "Chicken bowl", "calories": 650, "protein": 45, "carbs": 60, "fat": 18}
    body.update(payload)
    response = client.post("/api/nutrition/meals", json=body)
    assert response.status_code == 201
    return response.json()["data"]


def test_meal_crud(authenticated_client):
    meal = create_meal(authenticated_client, meal_period="lunch")
    assert meal["meal_period"] == "lunch"
    assert meal["fat"] == 18

    fetched = authenticated_client.get(f"/api/nutrition/meals/{meal['meal_id']}").json()["data"]
    assert fetched["name"] == "Chicken bowl"

    updated = authenticated_client.put(
        f"/api/nutrition/meals/{meal['meal_id']}", json={"calories": 700}
    ).json()["data"]
    assert updated["calories"] == 700

    listed = authenticated_client.get("/api/nutrition/meals").json()["data"]
    assert [item["meal_id"] for item in listed] == [meal["meal_id"]]

    response = authenticated_client.delete(f"/api/nutrition/meals/{meal['meal_id']}")
    assert response.status_code == 200
    assert authenticated_client.get(f"/api/nutrition/meals/{meal['meal_id']}").status_code == 404


def test_update_rejects_unknown_field(authenticated_client):
    meal = create_meal(authenticated_client)
    response = authenticated_client.put(f"/api/nutrition/meals/{meal['meal_id']}", json={"user_id": 2})
    assert response.status_code == 400


@pytest.mark.parametrize("payload", [{"calories": "lots"}, {"protein_g": -500}])
def test_update_rejects_bad_amounts(authenticated_client, payload):
    meal = create_meal(authenticated_client)
    response = authenticated_client.put(f"/api/nutrition/meals/{meal['meal_id']}", json=payload)
    assert response.status_code == 422

    stored = authenticated_client.get(f"/api/nutrition/meals/{meal['meal_id']}").json()["data"]
    assert stored["calories"] == 650
    assert stored["protein_g"] == 45


@pytest.mark.parametrize("payload", [
    {"name": "X", "fiber": "lots"},
    {"name": "X", "sugar_g": "lots"},
    {"name": "X", "liquids_ml": -1},
])
def test_create_rejects_bad_amounts(authenticated_client, payload):
    response = authenticated_client.post("/api/nutrition/meals", json=payload)
    assert response.status_code == 422
    assert authenticated_client.get("/api/nutrition/meals").json()["data"] == []


def test_other_user_cannot_read_meal(client, auth_headers, second_auth_headers):
    client.headers.update(auth_headers)
    meal = create_meal(client)
    response = client.get(f"/api/nutrition/meals/{meal['meal_id']}", headers=second_auth_headers)
    assert response.status_code == 404


def test_favorite_feedback_and_duplicate(authenticated_client):
    meal = create_meal(authenticated_client)
    meal_id = meal["meal_id"]

    favorite = authenticated_client.post(f"/api/nutrition/meals/{meal_id}/favorite").json()
    assert favorite["data"]["isFavorite"] is True
    assert favorite["message"] == "Meal added to favorites"

    feedback = authenticated_client.post(
        f"/api/nutrition/meals/{meal_id}/feedback", json={"tasteRating": 5, "satietyRating": 4}
    )
    assert feedback.status_code == 200
    assert feedback.json()["data"]["feedback"]["tasteRating"] == 5

    bad_feedback = authenticated_client.post(f"/api/nutrition/meals/{meal_id}/feedback", json={"tasteRating": 9})
    assert bad_feedback.status_code == 422

    duplicate = authenticated_client.post(
        f"/api/nutrition/meals/{meal_id}/duplicate", json={"newDate": "2024-03-10"}
    )
    assert duplicate.status_code == 201
    copy = duplicate.json()["data"]
    assert copy["meal_id"] != meal_id
    assert copy["created_at"].startswith("2024-03-10")
    assert copy["isFavorite"] is False


def test_daily_stats(authenticated_client, test_user, add_meal):
    add_meal(test_user.id, date(2024, 3, 5), calories=500, protein_g=20)

    response = authenticated_client.get("/api/nutrition/stats/daily", params={"date": "2024-03-05"})

    assert response.status_code == 200
    assert response.json()["data"]["calories"] == 500
    assert response.json()["data"]["meal_count"] == 1


def test_daily_stats_bad_date(authenticated_client):
    response = authenticated_client.get("/api/nutrition/stats/daily", params={"date": "March 5"})
    assert response.status_code == 400


@pytest.mark.parametrize("params", [
    {"startDate": "2024-03-01", "endDate": "2024-03-07"},
    {"start": "2024-03-01", "end": "2024-03-07"},
])
def test_range_stats_parameter_aliases(authenticated_client, test_user, add_meal, params):
    add_meal(test_user.id, date(2024, 3, 2), calories=1000)

    response = authenticated_client.get("/api/nutrition/stats/range", params=params)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["totalDays"] == 1
    assert data["total_calories"] == 1000


def test_range_stats_requires_both_dates(authenticated_client):
    response = authenticated_client.get("/api/nutrition/stats/range", params={"startDate": "2024-03-01"})
    assert response.status_code == 400


def test_range_stats_inverted(authenticated_client):
    response = authenticated_client.get(
        "/api/nutrition/stats/range", params={"startDate": "2024-03-07", "endDate": "2024-03-01"}
    )
    assert response.status_code == 400


def test_stats_refresh_after_meal_write(authenticated_client, fixed_today):
    today = fixed_today(date.today())
    params = {"date": today.isoformat()}

    before = authenticated_client.get("/api/nutrition/stats/daily", params=params).json()["data"]
    create_meal(authenticated_client, created_at=f"{today.isoformat()}T12:00:00")
    after = authenticated_client.get("/api/nutrition/stats/daily", params=params).json()["data"]

    assert before["meal_count"] == 0
    assert after["meal_count"] == 1
    assert after["calories"] == 650


def test_log_water(authenticated_client):
    response = authenticated_client.post("/api/nutrition/water", json={"date": "2024-03-05", "cups": 8})
    assert response.status_code == 200
    assert response.json()["data"] == {
        "date": "2024-03-05",
        "cups_consumed": 8,
        "milliliters": 2000,
        "goal_reached": True,
    }

    month = authenticated_client.get("/api/calendar/data/2024/3").json()["data"]
    assert month["2024-03-05"]["water_intake_ml"] == 2000
