# tests/conftest.py
"""
Pytest configuration and fixtures for nutrition tracker tests
Provides reusable test fixtures for database, users, meals, etc.
"""

import pytest
from datetime import datetime, date, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from app.models.database import Base, User, Meal, WaterIntake, NutritionGoal, get_db
from app.main import app
from app.services.auth import create_access_token, get_password_hash
from app.services.stats_cache import MemoryStatsCache, get_stats_cache
from app.services import aggregation

# ===== DATABASE FIXTURES =====

@pytest.fixture(scope="function")
def test_db():
    """
    Provide a clean test database for each test
    Uses in-memory SQLite for speed
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()

    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(test_db):
    """Alias for test_db for clearer test code"""
    return test_db


@pytest.fixture
def stats_cache():
    """Fresh in-memory statistics cache per test"""
    return MemoryStatsCache(ttl_seconds=300)


# ===== USER FIXTURES =====

@pytest.fixture
def test_user(test_db: Session):
    """Create a basic test user"""
    user = User(
        email="testuser@example.com",
        hashed_password=get_password_hash("TestPass123"),
        is_active=True,
        created_at=datetime.utcnow()
    )
    test_db.add(user)
    test_db.commit()
    test_db.refresh(user)
    return user


@pytest.fixture
def second_test_user(test_db: Session):
    """Create a second test user for multi-user tests"""
    user = User(
        email="testuser2@example.com",
        hashed_password=get_password_hash("TestPass123"),
        is_active=True,
        created_at=datetime.utcnow()
    )
    test_db.add(user)
    test_db.commit()
    test_db.refresh(user)
    return user


@pytest.fixture
def test_user_with_goals(test_db: Session, test_user: User):
    """Test user with explicit daily goals"""
    goal = NutritionGoal(
        user_id=test_user.id,
        calories=2000,
        protein_g=150,
        carbs_g=250,
        fat_g=67,
        water_ml=2000
    )
    test_db.add(goal)
    test_db.commit()
    test_db.refresh(test_user)
    return test_user


# ===== TIME FIXTURES =====

@pytest.fixture
def fixed_today(monkeypatch):
    """Pin aggregation.today() to a known date"""
    def _pin(day: date):
        monkeypatch.setattr(aggregation, "today", lambda: day)
        return day
    return _pin


# ===== MEAL FIXTURES =====

@pytest.fixture
def add_meal(test_db: Session):
    """Insert a meal directly, bypassing the service layer"""
    def _add_meal(user_id: int, day: date, hour: int = 12, **values):
        meal = Meal(
            user_id=user_id,
            meal_name=values.pop("meal_name", "Test Meal"),
            created_at=datetime.combine(day, datetime.min.time()) + timedelta(hours=hour),
            upload_time=datetime.utcnow(),
            ingredients=[],
            additives={},
            **values
        )
        test_db.add(meal)
        test_db.commit()
        test_db.refresh(meal)
        return meal
    return _add_meal


@pytest.fixture
def add_water(test_db: Session):
    """Insert a water intake row for a day"""
    def _add_water(user_id: int, day: date, cups: int):
        intake = WaterIntake(user_id=user_id, date=day, cups_consumed=cups, milliliters=cups * 250)
        test_db.add(intake)
        test_db.commit()
        return intake
    return _add_water


# ===== AUTHENTICATION FIXTURES =====

@pytest.fixture
def auth_token(test_user: User):
    """Create a valid JWT token for test user"""
    token = create_access_token(data={"sub": str(test_user.id)})
    return token


@pytest.fixture
def auth_headers(auth_token: str):
    """Create authentication headers"""
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
def second_auth_headers(second_test_user: User):
    token = create_access_token(data={"sub": str(second_test_user.id)})
    return {"Authorization": f"Bearer {token}"}


# ===== API CLIENT FIXTURES =====

@pytest.fixture
def client(test_db: Session, stats_cache: MemoryStatsCache):
    """Create test client bound to the test database and cache"""
    def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_stats_cache] = lambda: stats_cache
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def authenticated_client(client: TestClient, auth_headers: dict):
    """Create authenticated test client"""
    client.headers.update(auth_headers)
    return client


# ===== PYTEST CONFIGURATION =====

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, isolated)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (services working together)"
    )
    config.addinivalue_line(
        "markers", "api: API tests through TestClient"
    )


# ===== TEST UTILITIES =====

@pytest.fixture
def assert_database_state():
    """Helper fixture for asserting database state"""
    def _assert_state(db: Session, model, filters: dict, expected_count: int = None, expected_values: dict = None):
        query = db.query(model)
        for key, value in filters.items():
            query = query.filter(getattr(model, key) == value)

        results = query.all()

        if expected_count is not None:
            assert len(results) == expected_count, f"Expected {expected_count} records, got {len(results)}"

        if expected_values and results:
            for key, value in expected_values.items():
                assert getattr(results[0], key) == value, f"Expected {key}={value}, got {getattr(results[0], key)}"

        return results

    return _assert_state
