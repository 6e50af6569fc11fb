from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    environment: str = "development"

    # Database
    database_url: str = "sqlite:///./nutrition_tracker.db"

    # Secret
    secret_key: str = "change-me-in-production"

    #JWT
    access_token_expire_minutes: int = 60

    # Logging
    log_level: str = "INFO"

    # Statistics cache ("memory" or "redis")
    cache_backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    stats_cache_ttl_seconds: int = 300

    # Default daily goals (used until the user saves their own)
    default_calories_goal: float = 2000
    default_protein_goal: float = 150
    default_carbs_goal: float = 250
    default_fat_goal: float = 67
    default_water_goal_ml: float = 2000

    # Gamification
    badge_lookback_days: int = 30
    xp_per_level: int = 100
    water_goal_cups: int = 8
    calorie_goal_day_threshold: float = 1800
    ml_per_cup: float = 250

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    class Config:
        env_file = ".env"


settings = Settings()
