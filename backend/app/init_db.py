import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from app.models.database import Base, engine, SessionLocal
from app.services.achievement_service import seed_achievements
import logging

logger = logging.getLogger(__name__)

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_meals_user_created ON meals(user_id, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_calendar_events_user_date ON calendar_events(user_id, date);",
    "CREATE INDEX IF NOT EXISTS idx_badges_user_achieved ON gamification_badges(user_id, achieved_at);",
]


def init_database(bind=None):
    """Create all tables, composite indexes and the achievement catalog"""
    bind = bind or engine
    try:
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=bind)
        logger.info("Database tables created successfully!")

        # Separate transactions so one failed index leaves the others intact
        for index in INDEXES:
            try:
                with bind.begin() as conn:
                    conn.execute(text(index))
                logger.info(f"Index created: {index[:50]}...")
            except SQLAlchemyError as e:
                logger.warning(f"Index might already exist: {e}")

        db = SessionLocal(bind=bind)
        try:
            seed_achievements(db)
        finally:
            db.close()

        logger.info("Database initialization complete!")

    except SQLAlchemyError as e:
        logger.error(f"Error initializing database: {e}")
        raise


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_database()
