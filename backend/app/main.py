from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from app.api import auth, calendar, nutrition, shopping_lists, achievements, daily_goals
from app.core.config import settings
from app.init_db import init_database
from app.services.stats_cache import stats_cache
import logging

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: tables, indexes and achievement catalog
    init_database()
    logger.info(f"Database ready ({settings.environment})")

    yield

    # Shutdown
    stats_cache.clear()
    logger.info("Statistics cache cleared")

app = FastAPI(
    title="Nutrition Tracker API",
    description="Meal logging, calendar statistics, shopping lists and achievements",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router, prefix="/api")
app.include_router(calendar.router, prefix="/api")
app.include_router(nutrition.router, prefix="/api")
app.include_router(shopping_lists.router, prefix="/api")
app.include_router(achievements.router, prefix="/api")
app.include_router(daily_goals.router, prefix="/api")


@app.get("/")
def root():
    return {
        "name": "Nutrition Tracker API",
        "version": "1.0.0",
        "status": "operational"
    }

@app.get("/health")
def health_check():
    return {
        "status": "healthy",
        "cache_backend": settings.cache_backend
    }
