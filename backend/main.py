from pathlib import Path
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from config import settings
from db.database import engine, Base, SessionLocal
from api.users import router as users_router
from api.exercises import router as exercises_router
from api.workouts import router as workouts_router
from api.pain import router as pain_router
from services.exercise_catalog import ensure_default_exercises


logger = logging.getLogger(__name__)

settings.validate_safety_configuration()

# Create all tables
Base.metadata.create_all(bind=engine)


def seed_catalog() -> None:
    if not settings.SEED_DEFAULT_EXERCISES:
        return
    db = SessionLocal()
    try:
        created = ensure_default_exercises(db)
        db.commit()
        if created:
            logger.info(f"Seeded {len(created)} default exercises")
    finally:
        db.close()


seed_catalog()

app = FastAPI(title=settings.APP_NAME, version="1.0.0")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(users_router, prefix="/api")
app.include_router(exercises_router, prefix="/api")
app.include_router(workouts_router, prefix="/api")
app.include_router(pain_router, prefix="/api")

# Serve frontend static files (in production)
static_dir = Path(__file__).parent / "static"
if static_dir.exists():
    app.mount("/", StaticFiles(directory=str(static_dir), html=True), name="static")


@app.get("/api/health")
def health_check():
    return {
        "status": "ok",
        "app": settings.APP_NAME,
        "safety_mode": settings.safety_policy.value,
    }
