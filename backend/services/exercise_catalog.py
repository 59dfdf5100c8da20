from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from db.models import Exercise
from services.workout_service import create_exercise


DEFAULT_EXERCISE_SEEDS: list[dict[str, Any]] = [
    {
        "name": "Brisk Walking",
        "category": "cardio",
        "subcategory": "walking",
        "duration_min": 30,
        "intensity": "low",
        "contraindications": [],
    },
    {
        "name": "Swimming",
        "category": "cardio",
        "subcategory": "swimming",
        "duration_min": 30,
        "intensity": "moderate",
        "contraindications": ["shoulder-stress"],
        "modifications": "Use a pull buoy and avoid butterfly stroke if shoulders are sore.",
    },
    {
        "name": "Jump Rope Intervals",
        "category": "cardio",
        "subcategory": "hiit",
        "duration_min": 15,
        "intensity": "high",
        "equipment": ["jump rope"],
        "contraindications": ["high-impact", "knee-stress", "ankle-stress"],
    },
    {
        "name": "Deep Squats",
        "category": "strength",
        "subcategory": "lower body",
        "duration_min": 20,
        "intensity": "moderate",
        "contraindications": ["knee-stress"],
    },
    {
        "name": "Glute Bridges",
        "category": "strength",
        "subcategory": "lower body",
        "duration_min": 15,
        "intensity": "low",
        "contraindications": [],
    },
    {
        "name": "Dumbbell Rows",
        "category": "strength",
        "subcategory": "upper body",
        "duration_min": 20,
        "intensity": "moderate",
        "equipment": ["dumbbells"],
        "contraindications": ["back-strain", "upper-body-intensive"],
    },
    {
        "name": "Crunches",
        "category": "strength",
        "subcategory": "core",
        "duration_min": 10,
        "intensity": "moderate",
        "contraindications": ["diastasis-risk", "core-intensive"],
        "modifications": "Swap for dead bugs with exhale bracing.",
    },
    {
        "name": "Gentle Yoga Flow",
        "category": "flexibility",
        "subcategory": "yoga",
        "duration_min": 25,
        "intensity": "low",
        "equipment": ["mat"],
        "contraindications": [],
    },
    {
        "name": "Hamstring Stretch Routine",
        "category": "flexibility",
        "subcategory": "stretching",
        "duration_min": 10,
        "intensity": "low",
        "contraindications": ["back-stress"],
    },
    {
        "name": "Long Weekend Ride",
        "category": "sport",
        "subcategory": "Road Cycling",
        "duration_min": 110,
        "intensity": "moderate",
        "equipment": ["bike", "helmet"],
        "contraindications": ["hip-stress"],
    },
    {
        "name": "Easy Spin",
        "category": "sport",
        "subcategory": "indoor cycling",
        "duration_min": 30,
        "intensity": "low",
        "equipment": ["bike"],
        "contraindications": [],
    },
    {
        "name": "Tennis Rally",
        "category": "sport",
        "subcategory": "racket",
        "duration_min": 60,
        "intensity": "high",
        "contraindications": ["knee-stress", "shoulder-stress", "elbow-stress"],
    },
]


def ensure_default_exercises(db: Session) -> list[Exercise]:
    """Seed any default exercise that is missing by name; existing rows are left untouched."""
    existing_names = {str(name).strip().lower() for (name,) in db.query(Exercise.name).all()}
    created: list[Exercise] = []
    for seed in DEFAULT_EXERCISE_SEEDS:
        if str(seed["name"]).strip().lower() in existing_names:
            continue
        created.append(create_exercise(db, **seed))
    return created
