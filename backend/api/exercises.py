from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from api.dependencies import get_asserter, get_store, get_today
from config import settings
from db.database import get_db
from services.exercise_safety import SafetyAsserter, SafetyViolationError, is_safe_for_display
from services.workout_service import create_exercise, effective_profile, safe_catalog_for_user, serialize_exercise
from services.workout_store import WorkoutStore


router = APIRouter(tags=["exercises"])


class ExerciseCreate(BaseModel):
    name: str
    category: str  # cardio | strength | flexibility | sport
    duration_min: int = Field(ge=1, le=600)
    subcategory: Optional[str] = None
    intensity: str = "moderate"  # low | moderate | high
    equipment: list[str] = Field(default_factory=list)
    contraindications: list[str] = Field(default_factory=list)
    modifications: Optional[str] = None


class DisplayCheck(BaseModel):
    exercise_id: int


@router.get("/exercises")
def list_exercises(store: WorkoutStore = Depends(get_store)):
    return {"exercises": [serialize_exercise(e) for e in store.fetch_all_exercises()]}


@router.post("/exercises", status_code=201)
def add_exercise(payload: ExerciseCreate, db: Session = Depends(get_db)):
    try:
        row = create_exercise(db, **payload.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    db.commit()
    return serialize_exercise(row)


@router.get("/users/{user_id}/exercises")
def list_safe_exercises(
    user_id: int,
    db: Session = Depends(get_db),
    store: WorkoutStore = Depends(get_store),
    asserter: SafetyAsserter = Depends(get_asserter),
    today: date = Depends(get_today),
):
    try:
        profile, catalog = safe_catalog_for_user(
            store,
            user_id,
            asserter,
            today=today,
            pain_window_days=settings.PAIN_ACTIVE_WINDOW_DAYS,
        )
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except SafetyViolationError as exc:
        db.commit()  # keep audit rows written so far
        raise HTTPException(status_code=409, detail=str(exc))
    db.commit()
    return {
        "user_id": profile.id,
        "constraints": sorted(profile.health_constraints),
        "exercises": [serialize_exercise(e) for e in catalog],
    }


@router.post("/users/{user_id}/display-check")
def display_check(
    user_id: int,
    payload: DisplayCheck,
    store: WorkoutStore = Depends(get_store),
    today: date = Depends(get_today),
):
    try:
        profile = effective_profile(store, user_id, today, settings.PAIN_ACTIVE_WINDOW_DAYS)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    exercise = store.fetch_exercises_by_ids([payload.exercise_id]).get(payload.exercise_id)
    if exercise is None:
        raise HTTPException(status_code=404, detail="Exercise not found")
    return {"exercise_id": exercise.id, "safe": is_safe_for_display(exercise, profile.health_constraints)}
