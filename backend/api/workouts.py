from __future__ import annotations

import random
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from api.dependencies import get_asserter, get_rng, get_store, get_today
from config import settings
from db.database import get_db
from services.exercise_safety import SafetyAsserter, SafetyViolationError
from services.schedule_validator import validate_schedule
from services.workout_scheduler import EmptyCatalogError, preview_week
from services.workout_service import (
    StaleWriteError,
    activate_schedule,
    archive_schedule,
    effective_profile,
    generate_weekly_schedule,
    mark_workout_complete,
    mark_workout_skipped,
    safe_catalog_for_user,
    serialize_exercise,
    serialize_schedule,
    serialize_scheduled_workout,
)
from services.workout_store import WorkoutStore
from utils.datetime_utils import format_week_range, parse_iso_date, start_of_week


router = APIRouter(tags=["workouts"])


class GenerateRequest(BaseModel):
    week_start_date: str  # YYYY-MM-DD, any day of the target week


class ValidateRequest(BaseModel):
    exercise_ids: list[Optional[int]] = Field(default_factory=list)  # index 0 = Monday, null = rest


class CompleteRequest(BaseModel):
    note: Optional[str] = None
    expected_version: Optional[int] = None


class SkipRequest(BaseModel):
    reason: Optional[str] = None
    expected_version: Optional[int] = None


def _week_start(raw: str) -> date:
    try:
        return start_of_week(parse_iso_date(raw))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.post("/users/{user_id}/schedules/generate", status_code=201)
def generate_schedule(
    user_id: int,
    payload: GenerateRequest,
    db: Session = Depends(get_db),
    store: WorkoutStore = Depends(get_store),
    asserter: SafetyAsserter = Depends(get_asserter),
    rng: random.Random = Depends(get_rng),
    today: date = Depends(get_today),
):
    week_start = _week_start(payload.week_start_date)
    try:
        schedule, workouts = generate_weekly_schedule(
            store,
            user_id,
            week_start,
            asserter,
            today=today,
            rng=rng,
            pain_window_days=settings.PAIN_ACTIVE_WINDOW_DAYS,
        )
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except EmptyCatalogError as exc:
        db.commit()  # keep audit rows written so far
        raise HTTPException(status_code=422, detail=f"Cannot generate a schedule: {exc}")
    except SafetyViolationError as exc:
        db.commit()  # keep audit rows written so far
        raise HTTPException(status_code=409, detail=str(exc))
    db.commit()
    return {
        "schedule": serialize_schedule(schedule),
        "week_range": format_week_range(week_start),
        "workouts": [serialize_scheduled_workout(w) for w in workouts],
    }


@router.get("/users/{user_id}/schedules/preview")
def preview_schedule(
    user_id: int,
    week_start_date: str,
    db: Session = Depends(get_db),
    store: WorkoutStore = Depends(get_store),
    asserter: SafetyAsserter = Depends(get_asserter),
    rng: random.Random = Depends(get_rng),
    today: date = Depends(get_today),
):
    week_start = _week_start(week_start_date)
    try:
        _, catalog = safe_catalog_for_user(
            store,
            user_id,
            asserter,
            today=today,
            pain_window_days=settings.PAIN_ACTIVE_WINDOW_DAYS,
            context="schedule preview",
        )
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except SafetyViolationError as exc:
        db.commit()  # keep audit rows written so far
        raise HTTPException(status_code=409, detail=str(exc))
    db.commit()
    preview = preview_week(week_start, catalog, rng)
    return {
        "week_start_date": week_start.isoformat(),
        "days": [
            {
                "date": d.date.isoformat(),
                "day_index": d.day_index,
                "exercise": serialize_exercise(d.exercise) if d.exercise else None,
                "reason": d.reason,
                "variety_relaxed": d.variety_relaxed,
            }
            for d in preview.days
        ],
        "total_minutes": preview.total_minutes,
        "categories": preview.categories,
    }


@router.get("/users/{user_id}/schedules")
def get_schedule(
    user_id: int,
    week_start_date: str,
    store: WorkoutStore = Depends(get_store),
):
    week_start = _week_start(week_start_date)
    schedule = store.get_schedule_for_week(user_id, week_start)
    if schedule is None:
        return {"schedule": None, "workouts": []}
    return {
        "schedule": serialize_schedule(schedule),
        "workouts": [serialize_scheduled_workout(w) for w in store.list_scheduled_workouts(schedule.id)],
    }


@router.post("/users/{user_id}/schedules/validate")
def validate_proposed_schedule(
    user_id: int,
    payload: ValidateRequest,
    db: Session = Depends(get_db),
    store: WorkoutStore = Depends(get_store),
    asserter: SafetyAsserter = Depends(get_asserter),
    today: date = Depends(get_today),
):
    try:
        profile = effective_profile(store, user_id, today, settings.PAIN_ACTIVE_WINDOW_DAYS)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    catalog = store.fetch_exercises_by_ids(i for i in payload.exercise_ids if i is not None)
    missing = sorted({i for i in payload.exercise_ids if i is not None and i not in catalog})
    if missing:
        raise HTTPException(status_code=404, detail=f"Unknown exercise ids: {missing}")
    week = [catalog[i] if i is not None else None for i in payload.exercise_ids]
    result = validate_schedule(week, profile, asserter)
    db.commit()
    return {"valid": result.valid, "errors": result.errors}


@router.post("/schedules/{schedule_id}/activate")
def activate(
    schedule_id: int,
    db: Session = Depends(get_db),
    store: WorkoutStore = Depends(get_store),
    asserter: SafetyAsserter = Depends(get_asserter),
    today: date = Depends(get_today),
):
    try:
        schedule, result = activate_schedule(
            store,
            schedule_id,
            asserter,
            today=today,
            pain_window_days=settings.PAIN_ACTIVE_WINDOW_DAYS,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    db.commit()
    return {
        "schedule": serialize_schedule(schedule),
        "valid": result.valid,
        "errors": result.errors,
    }


@router.post("/schedules/{schedule_id}/archive")
def archive(schedule_id: int, db: Session = Depends(get_db)):
    try:
        schedule = archive_schedule(db, schedule_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    db.commit()
    return {"schedule": serialize_schedule(schedule)}


@router.post("/workouts/{workout_id}/complete")
def complete_workout(workout_id: int, payload: CompleteRequest, db: Session = Depends(get_db)):
    try:
        row = mark_workout_complete(db, workout_id, note=payload.note, expected_version=payload.expected_version)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except StaleWriteError as exc:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(exc))
    db.commit()
    return serialize_scheduled_workout(row)


@router.post("/workouts/{workout_id}/skip")
def skip_workout(workout_id: int, payload: SkipRequest, db: Session = Depends(get_db)):
    try:
        row = mark_workout_skipped(db, workout_id, reason=payload.reason, expected_version=payload.expected_version)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except StaleWriteError as exc:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(exc))
    db.commit()
    return serialize_scheduled_workout(row)
