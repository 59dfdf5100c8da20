from __future__ import annotations

import logging
import random
from datetime import date, datetime, timezone
from typing import Any, Iterable

from sqlalchemy.orm import Session

from config import settings as app_settings
from db.models import Exercise, ScheduledWorkout, User, WorkoutSchedule
from services.exercise_safety import SafeExercise, SafetyAsserter, filter_exercises_by_constraints
from services.pain_service import derive_contraindications
from services.schedule_validator import ValidationResult, validate_schedule
from services.workout_scheduler import generate_week
from services.workout_store import WorkoutStore, dump_label_list, exercise_spec
from services.workout_types import (
    EXERCISE_CATEGORIES,
    EXERCISE_INTENSITIES,
    ExerciseSpec,
    UserProfile,
)


logger = logging.getLogger(__name__)

REST_REASON_SAFETY_EXCLUDED = "assigned exercise failed the safety check"


class StaleWriteError(Exception):
    """A scheduled-workout update carried an outdated version number."""


# ============================================================
# Users / catalog
# ============================================================

def create_user(db: Session, *, name: str, email: str | None = None, health_constraints: Iterable[str] | None = None) -> User:
    clean_name = " ".join(str(name or "").strip().split())
    if not clean_name:
        raise ValueError("name is required")
    clean_email = (email or "").strip().lower() or None
    if clean_email and db.query(User).filter(User.email == clean_email).first():
        raise ValueError(f"A user with email {clean_email} already exists")
    row = User(
        name=clean_name,
        email=clean_email,
        health_constraints=dump_label_list(health_constraints),
    )
    db.add(row)
    db.flush()
    return row


def set_user_constraints(db: Session, user_id: int, health_constraints: Iterable[str]) -> User:
    row = db.query(User).filter(User.id == user_id).first()
    if not row:
        raise ValueError("User not found")
    row.health_constraints = dump_label_list(health_constraints)
    db.flush()
    return row


def create_exercise(
    db: Session,
    *,
    name: str,
    category: str,
    duration_min: int,
    subcategory: str | None = None,
    intensity: str = "moderate",
    equipment: Iterable[str] | None = None,
    contraindications: Iterable[str] | None = None,
    modifications: str | None = None,
) -> Exercise:
    clean_name = " ".join(str(name or "").strip().split())
    if not clean_name:
        raise ValueError("name is required")
    norm_category = str(category or "").strip().lower()
    if norm_category not in EXERCISE_CATEGORIES:
        raise ValueError(f"category must be one of {', '.join(EXERCISE_CATEGORIES)}")
    norm_intensity = str(intensity or "").strip().lower()
    if norm_intensity not in EXERCISE_INTENSITIES:
        raise ValueError(f"intensity must be one of {', '.join(EXERCISE_INTENSITIES)}")
    if int(duration_min) <= 0:
        raise ValueError("duration_min must be positive")
    if db.query(Exercise).filter(Exercise.name == clean_name).first():
        raise ValueError(f"An exercise named {clean_name!r} already exists")
    row = Exercise(
        name=clean_name,
        category=norm_category,
        subcategory=(subcategory or "").strip() or None,
        duration_min=int(duration_min),
        intensity=norm_intensity,
        equipment=dump_label_list(equipment),
        contraindications=dump_label_list(contraindications),
        modifications=(modifications or "").strip() or None,
    )
    db.add(row)
    db.flush()
    return row


def effective_profile(store: WorkoutStore, user_id: int, today: date, pain_window_days: int | None = None) -> UserProfile:
    """Declared constraints plus those derived from currently active pain reports."""
    if pain_window_days is None:
        pain_window_days = app_settings.PAIN_ACTIVE_WINDOW_DAYS
    user = store.fetch_user(user_id)
    active = store.fetch_active_pain_reports(user_id, today, pain_window_days)
    derived = derive_contraindications(active)
    if derived:
        logger.info(f"User {user_id}: {len(active)} active pain reports add constraints {sorted(derived)}")
    return user.with_extra_constraints(derived)


def safe_catalog_for_user(
    store: WorkoutStore,
    user_id: int,
    asserter: SafetyAsserter,
    *,
    today: date,
    pain_window_days: int | None = None,
    context: str = "exercise catalog",
) -> tuple[UserProfile, list[ExerciseSpec]]:
    profile = effective_profile(store, user_id, today, pain_window_days)
    catalog = store.fetch_safe_catalog(user_id)
    safe = filter_exercises_by_constraints(catalog, profile.health_constraints)
    approved = [s.exercise for s in asserter.assert_all_safe(safe, profile, context)]
    return profile, approved


# ============================================================
# Weekly schedule
# ============================================================

def generate_weekly_schedule(
    store: WorkoutStore,
    user_id: int,
    week_start: date,
    asserter: SafetyAsserter,
    *,
    today: date,
    rng: random.Random | None = None,
    pain_window_days: int | None = None,
) -> tuple[WorkoutSchedule, list[ScheduledWorkout]]:
    """
    Build and persist seven day slots for the week starting at week_start.

    Any existing days of that week's schedule are replaced. Raises
    EmptyCatalogError (nothing is written) when no safe exercise exists.
    Only exercises the asserter issued are written; a pick it rejects under
    the permissive policy is stored as a rest day.
    """
    profile, catalog = safe_catalog_for_user(
        store,
        user_id,
        asserter,
        today=today,
        pain_window_days=pain_window_days,
        context="workout schedule generation",
    )
    days = generate_week(user_id, week_start, catalog, rng)
    assignments: list[SafeExercise | None] = [
        asserter.assert_safe(day.exercise, profile, "weekly schedule assignment") if day.exercise is not None else None
        for day in days
    ]

    schedule = store.get_or_create_schedule(user_id, week_start)
    replaced = store.clear_schedule_days(schedule.id)
    if replaced:
        logger.info(f"Regenerating schedule {schedule.id}: replaced {replaced} existing days")
    schedule.status = "draft"
    rows = []
    for day, assignment in zip(days, assignments):
        reason = day.reason
        if day.exercise is not None and assignment is None:
            reason = REST_REASON_SAFETY_EXCLUDED
        rows.append(store.write_scheduled_workout(schedule.id, day.date, day.day_index, assignment, reason))
    return schedule, rows


def _update_scheduled_workout(
    db: Session,
    workout_id: int,
    updates: dict[str, Any],
    expected_version: int | None,
) -> ScheduledWorkout:
    row = db.query(ScheduledWorkout).filter(ScheduledWorkout.id == workout_id).first()
    if not row:
        raise ValueError("Scheduled workout not found")
    if expected_version is not None and int(row.version or 0) != int(expected_version):
        raise StaleWriteError(
            f"Scheduled workout {workout_id} was modified concurrently "
            f"(expected version {expected_version}, found {row.version})"
        )
    for key, value in updates.items():
        setattr(row, key, value)
    row.version = int(row.version or 0) + 1
    db.flush()
    return row


def mark_workout_complete(
    db: Session,
    workout_id: int,
    *,
    note: str | None = None,
    expected_version: int | None = None,
) -> ScheduledWorkout:
    return _update_scheduled_workout(
        db,
        workout_id,
        {
            "status": "completed",
            "completed_at": datetime.now(timezone.utc),
            "completion_note": (note or "").strip() or None,
        },
        expected_version,
    )


def mark_workout_skipped(
    db: Session,
    workout_id: int,
    *,
    reason: str | None = None,
    expected_version: int | None = None,
) -> ScheduledWorkout:
    return _update_scheduled_workout(
        db,
        workout_id,
        {
            "status": "skipped",
            "completed_at": None,
            "alternative_reason": (reason or "").strip() or None,
        },
        expected_version,
    )


def _week_exercises(store: WorkoutStore, schedule: WorkoutSchedule) -> list[ExerciseSpec | None]:
    """Rebuild the week from each day's snapshot; contraindications come from the current catalog row."""
    workouts = store.list_scheduled_workouts(schedule.id)
    catalog = store.fetch_exercises_by_ids(w.exercise_id for w in workouts if w.exercise_id is not None)
    week: list[ExerciseSpec | None] = [None] * 7
    for w in workouts:
        if w.is_rest_day or w.exercise_id is None or not 0 <= int(w.day_index) < 7:
            continue
        live = catalog.get(w.exercise_id)
        week[w.day_index] = ExerciseSpec(
            id=w.exercise_id,
            name=w.exercise_name or (live.name if live else ""),
            category=w.category or (live.category if live else ""),
            subcategory=live.subcategory if live else None,
            duration_min=int(w.duration_min or 0),
            contraindications=live.contraindications if live else frozenset(),
        )
    return week


def activate_schedule(
    store: WorkoutStore,
    schedule_id: int,
    asserter: SafetyAsserter,
    *,
    today: date,
    pain_window_days: int | None = None,
) -> tuple[WorkoutSchedule, ValidationResult]:
    schedule = store.db.query(WorkoutSchedule).filter(WorkoutSchedule.id == schedule_id).first()
    if not schedule:
        raise ValueError("Schedule not found")
    if schedule.status == "archived":
        raise ValueError("Archived schedules cannot be activated")
    if not store.list_scheduled_workouts(schedule.id):
        raise ValueError("Schedule has no workouts to activate")
    profile = effective_profile(store, schedule.user_id, today, pain_window_days)
    result = validate_schedule(_week_exercises(store, schedule), profile, asserter, context="schedule activation")
    if result.valid:
        schedule.status = "active"
        store.db.flush()
    else:
        logger.warning(f"Schedule {schedule_id} not activated: {len(result.errors)} validation errors")
    return schedule, result


def archive_schedule(db: Session, schedule_id: int) -> WorkoutSchedule:
    schedule = db.query(WorkoutSchedule).filter(WorkoutSchedule.id == schedule_id).first()
    if not schedule:
        raise ValueError("Schedule not found")
    schedule.status = "archived"
    db.flush()
    return schedule


# ============================================================
# Serialization
# ============================================================

def serialize_exercise(exercise: ExerciseSpec | Exercise) -> dict[str, Any]:
    spec = exercise if isinstance(exercise, ExerciseSpec) else exercise_spec(exercise)
    return {
        "id": spec.id,
        "name": spec.name,
        "category": spec.category,
        "subcategory": spec.subcategory,
        "duration_min": spec.duration_min,
        "intensity": spec.intensity,
        "equipment": list(spec.equipment),
        "contraindications": sorted(spec.contraindications),
        "modifications": spec.modifications,
    }


def serialize_scheduled_workout(row: ScheduledWorkout) -> dict[str, Any]:
    return {
        "id": row.id,
        "schedule_id": row.schedule_id,
        "date": row.date.isoformat(),
        "day_index": row.day_index,
        "status": row.status,
        "is_rest_day": bool(row.is_rest_day),
        "rest_reason": row.rest_reason,
        "exercise": None if row.is_rest_day else {
            "exercise_id": row.exercise_id,
            "exercise_name": row.exercise_name,
            "duration_min": row.duration_min,
            "category": row.category,
        },
        "completed_at": row.completed_at.isoformat() if row.completed_at else None,
        "completion_note": row.completion_note,
        "alternative_reason": row.alternative_reason,
        "version": int(row.version or 0),
    }


def serialize_schedule(row: WorkoutSchedule) -> dict[str, Any]:
    return {
        "id": row.id,
        "user_id": row.user_id,
        "week_start_date": row.week_start_date.isoformat(),
        "status": row.status,
    }
