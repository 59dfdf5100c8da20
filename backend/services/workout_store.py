from __future__ import annotations

import json
from datetime import date, timedelta
from typing import Any, Iterable

from sqlalchemy.orm import Session

from db.models import Exercise, PainReport, ScheduledWorkout, User, WorkoutSchedule
from services.audit_service import AuditSink, DatabaseAuditSink, SafeAuditSink
from services.exercise_safety import SafeExercise, require_safe
from services.pain_service import pain_report_spec
from services.workout_types import AuditEntry, ExerciseSpec, PainReportSpec, UserProfile


def _safe_json_loads(raw: str | None, fallback: Any) -> Any:
    if not raw:
        return fallback
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return fallback


def _json_dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=True)


def parse_label_list(raw: str | None) -> list[str]:
    """Parse a JSON array column into clean string labels; tolerate legacy comma text."""
    value = _safe_json_loads(raw, None)
    if value is None and raw:
        value = [part for part in str(raw).split(",")]
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if isinstance(v, str) and v.strip()]


def dump_label_list(labels: Iterable[str] | None) -> str:
    seen: list[str] = []
    for label in labels or ():
        cleaned = str(label or "").strip().lower()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return _json_dump(seen)


def exercise_spec(row: Exercise) -> ExerciseSpec:
    return ExerciseSpec(
        id=row.id,
        name=row.name,
        category=row.category,
        subcategory=row.subcategory,
        duration_min=int(row.duration_min or 0),
        intensity=row.intensity or "moderate",
        equipment=tuple(parse_label_list(row.equipment)),
        contraindications=frozenset(parse_label_list(row.contraindications)),
        modifications=row.modifications,
    )


def user_profile(row: User) -> UserProfile:
    return UserProfile(
        id=row.id,
        name=row.name,
        health_constraints=frozenset(parse_label_list(row.health_constraints)),
    )


class WorkoutStore:
    """
    SQLAlchemy-backed storage collaborator for the scheduling engine.

    Methods flush but never commit; the caller owns the transaction. Database
    errors propagate unchanged.
    """

    def __init__(self, db: Session, audit_sink: AuditSink | None = None) -> None:
        self.db = db
        self.audit_sink = SafeAuditSink(audit_sink or DatabaseAuditSink(db))

    # ---- users / catalog -------------------------------------------------

    def _user_row(self, user_id: int) -> User:
        row = self.db.query(User).filter(User.id == user_id).first()
        if not row:
            raise ValueError("User not found")
        return row

    def fetch_user(self, user_id: int) -> UserProfile:
        return user_profile(self._user_row(user_id))

    def fetch_user_constraints(self, user_id: int) -> set[str]:
        return set(self.fetch_user(user_id).health_constraints)

    def fetch_all_exercises(self) -> list[ExerciseSpec]:
        rows = self.db.query(Exercise).order_by(Exercise.category.asc(), Exercise.name.asc()).all()
        return [exercise_spec(r) for r in rows]

    def fetch_exercises_by_ids(self, exercise_ids: Iterable[int]) -> dict[int, ExerciseSpec]:
        ids = {int(i) for i in exercise_ids}
        if not ids:
            return {}
        rows = self.db.query(Exercise).filter(Exercise.id.in_(ids)).all()
        return {r.id: exercise_spec(r) for r in rows}

    def fetch_safe_catalog(self, user_id: int) -> list[ExerciseSpec]:
        """
        Layer 1: drop exercises whose raw contraindication labels overlap the user's
        raw constraint labels. No alias expansion happens here; Layer 2 re-checks.
        """
        constraints = {c.strip().lower() for c in self.fetch_user_constraints(user_id)}
        rows = self.db.query(Exercise).order_by(Exercise.name.asc()).all()
        if not constraints:
            return [exercise_spec(r) for r in rows]
        catalog: list[ExerciseSpec] = []
        for row in rows:
            raw = {label.lower() for label in parse_label_list(row.contraindications)}
            if raw & constraints:
                continue
            catalog.append(exercise_spec(row))
        return catalog

    # ---- pain ------------------------------------------------------------

    def fetch_active_pain_reports(self, user_id: int, today: date, window_days: int) -> list[PainReportSpec]:
        threshold = today - timedelta(days=window_days)
        rows = (
            self.db.query(PainReport)
            .filter(
                PainReport.user_id == user_id,
                PainReport.reported_date >= threshold,
                PainReport.resolved_date.is_(None),
            )
            .order_by(PainReport.reported_date.desc(), PainReport.id.desc())
            .all()
        )
        return [pain_report_spec(r) for r in rows]

    def count_recent_pain_reports(self, user_id: int, today: date, window_days: int) -> int:
        threshold = today - timedelta(days=window_days)
        return (
            self.db.query(PainReport)
            .filter(PainReport.user_id == user_id, PainReport.reported_date >= threshold)
            .count()
        )

    # ---- schedules -------------------------------------------------------

    def get_schedule_for_week(self, user_id: int, week_start: date) -> WorkoutSchedule | None:
        return (
            self.db.query(WorkoutSchedule)
            .filter(WorkoutSchedule.user_id == user_id, WorkoutSchedule.week_start_date == week_start)
            .first()
        )

    def get_or_create_schedule(self, user_id: int, week_start: date) -> WorkoutSchedule:
        row = self.get_schedule_for_week(user_id, week_start)
        if row:
            return row
        row = WorkoutSchedule(user_id=user_id, week_start_date=week_start, status="draft")
        self.db.add(row)
        self.db.flush()
        return row

    def list_scheduled_workouts(self, schedule_id: int) -> list[ScheduledWorkout]:
        return (
            self.db.query(ScheduledWorkout)
            .filter(ScheduledWorkout.schedule_id == schedule_id)
            .order_by(ScheduledWorkout.day_index.asc())
            .all()
        )

    def clear_schedule_days(self, schedule_id: int) -> int:
        rows = self.list_scheduled_workouts(schedule_id)
        for row in rows:
            self.db.delete(row)
        self.db.flush()
        return len(rows)

    def write_scheduled_workout(
        self,
        schedule_id: int,
        day_date: date,
        day_index: int,
        assignment: SafeExercise | None,
        rest_reason: str | None = None,
    ) -> ScheduledWorkout:
        """Persist one day slot. An assignment must be a SafeExercise issued for the schedule's user."""
        schedule = self.db.query(WorkoutSchedule).filter(WorkoutSchedule.id == schedule_id).first()
        if not schedule:
            raise ValueError("Schedule not found")
        row = ScheduledWorkout(
            schedule_id=schedule_id,
            date=day_date,
            day_index=day_index,
            status="pending",
            version=1,
        )
        if assignment is None:
            row.is_rest_day = True
            row.rest_reason = rest_reason or "Scheduled rest day for recovery"
        else:
            snapshot = require_safe(assignment, schedule.user_id).exercise.snapshot()
            row.is_rest_day = False
            row.exercise_id = snapshot["exercise_id"]
            row.exercise_name = snapshot["exercise_name"]
            row.duration_min = snapshot["duration_min"]
            row.category = snapshot["category"]
        self.db.add(row)
        self.db.flush()
        return row

    # ---- audit -----------------------------------------------------------

    def append_audit(self, entry: AuditEntry) -> None:
        self.audit_sink.record(entry)

    def record(self, entry: AuditEntry) -> None:
        """Lets the store itself be handed to the asserter as its audit sink."""
        self.append_audit(entry)
