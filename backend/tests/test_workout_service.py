from __future__ import annotations

import json
import random
import sys
from datetime import date, timedelta
from pathlib import Path

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from db.database import Base  # noqa: E402
from db.models import Exercise, ExerciseAuditLog, ScheduledWorkout, WorkoutSchedule  # noqa: E402
from services.audit_service import InMemoryAuditSink  # noqa: E402
from services.exercise_catalog import DEFAULT_EXERCISE_SEEDS, ensure_default_exercises  # noqa: E402
from services.exercise_safety import SafetyAsserter, SafetyViolationError, filter_exercises_by_constraints  # noqa: E402
from services.pain_service import record_pain_report, resolve_pain_report  # noqa: E402
from services.safety_policy import SafetyPolicy  # noqa: E402
from services.workout_scheduler import EmptyCatalogError  # noqa: E402
from services import workout_service  # noqa: E402
from services.workout_service import (  # noqa: E402
    REST_REASON_SAFETY_EXCLUDED,
    StaleWriteError,
    activate_schedule,
    archive_schedule,
    create_exercise,
    create_user,
    generate_weekly_schedule,
    mark_workout_complete,
    mark_workout_skipped,
    safe_catalog_for_user,
)
from services.workout_store import WorkoutStore, exercise_spec  # noqa: E402
from services.workout_types import DaySuggestion  # noqa: E402
from utils.datetime_utils import date_for_day  # noqa: E402


MONDAY = date(2026, 10, 19)
TODAY = date(2026, 10, 18)


def _new_db():
    engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


def _seeded_db():
    db = _new_db()
    ensure_default_exercises(db)
    db.commit()
    return db


def _asserter(sink=None):
    return SafetyAsserter(SafetyPolicy.STRICT, sink if sink is not None else InMemoryAuditSink())


def test_default_catalog_seed_is_idempotent():
    db = _seeded_db()
    assert ensure_default_exercises(db) == []
    assert db.query(Exercise).count() == len(DEFAULT_EXERCISE_SEEDS)


def test_layer_one_uses_raw_labels_only():
    db = _new_db()
    user = create_user(db, name="Robin", health_constraints=["knee-stress"])
    create_exercise(db, name="Squats", category="strength", duration_min=20, contraindications=["knee-stress"])
    create_exercise(db, name="Lunges", category="strength", duration_min=20, contraindications=["knee-pain"])
    create_exercise(db, name="Walk", category="cardio", duration_min=30)
    db.commit()

    store = WorkoutStore(db)
    layer_one = [e.name for e in store.fetch_safe_catalog(user.id)]
    # Alias spelling slips through the coarse query filter.
    assert layer_one == ["Lunges", "Walk"]

    _, catalog = safe_catalog_for_user(store, user.id, _asserter(), today=TODAY)
    assert [e.name for e in catalog] == ["Walk"]


def test_generate_persists_seven_snapshot_days():
    db = _seeded_db()
    user = create_user(db, name="Jo", health_constraints=["knee-stress", "diastasis-recti"])
    db.commit()
    store = WorkoutStore(db)

    schedule, rows = generate_weekly_schedule(store, user.id, MONDAY, _asserter(), today=TODAY, rng=random.Random(7))
    db.commit()

    assert schedule.status == "draft"
    assert [r.day_index for r in rows] == list(range(7))
    assert [r.date for r in rows] == [date(2026, 10, 19 + i) for i in range(7)]
    names = {s["name"]: s for s in DEFAULT_EXERCISE_SEEDS}
    constraints = {"knee-stress", "diastasis-recti"}
    for row in rows:
        assert row.status == "pending"
        if row.is_rest_day:
            continue
        seed = names[row.exercise_name]
        assert row.duration_min == seed["duration_min"]
        assert row.category == seed["category"]
        spec = store.fetch_exercises_by_ids([row.exercise_id])[row.exercise_id]
        assert filter_exercises_by_constraints([spec], constraints) == [spec]


def test_snapshot_survives_catalog_edits():
    db = _new_db()
    user = create_user(db, name="Jo")
    walk = create_exercise(db, name="Walk", category="cardio", duration_min=30)
    db.commit()
    store = WorkoutStore(db)

    _, rows = generate_weekly_schedule(store, user.id, MONDAY, _asserter(), today=TODAY, rng=random.Random(0))
    db.commit()
    walk.duration_min = 90
    walk.name = "Long Walk"
    db.commit()

    first = db.query(ScheduledWorkout).filter(ScheduledWorkout.id == rows[0].id).one()
    assert first.exercise_name == "Walk"
    assert first.duration_min == 30


def test_regeneration_replaces_days_of_same_schedule():
    db = _seeded_db()
    user = create_user(db, name="Jo")
    db.commit()
    store = WorkoutStore(db)

    first, _ = generate_weekly_schedule(store, user.id, MONDAY, _asserter(), today=TODAY, rng=random.Random(1))
    db.commit()
    second, rows = generate_weekly_schedule(store, user.id, MONDAY, _asserter(), today=TODAY, rng=random.Random(2))
    db.commit()

    assert first.id == second.id
    assert db.query(WorkoutSchedule).count() == 1
    assert db.query(ScheduledWorkout).count() == 7
    assert len(rows) == 7


def test_empty_safe_catalog_raises_and_writes_nothing():
    db = _new_db()
    user = create_user(db, name="Jo", health_constraints=["knee"])
    create_exercise(db, name="Squats", category="strength", duration_min=20, contraindications=["knee-stress"])
    db.commit()

    with pytest.raises(EmptyCatalogError):
        generate_weekly_schedule(WorkoutStore(db), user.id, MONDAY, _asserter(), today=TODAY, rng=random.Random(0))
    assert db.query(ScheduledWorkout).count() == 0


def test_active_pain_adds_constraints_for_generation():
    db = _new_db()
    user = create_user(db, name="Jo")
    create_exercise(db, name="Crunches", category="strength", duration_min=10, contraindications=["core-intensive"])
    create_exercise(db, name="Walk", category="cardio", duration_min=30)
    db.commit()
    record_pain_report(db, user, body_part="Abdomen", today=TODAY)
    db.commit()

    _, rows = generate_weekly_schedule(WorkoutStore(db), user.id, MONDAY, _asserter(), today=TODAY, rng=random.Random(0))
    assert {r.exercise_name for r in rows if not r.is_rest_day} == {"Walk"}


def test_audit_rows_written_for_constrained_user():
    db = _seeded_db()
    user = create_user(db, name="Jo", health_constraints=["back"])
    db.commit()
    store = WorkoutStore(db)

    generate_weekly_schedule(store, user.id, MONDAY, SafetyAsserter(SafetyPolicy.STRICT, store), today=TODAY, rng=random.Random(0))
    db.commit()

    rows = db.query(ExerciseAuditLog).filter(ExerciseAuditLog.user_id == user.id).all()
    assert rows
    assert {r.decision for r in rows} == {"APPROVED"}
    assert json.loads(rows[0].user_constraints) == ["back"]


def test_complete_and_skip_bump_version_and_reject_stale_writes():
    db = _seeded_db()
    user = create_user(db, name="Jo")
    db.commit()
    _, rows = generate_weekly_schedule(WorkoutStore(db), user.id, MONDAY, _asserter(), today=TODAY, rng=random.Random(0))
    db.commit()
    workout_id = rows[0].id

    done = mark_workout_complete(db, workout_id, note="felt good", expected_version=1)
    db.commit()
    assert done.status == "completed"
    assert done.completion_note == "felt good"
    assert done.version == 2

    with pytest.raises(StaleWriteError):
        mark_workout_skipped(db, workout_id, reason="tired", expected_version=1)

    skipped = mark_workout_skipped(db, workout_id, reason="tired")
    assert skipped.status == "skipped"
    assert skipped.completed_at is None
    assert skipped.version == 3


def test_unknown_workout_raises_value_error():
    db = _new_db()
    with pytest.raises(ValueError):
        mark_workout_complete(db, 404)


def test_activate_validates_before_switching_status():
    db = _new_db()
    user = create_user(db, name="Jo")
    create_exercise(db, name="Walk", category="cardio", duration_min=30)
    create_exercise(db, name="Squats", category="strength", duration_min=20, contraindications=["knee-stress"])
    db.commit()
    store = WorkoutStore(db)
    schedule, _ = generate_weekly_schedule(store, user.id, MONDAY, _asserter(), today=TODAY, rng=random.Random(0))
    db.commit()

    schedule, result = activate_schedule(store, schedule.id, _asserter(), today=TODAY)
    assert result.valid is True
    assert schedule.status == "active"

    # A later knee constraint makes the stored week unsafe; re-activation is refused.
    schedule.status = "draft"
    user.health_constraints = json.dumps(["knee-stress"])
    db.commit()
    schedule, result = activate_schedule(store, schedule.id, _asserter(), today=TODAY)
    assert any(w.exercise_name == "Squats" for w in store.list_scheduled_workouts(schedule.id))
    assert result.valid is False
    assert schedule.status == "draft"


def test_archive_schedule():
    db = _seeded_db()
    user = create_user(db, name="Jo")
    db.commit()
    schedule, _ = generate_weekly_schedule(WorkoutStore(db), user.id, MONDAY, _asserter(), today=TODAY, rng=random.Random(0))
    assert archive_schedule(db, schedule.id).status == "archived"
    with pytest.raises(ValueError):
        activate_schedule(WorkoutStore(db), schedule.id, _asserter(), today=TODAY)


def test_store_reads_constraints_and_pain_counts():
    db = _new_db()
    user = create_user(db, name="Kai", health_constraints=["Back", "back", "knee"])
    create_exercise(db, name="Yoga", category="flexibility", duration_min=25)
    create_exercise(db, name="Bike", category="cardio", duration_min=40)
    old = record_pain_report(db, user, body_part="Knee", today=TODAY - timedelta(days=5))
    recent = record_pain_report(db, user, body_part="Hip", today=TODAY)
    resolved = record_pain_report(db, user, body_part="Neck", today=TODAY - timedelta(days=1))
    resolve_pain_report(db, pain_id=resolved.id, today=TODAY)
    db.commit()

    store = WorkoutStore(db)
    assert store.fetch_user_constraints(user.id) == {"back", "knee"}
    assert [e.name for e in store.fetch_all_exercises()] == ["Bike", "Yoga"]

    active = store.fetch_active_pain_reports(user.id, TODAY, 3)
    assert [r.id for r in active] == [recent.id]
    assert store.count_recent_pain_reports(user.id, TODAY, 7) == 3
    assert store.count_recent_pain_reports(user.id, TODAY, 3) == 2
    assert old.id not in {r.id for r in active}

    with pytest.raises(ValueError):
        store.fetch_user(9999)


def test_failed_audit_write_does_not_block_generation():
    db = _new_db()
    user = create_user(db, name="Ari", health_constraints=["knee-stress"])
    create_exercise(db, name="Walk", category="cardio", duration_min=30)
    create_exercise(db, name="Bridges", category="strength", duration_min=20)
    db.commit()
    db.execute(text("DROP TABLE exercise_audit_log"))
    db.commit()

    store = WorkoutStore(db)
    schedule, rows = generate_weekly_schedule(store, user.id, MONDAY, _asserter(store), today=TODAY, rng=random.Random(3))
    db.commit()

    assert len(rows) == 7
    assert db.query(ScheduledWorkout).filter(ScheduledWorkout.schedule_id == schedule.id).count() == 7


def _week_with_first_day(first, rest):
    return [
        DaySuggestion(date=date_for_day(MONDAY, i), day_index=i, exercise=first if i == 0 else rest)
        for i in range(7)
    ]


def test_rejected_pick_is_stored_as_rest_day_under_permissive_policy(monkeypatch):
    db = _new_db()
    user = create_user(db, name="Ari", health_constraints=["knee"])
    walk = exercise_spec(create_exercise(db, name="Walk", category="cardio", duration_min=30))
    squats = exercise_spec(
        create_exercise(db, name="Squats", category="strength", duration_min=20, contraindications=["knee-stress"])
    )
    db.commit()
    monkeypatch.setattr(workout_service, "generate_week", lambda *args, **kwargs: _week_with_first_day(squats, walk))

    sink = InMemoryAuditSink()
    asserter = SafetyAsserter(SafetyPolicy.PERMISSIVE, sink, reporter=lambda message: None)
    _, rows = generate_weekly_schedule(WorkoutStore(db), user.id, MONDAY, asserter, today=TODAY)

    assert rows[0].is_rest_day
    assert rows[0].exercise_id is None
    assert rows[0].rest_reason == REST_REASON_SAFETY_EXCLUDED
    assert all(r.exercise_name == "Walk" for r in rows[1:])
    assert any(e.decision == "REJECTED" and e.exercise_name == "Squats" for e in sink.entries)


def test_rejected_pick_aborts_generation_under_strict_policy(monkeypatch):
    db = _new_db()
    user = create_user(db, name="Ari", health_constraints=["knee"])
    walk = exercise_spec(create_exercise(db, name="Walk", category="cardio", duration_min=30))
    squats = exercise_spec(
        create_exercise(db, name="Squats", category="strength", duration_min=20, contraindications=["knee-stress"])
    )
    db.commit()
    monkeypatch.setattr(workout_service, "generate_week", lambda *args, **kwargs: _week_with_first_day(squats, walk))

    with pytest.raises(SafetyViolationError):
        generate_weekly_schedule(WorkoutStore(db), user.id, MONDAY, _asserter(), today=TODAY)
    assert db.query(ScheduledWorkout).count() == 0


def test_store_only_writes_asserter_issued_assignments():
    db = _new_db()
    user = create_user(db, name="Ari")
    other = create_user(db, name="Bo")
    walk = exercise_spec(create_exercise(db, name="Walk", category="cardio", duration_min=30))
    store = WorkoutStore(db)
    schedule = store.get_or_create_schedule(user.id, MONDAY)

    with pytest.raises(TypeError):
        store.write_scheduled_workout(schedule.id, MONDAY, 0, walk)

    other_profile = store.fetch_user(other.id)
    issued_for_other = _asserter().assert_safe(walk, other_profile, "test")
    with pytest.raises(ValueError):
        store.write_scheduled_workout(schedule.id, MONDAY, 0, issued_for_other)

    issued = _asserter().assert_safe(walk, store.fetch_user(user.id), "test")
    row = store.write_scheduled_workout(schedule.id, MONDAY, 0, issued)
    assert row.exercise_name == "Walk"


def test_duplicate_email_and_exercise_name_are_rejected():
    db = _new_db()
    create_user(db, name="Ari", email="ari@example.com")
    create_exercise(db, name="Walk", category="cardio", duration_min=30)

    with pytest.raises(ValueError):
        create_user(db, name="Ari Two", email=" ARI@example.com ")
    with pytest.raises(ValueError):
        create_exercise(db, name="Walk", category="cardio", duration_min=20)
