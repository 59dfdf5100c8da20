from __future__ import annotations

import random
from datetime import date

from fastapi import Depends
from sqlalchemy.orm import Session

from config import settings
from db.database import get_db
from services.audit_service import DatabaseAuditSink, FanOutAuditSink, LoggingAuditSink
from services.exercise_safety import SafetyAsserter
from services.workout_store import WorkoutStore
from utils.datetime_utils import today_utc


def get_store(db: Session = Depends(get_db)) -> WorkoutStore:
    return WorkoutStore(db, audit_sink=FanOutAuditSink(DatabaseAuditSink(db), LoggingAuditSink()))


def get_asserter(store: WorkoutStore = Depends(get_store)) -> SafetyAsserter:
    return SafetyAsserter(settings.safety_policy, store)


def get_rng() -> random.Random:
    return random.Random(settings.SCHEDULE_RANDOM_SEED)


def get_today() -> date:
    return today_utc()
