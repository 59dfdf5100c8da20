from __future__ import annotations

import json
import logging
from typing import Callable, Protocol

from sqlalchemy.orm import Session

from db.models import ExerciseAuditLog
from services.workout_types import AuditEntry


logger = logging.getLogger(__name__)


class AuditSink(Protocol):
    def record(self, entry: AuditEntry) -> None: ...


class InMemoryAuditSink:
    """Keeps entries in emission order; used by tests and previews."""

    def __init__(self) -> None:
        self._entries: list[AuditEntry] = []

    def record(self, entry: AuditEntry) -> None:
        self._entries.append(entry)

    @property
    def entries(self) -> tuple[AuditEntry, ...]:
        return tuple(self._entries)

    def for_user(self, user_id: int) -> list[AuditEntry]:
        return [e for e in self._entries if e.user_id == user_id]


class LoggingAuditSink:
    def record(self, entry: AuditEntry) -> None:
        logger.info("[EXERCISE_AUDIT] %s", json.dumps(entry.as_dict(), ensure_ascii=True))


class DatabaseAuditSink:
    """
    Appends entries to the exercise_audit_log table.

    Each row is flushed under its own SAVEPOINT: a failed insert raises here
    and rolls back only that row.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def record(self, entry: AuditEntry) -> None:
        row = ExerciseAuditLog(
            created_at=entry.timestamp,
            user_id=entry.user_id,
            user_constraints=json.dumps(list(entry.user_constraints), ensure_ascii=True),
            exercise_id=entry.exercise_id,
            exercise_name=entry.exercise_name,
            exercise_contraindications=json.dumps(list(entry.exercise_contraindications), ensure_ascii=True),
            decision=entry.decision,
            conflicts=json.dumps(list(entry.conflicts), ensure_ascii=True),
            context=entry.context,
        )
        with self.db.begin_nested():
            self.db.add(row)


class FanOutAuditSink:
    def __init__(self, *sinks: AuditSink) -> None:
        self.sinks = sinks

    def record(self, entry: AuditEntry) -> None:
        for sink in self.sinks:
            sink.record(entry)


class SafeAuditSink:
    """
    Fire-and-forget wrapper: a failing sink never blocks or fails scheduling.
    """

    def __init__(self, inner: AuditSink) -> None:
        self.inner = inner

    def record(self, entry: AuditEntry) -> None:
        try:
            self.inner.record(entry)
        except Exception as e:
            logger.warning(f"Audit sink write failed for user {entry.user_id}, exercise {entry.exercise_id}: {e}")


ViolationReporter = Callable[[str], None]


def log_violation(message: str) -> None:
    """Default monitoring hook for permissive mode."""
    logger.error(message)
