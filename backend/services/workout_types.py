from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable


EXERCISE_CATEGORIES: tuple[str, ...] = ("cardio", "strength", "flexibility", "sport")
EXERCISE_INTENSITIES: tuple[str, ...] = ("low", "moderate", "high")
WORKOUT_STATUSES = {"pending", "completed", "skipped"}
SCHEDULE_STATUSES = {"draft", "active", "archived"}
DAY_NAMES: tuple[str, ...] = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

AUDIT_APPROVED = "APPROVED"
AUDIT_REJECTED = "REJECTED"


def _labels(values: Iterable[str] | None) -> frozenset[str]:
    return frozenset(str(v) for v in (values or ()) if str(v).strip())


@dataclass(frozen=True)
class ExerciseSpec:
    id: int
    name: str
    category: str
    duration_min: int
    contraindications: frozenset[str] = field(default_factory=frozenset)
    subcategory: str | None = None
    intensity: str = "moderate"
    equipment: tuple[str, ...] = ()
    modifications: str | None = None

    def __post_init__(self) -> None:
        # Accept any iterable of labels from callers; store as frozenset.
        object.__setattr__(self, "contraindications", _labels(self.contraindications))
        object.__setattr__(self, "equipment", tuple(self.equipment or ()))

    def snapshot(self) -> dict[str, Any]:
        """Assignment snapshot stored on a scheduled day; later catalog edits do not touch it."""
        return {
            "exercise_id": self.id,
            "exercise_name": self.name,
            "duration_min": self.duration_min,
            "category": self.category,
        }


@dataclass(frozen=True)
class UserProfile:
    id: int
    name: str
    health_constraints: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        object.__setattr__(self, "health_constraints", _labels(self.health_constraints))

    def with_extra_constraints(self, extra: Iterable[str]) -> "UserProfile":
        """Layer derived constraints (e.g. from pain reports) on top of the declared ones."""
        return UserProfile(
            id=self.id,
            name=self.name,
            health_constraints=self.health_constraints | _labels(extra),
        )


@dataclass(frozen=True)
class PainReportSpec:
    user_id: int
    body_part: str
    reported_date: date
    resolved_date: date | None = None
    notes: str | None = None
    id: int | None = None

    def is_active(self, today: date, window_days: int) -> bool:
        if self.resolved_date is not None:
            return False
        return (today - self.reported_date).days <= window_days


@dataclass(frozen=True)
class DaySuggestion:
    date: date
    day_index: int
    exercise: ExerciseSpec | None = None
    reason: str | None = None
    variety_relaxed: bool = False

    @property
    def is_rest_day(self) -> bool:
        return self.exercise is None


@dataclass(frozen=True)
class AuditEntry:
    timestamp: datetime
    user_id: int
    user_name: str
    user_constraints: tuple[str, ...]
    exercise_id: int
    exercise_name: str
    exercise_contraindications: tuple[str, ...]
    decision: str
    conflicts: tuple[str, ...] = ()
    context: str = ""

    def as_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "user_id": self.user_id,
            "user_name": self.user_name,
            "user_constraints": list(self.user_constraints),
            "exercise_id": self.exercise_id,
            "exercise_name": self.exercise_name,
            "exercise_contraindications": list(self.exercise_contraindications),
            "decision": self.decision,
            "conflicts": list(self.conflicts),
            "context": self.context,
        }
