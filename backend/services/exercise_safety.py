from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, Sequence

from services.audit_service import AuditSink, ViolationReporter, log_violation
from services.constraint_normalizer import normalize_constraints
from services.duration_policy import is_duration_allowed
from services.safety_policy import SafetyPolicy
from services.workout_types import AUDIT_APPROVED, AUDIT_REJECTED, AuditEntry, ExerciseSpec, UserProfile


# Stamped only by SafeExercise._issue; require_safe rejects anything else.
_ISSUE_TOKEN = object()


class SafetyViolationError(Exception):
    """A contraindicated exercise reached the asserter under the strict policy."""

    def __init__(
        self,
        message: str,
        *,
        exercise_id: int,
        exercise_name: str,
        conflicts: Sequence[str],
        user_id: int,
        context: str,
    ) -> None:
        super().__init__(message)
        self.exercise_id = exercise_id
        self.exercise_name = exercise_name
        self.conflicts = tuple(conflicts)
        self.user_id = user_id
        self.context = context


@dataclass(frozen=True)
class SafeExercise:
    """
    An exercise that passed the asserter for one specific user.

    Instances are only issued by SafetyAsserter.assert_safe. Calling the
    constructor, or dataclasses.replace on an issued instance, raises TypeError.
    """

    exercise: ExerciseSpec
    validated_for_user: int
    _token: object = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        raise TypeError("SafeExercise can only be issued by SafetyAsserter")

    @classmethod
    def _issue(cls, exercise: ExerciseSpec, user_id: int) -> "SafeExercise":
        obj = object.__new__(cls)
        object.__setattr__(obj, "exercise", exercise)
        object.__setattr__(obj, "validated_for_user", user_id)
        object.__setattr__(obj, "_token", _ISSUE_TOKEN)
        return obj

    @property
    def id(self) -> int:
        return self.exercise.id

    @property
    def name(self) -> str:
        return self.exercise.name

    @property
    def category(self) -> str:
        return self.exercise.category


def require_safe(item: object, user_id: int) -> SafeExercise:
    """Accept only an asserter-issued SafeExercise validated for this user."""
    if not isinstance(item, SafeExercise) or item._token is not _ISSUE_TOKEN:
        raise TypeError(f"Expected a SafeExercise issued by SafetyAsserter, got {type(item).__name__}")
    if item.validated_for_user != user_id:
        raise ValueError(
            f"Exercise {item.exercise.id} was validated for user {item.validated_for_user}, not user {user_id}"
        )
    return item


# ============================================================
# Layer 2: filter
# ============================================================

def find_conflicts(contraindications: Iterable[str], normalized_constraints: frozenset[str]) -> list[str]:
    """Normalized contraindication labels that overlap an already-normalized constraint set."""
    if not normalized_constraints:
        return []
    normalized_exercise = normalize_constraints(contraindications)
    return sorted(normalized_exercise & normalized_constraints)


def filter_exercises_by_constraints(
    exercises: Sequence[ExerciseSpec],
    user_constraints: Iterable[str] | None,
) -> list[ExerciseSpec]:
    """
    Keep exercises whose normalized contraindications are disjoint from the user's
    normalized constraints. Order is preserved. A single shared label rejects.
    """
    constraints = [c for c in (user_constraints or ()) if str(c).strip()]
    if not constraints:
        return list(exercises)

    normalized = normalize_constraints(constraints)
    safe: list[ExerciseSpec] = []
    for exercise in exercises:
        if not exercise.contraindications:
            safe.append(exercise)
            continue
        if normalize_constraints(exercise.contraindications).isdisjoint(normalized):
            safe.append(exercise)
    return safe


def is_safe_for_display(exercise: ExerciseSpec | None, user_constraints: Iterable[str] | None) -> bool:
    """Layer 3: final check on a single assigned item right before it is rendered."""
    if exercise is None:
        return True
    return bool(filter_exercises_by_constraints([exercise], user_constraints))


# ============================================================
# Asserter / audit
# ============================================================

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SafetyAsserter:
    """
    Re-validates exercises against a user's constraints independently of the filter.

    STRICT policy raises SafetyViolationError on any conflict. PERMISSIVE policy
    reports the conflict and appends a REJECTED audit entry. Approvals are audited
    only for users with at least one declared constraint.
    """

    def __init__(
        self,
        policy: SafetyPolicy,
        audit_sink: AuditSink,
        *,
        reporter: ViolationReporter = log_violation,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.policy = SafetyPolicy.from_value(policy)
        self.audit_sink = audit_sink
        self.reporter = reporter
        self.clock = clock

    def _audit(self, user: UserProfile, exercise: ExerciseSpec, decision: str, conflicts: list[str], context: str) -> None:
        if not user.health_constraints:
            return
        entry = AuditEntry(
            timestamp=self.clock(),
            user_id=user.id,
            user_name=user.name,
            user_constraints=tuple(sorted(user.health_constraints)),
            exercise_id=exercise.id,
            exercise_name=exercise.name,
            exercise_contraindications=tuple(sorted(exercise.contraindications)),
            decision=decision,
            conflicts=tuple(conflicts),
            context=context,
        )
        self.audit_sink.record(entry)

    def assert_safe(self, exercise: ExerciseSpec, user: UserProfile, context: str) -> SafeExercise | None:
        """
        Returns a SafeExercise on success. Under PERMISSIVE policy a conflicting
        exercise yields None after being reported and audited.
        """
        conflicts = find_conflicts(exercise.contraindications, normalize_constraints(user.health_constraints))
        if conflicts:
            message = (
                f'SAFETY VIOLATION: Exercise "{exercise.name}" (ID: {exercise.id}) has contraindications '
                f"[{', '.join(conflicts)}] that conflict with user \"{user.name}\" (ID: {user.id}) "
                f"constraints [{', '.join(sorted(user.health_constraints))}]. Context: {context}"
            )
            if self.policy is SafetyPolicy.STRICT:
                raise SafetyViolationError(
                    message,
                    exercise_id=exercise.id,
                    exercise_name=exercise.name,
                    conflicts=conflicts,
                    user_id=user.id,
                    context=context,
                )
            self.reporter(message)
            self._audit(user, exercise, AUDIT_REJECTED, conflicts, context)
            return None

        self._audit(user, exercise, AUDIT_APPROVED, [], context)
        return SafeExercise._issue(exercise, user.id)

    def assert_all_safe(self, exercises: Sequence[ExerciseSpec], user: UserProfile, context: str) -> list[SafeExercise]:
        approved: list[SafeExercise] = []
        for exercise in exercises:
            safe = self.assert_safe(exercise, user, context)
            if safe is not None:
                approved.append(safe)
        return approved


def validate_exercises_multi_layer(
    exercises: Sequence[ExerciseSpec],
    user: UserProfile,
    asserter: SafetyAsserter,
    day_of_week: int | None = None,
    context: str = "exercise validation",
) -> list[ExerciseSpec]:
    """Layer 2 filter, then batch assertion, then an optional duration trim for one calendar day."""
    safe = filter_exercises_by_constraints(exercises, user.health_constraints)
    approved = [s.exercise for s in asserter.assert_all_safe(safe, user, context)]
    if day_of_week is not None:
        approved = [e for e in approved if is_duration_allowed(e, day_of_week)]
    return approved
