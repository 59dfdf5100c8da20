from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from services.duration_policy import is_duration_allowed
from services.exercise_safety import SafetyAsserter, SafetyViolationError, find_conflicts
from services.constraint_normalizer import normalize_constraints
from services.workout_types import DAY_NAMES, ExerciseSpec, UserProfile
from utils.datetime_utils import calendar_day_of_week


MAX_CONSECUTIVE_SAME_CATEGORY = 2


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)


def _safety_errors(
    exercises: Sequence[ExerciseSpec],
    user: UserProfile,
    asserter: SafetyAsserter,
    context: str,
) -> list[str]:
    errors: list[str] = []
    try:
        approved = asserter.assert_all_safe(exercises, user, context)
    except SafetyViolationError as exc:
        return [f"Safety violation: {exc}"]
    if len(approved) == len(exercises):
        return errors
    # Permissive policy drops violations instead of raising; still report them here.
    approved_ids = {s.id for s in approved}
    normalized = normalize_constraints(user.health_constraints)
    for exercise in exercises:
        if exercise.id in approved_ids:
            continue
        conflicts = find_conflicts(exercise.contraindications, normalized)
        errors.append(
            f'Safety violation: Exercise "{exercise.name}" (ID: {exercise.id}) conflicts with [{", ".join(conflicts)}]'
        )
    return errors


def validate_schedule(
    week_exercises: Sequence[ExerciseSpec | None],
    user: UserProfile,
    asserter: SafetyAsserter,
    context: str = "schedule validation",
) -> ValidationResult:
    """
    Pre-save check of a proposed week (index 0 = Monday). None entries are rest days.

    Aggregates safety, variety and duration findings; never raises for them.
    """
    errors: list[str] = []
    days = list(week_exercises or [])
    if len(days) > len(DAY_NAMES):
        errors.append(f"A week has at most {len(DAY_NAMES)} days (got {len(days)}); extra days ignored")
        days = days[: len(DAY_NAMES)]

    assigned = [e for e in days if e is not None]
    errors.extend(_safety_errors(assigned, user, asserter, context))

    consecutive = 0
    last_category: str | None = None
    for index, exercise in enumerate(days):
        if exercise is None:
            consecutive = 0
            last_category = None
            continue
        if exercise.category == last_category:
            consecutive += 1
            if consecutive > MAX_CONSECUTIVE_SAME_CATEGORY:
                errors.append(
                    f"Too many consecutive {exercise.category} workouts "
                    f"({DAY_NAMES[index - consecutive + 1]}-{DAY_NAMES[index]})"
                )
        else:
            consecutive = 1
            last_category = exercise.category

    for index, exercise in enumerate(days):
        if exercise is None:
            continue
        if not is_duration_allowed(exercise, calendar_day_of_week(index)):
            errors.append(
                f'Exercise "{exercise.name}" duration ({exercise.duration_min}min) exceeds limit for {DAY_NAMES[index]}'
            )

    return ValidationResult(valid=not errors, errors=errors)
