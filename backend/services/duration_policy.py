from __future__ import annotations

from services.workout_types import ExerciseSpec


WEEKDAY_MAX_MINUTES = 30
WEEKEND_MAX_MINUTES = 60
WEEKEND_CYCLING_MAX_MINUTES = 120

# Calendar numbering: Sunday=0 .. Saturday=6.
WEEKEND_DAYS = frozenset({0, 6})


def is_weekend(day_of_week: int) -> bool:
    return day_of_week in WEEKEND_DAYS


def is_cycling(exercise: ExerciseSpec) -> bool:
    subcategory = (exercise.subcategory or "").lower()
    return exercise.category == "sport" and "cycling" in subcategory


def max_duration_for(exercise: ExerciseSpec, day_of_week: int) -> int:
    """
    Longest session allowed for this exercise on a calendar day (Sunday=0).

    Weekdays cap everything at 30 minutes. Weekend sport cycling rides may run to
    120 minutes; every other weekend session caps at 60.
    """
    if not 0 <= day_of_week <= 6:
        raise ValueError(f"day_of_week must be in 0..6 (got {day_of_week})")
    if not is_weekend(day_of_week):
        return WEEKDAY_MAX_MINUTES
    if is_cycling(exercise):
        return WEEKEND_CYCLING_MAX_MINUTES
    return WEEKEND_MAX_MINUTES


def is_duration_allowed(exercise: ExerciseSpec, day_of_week: int) -> bool:
    return exercise.duration_min <= max_duration_for(exercise, day_of_week)
