from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import date
from typing import Sequence

from services.duration_policy import is_duration_allowed
from services.workout_types import DaySuggestion, ExerciseSpec
from utils.datetime_utils import calendar_day_of_week, date_for_day


logger = logging.getLogger(__name__)

DAYS_PER_WEEK = 7
REST_REASON_NO_DURATION_FIT = "no options meet duration limit"


class EmptyCatalogError(Exception):
    """No safe exercises were available to schedule from."""


@dataclass
class WeeklyPreview:
    days: list[DaySuggestion] = field(default_factory=list)
    total_minutes: int = 0
    categories: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class _DayPick:
    exercise: ExerciseSpec | None
    reason: str | None = None
    variety_relaxed: bool = False


def select_random_exercise(exercises: Sequence[ExerciseSpec], rng: random.Random) -> ExerciseSpec:
    return exercises[rng.randrange(len(exercises))]


def _pick_for_day(
    day_index: int,
    safe_exercises: Sequence[ExerciseSpec],
    previous_category: str | None,
    day_of_week: int,
    rng: random.Random,
) -> _DayPick:
    duration_filtered = [e for e in safe_exercises if is_duration_allowed(e, day_of_week)]
    if not duration_filtered:
        return _DayPick(exercise=None, reason=REST_REASON_NO_DURATION_FIT)

    if previous_category:
        variety_filtered = [e for e in duration_filtered if e.category != previous_category]
        if variety_filtered:
            return _DayPick(exercise=select_random_exercise(variety_filtered, rng))
        logger.warning(
            f"Day {day_index}: no variety options available, allowing category repeat: {previous_category}"
        )
        return _DayPick(exercise=select_random_exercise(duration_filtered, rng), variety_relaxed=True)

    return _DayPick(exercise=select_random_exercise(duration_filtered, rng))


def suggest_exercise_for_day(
    day_index: int,
    safe_exercises: Sequence[ExerciseSpec],
    previous_category: str | None,
    day_of_week: int,
    rng: random.Random | None = None,
) -> ExerciseSpec | None:
    """
    Pick one exercise for a day, or None for a rest day.

    Duration is a hard filter. Avoiding yesterday's category is preferred but is
    relaxed when nothing else fits.
    """
    pick = _pick_for_day(day_index, safe_exercises, previous_category, day_of_week, rng or random.Random())
    return pick.exercise


def _plan_days(week_start: date, catalog: Sequence[ExerciseSpec], rng: random.Random) -> list[DaySuggestion]:
    if week_start.weekday() != 0:
        raise ValueError(f"week_start must be a Monday (got {week_start.isoformat()})")

    days: list[DaySuggestion] = []
    previous_category: str | None = None
    for day_index in range(DAYS_PER_WEEK):
        pick = _pick_for_day(day_index, catalog, previous_category, calendar_day_of_week(day_index), rng)
        days.append(
            DaySuggestion(
                date=date_for_day(week_start, day_index),
                day_index=day_index,
                exercise=pick.exercise,
                reason=pick.reason,
                variety_relaxed=pick.variety_relaxed,
            )
        )
        previous_category = pick.exercise.category if pick.exercise is not None else None
    return days


def generate_week(
    user_id: int,
    week_start: date,
    catalog: Sequence[ExerciseSpec],
    rng: random.Random | None = None,
) -> list[DaySuggestion]:
    """
    Seven day slots, Monday..Sunday, chosen from an already safety-filtered catalog.

    Raises EmptyCatalogError when the catalog is empty: that points at an upstream
    data problem, not at a week of rest days.
    """
    if not catalog:
        raise EmptyCatalogError(f"No safe exercises available for user {user_id}")
    days = _plan_days(week_start, catalog, rng or random.Random())
    relaxed = sum(1 for d in days if d.variety_relaxed)
    rest = sum(1 for d in days if d.is_rest_day)
    logger.info(
        f"Generated week {week_start.isoformat()} for user {user_id}: "
        f"{DAYS_PER_WEEK - rest} workouts, {rest} rest days, {relaxed} variety relaxations"
    )
    return days


def preview_week(
    week_start: date,
    catalog: Sequence[ExerciseSpec],
    rng: random.Random | None = None,
) -> WeeklyPreview:
    """Same selection as generate_week without persisting. An empty catalog gives an empty preview."""
    if not catalog:
        return WeeklyPreview()
    days = _plan_days(week_start, catalog, rng or random.Random())
    categories: list[str] = []
    total = 0
    for day in days:
        if day.exercise is None:
            continue
        total += day.exercise.duration_min
        if day.exercise.category not in categories:
            categories.append(day.exercise.category)
    return WeeklyPreview(days=days, total_minutes=total, categories=categories)


def regenerate_day(
    day_index: int,
    catalog: Sequence[ExerciseSpec],
    exclude_ids: Sequence[int],
    previous_category: str | None,
    rng: random.Random | None = None,
) -> ExerciseSpec | None:
    """Swap a single day's exercise, skipping ids already offered."""
    if not 0 <= day_index < DAYS_PER_WEEK:
        raise ValueError(f"day_index must be in 0..6 (got {day_index})")
    excluded = set(exclude_ids or ())
    available = [e for e in catalog if e.id not in excluded]
    if not available:
        return None
    return suggest_exercise_for_day(
        day_index,
        available,
        previous_category,
        calendar_day_of_week(day_index),
        rng,
    )
