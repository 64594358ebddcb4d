"""Occurrence engine - expands schedule rules and applies exception edits.

Working sets are keyed by date: at most one occurrence exists per date, and
a later write to a date replaces the earlier one.
"""
import logging
from datetime import date, timedelta
from typing import Optional, Sequence

from goal_engine.config import settings
from goal_engine.models.goal_spec import Period, ScheduleGoalSpec
from goal_engine.models.schedule import (
    DAY_NAMES,
    AddOverride,
    CancelOverride,
    MoveOverride,
    Occurrence,
    OccurrenceCheck,
    OccurrencePreview,
    Override,
    RetimeOverride,
    ScheduleRule,
    weekday_of,
)

logger = logging.getLogger(__name__)


class MoveCollisionError(ValueError):
    """A move edit targets a date that already holds an occurrence."""


def _sorted(working: dict[date, str]) -> list[Occurrence]:
    return [Occurrence(date=day, time=time) for day, time in sorted(working.items())]


def expand_rules(rules: Sequence[ScheduleRule], period: Period) -> list[Occurrence]:
    """
    Expand weekly rules into dated occurrences inside a period.

    Args:
        rules: Weekday/time patterns (0=Sunday ... 6=Saturday)
        period: Inclusive date range

    Returns:
        Occurrences sorted by (date, time). When several rules hit the same
        date, the later rule in list order wins.
    """
    working: dict[date, str] = {}
    day = period.start
    while day <= period.end:
        weekday = weekday_of(day)
        for rule in rules:
            if weekday in rule.weekdays:
                working[day] = rule.time
        day += timedelta(days=1)

    logger.debug("Expanded %d rules over %s..%s: %d occurrences", len(rules), period.start, period.end, len(working))
    return _sorted(working)


def apply_overrides(
    base: Sequence[Occurrence],
    overrides: Sequence[Override],
    reject_move_collisions: bool = False,
) -> list[Occurrence]:
    """
    Apply exception edits, in list order, to an occurrence list.

    Args:
        base: Previously expanded occurrences
        overrides: Ordered add/cancel/retime/move edits
        reject_move_collisions: Raise instead of replacing when a move lands
            on a date that already holds an occurrence

    Returns:
        Edited occurrences sorted by (date, time)

    Raises:
        MoveCollisionError: If ``reject_move_collisions`` is set and a move
            destination is occupied
    """
    working: dict[date, str] = {}
    for occurrence in base:
        working[occurrence.date] = occurrence.time

    for override in overrides:
        if isinstance(override, CancelOverride):
            working.pop(override.date, None)
        elif isinstance(override, AddOverride):
            working[override.date] = override.time
        elif isinstance(override, RetimeOverride):
            working[override.date] = override.new_time
        elif isinstance(override, MoveOverride):
            moved = working.pop(override.from_date, None)
            if reject_move_collisions and override.to_date in working:
                raise MoveCollisionError(
                    f"Cannot move to {override.to_date.isoformat()}: date already has an occurrence"
                )
            if moved is None:
                logger.debug("Move source %s has no occurrence", override.from_date)
            working[override.to_date] = override.to_time
        else:
            raise TypeError(f"Unhandled override kind: {type(override).__name__}")

    logger.debug("Applied %d overrides: %d -> %d occurrences", len(overrides), len(base), len(working))
    return _sorted(working)


def diff_to_overrides(original: Sequence[Occurrence], current: Sequence[Occurrence]) -> list[Override]:
    """
    Derive the minimal cancel/add/retime edits turning ``original`` into ``current``.

    Edits are ordered by date.
    """
    before = {occurrence.date: occurrence.time for occurrence in original}
    after = {occurrence.date: occurrence.time for occurrence in current}

    overrides: list[Override] = []
    for day in sorted(before.keys() | after.keys()):
        if day not in after:
            overrides.append(CancelOverride(date=day))
        elif day not in before:
            overrides.append(AddOverride(date=day, time=after[day]))
        elif before[day] != after[day]:
            overrides.append(RetimeOverride(date=day, new_time=after[day]))
    return overrides


def build_occurrences(spec: ScheduleGoalSpec) -> list[Occurrence]:
    """Expand a schedule specification's rules over its period and apply its overrides."""
    base = expand_rules(spec.schedule.rules, spec.period)
    return apply_overrides(base, spec.schedule.overrides)


def preview_occurrences(spec: ScheduleGoalSpec) -> list[OccurrencePreview]:
    """Build the human-readable preview rows shown before confirmation."""
    return [
        OccurrencePreview(
            date=occurrence.date,
            time=occurrence.time,
            day_name=DAY_NAMES[weekday_of(occurrence.date)],
            week_number=(occurrence.date - spec.period.start).days // 7 + 1,
        )
        for occurrence in build_occurrences(spec)
    ]


def validate_occurrences(
    occurrences: Sequence[Occurrence],
    max_occurrences: Optional[int] = None,
) -> OccurrenceCheck:
    """Check a confirmed occurrence list: non-empty, bounded, one per date."""
    if max_occurrences is None:
        max_occurrences = settings.max_occurrences

    errors: list[str] = []
    if not occurrences:
        errors.append("At least one occurrence is required")
    if len(occurrences) > max_occurrences:
        errors.append(f"At most {max_occurrences} occurrences are allowed")

    seen: set[date] = set()
    duplicates: set[date] = set()
    for occurrence in occurrences:
        if occurrence.date in seen:
            duplicates.add(occurrence.date)
        seen.add(occurrence.date)
    for day in sorted(duplicates):
        errors.append(f"Duplicate occurrence on {day.isoformat()}")

    return OccurrenceCheck(valid=not errors, errors=errors)
