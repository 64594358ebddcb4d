"""Goal specification service - lifecycle rules for schedule edits and confirmation.

The service owns no storage. Every mutation returns a new specification with
``version`` incremented; callers persist it with an optimistic-concurrency
check against the version they read.
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

from goal_engine.models.goal_spec import GoalSpecBase, ScheduleGoalSpec
from goal_engine.models.schedule import Occurrence, Override
from goal_engine.services.occurrence_engine import (
    apply_overrides,
    build_occurrences,
    diff_to_overrides,
    expand_rules,
    validate_occurrences,
)

logger = logging.getLogger(__name__)


class VersionConflictError(ValueError):
    """The specification changed since the caller read it."""


class SpecificationLockedError(ValueError):
    """The schedule is confirmed and must be reopened before editing."""


class GoalSpecService:
    """Service for applying lifecycle transitions to goal specifications."""

    def _check_version(self, spec: GoalSpecBase, expected_version: int) -> None:
        if spec.version != expected_version:
            raise VersionConflictError(
                f"Version conflict: expected {expected_version}, found {spec.version}"
            )

    def _bump(self, spec, update: dict):
        update = {
            **update,
            "version": spec.version + 1,
            "updated_at": datetime.now(timezone.utc),
        }
        return spec.model_copy(update=update)

    def apply_edits(
        self,
        spec: ScheduleGoalSpec,
        overrides: Sequence[Override],
        expected_version: int,
    ) -> ScheduleGoalSpec:
        """
        Append override edits to a schedule.

        Args:
            spec: Current schedule specification
            overrides: Edits to append, in order
            expected_version: Version the caller read

        Returns:
            Updated specification with version incremented

        Raises:
            VersionConflictError: If the specification changed since it was read
            SpecificationLockedError: If the schedule is confirmed
            MoveCollisionError: If a move lands on an occupied date
        """
        self._check_version(spec, expected_version)
        if spec.confirmed:
            raise SpecificationLockedError("Schedule is confirmed; reopen it before editing")

        all_overrides = [*spec.schedule.overrides, *overrides]
        # Dry run so an unsafe move is rejected before anything is stored
        base = expand_rules(spec.schedule.rules, spec.period)
        apply_overrides(base, all_overrides, reject_move_collisions=True)

        schedule = spec.schedule.model_copy(update={"overrides": all_overrides})
        logger.info("Appended %d overrides (version %d)", len(overrides), spec.version + 1)
        return self._bump(spec, {"schedule": schedule})

    def commit_preview_edits(
        self,
        spec: ScheduleGoalSpec,
        edited: Sequence[Occurrence],
        expected_version: int,
    ) -> ScheduleGoalSpec:
        """Record a user's edits of the occurrence preview as override edits."""
        overrides = diff_to_overrides(build_occurrences(spec), edited)
        return self.apply_edits(spec, overrides, expected_version)

    def confirm(
        self,
        spec: ScheduleGoalSpec,
        expected_version: int,
        occurrences: Optional[Sequence[Occurrence]] = None,
    ) -> ScheduleGoalSpec:
        """
        Lock the final occurrence list.

        Args:
            spec: Schedule specification
            expected_version: Version the caller read
            occurrences: Occurrences to lock (defaults to the built ones)

        Returns:
            Confirmed specification with version incremented

        Raises:
            VersionConflictError: If the specification changed since it was read
            SpecificationLockedError: If the schedule is already confirmed
            ValueError: If the occurrence list is invalid
        """
        self._check_version(spec, expected_version)
        if spec.confirmed:
            raise SpecificationLockedError("Schedule is already confirmed")

        final = sorted(occurrences if occurrences is not None else build_occurrences(spec), key=lambda o: o.sort_key)
        check = validate_occurrences(final)
        if not check.valid:
            raise ValueError("; ".join(check.errors))
        outside = [o.date for o in final if not spec.period.contains(o.date)]
        if outside:
            raise ValueError(f"occurrence on {outside[0].isoformat()} is outside the period")

        schedule = spec.schedule.model_copy(update={"occurrences": final})
        logger.info("Confirmed %d occurrences (version %d)", len(final), spec.version + 1)
        return self._bump(spec, {"schedule": schedule, "confirmed": True})

    def reopen(self, spec: ScheduleGoalSpec, expected_version: int) -> ScheduleGoalSpec:
        """Unlock a confirmed schedule for further edits."""
        self._check_version(spec, expected_version)
        if not spec.confirmed:
            raise ValueError("Schedule is not confirmed")
        return self._bump(spec, {"confirmed": False})
