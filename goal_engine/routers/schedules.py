"""Schedule endpoints - occurrence expansion, exception edits and confirmation."""
from typing import Optional

from fastapi import APIRouter, HTTPException

from goal_engine.models.base import CamelModel
from goal_engine.models.goal_spec import Period, ScheduleGoalSpec
from goal_engine.models.schedule import Occurrence, OccurrencePreview, Override, ScheduleRule
from goal_engine.services.goal_spec_service import GoalSpecService, VersionConflictError
from goal_engine.services.occurrence_engine import (
    apply_overrides,
    diff_to_overrides,
    expand_rules,
    preview_occurrences,
)


router = APIRouter(prefix="/schedules", tags=["schedules"])


class ExpandRequest(CamelModel):
    """Request model for expanding rules over a period."""

    rules: list[ScheduleRule]
    period: Period


class ApplyOverridesRequest(CamelModel):
    """Request model for applying override edits."""

    base: list[Occurrence]
    overrides: list[Override]
    reject_move_collisions: bool = False


class DiffRequest(CamelModel):
    """Request model for deriving overrides between two snapshots."""

    original: list[Occurrence]
    current: list[Occurrence]


class PreviewRequest(CamelModel):
    """Request model for previewing a schedule."""

    spec: ScheduleGoalSpec


class EditRequest(CamelModel):
    """Request model for appending override edits."""

    spec: ScheduleGoalSpec
    overrides: list[Override]
    expected_version: int


class PreviewCommitRequest(CamelModel):
    """Request model for committing an edited occurrence preview."""

    spec: ScheduleGoalSpec
    edited: list[Occurrence]
    expected_version: int


class ConfirmRequest(CamelModel):
    """Request model for confirming a schedule."""

    spec: ScheduleGoalSpec
    expected_version: int
    occurrences: Optional[list[Occurrence]] = None


class ReopenRequest(CamelModel):
    """Request model for reopening a confirmed schedule."""

    spec: ScheduleGoalSpec
    expected_version: int


def _lifecycle_error(exc: ValueError) -> HTTPException:
    if isinstance(exc, VersionConflictError):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


@router.post("/expand", response_model=list[Occurrence])
async def expand(request: ExpandRequest):
    """
    Expand weekly rules into dated occurrences.

    - Only dates inside the period are emitted
    - Sorted by date and time
    """
    return expand_rules(request.rules, request.period)


@router.post("/overrides/apply", response_model=list[Occurrence])
async def apply(request: ApplyOverridesRequest):
    """
    Apply override edits in order.

    - Cancelling an absent date is a no-op
    - Returns 400 on a move collision when rejectMoveCollisions is set
    """
    try:
        return apply_overrides(
            request.base,
            request.overrides,
            reject_move_collisions=request.reject_move_collisions,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/overrides/diff", response_model=list[Override])
async def diff(request: DiffRequest):
    """Derive the cancel/add/retime edits turning one snapshot into another."""
    return diff_to_overrides(request.original, request.current)


@router.post("/preview", response_model=list[OccurrencePreview])
async def preview(request: PreviewRequest):
    """Preview the occurrences a schedule produces, with day names and week numbers."""
    return preview_occurrences(request.spec)


@router.post("/edits", response_model=ScheduleGoalSpec)
async def edit(request: EditRequest):
    """
    Append override edits to a schedule.

    - Returns 409 if expectedVersion is stale
    - Returns 400 if the schedule is confirmed or a move collides
    """
    service = GoalSpecService()
    try:
        return service.apply_edits(request.spec, request.overrides, request.expected_version)
    except ValueError as e:
        raise _lifecycle_error(e)


@router.post("/preview/commit", response_model=ScheduleGoalSpec)
async def commit_preview(request: PreviewCommitRequest):
    """Store a user's edits of the preview as override edits."""
    service = GoalSpecService()
    try:
        return service.commit_preview_edits(request.spec, request.edited, request.expected_version)
    except ValueError as e:
        raise _lifecycle_error(e)


@router.post("/confirm", response_model=ScheduleGoalSpec)
async def confirm(request: ConfirmRequest):
    """
    Lock the final occurrence list.

    - Returns 409 if expectedVersion is stale
    - Returns 400 if already confirmed or the occurrence list is invalid
    """
    service = GoalSpecService()
    try:
        return service.confirm(request.spec, request.expected_version, occurrences=request.occurrences)
    except ValueError as e:
        raise _lifecycle_error(e)


@router.post("/reopen", response_model=ScheduleGoalSpec)
async def reopen(request: ReopenRequest):
    """Unlock a confirmed schedule."""
    service = GoalSpecService()
    try:
        return service.reopen(request.spec, request.expected_version)
    except ValueError as e:
        raise _lifecycle_error(e)
