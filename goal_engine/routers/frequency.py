"""Frequency endpoints - minimum-frequency checks over calendar buckets and rolling windows."""
from datetime import date
from typing import Optional
from zoneinfo import ZoneInfoNotFoundError

from fastapi import APIRouter, HTTPException
from pydantic import Field

from goal_engine.models.base import CamelModel
from goal_engine.models.frequency import (
    CompletionRecord,
    CountRule,
    FrequencyCheckResult,
    WeekBoundaryConfig,
)
from goal_engine.models.goal_spec import GoalSpecification, Period
from goal_engine.models.schedule import Occurrence
from goal_engine.services.frequency_validator import (
    check_calendar_buckets,
    check_declared_target,
    check_minimum_frequency,
    check_rolling_window,
)


router = APIRouter(prefix="/frequency", tags=["frequency"])


class CalendarCheckRequest(CamelModel):
    """Request model for a calendar-bucket check."""

    occurrences: list[Occurrence]
    period: Period
    count_rule: CountRule
    week_boundary: Optional[WeekBoundaryConfig] = None


class DeclaredTargetRequest(CamelModel):
    """Request model for checking a declared weekly target."""

    target_per_week: int = Field(gt=0)
    period: Period
    count_rule: CountRule
    week_boundary: Optional[WeekBoundaryConfig] = None


class RollingCheckRequest(CamelModel):
    """Request model for a rolling-window check."""

    completions: list[CompletionRecord]
    target_per_week: int = Field(gt=0)
    period: Period
    window_days: Optional[int] = Field(default=None, gt=0)
    as_of: Optional[date] = None
    timezone: Optional[str] = None


class SpecCheckRequest(CamelModel):
    """Request model for checking a specification."""

    spec: GoalSpecification
    count_rule: Optional[CountRule] = None
    week_boundary: Optional[WeekBoundaryConfig] = None


@router.post("/calendar", response_model=FrequencyCheckResult)
async def calendar_check(request: CalendarCheckRequest):
    """
    Count occurrences per calendar bucket and judge each against the rule.

    - Partial weeks are only judged when enforcePartialWeeks is set
    - failureSummary names every failing bucket
    """
    return check_calendar_buckets(
        request.occurrences,
        request.period,
        request.count_rule,
        request.week_boundary,
    )


@router.post("/declared", response_model=FrequencyCheckResult)
async def declared_check(request: DeclaredTargetRequest):
    """Judge a declared weekly target against a per-week rule."""
    return check_declared_target(
        request.target_per_week,
        request.period,
        request.count_rule,
        request.week_boundary,
    )


@router.post("/rolling", response_model=FrequencyCheckResult)
async def rolling_check(request: RollingCheckRequest):
    """
    Compare completions in trailing windows against a weekly target.

    - Returns 400 for an unknown timezone
    """
    try:
        return check_rolling_window(
            request.completions,
            request.target_per_week,
            request.period,
            window_days=request.window_days,
            as_of=request.as_of,
            timezone=request.timezone,
        )
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid timezone: {e}")


@router.post("/check", response_model=FrequencyCheckResult)
async def spec_check(request: SpecCheckRequest):
    """Check a specification's schedule or declared target against a minimum-frequency rule."""
    return check_minimum_frequency(request.spec, request.count_rule, request.week_boundary)
