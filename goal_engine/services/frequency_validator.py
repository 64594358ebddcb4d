"""Frequency validator - calendar-bucket and rolling-window frequency checks.

Results are returned, never raised: zero occurrences simply yields failing
counts.
"""
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional, Sequence
from zoneinfo import ZoneInfo

from goal_engine.config import settings
from goal_engine.models.frequency import (
    BucketResult,
    CompletionRecord,
    CountOperator,
    CountRule,
    CountUnit,
    FrequencyCheckResult,
    WeekAnchor,
    WeekBoundaryConfig,
)
from goal_engine.models.goal_spec import (
    FrequencyGoalSpec,
    GoalSpecBase,
    Period,
    ScheduleGoalSpec,
)
from goal_engine.models.schedule import Occurrence
from goal_engine.services.occurrence_engine import build_occurrences

logger = logging.getLogger(__name__)

SHORTFALL_SYMBOLS = {
    CountOperator.AT_LEAST: "<",
    CountOperator.EXACTLY: "!=",
    CountOperator.AT_MOST: ">",
}


@dataclass(frozen=True)
class Bucket:
    start: date
    end: date
    complete: bool

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


def _clip(period: Period, start: date, end: date) -> Bucket:
    clipped_start = max(start, period.start)
    clipped_end = min(end, period.end)
    return Bucket(
        start=clipped_start,
        end=clipped_end,
        complete=clipped_start == start and clipped_end == end,
    )


def week_buckets(period: Period, anchor: WeekAnchor = WeekAnchor.START_WEEKDAY) -> list[Bucket]:
    """
    Partition a period into 7-day buckets.

    Args:
        period: Inclusive date range
        anchor: ``startWeekday`` aligns buckets to the weekday of
            ``period.start``; ``isoWeek`` aligns them to Monday

    Returns:
        Buckets clipped to the period; a bucket is complete only if all
        7 days lie inside it
    """
    anchor_weekday = period.start.weekday() if anchor == WeekAnchor.START_WEEKDAY else 0
    cursor = period.start - timedelta(days=(period.start.weekday() - anchor_weekday) % 7)

    buckets = []
    while cursor <= period.end:
        buckets.append(_clip(period, cursor, cursor + timedelta(days=6)))
        cursor += timedelta(days=7)
    return buckets


def day_buckets(period: Period) -> list[Bucket]:
    """One complete bucket per day of the period."""
    return [
        Bucket(start=period.start + timedelta(days=offset), end=period.start + timedelta(days=offset), complete=True)
        for offset in range(period.days)
    ]


def month_buckets(period: Period) -> list[Bucket]:
    """Calendar-month buckets; complete only when the whole month lies inside the period."""
    buckets = []
    cursor = period.start.replace(day=1)
    while cursor <= period.end:
        next_month = (cursor + timedelta(days=32)).replace(day=1)
        buckets.append(_clip(period, cursor, next_month - timedelta(days=1)))
        cursor = next_month
    return buckets


def _buckets_for(rule: CountRule, period: Period, boundary: WeekBoundaryConfig) -> list[Bucket]:
    if rule.unit == CountUnit.PER_DAY:
        return day_buckets(period)
    if rule.unit == CountUnit.PER_MONTH:
        return month_buckets(period)
    return week_buckets(period, boundary.anchor)


def _label(unit: CountUnit, bucket: Bucket) -> str:
    if unit == CountUnit.PER_DAY:
        return bucket.start.isoformat()
    if unit == CountUnit.PER_MONTH:
        return f"month of {bucket.start.strftime('%Y-%m')}"
    return f"week of {bucket.start.isoformat()}"


def _judge(
    buckets: Sequence[Bucket],
    counts: Sequence[int],
    rule: CountRule,
    enforce_partial: bool,
) -> FrequencyCheckResult:
    results: list[BucketResult] = []
    failures: list[str] = []

    for bucket, count in zip(buckets, counts):
        checked = bucket.complete or enforce_partial
        passed = rule.accepts(count)
        results.append(
            BucketResult(
                bucket_start=bucket.start,
                bucket_end=bucket.end,
                days=bucket.days,
                count=count,
                complete=bucket.complete,
                checked=checked,
                passed=passed,
            )
        )
        if checked and not passed:
            failures.append(f"{_label(rule.unit, bucket)}: {count} {SHORTFALL_SYMBOLS[rule.operator]} {rule.count}")

    return FrequencyCheckResult(
        passed=not failures,
        per_bucket=results,
        failure_summary="; ".join(failures),
    )


def check_calendar_buckets(
    occurrences: Sequence[Occurrence],
    period: Period,
    rule: CountRule,
    boundary: Optional[WeekBoundaryConfig] = None,
) -> FrequencyCheckResult:
    """
    Count occurrences per calendar bucket and judge each against a count rule.

    Args:
        occurrences: Occurrence list (dates outside the period are ignored)
        period: Inclusive date range
        rule: Operator, threshold and bucket unit
        boundary: Week anchoring and partial-week policy (defaults to
            ``startWeekday`` with partial weeks excluded)

    Returns:
        Overall verdict, per-bucket breakdown and a summary naming each
        failing bucket
    """
    boundary = boundary or WeekBoundaryConfig()
    per_date = Counter(occurrence.date for occurrence in occurrences)
    buckets = _buckets_for(rule, period, boundary)
    counts = [
        sum(per_date[bucket.start + timedelta(days=offset)] for offset in range(bucket.days))
        for bucket in buckets
    ]

    result = _judge(buckets, counts, rule, boundary.enforce_partial_weeks)
    logger.debug("Calendar check over %d buckets: pass=%s", len(buckets), result.passed)
    return result


def check_declared_target(
    target_per_week: int,
    period: Period,
    rule: CountRule,
    boundary: Optional[WeekBoundaryConfig] = None,
) -> FrequencyCheckResult:
    """
    Judge a declared weekly target against a minimum-frequency rule.

    A complete week is credited ``target_per_week``; a partial week at most
    one per day it spans.
    """
    if rule.unit != CountUnit.PER_WEEK:
        return FrequencyCheckResult(
            passed=False,
            failure_summary=f"declared weekly targets cannot be checked {rule.unit.value}",
        )

    boundary = boundary or WeekBoundaryConfig()
    buckets = week_buckets(period, boundary.anchor)
    counts = [
        target_per_week if bucket.complete else min(target_per_week, bucket.days)
        for bucket in buckets
    ]
    return _judge(buckets, counts, rule, boundary.enforce_partial_weeks)


def _local_date(timestamp, tz: ZoneInfo) -> date:
    # Naive timestamps are already local wall-clock time
    if timestamp.tzinfo is None:
        return timestamp.date()
    return timestamp.astimezone(tz).date()


def check_rolling_window(
    completions: Sequence[CompletionRecord],
    target_per_week: int,
    period: Period,
    window_days: Optional[int] = None,
    as_of: Optional[date] = None,
    timezone: Optional[str] = None,
) -> FrequencyCheckResult:
    """
    Compare completions inside trailing windows against a weekly target.

    A window counts the distinct local dates carrying at least one passing
    completion, independent of calendar-week alignment.

    Args:
        completions: Recorded completions
        target_per_week: Minimum distinct completion days per window
        period: Inclusive date range completions are counted in
        window_days: Window length (defaults to the configured 7 days)
        as_of: Evaluate only the window ending on this date
        timezone: IANA zone for converting aware timestamps to dates

    Returns:
        Without ``as_of``, one result per window ending on each day of the
        period, where only windows lying fully inside the period decide the
        verdict. With ``as_of``, the single trailing window decides.
    """
    window_days = window_days or settings.default_window_days
    tz = ZoneInfo(timezone or settings.default_timezone)
    done_days = {_local_date(record.timestamp, tz) for record in completions if record.passed}

    end_days = [as_of] if as_of else [period.start + timedelta(days=offset) for offset in range(period.days)]

    results: list[BucketResult] = []
    failures: list[str] = []
    for end_day in end_days:
        start_day = end_day - timedelta(days=window_days - 1)
        clipped_start = max(start_day, period.start)
        clipped_end = min(end_day, period.end)
        days = max(0, (clipped_end - clipped_start).days + 1)
        count = sum(1 for day in done_days if clipped_start <= day <= clipped_end)
        complete = start_day >= period.start and end_day <= period.end
        checked = complete or as_of is not None
        passed = count >= target_per_week

        results.append(
            BucketResult(
                bucket_start=clipped_start,
                bucket_end=clipped_end,
                days=days,
                count=count,
                complete=complete,
                checked=checked,
                passed=passed,
            )
        )
        if checked and not passed:
            failures.append(f"window ending {end_day.isoformat()}: {count} < {target_per_week}")

    return FrequencyCheckResult(
        passed=not failures,
        per_bucket=results,
        failure_summary="; ".join(failures),
    )


def check_minimum_frequency(
    spec: GoalSpecBase,
    rule: Optional[CountRule] = None,
    boundary: Optional[WeekBoundaryConfig] = None,
) -> FrequencyCheckResult:
    """
    Check a specification against a minimum-frequency rule.

    Schedule goals are checked on their confirmed occurrences (or the ones
    their rules and overrides produce); frequency goals on their declared
    weekly target. Without a rule, or for milestone goals, there is nothing
    to enforce and the check passes.
    """
    if isinstance(spec, ScheduleGoalSpec):
        rule = rule or spec.schedule.count_rule
        if rule is None:
            return FrequencyCheckResult(passed=True)
        occurrences = spec.schedule.occurrences or build_occurrences(spec)
        return check_calendar_buckets(
            occurrences,
            spec.period,
            rule,
            boundary or spec.schedule.week_boundary,
        )

    if isinstance(spec, FrequencyGoalSpec):
        if rule is None:
            return FrequencyCheckResult(passed=True)
        return check_declared_target(spec.frequency.target_per_week, spec.period, rule, boundary)

    return FrequencyCheckResult(passed=True)
