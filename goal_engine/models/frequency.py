"""Frequency requirement and aggregation result models."""
from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, Field

from goal_engine.models.base import CamelModel, SpecModel


class CountOperator(str, Enum):
    """Comparison applied between a bucket count and the rule threshold."""

    AT_LEAST = ">="
    EXACTLY = "=="
    AT_MOST = "<="


class CountUnit(str, Enum):
    """Bucket length a count rule is measured over."""

    PER_WEEK = "per_week"
    PER_DAY = "per_day"
    PER_MONTH = "per_month"


class WeekAnchor(str, Enum):
    """Where week buckets start."""

    START_WEEKDAY = "startWeekday"  # weekday of period.start
    ISO_WEEK = "isoWeek"  # Monday


class CountRule(SpecModel):
    """Operator plus threshold a bucket count is judged against."""

    operator: CountOperator = CountOperator.AT_LEAST
    count: int = Field(strict=True, ge=0)
    unit: CountUnit = CountUnit.PER_WEEK

    def accepts(self, value: int) -> bool:
        """Return whether a bucket count satisfies this rule."""
        if self.operator == CountOperator.AT_LEAST:
            return value >= self.count
        if self.operator == CountOperator.EXACTLY:
            return value == self.count
        return value <= self.count


class WeekBoundaryConfig(SpecModel):
    """Week bucket anchoring and partial-week policy."""

    anchor: WeekAnchor = WeekAnchor.START_WEEKDAY
    enforce_partial_weeks: bool = False


class BucketResult(CamelModel):
    """Count and verdict for one calendar bucket or rolling window."""

    bucket_start: date
    bucket_end: date
    days: int
    count: int
    complete: bool
    checked: bool  # subject to the rule under the partial-week policy
    passed: bool = Field(validation_alias=AliasChoices("passed", "pass"), serialization_alias="pass")


class FrequencyCheckResult(CamelModel):
    """Overall frequency verdict with per-bucket breakdown."""

    passed: bool = Field(validation_alias=AliasChoices("passed", "pass"), serialization_alias="pass")
    per_bucket: list[BucketResult] = []
    failure_summary: str = ""


class CompletionRecord(CamelModel):
    """A recorded completion used by rolling-window checks."""

    timestamp: datetime
    passed: bool = True
    method: Optional[str] = None  # manual, photo, location, combo
