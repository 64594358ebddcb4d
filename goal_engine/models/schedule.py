"""Schedule model definitions: rules, override edits and occurrences."""
from datetime import date
from typing import Annotated, Literal, Union

from pydantic import ConfigDict, Field, StringConstraints, field_validator

from goal_engine.models.base import CamelModel, SpecModel

# 24-hour "HH:mm"
TimeOfDay = Annotated[str, StringConstraints(pattern=r"^([01]\d|2[0-3]):[0-5]\d$")]

# 0=Sunday, 1=Monday, ..., 6=Saturday
Weekday = Annotated[int, Field(strict=True, ge=0, le=6)]

DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


def weekday_of(day: date) -> int:
    """Return the Sunday-based weekday index (0-6) of a date."""
    return (day.weekday() + 1) % 7


class ScheduleRule(SpecModel):
    """Recurring weekly pattern: a set of weekdays at one time of day."""

    weekdays: list[Weekday] = Field(min_length=1)
    time: TimeOfDay

    @field_validator("weekdays")
    @classmethod
    def _dedupe_weekdays(cls, value: list[int]) -> list[int]:
        return sorted(set(value))


class AddOverride(SpecModel):
    """Insert an occurrence on a date (replaces any existing one)."""

    kind: Literal["add"] = "add"
    date: date
    time: TimeOfDay


class CancelOverride(SpecModel):
    """Remove the occurrence on a date, if any."""

    kind: Literal["cancel"] = "cancel"
    date: date


class RetimeOverride(SpecModel):
    """Change the time of the occurrence on a date (adds one if absent)."""

    kind: Literal["retime"] = "retime"
    date: date
    new_time: TimeOfDay


class MoveOverride(SpecModel):
    """Move the occurrence on one date to another date and time."""

    kind: Literal["move"] = "move"
    from_date: date
    to_date: date
    to_time: TimeOfDay


Override = Annotated[
    Union[AddOverride, CancelOverride, RetimeOverride, MoveOverride],
    Field(discriminator="kind"),
]


class Occurrence(SpecModel):
    """A concrete dated and timed instance of a schedule."""

    model_config = ConfigDict(frozen=True)

    date: date
    time: TimeOfDay

    @property
    def sort_key(self) -> tuple[date, str]:
        return (self.date, self.time)


class OccurrencePreview(CamelModel):
    """Human-readable occurrence row shown before confirmation."""

    date: date
    time: str
    day_name: str
    week_number: int  # 1-based from period start


class OccurrenceCheck(CamelModel):
    """Result of validating a confirmed occurrence list."""

    valid: bool
    errors: list[str] = []
