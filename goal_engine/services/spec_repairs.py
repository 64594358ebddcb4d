"""Best-effort repair heuristics for candidate goal specifications.

Each heuristic is an independent function taking the raw payload and
returning a ``RepairOutcome`` (a repaired copy plus warnings) or ``None``
when it has nothing to fix. Heuristics only touch the field they own, so
any other defect in the payload survives to re-validation.
"""
import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from goal_engine.models.goal_spec import GoalType, RepairWarning
from goal_engine.utils.time_format import is_canonical_time, normalize_time

DEFAULT_TIME = "09:00"
DEFAULT_TITLE = "Untitled goal"
DEFAULT_SIGNALS = ["manual"]

VARIANT_KEYS = tuple(goal_type.value for goal_type in GoalType)

TIME_FIELDS = {
    "rules": ("time",),
    "overrides": ("time", "newTime", "toTime"),
    "occurrences": ("time",),
}


@dataclass
class RepairOutcome:
    payload: dict[str, Any]
    warnings: list[RepairWarning] = field(default_factory=list)


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def _is_time_like(value: Any) -> bool:
    return isinstance(value, str) or (isinstance(value, int) and not isinstance(value, bool))


def default_goal_type(payload: dict[str, Any]) -> Optional[RepairOutcome]:
    """Fill a missing ``type`` from the single variant payload present, else frequency."""
    if payload.get("type") not in (None, ""):
        return None

    present = [key for key in VARIANT_KEYS if key in payload]
    inferred = present[0] if len(present) == 1 else GoalType.FREQUENCY.value

    repaired = copy.deepcopy(payload)
    repaired["type"] = inferred
    return RepairOutcome(
        payload=repaired,
        warnings=[RepairWarning(field="type", message=f"Missing goal type, defaulting to {inferred}")],
    )


def synthesize_original_text(payload: dict[str, Any]) -> Optional[RepairOutcome]:
    """Use the title as ``originalText`` when it is missing or blank."""
    if _is_text(payload.get("originalText")):
        return None

    title = payload.get("title")
    text = title if _is_text(title) else DEFAULT_TITLE

    repaired = copy.deepcopy(payload)
    repaired["originalText"] = text
    return RepairOutcome(
        payload=repaired,
        warnings=[RepairWarning(field="originalText", message="Missing originalText, using title as fallback")],
    )


def default_verification_signals(payload: dict[str, Any]) -> Optional[RepairOutcome]:
    """Default absent or empty verification signals to manual confirmation."""
    verification = payload.get("verification")
    if verification is None:
        verification = {}
    if not isinstance(verification, dict):
        return None

    signals = verification.get("signals")
    if signals not in (None, []):
        return None

    repaired = copy.deepcopy(payload)
    repaired["verification"] = {**verification, "signals": list(DEFAULT_SIGNALS)}
    return RepairOutcome(
        payload=repaired,
        warnings=[RepairWarning(field="verification.signals", message="Missing verification signals, defaulting to manual")],
    )


def normalize_times(payload: dict[str, Any]) -> Optional[RepairOutcome]:
    """Reparse loose schedule time strings into "HH:mm", falling back to 09:00.

    Values that are not strings or integer hours are left untouched.
    """
    schedule = payload.get("schedule")
    if not isinstance(schedule, dict):
        return None

    repaired = copy.deepcopy(payload)
    warnings: list[RepairWarning] = []

    for list_key, time_keys in TIME_FIELDS.items():
        items = repaired["schedule"].get(list_key)
        if not isinstance(items, list):
            continue
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                continue
            for time_key in time_keys:
                if time_key not in item or is_canonical_time(item[time_key]):
                    continue
                if not _is_time_like(item[time_key]):
                    # Wrong shape entirely; left for validation to reject
                    continue
                original = item[time_key]
                fixed = normalize_time(original) or DEFAULT_TIME
                item[time_key] = fixed
                warnings.append(
                    RepairWarning(
                        field=f"schedule.{list_key}.{index}.{time_key}",
                        message=f"Invalid time format {original!r}, using {fixed}",
                    )
                )

    if not warnings:
        return None
    return RepairOutcome(payload=repaired, warnings=warnings)


def coerce_target_per_week(payload: dict[str, Any]) -> Optional[RepairOutcome]:
    """Convert a positive numeric-string ``targetPerWeek`` to an integer."""
    frequency = payload.get("frequency")
    if not isinstance(frequency, dict):
        return None

    value = frequency.get("targetPerWeek")
    if not isinstance(value, str):
        return None

    try:
        parsed = int(value.strip())
    except ValueError:
        return None
    if parsed <= 0:
        return None

    repaired = copy.deepcopy(payload)
    repaired["frequency"]["targetPerWeek"] = parsed
    return RepairOutcome(
        payload=repaired,
        warnings=[RepairWarning(field="frequency.targetPerWeek", message="Converted string targetPerWeek to integer")],
    )


Repair = Callable[[dict[str, Any]], Optional[RepairOutcome]]

REPAIRS: tuple[Repair, ...] = (
    default_goal_type,
    synthesize_original_text,
    default_verification_signals,
    normalize_times,
    coerce_target_per_week,
)
