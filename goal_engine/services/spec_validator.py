"""Specification validator - structural and type-specific checks with optional repair."""
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from goal_engine.models.goal_spec import (
    SPEC_VARIANTS,
    FieldError,
    RecoveryResult,
    RepairWarning,
    SpecValidationResult,
)
from goal_engine.services.spec_repairs import REPAIRS

logger = logging.getLogger(__name__)

# Schema-shape violations; everything else is a semantic (field content) problem
STRUCTURAL_ERROR_TYPES = {
    "extra_forbidden",
    "literal_error",
    "enum",
    "union_tag_invalid",
    "union_tag_not_found",
    "model_type",
    "model_attributes_type",
}

OVERRIDE_TAGS = {"add", "cancel", "retime", "move"}


def _error_kind(error_type: str) -> str:
    if error_type in STRUCTURAL_ERROR_TYPES:
        return "structural"
    if error_type.endswith("_type") or error_type.endswith("_parsing"):
        return "structural"
    return "semantic"


def _format_loc(loc: tuple, root: str) -> str:
    """Render a pydantic error location as a dotted path, dropping union tags."""
    parts: list[str] = []
    previous = None
    for item in loc:
        if isinstance(previous, int) and item in OVERRIDE_TAGS:
            previous = item
            continue
        parts.append(str(item))
        previous = item
    return ".".join(parts) if parts else root


def _message(error: dict) -> str:
    message = error["msg"]
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return message


def _field_errors(exc: ValidationError, root: str) -> list[FieldError]:
    return [
        FieldError(
            field=_format_loc(error["loc"], root),
            message=_message(error),
            kind=_error_kind(error["type"]),
        )
        for error in exc.errors()
    ]


def validate(raw: Any) -> SpecValidationResult:
    """
    Validate a candidate goal specification.

    Args:
        raw: JSON-shaped candidate produced by an authoring collaborator

    Returns:
        Result carrying the parsed specification, or field-scoped errors.
        Never raises.
    """
    if not isinstance(raw, Mapping):
        return SpecValidationResult(
            valid=False,
            errors=[FieldError(field="$", message="specification must be an object", kind="structural")],
        )

    goal_type = raw.get("type")
    if goal_type in (None, ""):
        return SpecValidationResult(
            valid=False,
            errors=[FieldError(field="type", message="Field required", kind="semantic")],
        )

    variant = SPEC_VARIANTS.get(goal_type) if isinstance(goal_type, str) else None
    if variant is None:
        allowed = ", ".join(sorted(SPEC_VARIANTS))
        return SpecValidationResult(
            valid=False,
            errors=[FieldError(field="type", message=f"type must be one of: {allowed}", kind="structural")],
        )

    try:
        spec = variant.model_validate(dict(raw))
    except ValidationError as exc:
        return SpecValidationResult(valid=False, errors=_field_errors(exc, goal_type))

    return SpecValidationResult(valid=True, spec=spec)


def validate_with_recovery(raw: Any) -> RecoveryResult:
    """
    Validate a candidate, applying repair heuristics if strict validation fails.

    Each heuristic in ``REPAIRS`` runs once, in order, on the output of the
    previous one. The repaired payload is then validated again.

    Args:
        raw: JSON-shaped candidate specification

    Returns:
        Repaired specification with the warnings for every fix applied, or
        (if still invalid) no specification and only the remaining hard errors.
        Every error left after repair counts as hard: structural errors, and
        semantic errors no heuristic could fix. Repair warnings are dropped.
    """
    result = validate(raw)
    if result.valid:
        return RecoveryResult(spec=result.spec)

    if not isinstance(raw, Mapping):
        return RecoveryResult(errors=result.errors)

    payload = dict(raw)
    warnings: list[RepairWarning] = []
    for repair in REPAIRS:
        outcome = repair(payload)
        if outcome is None:
            continue
        payload = outcome.payload
        warnings.extend(outcome.warnings)
        logger.info("Applied repair %s (%d warnings)", repair.__name__, len(outcome.warnings))

    retry = validate(payload)
    if retry.valid:
        return RecoveryResult(spec=retry.spec, warnings=warnings)

    logger.info("Specification still invalid after repair: %d errors", len(retry.errors))
    return RecoveryResult(errors=retry.errors)
