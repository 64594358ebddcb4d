"""Verification rule evaluator - judges a runtime evidence bundle for a goal type.

Every rule is pure and never raises: missing or malformed evidence only fails
the sub-conditions that depend on it. Each call takes a single "now"
snapshot so one evaluation is internally consistent.
"""
import logging
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

from pydantic import ValidationError

from goal_engine.config import settings
from goal_engine.models.verification import (
    LocationEvidence,
    ManualEvidence,
    PartnerEvidence,
    PhotoEvidence,
    PhotoValidation,
    PolicyType,
    RuleEvaluation,
    TimeEvidence,
    VerificationEvidence,
)
from goal_engine.utils.time_format import as_utc

logger = logging.getLogger(__name__)

EVIDENCE_SECTIONS = {
    "time": TimeEvidence,
    "location": LocationEvidence,
    "photo": PhotoEvidence,
    "manual": ManualEvidence,
    "partner": PartnerEvidence,
}

EvidenceInput = Union[VerificationEvidence, Mapping, None]


def coerce_evidence(raw: Any) -> VerificationEvidence:
    """Parse an evidence bundle section by section, dropping malformed sections."""
    if isinstance(raw, VerificationEvidence):
        return raw
    if not isinstance(raw, Mapping):
        return VerificationEvidence()

    sections = {}
    for name, model in EVIDENCE_SECTIONS.items():
        value = raw.get(name)
        if value is None:
            continue
        try:
            sections[name] = model.model_validate(value)
        except ValidationError:
            logger.debug("Dropping malformed %s evidence", name)
    return VerificationEvidence(**sections)


def _snapshot(now: Optional[datetime]) -> datetime:
    return as_utc(now) if now is not None else datetime.now(timezone.utc)


def within_window(evidence: Optional[TimeEvidence], now: datetime, tolerance_minutes: int) -> bool:
    """Time is present and ``now`` falls inside the window widened by the tolerance."""
    if evidence is None or not evidence.present:
        return False
    if evidence.window_start is None or evidence.window_end is None:
        return True

    try:
        tolerance = timedelta(minutes=tolerance_minutes)
        return as_utc(evidence.window_start) - tolerance <= now <= as_utc(evidence.window_end) + tolerance
    except OverflowError:
        # Bounds at the edge of the datetime range
        logger.debug("Time window out of range")
        return False


def _manual(evidence: VerificationEvidence) -> bool:
    return evidence.manual is not None and evidence.manual.present


def _time_present(evidence: VerificationEvidence) -> bool:
    return evidence.time is not None and evidence.time.present


def _location_inside(evidence: VerificationEvidence) -> bool:
    location = evidence.location
    if location is None or not location.present:
        return False
    if location.inside is not None:
        return location.inside
    return location.distance is not None and location.distance <= settings.geofence_radius_meters


def _photo_validation(evidence: VerificationEvidence, now: datetime) -> PhotoValidation:
    """Photo flags, deriving freshness from ``takenAt`` when the flag is absent."""
    photo = evidence.photo
    if photo is None or not photo.present:
        return PhotoValidation()

    validation = photo.validation or PhotoValidation()
    if validation.freshness_valid is None and photo.taken_at is not None:
        try:
            age = now - as_utc(photo.taken_at)
        except OverflowError:
            age = None
        fresh = age is not None and timedelta(0) <= age <= timedelta(minutes=settings.photo_freshness_max_minutes)
        validation = validation.model_copy(update={"freshness_valid": fresh})
    return validation


def eval_schedule_rule(
    evidence: EvidenceInput,
    now: Optional[datetime] = None,
    tolerance_minutes: Optional[int] = None,
) -> RuleEvaluation:
    """
    Schedule: time in window AND any of manual+location, valid photo,
    time+location, time+manual.
    """
    evidence = coerce_evidence(evidence)
    now = _snapshot(now)
    if tolerance_minutes is None:
        tolerance_minutes = settings.time_tolerance_minutes

    photo = _photo_validation(evidence, now)
    photo_present = evidence.photo is not None and evidence.photo.present

    time_ok = within_window(evidence.time, now, tolerance_minutes)
    manual_location_ok = _manual(evidence) and _location_inside(evidence)
    photo_ok = photo_present and bool(photo.time_valid) and bool(photo.freshness_valid)
    time_location_ok = _time_present(evidence) and _location_inside(evidence)
    time_manual_ok = _time_present(evidence) and _manual(evidence)

    corroborated = manual_location_ok or photo_ok or time_location_ok or time_manual_ok
    return RuleEvaluation(
        rule=PolicyType.SCHEDULE.value,
        passed=time_ok and corroborated,
        details={
            "time_ok": time_ok,
            "manual_location_ok": manual_location_ok,
            "photo_ok": photo_ok,
            "time_location_ok": time_location_ok,
            "time_manual_ok": time_manual_ok,
            "photo_time_valid": bool(photo.time_valid),
            "photo_fresh_valid": bool(photo.freshness_valid),
        },
    )


def eval_frequency_rule(evidence: EvidenceInput, now: Optional[datetime] = None) -> RuleEvaluation:
    """Frequency: manual+location OR manual+fresh photo."""
    evidence = coerce_evidence(evidence)
    now = _snapshot(now)

    photo = _photo_validation(evidence, now)
    photo_present = evidence.photo is not None and evidence.photo.present

    manual_photo_ok = _manual(evidence) and photo_present and bool(photo.freshness_valid)
    manual_location_ok = _manual(evidence) and _location_inside(evidence)

    return RuleEvaluation(
        rule=PolicyType.FREQUENCY.value,
        passed=manual_location_ok or manual_photo_ok,
        details={
            "manual_location_ok": manual_location_ok,
            "manual_photo_ok": manual_photo_ok,
            "photo_fresh_valid": bool(photo.freshness_valid),
            "photo_location_valid": bool(photo.location_valid),
        },
    )


def eval_partner_rule(evidence: EvidenceInput, now: Optional[datetime] = None) -> RuleEvaluation:
    """
    Partner: reviewed AND approved.

    Corroborating manual/photo/location evidence is reported in the details
    but does not change the outcome, although the published partner policy
    lists it. ``check_alignment`` reports this gap.
    """
    evidence = coerce_evidence(evidence)
    now = _snapshot(now)

    photo = _photo_validation(evidence, now)
    photo_present = evidence.photo is not None and evidence.photo.present

    partner = evidence.partner
    partner_ok = partner is not None and partner.reviewed and partner.approved
    manual_ok = _manual(evidence)
    photo_ok = photo_present and bool(photo.time_valid) and bool(photo.freshness_valid)
    location_ok = _location_inside(evidence)

    return RuleEvaluation(
        rule=PolicyType.PARTNER.value,
        passed=partner_ok,
        details={
            "partner_ok": partner_ok,
            "manual_ok": manual_ok,
            "photo_ok": photo_ok,
            "location_ok": location_ok,
            "has_additional_verification": manual_ok or photo_ok or location_ok,
        },
    )


def evaluate_by_goal_type(
    goal_type: Union[PolicyType, str, None],
    evidence: EvidenceInput,
    now: Optional[datetime] = None,
    tolerance_minutes: Optional[int] = None,
) -> RuleEvaluation:
    """
    Dispatch to the rule for a goal type.

    Schedule and milestone goals use the schedule rule, partner goals the
    partner rule; any other type falls back to the frequency rule.
    """
    kind = goal_type.value if isinstance(goal_type, PolicyType) else goal_type

    if kind in (PolicyType.SCHEDULE.value, PolicyType.MILESTONE.value):
        result = eval_schedule_rule(evidence, now=now, tolerance_minutes=tolerance_minutes)
    elif kind == PolicyType.PARTNER.value:
        result = eval_partner_rule(evidence, now=now)
    else:
        result = eval_frequency_rule(evidence, now=now)

    logger.debug("Evaluated %s evidence with %s rule: pass=%s", kind, result.rule, result.passed)
    return result
