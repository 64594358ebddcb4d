"""Verification policy registry - the static catalog of allowed signal sets.

The catalog is built once at import time from immutable values and is only
exposed through read-only query functions.
"""
import json
import logging
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Union

from goal_engine.models.verification import (
    AlignmentReport,
    LocationEvidence,
    ManualEvidence,
    PartnerEvidence,
    PhotoEvidence,
    PhotoValidation,
    PolicyType,
    SignalValidation,
    TimeEvidence,
    VerificationEvidence,
    VerificationPolicy,
    VerificationSignalKind,
)
from goal_engine.services.rule_evaluator import evaluate_by_goal_type

logger = logging.getLogger(__name__)

TIME = VerificationSignalKind.TIME
LOCATION = VerificationSignalKind.LOCATION
PHOTO = VerificationSignalKind.PHOTO
MANUAL = VerificationSignalKind.MANUAL
PARTNER = VerificationSignalKind.PARTNER


def _policy(name, description, required, logic, optional=(), requires_corroboration=False) -> VerificationPolicy:
    return VerificationPolicy(
        name=name,
        description=description,
        required_signals=frozenset(required),
        optional_signals=frozenset(optional),
        evaluation_logic=logic,
        requires_corroboration=requires_corroboration,
    )


VERIFICATION_POLICIES: Mapping[PolicyType, tuple[VerificationPolicy, ...]] = MappingProxyType({
    PolicyType.SCHEDULE: (
        _policy("time_location", "Schedule with a specific time and place", (TIME, LOCATION),
                "time_in_window AND time+location_inside"),
        _policy("time_photo", "Schedule with a specific time and photo evidence", (TIME, PHOTO),
                "time_in_window AND photo_time_valid AND photo_fresh", optional=(MANUAL,)),
        _policy("time_manual", "Schedule fallback with manual confirmation", (TIME, MANUAL),
                "time_in_window AND manual"),
    ),
    PolicyType.FREQUENCY: (
        _policy("manual_photo", "Frequency goal with manual check and photo evidence", (MANUAL, PHOTO),
                "manual AND photo_fresh"),
        _policy("manual_location", "Frequency goal with a meaningful location", (MANUAL, LOCATION),
                "manual AND location_inside"),
        _policy("manual", "Frequency fallback with manual confirmation only", (MANUAL,),
                "manual"),
    ),
    PolicyType.MILESTONE: (
        _policy("time_manual", "Milestone with manual confirmation", (TIME, MANUAL),
                "time_in_window AND manual"),
        _policy("time_photo", "Milestone with photo evidence", (TIME, PHOTO),
                "time_in_window AND photo_time_valid AND photo_fresh"),
    ),
    PolicyType.PARTNER: (
        _policy("partner_required", "Goal requiring partner approval", (PARTNER,),
                "partner_approved AND (manual OR photo OR location_inside)",
                optional=(MANUAL, PHOTO, LOCATION, TIME), requires_corroboration=True),
    ),
})

# Every legal signal combination across all goal types
ALLOWED_SIGNAL_COMBINATIONS: tuple[frozenset[VerificationSignalKind], ...] = tuple(
    frozenset(combination)
    for combination in (
        # Schedule
        (TIME, LOCATION),
        (TIME, PHOTO),
        (TIME, MANUAL),
        (TIME, LOCATION, PHOTO),
        (TIME, LOCATION, MANUAL),
        (TIME, PHOTO, MANUAL),
        # Frequency
        (MANUAL, PHOTO),
        (MANUAL, LOCATION),
        (MANUAL, PHOTO, LOCATION),
        # Partner
        (PARTNER,),
        (PARTNER, MANUAL),
        (PARTNER, PHOTO),
        (PARTNER, LOCATION),
        (PARTNER, MANUAL, PHOTO),
        (PARTNER, MANUAL, LOCATION),
        (PARTNER, PHOTO, LOCATION),
        # Fallback
        (MANUAL,),
    )
)

DEFAULT_SIGNALS: tuple[VerificationSignalKind, ...] = (MANUAL,)

PolicyTypeInput = Union[PolicyType, str]


def _policy_type(goal_type: PolicyTypeInput) -> Optional[PolicyType]:
    try:
        return PolicyType(goal_type)
    except ValueError:
        return None


def _split_signals(signals: Iterable) -> tuple[frozenset[VerificationSignalKind], list]:
    """Split raw signals into known kinds and unrecognized values."""
    known = set()
    unknown = []
    for signal in signals:
        try:
            known.add(VerificationSignalKind(signal))
        except ValueError:
            unknown.append(signal)
    return frozenset(known), unknown


def _names(signals: Iterable[VerificationSignalKind]) -> list[str]:
    return sorted(signal.value for signal in signals)


def get_policies(goal_type: PolicyTypeInput) -> tuple[VerificationPolicy, ...]:
    """Return the catalog entries for a goal type (empty for unknown types)."""
    policy_type = _policy_type(goal_type)
    if policy_type is None:
        return ()
    return VERIFICATION_POLICIES[policy_type]


def match_policy(goal_type: PolicyTypeInput, signals: Iterable) -> Optional[VerificationPolicy]:
    """Find the policy whose required set equals ``signals`` (order-independent)."""
    wanted, unknown = _split_signals(signals)
    if unknown:
        return None
    for policy in get_policies(goal_type):
        if policy.required_signals == wanted:
            return policy
    return None


def is_allowed_combination(signals: Iterable) -> bool:
    """Return whether a signal set is one of the enumerated legal combinations."""
    combination, unknown = _split_signals(signals)
    return not unknown and combination in ALLOWED_SIGNAL_COMBINATIONS


def validate_signals(goal_type: PolicyTypeInput, signals: Iterable) -> SignalValidation:
    """
    Enforce a goal type's minimum signals.

    Args:
        goal_type: schedule, frequency, milestone or partner
        signals: Declared signal kinds

    Returns:
        Validity, human-readable errors and de-duplicated suggestions
    """
    declared, unknown = _split_signals(signals)
    errors: list[str] = [f"Unknown signal {signal!r}" for signal in unknown]
    suggestions: list[VerificationSignalKind] = []
    policy_type = _policy_type(goal_type)

    if policy_type == PolicyType.SCHEDULE:
        if TIME not in declared:
            errors.append('Schedule goals must include "time" signal')
            suggestions.append(TIME)
        elif not declared & {LOCATION, PHOTO, MANUAL}:
            errors.append("Schedule with time must include location, photo, or manual signal")
            suggestions.extend([LOCATION, PHOTO, MANUAL])

    elif policy_type == PolicyType.FREQUENCY:
        if MANUAL not in declared:
            errors.append('Frequency goals must include "manual" signal')
            suggestions.append(MANUAL)
        # Manual alone is the fallback; anything added to it must corroborate
        elif len(declared) > 1 and not declared & {PHOTO, LOCATION}:
            errors.append("Frequency goals should include photo or location signal")
            suggestions.extend([PHOTO, LOCATION])

    elif policy_type == PolicyType.MILESTONE:
        if TIME not in declared:
            errors.append('Milestone goals must include "time" signal')
            suggestions.append(TIME)
        if not declared & {MANUAL, PHOTO}:
            errors.append("Milestone goals must include manual or photo signal")
            suggestions.extend([MANUAL, PHOTO])

    elif policy_type == PolicyType.PARTNER:
        if PARTNER not in declared:
            errors.append('Partner goals must include "partner" signal')
            suggestions.append(PARTNER)

    else:
        errors.append(f"Unknown goal type {goal_type!r}")

    return SignalValidation(
        valid=not errors,
        errors=errors,
        suggestions=list(dict.fromkeys(suggestions)),
    )


def suggest_signals(
    goal_type: PolicyTypeInput,
    has_time: bool = False,
    has_location: bool = False,
    has_partner: bool = False,
) -> list[VerificationSignalKind]:
    """Recommend a signal set for a goal being authored."""
    if has_partner:
        return [PARTNER]

    policy_type = _policy_type(goal_type)
    if policy_type == PolicyType.SCHEDULE:
        if has_time and has_location:
            return [TIME, LOCATION]
        if has_time:
            return [TIME, PHOTO]
        return [TIME, MANUAL]
    if policy_type == PolicyType.FREQUENCY:
        return [MANUAL, LOCATION] if has_location else [MANUAL, PHOTO]
    if policy_type == PolicyType.MILESTONE:
        return [TIME, PHOTO] if has_time else [TIME, MANUAL]
    return list(DEFAULT_SIGNALS)


def describe_policies() -> str:
    """Render the catalog as guidance text for specification authoring."""
    lines = ["VERIFICATION SIGNALS POLICY:"]
    for policy_type, policies in VERIFICATION_POLICIES.items():
        for policy in policies:
            required = json.dumps(_names(policy.required_signals))
            line = f"- {policy_type.value}/{policy.name}: {required} ({policy.description})"
            if policy.optional_signals:
                line += f", optionally with {json.dumps(_names(policy.optional_signals))}"
            lines.append(line)
    return "\n".join(lines)


def _passing_evidence(signals: Iterable[VerificationSignalKind], now: datetime) -> VerificationEvidence:
    """Build evidence in which every listed signal is present and valid."""
    sections = {}
    for signal in signals:
        if signal == TIME:
            sections["time"] = TimeEvidence(
                present=True,
                window_start=now - timedelta(minutes=30),
                window_end=now + timedelta(minutes=30),
            )
        elif signal == LOCATION:
            sections["location"] = LocationEvidence(present=True, inside=True, distance=0.0)
        elif signal == PHOTO:
            sections["photo"] = PhotoEvidence(
                present=True,
                validation=PhotoValidation(time_valid=True, freshness_valid=True, location_valid=True),
            )
        elif signal == MANUAL:
            sections["manual"] = ManualEvidence(present=True)
        elif signal == PARTNER:
            sections["partner"] = PartnerEvidence(reviewed=True, approved=True)
    return VerificationEvidence(**sections)


def check_alignment(now: Optional[datetime] = None) -> AlignmentReport:
    """
    Enumerate drift between the catalog and what the evaluator accepts.

    Checks that every policy's required set is an allowed combination and is
    accepted by its goal type's rule, that every allowed combination is
    accepted by at least one rule, and that policies expecting corroboration
    are not satisfied by their required signals alone.
    """
    now = now or datetime.now(timezone.utc)
    gaps: list[str] = []
    recommendations: list[str] = []

    for policy_type, policies in VERIFICATION_POLICIES.items():
        for policy in policies:
            label = f"{policy_type.value}/{policy.name}"
            required = _names(policy.required_signals)

            if policy.required_signals not in ALLOWED_SIGNAL_COMBINATIONS:
                gaps.append(f"{label}: required signals {required} are not an allowed combination")
                recommendations.append(f"Add {required} to the allowed combinations or drop {label}")

            evidence = _passing_evidence(policy.required_signals, now)
            if not evaluate_by_goal_type(policy_type, evidence, now=now).passed:
                gaps.append(f"{label}: evaluator rejects evidence carrying exactly {required}")
                recommendations.append(f"Extend the {policy_type.value} rule to accept {required} or retire {label}")
            elif policy.requires_corroboration:
                gaps.append(f"{label}: evaluator accepts {required} without corroborating evidence")
                recommendations.append(f"Confirm whether the {policy_type.value} rule should require one of "
                                       f"{_names(policy.optional_signals)}")

    for combination in ALLOWED_SIGNAL_COMBINATIONS:
        evidence = _passing_evidence(combination, now)
        if not any(evaluate_by_goal_type(policy_type, evidence, now=now).passed for policy_type in PolicyType):
            names = _names(combination)
            gaps.append(f"combination {names}: no rule accepts it")
            recommendations.append(f"Remove {names} from the allowed combinations or add a rule for it")

    if gaps:
        logger.info("Verification policy drift: %d gaps", len(gaps))
    return AlignmentReport(aligned=not gaps, gaps=gaps, recommendations=recommendations)
