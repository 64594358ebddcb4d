"""Verification signal, evidence and policy models."""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, ConfigDict, Field, field_serializer

from goal_engine.models.base import CamelModel, EvidenceModel


class VerificationSignalKind(str, Enum):
    """Kinds of evidence a goal can be verified with."""

    TIME = "time"
    LOCATION = "location"
    PHOTO = "photo"
    MANUAL = "manual"
    PARTNER = "partner"


class PolicyType(str, Enum):
    """Goal types the policy catalog and rule evaluator know about."""

    SCHEDULE = "schedule"
    FREQUENCY = "frequency"
    MILESTONE = "milestone"
    PARTNER = "partner"


class TimeEvidence(EvidenceModel):
    """Time-window presence."""

    present: bool = False
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None


class LocationEvidence(EvidenceModel):
    """Geofence containment."""

    present: bool = False
    inside: Optional[bool] = None
    distance: Optional[float] = None  # meters from the geofence center


class PhotoValidation(EvidenceModel):
    """Validation flags computed by the capture collaborator."""

    time_valid: Optional[bool] = None
    freshness_valid: Optional[bool] = None
    location_valid: Optional[bool] = None


class PhotoEvidence(EvidenceModel):
    """Photo proof."""

    present: bool = False
    taken_at: Optional[datetime] = None
    validation: Optional[PhotoValidation] = None


class ManualEvidence(EvidenceModel):
    """Self-reported completion."""

    present: bool = False


class PartnerEvidence(EvidenceModel):
    """Partner review."""

    reviewed: bool = False
    approved: bool = False


class VerificationEvidence(EvidenceModel):
    """Runtime proof bundle submitted for one goal instance."""

    time: Optional[TimeEvidence] = None
    location: Optional[LocationEvidence] = None
    photo: Optional[PhotoEvidence] = None
    manual: Optional[ManualEvidence] = None
    partner: Optional[PartnerEvidence] = None


class RuleEvaluation(CamelModel):
    """Pass/fail decision with the named sub-conditions behind it."""

    rule: str
    passed: bool = Field(validation_alias=AliasChoices("passed", "pass"), serialization_alias="pass")
    details: dict[str, bool] = {}


class VerificationPolicy(CamelModel):
    """A named, allowed combination of required and optional signals."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    required_signals: frozenset[VerificationSignalKind]
    optional_signals: frozenset[VerificationSignalKind] = frozenset()
    evaluation_logic: str
    # Published policy expects corroborating evidence alongside the required set
    requires_corroboration: bool = False

    @field_serializer("required_signals", "optional_signals")
    def _serialize_signals(self, value: frozenset[VerificationSignalKind]) -> list[str]:
        return sorted(signal.value for signal in value)


class SignalValidation(CamelModel):
    """Result of checking declared signals against a goal type's minimums."""

    valid: bool
    errors: list[str] = []
    suggestions: list[VerificationSignalKind] = []


class AlignmentReport(CamelModel):
    """Drift between the policy catalog and what the evaluator accepts."""

    aligned: bool
    gaps: list[str] = []
    recommendations: list[str] = []
