"""Verification endpoints - evidence evaluation and policy queries."""
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query

from goal_engine.models.base import CamelModel
from goal_engine.models.verification import (
    AlignmentReport,
    PolicyType,
    RuleEvaluation,
    SignalValidation,
    VerificationPolicy,
    VerificationSignalKind,
)
from goal_engine.services.policy_registry import (
    check_alignment,
    describe_policies,
    get_policies,
    is_allowed_combination,
    match_policy,
    suggest_signals,
    validate_signals,
)
from goal_engine.services.rule_evaluator import evaluate_by_goal_type


router = APIRouter(prefix="/verification", tags=["verification"])


class EvaluateRequest(CamelModel):
    """Request model for evaluating an evidence bundle."""

    goal_type: str
    evidence: Any = None
    now: Optional[datetime] = None
    tolerance_minutes: Optional[int] = None


class SignalsRequest(CamelModel):
    """Request model carrying a goal type and declared signals."""

    goal_type: str
    signals: list[VerificationSignalKind]


class CombinationRequest(CamelModel):
    """Request model carrying a signal combination."""

    signals: list[VerificationSignalKind]


@router.post("/evaluate", response_model=RuleEvaluation)
async def evaluate(request: EvaluateRequest):
    """
    Judge an evidence bundle for a goal type.

    - Missing or malformed evidence fails sub-conditions, never the request
    - Unknown goal types use the frequency rule
    """
    return evaluate_by_goal_type(
        request.goal_type,
        request.evidence,
        now=request.now,
        tolerance_minutes=request.tolerance_minutes,
    )


@router.get("/policies/{goal_type}", response_model=list[VerificationPolicy])
async def list_policies(goal_type: str):
    """
    List the policies for a goal type.

    - Returns 404 for unknown goal types
    """
    policies = get_policies(goal_type)
    if not policies:
        raise HTTPException(status_code=404, detail="Unknown goal type")
    return list(policies)


@router.post("/policies/match", response_model=VerificationPolicy)
async def find_policy(request: SignalsRequest):
    """
    Find the policy whose required signals equal the given set.

    - Returns 404 if no policy matches
    """
    policy = match_policy(request.goal_type, request.signals)
    if policy is None:
        raise HTTPException(status_code=404, detail="No matching policy")
    return policy


@router.post("/signals/validate", response_model=SignalValidation)
async def check_signals(request: SignalsRequest):
    """Check declared signals against a goal type's minimums."""
    return validate_signals(request.goal_type, request.signals)


@router.get("/signals/suggest", response_model=list[VerificationSignalKind])
async def suggest(
    goal_type: PolicyType = Query(..., description="schedule, frequency, milestone or partner"),
    has_time: bool = Query(False),
    has_location: bool = Query(False),
    has_partner: bool = Query(False),
):
    """Recommend a signal set for a goal being authored."""
    return suggest_signals(
        goal_type,
        has_time=has_time,
        has_location=has_location,
        has_partner=has_partner,
    )


@router.post("/signals/allowed")
async def allowed(request: CombinationRequest):
    """Check whether a signal combination is one of the legal combinations."""
    return {"allowed": is_allowed_combination(request.signals)}


@router.get("/alignment", response_model=AlignmentReport)
async def alignment():
    """Report drift between the policy catalog and the rule evaluator."""
    return check_alignment()


@router.get("/guidance")
async def guidance():
    """Policy guidance text for specification authoring."""
    return {"guidance": describe_policies()}
