"""Specification endpoints - validation and repair of candidate goal specifications."""
from typing import Any

from fastapi import APIRouter, Body

from goal_engine.models.goal_spec import RecoveryResult, SpecValidationResult
from goal_engine.services.spec_validator import validate, validate_with_recovery


router = APIRouter(prefix="/specs", tags=["specs"])


@router.post("/validate", response_model=SpecValidationResult)
async def validate_spec(payload: Any = Body(...)):
    """
    Strictly validate a candidate specification.

    - Always 200; the result carries ``valid`` and field-scoped errors
    - Unknown fields are rejected
    """
    return validate(payload)


@router.post("/recover", response_model=RecoveryResult)
async def recover_spec(payload: Any = Body(...)):
    """
    Validate a candidate specification, repairing common defects.

    - Returns the repaired specification plus a warning per fix
    - Returns only hard errors when repair cannot make it valid
    """
    return validate_with_recovery(payload)
