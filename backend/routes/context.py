"""
Shared route helpers — request payload parsing and access to the loaded
subject lookup / scaling oracle held on app.state.
"""

import os
from typing import Any, Dict, List

from fastapi import HTTPException, Request

from core.models import StudentResult, SubjectRow
from core.scaling import ScalingOracle
from core.set_plan import SetPlanTable
from core.subjects import SubjectMetadataLookup


def default_variation() -> float:
    return float(os.getenv("DEFAULT_RESULT_VARIATION", "3"))


def get_lookup(request: Request) -> SubjectMetadataLookup:
    lookup = getattr(request.app.state, "lookup", None)
    if lookup is None:
        raise HTTPException(503, "Subject data has not been loaded.")
    return lookup


def get_oracle(request: Request) -> ScalingOracle:
    oracle = getattr(request.app.state, "oracle", None)
    if oracle is None:
        raise HTTPException(503, "Scaling data has not been loaded.")
    return oracle


def variation_from(payload: Dict[str, Any]) -> float:
    value = payload.get("variation")
    if value is None:
        return default_variation()
    try:
        return float(value)
    except (TypeError, ValueError):
        raise HTTPException(400, f"Invalid variation: {value!r}")


def rows_from(payload: Dict[str, Any]) -> List[SubjectRow]:
    """Extract SubjectRows from request payload."""
    rows = payload.get("rows")
    if rows is None or not isinstance(rows, list):
        raise HTTPException(400, "No rows provided.")
    return [SubjectRow.from_dict(r) for r in rows if isinstance(r, dict)]


def results_from(items: Any) -> List[StudentResult]:
    if not isinstance(items, list):
        raise HTTPException(400, "Results must be a list.")
    return [StudentResult.from_dict(r) for r in items if isinstance(r, dict)]


def get_set_plan(request: Request) -> SetPlanTable:
    table = getattr(request.app.state, "set_plan", None)
    if table is None:
        raise HTTPException(503, "SET plan data has not been loaded.")
    return table
