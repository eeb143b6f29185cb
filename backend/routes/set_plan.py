"""
SET plan routes — rank options and rank-based plans.
"""

from fastapi import APIRouter, HTTPException, Request

from core.set_plan import RANK_OPTIONS, PlannedSubject, summarise_plan
from routes.context import get_lookup, get_oracle, get_set_plan

router = APIRouter()


@router.get("/ranks")
async def ranks():
    """Rank choices per subject type."""
    return {"ranks": RANK_OPTIONS}


@router.post("")
async def plan(payload: dict, request: Request):
    """
    Work out result ranges, chart data and TE / ATAR ranges from target ranks.
    Expects: { "subjects": [{ "subject": "English", "rank": "Great" }, ...] }
    """
    items = payload.get("subjects")
    if not isinstance(items, list) or not items:
        raise HTTPException(400, "No subjects provided.")
    planned = [PlannedSubject.from_dict(item) for item in items if isinstance(item, dict)]
    return summarise_plan(planned, get_lookup(request), get_oracle(request), get_set_plan(request))
