"""
Scaling routes — subject list, result parsing, ranging and scaling.
"""

from fastapi import APIRouter, HTTPException, Request

from core.ranging import apply_variation, enforce_bound_order, parse_and_range
from core.results import parse_and_scale, parse_result
from core.scaling_graph import DEFAULT_STEP, available_graph_subjects, scaling_graph_data
from routes.context import get_lookup, get_oracle, rows_from, variation_from

router = APIRouter()


@router.get("/subjects")
async def subjects(request: Request):
    """Subject picker options and metadata."""
    lookup = get_lookup(request)
    return {
        "options": lookup.display_options(),
        "subjects": [s.to_dict() for s in lookup.all()],
    }


@router.post("/parse")
async def parse(payload: dict):
    """
    Validate a raw result against a rule.
    Expects: { "raw_result": "75", "validation_rule": "0-100", "variation": 5 }
    Bounds are only returned when a variation is given.
    """
    raw = payload.get("raw_result")
    rule = payload.get("validation_rule")
    if payload.get("variation") is None:
        parsed = parse_result(raw, rule)
        return {"value": parsed.value, "is_valid": parsed.is_valid}

    parsed, lower, upper = parse_and_range(raw, rule, variation_from(payload))
    return {
        "value": parsed.value,
        "is_valid": parsed.is_valid,
        "lower_result": lower,
        "upper_result": upper,
    }


@router.post("/range")
async def apply_range(payload: dict):
    """
    Apply a result variation to every row.
    Expects: { "rows": [...subject rows...], "variation": 3 }
    """
    rows = rows_from(payload)
    updated = apply_variation(rows, variation_from(payload))
    updated = [enforce_bound_order(r) for r in updated]
    return {
        "rows": [r.to_dict() for r in updated],
        "changed_ids": [new.id for old, new in zip(rows, updated) if new is not old],
    }


@router.post("/scale")
async def scale(payload: dict, request: Request):
    """
    Scale a single result.
    Expects: { "subject": "<display or canonical name>", "raw_result": "75" }
    """
    lookup = get_lookup(request)
    oracle = get_oracle(request)
    subject = payload.get("subject")
    metadata = lookup.by_display_name(subject) or lookup.by_canonical_name(subject)
    if metadata is None:
        raise HTTPException(404, f"Subject '{subject}' not found.")

    result = parse_and_scale(
        metadata.canonical_name, payload.get("raw_result"), metadata.validation_rule, oracle,
    )
    if result is None:
        return {"subject": metadata.display_name, "scaled_score": None, "error": "Invalid or empty result"}
    return {"subject": metadata.display_name, "scaled_score": result.scaled_score, "error": result.error}


@router.get("/graph/subjects")
async def graph_subjects(request: Request):
    """Subjects that have a raw -> scaled curve."""
    return {"subjects": available_graph_subjects(get_lookup(request))}


@router.post("/graph")
async def graph(payload: dict, request: Request):
    """
    Raw -> scaled score curves for one or more General subjects.
    Expects: { "subjects": ["English", "Physics"], "step": 5 }
    """
    subjects = payload.get("subjects")
    if not isinstance(subjects, list) or not subjects:
        raise HTTPException(400, "No subjects provided.")
    try:
        return scaling_graph_data(
            [str(s) for s in subjects],
            get_lookup(request),
            get_oracle(request),
            step=payload.get("step", DEFAULT_STEP),
        )
    except (TypeError, ValueError) as exc:
        raise HTTPException(400, str(exc))
