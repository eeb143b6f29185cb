"""
Chart routes — shared-axis scaled score chart data.
"""

from fastapi import APIRouter, Request

from core.chart import prepare_chart
from routes.context import get_lookup, get_oracle, rows_from

router = APIRouter()


@router.post("")
async def chart(payload: dict, request: Request):
    """
    Prepare stacked-bar chart data.
    Expects: { "rows": [...], "range_mode": true, "skip_middle": false }
    """
    rows = rows_from(payload)
    prepared = prepare_chart(
        rows,
        bool(payload.get("range_mode", False)),
        get_lookup(request),
        get_oracle(request),
        skip_middle=bool(payload.get("skip_middle", False)),
    )
    result = prepared.to_dict()
    result["excluded_count"] = len([r for r in rows if r.subject and r.raw_result]) - len(prepared.data)
    return result
