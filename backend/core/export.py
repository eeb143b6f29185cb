"""
export.py — Projection of subject rows into report / download records.
"""

from typing import Any, Dict, List, Mapping, Optional

from core.models import ScaledRange, SubjectRow
from core.scaling import score_or_none

EXPORT_FIELDS = [
    "subject",
    "raw_result",
    "lower_result",
    "upper_result",
    "scaled_score",
    "lower_scaled_score",
    "upper_scaled_score",
]


def project_for_export(
    rows: List[SubjectRow],
    scaled_scores_by_row_id: Mapping[str, ScaledRange],
    range_mode: bool,
) -> List[Dict[str, Any]]:
    """
    Strip internal fields (row id, validation rule) and attach scaled scores.
    Rows without a subject are dropped. Outside range mode the result bounds
    are nulled; scaled scores that errored or are missing become None.
    """
    records = []
    for row in rows:
        if not row.subject:
            continue
        scaled: Optional[ScaledRange] = scaled_scores_by_row_id.get(row.id)
        records.append({
            "subject": row.subject,
            "raw_result": row.raw_result,
            "lower_result": row.lower_result if range_mode else None,
            "upper_result": row.upper_result if range_mode else None,
            "scaled_score": score_or_none(scaled.result) if scaled else None,
            "lower_scaled_score": score_or_none(scaled.lower) if scaled else None,
            "upper_scaled_score": score_or_none(scaled.upper) if scaled else None,
        })
    return records
