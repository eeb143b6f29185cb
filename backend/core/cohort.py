"""
cohort.py — Ranking a student's subject results and summarising a cohort.

Each StudentResult becomes a SubjectRow with lower/upper bounds derived from
the cohort's result variation, ordered by scaled score. Results whose scaling
fails sort last instead of being dropped.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Tuple

from core.atar import INELIGIBLE, SubjectScore, atar_range, student_te_scores
from core.export import project_for_export
from core.models import ScaledRange, StudentResult, SubjectRow, optional_text
from core.ranging import derive_bounds
from core.results import canonical_number
from core.scaling import ScalingOracle, ScalingResult, score_or_none
from core.subjects import GENERAL, RULE_NUMERIC, SubjectMetadataLookup

logger = logging.getLogger(__name__)


def _raw_text(value: Any) -> Optional[str]:
    """Raw results arrive as strings or numbers from spreadsheets; keep a single text form."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if not math.isfinite(value):
            return None
        return canonical_number(value)
    return optional_text(value)


def _sort_key(result: Optional[ScalingResult]) -> float:
    if result is None or not result.ok:
        return -math.inf
    return result.scaled_score


def rank_by_subject_results(
    results: List[StudentResult],
    variation: float,
    lookup: SubjectMetadataLookup,
    oracle: ScalingOracle,
) -> List[SubjectRow]:
    """
    Build one SubjectRow per result, sorted by scaled score (highest first).

    General subjects get bounds of +/- variation on the 0-100 scale; other
    subject types use the raw result for both bounds. Subjects missing from
    the lookup keep their raw name, have no validation rule and are treated
    as General.
    """
    ranked: List[Tuple[SubjectRow, float]] = []
    for result in results:
        metadata = lookup.by_canonical_name(result.subject)
        if metadata is None:
            logger.warning("Cohort ranking: no mapping found for subject: %s", result.subject)
        display = metadata.display_name if metadata else result.subject
        rule = metadata.validation_rule if metadata else None
        subject_type = metadata.subject_type if metadata else GENERAL
        canonical = metadata.canonical_name if metadata else result.subject
        raw = _raw_text(result.raw_result)

        if subject_type == GENERAL:
            lower, upper = derive_bounds(raw, rule or RULE_NUMERIC, variation)
        else:
            lower, upper = raw, raw

        scaled = oracle(canonical, raw) if raw is not None else None
        if scaled is not None and not scaled.ok:
            logger.warning(
                "Cohort ranking: could not scale %s result %s: %s",
                result.subject, raw, scaled.error,
            )

        row = SubjectRow(
            subject=display,
            raw_result=raw,
            lower_result=lower,
            upper_result=upper,
            validation_rule=rule,
        )
        ranked.append((row, _sort_key(scaled)))

    # list.sort is stable, so equal and failed scores keep input order
    ranked.sort(key=lambda item: item[1], reverse=True)
    return [row for row, _ in ranked]


def scale_row(
    row: SubjectRow,
    lookup: SubjectMetadataLookup,
    oracle: ScalingOracle,
) -> Optional[ScaledRange]:
    """Scale a row's lower, raw and upper results. None if the subject is unknown."""
    metadata = lookup.by_display_name(row.subject) or lookup.by_canonical_name(row.subject)
    if metadata is None:
        return None

    def _scale(value: Optional[str]) -> Optional[ScalingResult]:
        return oracle(metadata.canonical_name, value) if value is not None else None

    return ScaledRange(
        lower=_scale(row.lower_result),
        result=_scale(row.raw_result),
        upper=_scale(row.upper_result),
    )


def scale_rows(
    rows: List[SubjectRow],
    lookup: SubjectMetadataLookup,
    oracle: ScalingOracle,
) -> Tuple[Dict[str, ScaledRange], List[SubjectScore]]:
    """
    Scale every row. Returns the scaled ranges keyed by row id, and the
    subject scores (rows whose raw result scaled) used for TE aggregation.
    """
    scaled_by_id: Dict[str, ScaledRange] = {}
    subject_scores: List[SubjectScore] = []

    for row in rows:
        scaled = scale_row(row, lookup, oracle)
        if scaled is None:
            continue
        scaled_by_id[row.id] = scaled
        if scaled.result is None or not scaled.result.ok:
            continue
        metadata = lookup.by_display_name(row.subject) or lookup.by_canonical_name(row.subject)
        subject_scores.append(SubjectScore(
            subject=metadata.canonical_name,
            subject_type=metadata.subject_type,
            scaled_score=scaled.result.scaled_score,
            lower_scaled_score=score_or_none(scaled.lower),
            upper_scaled_score=score_or_none(scaled.upper),
        ))
    return scaled_by_id, subject_scores


def summarise_student(
    student: str,
    results: List[StudentResult],
    variation: float,
    lookup: SubjectMetadataLookup,
    oracle: ScalingOracle,
) -> Dict[str, Any]:
    """Ranked rows, export records, TE scores and ATAR range for one student."""
    rows = rank_by_subject_results(results, variation, lookup, oracle)
    scaled_by_id, subject_scores = scale_rows(rows, lookup, oracle)
    te_scores = student_te_scores(subject_scores)
    return {
        "student": student,
        "rows": rows,
        "scaled": scaled_by_id,
        "results": project_for_export(rows, scaled_by_id, range_mode=True),
        **te_scores,
        "atar": atar_range(te_scores["te"], te_scores["lower_te"], te_scores["upper_te"]),
    }


def summarise_cohort(
    results_by_student: Dict[str, List[StudentResult]],
    variation: float,
    lookup: SubjectMetadataLookup,
    oracle: ScalingOracle,
) -> List[Dict[str, Any]]:
    """Summarise every student, ordered by nominal TE with ineligible students last."""
    summaries = [
        summarise_student(student, results, variation, lookup, oracle)
        for student, results in results_by_student.items()
    ]

    def _te_key(summary: Dict[str, Any]) -> float:
        te = summary["te"]
        return -math.inf if te == INELIGIBLE else float(te)

    summaries.sort(key=_te_key, reverse=True)
    return summaries


def summary_to_dict(summary: Dict[str, Any]) -> Dict[str, Any]:
    """JSON-safe view of a student summary."""
    return {
        "student": summary["student"],
        "rows": [row.to_dict() for row in summary["rows"]],
        "results": summary["results"],
        "te": summary["te"],
        "lower_te": summary["lower_te"],
        "upper_te": summary["upper_te"],
        "atar": summary["atar"],
    }
