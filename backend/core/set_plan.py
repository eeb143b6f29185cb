"""
set_plan.py — Planning results from a target rank instead of a raw mark.

A student picks a rank per subject and the plan works out the result range
that rank implies:
  - General: the raw-score percentiles for the rank, read from the SET plan
    percentile table (e.g. "Great" is the 75th to 90th percentile)
  - Applied: the rank is a grade range such as "B - A"
  - VET: the only rank is "Pass"

The lower result stands in for the raw result. Rows are charted in range
mode with the middle marker on the lower bound, and the TE / ATAR ranges
come from the scaled bounds.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from core.atar import INELIGIBLE, atar_range, student_te_scores
from core.chart import prepare_chart
from core.cohort import scale_rows
from core.models import SubjectRow, optional_text
from core.results import canonical_number
from core.scaling import ScalingOracle
from core.subjects import APPLIED, GENERAL, VET, SubjectMetadata, SubjectMetadataLookup

logger = logging.getLogger(__name__)

# Raw-score percentile bounds for each General rank
RANK_PERCENTILE_RANGES = {
    "Best": ("90%", "99%"),
    "Great": ("75%", "90%"),
    "Above Average": ("50%", "75%"),
    "Below Average": ("25%", "50%"),
}
PERCENTILES = ("25%", "50%", "75%", "90%", "99%")

RANK_OPTIONS = {
    GENERAL: list(RANK_PERCENTILE_RANGES),
    APPLIED: ["B - A", "B - C"],
    VET: ["Pass"],
}

CALCULATION_ERROR = "Calculation Error"
MISSING_RESULT = "Missing Result"


# ── Percentile table ────────────────────────────────────────────────

class SetPlanTable:
    """Raw and scaled percentile scores per subject, matched case-insensitively."""

    def __init__(self, raw: Dict[str, Dict[str, float]], scaled: Dict[str, Dict[str, float]]):
        self._raw = {name.casefold(): values for name, values in raw.items()}
        self._scaled = {name.casefold(): values for name, values in scaled.items()}

    def __len__(self) -> int:
        return len(self._raw)

    def _bounds(self, table, subject, rank) -> Optional[Tuple[float, float]]:
        percentiles = RANK_PERCENTILE_RANGES.get(rank)
        values = table.get(str(subject or "").strip().casefold())
        if percentiles is None or values is None:
            return None
        lower, upper = (values.get(p) for p in percentiles)
        if lower is None or upper is None:
            return None
        return lower, upper

    def result_range(self, subject: Optional[str], rank: Optional[str]) -> Optional[str]:
        """Raw result range such as '62-78' for a General subject and rank."""
        bounds = self._bounds(self._raw, subject, rank)
        if bounds is None:
            return None
        return f"{canonical_number(bounds[0])}-{canonical_number(bounds[1])}"

    def scaled_range(self, subject: Optional[str], rank: Optional[str]) -> Optional[Tuple[float, float]]:
        return self._bounds(self._scaled, subject, rank)


def set_plan_table_from_dataframe(df: pd.DataFrame) -> SetPlanTable:
    """
    Build a SetPlanTable from a frame with Subject, Raw_or_Scaled and one
    column per percentile. Subjects need both a Raw and a Scaled row.
    """
    df = df.rename(columns=lambda c: str(c).strip())
    required = ["Subject", "Raw_or_Scaled", *PERCENTILES]
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"SET plan data is missing required columns: {missing}")

    tables: Dict[str, Dict[str, Dict[str, float]]] = {"raw": {}, "scaled": {}}
    for record in df.to_dict(orient="records"):
        subject = optional_text(record.get("Subject"))
        kind = (optional_text(record.get("Raw_or_Scaled")) or "").lower()
        if not subject or kind not in tables:
            continue
        try:
            values = {p: float(record[p]) for p in PERCENTILES}
        except (TypeError, ValueError):
            logger.warning("Skipping SET plan row with non-numeric percentiles: %s", record)
            continue
        tables[kind][subject] = values

    incomplete = set(tables["raw"]) ^ set(tables["scaled"])
    for subject in sorted(incomplete):
        logger.warning("SET plan data for %s needs both Raw and Scaled rows", subject)
        tables["raw"].pop(subject, None)
        tables["scaled"].pop(subject, None)

    return SetPlanTable(tables["raw"], tables["scaled"])


def load_set_plan_table(file_path) -> SetPlanTable:
    path = Path(file_path)
    if path.suffix.lower() != ".csv":
        raise ValueError(f"Unsupported SET plan data file type: {path.suffix}")
    table = set_plan_table_from_dataframe(pd.read_csv(path, dtype=str))
    logger.info("Loaded SET plan percentiles for %d subjects from %s", len(table), path.name)
    return table


# ── Rank -> result range ────────────────────────────────────────────

def result_range_from_rank(subject_type: Optional[str], rank: Optional[str]) -> Optional[str]:
    """Result range for Applied and VET ranks; General ranges come from the table."""
    if not rank:
        return None
    if subject_type == APPLIED:
        return "".join(rank.split())
    if subject_type == VET and rank.strip() == "Pass":
        return "Pass"
    return None


def split_result_range(result_range: Optional[str]) -> Optional[Tuple[str, str]]:
    """'B-A' -> ('B', 'A'). Anything other than exactly two parts gives None."""
    if not result_range:
        return None
    parts = result_range.split("-")
    if len(parts) != 2:
        return None
    lower, upper = parts[0].strip(), parts[1].strip()
    if not lower or not upper:
        return None
    return lower, upper


@dataclass(frozen=True)
class PlannedSubject:
    subject: Optional[str]
    rank: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlannedSubject":
        return cls(
            subject=optional_text(data.get("subject")),
            rank=optional_text(data.get("rank")),
        )


def _metadata(lookup: SubjectMetadataLookup, subject: Optional[str]) -> Optional[SubjectMetadata]:
    return lookup.by_display_name(subject) or lookup.by_canonical_name(subject)


def plan_result_range(planned: PlannedSubject, lookup: SubjectMetadataLookup,
                      table: SetPlanTable) -> Optional[str]:
    metadata = _metadata(lookup, planned.subject)
    if metadata is None or not planned.rank:
        return None
    if metadata.subject_type == GENERAL:
        return (table.result_range(metadata.display_name, planned.rank)
                or table.result_range(metadata.canonical_name, planned.rank))
    return result_range_from_rank(metadata.subject_type, planned.rank)


def plan_row(planned: PlannedSubject, lookup: SubjectMetadataLookup,
             table: SetPlanTable) -> SubjectRow:
    """
    SubjectRow for one planned subject. The lower result doubles as the raw
    result; VET uses 'Pass' for all three. Rows without a usable range keep
    their subject and have no results.
    """
    metadata = _metadata(lookup, planned.subject)
    if metadata is None:
        if planned.subject:
            logger.warning("SET plan: no mapping found for subject: %s", planned.subject)
        return SubjectRow(subject=planned.subject)

    result_range = plan_result_range(planned, lookup, table)
    row = SubjectRow(subject=metadata.display_name, validation_rule=metadata.validation_rule)
    if result_range is None:
        return row

    if metadata.subject_type == VET:
        bounds = (result_range, result_range)
    else:
        bounds = split_result_range(result_range)
    if bounds is None:
        logger.warning("SET plan: cannot read result range %r for %s", result_range, metadata.display_name)
        return row

    lower, upper = bounds
    return SubjectRow(
        id=row.id,
        subject=row.subject,
        raw_result=lower,
        lower_result=lower,
        upper_result=upper,
        validation_rule=row.validation_rule,
    )


def format_scaled_range(row: SubjectRow, lookup: SubjectMetadataLookup,
                        oracle: ScalingOracle) -> Optional[str]:
    """
    Scaled score text for a planned row: 'lower - upper' to one decimal
    place, a single value for VET, or 'Calculation Error' when scaling fails.
    """
    metadata = _metadata(lookup, row.subject)
    if metadata is None:
        return None
    name = metadata.canonical_name

    if metadata.subject_type == VET:
        if not row.raw_result:
            return MISSING_RESULT
        scaled = oracle(name, row.raw_result)
        return f"{scaled.scaled_score:.1f}" if scaled.ok else CALCULATION_ERROR

    if metadata.subject_type in (GENERAL, APPLIED) and row.lower_result and row.upper_result:
        lower = oracle(name, row.lower_result)
        upper = oracle(name, row.upper_result)
        if not lower.ok or not upper.ok:
            return CALCULATION_ERROR
        return f"{lower.scaled_score:.1f} - {upper.scaled_score:.1f}"

    return None


# ── Plan summary ────────────────────────────────────────────────────

def _te_range_display(te_scores: Dict[str, Any]) -> str:
    if te_scores["te"] == INELIGIBLE:
        return INELIGIBLE
    return f"{te_scores['lower_te']:.1f} - {te_scores['upper_te']:.1f}"


def _atar_range_display(atar: Dict[str, Any]) -> str:
    if atar["status"] != "success":
        return atar["display"]
    return f"{atar['lower_atar']:.2f} - {atar['upper_atar']:.2f}"


def summarise_plan(
    planned: List[PlannedSubject],
    lookup: SubjectMetadataLookup,
    oracle: ScalingOracle,
    table: SetPlanTable,
) -> Dict[str, Any]:
    """Rows, chart, TE range and ATAR range for a set of planned subjects."""
    rows = [plan_row(p, lookup, table) for p in planned]
    chart = prepare_chart(rows, True, lookup, oracle, skip_middle=True)

    _, subject_scores = scale_rows(rows, lookup, oracle)
    te_scores = student_te_scores(subject_scores)
    atar = atar_range(te_scores["te"], te_scores["lower_te"], te_scores["upper_te"])

    planned_rows = []
    for plan, row in zip(planned, rows):
        planned_rows.append({
            **row.to_dict(),
            "rank": plan.rank,
            "result_range": plan_result_range(plan, lookup, table),
            "scaled_display": format_scaled_range(row, lookup, oracle),
        })

    return {
        "rows": planned_rows,
        "chart": chart.to_dict(),
        **te_scores,
        "te_range": _te_range_display(te_scores),
        "atar": atar,
        "atar_range": _atar_range_display(atar),
    }
