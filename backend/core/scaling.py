"""
scaling.py — Scaling Oracle interface and the table-driven implementation.

The engine treats scaling as an opaque function:

    oracle(canonical_subject_name, value) -> ScalingResult

which never raises for expected failures; an unknown subject or an
unscalable value comes back as ScalingResult.failure(message).

TableScalingOracle scales General subjects with a logistic curve
(100 / (1 + e^-(a*x + k)), rounded to one decimal place) using the a/k
parameters from the subject mapping, and Applied / VET subjects through a
(subject, result) -> scaled score table.
"""

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple, Union

import numpy as np
import pandas as pd

from core.subjects import APPLIED, GENERAL, VET, SubjectMetadataLookup

logger = logging.getLogger(__name__)

ScaleValue = Union[str, int, float]


@dataclass(frozen=True)
class ScalingResult:
    scaled_score: Optional[float] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, score: float) -> "ScalingResult":
        return cls(scaled_score=float(score))

    @classmethod
    def failure(cls, message: str) -> "ScalingResult":
        return cls(error=message)

    @property
    def ok(self) -> bool:
        return self.error is None and self.scaled_score is not None

    def to_dict(self) -> Dict:
        if self.ok:
            return {"scaled_score": self.scaled_score}
        return {"error": self.error or "No scaled score"}


# Any callable with this shape can stand in for the oracle (tests use a table double)
ScalingOracle = Callable[[str, ScaleValue], ScalingResult]


def score_or_none(result: Optional[ScalingResult]) -> Optional[float]:
    """Return the scaled score of a successful result, else None."""
    if result is None or not result.ok:
        return None
    return result.scaled_score


def _round_half_up(value: float, places: int = 1) -> float:
    factor = 10 ** places
    return math.floor(value * factor + 0.5) / factor


class TableScalingOracle:
    """Scaling oracle backed by the subject mapping and an Applied/VET table."""

    def __init__(
        self,
        lookup: SubjectMetadataLookup,
        result_table: Dict[Tuple[str, str], float],
    ):
        self.lookup = lookup
        # Keys are (lower-cased subject name, upper-cased result)
        self.result_table = result_table

    def __call__(self, subject: str, value: ScaleValue) -> ScalingResult:
        if not subject or value is None:
            return ScalingResult.failure("Missing required parameters")

        metadata = self.lookup.by_canonical_name(subject)
        if metadata is None:
            return ScalingResult.failure(f"No parameters found for subject: {subject}")

        if metadata.subject_type == GENERAL:
            return self._scale_general(metadata, value)
        if metadata.subject_type in (APPLIED, VET):
            return self._scale_tabled(metadata.canonical_name, value)
        return ScalingResult.failure("Invalid subject type")

    def _scale_general(self, metadata, value: ScaleValue) -> ScalingResult:
        try:
            numeric = float(str(value).strip())
        except (TypeError, ValueError):
            return ScalingResult.failure("General subjects require a valid numeric result")
        if not math.isfinite(numeric):
            return ScalingResult.failure("General subjects require a valid numeric result")
        if numeric < 0 or numeric > 100:
            return ScalingResult.failure("General subject scores must be between 0 and 100")
        if metadata.a is None or metadata.k is None:
            return ScalingResult.failure("Missing scaling parameters for subject")

        scaled = 100.0 / (1.0 + float(np.exp(-(metadata.a * numeric + metadata.k))))
        return ScalingResult.success(_round_half_up(scaled, 1))

    def _scale_tabled(self, subject: str, value: ScaleValue) -> ScalingResult:
        if not isinstance(value, str):
            return ScalingResult.failure("Applied/VET subjects require a string result")
        result = value.strip().upper()
        scaled = self.result_table.get((subject.strip().lower(), result))
        if scaled is None:
            return ScalingResult.failure(f"No scaling mapping found for {subject} result: {result}")
        return ScalingResult.success(scaled)


# ── Loading ─────────────────────────────────────────────────────────

def result_table_from_dataframe(df: pd.DataFrame) -> Dict[Tuple[str, str], float]:
    """Build the Applied/VET table from 'Subject', 'Result', 'Scaled Score' columns."""
    df = df.rename(columns=lambda c: str(c).strip())
    missing = [c for c in ("Subject", "Result", "Scaled Score") if c not in df.columns]
    if missing:
        raise ValueError(f"Applied/VET scaling table is missing columns: {missing}")

    table = {}
    for record in df.fillna("").to_dict(orient="records"):
        subject = str(record["Subject"]).strip()
        result = str(record["Result"]).strip().upper()
        raw_score = str(record["Scaled Score"]).strip()
        if not subject or not result or not raw_score:
            continue
        if raw_score.lower() == "null":
            score = 0.0
        else:
            try:
                score = float(raw_score)
            except (TypeError, ValueError):
                logger.warning("Skipping non-numeric scaled score for %s %s: %r", subject, result, raw_score)
                continue
        table[(subject.lower(), result)] = score
    return table


def load_scaling_oracle(lookup: SubjectMetadataLookup, table_path) -> TableScalingOracle:
    """Create a TableScalingOracle from a loaded lookup and the Applied/VET CSV."""
    path = Path(table_path)
    df = pd.read_csv(path, dtype=str)
    table = result_table_from_dataframe(df)
    logger.info("Loaded %d Applied/VET scaling entries from %s", len(table), path.name)
    return TableScalingOracle(lookup, table)
