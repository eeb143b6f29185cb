"""
atar.py — Tertiary Entrance (TE) score aggregation and TE -> ATAR conversion.

TE is the better of:
  - the sum of the top 5 General scaled scores, or
  - the sum of the top 4 General scaled scores plus the best Applied or VET
    scaled score.

A student needs 5 General subjects, or 4 General plus at least one Applied
or VET subject, to be ATAR eligible.
"""

from typing import Any, Dict, List, NamedTuple, Optional

from core.subjects import APPLIED, GENERAL, VET

INELIGIBLE = "ATAR Ineligible"

ATAR_FLOOR = 30.0
ATAR_CEILING = 99.95

# 6th-degree polynomial, highest power first
TE_TO_ATAR_COEFFICIENTS = (
    -7.3159e-14,
    1.01772e-10,
    -4.37167e-08,
    1.93676e-06,
    0.002716082,
    -0.271855355,
    11.34274504,
)


class SubjectScore(NamedTuple):
    subject: str
    subject_type: str
    scaled_score: float
    lower_scaled_score: Optional[float] = None
    upper_scaled_score: Optional[float] = None

    @property
    def lower(self) -> float:
        return self.scaled_score if self.lower_scaled_score is None else self.lower_scaled_score

    @property
    def upper(self) -> float:
        return self.scaled_score if self.upper_scaled_score is None else self.upper_scaled_score


def is_atar_eligible(scores: List[SubjectScore]) -> bool:
    general = sum(1 for s in scores if s.subject_type == GENERAL)
    other = sum(1 for s in scores if s.subject_type in (APPLIED, VET))
    return general >= 5 or (general >= 4 and other >= 1)


def calculate_te(general: List[float], applied: List[float], vet: List[float]) -> float:
    ranked = sorted(general, reverse=True)
    top5 = sum(ranked[:5])
    top4 = sum(ranked[:4])
    best_other = max([0.0] + list(applied) + list(vet))
    return max(top5, top4 + best_other)


def _te_for(scores: List[SubjectScore], pick) -> float:
    return calculate_te(
        [pick(s) for s in scores if s.subject_type == GENERAL],
        [pick(s) for s in scores if s.subject_type == APPLIED],
        [pick(s) for s in scores if s.subject_type == VET],
    )


def student_te_scores(scores: List[SubjectScore]) -> Dict[str, Any]:
    """Nominal, lower and upper TE for a student, or INELIGIBLE for all three."""
    if not is_atar_eligible(scores):
        return {"te": INELIGIBLE, "lower_te": INELIGIBLE, "upper_te": INELIGIBLE}
    return {
        "te": round(_te_for(scores, lambda s: s.scaled_score), 1),
        "lower_te": round(_te_for(scores, lambda s: s.lower), 1),
        "upper_te": round(_te_for(scores, lambda s: s.upper), 1),
    }


def te_to_atar(te_score: float) -> float:
    """Convert a TE score to an ATAR, rounded to the nearest 0.05 in [30, 99.95]."""
    atar = 0.0
    for coefficient in TE_TO_ATAR_COEFFICIENTS:
        atar = atar * te_score + coefficient
    atar = round(atar * 20) / 20
    return min(ATAR_CEILING, max(ATAR_FLOOR, atar))


def _as_te(value: Any) -> Optional[float]:
    if value is None or value == INELIGIBLE:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def atar_range(te: Any, lower_te: Any, upper_te: Any) -> Dict[str, Any]:
    """
    ATAR range for a TE triple.

    status is 'ineligible' when the nominal TE is missing or ineligible,
    'invalid_input' when any TE cannot be read as a number, else 'success'.
    """
    empty = {"lower_atar": None, "nominal_atar": None, "upper_atar": None}

    if te is None or te == INELIGIBLE:
        return {"status": "ineligible", **empty, "display": te if isinstance(te, str) else "N/A"}
    if lower_te in (None, INELIGIBLE) or upper_te in (None, INELIGIBLE):
        return {"status": "ineligible", **empty, "display": "N/A"}

    values = [_as_te(lower_te), _as_te(te), _as_te(upper_te)]
    if any(v is None for v in values):
        return {"status": "invalid_input", **empty, "display": "Invalid TE Range"}

    lower, nominal, upper = (te_to_atar(v) for v in values)
    return {
        "status": "success",
        "lower_atar": lower,
        "nominal_atar": nominal,
        "upper_atar": upper,
        "display": f"{lower:.2f} - {nominal:.2f} - {upper:.2f}",
    }
