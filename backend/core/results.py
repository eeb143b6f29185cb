"""
results.py — Raw result parsing and validation.

Validates a raw textual or numeric result against a subject's validation rule:
  0-100  -> finite number in [0, 100], normalised to its canonical string
  A-E    -> single grade letter, upper-cased
  Pass   -> the word "Pass" in any case

Blank input is valid and means "no value". Invalid input is reported through
ParsedResult.is_valid; parsing never raises.
"""

import math
import re
from typing import Any, NamedTuple, Optional

from core.scaling import ScalingOracle, ScalingResult
from core.subjects import RULE_GRADE, RULE_NUMERIC, RULE_PASS, normalize_rule

GRADE_ORDER = ["E", "D", "C", "B", "A"]
PASS_VALUE = "Pass"

_DECIMAL_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
# Bounds are rounded to this many places so float noise never reaches the text
CANONICAL_PLACES = 10


class ParsedResult(NamedTuple):
    value: Optional[str]
    is_valid: bool

    @property
    def is_empty(self) -> bool:
        return self.is_valid and self.value is None


EMPTY = ParsedResult(None, True)
INVALID = ParsedResult(None, False)


def canonical_number(number: float) -> str:
    """Plain decimal text for a number: 75.0 -> '75', 62.50 -> '62.5', 1e-05 -> '0.00001'."""
    text = format(round(float(number), CANONICAL_PLACES), f".{CANONICAL_PLACES}f")
    text = text.rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def parse_number(raw: Any) -> Optional[float]:
    """Parse a 0-100 mark, returning None if it is not a finite number in range."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        number = float(raw)
    else:
        text = str(raw).strip()
        if not _DECIMAL_RE.match(text):
            return None
        number = float(text)
    if not math.isfinite(number) or number < 0 or number > 100:
        return None
    return number + 0.0  # folds -0.0 into 0.0


def parse_result(raw: Any, validation_rule: Optional[str]) -> ParsedResult:
    """Validate and normalise a raw result for the given validation rule."""
    if raw is None:
        return EMPTY
    text = str(raw).strip()
    if not text:
        return EMPTY

    rule = normalize_rule(validation_rule)
    if rule == RULE_NUMERIC:
        number = parse_number(raw)
        if number is None:
            return INVALID
        return ParsedResult(canonical_number(number), True)

    if rule == RULE_GRADE:
        grade = text.upper()
        if grade in GRADE_ORDER:
            return ParsedResult(grade, True)
        return INVALID

    if rule == RULE_PASS:
        if text.lower() == PASS_VALUE.lower():
            return ParsedResult(PASS_VALUE, True)
        return INVALID

    return INVALID


def result_order(value: Optional[str], validation_rule: Optional[str]) -> Optional[float]:
    """
    Sort key for a parsed result under its rule's ordering.
    Numeric marks order by value, grades E < D < C < B < A, and Pass is a
    single point. Returns None for values that do not parse.
    """
    parsed = parse_result(value, validation_rule)
    if not parsed.is_valid or parsed.value is None:
        return None
    rule = normalize_rule(validation_rule)
    if rule == RULE_NUMERIC:
        return float(parsed.value)
    if rule == RULE_GRADE:
        return float(GRADE_ORDER.index(parsed.value))
    return 0.0


def parse_and_scale(
    subject_name: str,
    raw: Any,
    validation_rule: Optional[str],
    oracle: ScalingOracle,
) -> Optional[ScalingResult]:
    """
    Parse a raw result and scale it. Returns None when there is nothing to
    scale (missing subject, blank or invalid value).
    """
    if not subject_name or not validation_rule:
        return None
    parsed = parse_result(raw, validation_rule)
    if not parsed.is_valid or parsed.value is None:
        return None
    return oracle(subject_name, parsed.value)
