"""
ranging.py — Lower/upper bound derivation around raw results.

A numeric variation only means something on the 0-100 scale; grade (A-E) and
Pass results get a degenerate range where both bounds equal the result.
"""

import dataclasses
import math
from typing import Any, List, Optional, Tuple

from core.models import SubjectRow
from core.results import (
    ParsedResult,
    canonical_number,
    parse_number,
    parse_result,
    result_order,
)
from core.subjects import RULE_GRADE, RULE_NUMERIC, RULE_PASS, normalize_rule

Bounds = Tuple[Optional[str], Optional[str]]


def _margin(variation: Any) -> float:
    try:
        margin = abs(float(variation))
    except (TypeError, ValueError):
        return 0.0
    return margin if math.isfinite(margin) else 0.0


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _numeric_bounds(number: float, margin: float) -> Bounds:
    return (
        canonical_number(_clamp(number - margin)),
        canonical_number(_clamp(number + margin)),
    )


def apply_variation(rows: List[SubjectRow], variation: float) -> List[SubjectRow]:
    """
    Apply a symmetric variation to every row's raw result.

    Rows without a subject or validation rule, 0-100 rows whose raw result is
    missing or invalid, and rows with an unknown rule are returned untouched.
    A row is only copied when one of its bounds actually changes, so callers
    can detect changes by identity.
    """
    margin = _margin(variation)
    updated = []
    for row in rows:
        if not row.subject or not row.validation_rule:
            updated.append(row)
            continue

        rule = normalize_rule(row.validation_rule)
        if rule == RULE_NUMERIC:
            number = parse_number(row.raw_result)
            if number is None:
                updated.append(row)
                continue
            lower, upper = _numeric_bounds(number, margin)
        elif rule in (RULE_GRADE, RULE_PASS):
            lower, upper = row.raw_result, row.raw_result
        else:
            updated.append(row)
            continue

        if lower == row.lower_result and upper == row.upper_result:
            updated.append(row)
        else:
            updated.append(dataclasses.replace(row, lower_result=lower, upper_result=upper))
    return updated


def derive_bounds(raw: Any, validation_rule: Optional[str], margin: float) -> Bounds:
    """
    Single-value variant of apply_variation used for cohort ranking.
    Anything that does not parse yields (None, None).
    """
    rule = normalize_rule(validation_rule)
    if rule == RULE_NUMERIC:
        number = parse_number(raw)
        if number is None:
            return None, None
        return _numeric_bounds(number, _margin(margin))

    if rule in (RULE_GRADE, RULE_PASS):
        parsed = parse_result(raw, rule)
        if not parsed.is_valid or parsed.value is None:
            return None, None
        return parsed.value, parsed.value

    return None, None


def parse_and_range(
    raw: Any,
    validation_rule: Optional[str],
    variation: float,
) -> Tuple[ParsedResult, Optional[str], Optional[str]]:
    """Parse a raw result and derive its bounds in one step."""
    parsed = parse_result(raw, validation_rule)
    if not parsed.is_valid or parsed.value is None:
        return parsed, None, None
    lower, upper = derive_bounds(parsed.value, validation_rule, variation)
    return parsed, lower, upper


def enforce_bound_order(row: SubjectRow) -> SubjectRow:
    """
    Clamp bounds that fall on the wrong side of the raw result.
    A lower bound above the result, or an upper bound below it, is replaced
    by the result itself. Unparsable values are left for the caller to flag.
    """
    raw_key = result_order(row.raw_result, row.validation_rule)
    if raw_key is None:
        return row

    lower, upper = row.lower_result, row.upper_result
    lower_key = result_order(lower, row.validation_rule)
    upper_key = result_order(upper, row.validation_rule)
    if lower_key is not None and lower_key > raw_key:
        lower = row.raw_result
    if upper_key is not None and upper_key < raw_key:
        upper = row.raw_result

    if lower == row.lower_result and upper == row.upper_result:
        return row
    return dataclasses.replace(row, lower_result=lower, upper_result=upper)
