"""
chart.py — Shared-axis preparation for the scaled score bar chart.

Turns subject rows into stacked-bar segments on one axis:
  - scales each row's lower / raw / upper result through the oracle
  - drops rows that cannot be resolved or scaled (one bad row must not
    distort the shared axis)
  - quantises the axis to multiples of 10 inside [0, 100]
  - expresses every bar as base + middle + upper offsets from axis_min,
    clipped so no bar is negative or runs past axis_max
"""

import logging
import math
from typing import List, NamedTuple, Optional, Tuple

from core.models import ChartData, ChartDatum, SubjectRow
from core.scaling import ScalingOracle, ScalingResult
from core.subjects import SubjectMetadataLookup

logger = logging.getLogger(__name__)

MIN_AXIS_STEP = 10
# Width added to zero-width ranges so they still render as a sliver
BAR_VISUAL_OFFSET = 0.5
DEFAULT_AXIS = (0, 100)


class _ScaledEntry(NamedTuple):
    subject: str
    lower: float
    middle: float
    upper: float


def _scale_bound(oracle: ScalingOracle, subject_name: str, value: Optional[str],
                 label: str, display: str) -> Tuple[bool, Optional[ScalingResult]]:
    """Scale one bound. Returns (ok, result); ok is False when the oracle failed."""
    if value is None or value == "":
        return True, None
    result = oracle(subject_name, value)
    if not result.ok:
        logger.warning(
            "Chart prep: error calculating %s scaled score for %s (%s): %s",
            label, subject_name, display, result.error,
        )
        return False, None
    return True, result


def _scaled_entries(
    rows: List[SubjectRow],
    lookup: SubjectMetadataLookup,
    oracle: ScalingOracle,
    skip_middle: bool,
) -> List[_ScaledEntry]:
    entries = []
    for row in rows:
        if not row.subject or not row.raw_result:
            continue

        metadata = lookup.by_display_name(row.subject)
        if metadata is None:
            logger.warning("Chart prep: no mapping found for subject: %s", row.subject)
            continue
        subject_name = metadata.canonical_name

        middle = None
        if not skip_middle:
            ok, middle = _scale_bound(oracle, subject_name, row.raw_result, "middle", row.subject)
            if not ok:
                continue

        ok, lower = _scale_bound(oracle, subject_name, row.lower_result, "lower", row.subject)
        if not ok:
            continue
        ok, upper = _scale_bound(oracle, subject_name, row.upper_result, "upper", row.subject)
        if not ok:
            continue

        if skip_middle:
            if lower is None or upper is None:
                logger.warning(
                    "Chart prep: missing lower or upper result for %s with middle skipped",
                    subject_name,
                )
                continue
            lower_value = lower.scaled_score
            middle_value = lower_value
            upper_value = upper.scaled_score
        else:
            if middle is None:
                logger.warning("Chart prep: missing middle score result for %s", subject_name)
                continue
            middle_value = middle.scaled_score
            lower_value = lower.scaled_score if lower is not None else middle_value
            upper_value = upper.scaled_score if upper is not None else middle_value
            # Keep lower <= middle <= upper whatever the oracle returned
            if lower_value > middle_value:
                lower_value = middle_value
            if upper_value < middle_value:
                upper_value = middle_value

        entries.append(_ScaledEntry(row.subject, lower_value, middle_value, upper_value))
    return entries


def compute_axis(lowest: float, highest: float) -> Tuple[int, int]:
    """Quantise [lowest, highest] outward to multiples of MIN_AXIS_STEP within [0, 100]."""
    axis_min = max(0, math.floor(lowest / MIN_AXIS_STEP) * MIN_AXIS_STEP)
    axis_max = min(100, math.ceil(highest / MIN_AXIS_STEP) * MIN_AXIS_STEP)
    if axis_max < axis_min:
        logger.warning(
            "Calculated axis max (%s) was less than axis min (%s). Resetting max to 100.",
            axis_max, axis_min,
        )
        axis_max = 100
    return axis_min, axis_max


def _to_datum(entry: _ScaledEntry, range_mode: bool, skip_middle: bool,
              axis_min: float, axis_max: float) -> ChartDatum:
    width = axis_max - axis_min

    if not range_mode:
        base = min(max(0.0, entry.middle - axis_min), width)
        return ChartDatum(
            subject=entry.subject, base=base, middle=None, upper=None,
            lower_value=entry.lower, middle_value=entry.middle, upper_value=entry.upper,
        )

    visual_width = BAR_VISUAL_OFFSET if entry.lower == entry.upper else 0.0
    adjusted_upper = entry.upper + visual_width

    base = max(0.0, entry.lower - axis_min)
    if skip_middle:
        middle = 0.0
        upper = max(0.0, adjusted_upper - entry.lower)
    else:
        middle = max(0.0, entry.middle - entry.lower)
        upper = max(0.0, adjusted_upper - entry.middle)

    # Overflow comes off the upper segment only. On a zero-width axis (a lone
    # range sitting on a multiple of 10) this also removes the visual offset.
    total = base + middle + upper
    if total > width:
        upper = max(0.0, upper - (total - width))

    return ChartDatum(
        subject=entry.subject, base=base, middle=middle, upper=upper,
        lower_value=entry.lower, middle_value=entry.middle, upper_value=entry.upper,
    )


def prepare_chart(
    rows: List[SubjectRow],
    range_mode: bool,
    lookup: SubjectMetadataLookup,
    oracle: ScalingOracle,
    skip_middle: bool = False,
) -> ChartData:
    """
    Prepare stacked-bar chart data for a set of subject rows.

    With skip_middle the raw result is not scaled: both bounds must scale and
    the middle marker sits on the lower bound. Rows that cannot be resolved
    are dropped; an empty chart gets the default [0, 100] axis.
    Output is sorted by middle_value, highest first.
    """
    entries = _scaled_entries(rows, lookup, oracle, skip_middle)
    if not entries:
        return ChartData(data=[], axis_min=DEFAULT_AXIS[0], axis_max=DEFAULT_AXIS[1])

    axis_min, axis_max = compute_axis(
        min(e.lower for e in entries),
        max(e.upper for e in entries),
    )

    data = [_to_datum(e, range_mode, skip_middle, axis_min, axis_max) for e in entries]
    data.sort(key=lambda d: d.middle_value, reverse=True)
    return ChartData(data=data, axis_min=axis_min, axis_max=axis_max)
