"""
scaling_graph.py — Raw score to scaled score curves for General subjects.

Each curve samples the scaling oracle across the 0-100 raw scale. Several
subjects are merged into one series of points keyed by raw score, the shape
a line chart plots directly:

    [{"raw_score": 0.0, "English": 2.3, "Physics": 3.7}, ...]
"""

import logging
from typing import Any, Dict, List, Optional

import numpy as np

from core.results import canonical_number
from core.scaling import ScalingOracle
from core.subjects import GENERAL, SubjectMetadataLookup

logger = logging.getLogger(__name__)

DEFAULT_STEP = 5


def raw_score_axis(step: float = DEFAULT_STEP) -> List[float]:
    """Raw scores from 0 to 100 inclusive, `step` apart."""
    step = float(step)
    if not 0 < step <= 100:
        raise ValueError(f"Raw score step must be in (0, 100], got {step}")
    # Whole steps that fit in 0-100, with a tolerance for float division
    count = int(np.floor(100.0 / step + 1e-9))
    axis = [float(canonical_number(p)) for p in np.arange(count + 1) * step]
    if axis[-1] < 100.0:
        axis.append(100.0)
    return axis


def scaling_curve(
    subject: str,
    lookup: SubjectMetadataLookup,
    oracle: ScalingOracle,
    step: float = DEFAULT_STEP,
) -> Optional[List[Dict[str, float]]]:
    """
    Scaled score at each raw score for one General subject.
    None when the subject is unknown or not General; raw scores the
    oracle cannot scale are left out of the curve.
    """
    metadata = lookup.by_display_name(subject) or lookup.by_canonical_name(subject)
    if metadata is None or metadata.subject_type != GENERAL:
        return None

    curve = []
    for raw in raw_score_axis(step):
        result = oracle(metadata.canonical_name, canonical_number(raw))
        if not result.ok:
            logger.warning(
                "Scaling graph: no scaled score for %s at %s: %s",
                metadata.canonical_name, raw, result.error,
            )
            continue
        curve.append({"raw_score": raw, "scaled_score": result.scaled_score})
    return curve


def scaling_graph_data(
    subjects: List[str],
    lookup: SubjectMetadataLookup,
    oracle: ScalingOracle,
    step: float = DEFAULT_STEP,
) -> Dict[str, Any]:
    """
    Merge the curves of several subjects into one point series.
    Subjects without a curve are listed under 'unavailable'.
    """
    series: Dict[float, Dict[str, float]] = {
        raw: {"raw_score": raw} for raw in raw_score_axis(step)
    }
    plotted, unavailable = [], []

    for subject in subjects:
        curve = scaling_curve(subject, lookup, oracle, step)
        if not curve:
            unavailable.append(subject)
            continue
        metadata = lookup.by_display_name(subject) or lookup.by_canonical_name(subject)
        name = metadata.display_name
        if name in plotted:
            continue
        plotted.append(name)
        for point in curve:
            series[point["raw_score"]][name] = point["scaled_score"]

    return {
        "data": list(series.values()),
        "subjects": plotted,
        "unavailable": unavailable,
    }


def available_graph_subjects(lookup: SubjectMetadataLookup) -> List[str]:
    """Display names of subjects that have a scaling curve, sorted."""
    names = [s.display_name for s in lookup.all() if s.subject_type == GENERAL]
    return sorted(names, key=str.lower)
