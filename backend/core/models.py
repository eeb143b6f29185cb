"""
models.py — Value objects passed between engine functions.

All fields that may be missing use None as the one "absent" value; blank
strings are collapsed to None when rows are built from request payloads.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from core.scaling import ScalingResult, score_or_none


def new_row_id() -> str:
    return uuid.uuid4().hex


def optional_text(value: Any) -> Optional[str]:
    """Return value as a stripped string, or None when it is missing or blank."""
    if value is None:
        return None
    if isinstance(value, float) and value != value:  # NaN from pandas
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class SubjectRow:
    """One subject input slot. `id` is generated once and never reused."""

    id: str = field(default_factory=new_row_id)
    subject: Optional[str] = None
    raw_result: Optional[str] = None
    lower_result: Optional[str] = None
    upper_result: Optional[str] = None
    validation_rule: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubjectRow":
        row_id = optional_text(data.get("id")) or new_row_id()
        return cls(
            id=row_id,
            subject=optional_text(data.get("subject")),
            raw_result=optional_text(data.get("raw_result")),
            lower_result=optional_text(data.get("lower_result")),
            upper_result=optional_text(data.get("upper_result")),
            validation_rule=optional_text(data.get("validation_rule")),
        )

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "id": self.id,
            "subject": self.subject,
            "raw_result": self.raw_result,
            "lower_result": self.lower_result,
            "upper_result": self.upper_result,
            "validation_rule": self.validation_rule,
        }


@dataclass(frozen=True)
class StudentResult:
    subject: str
    raw_result: Union[str, int, float, None]
    student: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StudentResult":
        return cls(
            subject=optional_text(data.get("subject")) or "",
            raw_result=data.get("raw_result"),
            student=optional_text(data.get("student")),
        )


@dataclass(frozen=True)
class ScaledRange:
    """Scaling results for a row's lower bound, raw result and upper bound."""

    lower: Optional[ScalingResult] = None
    result: Optional[ScalingResult] = None
    upper: Optional[ScalingResult] = None

    def to_dict(self) -> Dict[str, Optional[float]]:
        return {
            "lower_scaled_score": score_or_none(self.lower),
            "scaled_score": score_or_none(self.result),
            "upper_scaled_score": score_or_none(self.upper),
        }


@dataclass
class ChartDatum:
    subject: str
    base: float
    middle: Optional[float]
    upper: Optional[float]
    lower_value: float
    middle_value: float
    upper_value: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "base": self.base,
            "middle": self.middle,
            "upper": self.upper,
            "lower_value": self.lower_value,
            "middle_value": self.middle_value,
            "upper_value": self.upper_value,
        }


@dataclass
class ChartData:
    data: List[ChartDatum]
    axis_min: float
    axis_max: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": [d.to_dict() for d in self.data],
            "axis_min": self.axis_min,
            "axis_max": self.axis_max,
        }
