"""
subjects.py — Subject metadata lookup.

Maps each subject's canonical name to its display name, subject type
(General / Applied / VET) and input validation rule ("0-100", "A-E", "Pass").
The lookup is loaded once from the subject mapping CSV and is read-only
afterwards; engine functions receive it as an argument.
"""

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

logger = logging.getLogger(__name__)


# ── Subject types and validation rules ──────────────────────────────

GENERAL = "General"
APPLIED = "Applied"
VET = "VET"
SUBJECT_TYPES = (GENERAL, APPLIED, VET)

RULE_NUMERIC = "0-100"
RULE_GRADE = "A-E"
RULE_PASS = "Pass"
VALIDATION_RULES = (RULE_NUMERIC, RULE_GRADE, RULE_PASS)

# Columns expected in the subject mapping CSV
REQUIRED_COLUMNS = ["Subject_name", "Type", "Validation"]


def normalize_rule(rule: Optional[str]) -> Optional[str]:
    """Collapse rule spellings such as '0 - 100' or 'a-e' to the canonical form."""
    if rule is None:
        return None
    compact = "".join(str(rule).split())
    if not compact:
        return None
    for known in VALIDATION_RULES:
        if compact.lower() == known.lower():
            return known
    return compact


@dataclass(frozen=True)
class SubjectMetadata:
    canonical_name: str
    display_name: str
    subject_type: str
    validation_rule: Optional[str]
    a: Optional[float] = None
    k: Optional[float] = None

    def to_dict(self) -> Dict:
        return {
            "canonical_name": self.canonical_name,
            "display_name": self.display_name,
            "subject_type": self.subject_type,
            "validation_rule": self.validation_rule,
        }


class SubjectMetadataLookup:
    """Read-only index of SubjectMetadata by canonical and display name."""

    def __init__(self, subjects: List[SubjectMetadata]):
        self._by_canonical: Dict[str, SubjectMetadata] = {}
        self._by_display: Dict[str, SubjectMetadata] = {}
        # Canonical names also match case-insensitively
        self._by_folded: Dict[str, SubjectMetadata] = {}
        for subject in subjects:
            self._by_canonical[subject.canonical_name] = subject
            self._by_folded[subject.canonical_name.casefold()] = subject
            # First mapping wins when two subjects share a display name
            self._by_display.setdefault(subject.display_name, subject)

    def __len__(self) -> int:
        return len(self._by_canonical)

    def __contains__(self, canonical_name: str) -> bool:
        return self.by_canonical_name(canonical_name) is not None

    def by_canonical_name(self, name: Optional[str]) -> Optional[SubjectMetadata]:
        if not name:
            return None
        key = str(name).strip()
        return self._by_canonical.get(key) or self._by_folded.get(key.casefold())

    def by_display_name(self, name: Optional[str]) -> Optional[SubjectMetadata]:
        if not name:
            return None
        return self._by_display.get(str(name).strip())

    def subject_type(self, canonical_name: Optional[str]) -> Optional[str]:
        subject = self.by_canonical_name(canonical_name)
        return subject.subject_type if subject else None

    def validation_rule(self, canonical_name: Optional[str]) -> Optional[str]:
        subject = self.by_canonical_name(canonical_name)
        return subject.validation_rule if subject else None

    def all(self) -> List[SubjectMetadata]:
        return list(self._by_canonical.values())

    def display_options(self) -> List[Dict[str, str]]:
        """Alphabetical label/value pairs for a subject picker."""
        options = [
            {"label": s.display_name, "value": s.display_name}
            for s in self._by_canonical.values()
        ]
        return sorted(options, key=lambda o: o["label"].lower())


# ── Loading ─────────────────────────────────────────────────────────

def _optional_float(value) -> Optional[float]:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() in ("null", "nan", "none"):
        return None
    try:
        number = float(text)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def subjects_from_dataframe(df: pd.DataFrame) -> List[SubjectMetadata]:
    """
    Build SubjectMetadata records from a mapping DataFrame.
    Rows missing a name, type or validation rule are skipped.
    """
    df = df.rename(columns=lambda c: str(c).strip())
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Subject mapping is missing required columns: {missing}")

    subjects = []
    for record in df.fillna("").to_dict(orient="records"):
        name = str(record.get("Subject_name", "")).strip()
        subject_type = str(record.get("Type", "")).strip()
        rule = normalize_rule(record.get("Validation"))
        if not name or not subject_type or not rule:
            logger.warning("Skipping invalid subject mapping row: %s", record)
            continue
        display = str(record.get("Subject_display", "")).strip() or name
        subjects.append(SubjectMetadata(
            canonical_name=name,
            display_name=display,
            subject_type=subject_type,
            validation_rule=rule,
            a=_optional_float(record.get("a")),
            k=_optional_float(record.get("k")),
        ))
    return subjects


def load_subject_lookup(file_path) -> SubjectMetadataLookup:
    """Load the subject mapping CSV into a SubjectMetadataLookup."""
    path = Path(file_path)
    if path.suffix.lower() != ".csv":
        raise ValueError(f"Unsupported subject mapping file type: {path.suffix}")
    df = pd.read_csv(path, dtype=str)
    lookup = SubjectMetadataLookup(subjects_from_dataframe(df))
    logger.info("Loaded %d subject mappings from %s", len(lookup), path.name)
    return lookup
