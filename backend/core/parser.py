"""
parser.py — Cohort results ingestion (CSV, Excel, ODS) with auto-detection.

Supports:
- CSV files
- Excel (.xlsx, .xls) — single and multi-sheet
- ODS (OpenDocument Spreadsheet)
- Long format: one row per student-subject result
- Wide format: one row per student, one column per subject
- Fuzzy column name mapping
"""

from collections import OrderedDict
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from core.models import StudentResult, optional_text

SAMPLE_DATA_DIR = Path(__file__).parent.parent / "sample_data"

# Common column name variations for auto-mapping
COLUMN_ALIASES = {
    "student": [
        "student", "student_name", "student name", "name", "full_name",
        "full name", "learner", "learner_name", "student_id", "student id",
    ],
    "subject": [
        "subject", "subject_name", "subject name", "course", "course_name",
    ],
    "result": [
        "result", "raw_result", "raw result", "score", "mark", "marks",
        "grade", "raw_score", "raw score",
    ],
}


def parse_upload(file_path: str) -> Dict[str, pd.DataFrame]:
    """
    Parse an uploaded file and return a dict of {sheet_name: DataFrame}.
    For CSV files, returns {"Sheet1": df}.
    """
    path = Path(file_path)
    ext = path.suffix.lower()

    if ext == ".csv":
        df = pd.read_csv(file_path, dtype=str)
        return {"Sheet1": df}

    elif ext in (".xlsx", ".xls", ".ods"):
        engine = {"xlsx": "openpyxl", "xls": "xlrd", "ods": "odf"}[ext[1:]]
        xls = pd.ExcelFile(file_path, engine=engine)
        sheets = {}
        for sheet_name in xls.sheet_names:
            df = pd.read_excel(xls, sheet_name=sheet_name, dtype=str)
            # Skip empty sheets
            if not df.empty and len(df.columns) > 1:
                sheets[sheet_name] = df
        if not sheets:
            raise ValueError("No valid sheets found in the spreadsheet.")
        return sheets

    else:
        raise ValueError(f"Unsupported file type: {ext}")


def suggest_column_mapping(df: pd.DataFrame) -> Dict[str, Optional[str]]:
    """
    Suggest a mapping from expected field names to actual column names.
    Returns: { expected_field: actual_column_name_or_None }
    """
    cols_lower = {str(c).lower().strip(): c for c in df.columns}
    mapping: Dict[str, Optional[str]] = {}

    for field, aliases in COLUMN_ALIASES.items():
        matched = None
        for alias in aliases:
            if alias in cols_lower:
                matched = cols_lower[alias]
                break
        mapping[field] = matched

    return mapping


def detect_layout(df: pd.DataFrame) -> str:
    """
    Detect whether the data is in 'wide' or 'long' format.

    Long format has both a subject and a result column. Anything else with a
    student column and at least one other column is treated as wide, where
    every non-student column is a subject.
    """
    mapping = suggest_column_mapping(df)
    if mapping["subject"] and mapping["result"]:
        return "long"
    if mapping["student"] and len(df.columns) >= 2:
        return "wide"
    return "long"


def convert_wide_to_long(df: pd.DataFrame, mapping: Dict[str, Optional[str]]) -> pd.DataFrame:
    """
    Convert a wide-format DataFrame to long format with
    'student', 'subject' and 'result' columns.
    """
    student_col = mapping.get("student")
    if not student_col or student_col not in df.columns:
        raise ValueError("Wide layout requires a student column.")

    subject_cols = [c for c in df.columns if c != student_col]
    long_df = df.melt(
        id_vars=[student_col],
        value_vars=subject_cols,
        var_name="subject",
        value_name="result",
    )
    return long_df.rename(columns={student_col: "student"})


def normalise_results_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Return a long-format frame with 'student', 'subject', 'result' columns."""
    mapping = suggest_column_mapping(df)
    if detect_layout(df) == "wide":
        return convert_wide_to_long(df, mapping)

    missing = [f for f in ("student", "subject", "result") if mapping.get(f) is None]
    if missing:
        raise ValueError(
            f"Required columns not found: {missing}. "
            f"Expected one of: {[COLUMN_ALIASES[f] for f in missing]}"
        )
    renamed = df.rename(columns={
        mapping["student"]: "student",
        mapping["subject"]: "subject",
        mapping["result"]: "result",
    })
    return renamed[["student", "subject", "result"]]


def results_by_student(df: pd.DataFrame) -> Dict[str, List[StudentResult]]:
    """
    Group a results frame into StudentResults per student, in first-seen order.
    Rows without a student, subject or result are dropped.
    """
    long_df = normalise_results_frame(df)
    grouped: "OrderedDict[str, List[StudentResult]]" = OrderedDict()
    for record in long_df.to_dict(orient="records"):
        student = optional_text(record.get("student"))
        subject = optional_text(record.get("subject"))
        result = optional_text(record.get("result"))
        if not student or not subject or result is None:
            continue
        grouped.setdefault(student, []).append(
            StudentResult(subject=subject, raw_result=result, student=student)
        )
    return dict(grouped)


def validate_data(df: pd.DataFrame) -> List[Dict]:
    """
    Validate the parsed data and return a list of issues found.
    """
    issues = []

    if len(df) == 0:
        issues.append({
            "type": "empty_data",
            "severity": "critical",
            "message": "The uploaded file contains no data rows.",
        })
        return issues

    mapping = suggest_column_mapping(df)
    if mapping.get("student") is None:
        issues.append({
            "type": "missing_column",
            "severity": "critical",
            "message": "Required column 'student' not found. "
                       f"Expected one of: {COLUMN_ALIASES['student']}",
        })
        return issues

    try:
        long_df = normalise_results_frame(df)
    except ValueError as exc:
        issues.append({"type": "missing_column", "severity": "critical", "message": str(exc)})
        return issues

    blanks = long_df["result"].isna().sum()
    if blanks > 0:
        issues.append({
            "type": "blank_results",
            "severity": "info",
            "message": f"{blanks} blank results will be ignored.",
        })

    dupes = long_df.duplicated(subset=["student", "subject"], keep=False).sum()
    if dupes > 0:
        issues.append({
            "type": "duplicates",
            "severity": "warning",
            "message": f"{dupes} duplicate entries detected (same student + subject).",
        })

    return issues
