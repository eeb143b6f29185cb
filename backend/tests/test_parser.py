"""
Tests for core/parser.py — CSV/Excel/ODS parsing, layout detection, column mapping.
"""

import os
import sys
import pytest
import pandas as pd

# Ensure backend/ is on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.parser import (
    parse_upload,
    detect_layout,
    suggest_column_mapping,
    convert_wide_to_long,
    normalise_results_frame,
    results_by_student,
    validate_data,
)

SAMPLE_CSV = os.path.join(os.path.dirname(__file__), "..", "sample_data", "sample_cohort.csv")


@pytest.fixture
def sample_df():
    return list(parse_upload(SAMPLE_CSV).values())[0]


@pytest.fixture
def wide_df():
    return pd.DataFrame({
        "Student Name": ["Alice", "Ben"],
        "English": ["82", "64"],
        "Biology": ["71", None],
        "Essential English": [None, "B"],
    })


class TestParseUpload:
    """Tests for the parse_upload function."""

    def test_csv_parse_returns_single_sheet(self, sample_df):
        result = parse_upload(SAMPLE_CSV)
        assert list(result) == ["Sheet1"]
        assert isinstance(sample_df, pd.DataFrame)

    def test_csv_values_are_strings(self, sample_df):
        assert list(sample_df.columns) == ["student", "subject", "result"]
        assert sample_df.iloc[0]["result"] == "82"

    def test_xlsx_round_trip(self, sample_df, tmp_path):
        path = tmp_path / "cohort.xlsx"
        sample_df.to_excel(path, index=False, sheet_name="Year 12")
        sheets = parse_upload(str(path))
        assert list(sheets) == ["Year 12"]
        assert len(sheets["Year 12"]) == len(sample_df)

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "cohort.txt"
        path.write_text("student,subject,result\n")
        with pytest.raises(ValueError, match="Unsupported"):
            parse_upload(str(path))

    def test_missing_file_raises(self):
        with pytest.raises(Exception):
            parse_upload("nonexistent_file.csv")


class TestColumnMapping:

    def test_sample_columns(self, sample_df):
        assert suggest_column_mapping(sample_df) == {
            "student": "student", "subject": "subject", "result": "result",
        }

    def test_aliases_case_insensitive(self):
        df = pd.DataFrame(columns=["Student Name", "Course", "Mark"])
        mapping = suggest_column_mapping(df)
        assert mapping == {"student": "Student Name", "subject": "Course", "result": "Mark"}

    def test_unmatched_is_none(self):
        mapping = suggest_column_mapping(pd.DataFrame(columns=["foo", "bar"]))
        assert mapping["student"] is None


class TestDetectLayout:

    def test_long(self, sample_df):
        assert detect_layout(sample_df) == "long"

    def test_wide(self, wide_df):
        assert detect_layout(wide_df) == "wide"


class TestWideToLong:

    def test_melts_subject_columns(self, wide_df):
        long_df = convert_wide_to_long(wide_df, suggest_column_mapping(wide_df))
        assert list(long_df.columns) == ["student", "subject", "result"]
        assert len(long_df) == 6

    def test_requires_student_column(self, wide_df):
        with pytest.raises(ValueError):
            convert_wide_to_long(wide_df, {"student": None})

    def test_normalise_long_missing_columns(self):
        df = pd.DataFrame({"subject": ["English"], "result": ["80"]})
        with pytest.raises(ValueError, match="Required columns not found"):
            normalise_results_frame(df)


class TestResultsByStudent:

    def test_sample_cohort(self, sample_df):
        grouped = results_by_student(sample_df)
        assert list(grouped) == ["Alice Nguyen", "Ben Carter", "Chloe Martin"]
        assert len(grouped["Alice Nguyen"]) == 6
        first = grouped["Ben Carter"][0]
        assert (first.subject, first.raw_result, first.student) == ("English", "64", "Ben Carter")

    def test_wide_blanks_dropped(self, wide_df):
        grouped = results_by_student(wide_df)
        assert [r.subject for r in grouped["Alice"]] == ["English", "Biology"]
        assert [r.subject for r in grouped["Ben"]] == ["English", "Essential English"]


class TestValidateData:

    def test_clean_sample_has_no_issues(self, sample_df):
        assert validate_data(sample_df) == []

    def test_empty(self):
        issues = validate_data(pd.DataFrame(columns=["student", "subject", "result"]))
        assert issues[0]["type"] == "empty_data"
        assert issues[0]["severity"] == "critical"

    def test_missing_student_column(self):
        issues = validate_data(pd.DataFrame({"subject": ["English"], "result": ["80"]}))
        assert issues[0]["type"] == "missing_column"

    def test_blanks_and_duplicates(self):
        df = pd.DataFrame({
            "student": ["Alice", "Alice", "Ben"],
            "subject": ["English", "English", "Biology"],
            "result": ["80", "81", None],
        })
        types = {issue["type"] for issue in validate_data(df)}
        assert types == {"blank_results", "duplicates"}
