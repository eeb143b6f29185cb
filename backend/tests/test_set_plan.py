"""
Tests for core/set_plan.py — rank to result range, planned rows, plan summaries.
"""

import os
import sys

import pandas as pd
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from conftest import FakeOracle
from core.atar import INELIGIBLE
from core.set_plan import (
    CALCULATION_ERROR,
    PlannedSubject,
    format_scaled_range,
    load_set_plan_table,
    plan_row,
    result_range_from_rank,
    set_plan_table_from_dataframe,
    split_result_range,
    summarise_plan,
)

GENERAL_FIVE = ["English", "Maths Methods", "Biology", "Chemistry", "Physics"]


def _frame(raw):
    records = []
    for subject, values in raw.items():
        records.append({"Subject": subject, "Raw_or_Scaled": "Raw",
                        **dict(zip(["25%", "50%", "75%", "90%", "99%"], values))})
        records.append({"Subject": subject, "Raw_or_Scaled": "Scaled",
                        **dict(zip(["25%", "50%", "75%", "90%", "99%"], [v - 5 for v in values]))})
    return pd.DataFrame(records)


@pytest.fixture
def table():
    return set_plan_table_from_dataframe(_frame({
        "English": [55, 65, 75, 83, 93],
        "Maths Methods": [47, 60, 72, 82, 96],
        "Biology": [52, 63, 74, 83, 94],
        "Chemistry": [50, 62, 73, 82, 95],
        "Physics": [49, 61, 73, 83, 96],
    }))


def _plan(pairs):
    return [PlannedSubject(subject, rank) for subject, rank in pairs]


class TestSetPlanTable:

    def test_result_range_from_percentiles(self, table):
        assert table.result_range("English", "Great") == "75-83"
        assert table.result_range("english", "Best") == "83-93"
        assert table.result_range("English", "Below Average") == "55-65"

    def test_unknown_subject_or_rank(self, table):
        assert table.result_range("Nope", "Great") is None
        assert table.result_range("English", "Superb") is None
        assert table.result_range(None, None) is None

    def test_scaled_range(self, table):
        assert table.scaled_range("English", "Great") == (70.0, 78.0)

    def test_subject_without_both_rows_dropped(self):
        df = _frame({"English": [55, 65, 75, 83, 93]})
        df = pd.concat([df, pd.DataFrame([{
            "Subject": "Physics", "Raw_or_Scaled": "Raw",
            "25%": 1, "50%": 2, "75%": 3, "90%": 4, "99%": 5,
        }])])
        table = set_plan_table_from_dataframe(df)
        assert len(table) == 1
        assert table.result_range("Physics", "Great") is None

    def test_missing_columns_rejected(self):
        with pytest.raises(ValueError, match="missing required columns"):
            set_plan_table_from_dataframe(pd.DataFrame({"Subject": ["English"]}))

    def test_loads_sample_data(self, sample_data_dir):
        table = load_set_plan_table(os.path.join(sample_data_dir, "set_plan_percentiles.csv"))
        assert len(table) == 10
        assert table.result_range("Maths Methods", "Great") == "72-82"

    def test_non_csv_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="Unsupported"):
            load_set_plan_table(tmp_path / "plan.xlsx")


class TestRankRanges:

    def test_applied_rank_is_grade_range(self):
        assert result_range_from_rank("Applied", "B - A") == "B-A"

    def test_vet_only_pass(self):
        assert result_range_from_rank("VET", "Pass") == "Pass"
        assert result_range_from_rank("VET", "Fail") is None

    def test_general_has_no_fixed_range(self):
        assert result_range_from_rank("General", "Great") is None
        assert result_range_from_rank("Applied", None) is None

    @pytest.mark.parametrize("text,expected", [
        ("B-A", ("B", "A")),
        ("62 - 78", ("62", "78")),
        ("Pass", None),
        ("1-2-3", None),
        ("-5", None),
        (None, None),
    ])
    def test_split_result_range(self, text, expected):
        assert split_result_range(text) == expected


class TestPlanRow:

    def test_general_lower_bound_is_raw_result(self, lookup, table):
        row = plan_row(PlannedSubject("English", "Great"), lookup, table)
        assert (row.raw_result, row.lower_result, row.upper_result) == ("75", "75", "83")
        assert row.validation_rule == "0-100"

    def test_canonical_name_resolves_to_display(self, lookup, table):
        row = plan_row(PlannedSubject("Mathematical Methods", "Best"), lookup, table)
        assert row.subject == "Maths Methods"
        assert (row.lower_result, row.upper_result) == ("82", "96")

    def test_applied_grade_range(self, lookup, table):
        row = plan_row(PlannedSubject("Essential English", "B - A"), lookup, table)
        assert (row.raw_result, row.lower_result, row.upper_result) == ("B", "B", "A")

    def test_vet_pass_everywhere(self, lookup, table):
        row = plan_row(PlannedSubject("Cert III Fitness", "Pass"), lookup, table)
        assert (row.raw_result, row.lower_result, row.upper_result) == ("Pass", "Pass", "Pass")

    def test_unusable_rank_leaves_results_empty(self, lookup, table):
        row = plan_row(PlannedSubject("English", "Superb"), lookup, table)
        assert row.subject == "English"
        assert (row.raw_result, row.lower_result, row.upper_result) == (None, None, None)

    def test_unknown_subject_kept_as_given(self, lookup, table):
        row = plan_row(PlannedSubject("Nope", "Great"), lookup, table)
        assert row.subject == "Nope"
        assert row.validation_rule is None


class TestFormatScaledRange:

    def test_general_range(self, lookup, oracle, table):
        row = plan_row(PlannedSubject("English", "Great"), lookup, table)
        assert format_scaled_range(row, lookup, oracle) == "75.0 - 83.0"

    def test_applied_range(self, lookup, oracle, table):
        row = plan_row(PlannedSubject("Essential English", "B - A"), lookup, table)
        assert format_scaled_range(row, lookup, oracle) == "40.0 - 50.0"

    def test_vet_single_value(self, lookup, oracle, table):
        row = plan_row(PlannedSubject("Cert III Fitness", "Pass"), lookup, table)
        assert format_scaled_range(row, lookup, oracle) == "35.0"

    def test_scaling_failure(self, lookup, table):
        oracle = FakeOracle({("Essential English", "A"): "No scaling mapping found"})
        row = plan_row(PlannedSubject("Essential English", "B - A"), lookup, table)
        assert format_scaled_range(row, lookup, oracle) == CALCULATION_ERROR

    def test_no_bounds_no_display(self, lookup, oracle, table):
        row = plan_row(PlannedSubject("English", None), lookup, table)
        assert format_scaled_range(row, lookup, oracle) is None


class TestSummarisePlan:

    def test_te_and_atar_ranges_from_bounds(self, lookup, oracle, table):
        summary = summarise_plan(_plan((s, "Great") for s in GENERAL_FIVE), lookup, oracle, table)
        assert summary["te"] == 367.0
        assert summary["lower_te"] == 367.0
        assert summary["upper_te"] == 413.0
        assert summary["te_range"] == "367.0 - 413.0"
        assert summary["atar"]["status"] == "success"
        lower, upper = summary["atar_range"].split(" - ")
        assert float(lower) == summary["atar"]["lower_atar"]
        assert float(upper) == summary["atar"]["upper_atar"]

    def test_chart_puts_middle_on_lower_bound(self, lookup, oracle, table):
        summary = summarise_plan(_plan((s, "Great") for s in GENERAL_FIVE), lookup, oracle, table)
        chart = summary["chart"]
        assert (chart["axis_min"], chart["axis_max"]) == (70, 90)
        english = next(d for d in chart["data"] if d["subject"] == "English")
        assert english["middle_value"] == english["lower_value"] == 75
        assert (english["base"], english["middle"], english["upper"]) == (5, 0, 8)

    def test_rows_carry_rank_and_display(self, lookup, oracle, table):
        summary = summarise_plan(
            _plan([("English", "Best"), ("Essential English", "B - C"), ("Physics", None)]),
            lookup, oracle, table,
        )
        english, essential, physics = summary["rows"]
        assert english["rank"] == "Best"
        assert english["result_range"] == "83-93"
        assert english["scaled_display"] == "83.0 - 93.0"
        assert essential["result_range"] == "B-C"
        assert physics["result_range"] is None
        assert [d["subject"] for d in summary["chart"]["data"]] == ["English", "Essential English"]

    def test_too_few_subjects_is_ineligible(self, lookup, oracle, table):
        summary = summarise_plan(_plan([("English", "Great")]), lookup, oracle, table)
        assert summary["te"] == INELIGIBLE
        assert summary["te_range"] == INELIGIBLE
        assert summary["atar_range"] == INELIGIBLE

    def test_applied_counts_towards_eligibility(self, lookup, oracle, table):
        summary = summarise_plan(
            _plan([(s, "Great") for s in GENERAL_FIVE[:4]] + [("Essential English", "B - A")]),
            lookup, oracle, table,
        )
        assert summary["lower_te"] == 75 + 72 + 74 + 73 + 40
        assert summary["upper_te"] == 83 + 82 + 83 + 82 + 50
