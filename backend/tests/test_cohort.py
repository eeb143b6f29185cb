"""
Tests for core/cohort.py — subject ranking and cohort summaries.
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from conftest import FakeOracle
from core.atar import INELIGIBLE
from core.cohort import (
    rank_by_subject_results,
    scale_rows,
    summarise_cohort,
    summarise_student,
    summary_to_dict,
)
from core.models import StudentResult, SubjectRow

GENERAL_FIVE = ["English", "Mathematical Methods", "Biology", "Chemistry", "Physics"]


def _results(pairs, student=None):
    return [StudentResult(subject, raw, student) for subject, raw in pairs]


class TestRankBySubjectResults:

    def test_sorted_by_scaled_score(self, lookup, oracle):
        rows = rank_by_subject_results(
            _results([
                ("English", "75"),
                ("Essential English", "B"),
                ("Mathematical Methods", "90"),
                ("Cert III Fitness", "Pass"),
            ]),
            3, lookup, oracle,
        )
        assert [r.subject for r in rows] == [
            "Maths Methods", "English", "Essential English", "Cert III Fitness",
        ]

    def test_general_bounds_use_variation(self, lookup, oracle):
        [row] = rank_by_subject_results(_results([("English", 75)]), 3, lookup, oracle)
        assert row.raw_result == "75"
        assert (row.lower_result, row.upper_result) == ("72", "78")
        assert row.validation_rule == "0-100"

    def test_applied_and_vet_bounds_equal_result(self, lookup, oracle):
        rows = rank_by_subject_results(
            _results([("Essential English", "B"), ("Cert III Fitness", "Pass")]),
            3, lookup, oracle,
        )
        assert [(r.lower_result, r.upper_result) for r in rows] == [("B", "B"), ("Pass", "Pass")]

    def test_failed_scaling_sorts_last(self, lookup):
        oracle = FakeOracle({("English", "80"): "Missing scaling parameters for subject"})
        rows = rank_by_subject_results(
            _results([("English", "80"), ("Biology", "30"), ("Chemistry", "60")]),
            3, lookup, oracle,
        )
        assert [r.subject for r in rows] == ["Chemistry", "Biology", "English"]

    def test_unknown_subject_treated_as_general(self, lookup, oracle):
        [row] = rank_by_subject_results(
            _results([("Underwater Basket Weaving", "50")]), 5, lookup, oracle,
        )
        assert row.subject == "Underwater Basket Weaving"
        assert row.validation_rule is None
        assert (row.lower_result, row.upper_result) == ("45", "55")

    def test_subject_case_does_not_matter(self, lookup, oracle):
        [row] = rank_by_subject_results(_results([("english", "75")]), 3, lookup, oracle)
        assert row.subject == "English"
        assert row.validation_rule == "0-100"
        assert oracle.calls == [("English", "75")]

    def test_every_row_gets_a_fresh_id(self, lookup, oracle):
        results = _results([("English", "75"), ("Biology", "60")])
        first = rank_by_subject_results(results, 3, lookup, oracle)
        second = rank_by_subject_results(results, 3, lookup, oracle)
        ids = [r.id for r in first + second]
        assert len(set(ids)) == 4

    def test_empty_input(self, lookup, oracle):
        assert rank_by_subject_results([], 3, lookup, oracle) == []


class TestScaleRows:

    def test_scores_keyed_by_row_id(self, lookup, oracle):
        row = SubjectRow(subject="Maths Methods", raw_result="70", lower_result="65",
                         upper_result="75", validation_rule="0-100")
        scaled_by_id, scores = scale_rows([row], lookup, oracle)
        assert scaled_by_id[row.id].to_dict() == {
            "lower_scaled_score": 65.0, "scaled_score": 70.0, "upper_scaled_score": 75.0,
        }
        [score] = scores
        assert score.subject == "Mathematical Methods"
        assert score.subject_type == "General"

    def test_unknown_subjects_skipped(self, lookup, oracle):
        row = SubjectRow(subject="Nope", raw_result="70")
        scaled_by_id, scores = scale_rows([row], lookup, oracle)
        assert scaled_by_id == {}
        assert scores == []


class TestSummaries:

    def test_student_summary(self, lookup, oracle):
        summary = summarise_student(
            "Alice", _results([(s, "80") for s in GENERAL_FIVE]), 3, lookup, oracle,
        )
        assert summary["te"] == 400.0
        assert summary["lower_te"] == 385.0
        assert summary["upper_te"] == 415.0
        assert summary["atar"]["status"] == "success"
        assert len(summary["results"]) == 5
        assert summary["results"][0]["lower_result"] == "77"

    def test_cohort_sorted_by_te_with_ineligible_last(self, lookup, oracle):
        grouped = {
            "Chloe": _results([("English", "95"), ("Biology", "95")]),
            "Ben": _results([(s, "60") for s in GENERAL_FIVE]),
            "Alice": _results([(s, "80") for s in GENERAL_FIVE]),
        }
        summaries = summarise_cohort(grouped, 3, lookup, oracle)
        assert [s["student"] for s in summaries] == ["Alice", "Ben", "Chloe"]
        assert summaries[-1]["te"] == INELIGIBLE
        assert summaries[-1]["atar"]["display"] == INELIGIBLE

    def test_summary_to_dict_is_plain_data(self, lookup, oracle):
        summary = summarise_student("Alice", _results([("English", "80")]), 3, lookup, oracle)
        data = summary_to_dict(summary)
        assert set(data) == {"student", "rows", "results", "te", "lower_te", "upper_te", "atar"}
        assert isinstance(data["rows"][0], dict)
