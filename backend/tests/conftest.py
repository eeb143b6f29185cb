"""Shared pytest fixtures: an in-memory subject lookup and a table-driven scaling oracle."""

import os
import sys

import pytest

# Ensure backend/ is on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.scaling import ScalingResult
from core.subjects import SubjectMetadata, SubjectMetadataLookup

SAMPLE_DATA_DIR = os.path.join(os.path.dirname(__file__), "..", "sample_data")

GRADE_SCORES = {"A": 50.0, "B": 40.0, "C": 30.0, "D": 20.0, "E": 10.0}
PASS_SCORE = 35.0


class FakeOracle:
    """
    Table-driven oracle double.

    Numeric results scale to themselves, grades and Pass use fixed scores.
    `overrides` maps (subject, value) to a score or to an error string.
    Every call is recorded in `calls`.
    """

    def __init__(self, overrides=None):
        self.overrides = overrides or {}
        self.calls = []

    def __call__(self, subject, value):
        self.calls.append((subject, value))
        key = (subject, str(value).strip())
        if key in self.overrides:
            outcome = self.overrides[key]
            if isinstance(outcome, str):
                return ScalingResult.failure(outcome)
            return ScalingResult.success(outcome)
        text = str(value).strip()
        if text.upper() in GRADE_SCORES:
            return ScalingResult.success(GRADE_SCORES[text.upper()])
        if text.lower() == "pass":
            return ScalingResult.success(PASS_SCORE)
        try:
            return ScalingResult.success(float(text))
        except ValueError:
            return ScalingResult.failure(f"Cannot scale {value!r} for {subject}")


def build_lookup():
    return SubjectMetadataLookup([
        SubjectMetadata("English", "English", "General", "0-100"),
        SubjectMetadata("Mathematical Methods", "Maths Methods", "General", "0-100"),
        SubjectMetadata("Biology", "Biology", "General", "0-100"),
        SubjectMetadata("Chemistry", "Chemistry", "General", "0-100"),
        SubjectMetadata("Physics", "Physics", "General", "0-100"),
        SubjectMetadata("Modern History", "Modern History", "General", "0-100"),
        SubjectMetadata("Essential English", "Essential English", "Applied", "A-E"),
        SubjectMetadata("Cert III Fitness", "Cert III Fitness", "VET", "Pass"),
    ])


@pytest.fixture
def lookup():
    return build_lookup()


@pytest.fixture
def oracle():
    return FakeOracle()


@pytest.fixture
def sample_data_dir():
    return SAMPLE_DATA_DIR
