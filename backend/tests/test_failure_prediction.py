# File: backend/tests/test_failure_prediction.py
# Version: v0.1.0
from __future__ import annotations

import math

import pytest

from backend.app.core.assembly.failure_prediction import (
    PenaltyModel,
    expected_success,
    predict_failure_modes,
    predict_self_ligation,
)
from backend.app.core.assembly.fidelity import modeled_matrix

MATRIX = modeled_matrix(4)


def test_penalty_model_is_additive_with_cap():
    model = PenaltyModel()
    assert model.penalty({}) == 0.0
    assert model.penalty({"medium": 1}) == pytest.approx(0.10)
    assert model.penalty({"medium": 2}) == pytest.approx(0.13)
    # further occurrences stop counting after the per-class limit
    assert model.penalty({"low": 10}) == pytest.approx(0.03 + 4 * 0.01)
    assert model.penalty({"critical": 1, "high": 3}) == pytest.approx(0.95)


def test_colonies_to_screen_follows_success_rate():
    est = expected_success(0.9, [])
    assert est.rate == pytest.approx(0.9)
    assert est.tier == "excellent"
    assert est.colonies_to_screen == math.ceil(3 / 0.9)

    floor = expected_success(0.0, [])
    assert floor.rate == pytest.approx(0.01)
    assert floor.colonies_to_screen == math.ceil(3 / 0.01)


def test_palindrome_flags_self_ligation():
    mode = predict_self_ligation(["GGAG", "GATC"])
    assert mode is not None
    assert mode.severity == "high"
    assert mode.details[0]["overhang"] == "GATC"


def test_clean_set_has_no_critical_modes():
    pred = predict_failure_modes(["GGAG", "AATG", "GCTT"], MATRIX)
    assert pred.overall_risk != "critical"
    assert 0.01 <= pred.success.rate <= 1.0
    assert pred.as_dict()["expectedSuccess"]["coloniesToScreen"] >= 3


def test_internal_sites_are_critical():
    pred = predict_failure_modes(["GGAG", "AATG"], MATRIX, internal_sites=[(120, "+")])
    assert pred.overall_risk == "critical"
    assert pred.modes[0].mode == "INTERNAL_SITE"
    assert pred.success.penalty >= 0.70
