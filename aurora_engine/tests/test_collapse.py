"""
Collapse detector tests.
"""

import pytest

from aurora_engine.computation.collapse import (
    ProbabilityCollapseDetector,
    convergence_score,
    detect_collapse,
    log_odds,
    pearson_correlation,
)
from aurora_engine.errors import ValidationError
from aurora_engine.models import CollapseLevel, CollapsePattern


def test_log_odds_domain():
    assert log_odds(0.5) == 0.0
    assert log_odds(1.5) == 0.0
    assert log_odds(0.0) == 0.0
    assert log_odds(0.2) == pytest.approx(-1.3862943611)


def test_convergence_score():
    assert convergence_score([1.5]) == 0.0
    assert convergence_score([0.8, 0.8]) == 1.0
    assert convergence_score([1.5, 1.8, 0.2]) == 0.0


def test_pearson_degenerate_inputs():
    assert pearson_correlation([1, 2, 3], [0.1, 0.1, 0.1]) == 0.0
    assert pearson_correlation([1, 2], [1, 2, 3]) == 0.0
    assert pearson_correlation([1, 2, 3], [2, 4, 6]) == pytest.approx(1.0)


def test_two_supportive_likelihoods_collapse():
    """Two agreeing supportive likelihoods with tight uncertainty collapse."""
    result = detect_collapse(0.1, [1.5, 1.8], [0.1, 0.1])

    assert result.collapsed
    assert result.supportive_count == 2
    assert result.uncertainty_reduction == pytest.approx(0.9)
    assert result.convergence_score == 1.0
    assert result.independence_valid
    assert result.collapse_strength == 10.0
    assert result.confidence_level == CollapseLevel.COLLAPSED


def test_contradicting_evidence_blocks_collapse():
    result = detect_collapse(0.1, [1.5, 1.8, 0.2], [0.1, 0.1, 0.1])

    assert not result.collapsed
    assert result.convergence_score == 0.0
    assert result.confidence_level == CollapseLevel.LOW


def test_collapse_strength_is_weighted_geometric_mean():
    result = ProbabilityCollapseDetector().detect_collapse(0.5, [1.5, 1.8], [0.1, 0.1])
    assert result.collapse_strength == pytest.approx((1.5 * 1.8) ** 0.5 / 0.5)
    assert result.confidence_level == CollapseLevel.HIGH


def test_wide_uncertainty_is_not_a_collapse():
    result = detect_collapse(0.1, [1.5, 1.8], [0.5, 0.5])
    assert result.uncertainty_reduction == pytest.approx(0.5)
    assert not result.collapsed
    assert result.confidence_level == CollapseLevel.LOW


def test_no_supportive_evidence_has_zero_strength():
    result = detect_collapse(0.1, [0.5, 0.8], [0.1, 0.1])
    assert result.supportive_count == 0
    assert result.collapse_strength == 0.0


def test_mismatched_vectors_rejected():
    with pytest.raises(ValidationError):
        detect_collapse(0.1, [1.5, 1.8], [0.1])


def test_negative_uncertainty_rejected():
    with pytest.raises(ValidationError):
        detect_collapse(0.1, [1.5, 1.8], [0.1, -0.1])


def test_pattern_analysis():
    detector = ProbabilityCollapseDetector()

    insufficient = detector.analyze_pattern([1.5])
    assert insufficient.pattern == CollapsePattern.INSUFFICIENT_DATA

    convergent = detector.analyze_pattern([1.5, 1.8])
    assert convergent.pattern == CollapsePattern.CONVERGENT
    assert convergent.dominant_evidence == (0, 1)

    divergent = detector.analyze_pattern([1.5, 1.8, 0.2])
    assert divergent.pattern == CollapsePattern.DIVERGENT
    assert divergent.weak_evidence == (2,)
    assert "Evidence is contradictory - seek additional data" in divergent.recommendations
