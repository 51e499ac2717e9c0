"""
Bayesian fusion tests: veto gate, normalization, independence correction
and confidence classification.
"""

import math

import pytest

from aurora_engine.computation.fusion import (
    BayesianFusionEngine,
    classify_confidence,
    compute_posterior,
    credible_interval,
    z_score,
)
from aurora_engine.computation.priors import prior_from_factors
from aurora_engine.computation.validation import validate_posterior_output
from aurora_engine.config.settings import Settings
from aurora_engine.config.tables import override_tables
from aurora_engine.errors import ValidationError
from aurora_engine.models import (
    ConfidenceClass,
    EvidenceType,
    LikelihoodDistribution,
    PosteriorDistribution,
    VetoCategory,
    VetoResult,
)

PASSED = VetoResult(passed=True, probability=1.0)
FAILED = VetoResult(
    passed=False,
    probability=0.0,
    failure_category=VetoCategory.PRESERVATION,
    failure_condition="metamorphosed",
    failure_reason="Target over-metamorphosed: granulite",
)


def _likelihood(evidence_type, mean, variance=0.01):
    half_width = 1.96 * math.sqrt(variance)
    return LikelihoodDistribution(
        mean=mean,
        variance=variance,
        confidence_interval=(max(0.0, mean - half_width), mean + half_width),
        evidence_type=EvidenceType(evidence_type),
    )


@pytest.fixture
def ceiling_prior():
    return prior_from_factors(0.9, 0.9, 0.9, 0.9)


@pytest.fixture
def floor_prior():
    return prior_from_factors(0.0, 0.9, 0.9, 0.9)


@pytest.mark.parametrize("mean", [1e-6, 0.5, 4.0, 1e6])
def test_vetoed_posterior_is_exactly_zero(ceiling_prior, mean):
    """No likelihood, however strong, survives a failed veto."""
    likelihoods = [_likelihood("chemical", mean), _likelihood("structural", mean)]
    posterior = compute_posterior(ceiling_prior, likelihoods, FAILED)

    assert posterior.mean == 0.0
    assert posterior.variance == 0.0
    assert posterior.uncertainty_bounds == (0.0, 0.0)
    assert posterior.confidence_class == ConfidenceClass.NOISE
    assert posterior.veto_reason == "Target over-metamorphosed: granulite"
    assert validate_posterior_output(posterior) == []


def test_posterior_saturates_when_product_exceeds_floor(ceiling_prior):
    likelihoods = [_likelihood("chemical", 2.0, 0.04), _likelihood("structural", 1.5)]
    posterior = compute_posterior(ceiling_prior, likelihoods, PASSED)

    assert posterior.mean == pytest.approx(1.0)
    assert posterior.normalization_constant == pytest.approx(0.3 * 2.0 * 1.5)
    assert validate_posterior_output(posterior) == []


def test_posterior_below_normalization_floor(floor_prior):
    """prior × L under 0.001 is divided by the floor instead of by itself."""
    posterior = compute_posterior(floor_prior, [_likelihood("chemical", 0.05)], PASSED)

    assert posterior.normalization_constant == 0.001
    assert posterior.mean == pytest.approx(0.01 * 0.05 / 0.001)

    v = floor_prior.variance
    assert posterior.variance == pytest.approx(v * 0.01 + v + 0.01)


def test_huge_likelihoods_stay_in_unit_interval(ceiling_prior):
    """prior × Π L far beyond float range still normalizes to 1."""
    likelihoods = [
        _likelihood(evidence_type, 1e200)
        for evidence_type in ("chemical", "structural", "physical", "surface")
    ]
    posterior = compute_posterior(ceiling_prior, likelihoods, PASSED)

    assert posterior.mean == pytest.approx(1.0)
    assert math.isfinite(posterior.normalization_constant)
    assert posterior.normalization_constant > 1e300
    assert validate_posterior_output(posterior) == []
    assert PosteriorDistribution.model_validate_json(posterior.model_dump_json()) == posterior


def test_variance_capped_at_ceiling(ceiling_prior):
    likelihoods = [
        _likelihood("chemical", 1.5, variance=1e200),
        _likelihood("structural", 1.2, variance=1e200),
    ]
    posterior = compute_posterior(ceiling_prior, likelihoods, PASSED)

    assert posterior.variance == Settings().variance_ceiling
    assert posterior.confidence_class == ConfidenceClass.NOISE
    assert validate_posterior_output(posterior) == []
    assert PosteriorDistribution.model_validate_json(posterior.model_dump_json()) == posterior


def test_posterior_mappings_are_read_only(ceiling_prior):
    likelihoods = [_likelihood("chemical", 2.0), _likelihood("structural", 1.5)]
    posterior = compute_posterior(ceiling_prior, likelihoods, PASSED)

    with pytest.raises(TypeError):
        posterior.likelihood_contributions["chemical"] = 0.0
    with pytest.raises(TypeError):
        posterior.corrected_likelihoods["surface"] = likelihoods[0]
    assert set(posterior.corrected_likelihoods) == {"chemical", "structural"}
    assert posterior.model_dump()["likelihood_contributions"] == dict(posterior.likelihood_contributions)


def test_posterior_without_likelihoods(ceiling_prior):
    posterior = compute_posterior(ceiling_prior, [], PASSED)
    assert posterior.mean == pytest.approx(1.0)
    assert posterior.variance == ceiling_prior.variance
    assert posterior.likelihood_contributions == {}


def test_likelihood_contributions_sum_to_100(ceiling_prior):
    likelihoods = {
        "chemical": _likelihood("chemical", math.e),
        "physical": _likelihood("physical", math.e ** 3),
    }
    contributions = compute_posterior(ceiling_prior, likelihoods, PASSED).likelihood_contributions
    assert contributions["chemical"] == pytest.approx(25.0)
    assert contributions["physical"] == pytest.approx(75.0)


def test_duplicate_evidence_types_rejected(ceiling_prior):
    likelihoods = [_likelihood("chemical", 2.0), _likelihood("chemical", 1.5)]
    with pytest.raises(ValidationError):
        compute_posterior(ceiling_prior, likelihoods, PASSED)


def test_legacy_correlation_reading_never_corrects():
    """Row max includes the diagonal 1.0, so max − 1.0 is always 0."""
    engine = BayesianFusionEngine(Settings())
    likelihoods = [_likelihood("chemical", 4.0), _likelihood("surface", 3.0)]
    corrected = engine.correct_for_independence(likelihoods)

    assert corrected["chemical"] is likelihoods[0]
    assert corrected["surface"] is likelihoods[1]


def test_independence_correction_shrinks_toward_one():
    settings = Settings(exclude_self_correlation=True, correlation_threshold=0.4)
    engine = BayesianFusionEngine(settings)
    chemical = _likelihood("chemical", 4.0, 0.09)
    corrected = engine.correct_for_independence([chemical, _likelihood("physical", 2.0)])

    # chemical/physical correlation is 0.5
    adjusted = corrected["chemical"]
    penalty = 1 / 1.5
    assert adjusted.adjustment_applied
    assert adjusted.correlation_penalty == pytest.approx(penalty)
    assert adjusted.mean == pytest.approx(4.0 ** penalty)
    assert adjusted.variance == pytest.approx(0.09 * penalty)
    assert 1.0 < adjusted.mean < chemical.mean
    assert not chemical.adjustment_applied


def test_uncorrelated_likelihood_returned_unchanged():
    settings = Settings(exclude_self_correlation=True, correlation_threshold=0.4)
    structural = _likelihood("structural", 2.0)
    corrected = BayesianFusionEngine(settings).correct_for_independence(
        [structural, _likelihood("chemical", 1.5)]
    )
    # chemical/structural correlation is 0.3
    assert corrected["structural"] is structural


def test_correlation_matrix_is_symmetric():
    matrix = BayesianFusionEngine().correlation_matrix(["chemical", "structural", "surface"])
    assert (matrix.values == matrix.values.T).all()
    assert matrix.loc["chemical", "surface"] == 0.7
    assert matrix.loc["surface", "surface"] == 1.0


@pytest.mark.parametrize("mean,variance,expected", [
    (0.01, 0.0001, ConfidenceClass.NOISE),
    (0.10, 0.0001, ConfidenceClass.RECON),
    (0.90, 0.36, ConfidenceClass.RECON),
    (0.25, 0.0001, ConfidenceClass.PROSPECT),
    (0.50, 0.0001, ConfidenceClass.PRIORITY),
    (0.50, 0.0, ConfidenceClass.PRIORITY),
    (0.90, 0.0001, ConfidenceClass.DRILL_JUSTIFIED),
    (0.0, 0.0, ConfidenceClass.NOISE),
])
def test_confidence_class_ladder(mean, variance, expected):
    assert classify_confidence(mean, variance) == expected


def test_credible_interval():
    assert credible_interval(0.5, 0.01) == pytest.approx((0.304, 0.696))
    assert credible_interval(0.95, 0.01) == pytest.approx((0.754, 1.0))
    assert z_score(0.99) == 2.576
    assert z_score(0.8) == 1.96


def test_correlation_table_override():
    """A stronger injected correlation triggers the correction at default thresholds."""
    tables = override_tables(evidence_correlations={("chemical", "surface"): 0.9})
    engine = BayesianFusionEngine(Settings(exclude_self_correlation=True), tables)
    corrected = engine.correct_for_independence(
        [_likelihood("chemical", 3.0), _likelihood("surface", 2.0)]
    )

    assert corrected["surface"].adjustment_applied
    assert corrected["surface"].mean == pytest.approx(2.0 ** (1 / 1.9))
    assert tables.correlation("surface", "chemical") == 0.9
    assert tables.correlation("physical", "structural") == 0.2
