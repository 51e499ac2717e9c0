"""
Regional prior tests: factor scoring, clamping and data-quality flags.
"""

import math

import pytest

from aurora_engine.computation.age import AGE_FALLBACK_FLAG, parse_age, parse_age_with_flag
from aurora_engine.computation.priors import (
    age_timing_compatibility,
    compute_regional_prior,
    historical_analog_density,
    prior_from_factors,
    stratigraphic_permissibility,
    tectonic_compatibility,
)
from aurora_engine.errors import ValidationError
from aurora_engine.models import HistoricalAnalog

from conftest import copper_context


def test_parse_age():
    """Ages parse case-insensitively; garbage falls back to 100 Ma with a flag."""
    assert parse_age("45 Ma") == 45.0
    assert parse_age("2.5 ma") == 2.5
    assert parse_age_with_flag("Eocene") == (100.0, True)
    assert parse_age_with_flag(None) == (100.0, True)
    assert parse_age_with_flag("12Ma") == (12.0, False)


def test_tectonic_compatibility_normalizes_spelling():
    assert tectonic_compatibility("Continental Arc", "copper_porphyry") == (0.95, "continental_arc")
    assert tectonic_compatibility("continental-arc", "copper_porphyry") == (0.95, "continental_arc")
    assert tectonic_compatibility("rift", "lithium_brine")[0] == 0.9


def test_tectonic_compatibility_unknown_setting():
    score, _ = tectonic_compatibility("mid_ocean_ridge", "copper_porphyry")
    assert score == 0.1


def test_age_timing_window():
    """Peak at the window center, zero at the edges, small tail outside."""
    assert age_timing_compatibility("50.5 Ma", "copper_porphyry")["compatibility"] == pytest.approx(1.0)
    assert age_timing_compatibility("1 Ma", "copper_porphyry")["compatibility"] == pytest.approx(0.0)
    assert age_timing_compatibility("150 Ma", "copper_porphyry")["compatibility"] == pytest.approx(0.05)
    assert age_timing_compatibility("300 Ma", "copper_porphyry")["compatibility"] == 0.0


def test_age_timing_fallback_is_reported():
    result = age_timing_compatibility("Late Cretaceous", "copper_porphyry")
    assert result["used_fallback"] is True
    assert result["age_ma"] == 100.0
    assert result["required_age_range"] == (1.0, 100.0)


def test_stratigraphic_permissibility_ladder():
    commodity = "hydrocarbon_onshore"
    assert stratigraphic_permissibility("sandstone under shale", commodity)["permissibility"] == 0.9
    assert stratigraphic_permissibility("sandstone", commodity)["permissibility"] == 0.6
    assert stratigraphic_permissibility("shale", commodity)["permissibility"] == 0.4
    assert stratigraphic_permissibility("granite", commodity)["permissibility"] == 0.1


def test_stratigraphic_permissibility_unknown_commodity():
    with pytest.raises(ValidationError):
        stratigraphic_permissibility("sandstone", "gold_orogenic")


def test_historical_analog_density():
    assert historical_analog_density([])["density"] == 0.0

    saturated = [HistoricalAnalog(distance_km=0.0, successful=True, similarity=1.0)] * 60
    assert historical_analog_density(saturated)["density"] == 1.0

    mixed = (
        [HistoricalAnalog(distance_km=500.0, successful=True, similarity=0.5)] * 5
        + [HistoricalAnalog(distance_km=500.0, successful=False, similarity=0.5)] * 5
    )
    result = historical_analog_density(mixed)
    assert result["success_rate"] == 0.5
    assert result["distance_weight"] == pytest.approx(0.5)
    assert result["density"] == pytest.approx(10 / 50 * 0.5 * 0.5 * 0.5)


def test_prior_clamped_to_ceiling():
    prior = prior_from_factors(1.0, 1.0, 1.0, 1.0)
    assert prior.mean == 0.3
    assert prior.variance == pytest.approx(0.01 * (1 + abs(math.log(0.3))))
    lower, upper = prior.confidence_interval
    half_width = 2 * math.sqrt(prior.variance)
    assert lower == pytest.approx(0.3 - half_width)
    assert upper == pytest.approx(0.3 + half_width)


def test_prior_clamped_to_floor():
    """A single zero factor drives the raw prior to 0; the floor holds."""
    prior = prior_from_factors(0.9, 0.9, 0.9, 0.0)
    assert prior.mean == 0.01
    assert prior.confidence_interval[0] == 0.0


def test_prior_rejects_out_of_range_factor():
    with pytest.raises(ValidationError) as exc_info:
        prior_from_factors(1.2, 0.5, 0.5, 0.5)
    assert exc_info.value.field == "tectonic_setting"


def test_regional_prior_for_copper_arc(analogs):
    prior = compute_regional_prior("copper_porphyry", copper_context(), analogs)

    assert prior.tectonic_setting == 0.95
    assert prior.stratigraphic == 0.9
    assert 0.01 <= prior.mean <= 0.3
    assert prior.factors.analog_count == 20
    assert prior.factors.host_formation_identified
    assert prior.data_quality_flags == ()
    assert prior.reasoning[0].startswith("Excellent tectonic setting")


def test_regional_prior_flags():
    context = copper_context(age="unknown")
    prior = compute_regional_prior("copper_porphyry", context)
    assert AGE_FALLBACK_FLAG in prior.data_quality_flags
    assert "no_historical_analogs" in prior.data_quality_flags
    assert prior.factors.age_is_fallback


def test_regional_prior_requires_tectonic_setting():
    with pytest.raises(ValidationError):
        compute_regional_prior("copper_porphyry", copper_context(tectonic_setting=None))
