"""
Likelihood service tests: chemical scoring and the rule-based scorers.
"""

import math

import pytest

from aurora_engine.config.settings import Settings
from aurora_engine.likelihood import (
    ChemicalLikelihoodService,
    PhysicalLikelihoodService,
    StructuralLikelihoodService,
    SurfaceLikelihoodService,
    default_services,
    identify_alteration_assemblages,
)
from aurora_engine.likelihood.chemical import assess_spectral_quality, mineral_confidence
from aurora_engine.models import (
    EvidenceType,
    HyperspectralSample,
    MineralDetection,
    PhysicalObservation,
    StructuralObservation,
    SurfaceObservation,
)


def _sample(abundances, **kwargs):
    return HyperspectralSample(endmember_abundances=abundances, **kwargs)


# ---------------------------------------------------------------------------
#  Chemical
# ---------------------------------------------------------------------------

def test_mineral_confidence_bounds():
    assert mineral_confidence(0.6, 0.0) == 1.0
    assert mineral_confidence(0.01, 0.0) == 0.1
    assert mineral_confidence(0.25, 0.0) == pytest.approx(0.5)


def test_chemical_no_samples_is_evidence_against():
    """No diagnostic detections → L = 0.1 with the default uncertainty terms."""
    result = ChemicalLikelihoodService().analyze([], "copper_porphyry")

    assert result.distribution.mean == 0.1
    assert result.distribution.evidence_type == EvidenceType.CHEMICAL
    assert result.uncertainty == pytest.approx(math.sqrt(0.5 ** 2 + 0.3 ** 2 + 0.4 ** 2))
    assert result.spectral_quality.overall_quality == "poor"
    assert "no_core_alteration" in result.kill_factors_triggered


def test_chemical_diagnostic_product():
    """L = Π max(0.1, a·c) × (1 + coverage)."""
    sample = _sample({"K-feldspar": 0.6, "biotite": 0.5}, rmse=0.0)
    result = ChemicalLikelihoodService().analyze([sample], "copper_porphyry")

    # both confidences saturate at 1.0; 2 of 10 diagnostic minerals present
    assert result.distribution.mean == pytest.approx(0.6 * 0.5 * 1.2)
    assert result.diagnostic_minerals_present == ("K-feldspar", "biotite")
    assert result.required_assemblages_present == ("potassic",)
    assert result.kill_factors_triggered == ()


def test_chemical_likelihood_cap_from_settings():
    sample = _sample({"K-feldspar": 0.6, "biotite": 0.5}, rmse=0.0)
    service = ChemicalLikelihoodService(Settings(chemical_likelihood_cap=0.2))
    assert service.analyze([sample], "copper_porphyry").distribution.mean == 0.2


def test_chemical_detection_threshold():
    """Abundances at or below 5% are not detections."""
    sample = _sample({"K-feldspar": 0.04, "sericite": 0.05})
    result = ChemicalLikelihoodService().analyze([sample], "copper_porphyry")
    assert result.mineral_detections == ()
    assert result.distribution.mean == 0.1


def test_chemical_custom_unmixer():
    def unmixer(sample):
        return [MineralDetection(mineral_id="halite", abundance=0.4, confidence=0.9,
                                 spectral_fit_rmse=0.02, sigma=0.04)]

    service = ChemicalLikelihoodService(unmixer=unmixer)
    result = service.analyze([_sample({})], "lithium_brine")
    assert result.diagnostic_minerals_present == ("halite",)
    assert "no_evaporite_minerals" not in result.kill_factors_triggered


def test_lithium_without_evaporites_flags_kill_factor():
    result = ChemicalLikelihoodService().analyze([_sample({"smectite": 0.3})], "lithium_brine")
    assert result.kill_factors_triggered == ("no_evaporite_minerals",)


def test_alteration_assemblage_confidence():
    detections = [
        MineralDetection(mineral_id="K-feldspar", abundance=0.6, confidence=1.0,
                         spectral_fit_rmse=0.0, sigma=0.06),
        MineralDetection(mineral_id="biotite", abundance=0.5, confidence=1.0,
                         spectral_fit_rmse=0.0, sigma=0.05),
    ]
    assemblages = identify_alteration_assemblages(detections)

    assert [a.alteration_type for a in assemblages] == ["potassic"]
    potassic = assemblages[0]
    # 0.5 required + 0.3 × 1/2 optional + 0.2 × mean abundance 0.55
    assert potassic.confidence == pytest.approx(0.76)
    assert potassic.zoning_pattern == "linear"
    assert potassic.intensity == "moderate"


def test_spectral_quality_grades():
    assert assess_spectral_quality([_sample({}, signal_to_noise=150, cloud_cover=0.05)]).overall_quality == "excellent"
    assert assess_spectral_quality([_sample({}, signal_to_noise=60, cloud_cover=0.15)]).overall_quality == "good"
    assert assess_spectral_quality([_sample({}, signal_to_noise=30, cloud_cover=0.5)]).overall_quality == "fair"
    assert assess_spectral_quality([_sample({}, signal_to_noise=10)]).overall_quality == "poor"


# ---------------------------------------------------------------------------
#  Rule-based services
# ---------------------------------------------------------------------------

def test_rule_service_without_evidence_is_neutral():
    for service in (StructuralLikelihoodService(), PhysicalLikelihoodService(),
                    SurfaceLikelihoodService()):
        likelihood = service.score([], "copper_porphyry")
        assert likelihood.mean == 1.0
        assert likelihood.variance == pytest.approx(0.25)


def test_structural_full_support():
    obs = StructuralObservation(
        lineament_density=12.0,
        circular_variance=0.0,
        fault_type="radial",
        relationship_to_mineralization="controlling",
        structural_confidence=1.0,
    )
    likelihood = StructuralLikelihoodService().score([obs], "copper_porphyry")

    assert likelihood.mean == pytest.approx(2.5)
    assert likelihood.variance == pytest.approx(0.01)
    assert likelihood.confidence_interval == pytest.approx((2.5 - 0.196, 2.5 + 0.196))


def test_physical_magnetic_low_for_copper():
    obs = PhysicalObservation(method="magnetic", residual_anomaly=-100.0, ambiguity_index=0.0)
    assert PhysicalLikelihoodService().score([obs], "copper_porphyry").mean == pytest.approx(2.5)


def test_physical_gravity_low_for_lithium():
    low = PhysicalObservation(method="gravity", residual_anomaly=-25.0, ambiguity_index=0.2)
    high = PhysicalObservation(method="gravity", residual_anomaly=25.0, ambiguity_index=0.2)
    service = PhysicalLikelihoodService()
    assert service.score([low], "lithium_brine").mean > service.score([high], "lithium_brine").mean


def test_surface_hydrocarbon_trap():
    obs = SurfaceObservation(
        closure_height=200.0,
        seal_risk=0.0,
        amplitude_anomaly=True,
        charge_timing="favorable",
        interpretation_confidence=0.5,
    )
    likelihood = SurfaceLikelihoodService().score([obs], "hydrocarbon_offshore")
    assert likelihood.mean == pytest.approx(2.5)
    assert likelihood.variance == pytest.approx(0.3 ** 2)


def test_default_services_cover_every_evidence_type():
    services = default_services()
    assert set(services) == {t.value for t in EvidenceType}
    assert all(s.evidence_type.value == key for key, s in services.items())
