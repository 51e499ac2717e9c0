"""
Shared fixtures: a copper porphyry target that clears every veto check,
plus builders for variants of it.
"""

import pytest

from aurora_engine.models import (
    Commodity,
    EvidenceBundle,
    GeologicalContext,
    GeologicalTarget,
    HistoricalAnalog,
    HyperspectralSample,
    Location,
    PhysicalObservation,
    Preservation,
    Stratigraphy,
    StructuralObservation,
    Structure,
)


def copper_context(**overrides) -> GeologicalContext:
    fields = dict(
        tectonic_setting="continental_arc",
        age="45 Ma",
        stratigraphy=Stratigraphy(
            reservoir_unit="Quellaveco porphyry stock",
            seal_unit="volcanic cover",
            facies="intrusive porphyry",
            thickness=400.0,
        ),
        structure=Structure(trap_type="intrusive", closure=50.0),
        preservation=Preservation(
            uplift_level="low",
            erosion_level="moderate",
            metamorphic_grade="greenschist",
            weathering="moderate",
        ),
    )
    fields.update(overrides)
    return GeologicalContext(**fields)


def copper_evidence() -> EvidenceBundle:
    sample = HyperspectralSample(
        sample_id="S-001",
        endmember_abundances={
            "K-feldspar": 0.3,
            "biotite": 0.2,
            "sericite": 0.25,
            "pyrite": 0.1,
            "chalcopyrite": 0.08,
        },
        rmse=0.03,
        signal_to_noise=120.0,
        cloud_cover=0.05,
        geochemistry={"Cu": 850.0},
        pathfinder_elements=("Mo", "Au"),
    )
    structure = StructuralObservation(
        lineament_density=8.0,
        circular_variance=0.3,
        fault_type="radial",
        relationship_to_mineralization="controlling",
        structural_confidence=0.8,
        description="radial faults around porphyry stock",
    )
    return EvidenceBundle(
        chemical=(sample,),
        structural=(structure, structure),
        physical=(
            PhysicalObservation(method="magnetic", residual_anomaly=-120.0, ambiguity_index=0.3),
            PhysicalObservation(method="gravity", residual_anomaly=15.0, ambiguity_index=0.4),
        ),
    )


def make_target(commodity=Commodity.COPPER_PORPHYRY, context=None,
                evidence=None, target_id="T-CU-001") -> GeologicalTarget:
    return GeologicalTarget(
        id=target_id,
        name="Test target",
        commodity=commodity,
        location=Location(longitude=-70.9, latitude=-17.2),
        geological_context=context or copper_context(),
        evidence=evidence if evidence is not None else copper_evidence(),
    )


@pytest.fixture
def copper_target():
    return make_target()


@pytest.fixture
def analogs():
    return [HistoricalAnalog(distance_km=100.0, successful=True, similarity=0.8) for _ in range(20)]
