"""
Commodity playbook tests: shared evaluator semantics and the two variants.
"""

from types import MappingProxyType

import pytest

from aurora_engine.errors import UnsupportedCommodityError
from aurora_engine.models import (
    Assessment,
    Commodity,
    EvidenceBundle,
    HyperspectralSample,
    PhysicalObservation,
    Stratigraphy,
    StructuralObservation,
    Structure,
    SupportiveEvidence,
)
from aurora_engine.playbooks import (
    KillFactor,
    PlaybookSpec,
    SupportiveScorer,
    evaluate_playbook,
    get_playbook,
)

from conftest import copper_context, make_target


def _scorer(name, strength):
    return SupportiveScorer(name, lambda ev: SupportiveEvidence(evidence_type=name, strength=strength))


def _spec(strengths, kill_factors=()):
    return PlaybookSpec(
        commodity=Commodity.COPPER_PORPHYRY,
        mandatory=(),
        kill_factors=tuple(kill_factors),
        supportive=tuple(_scorer(f"item_{i}", s) for i, s in enumerate(strengths)),
        likelihood_weights=MappingProxyType({"chemical": 1.0}),
    )


def test_three_strong_items_are_favorable():
    result = evaluate_playbook(make_target(), spec=_spec([0.8, 0.8, 0.8]))

    assert result.mandatory_result.all_passed
    assert not result.kill_factor_result.killed
    assert result.overall_assessment == Assessment.FAVORABLE
    # no mandatory certainties: 0.6 × 0 + 0.4 × 0.8
    assert result.confidence == pytest.approx(0.32)


@pytest.mark.parametrize("strengths,expected", [
    ([0.8, 0.8, 0.8], Assessment.FAVORABLE),
    ([0.8, 0.8], Assessment.MARGINAL),
    ([0.8, 0.5], Assessment.MARGINAL),
    ([0.6, 0.6], Assessment.UNFAVORABLE),
    ([0.5], Assessment.UNFAVORABLE),
    ([], Assessment.UNFAVORABLE),
])
def test_assessment_ladder(strengths, expected):
    result = evaluate_playbook(make_target(), spec=_spec(strengths))
    assert result.overall_assessment == expected


def test_weak_supportive_items_are_dropped():
    result = evaluate_playbook(make_target(), spec=_spec([0.05, 0.9, 0.4]))
    assert [s.strength for s in result.supportive_evidence] == [0.9, 0.4]


def test_kill_factor_forces_unfavorable():
    kill = KillFactor("always", "Always fires", lambda ev: True)
    result = evaluate_playbook(make_target(), spec=_spec([0.9, 0.9, 0.9], [kill]))

    assert result.kill_factor_result.killed
    assert result.kill_factor_result.kill_factors[0].certainty == 0.8
    assert result.overall_assessment == Assessment.UNFAVORABLE
    assert result.confidence == 0.9
    assert "Always fires" in result.risk_factors


def test_copper_porphyry_playbook(copper_target):
    result = evaluate_playbook(copper_target)

    assert result.commodity == Commodity.COPPER_PORPHYRY
    assert result.mandatory_result.all_passed
    assert list(result.mandatory_result.condition_details) == [
        "tectonic_setting", "alteration_assemblage", "intrusive_geometry",
    ]
    assert result.kill_factor_result.kill_factors == ()
    assert result.overall_assessment == Assessment.FAVORABLE
    assert result.likelihood_weights == {"chemical": 0.35, "structural": 0.30,
                                         "physical": 0.25, "surface": 0.10}
    assert result.recommendations[0] == "Strong candidate for drilling - high priority"

    strengths = {s.evidence_type: s.strength for s in result.supportive_evidence}
    assert strengths["geochemical_anomaly"] == 1.0
    assert strengths["alteration_zoning"] == 1.0
    assert strengths["density_contrasts"] == pytest.approx(0.5)


def test_copper_wrong_setting_fails_mandatory_and_kills():
    target = make_target(context=copper_context(tectonic_setting="craton"))
    result = evaluate_playbook(target)

    assert result.mandatory_result.failed_condition == "tectonic_setting"
    assert result.mandatory_result.triggers_veto
    # mandatory checks stop at the first failure
    assert list(result.mandatory_result.condition_details) == ["tectonic_setting"]
    assert "no_arc_setting" in [k.factor for k in result.kill_factor_result.kill_factors]
    assert result.overall_assessment == Assessment.UNFAVORABLE


def _lithium_target(**context_overrides):
    context = copper_context(
        tectonic_setting="rift",
        age="2 Ma",
        stratigraphy=Stratigraphy(reservoir_unit="Salar aquifer", facies="evaporite playa",
                                  thickness=200.0),
        structure=Structure(closure=30.0, basin_seal=True),
    ).model_copy(update=context_overrides)
    evidence = EvidenceBundle(
        chemical=(HyperspectralSample(
            endmember_abundances={"halite": 0.4, "hectorite": 0.2, "smectite": 0.15},
            geochemistry={"Li": 450.0},
            pathfinder_elements=("B",),
        ),),
        structural=(StructuralObservation(fault_type="normal"),),
        physical=(PhysicalObservation(method="gravity", residual_anomaly=-18.0),),
    )
    return make_target(commodity=Commodity.LITHIUM_BRINE, context=context,
                       evidence=evidence, target_id="T-LI-001")


def test_lithium_brine_playbook():
    result = evaluate_playbook(_lithium_target())

    assert result.mandatory_result.all_passed
    assert not result.kill_factor_result.killed
    strengths = {s.evidence_type: s.strength for s in result.supportive_evidence}
    assert strengths["lithium_clays"] == 1.0
    assert strengths["geochemical_anomaly"] == 1.0
    assert result.overall_assessment == Assessment.FAVORABLE


def test_lithium_open_drainage_kill():
    target = _lithium_target(structure=Structure(closure=30.0, basin_seal=False))
    result = evaluate_playbook(target)
    assert [k.factor for k in result.kill_factor_result.kill_factors] == ["open_drainage"]


def test_hydrocarbons_have_no_playbook():
    with pytest.raises(UnsupportedCommodityError):
        get_playbook(Commodity.HYDROCARBON_OFFSHORE)
    with pytest.raises(UnsupportedCommodityError):
        evaluate_playbook(make_target(commodity=Commodity.HYDROCARBON_ONSHORE))
