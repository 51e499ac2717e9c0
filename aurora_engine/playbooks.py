"""
Aurora Engine — Commodity playbooks.

Each commodity is a PlaybookSpec: ordered tables of named predicates
(mandatory conditions, kill factors, supportive evidence scorers) plus
likelihood weights and recommendation texts. One shared evaluator runs
any spec:

1. Mandatory conditions in declared order; the first failure stops them
2. Kill factors, every one evaluated, all hits collected
3. Supportive evidence scored, kept if strength > 0.1, sorted descending
4. Assessment ladder:
     mandatory failed or killed           → unfavorable (confidence 0.9)
     total > 2.0 and ≥ 2 items above 0.7  → favorable
     total > 1.0 and ≥ 1 item above 0.7   → marginal
     otherwise                            → unfavorable
   confidence = 0.6 × mean mandatory certainty + 0.4 × mean strength
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from .computation.age import parse_age
from .config.settings import PLAYBOOK_THRESHOLDS, Settings, get_settings
from .config.tables import DEFAULT_TABLES, GeologyTables
from .errors import UnsupportedCommodityError
from .likelihood.chemical import endmember_unmixer, identify_alteration_assemblages
from .models import (
    AlterationAssemblage,
    Assessment,
    Commodity,
    ConditionOutcome,
    GeologicalTarget,
    HyperspectralSample,
    KillFactorHit,
    KillFactorResult,
    MandatoryResult,
    MineralDetection,
    PhysicalObservation,
    PlaybookResult,
    StructuralObservation,
    Structure,
    SupportiveEvidence,
    SurfaceObservation,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlaybookEvidence:
    """The slice of a target every playbook predicate reads."""
    commodity: str
    tectonic_setting: str
    age: str
    facies: str
    structure: Structure
    samples: Tuple[HyperspectralSample, ...]
    detections: Tuple[MineralDetection, ...]
    assemblages: Tuple[AlterationAssemblage, ...]
    structural: Tuple[StructuralObservation, ...]
    physical: Tuple[PhysicalObservation, ...]
    surface: Tuple[SurfaceObservation, ...]

    def has_mineral(self, *minerals: str) -> bool:
        return any(d.mineral_id in minerals for d in self.detections)

    def has_assemblage(self, alteration_type: str) -> bool:
        return any(a.alteration_type == alteration_type for a in self.assemblages)


@dataclass(frozen=True)
class MandatoryCondition:
    name: str
    check: Callable[[PlaybookEvidence], ConditionOutcome]


@dataclass(frozen=True)
class KillFactor:
    name: str
    description: str
    check: Callable[[PlaybookEvidence], bool]


@dataclass(frozen=True)
class SupportiveScorer:
    name: str
    score: Callable[[PlaybookEvidence], SupportiveEvidence]


@dataclass(frozen=True)
class PlaybookSpec:
    """One commodity variant: predicate tables and texts, no behaviour."""
    commodity: Commodity
    mandatory: Tuple[MandatoryCondition, ...]
    kill_factors: Tuple[KillFactor, ...]
    supportive: Tuple[SupportiveScorer, ...]
    likelihood_weights: Mapping[str, float]
    recommendations: Mapping[Assessment, Tuple[str, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )


def extract_evidence(target: GeologicalTarget, tables: GeologyTables = DEFAULT_TABLES,
                     settings: Optional[Settings] = None) -> PlaybookEvidence:
    """Read the target and derive mineral detections / assemblages from its raw samples."""
    settings = settings or get_settings()
    context = target.geological_context
    samples = tuple(target.evidence.chemical)

    detections = tuple(
        d for s in samples for d in endmember_unmixer(s)
        if d.abundance > settings.detection_abundance_threshold
    )
    return PlaybookEvidence(
        commodity=target.commodity.value,
        tectonic_setting=context.tectonic_setting or "",
        age=context.age,
        facies=context.stratigraphy.describe(),
        structure=context.structure,
        samples=samples,
        detections=detections,
        assemblages=tuple(identify_alteration_assemblages(detections, tables)),
        structural=tuple(target.evidence.structural),
        physical=tuple(target.evidence.physical),
        surface=tuple(target.evidence.surface),
    )


def _counted(name: str, count: int, per_full: float, description: str,
             sources: Tuple[str, ...]) -> SupportiveEvidence:
    return SupportiveEvidence(
        evidence_type=name,
        strength=min(1.0, count / per_full),
        description=description,
        data_sources=sources,
    )


# ---------------------------------------------------------------------------
#  Copper porphyry
# ---------------------------------------------------------------------------

ARC_TERMS = ("arc", "subduction", "andesitic", "calc-alkaline")
INTRUSIVE_TERMS = ("stock", "dike", "pluton", "intrusive", "batholith", "circular")
COPPER_ANOMALY_PPM = 300.0
COPPER_PATHFINDERS = ("Mo", "Au", "Ag", "As", "Zn")
PORPHYRY_AGE_MA = (1.0, 100.0)


def _is_arc(setting: str) -> bool:
    return any(term in setting.lower() for term in ARC_TERMS)


def copper_arc_setting(ev: PlaybookEvidence) -> ConditionOutcome:
    passed = _is_arc(ev.tectonic_setting)
    return ConditionOutcome(
        passed=passed,
        value=ev.tectonic_setting,
        threshold="arc-related setting",
        certainty=0.9,
        failure_reason=None if passed else "Not in arc tectonic setting",
        evidence=("regional tectonic maps", "geophysical data", "literature"),
    )


def copper_potassic_phyllic(ev: PlaybookEvidence) -> ConditionOutcome:
    potassic = ev.has_assemblage("potassic") or (
        ev.has_mineral("K-feldspar") and ev.has_mineral("biotite")
    )
    phyllic = ev.has_assemblage("phyllic") or ev.has_mineral("sericite")
    passed = potassic and phyllic
    return ConditionOutcome(
        passed=passed,
        value={"potassic": potassic, "phyllic": phyllic},
        threshold="both potassic and phyllic alteration present",
        certainty=0.8,
        failure_reason=None if passed else "Missing potassic or phyllic alteration",
        evidence=("hyperspectral data", "alteration mapping", "mineralogy"),
    )


def copper_intrusive_geometry(ev: PlaybookEvidence) -> ConditionOutcome:
    circular_pattern = any(
        s.lineament_density > 5
        and s.circular_variance is not None and s.circular_variance < 0.5
        for s in ev.structural
    )
    intrusive_indicators = any(s.fault_type in ("radial", "circular") for s in ev.structural)
    passed = circular_pattern or intrusive_indicators
    return ConditionOutcome(
        passed=passed,
        value={"circular_pattern": circular_pattern, "intrusive_indicators": intrusive_indicators},
        threshold="intrusive-centered structural geometry",
        certainty=0.7,
        failure_reason=None if passed else "No intrusive-centered structural pattern",
        evidence=("SAR data", "structural mapping", "lineament analysis"),
    )


def copper_magnetic_destruction(ev: PlaybookEvidence) -> SupportiveEvidence:
    hits = [p for p in ev.physical if p.method == "magnetic" and p.residual_anomaly < -50]
    return _counted("magnetic_destruction", len(hits), 3,
                    f"Magnetic destruction signature: {len(hits)} negative anomalies",
                    ("magnetic surveys", "aeromagnetic data"))


def copper_density_contrasts(ev: PlaybookEvidence) -> SupportiveEvidence:
    hits = [p for p in ev.physical if p.method == "gravity" and abs(p.residual_anomaly) > 10]
    return _counted("density_contrasts", len(hits), 2,
                    f"Density contrasts: {len(hits)} significant gravity anomalies",
                    ("gravity surveys", "density measurements"))


def alteration_zoning(ev: PlaybookEvidence) -> SupportiveEvidence:
    hits = [a for a in ev.assemblages if a.zoning_pattern in ("concentric", "linear")]
    return _counted("alteration_zoning", len(hits), 2,
                    f"Alteration zoning: {len(hits)} systematic patterns",
                    ("hyperspectral analysis", "alteration mapping"))


def structural_control(ev: PlaybookEvidence) -> SupportiveEvidence:
    hits = [s for s in ev.structural if s.relationship_to_mineralization == "controlling"]
    return _counted("structural_control", len(hits), 2,
                    f"Structural control: {len(hits)} controlling structures",
                    ("structural analysis", "field mapping"))


def _geochemical_anomaly(ev: PlaybookEvidence, element: str, threshold_ppm: float,
                         pathfinders: Tuple[str, ...]) -> SupportiveEvidence:
    anomaly = any(s.geochemistry.get(element, 0.0) >= threshold_ppm for s in ev.samples)
    has_pathfinders = any(e in pathfinders for s in ev.samples for e in s.pathfinder_elements)
    return SupportiveEvidence(
        evidence_type="geochemical_anomaly",
        strength=(0.6 if anomaly else 0.0) + (0.4 if has_pathfinders else 0.0),
        description=f"Geochemical anomaly: {element}={anomaly}, pathfinders={has_pathfinders}",
        data_sources=("soil sampling", "rock chip sampling", "stream sediments"),
    )


def copper_geochemical_anomaly(ev: PlaybookEvidence) -> SupportiveEvidence:
    return _geochemical_anomaly(ev, "Cu", COPPER_ANOMALY_PPM, COPPER_PATHFINDERS)


def copper_no_alteration_zoning(ev: PlaybookEvidence) -> bool:
    return not any(a.zoning_pattern not in ("none", "random") for a in ev.assemblages)


def copper_no_intrusive_geometry(ev: PlaybookEvidence) -> bool:
    for obs in ev.structural:
        text = " ".join(v for v in obs.model_dump().values() if isinstance(v, str)).lower()
        if any(term in text for term in INTRUSIVE_TERMS):
            return False
    return True


def copper_wrong_age(ev: PlaybookEvidence) -> bool:
    age_ma = parse_age(ev.age)
    return age_ma < PORPHYRY_AGE_MA[0] or age_ma > PORPHYRY_AGE_MA[1]


def copper_no_arc_setting(ev: PlaybookEvidence) -> bool:
    return not _is_arc(ev.tectonic_setting)


COPPER_PORPHYRY = PlaybookSpec(
    commodity=Commodity.COPPER_PORPHYRY,
    mandatory=(
        MandatoryCondition("tectonic_setting", copper_arc_setting),
        MandatoryCondition("alteration_assemblage", copper_potassic_phyllic),
        MandatoryCondition("intrusive_geometry", copper_intrusive_geometry),
    ),
    kill_factors=(
        KillFactor("no_alteration_zoning", "No systematic alteration zoning present",
                   copper_no_alteration_zoning),
        KillFactor("no_intrusive_geometry", "No intrusive-centered structural geometry",
                   copper_no_intrusive_geometry),
        KillFactor("wrong_age", "Age incompatible with porphyry formation", copper_wrong_age),
        KillFactor("no_arc_setting", "Not in arc tectonic setting", copper_no_arc_setting),
    ),
    supportive=(
        SupportiveScorer("magnetic_destruction", copper_magnetic_destruction),
        SupportiveScorer("density_contrasts", copper_density_contrasts),
        SupportiveScorer("alteration_zoning", alteration_zoning),
        SupportiveScorer("structural_control", structural_control),
        SupportiveScorer("geochemical_anomaly", copper_geochemical_anomaly),
    ),
    likelihood_weights=MappingProxyType(
        {"chemical": 0.35, "structural": 0.30, "physical": 0.25, "surface": 0.10}
    ),
    recommendations=MappingProxyType({
        Assessment.FAVORABLE: (
            "Strong candidate for drilling - high priority",
            "Focus on defining alteration zoning and structural controls",
            "Consider detailed geophysical surveys to define intrusion geometry",
        ),
        Assessment.MARGINAL: (
            "Additional data required before drilling consideration",
            "Focus on improving alteration mapping and structural analysis",
            "Consider targeted geochemical sampling",
        ),
    }),
)


# ---------------------------------------------------------------------------
#  Lithium brine
# ---------------------------------------------------------------------------

EVAPORITE_MINERALS = ("halite", "gypsum", "borates", "evaporite_minerals")
LITHIUM_CLAYS = ("lithium-bearing_clays", "hectorite", "smectite")
CLOSED_BASIN_TERMS = ("playa", "salar", "lacustrine", "evaporite", "closed basin")
BASIN_FAULTS = ("normal", "extensional", "graben")
LITHIUM_ANOMALY_PPM = 100.0
LITHIUM_PATHFINDERS = ("B", "K", "Mg", "Cs")
BRINE_MAX_AGE_MA = 10.0


def lithium_closed_basin(ev: PlaybookEvidence) -> ConditionOutcome:
    sealed = ev.structure.basin_seal is True
    basin_facies = any(term in ev.facies.lower() for term in CLOSED_BASIN_TERMS)
    trap_geometry = any(s.trap_geometry_flag for s in ev.structural)
    passed = sealed or basin_facies or trap_geometry
    return ConditionOutcome(
        passed=passed,
        value={"basin_seal": sealed, "basin_facies": basin_facies, "trap_geometry": trap_geometry},
        threshold="closed (endorheic) basin",
        certainty=0.8,
        failure_reason=None if passed else "No closed basin geometry",
        evidence=("basin mapping", "drainage analysis", "SAR data"),
    )


def lithium_evaporite_sequence(ev: PlaybookEvidence) -> ConditionOutcome:
    minerals = ev.has_mineral(*EVAPORITE_MINERALS)
    facies = "evaporite" in ev.facies.lower() or "salar" in ev.facies.lower()
    passed = minerals or facies
    return ConditionOutcome(
        passed=passed,
        value={"evaporite_minerals": minerals, "evaporite_facies": facies},
        threshold="evaporite minerals or evaporite facies present",
        certainty=0.8,
        failure_reason=None if passed else "No evaporite sequence identified",
        evidence=("hyperspectral data", "stratigraphic columns"),
    )


def lithium_gravity_low(ev: PlaybookEvidence) -> SupportiveEvidence:
    hits = [p for p in ev.physical if p.method == "gravity" and p.residual_anomaly < -10]
    return _counted("gravity_low", len(hits), 2,
                    f"Basin-fill gravity low: {len(hits)} negative gravity anomalies",
                    ("gravity surveys",))


def lithium_clay_signature(ev: PlaybookEvidence) -> SupportiveEvidence:
    hits = {d.mineral_id for d in ev.detections if d.mineral_id in LITHIUM_CLAYS}
    return _counted("lithium_clays", len(hits), 2,
                    f"Lithium-bearing clay signature: {len(hits)} clay minerals",
                    ("hyperspectral analysis",))


def lithium_basin_faulting(ev: PlaybookEvidence) -> SupportiveEvidence:
    hits = [s for s in ev.structural if s.fault_type in BASIN_FAULTS]
    return _counted("basin_faulting", len(hits), 2,
                    f"Basin-bounding faults: {len(hits)} extensional structures",
                    ("structural mapping", "SAR data"))


def lithium_geochemical_anomaly(ev: PlaybookEvidence) -> SupportiveEvidence:
    return _geochemical_anomaly(ev, "Li", LITHIUM_ANOMALY_PPM, LITHIUM_PATHFINDERS)


def lithium_no_evaporite_minerals(ev: PlaybookEvidence) -> bool:
    return not any("evaporite" in d.mineral_id or "halite" in d.mineral_id for d in ev.detections)


def lithium_open_drainage(ev: PlaybookEvidence) -> bool:
    return ev.structure.basin_seal is False


def lithium_wrong_age(ev: PlaybookEvidence) -> bool:
    return parse_age(ev.age) > BRINE_MAX_AGE_MA


LITHIUM_BRINE = PlaybookSpec(
    commodity=Commodity.LITHIUM_BRINE,
    mandatory=(
        MandatoryCondition("closed_basin", lithium_closed_basin),
        MandatoryCondition("evaporite_sequence", lithium_evaporite_sequence),
    ),
    kill_factors=(
        KillFactor("no_evaporite_minerals", "No evaporite minerals detected",
                   lithium_no_evaporite_minerals),
        KillFactor("open_drainage", "Basin is not hydrologically closed", lithium_open_drainage),
        KillFactor("wrong_age", "Basin too old for an active brine system", lithium_wrong_age),
    ),
    supportive=(
        SupportiveScorer("gravity_low", lithium_gravity_low),
        SupportiveScorer("lithium_clays", lithium_clay_signature),
        SupportiveScorer("basin_faulting", lithium_basin_faulting),
        SupportiveScorer("alteration_zoning", alteration_zoning),
        SupportiveScorer("geochemical_anomaly", lithium_geochemical_anomaly),
    ),
    likelihood_weights=MappingProxyType(
        {"chemical": 0.30, "structural": 0.25, "physical": 0.30, "surface": 0.15}
    ),
    recommendations=MappingProxyType({
        Assessment.FAVORABLE: (
            "Strong candidate for brine sampling wells - high priority",
            "Define basin depth and aquifer geometry with gravity and TEM surveys",
        ),
        Assessment.MARGINAL: (
            "Additional data required before drilling consideration",
            "Sample surface brines and near-surface clays for lithium grade",
        ),
    }),
)


PLAYBOOKS: Mapping[Commodity, PlaybookSpec] = MappingProxyType({
    Commodity.COPPER_PORPHYRY: COPPER_PORPHYRY,
    Commodity.LITHIUM_BRINE: LITHIUM_BRINE,
})


def get_playbook(commodity) -> PlaybookSpec:
    """Look up the variant for a commodity; hydrocarbons have none yet."""
    try:
        return PLAYBOOKS[Commodity(commodity)]
    except (KeyError, ValueError):
        raise UnsupportedCommodityError(getattr(commodity, "value", str(commodity))) from None


# ---------------------------------------------------------------------------
#  Shared evaluator
# ---------------------------------------------------------------------------

def evaluate_mandatory(spec: PlaybookSpec, ev: PlaybookEvidence) -> MandatoryResult:
    details: Dict[str, ConditionOutcome] = {}
    for condition in spec.mandatory:
        outcome = condition.check(ev)
        details[condition.name] = outcome
        if not outcome.passed:
            return MandatoryResult(
                all_passed=False,
                failed_condition=condition.name,
                failure_details=outcome.failure_reason,
                triggers_veto=True,
                condition_details=details,
            )
    return MandatoryResult(all_passed=True, condition_details=details)


def evaluate_kill_factors(spec: PlaybookSpec, ev: PlaybookEvidence) -> KillFactorResult:
    certainty = PLAYBOOK_THRESHOLDS["kill_factor_certainty"]
    hits = tuple(
        KillFactorHit(factor=k.name, description=k.description, certainty=certainty)
        for k in spec.kill_factors if k.check(ev)
    )
    return KillFactorResult(killed=bool(hits), kill_factors=hits, requires_veto=bool(hits))


def evaluate_supportive(spec: PlaybookSpec, ev: PlaybookEvidence) -> List[SupportiveEvidence]:
    floor = PLAYBOOK_THRESHOLDS["min_supportive_strength"]
    items = [s.score(ev) for s in spec.supportive]
    return sorted((i for i in items if i.strength > floor), key=lambda i: i.strength, reverse=True)


def overall_assessment(mandatory: MandatoryResult, kill: KillFactorResult,
                       supportive: List[SupportiveEvidence]) -> Assessment:
    if not mandatory.all_passed or kill.killed:
        return Assessment.UNFAVORABLE

    t = PLAYBOOK_THRESHOLDS
    total = sum(s.strength for s in supportive)
    strong = sum(1 for s in supportive if s.strength > t["strong_strength"])

    if total > t["favorable_total"] and strong >= t["favorable_strong_count"]:
        return Assessment.FAVORABLE
    if total > t["marginal_total"] and strong >= t["marginal_strong_count"]:
        return Assessment.MARGINAL
    return Assessment.UNFAVORABLE


def assessment_confidence(mandatory: MandatoryResult, kill: KillFactorResult,
                          supportive: List[SupportiveEvidence]) -> float:
    if not mandatory.all_passed or kill.killed:
        return PLAYBOOK_THRESHOLDS["negative_confidence"]

    certainties = [d.certainty for d in mandatory.condition_details.values()]
    avg_certainty = sum(certainties) / len(certainties) if certainties else 0.0
    avg_strength = sum(s.strength for s in supportive) / max(len(supportive), 1)
    return min(1.0, avg_certainty * 0.6 + avg_strength * 0.4)


def _recommendations(spec: PlaybookSpec, mandatory: MandatoryResult, kill: KillFactorResult,
                     supportive: List[SupportiveEvidence], assessment: Assessment) -> List[str]:
    recommendations = list(spec.recommendations.get(assessment, ()))
    if assessment == Assessment.UNFAVORABLE:
        recommendations.append("Not recommended for drilling at this time")
        if not mandatory.all_passed:
            recommendations.append("Address failed mandatory conditions first")
        if kill.killed:
            recommendations.append("Kill factors indicate geological impossibility")

    t = PLAYBOOK_THRESHOLDS
    strong = sum(1 for s in supportive if s.strength > t["strong_strength"])
    weak = sum(1 for s in supportive if s.strength < t["weak_strength"])
    if weak > strong:
        recommendations.append("Strengthen data acquisition for weak evidence categories")
    return recommendations


def _risk_factors(mandatory: MandatoryResult, kill: KillFactorResult,
                  supportive: List[SupportiveEvidence]) -> List[str]:
    risks = []
    if not mandatory.all_passed and mandatory.failed_condition:
        risks.append(f"Failed mandatory condition: {mandatory.failed_condition}")
    risks.extend(k.description for k in kill.kill_factors)

    weak = sum(1 for s in supportive if s.strength < PLAYBOOK_THRESHOLDS["weak_strength"])
    if weak > len(supportive) / 2:
        risks.append("Limited supportive evidence")
    return risks


def evaluate_playbook(
    target: GeologicalTarget,
    spec: Optional[PlaybookSpec] = None,
    tables: GeologyTables = DEFAULT_TABLES,
    settings: Optional[Settings] = None,
) -> PlaybookResult:
    """
    Run a playbook variant against a target.

    Args:
        target: Geological target with raw evidence
        spec: Variant to run (default: the target commodity's registered playbook)

    Returns:
        PlaybookResult

    Raises:
        UnsupportedCommodityError: no variant registered for the commodity
    """
    spec = spec or get_playbook(target.commodity)
    ev = extract_evidence(target, tables, settings)

    mandatory = evaluate_mandatory(spec, ev)
    kill = evaluate_kill_factors(spec, ev)
    supportive = evaluate_supportive(spec, ev)
    assessment = overall_assessment(mandatory, kill, supportive)

    logger.debug(
        f"Playbook {spec.commodity.value} for {target.id}: {assessment.value} "
        f"(mandatory={mandatory.all_passed}, kill={[k.factor for k in kill.kill_factors]})"
    )

    return PlaybookResult(
        commodity=spec.commodity,
        mandatory_result=mandatory,
        kill_factor_result=kill,
        supportive_evidence=tuple(supportive),
        likelihood_weights=dict(spec.likelihood_weights),
        overall_assessment=assessment,
        confidence=assessment_confidence(mandatory, kill, supportive),
        recommendations=tuple(_recommendations(spec, mandatory, kill, supportive, assessment)),
        risk_factors=tuple(_risk_factors(mandatory, kill, supportive)),
    )
