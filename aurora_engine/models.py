"""
Aurora Engine — Value types.

Pydantic models for the core input contract (geological target, evidence,
historical analogs) and every output the engines return. Outputs are
frozen: an engine never mutates a result it has already handed out, and
mapping fields are read-only views.

Every output round-trips through JSON unchanged:
    Model.model_validate_json(result.model_dump_json()) == result
"""

import enum
from types import MappingProxyType
from typing import Annotated, Any, Dict, Optional, Tuple

from pydantic import AfterValidator, AliasChoices, BaseModel, ConfigDict, Field, PlainSerializer


# ---------------------------------------------------------------------------
#  Enumerations
# ---------------------------------------------------------------------------

class Commodity(str, enum.Enum):
    """Deposit types the engine knows how to score."""
    COPPER_PORPHYRY = "copper_porphyry"
    LITHIUM_BRINE = "lithium_brine"
    HYDROCARBON_ONSHORE = "hydrocarbon_onshore"
    HYDROCARBON_OFFSHORE = "hydrocarbon_offshore"


class EvidenceType(str, enum.Enum):
    CHEMICAL = "chemical"
    STRUCTURAL = "structural"
    PHYSICAL = "physical"
    SURFACE = "surface"


class ConfidenceClass(str, enum.Enum):
    """Ordinal posterior certainty bucket."""
    NOISE = "NOISE"
    RECON = "RECON"
    PROSPECT = "PROSPECT"
    PRIORITY = "PRIORITY"
    DRILL_JUSTIFIED = "DRILL_JUSTIFIED"


class CollapseLevel(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    COLLAPSED = "COLLAPSED"


class CollapsePattern(str, enum.Enum):
    CONVERGENT = "CONVERGENT"
    DIVERGENT = "DIVERGENT"
    MIXED = "MIXED"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"


class Assessment(str, enum.Enum):
    FAVORABLE = "favorable"
    MARGINAL = "marginal"
    UNFAVORABLE = "unfavorable"


class VetoCategory(str, enum.Enum):
    """Veto categories in evaluation order."""
    STRATIGRAPHIC = "stratigraphic"
    TEMPORAL = "temporal"
    STRUCTURAL = "structural"
    PRESERVATION = "preservation"


class Severity(str, enum.Enum):
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


def _read_only(value_type):
    """Mapping field held as a read-only view, dumped as a plain dict."""
    return Annotated[
        Dict[str, value_type],
        AfterValidator(lambda v: MappingProxyType(v)),
        PlainSerializer(lambda v: dict(v), return_type=Dict[str, value_type]),
    ]


def _empty_mapping():
    return MappingProxyType({})


# ---------------------------------------------------------------------------
#  Inputs: geological target
# ---------------------------------------------------------------------------

class Location(_Frozen):
    longitude: float
    latitude: float


class Stratigraphy(_Frozen):
    reservoir_unit: Optional[str] = None
    seal_unit: Optional[str] = None
    facies: Optional[str] = None
    thickness: Optional[float] = None  # meters

    def describe(self) -> str:
        """Free-text column description used for host/seal keyword matching."""
        parts = [self.reservoir_unit, self.seal_unit, self.facies]
        return " ".join(p for p in parts if p)


class Structure(_Frozen):
    trap_type: Optional[str] = None
    closure: Optional[float] = None  # meters
    fault_seal: Optional[bool] = None
    basin_seal: Optional[bool] = None


class Preservation(_Frozen):
    uplift_level: Optional[str] = None
    erosion_level: Optional[str] = None
    metamorphic_grade: Optional[str] = None
    weathering: Optional[str] = None


class GeologicalContext(_Frozen):
    tectonic_setting: Optional[str] = None
    age: str = ""  # "N Ma"
    stratigraphy: Stratigraphy = Field(default_factory=Stratigraphy)
    structure: Structure = Field(default_factory=Structure)
    preservation: Preservation = Field(default_factory=Preservation)


class HyperspectralSample(_Frozen):
    """One hyperspectral acquisition with its (pre-computed) endmember mix."""
    sample_id: str = ""
    endmember_abundances: _read_only(float) = Field(default_factory=_empty_mapping)
    rmse: float = Field(default=0.03, ge=0.0)
    signal_to_noise: Optional[float] = None
    cloud_cover: Optional[float] = None
    geochemistry: _read_only(float) = Field(default_factory=_empty_mapping)  # element -> ppm
    pathfinder_elements: Tuple[str, ...] = ()


class StructuralObservation(_Frozen):
    """SAR / field structural feature."""
    lineament_density: float = 0.0  # features per km2
    circular_variance: Optional[float] = None  # 0-1, lower = more organized
    fault_type: str = "unknown"
    relationship_to_mineralization: str = "unknown"
    trap_geometry_flag: bool = False
    structural_confidence: float = 0.5
    description: str = ""


class PhysicalObservation(_Frozen):
    """Gravity or magnetic anomaly."""
    method: str = "magnetic"  # magnetic | gravity
    residual_anomaly: float = 0.0  # nT or mGal
    ambiguity_index: float = 0.5
    source_type: str = "unknown"


class SurfaceObservation(_Frozen):
    """Seismic / surface trap interpretation."""
    closure_height: float = 0.0
    trap_type: Optional[str] = None
    seal_risk: float = 0.5
    amplitude_anomaly: bool = False
    charge_timing: str = "unknown"
    interpretation_confidence: float = 0.5


class EvidenceBundle(_Frozen):
    chemical: Tuple[HyperspectralSample, ...] = ()
    structural: Tuple[StructuralObservation, ...] = ()
    physical: Tuple[PhysicalObservation, ...] = ()
    surface: Tuple[SurfaceObservation, ...] = Field(
        default=(), validation_alias=AliasChoices("surface", "seismic")
    )


class GeologicalTarget(_Frozen):
    id: str
    name: str = ""
    commodity: Commodity
    location: Location
    geological_context: GeologicalContext = Field(default_factory=GeologicalContext)
    evidence: EvidenceBundle = Field(default_factory=EvidenceBundle)


class HistoricalAnalog(_Frozen):
    """Known deposit near the target, resolved by the spatial store."""
    distance_km: float = Field(ge=0.0)
    successful: bool
    similarity: float = Field(ge=0.0, le=1.0)


# ---------------------------------------------------------------------------
#  Prior
# ---------------------------------------------------------------------------

class RegionalFactors(_Frozen):
    """Raw supporting fields behind the four prior factors."""
    tectonic_setting: str
    tectonic_compatibility: float
    target_age: str
    age_ma: float
    age_is_fallback: bool
    required_age_range: Tuple[float, float]
    stratigraphic_permissibility: float
    host_formation_identified: bool
    seal_formation_identified: bool
    structural_traps_required: bool
    analog_count: int
    analog_success_rate: float
    analog_distance_weight: float
    analog_similarity: float
    analog_density: float


class PriorDistribution(_Frozen):
    mean: float = Field(ge=0.0, le=1.0)
    variance: float = Field(ge=0.0)
    confidence_interval: Tuple[float, float]
    tectonic_setting: float
    age_timing: float
    stratigraphic: float
    historical_analogs: float
    formula: str = "P(D|R) = (T x A x S x H)^0.25"
    reasoning: Tuple[str, ...] = ()
    data_quality: str = "medium"
    data_quality_flags: Tuple[str, ...] = ()
    factors: Optional[RegionalFactors] = None


# ---------------------------------------------------------------------------
#  Likelihoods
# ---------------------------------------------------------------------------

class LikelihoodDistribution(_Frozen):
    """Multiplicative support factor for one evidence type (>1 supportive)."""
    mean: float = Field(ge=0.0)
    variance: float = Field(ge=0.0)
    confidence_interval: Tuple[float, float]
    evidence_type: EvidenceType
    adjustment_applied: bool = False
    correlation_penalty: Optional[float] = None


class MineralDetection(_Frozen):
    mineral_id: str
    abundance: float
    confidence: float
    spectral_fit_rmse: float
    sigma: float


class AlterationAssemblage(_Frozen):
    assemblage_id: str
    alteration_type: str
    minerals: Tuple[str, ...]
    confidence: float
    zoning_pattern: str
    intensity: str


class SpectralQuality(_Frozen):
    signal_to_noise: Optional[float] = None
    cloud_cover: Optional[float] = None
    overall_quality: str = "poor"


class ChemicalLikelihoodResult(_Frozen):
    distribution: LikelihoodDistribution
    uncertainty: float
    mineral_detections: Tuple[MineralDetection, ...] = ()
    alteration_assemblages: Tuple[AlterationAssemblage, ...] = ()
    spectral_quality: SpectralQuality = Field(default_factory=SpectralQuality)
    formula: str = "P(E_chem|D) = prod_k P(M_k|D) x (1 + coverage)"
    reasoning: Tuple[str, ...] = ()
    diagnostic_minerals_present: Tuple[str, ...] = ()
    required_assemblages_present: Tuple[str, ...] = ()
    kill_factors_triggered: Tuple[str, ...] = ()


# ---------------------------------------------------------------------------
#  Veto
# ---------------------------------------------------------------------------

class VetoConditionResult(_Frozen):
    condition: str
    passed: bool
    details: str
    certainty: float
    blocking: bool = False
    evidence: Tuple[str, ...] = ()


class CategoryResult(_Frozen):
    category: VetoCategory
    passed: bool
    failed_condition: Optional[str] = None
    failure_reason: str = ""
    results: Tuple[VetoConditionResult, ...] = ()


class VetoResult(_Frozen):
    passed: bool
    probability: float  # 0.0 or 1.0, a multiplicative veto term
    failure_category: Optional[VetoCategory] = None
    failure_condition: Optional[str] = None
    failure_reason: Optional[str] = None
    audit_trail: Tuple[CategoryResult, ...] = ()
    total_checks: int = 0
    passed_checks: int = 0
    failed_checks: int = 0


# ---------------------------------------------------------------------------
#  Playbook
# ---------------------------------------------------------------------------

class ConditionOutcome(_Frozen):
    passed: bool
    value: Any = None
    threshold: str = ""
    certainty: float = 0.0
    failure_reason: Optional[str] = None
    evidence: Tuple[str, ...] = ()


class MandatoryResult(_Frozen):
    all_passed: bool
    failed_condition: Optional[str] = None
    failure_details: Optional[str] = None
    triggers_veto: bool = False
    condition_details: _read_only(ConditionOutcome) = Field(default_factory=_empty_mapping)


class KillFactorHit(_Frozen):
    factor: str
    description: str
    certainty: float


class KillFactorResult(_Frozen):
    killed: bool
    kill_factors: Tuple[KillFactorHit, ...] = ()
    requires_veto: bool = False


class SupportiveEvidence(_Frozen):
    evidence_type: str
    strength: float = Field(ge=0.0, le=1.0)
    description: str = ""
    data_sources: Tuple[str, ...] = ()


class PlaybookResult(_Frozen):
    commodity: Commodity
    mandatory_result: MandatoryResult
    kill_factor_result: KillFactorResult
    supportive_evidence: Tuple[SupportiveEvidence, ...] = ()
    likelihood_weights: _read_only(float) = Field(default_factory=_empty_mapping)
    overall_assessment: Assessment
    confidence: float = Field(ge=0.0, le=1.0)
    recommendations: Tuple[str, ...] = ()
    risk_factors: Tuple[str, ...] = ()


# ---------------------------------------------------------------------------
#  Posterior & collapse
# ---------------------------------------------------------------------------

class PosteriorDistribution(_Frozen):
    mean: float = Field(ge=0.0, le=1.0)
    variance: float = Field(ge=0.0)
    confidence_class: ConfidenceClass
    uncertainty_bounds: Tuple[float, float]
    likelihood_contributions: _read_only(float) = Field(default_factory=_empty_mapping)
    normalization_constant: float = 0.0
    veto_reason: Optional[str] = None
    corrected_likelihoods: _read_only(LikelihoodDistribution) = Field(default_factory=_empty_mapping)


class CollapseResult(_Frozen):
    collapsed: bool
    supportive_count: int
    uncertainty_reduction: float
    convergence_score: float
    collapse_strength: float
    confidence_level: CollapseLevel
    independence_valid: bool = True


class CollapsePatternAnalysis(_Frozen):
    pattern: CollapsePattern
    convergence_score: float = 0.0
    dominant_evidence: Tuple[int, ...] = ()
    weak_evidence: Tuple[int, ...] = ()
    recommendations: Tuple[str, ...] = ()


class AnalysisReport(_Frozen):
    """Everything one analysis request produces."""
    target_id: str
    commodity: Commodity
    prior: PriorDistribution
    likelihoods: _read_only(LikelihoodDistribution)
    chemical: Optional[ChemicalLikelihoodResult] = None
    veto: VetoResult
    playbook: Optional[PlaybookResult] = None
    posterior: PosteriorDistribution
    collapse: Optional[CollapseResult] = None
    collapse_pattern: Optional[CollapsePatternAnalysis] = None
    data_quality_flags: Tuple[str, ...] = ()
