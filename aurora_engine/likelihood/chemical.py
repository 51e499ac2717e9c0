"""
Chemical Likelihood Service

P(E_chem|D) = Π_k max(0.1, abundance_k × confidence_k) × (1 + coverage)

over the commodity's diagnostic minerals, capped at 5.0. With no diagnostic
detections the likelihood is 0.1 (evidence against, not neutral).

Pipeline:
1. Unmix each sample into mineral abundances (pluggable detector)
2. Keep detections above the abundance threshold (5%)
3. Match alteration assemblages (potassic, phyllic, argillic, propylitic)
4. Score the diagnostic minerals
5. RSS uncertainty: sqrt(mineral² + unmixing² + data_quality²)
"""

from typing import Callable, Iterable, List, Optional, Sequence

import numpy as np

from ..config.settings import Settings
from ..config.tables import (
    ASSEMBLAGE_WEIGHTS,
    DEFAULT_QUALITY_UNCERTAINTY,
    DEFAULT_TABLES,
    GeologyTables,
)
from ..models import (
    AlterationAssemblage,
    ChemicalLikelihoodResult,
    EvidenceType,
    HyperspectralSample,
    LikelihoodDistribution,
    MineralDetection,
    SpectralQuality,
)
from ..computation.validation import clip_value
from .base import LikelihoodService

NO_DETECTION_LIKELIHOOD = 0.1
MIN_MINERAL_TERM = 0.1
NO_DETECTION_MINERAL_UNCERTAINTY = 0.5
NO_SAMPLE_UNMIXING_UNCERTAINTY = 0.3

Unmixer = Callable[[HyperspectralSample], List[MineralDetection]]


def mineral_confidence(abundance: float, rmse: float) -> float:
    """clamp(abundance × (1 − rmse) × 2, 0.1, 1.0)"""
    return max(0.1, min(1.0, abundance * (1 - rmse) * 2))


def endmember_unmixer(sample: HyperspectralSample) -> List[MineralDetection]:
    """
    Default detector: reads the sample's pre-computed endmember abundances.

    Replace with a real spectral-library unmixer through
    ChemicalLikelihoodService(unmixer=...).
    """
    return [
        MineralDetection(
            mineral_id=mineral,
            abundance=abundance,
            confidence=mineral_confidence(abundance, sample.rmse),
            spectral_fit_rmse=sample.rmse,
            sigma=max(0.01, abundance * 0.1),
        )
        for mineral, abundance in sample.endmember_abundances.items()
    ]


def zoning_pattern(minerals: Sequence[str]) -> str:
    if len(minerals) > 3:
        return "concentric"
    if len(minerals) > 1:
        return "linear"
    return "random"


def alteration_intensity(confidence: float) -> str:
    if confidence > 0.8:
        return "high"
    if confidence > 0.5:
        return "moderate"
    return "low"


def identify_alteration_assemblages(
    detections: Iterable[MineralDetection],
    tables: GeologyTables = DEFAULT_TABLES,
) -> List[AlterationAssemblage]:
    """
    Match named assemblages whose required minerals are all present.

    confidence = 0.5·[required all present] + 0.3·optional coverage
                 + 0.2·mean abundance of the matched minerals, capped at 1.
    """
    detections = list(detections)
    abundance = {}
    for d in detections:
        abundance[d.mineral_id] = max(abundance.get(d.mineral_id, 0.0), d.abundance)

    weights = ASSEMBLAGE_WEIGHTS
    assemblages = []
    for name, rule in tables.alteration_assemblages.items():
        required = list(rule["required"])
        optional = list(rule["optional"])
        if not all(m in abundance for m in required):
            continue

        present = [m for m in required + optional if m in abundance]
        optional_coverage = (
            sum(1 for m in optional if m in abundance) / len(optional) if optional else 0.0
        )
        mean_abundance = sum(abundance[m] for m in present) / len(present)
        confidence = min(
            1.0,
            weights["required"] + weights["optional"] * optional_coverage
            + weights["abundance"] * mean_abundance,
        )

        assemblages.append(AlterationAssemblage(
            assemblage_id=name,
            alteration_type=name,
            minerals=tuple(present),
            confidence=confidence,
            zoning_pattern=zoning_pattern(present),
            intensity=alteration_intensity(confidence),
        ))

    return assemblages


def assess_spectral_quality(samples: Sequence[HyperspectralSample]) -> SpectralQuality:
    """
    Grade acquisition quality from mean SNR and cloud cover.

    excellent: SNR > 100 and cloud < 0.1; good: SNR > 50 and cloud < 0.2;
    fair: SNR > 20; otherwise poor. Samples without metrics grade poor.
    """
    snrs = [s.signal_to_noise for s in samples if s.signal_to_noise is not None]
    clouds = [s.cloud_cover for s in samples if s.cloud_cover is not None]
    if not snrs:
        return SpectralQuality(cloud_cover=float(np.mean(clouds)) if clouds else None)

    snr = float(np.mean(snrs))
    cloud = float(np.mean(clouds)) if clouds else 0.0

    if snr > 100 and cloud < 0.1:
        quality = "excellent"
    elif snr > 50 and cloud < 0.2:
        quality = "good"
    elif snr > 20:
        quality = "fair"
    else:
        quality = "poor"

    return SpectralQuality(signal_to_noise=snr, cloud_cover=cloud, overall_quality=quality)


def chemical_kill_factors(
    detections: Sequence[MineralDetection],
    assemblages: Sequence[AlterationAssemblage],
    commodity: str,
) -> List[str]:
    kill_factors = []
    if commodity == "copper_porphyry":
        types = {a.alteration_type for a in assemblages}
        if "potassic" not in types and "phyllic" not in types:
            kill_factors.append("no_core_alteration")
    if commodity == "lithium_brine":
        if not any("evaporite" in d.mineral_id or "halite" in d.mineral_id for d in detections):
            kill_factors.append("no_evaporite_minerals")
    return kill_factors


class ChemicalLikelihoodService(LikelihoodService):
    """Hyperspectral / geochemical evidence scorer."""

    def __init__(self, settings: Optional[Settings] = None,
                 tables: GeologyTables = DEFAULT_TABLES,
                 unmixer: Optional[Unmixer] = None):
        super().__init__(settings, tables)
        self.unmixer = unmixer or endmember_unmixer

    @property
    def evidence_type(self) -> EvidenceType:
        return EvidenceType.CHEMICAL

    def score(self, evidence: Sequence[HyperspectralSample], commodity: str) -> LikelihoodDistribution:
        return self.analyze(evidence, commodity).distribution

    def detect_minerals(self, samples: Sequence[HyperspectralSample]) -> List[MineralDetection]:
        """Unmix every sample and keep detections above the abundance threshold."""
        threshold = self.settings.detection_abundance_threshold
        detections = []
        for sample in samples:
            detections.extend(d for d in self.unmixer(sample) if d.abundance > threshold)
        return detections

    def analyze(self, samples: Sequence[HyperspectralSample], commodity: str) -> ChemicalLikelihoodResult:
        """
        Full chemical analysis for one target.

        Returns:
            ChemicalLikelihoodResult with the distribution plus the detections,
            assemblages, quality grade and commodity diagnostics behind it.
        """
        samples = list(samples)
        diagnostic = set(self.tables.diagnostic_minerals.get(commodity, ()))

        detections = self.detect_minerals(samples)
        diagnostic_hits = [d for d in detections if d.mineral_id in diagnostic]
        assemblages = identify_alteration_assemblages(detections, self.tables)
        quality = assess_spectral_quality(samples)

        likelihood = self.mineral_likelihood(diagnostic_hits, len(diagnostic))
        uncertainty = self.propagate_uncertainty(diagnostic_hits, samples, quality)

        required = set(self.tables.required_assemblages.get(commodity, ()))
        present_types = [a.alteration_type for a in assemblages]
        kill_factors = chemical_kill_factors(detections, assemblages, commodity)

        self.logger.debug(
            f"Chemical {commodity}: {len(diagnostic_hits)}/{len(diagnostic)} diagnostic, "
            f"L={likelihood:.3f}, u={uncertainty:.3f}, kill={kill_factors}"
        )

        return ChemicalLikelihoodResult(
            distribution=self.distribution(likelihood, uncertainty),
            uncertainty=uncertainty,
            mineral_detections=tuple(detections),
            alteration_assemblages=tuple(assemblages),
            spectral_quality=quality,
            reasoning=tuple(_chemical_reasoning(diagnostic_hits, assemblages, likelihood, commodity)),
            diagnostic_minerals_present=tuple(dict.fromkeys(d.mineral_id for d in diagnostic_hits)),
            required_assemblages_present=tuple(t for t in present_types if t in required),
            kill_factors_triggered=tuple(kill_factors),
        )

    def mineral_likelihood(self, diagnostic_hits: Sequence[MineralDetection],
                           expected_count: int) -> float:
        if not diagnostic_hits or expected_count == 0:
            return NO_DETECTION_LIKELIHOOD

        product = 1.0
        for detection in diagnostic_hits:
            product *= max(MIN_MINERAL_TERM, detection.abundance * detection.confidence)

        coverage = len(diagnostic_hits) / expected_count
        return clip_value(
            "chemical_likelihood", product * (1 + coverage),
            high=self.settings.chemical_likelihood_cap,
        )

    def propagate_uncertainty(self, detections: Sequence[MineralDetection],
                              samples: Sequence[HyperspectralSample],
                              quality: SpectralQuality) -> float:
        """Root-sum-square of independent mineral, unmixing and quality terms."""
        if detections:
            mineral = float(np.mean([d.abundance * 0.1 for d in detections]))
        else:
            mineral = NO_DETECTION_MINERAL_UNCERTAINTY

        if samples:
            unmixing = float(np.mean([s.rmse for s in samples]))
        else:
            unmixing = NO_SAMPLE_UNMIXING_UNCERTAINTY

        data_quality = self.tables.quality_uncertainty.get(
            quality.overall_quality, DEFAULT_QUALITY_UNCERTAINTY
        )
        return float(np.sqrt(mineral ** 2 + unmixing ** 2 + data_quality ** 2))


def _chemical_reasoning(diagnostic_hits: Sequence[MineralDetection],
                        assemblages: Sequence[AlterationAssemblage],
                        likelihood: float, commodity: str) -> List[str]:
    reasoning = []

    count = len(diagnostic_hits)
    if count > 3:
        reasoning.append(f"Strong mineralogical evidence: {count} diagnostic minerals detected")
    elif count > 1:
        reasoning.append(f"Moderate mineralogical evidence: {count} diagnostic minerals detected")
    elif count == 1:
        reasoning.append(f"Limited mineralogical evidence: only {diagnostic_hits[0].mineral_id} detected")
    else:
        reasoning.append(f"No diagnostic minerals detected for {commodity}")

    if assemblages:
        strong = [a.alteration_type for a in assemblages if a.confidence > 0.7]
        if strong:
            reasoning.append(f"Well-defined alteration zoning: {', '.join(strong)}")
        else:
            reasoning.append("Weak alteration signatures detected")
    else:
        reasoning.append("No significant alteration assemblages identified")

    if likelihood > 2.0:
        reasoning.append(f"Strong chemical evidence supporting {commodity} mineralization")
    elif likelihood > 1.0:
        reasoning.append("Moderate chemical evidence present")
    elif likelihood > 0.5:
        reasoning.append("Limited chemical evidence")
    else:
        reasoning.append(f"Chemical evidence does not support {commodity} mineralization")

    return reasoning
