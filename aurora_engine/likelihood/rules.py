"""
Rule-based Likelihood Services

Structural, physical and surface evidence scorers. Each observation gets
a support score in [0, 1] from commodity rules and a confidence in [0, 1]
from its own quality field:

    likelihood = 0.5 + 2.0 × confidence-weighted mean support   ∈ [0.5, 2.5]
    uncertainty = 0.1 + 0.4 × (1 − mean confidence)

No observations → neutral likelihood 1.0 with uncertainty 0.5.
These are replaceable detectors; swap a service in the orchestrator to
plug in a real inversion or interpretation model.
"""

from abc import abstractmethod
from typing import Any, Sequence

import numpy as np

from ..models import (
    EvidenceType,
    LikelihoodDistribution,
    PhysicalObservation,
    StructuralObservation,
    SurfaceObservation,
)
from .base import LikelihoodService

LIKELIHOOD_BASE = 0.5
LIKELIHOOD_SPAN = 2.0
NEUTRAL_LIKELIHOOD = 1.0
NEUTRAL_UNCERTAINTY = 0.5

HYDROCARBONS = ("hydrocarbon_onshore", "hydrocarbon_offshore")

# Fault styles that favour each deposit type
FAVOURABLE_FAULTS = {
    "copper_porphyry": ("radial", "circular", "strike_slip"),
    "lithium_brine": ("normal", "extensional", "graben"),
    "hydrocarbon_onshore": ("thrust", "normal", "anticline"),
    "hydrocarbon_offshore": ("growth", "normal", "salt"),
}


class RuleLikelihoodService(LikelihoodService):
    """Shared scoring loop for the rule-based services."""

    @abstractmethod
    def support(self, observation: Any, commodity: str) -> float:
        """Support for the deposit hypothesis from one observation, in [0, 1]."""
        pass

    @abstractmethod
    def confidence(self, observation: Any) -> float:
        """How much to trust one observation, in [0, 1]."""
        pass

    def score(self, evidence: Sequence[Any], commodity: str) -> LikelihoodDistribution:
        if not evidence:
            return self.distribution(NEUTRAL_LIKELIHOOD, NEUTRAL_UNCERTAINTY)

        supports = np.array([self.support(o, commodity) for o in evidence], dtype=float)
        confidences = np.clip(np.array([self.confidence(o) for o in evidence], dtype=float), 0.0, 1.0)

        if confidences.sum() > 0:
            weighted_support = float(np.average(supports, weights=confidences))
        else:
            weighted_support = float(supports.mean())

        mean = LIKELIHOOD_BASE + LIKELIHOOD_SPAN * weighted_support
        uncertainty = 0.1 + 0.4 * (1 - float(confidences.mean()))

        self.logger.debug(
            f"{self.evidence_type.value} {commodity}: n={len(evidence)}, "
            f"support={weighted_support:.3f}, L={mean:.3f}"
        )
        return self.distribution(mean, uncertainty)


class StructuralLikelihoodService(RuleLikelihoodService):
    """SAR / field structural features: lineaments, fault style, trap geometry."""

    @property
    def evidence_type(self) -> EvidenceType:
        return EvidenceType.STRUCTURAL

    def support(self, observation: StructuralObservation, commodity: str) -> float:
        scores = [
            min(1.0, observation.lineament_density / 10),
            1.0 if observation.fault_type in FAVOURABLE_FAULTS.get(commodity, ()) else 0.3,
            1.0 if observation.relationship_to_mineralization == "controlling" else 0.4,
        ]
        if commodity == "copper_porphyry" and observation.circular_variance is not None:
            scores.append(1.0 - observation.circular_variance)
        if commodity in HYDROCARBONS or commodity == "lithium_brine":
            scores.append(1.0 if observation.trap_geometry_flag else 0.2)
        return float(np.clip(np.mean(scores), 0.0, 1.0))

    def confidence(self, observation: StructuralObservation) -> float:
        return observation.structural_confidence


class PhysicalLikelihoodService(RuleLikelihoodService):
    """Gravity and magnetic residual anomalies."""

    @property
    def evidence_type(self) -> EvidenceType:
        return EvidenceType.PHYSICAL

    def support(self, observation: PhysicalObservation, commodity: str) -> float:
        anomaly = observation.residual_anomaly
        magnetic = observation.method == "magnetic"

        if commodity == "copper_porphyry":
            # Magnetite destruction in the phyllic shell reads as a magnetic low
            if magnetic:
                return 1.0 if anomaly < -50 else 0.3
            return 0.8 if abs(anomaly) > 10 else 0.3
        if commodity == "lithium_brine":
            # Closed-basin fill is a gravity low
            if not magnetic:
                return 1.0 if anomaly < -10 else 0.3
            return 0.3
        if not magnetic:
            return 0.8 if anomaly > 5 else 0.3
        return 0.3

    def confidence(self, observation: PhysicalObservation) -> float:
        return 1.0 - observation.ambiguity_index


class SurfaceLikelihoodService(RuleLikelihoodService):
    """Seismic / surface trap interpretations."""

    @property
    def evidence_type(self) -> EvidenceType:
        return EvidenceType.SURFACE

    def support(self, observation: SurfaceObservation, commodity: str) -> float:
        if commodity in HYDROCARBONS:
            scores = [
                min(1.0, observation.closure_height / 200),
                1.0 - observation.seal_risk,
                1.0 if observation.amplitude_anomaly else 0.3,
                1.0 if observation.charge_timing == "favorable" else 0.4,
            ]
            return float(np.clip(np.mean(scores), 0.0, 1.0))
        return 0.7 if observation.amplitude_anomaly else 0.4

    def confidence(self, observation: SurfaceObservation) -> float:
        return observation.interpretation_confidence
