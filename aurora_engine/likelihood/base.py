"""
Base Likelihood Service

Abstract base class for the per-evidence-type likelihood scorers.
Every service returns the same LikelihoodDistribution contract:
mean (multiplicative factor, >1 supportive), variance, 95% interval,
evidence-type tag.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from ..config.settings import Settings, get_settings
from ..config.tables import DEFAULT_TABLES, GeologyTables
from ..models import EvidenceType, GeologicalTarget, LikelihoodDistribution

LIKELIHOOD_Z = 1.96


def likelihood_interval(mean: float, uncertainty: float,
                        ceiling: float = 10.0) -> tuple[float, float]:
    """mean ± 1.96·uncertainty, clamped to [0, ceiling]."""
    return max(0.0, mean - LIKELIHOOD_Z * uncertainty), min(ceiling, mean + LIKELIHOOD_Z * uncertainty)


class LikelihoodService(ABC):
    """
    Abstract base class for evidence likelihood services.

    Provides:
    - Settings and lookup-table injection
    - Evidence extraction from a target
    - Distribution construction from (mean, uncertainty)
    """

    def __init__(self, settings: Optional[Settings] = None,
                 tables: GeologyTables = DEFAULT_TABLES):
        self.settings = settings or get_settings()
        self.tables = tables
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    @abstractmethod
    def evidence_type(self) -> EvidenceType:
        """Return the evidence type this service scores."""
        pass

    @abstractmethod
    def score(self, evidence: Sequence[Any], commodity: str) -> LikelihoodDistribution:
        """
        Score raw evidence of this service's type for one commodity.

        Args:
            evidence: Observations of this evidence type (may be empty)
            commodity: Commodity key, e.g. "copper_porphyry"

        Returns:
            LikelihoodDistribution tagged with evidence_type
        """
        pass

    def evidence_from(self, target: GeologicalTarget) -> Sequence[Any]:
        return getattr(target.evidence, self.evidence_type.value)

    def evaluate(self, target: GeologicalTarget) -> LikelihoodDistribution:
        """Score the target's own evidence of this type."""
        return self.score(self.evidence_from(target), target.commodity.value)

    def distribution(self, mean: float, uncertainty: float) -> LikelihoodDistribution:
        """Build the output distribution; variance is uncertainty squared."""
        return LikelihoodDistribution(
            mean=mean,
            variance=uncertainty ** 2,
            confidence_interval=likelihood_interval(
                mean, uncertainty, self.settings.likelihood_interval_ceiling
            ),
            evidence_type=self.evidence_type,
        )
