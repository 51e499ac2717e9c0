"""
Aurora Engine — Bayesian fusion.

P(D|E) = P(D|R) × Π P(E_i|D) × veto / Z

Steps:
1. Veto gate: a failed veto returns the zero posterior, nothing else runs.
2. Independence correction: likelihoods whose correlation with the other
   supplied evidence types exceeds the threshold are shrunk toward 1,
   L' = L^(1/(1+ρ)), Var' = Var/(1+ρ).
3. Log-space product with sequential variance propagation
   Var = V1·V2 + V1 + V2 (near-unit-mean approximation), each step
   capped at the variance ceiling.
4. Normalization Z = max(prior × Π L', 0.001), taken in log space so the
   mean is exp(ln P − ln Z) and never overflows.
5. Confidence class from mean and signal-to-noise.
6. Normal-approximation credible interval, clamped to [0, 1].
"""

import logging
import math
from typing import Dict, Iterable, Mapping, Optional, Union

import numpy as np
import pandas as pd

from ..config.settings import (
    CONFIDENCE_CLASS_THRESHOLDS,
    DEFAULT_Z_SCORE,
    Z_SCORES,
    Settings,
    get_settings,
)
from ..config.tables import DEFAULT_TABLES, GeologyTables
from ..errors import ValidationError
from ..models import (
    ConfidenceClass,
    LikelihoodDistribution,
    PosteriorDistribution,
    PriorDistribution,
    VetoResult,
)
from .validation import clip_interval, clip_value

logger = logging.getLogger(__name__)

LOG_FLOOR = 1e-9
# exp(700) ~ 1e304, the largest normalization constant reported
MAX_LOG_NORMALIZATION = 700.0

LikelihoodInput = Union[Mapping[str, LikelihoodDistribution], Iterable[LikelihoodDistribution]]


def z_score(level: float) -> float:
    """z for a two-sided credible level (1.96 for unrecognized levels)."""
    return Z_SCORES.get(level, DEFAULT_Z_SCORE)


def classify_confidence(mean: float, variance: float) -> ConfidenceClass:
    """
    NOISE if mean<0.05 or SNR<1; RECON if mean<0.15 or SNR<2;
    PROSPECT if mean<0.35 or SNR<3; PRIORITY if mean<0.65 or SNR<4;
    else DRILL_JUSTIFIED.
    """
    if variance > 0:
        snr = mean / math.sqrt(variance)
    else:
        snr = math.inf if mean > 0 else 0.0

    for name, max_mean, max_snr in CONFIDENCE_CLASS_THRESHOLDS:
        if mean < max_mean or snr < max_snr:
            return ConfidenceClass(name)
    return ConfidenceClass.DRILL_JUSTIFIED


def credible_interval(mean: float, variance: float, level: float = 0.95) -> tuple[float, float]:
    """mean ± z·sqrt(variance), clamped to [0, 1]."""
    half_width = z_score(level) * math.sqrt(max(variance, 0.0))
    return clip_interval(mean - half_width, mean + half_width)


def zero_posterior(veto_reason: str) -> PosteriorDistribution:
    """The vetoed posterior: mean, variance and bounds exactly 0, NOISE."""
    return PosteriorDistribution(
        mean=0.0,
        variance=0.0,
        confidence_class=ConfidenceClass.NOISE,
        uncertainty_bounds=(0.0, 0.0),
        likelihood_contributions={},
        normalization_constant=0.0,
        veto_reason=veto_reason,
    )


def _keyed(likelihoods: LikelihoodInput) -> Dict[str, LikelihoodDistribution]:
    if isinstance(likelihoods, Mapping):
        return dict(likelihoods)

    keyed = {}
    for likelihood in likelihoods:
        key = likelihood.evidence_type.value
        if key in keyed:
            raise ValidationError("likelihoods", f"duplicate evidence type '{key}'")
        keyed[key] = likelihood
    return keyed


class BayesianFusionEngine:
    """
    Joins prior, likelihoods and veto result into a posterior.

    Lookup tables and thresholds are injected so tests can override them.
    """

    def __init__(self, settings: Optional[Settings] = None,
                 tables: GeologyTables = DEFAULT_TABLES):
        self.settings = settings or get_settings()
        self.tables = tables

    def correlation_matrix(self, evidence_types: Iterable[str]) -> pd.DataFrame:
        """Symmetric evidence correlation matrix labelled by evidence type."""
        types = list(evidence_types)
        values = [[self.tables.correlation(a, b) for b in types] for a in types]
        return pd.DataFrame(values, index=types, columns=types, dtype=float)

    def max_correlation(self, matrix: pd.DataFrame, evidence_type: str) -> float:
        """
        Maximum correlation of one evidence type against the supplied set.

        The default reading takes the row max including the diagonal and
        subtracts 1.0; with exclude_self_correlation the diagonal is skipped.
        """
        row = matrix.loc[evidence_type].abs()
        if self.settings.exclude_self_correlation:
            others = row.drop(labels=[evidence_type])
            return float(others.max()) if not others.empty else 0.0
        return float(row.max()) - 1.0

    def correct_for_independence(
        self, likelihoods: LikelihoodInput
    ) -> Dict[str, LikelihoodDistribution]:
        """
        Shrink likelihoods that are correlated with other supplied evidence.

        Uncorrected likelihoods are returned as the same object.
        """
        keyed = _keyed(likelihoods)
        if not keyed:
            return {}

        matrix = self.correlation_matrix(keyed.keys())
        corrected = {}
        for name, likelihood in keyed.items():
            max_corr = self.max_correlation(matrix, name)
            if max_corr <= self.settings.correlation_threshold:
                corrected[name] = likelihood
                continue

            penalty = 1.0 / (1.0 + max_corr)
            lower, upper = likelihood.confidence_interval
            corrected[name] = likelihood.model_copy(update={
                "mean": likelihood.mean ** penalty,
                "variance": likelihood.variance * penalty,
                "confidence_interval": (max(lower, 0.0) ** penalty, max(upper, 0.0) ** penalty),
                "adjustment_applied": True,
                "correlation_penalty": penalty,
            })
            logger.debug(f"Independence correction on {name}: ρ={max_corr:.3f}, penalty={penalty:.3f}")

        return corrected

    def compute_posterior(
        self,
        prior: PriorDistribution,
        likelihoods: LikelihoodInput,
        veto: VetoResult,
    ) -> PosteriorDistribution:
        """
        Compute the posterior for one target.

        Returns:
            PosteriorDistribution; the zero posterior when the veto failed.
        """
        if not veto.passed:
            reason = veto.failure_reason or f"{veto.failure_condition} failed"
            logger.info(
                f"Posterior vetoed ({veto.failure_category.value if veto.failure_category else '?'}"
                f"/{veto.failure_condition}): {reason}"
            )
            return zero_posterior(reason)

        corrected = self.correct_for_independence(likelihoods)

        means = np.array([l.mean for l in corrected.values()], dtype=float)
        log_product = math.log(max(prior.mean, LOG_FLOOR)) + float(
            np.sum(np.log(np.maximum(means, LOG_FLOOR)))
        )

        ceiling = self.settings.variance_ceiling
        variance = clip_value("variance", prior.variance, high=ceiling)
        for likelihood in corrected.values():
            v = clip_value("variance", likelihood.variance, high=ceiling)
            variance = clip_value("variance", variance * v + variance + v, high=ceiling)

        # Z stays in log space; exp(log_product) alone overflows for large L
        log_floor = math.log(self.settings.normalization_floor)
        if log_product > log_floor:
            mean = 1.0
            z = math.exp(min(log_product, MAX_LOG_NORMALIZATION))
        else:
            mean = clip_value("probability", math.exp(log_product - log_floor))
            z = self.settings.normalization_floor

        confidence_class = classify_confidence(mean, variance)
        bounds = credible_interval(mean, variance, self.settings.credible_level)

        logger.debug(
            f"Posterior: mean={mean:.4f}, var={variance:.4f}, Z={z:.4f}, class={confidence_class.value}"
        )

        return PosteriorDistribution(
            mean=mean,
            variance=variance,
            confidence_class=confidence_class,
            uncertainty_bounds=bounds,
            likelihood_contributions=self._contributions(corrected),
            normalization_constant=z,
            corrected_likelihoods=corrected,
        )

    @staticmethod
    def _contributions(likelihoods: Mapping[str, LikelihoodDistribution]) -> Dict[str, float]:
        """Share of total |ln L| carried by each evidence type, in percent."""
        weights = {
            name: abs(math.log(max(l.mean, LOG_FLOOR)))
            for name, l in likelihoods.items()
        }
        total = sum(weights.values())
        if total == 0:
            return {name: 0.0 for name in weights}
        return {name: w / total * 100 for name, w in weights.items()}


def compute_posterior(
    prior: PriorDistribution,
    likelihoods: LikelihoodInput,
    veto: VetoResult,
    settings: Optional[Settings] = None,
    tables: GeologyTables = DEFAULT_TABLES,
) -> PosteriorDistribution:
    """Module-level shortcut for BayesianFusionEngine(...).compute_posterior()."""
    return BayesianFusionEngine(settings, tables).compute_posterior(prior, likelihoods, veto)
