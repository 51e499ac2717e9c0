"""
Aurora Engine — Probability collapse detection.

Collapse is declared when all four criteria hold:
  1. at least two supportive likelihoods (L > 1)
  2. uncertainty reduction 1 − geomean(u) > 0.7
  3. convergence score > 0.8 (1 − |CV| of the likelihood log-odds)
  4. independence proxy: |pearson(sorted L, sorted u)| < 0.8

Strength = weighted geometric mean of the supportive likelihoods
(weights 1/(u + 0.001)) over max(prior, 0.001), capped at 10.
"""

import logging
import math
from typing import List, Optional, Sequence

import numpy as np

from ..config.settings import COLLAPSE_THRESHOLDS, Settings, get_settings
from ..errors import ValidationError
from ..models import CollapseLevel, CollapsePattern, CollapsePatternAnalysis, CollapseResult
from .validation import clip_value

logger = logging.getLogger(__name__)

WEIGHT_EPSILON = 0.001


def log_odds(likelihood: float) -> float:
    """ln(L / (1 − L)) for L in (0, 1); 0 outside that domain."""
    if likelihood <= 0 or likelihood >= 1:
        return 0.0
    return math.log(likelihood / (1 - likelihood))


def convergence_score(likelihoods: Sequence[float]) -> float:
    """
    How strongly the likelihoods agree.

    1 − |std/mean| of the log-odds, floored at 0. Perfect agreement (zero
    spread, or a zero mean) scores 1.0; fewer than two values score 0.
    """
    if len(likelihoods) < 2:
        return 0.0

    values = np.array([log_odds(l) for l in likelihoods], dtype=float)
    values = values[np.isfinite(values)]
    if values.size == 0:
        return 0.0

    mean = float(np.mean(values))
    std = float(np.std(values))
    if std > 0 and mean != 0:
        return max(0.0, 1.0 - abs(std / mean))
    return 1.0


def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson correlation; 0 for mismatched, empty or constant vectors."""
    if len(x) != len(y) or len(x) == 0:
        return 0.0

    xs = np.asarray(x, dtype=float)
    ys = np.asarray(y, dtype=float)
    dx = xs - xs.mean()
    dy = ys - ys.mean()
    denominator = math.sqrt(float(np.sum(dx * dx) * np.sum(dy * dy)))
    if denominator < 1e-12:
        return 0.0
    return float(np.sum(dx * dy) / denominator)


class ProbabilityCollapseDetector:
    """Secondary pass over the likelihood / uncertainty vectors after fusion."""

    def __init__(self, settings: Optional[Settings] = None, thresholds: Optional[dict] = None):
        self.settings = settings or get_settings()
        self.thresholds = {**COLLAPSE_THRESHOLDS, **(thresholds or {})}

    def detect_collapse(
        self,
        prior_mean: float,
        likelihoods: Sequence[float],
        uncertainties: Sequence[float],
    ) -> CollapseResult:
        """
        Evaluate the four collapse criteria.

        Args:
            prior_mean: Prior probability of the target
            likelihoods: One likelihood mean per evidence type
            uncertainties: Matching uncertainties, same order

        Returns:
            CollapseResult
        """
        if len(likelihoods) != len(uncertainties):
            raise ValidationError(
                "uncertainties",
                f"expected {len(likelihoods)} values to match the likelihoods, got {len(uncertainties)}",
            )
        if any(u < 0 for u in uncertainties):
            raise ValidationError("uncertainties", "uncertainties must be non-negative")

        t = self.thresholds
        supportive_count = sum(1 for l in likelihoods if l > t["supportive_likelihood"])
        is_supportive = supportive_count >= t["min_supportive"]

        reduction = self._uncertainty_reduction(uncertainties)
        significant_reduction = reduction > t["uncertainty_reduction"]

        convergence = convergence_score(likelihoods)
        independence_valid = self._independence_valid(likelihoods, uncertainties)

        collapsed = (
            is_supportive
            and significant_reduction
            and convergence > t["convergence"]
            and independence_valid
        )

        strength = self._collapse_strength(prior_mean, likelihoods, uncertainties)

        if collapsed and strength > t["collapsed_strength"]:
            level = CollapseLevel.COLLAPSED
        elif collapsed and strength > t["high_strength"]:
            level = CollapseLevel.HIGH
        elif is_supportive and significant_reduction and convergence > t["medium_convergence"]:
            level = CollapseLevel.MEDIUM
        else:
            level = CollapseLevel.LOW

        logger.debug(
            f"Collapse: supportive={supportive_count}, reduction={reduction:.3f}, "
            f"convergence={convergence:.3f}, strength={strength:.3f} → {level.value}"
        )

        return CollapseResult(
            collapsed=collapsed,
            supportive_count=supportive_count,
            uncertainty_reduction=reduction,
            convergence_score=convergence,
            collapse_strength=strength,
            confidence_level=level,
            independence_valid=independence_valid,
        )

    def analyze_pattern(self, likelihoods: Sequence[float]) -> CollapsePatternAnalysis:
        """Classify the evidence pattern for operator guidance."""
        if len(likelihoods) < 2:
            return CollapsePatternAnalysis(
                pattern=CollapsePattern.INSUFFICIENT_DATA,
                recommendations=("Need more evidence types for collapse detection",),
            )

        threshold = self.thresholds["supportive_likelihood"]
        dominant = tuple(i for i, l in enumerate(likelihoods) if l > threshold)
        weak = tuple(i for i, l in enumerate(likelihoods) if l <= threshold)
        convergence = convergence_score(likelihoods)

        if convergence > self.thresholds["convergence"] and len(dominant) >= 2:
            pattern = CollapsePattern.CONVERGENT
        elif convergence < 0.3:
            pattern = CollapsePattern.DIVERGENT
        else:
            pattern = CollapsePattern.MIXED

        return CollapsePatternAnalysis(
            pattern=pattern,
            convergence_score=convergence,
            dominant_evidence=dominant,
            weak_evidence=weak,
            recommendations=tuple(_pattern_recommendations(pattern, len(dominant), convergence)),
        )

    @staticmethod
    def _uncertainty_reduction(uncertainties: Sequence[float]) -> float:
        if len(uncertainties) == 0:
            return 0.0
        geometric_mean = float(np.prod(np.asarray(uncertainties, dtype=float))) ** (1 / len(uncertainties))
        return 1.0 - geometric_mean

    def _independence_valid(self, likelihoods: Sequence[float],
                            uncertainties: Sequence[float]) -> bool:
        # Heuristic proxy only: compares the sorted vectors, not paired values
        if len(likelihoods) < 2:
            return True
        correlation = pearson_correlation(sorted(likelihoods), sorted(uncertainties))
        return abs(correlation) < self.thresholds["independence_correlation"]

    def _collapse_strength(self, prior_mean: float, likelihoods: Sequence[float],
                           uncertainties: Sequence[float]) -> float:
        threshold = self.thresholds["supportive_likelihood"]
        pairs = [(l, u) for l, u in zip(likelihoods, uncertainties) if l > threshold]
        if not pairs:
            return 0.0

        values = np.array([l for l, _ in pairs], dtype=float)
        weights = np.array([1.0 / (u + WEIGHT_EPSILON) for _, u in pairs], dtype=float)
        weighted_geomean = math.exp(float(np.sum(weights * np.log(values)) / np.sum(weights)))

        strength = weighted_geomean / max(prior_mean, WEIGHT_EPSILON)
        return clip_value("collapse_strength", strength, high=self.settings.collapse_strength_cap)


def _pattern_recommendations(pattern: CollapsePattern, supportive_count: int,
                             convergence: float) -> List[str]:
    recommendations = []

    if pattern == CollapsePattern.CONVERGENT:
        recommendations.append("Strong convergence detected - consider drilling justification")
        recommendations.append("Validate geological constraints before proceeding")
    elif pattern == CollapsePattern.DIVERGENT:
        recommendations.append("Evidence is contradictory - seek additional data")
        recommendations.append("Review data quality and processing methods")
    elif pattern == CollapsePattern.MIXED:
        recommendations.append("Mixed evidence - prioritize high-quality data sources")
        if supportive_count < 2:
            recommendations.append("Need more supportive evidence for collapse")

    if convergence < 0.5:
        recommendations.append("Low convergence - check for data processing errors")

    return recommendations


def detect_collapse(prior_mean: float, likelihoods: Sequence[float],
                    uncertainties: Sequence[float],
                    settings: Optional[Settings] = None) -> CollapseResult:
    """Module-level shortcut for ProbabilityCollapseDetector(...).detect_collapse()."""
    return ProbabilityCollapseDetector(settings).detect_collapse(prior_mean, likelihoods, uncertainties)
