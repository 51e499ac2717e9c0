"""
Aurora Engine — numeric core.

Prior derivation, Bayesian fusion, collapse detection and the shared
validation / clamping helpers.
"""

from .age import parse_age, parse_age_with_flag
from .collapse import ProbabilityCollapseDetector, detect_collapse
from .fusion import BayesianFusionEngine, classify_confidence, compute_posterior, credible_interval
from .priors import compute_regional_prior, prior_from_factors

__all__ = [
    "parse_age",
    "parse_age_with_flag",
    "ProbabilityCollapseDetector",
    "detect_collapse",
    "BayesianFusionEngine",
    "classify_confidence",
    "compute_posterior",
    "credible_interval",
    "compute_regional_prior",
    "prior_from_factors",
]
