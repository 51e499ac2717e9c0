"""
Aurora Engine — Validation rules for computed values.

Every combined value is clamped to its documented range before it leaves
an engine. Clamps are silent to the caller (they are not errors) but are
logged so a run can be audited.
"""

import logging
import math

from ..errors import ValidationError

logger = logging.getLogger(__name__)

VALIDATION_RULES = {
    "probability": (0.0, 1.0),
    "prior": (0.01, 0.3),
    "factor": (0.0, 1.0),
    "chemical_likelihood": (0.0, 5.0),
    "likelihood_interval": (0.0, 10.0),
    "collapse_strength": (0.0, 10.0),
    "strength": (0.0, 1.0),
    "confidence": (0.0, 1.0),
    "variance": (0.0, 1.0e6),
}


def validate_value(field: str, value: float) -> tuple[bool, str]:
    """
    Validate a computed value against its bounds.

    Returns: (is_valid, message)
    """
    if field not in VALIDATION_RULES:
        return True, f"No validation rule for '{field}'"

    low, high = VALIDATION_RULES[field]
    if low <= value <= high:
        return True, "OK"
    return False, f"{field}={value} is outside [{low}, {high}]"


def clip_value(field: str, value: float, low: float | None = None,
               high: float | None = None) -> float:
    """Clip a value to its valid range, logging if clamped.

    `low` / `high` override the table bounds (used when settings change them).
    """
    rule = VALIDATION_RULES.get(field)
    if rule is None and low is None and high is None:
        return value

    lo = low if low is not None else (rule[0] if rule else -math.inf)
    hi = high if high is not None else (rule[1] if rule else math.inf)
    if value < lo:
        logger.debug(f"Clipping {field}={value} to floor {lo}")
        return lo
    if value > hi:
        logger.debug(f"Clipping {field}={value} to ceiling {hi}")
        return hi
    return value


def clip_interval(lower: float, upper: float, low: float = 0.0,
                  high: float = 1.0) -> tuple[float, float]:
    """Clamp both ends of an interval into [low, high]."""
    return max(low, lower), min(high, upper)


def require_unit_interval(field: str, value: float) -> float:
    """Raise ValidationError unless 0 <= value <= 1."""
    if value is None or math.isnan(value) or not 0.0 <= value <= 1.0:
        raise ValidationError(field, f"expected a score in [0, 1], got {value}")
    return value


def validate_posterior_output(posterior) -> list[str]:
    """
    Validate a posterior against the output invariants.

    Returns list of validation errors (empty = all good).
    """
    errors = []

    ok, msg = validate_value("probability", posterior.mean)
    if not ok:
        errors.append(f"Posterior mean: {msg}")

    ok, msg = validate_value("variance", posterior.variance)
    if not ok:
        errors.append(f"Posterior variance: {msg}")

    lower, upper = posterior.uncertainty_bounds
    for name, bound in (("lower", lower), ("upper", upper)):
        ok, msg = validate_value("probability", bound)
        if not ok:
            errors.append(f"Credible interval {name}: {msg}")
    if lower > upper:
        errors.append(f"Credible interval inverted: [{lower}, {upper}]")

    if posterior.veto_reason is not None:
        if posterior.mean != 0.0 or posterior.variance != 0.0:
            errors.append("Vetoed posterior must have mean and variance exactly 0")
        if posterior.confidence_class.value != "NOISE":
            errors.append("Vetoed posterior must be classified NOISE")

    return errors
