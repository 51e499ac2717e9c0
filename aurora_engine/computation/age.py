"""
Aurora Engine — Geological age parsing.

Ages arrive as free text ("45 Ma", "2.5 ma"). An unparsable string falls
back to 100 Ma; callers that care can ask for the fallback flag and surface
it as a data-quality issue.
"""

import logging
import re

logger = logging.getLogger(__name__)

AGE_FALLBACK_MA = 100.0
AGE_FALLBACK_FLAG = "age_unparsed_default_100Ma"

_AGE_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*Ma", re.IGNORECASE)


def parse_age_with_flag(age: str | None) -> tuple[float, bool]:
    """Parse an "N Ma" string. Returns (age_ma, used_fallback)."""
    match = _AGE_PATTERN.search(age or "")
    if match:
        return float(match.group(1)), False
    logger.warning(f"Unparsable age '{age}', defaulting to {AGE_FALLBACK_MA} Ma")
    return AGE_FALLBACK_MA, True


def parse_age(age: str | None) -> float:
    """Parse an "N Ma" string to millions of years (100 Ma if unparsable)."""
    return parse_age_with_flag(age)[0]
