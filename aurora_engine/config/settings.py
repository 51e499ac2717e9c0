"""
Aurora Engine Configuration Settings

Centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables (prefix AURORA_).
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="AURORA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Aurora Deposit Probability Engine"
    app_version: str = "1.0.0"
    log_level: str = "INFO"

    # Prior Engine
    prior_floor: float = 0.01
    prior_ceiling: float = 0.3

    # Fusion
    correlation_threshold: float = 0.7
    # False keeps the legacy "max of row minus 1.0" correlation reading
    exclude_self_correlation: bool = False
    normalization_floor: float = 0.001
    credible_level: float = 0.95
    # Cap on the propagated posterior variance
    variance_ceiling: float = 1.0e6

    # Likelihood services
    chemical_likelihood_cap: float = 5.0
    likelihood_interval_ceiling: float = 10.0
    detection_abundance_threshold: float = 0.05

    # Collapse detector
    collapse_strength_cap: float = 10.0


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Z-scores for normal-approximation credible intervals
Z_SCORES = {
    0.90: 1.645,
    0.95: 1.96,
    0.99: 2.576,
}
DEFAULT_Z_SCORE = 1.96

# Confidence class ladder: (class, max mean, max signal-to-noise).
# A posterior lands in the first class whose mean OR SNR bound it falls under.
CONFIDENCE_CLASS_THRESHOLDS = [
    ("NOISE", 0.05, 1.0),
    ("RECON", 0.15, 2.0),
    ("PROSPECT", 0.35, 3.0),
    ("PRIORITY", 0.65, 4.0),
]

# Collapse detector criteria
COLLAPSE_THRESHOLDS = {
    "supportive_likelihood": 1.0,
    "min_supportive": 2,
    "uncertainty_reduction": 0.7,
    "convergence": 0.8,
    "independence_correlation": 0.8,
    "medium_convergence": 0.6,
    "collapsed_strength": 5.0,
    "high_strength": 2.0,
}

# Playbook assessment ladder
PLAYBOOK_THRESHOLDS = {
    "min_supportive_strength": 0.1,
    "strong_strength": 0.7,
    "weak_strength": 0.3,
    "favorable_total": 2.0,
    "favorable_strong_count": 2,
    "marginal_total": 1.0,
    "marginal_strong_count": 1,
    "negative_confidence": 0.9,
    "kill_factor_certainty": 0.8,
}
