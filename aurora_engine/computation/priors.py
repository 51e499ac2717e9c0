"""
Aurora Engine — Regional prior derivation.

P(D|R) = (T × A × S × H)^0.25, clamped to [floor 0.01, ceiling 0.3]
  T = tectonic setting compatibility
  A = age / timing alignment
  S = stratigraphic permissibility
  H = historical analog density

Each factor is scored in [0, 1] from the commodity lookup tables. The
prior variance grows with distance from 1: 0.01 × (1 + |ln(prior)|).
"""

import logging
import math
from typing import Iterable, Optional

from ..config.settings import Settings, get_settings
from ..config.tables import DEFAULT_TABLES, DEFAULT_TECTONIC_COMPATIBILITY, GeologyTables
from ..errors import ValidationError
from ..models import (
    GeologicalContext,
    HistoricalAnalog,
    PriorDistribution,
    RegionalFactors,
)
from .age import AGE_FALLBACK_FLAG, parse_age_with_flag
from .validation import clip_interval, clip_value, require_unit_interval

logger = logging.getLogger(__name__)

PRIOR_FORMULA = "P(D|R) = (T x A x S x H)^0.25"
ANALOG_DISTANCE_HORIZON_KM = 1000.0
ANALOG_SATURATION_COUNT = 50


def normalize_tectonic_setting(setting: str, tables: GeologyTables = DEFAULT_TABLES) -> str:
    """'Continental Arc' / 'continental-arc' → 'continental_arc'."""
    collapsed = setting.lower().replace("_", "").replace(" ", "").replace("-", "")
    return tables.tectonic_aliases.get(collapsed, collapsed)


def tectonic_compatibility(setting: str, commodity: str,
                           tables: GeologyTables = DEFAULT_TABLES) -> tuple[float, str]:
    """Score the tectonic setting against the commodity table (unknown → 0.1)."""
    normalized = normalize_tectonic_setting(setting, tables)
    rules = tables.tectonic_compatibility.get(commodity, {})
    return rules.get(normalized, DEFAULT_TECTONIC_COMPATIBILITY), normalized


def age_timing_compatibility(age: str, commodity: str,
                             tables: GeologyTables = DEFAULT_TABLES) -> dict:
    """
    Score a parsed age against the commodity's formation window.

    Inside [min, max]: 1 at the window center, falling linearly to 0 at the edges.
    Outside: max(0, 0.1 − distance/1000).
    """
    age_ma, used_fallback = parse_age_with_flag(age)
    min_age, max_age = tables.age_range(commodity)

    if min_age <= age_ma <= max_age:
        center = (min_age + max_age) / 2
        half_range = (max_age - min_age) / 2
        if half_range <= 0:
            alignment = 1.0
        else:
            alignment = max(0.0, 1 - abs(age_ma - center) / half_range)
    else:
        distance = min_age - age_ma if age_ma < min_age else age_ma - max_age
        alignment = max(0.0, 0.1 - distance / 1000)

    return {
        "compatibility": alignment,
        "age_ma": age_ma,
        "used_fallback": used_fallback,
        "required_age_range": (float(min_age), float(max_age)),
    }


def stratigraphic_permissibility(stratigraphy: str, commodity: str,
                                 tables: GeologyTables = DEFAULT_TABLES) -> dict:
    """Host + seal → 0.9, host only → 0.6, seal only → 0.4, neither → 0.1."""
    rules = tables.stratigraphic_rules.get(commodity)
    if rules is None:
        raise ValidationError("commodity", f"no stratigraphic rules for '{commodity}'")

    text = stratigraphy.lower()
    host_match = any(host.lower() in text for host in rules["host_formations"])
    seal_match = any(seal.lower() in text for seal in rules["seal_formations"])

    if host_match and seal_match:
        permissibility = 0.9
    elif host_match:
        permissibility = 0.6
    elif seal_match:
        permissibility = 0.4
    else:
        permissibility = 0.1

    return {
        "permissibility": permissibility,
        "host_match": host_match,
        "seal_match": seal_match,
        "structural_traps_required": bool(rules["structural_traps_required"]),
    }


def historical_analog_density(analogs: Iterable[HistoricalAnalog]) -> dict:
    """
    Analog density H = min(1, count/50 × success_rate × distance_weight × similarity).

    distance_weight = max(0, 1 − mean_distance / 1000 km).
    """
    analogs = list(analogs)
    count = len(analogs)
    if count == 0:
        return {
            "density": 0.0,
            "analog_count": 0,
            "success_rate": 0.0,
            "distance_weight": 0.0,
            "similarity": 0.0,
        }

    success_rate = sum(1 for a in analogs if a.successful) / count
    mean_distance = sum(a.distance_km for a in analogs) / count
    distance_weight = max(0.0, 1 - mean_distance / ANALOG_DISTANCE_HORIZON_KM)
    similarity = sum(a.similarity for a in analogs) / count

    density = (count / ANALOG_SATURATION_COUNT) * success_rate * distance_weight * similarity
    return {
        "density": min(1.0, density),
        "analog_count": count,
        "success_rate": success_rate,
        "distance_weight": distance_weight,
        "similarity": similarity,
    }


def prior_from_factors(
    tectonic_setting: float,
    age_timing: float,
    stratigraphic: float,
    historical_analogs: float,
    settings: Optional[Settings] = None,
    reasoning: tuple = (),
    data_quality: str = "medium",
    data_quality_flags: tuple = (),
    factors: Optional[RegionalFactors] = None,
) -> PriorDistribution:
    """
    Combine four compatibility factors into a bounded prior.

    prior = (T × A × S × H)^0.25, clamped to [prior_floor, prior_ceiling]
    variance = 0.01 × (1 + |ln(prior)|)
    interval = prior ± 2·sqrt(variance), clamped to [0, 1]
    """
    settings = settings or get_settings()
    for name, value in (("tectonic_setting", tectonic_setting),
                        ("age_timing", age_timing),
                        ("stratigraphic", stratigraphic),
                        ("historical_analogs", historical_analogs)):
        require_unit_interval(name, value)

    raw = (tectonic_setting * age_timing * stratigraphic * historical_analogs) ** 0.25
    mean = clip_value("prior", raw, low=settings.prior_floor, high=settings.prior_ceiling)

    variance = 0.01 * (1 + abs(math.log(mean)))
    half_width = 2 * math.sqrt(variance)
    interval = clip_interval(mean - half_width, mean + half_width)

    logger.debug(
        f"Prior: raw={raw:.4f} → {mean:.4f} (T={tectonic_setting}, A={age_timing}, "
        f"S={stratigraphic}, H={historical_analogs})"
    )

    return PriorDistribution(
        mean=mean,
        variance=variance,
        confidence_interval=interval,
        tectonic_setting=tectonic_setting,
        age_timing=age_timing,
        stratigraphic=stratigraphic,
        historical_analogs=historical_analogs,
        formula=PRIOR_FORMULA,
        reasoning=tuple(reasoning),
        data_quality=data_quality,
        data_quality_flags=tuple(data_quality_flags),
        factors=factors,
    )


def compute_regional_prior(
    commodity: str,
    context: GeologicalContext,
    analogs: Iterable[HistoricalAnalog] = (),
    tables: GeologyTables = DEFAULT_TABLES,
    settings: Optional[Settings] = None,
) -> PriorDistribution:
    """Derive all four factors from the geological context, then combine them."""
    commodity = getattr(commodity, "value", commodity)
    if not context.tectonic_setting:
        raise ValidationError("geological_context.tectonic_setting", "required for the prior")

    t_score, setting = tectonic_compatibility(context.tectonic_setting, commodity, tables)
    age = age_timing_compatibility(context.age, commodity, tables)
    strat = stratigraphic_permissibility(context.stratigraphy.describe(), commodity, tables)
    analog = historical_analog_density(analogs)

    factors = RegionalFactors(
        tectonic_setting=setting,
        tectonic_compatibility=t_score,
        target_age=context.age,
        age_ma=age["age_ma"],
        age_is_fallback=age["used_fallback"],
        required_age_range=age["required_age_range"],
        stratigraphic_permissibility=strat["permissibility"],
        host_formation_identified=strat["host_match"],
        seal_formation_identified=strat["seal_match"],
        structural_traps_required=strat["structural_traps_required"],
        analog_count=analog["analog_count"],
        analog_success_rate=analog["success_rate"],
        analog_distance_weight=analog["distance_weight"],
        analog_similarity=analog["similarity"],
        analog_density=analog["density"],
    )

    flags = [AGE_FALLBACK_FLAG] if age["used_fallback"] else []
    if analog["analog_count"] == 0:
        flags.append("no_historical_analogs")

    # Provisional mean for the narrative; prior_from_factors does the real clamp
    settings = settings or get_settings()
    provisional = (t_score * age["compatibility"] * strat["permissibility"] * analog["density"]) ** 0.25
    provisional = min(settings.prior_ceiling, max(settings.prior_floor, provisional))

    return prior_from_factors(
        t_score,
        age["compatibility"],
        strat["permissibility"],
        analog["density"],
        settings=settings,
        reasoning=_prior_reasoning(factors, age["compatibility"], provisional, commodity),
        data_quality=_data_quality(analog["similarity"], tables),
        data_quality_flags=tuple(flags),
        factors=factors,
    )


def _data_quality(analog_similarity: float, tables: GeologyTables) -> str:
    conf = tables.factor_confidence
    avg = (conf["tectonic_setting"] + conf["age_timing"] + conf["stratigraphic"]
           + analog_similarity) / 4
    if avg > 0.8:
        return "high"
    if avg > 0.6:
        return "medium"
    return "low"


def _prior_reasoning(factors: RegionalFactors, age_alignment: float,
                     prior: float, commodity: str) -> tuple:
    reasoning = []

    if factors.tectonic_compatibility > 0.8:
        reasoning.append(f"Excellent tectonic setting ({factors.tectonic_setting}) for {commodity}")
    elif factors.tectonic_compatibility > 0.5:
        reasoning.append(f"Moderately suitable tectonic setting ({factors.tectonic_setting})")
    else:
        reasoning.append("Poor tectonic setting compatibility")

    if age_alignment > 0.8:
        reasoning.append(f"Optimal age timing ({factors.target_age})")
    elif age_alignment > 0.5:
        reasoning.append("Acceptable age timing")
    else:
        reasoning.append("Suboptimal age timing")

    if factors.stratigraphic_permissibility > 0.8:
        reasoning.append("Favorable stratigraphic conditions identified")
    elif factors.stratigraphic_permissibility > 0.5:
        reasoning.append("Moderate stratigraphic potential")
    else:
        reasoning.append("Limited stratigraphic potential")

    if factors.analog_count > 10:
        reasoning.append(f"Strong analog support ({factors.analog_count} analogs)")
    elif factors.analog_count > 3:
        reasoning.append("Some analog support")
    else:
        reasoning.append("Limited analog support")

    if prior > 0.2:
        reasoning.append(f"High regional potential for {commodity} deposits")
    elif prior > 0.1:
        reasoning.append("Moderate regional potential")
    else:
        reasoning.append("Low regional potential")

    if factors.age_is_fallback:
        reasoning.append(f"Age '{factors.target_age}' could not be parsed; 100 Ma assumed")

    return tuple(reasoning)
