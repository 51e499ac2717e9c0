"""
Aurora Engine — Geological lookup tables.

Static, read-only configuration data: tectonic compatibility by commodity,
age windows, stratigraphic host/seal rules, evidence correlation structure,
diagnostic mineral lists and alteration assemblage rules.

All tables are frozen (MappingProxyType / tuples) and bundled in
GeologyTables so a caller or test can swap any of them with
override_tables(DEFAULT_TABLES, ...).
"""

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Mapping


def _freeze(value: Any) -> Any:
    """Recursively convert dicts to MappingProxyType and lists to tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


# ── Prior Engine ─────────────────────────────────────────────────────────

TECTONIC_COMPATIBILITY = {
    "copper_porphyry": {
        "continental_arc": 0.95,
        "island_arc": 0.90,
        "back_arc": 0.70,
        "collisional": 0.30,
        "rift": 0.10,
        "craton": 0.05,
    },
    "lithium_brine": {
        "rift": 0.90,
        "continental_arc": 0.60,
        "back_arc": 0.50,
        "collisional": 0.40,
        "island_arc": 0.20,
        "craton": 0.30,
    },
    "hydrocarbon_onshore": {
        "craton": 0.80,
        "passive_margin": 0.75,
        "rift": 0.70,
        "foreland_basin": 0.85,
        "continental_arc": 0.40,
        "collisional": 0.60,
    },
    "hydrocarbon_offshore": {
        "passive_margin": 0.95,
        "continental_arc": 0.50,
        "rift": 0.80,
        "foreland_basin": 0.70,
        "collisional": 0.40,
    },
}
DEFAULT_TECTONIC_COMPATIBILITY = 0.1

# Collapsed spelling → canonical setting key
TECTONIC_ALIASES = {
    "continentalarc": "continental_arc",
    "islandarc": "island_arc",
    "backarc": "back_arc",
    "passivemargin": "passive_margin",
    "forelandbasin": "foreland_basin",
}

# [min, max] Ma window in which each deposit type forms
AGE_RANGES_MA = {
    "copper_porphyry": (1.0, 100.0),      # Cenozoic to Mesozoic
    "lithium_brine": (0.0, 10.0),         # active systems
    "hydrocarbon_onshore": (50.0, 500.0),  # Mesozoic to Paleozoic
    "hydrocarbon_offshore": (10.0, 200.0),  # Cenozoic to Mesozoic
}
DEFAULT_AGE_RANGE_MA = (0.0, 1000.0)

STRATIGRAPHIC_RULES = {
    "copper_porphyry": {
        "host_formations": ["intrusive", "volcanic", "plutonic"],
        "seal_formations": ["sedimentary", "volcanic", "hydrothermal"],
        "structural_traps_required": False,
    },
    "lithium_brine": {
        "host_formations": ["evaporite", "lacustrine", "playa"],
        "seal_formations": ["evaporite", "clay", "mudstone"],
        "structural_traps_required": True,
    },
    "hydrocarbon_onshore": {
        "host_formations": ["sandstone", "limestone", "dolomite"],
        "seal_formations": ["shale", "evaporite", "mudstone"],
        "structural_traps_required": True,
    },
    "hydrocarbon_offshore": {
        "host_formations": ["sandstone", "limestone", "chalk"],
        "seal_formations": ["shale", "mudstone", "evaporite"],
        "structural_traps_required": True,
    },
}

# Factor confidences used for data-quality grading
FACTOR_CONFIDENCE = {
    "tectonic_setting": 0.8,
    "age_timing": 0.8,
    "stratigraphic": 0.7,
}

# ── Fusion ───────────────────────────────────────────────────────────────

# Symmetric pairwise correlation between evidence types (diagonal is 1.0)
EVIDENCE_CORRELATIONS = {
    ("chemical", "structural"): 0.3,
    ("chemical", "physical"): 0.5,
    ("chemical", "surface"): 0.7,
    ("structural", "physical"): 0.4,
    ("structural", "surface"): 0.6,
    ("physical", "surface"): 0.3,
}
DEFAULT_EVIDENCE_CORRELATION = 0.2

# ── Chemical likelihood ──────────────────────────────────────────────────

DIAGNOSTIC_MINERALS = {
    "copper_porphyry": [
        "chrysocolla", "malachite", "azurite", "bornite", "chalcopyrite",
        "K-feldspar", "biotite", "magnetite", "sericite", "pyrite",
    ],
    "lithium_brine": [
        "lithium-bearing_clays", "hectorite", "smectite", "illite",
        "halite", "gypsum", "borates", "evaporite_minerals",
    ],
    "hydrocarbon_onshore": [
        "hydrocarbon_seepage", "oil_stains", "bitumen", "gilsonite",
        "hydroxyl-bearing_minerals", "clay_minerals",
    ],
    "hydrocarbon_offshore": [
        "hydrocarbon_seepage", "oil_stains", "gas_seeps",
        "hydrocarbon_induced_minerals", "authigenic_carbonates",
    ],
}

ALTERATION_ASSEMBLAGES = {
    "potassic": {
        "required": ["K-feldspar"],
        "optional": ["biotite", "magnetite"],
    },
    "phyllic": {
        "required": ["sericite"],
        "optional": ["pyrite", "quartz"],
    },
    "argillic": {
        "required": ["kaolinite"],
        "optional": ["montmorillonite", "illite"],
    },
    "propylitic": {
        "required": ["chlorite"],
        "optional": ["epidote", "calcite"],
    },
}

# Score weights for assemblage confidence
ASSEMBLAGE_WEIGHTS = {"required": 0.5, "optional": 0.3, "abundance": 0.2}

REQUIRED_ASSEMBLAGES = {
    "copper_porphyry": ["potassic", "phyllic"],
    "lithium_brine": ["evaporite_core"],
}

QUALITY_UNCERTAINTY = {
    "excellent": 0.05,
    "good": 0.1,
    "fair": 0.2,
    "poor": 0.4,
}
DEFAULT_QUALITY_UNCERTAINTY = 0.3

# ── Veto Engine ──────────────────────────────────────────────────────────

RESERVOIR_FACIES = {
    "copper_porphyry": ["intrusive", "volcanic", "plutonic"],
    "lithium_brine": ["evaporite", "lacustrine", "playa"],
    "hydrocarbon_onshore": ["sandstone", "limestone", "dolomite"],
    "hydrocarbon_offshore": ["sandstone", "limestone", "chalk"],
}

INCOMPATIBLE_FACIES = {
    "copper_porphyry": ["deep_marine", "pelagic", "aeolian"],
    "lithium_brine": ["volcanic", "metamorphic", "igneous"],
    "hydrocarbon_onshore": ["volcanic", "metamorphic", "high_energy_clastic"],
    "hydrocarbon_offshore": ["continental", "fluvial", "aeolian"],
}

# Deposit types that do not need a stratigraphic seal
SEAL_EXEMPT_COMMODITIES = ["copper_porphyry"]


@dataclass(frozen=True)
class GeologyTables:
    """Bundle of read-only lookup tables consumed by the engines."""
    tectonic_compatibility: Mapping = field(default_factory=lambda: _freeze(TECTONIC_COMPATIBILITY))
    tectonic_aliases: Mapping = field(default_factory=lambda: _freeze(TECTONIC_ALIASES))
    age_ranges_ma: Mapping = field(default_factory=lambda: _freeze(AGE_RANGES_MA))
    stratigraphic_rules: Mapping = field(default_factory=lambda: _freeze(STRATIGRAPHIC_RULES))
    factor_confidence: Mapping = field(default_factory=lambda: _freeze(FACTOR_CONFIDENCE))
    evidence_correlations: Mapping = field(default_factory=lambda: _freeze(EVIDENCE_CORRELATIONS))
    default_evidence_correlation: float = DEFAULT_EVIDENCE_CORRELATION
    diagnostic_minerals: Mapping = field(default_factory=lambda: _freeze(DIAGNOSTIC_MINERALS))
    alteration_assemblages: Mapping = field(default_factory=lambda: _freeze(ALTERATION_ASSEMBLAGES))
    required_assemblages: Mapping = field(default_factory=lambda: _freeze(REQUIRED_ASSEMBLAGES))
    quality_uncertainty: Mapping = field(default_factory=lambda: _freeze(QUALITY_UNCERTAINTY))
    reservoir_facies: Mapping = field(default_factory=lambda: _freeze(RESERVOIR_FACIES))
    incompatible_facies: Mapping = field(default_factory=lambda: _freeze(INCOMPATIBLE_FACIES))
    seal_exempt_commodities: tuple = tuple(SEAL_EXEMPT_COMMODITIES)

    def correlation(self, type_a: str, type_b: str) -> float:
        """Pairwise evidence correlation, symmetric, 1.0 on the diagonal."""
        if type_a == type_b:
            return 1.0
        table = self.evidence_correlations
        if (type_a, type_b) in table:
            return table[(type_a, type_b)]
        if (type_b, type_a) in table:
            return table[(type_b, type_a)]
        return self.default_evidence_correlation

    def age_range(self, commodity: str) -> tuple:
        return tuple(self.age_ranges_ma.get(commodity, DEFAULT_AGE_RANGE_MA))


def override_tables(base: "GeologyTables | None" = None, **tables: Any) -> GeologyTables:
    """Return a copy of `base` with the given tables replaced (and frozen)."""
    base = base or DEFAULT_TABLES
    frozen = {k: _freeze(v) for k, v in tables.items()}
    return replace(base, **frozen)


DEFAULT_TABLES = GeologyTables()
