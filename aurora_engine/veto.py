"""
Aurora Engine — Geological veto.

Absolute rejection layer: a target whose geology makes the deposit
impossible gets probability 0 no matter what the evidence says.

Four categories evaluated in fixed order (stratigraphic, temporal,
structural, preservation), each an ordered list of named conditions.
A condition blocks only when its check is negative AND its certainty
meets the condition's required confidence. The first blocking failure
ends the whole evaluation; the audit trail then holds only the
categories evaluated so far.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple

from .computation.age import parse_age
from .config.tables import DEFAULT_TABLES, GeologyTables
from .errors import UnknownConditionError, ValidationError
from .models import (
    CategoryResult,
    GeologicalTarget,
    Severity,
    VetoCategory,
    VetoConditionResult,
    VetoResult,
)

logger = logging.getLogger(__name__)

SEVERE_EROSION = ("severe", "complete", "extreme")
SEVERE_UPLIFT = ("high", "extreme", "major")
HIGH_METAMORPHIC_GRADES = ("amphibolite", "granulite", "eclogite", "high-grade")
SEVERE_WEATHERING = ("severe", "intense", "extreme", "deep")
DESTRUCTIVE_SETTINGS = ("collisional", "orogenic", "compressional")
STRATIGRAPHIC_TRAPS = ("stratigraphic", "combination", "unconformity")
MIN_PRESERVED_THICKNESS_M = 50
MIN_BASIN_CLOSURE_M = 10
MIN_STRUCTURAL_CLOSURE_M = 5


class CheckOutcome(NamedTuple):
    passed: bool
    details: str
    certainty: float
    evidence: Tuple[str, ...] = ()


Check = Callable[[GeologicalTarget, GeologyTables], CheckOutcome]


@dataclass(frozen=True)
class VetoCondition:
    """One entry of the veto registry."""
    name: str
    category: VetoCategory
    description: str
    severity: Severity
    confidence_required: float
    check: Check


# ---------------------------------------------------------------------------
#  Field access
# ---------------------------------------------------------------------------

def _require(value, field: str):
    """Return a context field, raising ValidationError if it is absent."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"geological_context.{field}", "required for veto evaluation")
    return value


def _commodity(target: GeologicalTarget) -> str:
    return target.commodity.value


# ---------------------------------------------------------------------------
#  Stratigraphic
# ---------------------------------------------------------------------------

def check_no_reservoir_unit(target: GeologicalTarget, tables: GeologyTables) -> CheckOutcome:
    strat = target.geological_context.stratigraphy
    facies = _require(strat.facies, "stratigraphy.facies")
    commodity = _commodity(target)

    compatible = tables.reservoir_facies.get(commodity, ())
    facies_compatible = any(f in facies.lower() for f in compatible)
    passed = bool(strat.reservoir_unit) and facies_compatible

    details = (
        f"Viable reservoir unit identified: {strat.reservoir_unit}" if passed
        else f"No viable reservoir unit for {commodity}. Facies: {facies}"
    )
    return CheckOutcome(passed, details, 0.9, (
        f"stratigraphy.reservoir_unit={strat.reservoir_unit}",
        f"stratigraphy.facies={facies}",
    ))


def check_wrong_facies(target: GeologicalTarget, tables: GeologyTables) -> CheckOutcome:
    facies = _require(target.geological_context.stratigraphy.facies, "stratigraphy.facies")
    commodity = _commodity(target)

    incompatible = any(f in facies.lower() for f in tables.incompatible_facies.get(commodity, ()))
    details = (
        f"Facies {facies} incompatible with {commodity}" if incompatible
        else f"Facies {facies} compatible with {commodity}"
    )
    return CheckOutcome(not incompatible, details, 0.8, (f"stratigraphy.facies={facies}",))


def check_missing_seal(target: GeologicalTarget, tables: GeologyTables) -> CheckOutcome:
    seal = target.geological_context.stratigraphy.seal_unit
    commodity = _commodity(target)
    seal_required = commodity not in tables.seal_exempt_commodities

    passed = not seal_required or bool(seal)
    if not passed:
        details = f"No seal unit present for {commodity}"
    elif seal_required:
        details = f"Effective seal present: {seal}"
    else:
        details = f"Seal not required for {commodity}"
    return CheckOutcome(passed, details, 0.85, (f"stratigraphy.seal_unit={seal}",))


def check_eroded_sequence(target: GeologicalTarget, tables: GeologyTables) -> CheckOutcome:
    context = target.geological_context
    erosion = _require(context.preservation.erosion_level, "preservation.erosion_level")
    thickness = _require(context.stratigraphy.thickness, "stratigraphy.thickness")

    severely_eroded = erosion.lower() in SEVERE_EROSION
    too_thin = thickness < MIN_PRESERVED_THICKNESS_M
    passed = not severely_eroded and not too_thin

    details = (
        f"Target sequence preserved. Thickness: {thickness}m, Erosion: {erosion}" if passed
        else f"Target sequence eroded. Erosion: {erosion}, Remaining thickness: {thickness}m"
    )
    return CheckOutcome(passed, details, 0.9, (
        f"preservation.erosion_level={erosion}",
        f"stratigraphy.thickness={thickness}",
    ))


# ---------------------------------------------------------------------------
#  Temporal
# ---------------------------------------------------------------------------

def check_timing_mismatch(target: GeologicalTarget, tables: GeologyTables) -> CheckOutcome:
    commodity = _commodity(target)
    age_ma = parse_age(target.geological_context.age)
    min_age, max_age = tables.age_range(commodity)

    compatible = min_age <= age_ma <= max_age
    details = (
        f"Age {age_ma} Ma compatible with {commodity}" if compatible
        else f"Age {age_ma} Ma incompatible with {commodity} (requires {min_age}-{max_age} Ma)"
    )
    return CheckOutcome(compatible, details, 0.8, (
        f"age={target.geological_context.age}",
        f"required_range_ma=({min_age}, {max_age})",
    ))


def check_charge_after_trap(target: GeologicalTarget, tables: GeologyTables) -> CheckOutcome:
    # Without dedicated timing data, mineralization is placed 5 Ma after structure
    structural_age = parse_age(target.geological_context.age)
    mineralization_age = structural_age - 5
    charge_after_trap = mineralization_age > structural_age

    details = (
        "Mineralization occurred after trap formation" if charge_after_trap
        else "Mineralization timing compatible with trap formation"
    )
    return CheckOutcome(not charge_after_trap, details, 0.7, (
        f"structural_age_ma={structural_age}",
        f"mineralization_age_ma={mineralization_age}",
    ))


def check_age_incompatible(target: GeologicalTarget, tables: GeologyTables) -> CheckOutcome:
    return check_timing_mismatch(target, tables)


# ---------------------------------------------------------------------------
#  Structural
# ---------------------------------------------------------------------------

def check_basin_unsealed(target: GeologicalTarget, tables: GeologyTables) -> CheckOutcome:
    structure = target.geological_context.structure
    closure = _require(structure.closure, "structure.closure")

    passed = structure.basin_seal is not False and closure > MIN_BASIN_CLOSURE_M
    details = (
        f"Basin sealed with {closure}m closure" if passed
        else f"Basin unsealed or insufficient closure ({closure}m)"
    )
    return CheckOutcome(passed, details, 0.8, (
        f"structure.basin_seal={structure.basin_seal}",
        f"structure.closure={closure}",
    ))


def check_fault_breach(target: GeologicalTarget, tables: GeologyTables) -> CheckOutcome:
    fault_seal = target.geological_context.structure.fault_seal
    passed = fault_seal is not False
    details = "Faults are sealed or absent" if passed else "Faults have breached the trap"
    return CheckOutcome(passed, details, 0.7, (f"structure.fault_seal={fault_seal}",))


def check_no_closure(target: GeologicalTarget, tables: GeologyTables) -> CheckOutcome:
    structure = target.geological_context.structure
    closure = _require(structure.closure, "structure.closure")
    trap_type = structure.trap_type or ""

    passed = closure > MIN_STRUCTURAL_CLOSURE_M or trap_type in STRATIGRAPHIC_TRAPS
    details = (
        f"Trap closure present: {closure}m ({structure.trap_type})" if passed
        else "No viable trap closure identified"
    )
    return CheckOutcome(passed, details, 0.8, (
        f"structure.closure={closure}",
        f"structure.trap_type={structure.trap_type}",
    ))


def check_trap_destroyed(target: GeologicalTarget, tables: GeologyTables) -> CheckOutcome:
    setting = _require(target.geological_context.tectonic_setting, "tectonic_setting")
    destroyed = setting.lower() in DESTRUCTIVE_SETTINGS
    details = (
        f"Trap likely destroyed by {setting} tectonics" if destroyed
        else "Trap preserved in current tectonic setting"
    )
    return CheckOutcome(not destroyed, details, 0.7, (f"tectonic_setting={setting}",))


# ---------------------------------------------------------------------------
#  Preservation
# ---------------------------------------------------------------------------

def check_uplifted_eroded(target: GeologicalTarget, tables: GeologyTables) -> CheckOutcome:
    preservation = target.geological_context.preservation
    uplift = _require(preservation.uplift_level, "preservation.uplift_level")
    erosion = _require(preservation.erosion_level, "preservation.erosion_level")

    passed = uplift.lower() not in SEVERE_UPLIFT and erosion.lower() not in SEVERE_EROSION
    details = (
        f"Target preserved. Uplift: {uplift}, Erosion: {erosion}" if passed
        else f"Target destroyed by uplift/erosion. Uplift: {uplift}, Erosion: {erosion}"
    )
    return CheckOutcome(passed, details, 0.9, (
        f"preservation.uplift_level={uplift}",
        f"preservation.erosion_level={erosion}",
    ))


def check_metamorphosed(target: GeologicalTarget, tables: GeologyTables) -> CheckOutcome:
    grade = _require(
        target.geological_context.preservation.metamorphic_grade, "preservation.metamorphic_grade"
    )
    passed = grade.lower() not in HIGH_METAMORPHIC_GRADES
    details = (
        f"Metamorphic grade suitable: {grade}" if passed
        else f"Target over-metamorphosed: {grade}"
    )
    return CheckOutcome(passed, details, 0.8, (f"preservation.metamorphic_grade={grade}",))


def check_weathered_destroyed(target: GeologicalTarget, tables: GeologyTables) -> CheckOutcome:
    weathering = _require(target.geological_context.preservation.weathering, "preservation.weathering")
    passed = weathering.lower() not in SEVERE_WEATHERING
    details = (
        f"Weathering level acceptable: {weathering}" if passed
        else f"Target destroyed by weathering: {weathering}"
    )
    return CheckOutcome(passed, details, 0.7, (f"preservation.weathering={weathering}",))


def check_thermally_overmature(target: GeologicalTarget, tables: GeologyTables) -> CheckOutcome:
    context = target.geological_context
    setting = _require(context.tectonic_setting, "tectonic_setting").lower()
    age_ma = parse_age(context.age)

    unsuitable = (
        (age_ma < 10 and setting in ("arc", "rift"))
        or (age_ma > 500 and setting in ("collisional", "orogenic"))
    )
    details = (
        "Target thermally overmature or immature" if unsuitable
        else "Thermal maturity suitable for preservation"
    )
    return CheckOutcome(not unsuitable, details, 0.7, (
        f"age_ma={age_ma}",
        f"tectonic_setting={setting}",
    ))


# ---------------------------------------------------------------------------
#  Registry (declared order is evaluation order)
# ---------------------------------------------------------------------------

_S, _T, _ST, _P = (VetoCategory.STRATIGRAPHIC, VetoCategory.TEMPORAL,
                   VetoCategory.STRUCTURAL, VetoCategory.PRESERVATION)
_CRITICAL, _MAJOR = Severity.CRITICAL, Severity.MAJOR

VETO_CONDITIONS: Tuple[VetoCondition, ...] = (
    VetoCondition("no_reservoir_unit", _S, "No viable reservoir unit present in stratigraphic column",
                  _CRITICAL, 0.8, check_no_reservoir_unit),
    VetoCondition("wrong_facies", _S, "Depositional facies incompatible with commodity",
                  _MAJOR, 0.7, check_wrong_facies),
    VetoCondition("missing_seal", _S, "No effective seal unit present",
                  _CRITICAL, 0.8, check_missing_seal),
    VetoCondition("eroded_sequence", _S, "Target sequence eroded away",
                  _CRITICAL, 0.9, check_eroded_sequence),

    VetoCondition("timing_mismatch", _T, "Timing of mineralization incompatible with trap formation",
                  _MAJOR, 0.7, check_timing_mismatch),
    VetoCondition("charge_after_trap", _T, "Mineralization occurred after trap was breached",
                  _CRITICAL, 0.8, check_charge_after_trap),
    VetoCondition("age_incompatible_with_commodity", _T, "Geological age incompatible with commodity formation",
                  _CRITICAL, 0.8, check_age_incompatible),

    VetoCondition("basin_unsealed", _ST, "Structural basin is not sealed",
                  _CRITICAL, 0.8, check_basin_unsealed),
    VetoCondition("fault_breach", _ST, "Faults have breached the trap",
                  _CRITICAL, 0.7, check_fault_breach),
    VetoCondition("no_closure", _ST, "No structural closure present",
                  _CRITICAL, 0.8, check_no_closure),
    VetoCondition("trap_destroyed", _ST, "Trap has been destroyed by deformation",
                  _CRITICAL, 0.8, check_trap_destroyed),

    VetoCondition("uplifted_eroded", _P, "Target has been uplifted and eroded",
                  _CRITICAL, 0.9, check_uplifted_eroded),
    VetoCondition("metamorphosed", _P, "Target has been metamorphosed beyond preservation",
                  _CRITICAL, 0.8, check_metamorphosed),
    VetoCondition("weathered_destroyed", _P, "Target destroyed by weathering processes",
                  _MAJOR, 0.7, check_weathered_destroyed),
    VetoCondition("thermally_overmature", _P, "Target thermally overmature for preservation",
                  _CRITICAL, 0.8, check_thermally_overmature),
)


class GeologicalVetoEngine:
    """Two-level short-circuit evaluator over the veto registry."""

    def __init__(self, tables: GeologyTables = DEFAULT_TABLES,
                 conditions: Tuple[VetoCondition, ...] = VETO_CONDITIONS):
        self.tables = tables
        self._conditions = conditions

    def taxonomy(self) -> Dict[VetoCategory, Tuple[str, ...]]:
        """Category → ordered condition names, in evaluation order."""
        return {
            category: tuple(c.name for c in self._conditions if c.category == category)
            for category in VetoCategory
        }

    def conditions(self) -> Tuple[VetoCondition, ...]:
        return self._conditions

    def check_condition(self, name: str, target: GeologicalTarget) -> VetoConditionResult:
        """Evaluate a single named condition; no short-circuit, no gating."""
        condition = next((c for c in self._conditions if c.name == name), None)
        if condition is None:
            raise UnknownConditionError(name)
        return self._run(condition, target)

    def evaluate(self, target: GeologicalTarget) -> VetoResult:
        """
        Evaluate every category in order, stopping at the first blocking failure.

        Returns:
            VetoResult with probability 1.0 (passed) or 0.0 (vetoed)
        """
        audit_trail: List[CategoryResult] = []
        total = passed = failed = 0

        for category in VetoCategory:
            category_result = self._evaluate_category(category, target)
            audit_trail.append(category_result)

            total += len(category_result.results)
            passed += sum(1 for r in category_result.results if r.passed)
            failed += sum(1 for r in category_result.results if not r.passed)

            if not category_result.passed:
                logger.info(
                    f"Veto failed for {target.id}: {category.value}/"
                    f"{category_result.failed_condition} - {category_result.failure_reason}"
                )
                return VetoResult(
                    passed=False,
                    probability=0.0,
                    failure_category=category,
                    failure_condition=category_result.failed_condition,
                    failure_reason=category_result.failure_reason,
                    audit_trail=tuple(audit_trail),
                    total_checks=total,
                    passed_checks=passed,
                    failed_checks=failed,
                )

        logger.debug(f"Veto passed for {target.id}: {passed}/{total} checks passed")
        return VetoResult(
            passed=True,
            probability=1.0,
            audit_trail=tuple(audit_trail),
            total_checks=total,
            passed_checks=passed,
            failed_checks=failed,
        )

    def _evaluate_category(self, category: VetoCategory,
                           target: GeologicalTarget) -> CategoryResult:
        results = []
        for condition in (c for c in self._conditions if c.category == category):
            result = self._run(condition, target)
            results.append(result)
            if result.blocking:
                return CategoryResult(
                    category=category,
                    passed=False,
                    failed_condition=condition.name,
                    failure_reason=result.details,
                    results=tuple(results),
                )
        return CategoryResult(category=category, passed=True, results=tuple(results))

    def _run(self, condition: VetoCondition, target: GeologicalTarget) -> VetoConditionResult:
        outcome = condition.check(target, self.tables)
        blocking = not outcome.passed and outcome.certainty >= condition.confidence_required
        return VetoConditionResult(
            condition=condition.name,
            passed=outcome.passed,
            details=outcome.details,
            certainty=outcome.certainty,
            blocking=blocking,
            evidence=outcome.evidence,
        )


def evaluate_veto(target: GeologicalTarget, tables: Optional[GeologyTables] = None) -> VetoResult:
    """Module-level shortcut for GeologicalVetoEngine(tables).evaluate(target)."""
    return GeologicalVetoEngine(tables or DEFAULT_TABLES).evaluate(target)
