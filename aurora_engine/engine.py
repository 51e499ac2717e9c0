"""
Aurora Engine — Analysis orchestrator.

Main entry point for a deposit probability analysis. Prior, the evidence
likelihood services, the veto and the commodity playbook have no data
dependency on each other (analyze_async runs them concurrently); fusion is
the join point; collapse detection runs only after a non-vetoed fusion.
"""

import asyncio
import logging
import math
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

from .computation.collapse import ProbabilityCollapseDetector
from .computation.fusion import BayesianFusionEngine
from .computation.priors import compute_regional_prior
from .config.settings import Settings, get_settings
from .config.tables import DEFAULT_TABLES, GeologyTables
from .errors import UnsupportedCommodityError
from .likelihood import default_services
from .likelihood.base import LikelihoodService
from .likelihood.chemical import ChemicalLikelihoodService
from .models import AnalysisReport, ChemicalLikelihoodResult, GeologicalTarget, HistoricalAnalog
from .playbooks import evaluate_playbook
from .veto import GeologicalVetoEngine

logger = logging.getLogger(__name__)

PLAYBOOK_UNAVAILABLE_FLAG = "playbook_unavailable"


class AuroraEngine:
    """
    Orchestrates one analysis request.

    Coordinates:
    1. Regional prior
    2. Per-evidence likelihoods (only for evidence types the target supplies)
    3. Geological veto
    4. Commodity playbook
    5. Bayesian fusion
    6. Collapse detection and pattern analysis
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        tables: GeologyTables = DEFAULT_TABLES,
        services: Optional[Mapping[str, LikelihoodService]] = None,
    ):
        self.settings = settings or get_settings()
        self.tables = tables
        self.services = dict(services or default_services(self.settings, tables))

        self.veto_engine = GeologicalVetoEngine(tables)
        self.fusion = BayesianFusionEngine(self.settings, tables)
        self.collapse_detector = ProbabilityCollapseDetector(self.settings)

    def _tasks(self, target: GeologicalTarget,
               analogs: Tuple[HistoricalAnalog, ...]) -> Dict[str, Callable[[], Any]]:
        """Independent units of work, keyed by result name."""
        commodity = target.commodity.value
        tasks: Dict[str, Callable[[], Any]] = {
            "prior": lambda: compute_regional_prior(
                commodity, target.geological_context, analogs, self.tables, self.settings
            ),
            "veto": lambda: self.veto_engine.evaluate(target),
            "playbook": lambda: self._playbook(target),
        }

        for name, service in self.services.items():
            evidence = service.evidence_from(target)
            if not evidence:
                continue
            if isinstance(service, ChemicalLikelihoodService):
                tasks[f"likelihood:{name}"] = lambda s=service, e=evidence: s.analyze(e, commodity)
            else:
                tasks[f"likelihood:{name}"] = lambda s=service, e=evidence: s.score(e, commodity)
        return tasks

    def _playbook(self, target: GeologicalTarget):
        try:
            return evaluate_playbook(target, tables=self.tables, settings=self.settings)
        except UnsupportedCommodityError:
            logger.warning(f"No playbook registered for {target.commodity.value}; skipping")
            return None

    def analyze(self, target: GeologicalTarget,
                analogs: Iterable[HistoricalAnalog] = ()) -> AnalysisReport:
        """
        Run a full analysis, one component after another.

        Args:
            target: Geological target with resolved context and evidence
            analogs: Historical analogs near the target (resolved by the caller)

        Returns:
            AnalysisReport
        """
        tasks = self._tasks(target, tuple(analogs))
        logger.info(f"Analyzing {target.id} ({target.commodity.value}): {len(tasks)} components")

        results = {}
        for name, fn in tasks.items():
            try:
                results[name] = fn()
            except Exception as e:
                logger.error(f"Component {name} failed for {target.id}: {e}")
                raise

        return self._join(target, results)

    async def analyze_async(self, target: GeologicalTarget,
                            analogs: Iterable[HistoricalAnalog] = ()) -> AnalysisReport:
        """Same as analyze(), with the components run concurrently in worker threads."""
        tasks = self._tasks(target, tuple(analogs))
        logger.info(f"Analyzing {target.id} ({target.commodity.value}) async: {len(tasks)} components")

        names = list(tasks)
        try:
            values = await asyncio.gather(*(asyncio.to_thread(tasks[n]) for n in names))
        except Exception as e:
            logger.error(f"Async analysis failed for {target.id}: {e}")
            raise

        return self._join(target, dict(zip(names, values)))

    def _join(self, target: GeologicalTarget, results: Dict[str, Any]) -> AnalysisReport:
        prior = results["prior"]
        veto = results["veto"]
        playbook = results["playbook"]

        chemical = None
        likelihoods = {}
        for key, value in results.items():
            if not key.startswith("likelihood:"):
                continue
            name = key.split(":", 1)[1]
            if isinstance(value, ChemicalLikelihoodResult):
                chemical = value
                value = value.distribution
            likelihoods[name] = value

        posterior = self.fusion.compute_posterior(prior, likelihoods, veto)

        collapse = pattern = None
        if veto.passed and posterior.corrected_likelihoods:
            corrected = list(posterior.corrected_likelihoods.values())
            means = [l.mean for l in corrected]
            uncertainties = [math.sqrt(l.variance) for l in corrected]
            collapse = self.collapse_detector.detect_collapse(prior.mean, means, uncertainties)
            pattern = self.collapse_detector.analyze_pattern(means)

        flags = list(prior.data_quality_flags)
        if playbook is None:
            flags.append(PLAYBOOK_UNAVAILABLE_FLAG)

        logger.info(
            f"{target.id}: posterior={posterior.mean:.4f} ({posterior.confidence_class.value}), "
            f"veto={'pass' if veto.passed else 'fail'}"
        )

        return AnalysisReport(
            target_id=target.id,
            commodity=target.commodity,
            prior=prior,
            likelihoods=likelihoods,
            chemical=chemical,
            veto=veto,
            playbook=playbook,
            posterior=posterior,
            collapse=collapse,
            collapse_pattern=pattern,
            data_quality_flags=flags,
        )


def analyze(target: GeologicalTarget, analogs: Iterable[HistoricalAnalog] = (),
            settings: Optional[Settings] = None) -> AnalysisReport:
    """Module-level shortcut: AuroraEngine(settings).analyze(target, analogs)."""
    return AuroraEngine(settings).analyze(target, analogs)


async def analyze_async(target: GeologicalTarget, analogs: Iterable[HistoricalAnalog] = (),
                        settings: Optional[Settings] = None) -> AnalysisReport:
    return await AuroraEngine(settings).analyze_async(target, analogs)
