"""
Aurora Engine — Evidence likelihood services.

One service per evidence type, all returning LikelihoodDistribution.
"""

from .base import LikelihoodService, likelihood_interval
from .chemical import ChemicalLikelihoodService, identify_alteration_assemblages
from .rules import PhysicalLikelihoodService, StructuralLikelihoodService, SurfaceLikelihoodService


def default_services(settings=None, tables=None):
    """One instance of every built-in service, keyed by evidence type."""
    kwargs = {"settings": settings}
    if tables is not None:
        kwargs["tables"] = tables
    services = [
        ChemicalLikelihoodService(**kwargs),
        StructuralLikelihoodService(**kwargs),
        PhysicalLikelihoodService(**kwargs),
        SurfaceLikelihoodService(**kwargs),
    ]
    return {s.evidence_type.value: s for s in services}


__all__ = [
    "LikelihoodService",
    "likelihood_interval",
    "ChemicalLikelihoodService",
    "identify_alteration_assemblages",
    "PhysicalLikelihoodService",
    "StructuralLikelihoodService",
    "SurfaceLikelihoodService",
    "default_services",
]
