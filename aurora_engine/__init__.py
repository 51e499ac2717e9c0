"""
Aurora Engine — Probabilistic deposit discovery core.

Combines a regional prior with independent evidence likelihoods, gated by
an absolute geological veto, and classifies the resulting certainty.
"""

__version__ = "1.0.0"
