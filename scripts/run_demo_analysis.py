#!/usr/bin/env python3
"""
Run a Demo Analysis

Scores a sample copper porphyry target end to end and prints the report
as JSON. Pass --commodity lithium_brine for the brine example.
"""

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from aurora_engine.config import get_settings
from aurora_engine.engine import AuroraEngine
from aurora_engine.models import GeologicalTarget, HistoricalAnalog

settings = get_settings()
logging.basicConfig(level=settings.log_level, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

SAMPLE_TARGETS = {
    "copper_porphyry": {
        "id": "DEMO-CU-001",
        "name": "Southern Peru arc prospect",
        "commodity": "copper_porphyry",
        "location": {"longitude": -70.9, "latitude": -17.2},
        "geological_context": {
            "tectonic_setting": "continental_arc",
            "age": "58 Ma",
            "stratigraphy": {
                "reservoir_unit": "Toquepala porphyry stock",
                "seal_unit": "volcanic cover",
                "facies": "intrusive porphyry",
                "thickness": 600,
            },
            "structure": {"trap_type": "intrusive", "closure": 80},
            "preservation": {
                "uplift_level": "moderate",
                "erosion_level": "moderate",
                "metamorphic_grade": "greenschist",
                "weathering": "moderate",
            },
        },
        "evidence": {
            "chemical": [{
                "sample_id": "ASTER-0412",
                "endmember_abundances": {
                    "K-feldspar": 0.35, "biotite": 0.22, "sericite": 0.3,
                    "pyrite": 0.12, "chalcopyrite": 0.09, "malachite": 0.06,
                },
                "rmse": 0.02,
                "signal_to_noise": 140,
                "cloud_cover": 0.04,
                "geochemistry": {"Cu": 1200},
                "pathfinder_elements": ["Mo", "Au"],
            }],
            "structural": [{
                "lineament_density": 9,
                "circular_variance": 0.25,
                "fault_type": "radial",
                "relationship_to_mineralization": "controlling",
                "structural_confidence": 0.85,
                "description": "radial fault set around the stock",
            }],
            "physical": [
                {"method": "magnetic", "residual_anomaly": -140, "ambiguity_index": 0.25},
                {"method": "gravity", "residual_anomaly": 14, "ambiguity_index": 0.35},
            ],
        },
    },
    "lithium_brine": {
        "id": "DEMO-LI-001",
        "name": "Puna salar",
        "commodity": "lithium_brine",
        "location": {"longitude": -67.1, "latitude": -24.3},
        "geological_context": {
            "tectonic_setting": "rift",
            "age": "3 Ma",
            "stratigraphy": {
                "reservoir_unit": "salar aquifer",
                "seal_unit": "clay aquitard",
                "facies": "evaporite playa",
                "thickness": 250,
            },
            "structure": {"trap_type": "stratigraphic", "closure": 40, "basin_seal": True},
            "preservation": {
                "uplift_level": "low",
                "erosion_level": "low",
                "metamorphic_grade": "none",
                "weathering": "moderate",
            },
        },
        "evidence": {
            "chemical": [{
                "sample_id": "EMIT-0077",
                "endmember_abundances": {"halite": 0.45, "hectorite": 0.2, "gypsum": 0.12},
                "signal_to_noise": 90,
                "cloud_cover": 0.02,
                "geochemistry": {"Li": 620},
                "pathfinder_elements": ["B", "K"],
            }],
            "structural": [{"fault_type": "normal", "trap_geometry_flag": True,
                            "structural_confidence": 0.7}],
            "physical": [{"method": "gravity", "residual_anomaly": -22, "ambiguity_index": 0.3}],
        },
    },
}


def run(commodity: str) -> str:
    """
    Analyze the sample target for a commodity.

    Returns:
        The analysis report serialized as indented JSON
    """
    target = GeologicalTarget.model_validate(SAMPLE_TARGETS[commodity])
    analogs = [HistoricalAnalog(distance_km=150.0, successful=i % 3 != 0, similarity=0.75)
               for i in range(15)]

    logger.info(f"Running {settings.app_name} v{settings.app_version} on {target.id}")
    report = AuroraEngine(settings).analyze(target, analogs)
    logger.info(
        f"Posterior {report.posterior.mean:.4f} ({report.posterior.confidence_class.value}), "
        f"veto {'passed' if report.veto.passed else 'failed'}"
    )
    return report.model_dump_json(indent=2)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run a demo deposit probability analysis")
    parser.add_argument("--commodity", choices=sorted(SAMPLE_TARGETS), default="copper_porphyry")
    args = parser.parse_args()

    print(run(args.commodity))
