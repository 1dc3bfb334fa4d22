from __future__ import annotations

from siteplan.planning_engine.assembler import assemble_scenario, generate_scenarios
from siteplan.planning_engine.comparison import rank_scenarios
from siteplan.planning_engine.estimator import estimate_project
from siteplan.planning_engine.scoring import score_scenario

__all__ = [
    "assemble_scenario",
    "estimate_project",
    "generate_scenarios",
    "rank_scenarios",
    "score_scenario",
]
