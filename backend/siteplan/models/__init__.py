from __future__ import annotations

from siteplan.models.schemas import (
    DevelopmentMetrics,
    GenerationParameters,
    Plot,
    ProjectEstimate,
    Regulation,
    Scenario,
)

__all__ = [
    "DevelopmentMetrics",
    "GenerationParameters",
    "Plot",
    "ProjectEstimate",
    "Regulation",
    "Scenario",
]
