"""
Plot development capacity.

Theoretical maximum for a plot under its FAR and coverage limits:

  1. Max built-up area = plot area x FAR
  2. Deductions: core, circulation, service rooms (shares of built-up)
  3. Net saleable area and efficiency
  4. Unit fitment from a weighted unit mix
  5. Max buildable footprint = plot area x coverage

Used by the estimator when no buildings have been designed yet.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Optional

from siteplan.models.schemas import DevelopmentStats

logger = logging.getLogger(__name__)

FALLBACK_FAR = 1.0
DEFAULT_COVERAGE_PCT = 50.0
DEFAULT_POTENTIAL_FLOORS = 4
SERVICES_FACTOR = 0.02


@dataclass
class UnitType:
    name: str
    area: float  # m²
    mix_ratio: float


@dataclass
class FeasibilityParams:
    core_factor: float = 0.15
    circulation_factor: float = 0.12
    unit_mix: list[UnitType] = field(default_factory=lambda: [
        UnitType("2BHK", 140.0, 0.5),
        UnitType("3BHK", 185.0, 0.5),
    ])
    efficiency_target: float = 0.70

    @property
    def weighted_unit_size(self) -> float:
        return sum(u.area * u.mix_ratio for u in self.unit_mix)


def potential_floors(far: float, coverage_pct: Optional[float]) -> int:
    """ceil(FAR / coverage), 4 if the result is not a positive finite number."""
    coverage = (coverage_pct or DEFAULT_COVERAGE_PCT) / 100
    try:
        floors = math.ceil(far / coverage)
    except (ZeroDivisionError, ValueError, OverflowError):
        return DEFAULT_POTENTIAL_FLOORS
    if floors <= 0:
        return DEFAULT_POTENTIAL_FLOORS
    return floors


def calculate_development_stats(
    plot_area: float,
    far: Optional[float],
    coverage_pct: Optional[float] = None,
    params: Optional[FeasibilityParams] = None,
) -> DevelopmentStats:
    """Maximum development a plot supports.

    Args:
        plot_area: Plot area in m²
        far: Permissible FAR (plot override or regulation); 1.0 if missing
        coverage_pct: Max ground coverage %; 50 if missing
        params: Core / circulation factors and unit mix
    """
    params = params or FeasibilityParams()
    if not far:
        logger.warning("No FAR on plot or regulation; using %.1f", FALLBACK_FAR)
        far = FALLBACK_FAR
    coverage = coverage_pct or DEFAULT_COVERAGE_PCT

    max_built_up = plot_area * far
    core = max_built_up * params.core_factor
    circulation = max_built_up * params.circulation_factor
    services = max_built_up * SERVICES_FACTOR
    net_saleable = max_built_up - core - circulation - services
    efficiency = net_saleable / max_built_up if max_built_up > 0 else 0.0

    unit_size = params.weighted_unit_size
    total_units = math.floor(net_saleable / unit_size) if unit_size > 0 else 0
    units = {u.name: round(total_units * u.mix_ratio) for u in params.unit_mix}

    return DevelopmentStats(
        plot_area=plot_area,
        far=far,
        coverage_pct=coverage,
        max_built_up_area=round(max_built_up),
        max_footprint=round(plot_area * coverage / 100),
        floors=potential_floors(far, coverage),
        core_area=round(core),
        circulation_area=round(circulation),
        services_area=round(services),
        net_saleable_area=round(net_saleable),
        efficiency=round(efficiency, 2),
        units=units,
        total_units=total_units,
    )
