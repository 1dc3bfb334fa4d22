"""
Default cost, time and planning parameter tables.

Costs are per square meter of gross floor area in INR.  Market rates are
sale prices per square meter of sellable area.  Durations: fixed phases in
months, structure / finishing in days per floor.

These are the shipped defaults; callers pass their own tables to the
estimator when an admin-maintained data set is available.
"""

from __future__ import annotations

from siteplan.models.schemas import CostParameter, PlanningParameter, TimeParameter

LOW_RISE = "Low-Rise (<15m)"
MID_RISE = "Mid-Rise (15-45m)"
HIGH_RISE = "High-Rise (>45m)"

LOW_RISE_MAX_HEIGHT_M = 15.0
MID_RISE_MAX_HEIGHT_M = 45.0


def height_category(height_m: float) -> str:
    if height_m < LOW_RISE_MAX_HEIGHT_M:
        return LOW_RISE
    if height_m <= MID_RISE_MAX_HEIGHT_M:
        return MID_RISE
    return HIGH_RISE


def _cost(location, building_type, earthwork, structure, finishing, services, market, sellable):
    return CostParameter(
        location=location,
        building_type=building_type,
        earthwork_cost_per_sqm=earthwork,
        structure_cost_per_sqm=structure,
        finishing_cost_per_sqm=finishing,
        services_cost_per_sqm=services,
        market_rate_per_sqm=market,
        sellable_ratio=sellable,
    )


def _time(building_type, category, excavation, foundation, structure, finishing, overlap, contingency):
    return TimeParameter(
        building_type=building_type,
        height_category=category,
        excavation_months=excavation,
        foundation_months=foundation,
        structure_days_per_floor=structure,
        finishing_days_per_floor=finishing,
        services_overlap_factor=overlap,
        contingency_months=contingency,
    )


# ──────────────────────────────────────────────────────────────────
# COST  (location, type, earthwork, structure, finishing, services, market, sellable)
# ──────────────────────────────────────────────────────────────────

DEFAULT_COST_PARAMETERS: list[CostParameter] = [
    _cost("Delhi", "Residential", 500, 8000, 6000, 3000, 80000, 0.75),
    _cost("Delhi", "Commercial", 600, 10000, 8000, 4500, 120000, 0.80),
    _cost("Mumbai", "Residential", 600, 9000, 7000, 3500, 150000, 0.73),
    _cost("Bangalore", "Residential", 550, 8500, 6500, 3200, 90000, 0.74),
    _cost("Bangalore", "Commercial", 650, 10500, 8500, 5000, 130000, 0.82),
    _cost("Pune", "Residential", 480, 7500, 5500, 2800, 70000, 0.76),
    _cost("Hyderabad", "Residential", 470, 7200, 5200, 2700, 65000, 0.77),
]


# ──────────────────────────────────────────────────────────────────
# TIME  (type, category, excavation mo, foundation mo, structure d/floor,
#        finishing d/floor, services overlap, contingency mo)
# ──────────────────────────────────────────────────────────────────

DEFAULT_TIME_PARAMETERS: list[TimeParameter] = [
    _time("Residential", LOW_RISE, 2, 2, 15, 20, 0.3, 2),
    _time("Residential", MID_RISE, 3, 4, 12, 18, 0.5, 3),
    _time("Residential", HIGH_RISE, 5, 6, 8, 15, 0.7, 4),
    _time("Commercial", LOW_RISE, 1.5, 2, 12, 15, 0.4, 2),
    _time("Commercial", MID_RISE, 3, 4, 10, 12, 0.6, 3),
    _time("Commercial", HIGH_RISE, 5, 7, 7, 10, 0.8, 4),
]


# ──────────────────────────────────────────────────────────────────
# PLANNING (efficiency targets)
# ──────────────────────────────────────────────────────────────────

DEFAULT_PLANNING_PARAMETERS: list[PlanningParameter] = [
    PlanningParameter(
        name="Affordable Housing", building_type="Residential", height_category=MID_RISE,
        core_to_gfa_ratio_min=0.12, core_to_gfa_ratio_max=0.15,
        circulation_to_gfa_ratio=0.10, efficiency_target=0.75,
    ),
    PlanningParameter(
        name="Luxury Residential", building_type="Residential", height_category=HIGH_RISE,
        core_to_gfa_ratio_min=0.18, core_to_gfa_ratio_max=0.22,
        circulation_to_gfa_ratio=0.15, efficiency_target=0.65,
    ),
    PlanningParameter(
        name="Grade A Office", building_type="Commercial", height_category=HIGH_RISE,
        core_to_gfa_ratio_min=0.15, core_to_gfa_ratio_max=0.18,
        circulation_to_gfa_ratio=0.08, efficiency_target=0.78,
    ),
    PlanningParameter(
        name="Shopping Mall", building_type="Commercial", height_category=MID_RISE,
        core_to_gfa_ratio_min=0.10, core_to_gfa_ratio_max=0.15,
        circulation_to_gfa_ratio=0.25, efficiency_target=0.60,
    ),
]

DEFAULT_EFFICIENCY_TARGET = 0.75


def efficiency_target(
    building_type: str,
    category: str,
    planning: list[PlanningParameter] | None = None,
) -> float:
    """Efficiency target for a type / height category.

    Exact match, else the first planning record, else 0.75.
    """
    table = DEFAULT_PLANNING_PARAMETERS if planning is None else planning
    for p in table:
        if p.building_type == building_type and p.height_category == category:
            return p.efficiency_target
    if table:
        return table[0].efficiency_target
    return DEFAULT_EFFICIENCY_TARGET
