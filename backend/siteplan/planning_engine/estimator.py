"""
Construction cost and schedule estimation.

Per building:
  GFA      = footprint x floors
  cost     = GFA x (earthwork + structure + finishing + services) per m²
  revenue  = GFA x sellable ratio x market rate
  duration = excavation + foundation + structure + finishing - overlap + contingency
             (months; per-floor days / 30, overlap = finishing x services overlap)

Project: cost and revenue sum over buildings, a 5% contingency is added to
the summed cost, and the timeline is the longest building (buildings are
built in parallel).  With no buildings, a "potential" estimate is derived
from plot capacity instead.

Parameter resolution is a fallback chain per building and every non-exact
match is reported as a notice:
  cost: (location, type) -> (default location, type) -> first record
  time: (type, height category) -> (type, default category) -> first record
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, TypeVar

from siteplan.config import settings
from siteplan.models.schemas import (
    Building, BuildingEstimate, CostBreakdown, CostParameter, EfficiencyReport,
    EfficiencyStatus, EstimateStatus, MatchLevel, PlanningNotice, PlanningParameter,
    Plot, ProjectEstimate, ProjectTimeline, Regulation, TimeParameter, TimelinePhases,
)
from siteplan.planning_engine.development import (
    FeasibilityParams, calculate_development_stats,
)
from siteplan.planning_engine.parameters import (
    DEFAULT_COST_PARAMETERS, DEFAULT_PLANNING_PARAMETERS, DEFAULT_TIME_PARAMETERS,
    efficiency_target, height_category,
)

logger = logging.getLogger(__name__)

DAYS_PER_MONTH = 30
EFFICIENCY_TOLERANCE = 0.05

T = TypeVar("T")


@dataclass
class Resolved:
    record: Optional[object]
    match: MatchLevel


def _first(records: Sequence[T], predicate) -> Optional[T]:
    return next((r for r in records if predicate(r)), None)


def resolve_cost_parameter(
    costs: Sequence[CostParameter],
    location: str,
    building_type: str,
    default_location: str,
) -> Resolved:
    """Exact -> default location -> first available -> none."""
    exact = _first(costs, lambda c: c.location == location and c.building_type == building_type)
    if exact is not None:
        return Resolved(exact, MatchLevel.EXACT)
    fallback = _first(costs, lambda c: c.location == default_location and c.building_type == building_type)
    if fallback is not None:
        return Resolved(fallback, MatchLevel.DEFAULT_LOCATION)
    if costs:
        return Resolved(costs[0], MatchLevel.FIRST_AVAILABLE)
    return Resolved(None, MatchLevel.NONE)


def resolve_time_parameter(
    times: Sequence[TimeParameter],
    building_type: str,
    category: str,
    default_category: str,
) -> Resolved:
    """Exact -> default height category -> first available -> none."""
    exact = _first(times, lambda t: t.building_type == building_type and t.height_category == category)
    if exact is not None:
        return Resolved(exact, MatchLevel.EXACT)
    fallback = _first(times, lambda t: t.building_type == building_type and t.height_category == default_category)
    if fallback is not None:
        return Resolved(fallback, MatchLevel.DEFAULT_CATEGORY)
    if times:
        return Resolved(times[0], MatchLevel.FIRST_AVAILABLE)
    return Resolved(None, MatchLevel.NONE)


# ──────────────────────────────────────────────────────────────────
# FORMULAS
# ──────────────────────────────────────────────────────────────────

def construction_cost(gfa: float, cost: CostParameter) -> CostBreakdown:
    return CostBreakdown(
        earthwork=gfa * cost.earthwork_cost_per_sqm,
        structure=gfa * cost.structure_cost_per_sqm,
        finishing=gfa * cost.finishing_cost_per_sqm,
        services=gfa * cost.services_cost_per_sqm,
    )


def revenue(gfa: float, cost: CostParameter) -> float:
    return gfa * cost.sellable_ratio * cost.market_rate_per_sqm


def timeline(floors: int, time: TimeParameter) -> TimelinePhases:
    structure = floors * time.structure_days_per_floor / DAYS_PER_MONTH
    finishing = floors * time.finishing_days_per_floor / DAYS_PER_MONTH
    overlap = finishing * time.services_overlap_factor
    total = (
        time.excavation_months + time.foundation_months
        + structure + finishing - overlap + time.contingency_months
    )
    return TimelinePhases(
        excavation=time.excavation_months,
        foundation=time.foundation_months,
        structure=structure,
        finishing=finishing,
        overlap=overlap,
        contingency=time.contingency_months,
        total_months=total,
    )


def building_floors(building: Building) -> int:
    """Explicit floor count, else ceil(height / floor height)."""
    return building.floor_count


def efficiency_status(achieved: float, target: float, is_potential: bool = False) -> EfficiencyStatus:
    if is_potential:
        return EfficiencyStatus.OPTIMAL
    if achieved < target - EFFICIENCY_TOLERANCE:
        return EfficiencyStatus.INEFFICIENT
    if achieved > target + EFFICIENCY_TOLERANCE:
        return EfficiencyStatus.AGGRESSIVE
    return EfficiencyStatus.OPTIMAL


# ──────────────────────────────────────────────────────────────────
# ESTIMATION
# ──────────────────────────────────────────────────────────────────

def _match_notice(subject: str, kind: str, resolved: Resolved, wanted: str) -> Optional[PlanningNotice]:
    if resolved.match == MatchLevel.EXACT:
        return None
    if resolved.match == MatchLevel.NONE:
        return PlanningNotice(code=f"{kind}_parameters_missing", message=f"{subject}: no {kind} parameters available.")
    used = resolved.record
    if isinstance(used, CostParameter):
        label = f"{used.location} / {used.building_type}"
    else:
        label = f"{used.building_type} / {used.height_category}"
    logger.warning("%s: no %s parameters for %s; using %s (%s)", subject, kind, wanted, label, resolved.match.value)
    return PlanningNotice(
        code=f"{kind}_fallback_{resolved.match.value}",
        message=f"{subject}: no {kind} parameters for {wanted}; using {label}.",
    )


def _estimate(
    building_id: str,
    name: str,
    gfa: float,
    floors: int,
    height: float,
    building_type: str,
    location: str,
    costs: Sequence[CostParameter],
    times: Sequence[TimeParameter],
    default_location: str,
    default_category: str,
) -> tuple[BuildingEstimate, list[PlanningNotice]]:
    category = height_category(height)
    cost_r = resolve_cost_parameter(costs, location, building_type, default_location)
    time_r = resolve_time_parameter(times, building_type, category, default_category)
    notices = [n for n in (
        _match_notice(name, "cost", cost_r, f"{location} / {building_type}"),
        _match_notice(name, "time", time_r, f"{building_type} / {category}"),
    ) if n is not None]

    if cost_r.record is None or time_r.record is None:
        return BuildingEstimate(
            building_id=building_id, name=name,
            status=EstimateStatus.NO_PARAMETERS,
            gfa=gfa, floors=floors, height_category=category,
            cost_match=cost_r.match, time_match=time_r.match,
        ), notices

    breakdown = construction_cost(gfa, cost_r.record)
    return BuildingEstimate(
        building_id=building_id,
        name=name,
        status=EstimateStatus.OK,
        gfa=gfa,
        floors=floors,
        height_category=category,
        cost_match=cost_r.match,
        time_match=time_r.match,
        cost=breakdown,
        total_cost=breakdown.total,
        revenue=revenue(gfa, cost_r.record),
        timeline=timeline(floors, time_r.record),
    ), notices


def estimate_building(
    building: Building,
    location: str,
    costs: Sequence[CostParameter],
    times: Sequence[TimeParameter],
    default_location: str,
    default_category: str,
) -> tuple[BuildingEstimate, list[PlanningNotice]]:
    floors = building_floors(building)
    return _estimate(
        building.id, building.name,
        building.footprint_area * floors, floors, building.height,
        building.use or settings.default_building_type,
        location, costs, times, default_location, default_category,
    )


def _aggregate(estimates: list[BuildingEstimate], contingency_rate: float) -> dict:
    done = [e for e in estimates if e.status == EstimateStatus.OK]
    earthwork = sum(e.cost.earthwork for e in done)
    structure = sum(e.cost.structure for e in done)
    finishing = sum(e.cost.finishing for e in done)
    services = sum(e.cost.services for e in done)
    summed = CostBreakdown(
        earthwork=earthwork,
        structure=structure,
        finishing=finishing,
        services=services,
        contingency=(earthwork + structure + finishing + services) * contingency_rate,
    )
    total_cost = summed.total
    total_revenue = sum(e.revenue for e in done)
    profit = total_revenue - total_cost
    critical = max(done, key=lambda e: e.timeline.total_months)
    return {
        "total_construction_cost": total_cost,
        "cost_breakdown": summed,
        "total_revenue": total_revenue,
        "potential_profit": profit,
        "roi_percentage": profit / total_cost * 100 if total_cost > 0 else 0.0,
        "timeline": ProjectTimeline(
            total_months=critical.timeline.total_months,
            phases=critical.timeline,
            critical_building_id=critical.building_id,
        ),
    }


def estimate_project(
    buildings: Sequence[Building],
    location: Optional[str] = None,
    costs: Optional[Sequence[CostParameter]] = None,
    times: Optional[Sequence[TimeParameter]] = None,
    planning: Optional[Sequence[PlanningParameter]] = None,
    achieved_efficiency: Optional[float] = None,
    plot: Optional[Plot] = None,
    regulation: Optional[Regulation] = None,
    default_location: Optional[str] = None,
    default_category: Optional[str] = None,
    contingency_rate: Optional[float] = None,
    feasibility: Optional[FeasibilityParams] = None,
) -> ProjectEstimate:
    """Cost, revenue, ROI and critical-path timeline for a set of buildings.

    With no buildings and a ``plot``, estimates the plot's potential
    capacity instead (``is_potential=True``).

    Args:
        buildings: Designed buildings (may be empty)
        location: Place key for cost lookup (defaults to the configured location)
        costs / times / planning: Parameter tables (default tables if None)
        achieved_efficiency: Net/gross ratio from scoring, for efficiency status
        plot / regulation: Used for potential mode
        default_location / default_category: Fallback keys (settings if None)
        contingency_rate: Project contingency on summed cost (settings if None)
    """
    costs = DEFAULT_COST_PARAMETERS if costs is None else list(costs)
    times = DEFAULT_TIME_PARAMETERS if times is None else list(times)
    planning = DEFAULT_PLANNING_PARAMETERS if planning is None else list(planning)
    default_location = default_location or settings.default_location
    default_category = default_category or settings.default_height_category
    rate = settings.project_contingency_rate if contingency_rate is None else contingency_rate
    location = location or (plot.location if plot is not None else None) or default_location

    if not buildings:
        if plot is None:
            raise ValueError("Potential estimate requires a plot when there are no buildings")
        return _estimate_potential(
            plot, regulation, location, costs, times, planning,
            default_location, default_category, rate, feasibility,
        )

    notices: list[PlanningNotice] = []
    estimates: list[BuildingEstimate] = []
    for building in buildings:
        est, est_notices = estimate_building(
            building, location, costs, times, default_location, default_category,
        )
        estimates.append(est)
        notices += est_notices

    ok = [e for e in estimates if e.status == EstimateStatus.OK]
    if not ok:
        logger.warning("No building could be estimated: parameter tables are empty")
        return ProjectEstimate(status=EstimateStatus.NO_PARAMETERS, buildings=estimates, notices=notices)

    status = EstimateStatus.OK if len(ok) == len(estimates) else EstimateStatus.PARTIAL
    totals = _aggregate(estimates, rate)

    main = max(buildings, key=lambda b: b.gross_floor_area)
    target = efficiency_target(
        main.use or settings.default_building_type, height_category(main.height), planning,
    )
    achieved = target if achieved_efficiency is None else achieved_efficiency

    return ProjectEstimate(
        status=status,
        is_potential=False,
        efficiency=EfficiencyReport(
            achieved=achieved, target=target, status=efficiency_status(achieved, target),
        ),
        buildings=estimates,
        notices=notices,
        **totals,
    )


def _estimate_potential(
    plot: Plot,
    regulation: Optional[Regulation],
    location: str,
    costs: list[CostParameter],
    times: list[TimeParameter],
    planning: list[PlanningParameter],
    default_location: str,
    default_category: str,
    rate: float,
    feasibility: Optional[FeasibilityParams],
) -> ProjectEstimate:
    far = plot.far_override or (regulation.far if regulation is not None else None)
    coverage = plot.coverage_override or (regulation.max_coverage_pct if regulation is not None else None)
    stats = calculate_development_stats(plot.area, far, coverage, feasibility)

    btype = plot.use_type or (regulation.use_type if regulation is not None else None) or settings.default_building_type
    height = stats.floors * settings.floor_height_heuristic_m
    est, notices = _estimate(
        "potential", "Plot potential",
        float(stats.max_built_up_area), stats.floors, height, btype,
        location, costs, times, default_location, default_category,
    )
    if est.status == EstimateStatus.NO_PARAMETERS:
        return ProjectEstimate(
            status=EstimateStatus.NO_PARAMETERS, is_potential=True, buildings=[est], notices=notices,
        )

    totals = _aggregate([est], rate)
    target = efficiency_target(btype, est.height_category, planning)

    return ProjectEstimate(
        status=EstimateStatus.OK,
        is_potential=True,
        efficiency=EfficiencyReport(
            achieved=target, target=target, status=efficiency_status(target, target, is_potential=True),
        ),
        buildings=[est],
        notices=notices,
        **totals,
    )
