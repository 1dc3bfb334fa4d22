"""
Side-by-side scenario comparison.

Scenarios are ranked by bylaw compliance first (a non-compliant layout is
never recommended over a compliant one), then by ROI, then by green score.
"""

from __future__ import annotations

from typing import Optional, Sequence

from siteplan.models.schemas import DevelopmentMetrics, ProjectEstimate, Scenario


def _roi(estimate: Optional[ProjectEstimate]) -> float:
    if estimate is None or estimate.roi_percentage is None:
        return float("-inf")
    return estimate.roi_percentage


def comparison_row(
    scenario: Scenario,
    metrics: DevelopmentMetrics,
    estimate: Optional[ProjectEstimate] = None,
) -> dict:
    """Flat summary of one scenario for tabular display."""
    return {
        "scenario_name": scenario.name,
        "typology": scenario.typology.value,
        "buildings": len(scenario.buildings),
        "floors": max((b.floor_count for b in scenario.buildings), default=0),
        "achieved_far": round(metrics.achieved_far, 2),
        "ground_coverage_pct": round(metrics.ground_coverage_pct, 1),
        "total_built_up_area": round(metrics.total_built_up_area),
        "green_pct": round(metrics.green_area.percentage, 1),
        "units": metrics.total_units,
        "parking_required": metrics.parking.required,
        "parking_provided": metrics.parking.provided,
        "bylaw_score": metrics.compliance.bylaws,
        "green_score": metrics.compliance.green,
        "vastu_score": metrics.compliance.vastu,
        "total_cost": estimate.total_construction_cost if estimate is not None else None,
        "roi_percentage": estimate.roi_percentage if estimate is not None else None,
        "timeline_months": estimate.timeline.total_months if estimate is not None and estimate.timeline else None,
        "notices": [n.code for n in scenario.notices],
    }


def rank_scenarios(
    scenarios: Sequence[Scenario],
    metrics: Sequence[DevelopmentMetrics],
    estimates: Optional[Sequence[Optional[ProjectEstimate]]] = None,
) -> list[dict]:
    """Rank scenarios (bylaw score, ROI, green score; all descending).

    ``metrics`` and ``estimates`` are parallel to ``scenarios``.  Returns
    comparison rows ordered by rank, each with ``rank``, ``scenario_index``
    and an ``is_recommended`` flag on the first row.
    """
    if len(metrics) != len(scenarios):
        raise ValueError("metrics must be parallel to scenarios")
    if estimates is None:
        estimates = [None] * len(scenarios)
    elif len(estimates) != len(scenarios):
        raise ValueError("estimates must be parallel to scenarios")
    if not scenarios:
        return []

    order = sorted(
        range(len(scenarios)),
        key=lambda i: (
            metrics[i].compliance.bylaws,
            _roi(estimates[i]),
            metrics[i].compliance.green,
        ),
        reverse=True,
    )

    ranked: list[dict] = []
    for rank, idx in enumerate(order, start=1):
        ranked.append({
            "rank": rank,
            "scenario_index": idx,
            "is_recommended": rank == 1,
            **comparison_row(scenarios[idx], metrics[idx], estimates[idx]),
        })
    return ranked
