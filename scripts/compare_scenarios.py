#!/usr/bin/env python3
"""
Generate, score, estimate and rank scenarios for sample plots.

Runs the full planning pipeline on a few reference plots and prints the
results for manual review.

Usage:
    python3 scripts/compare_scenarios.py
    python3 scripts/compare_scenarios.py --plots 1 3 --typologies slab lshaped
    python3 scripts/compare_scenarios.py --json
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from datetime import datetime

# Add backend to path for direct import
SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
BACKEND_DIR = os.path.join(os.path.dirname(SCRIPT_DIR), "backend")
sys.path.insert(0, BACKEND_DIR)

# ──────────────────────────────────────────────────────────────────
# SAMPLE PLOTS
# ──────────────────────────────────────────────────────────────────

SAMPLE_PLOTS = [
    {
        "name": "Delhi mid-rise (60 m x 40 m, 5 m setback)",
        "width": 60.0,
        "depth": 40.0,
        "setback": 5.0,
        "location": "Delhi",
        "regulation": {
            "floor_area_ratio": 2.0,
            "max_ground_coverage": 40.0,
            "max_height": 28.0,
        },
        "verify": [
            "Envelope 1,500 m²",
            "Coverage at or under 40%",
            "FAR 2.0 with no far_exceeded notice",
        ],
    },
    {
        "name": "Pune corner plot (road on N and E)",
        "width": 80.0,
        "depth": 70.0,
        "setback": {"general": 3.0, "front": 6.0, "rear": 4.5, "road_access_sides": ["N", "E"]},
        "location": "Pune",
        "regulation": {
            "floor_area_ratio": 2.5,
            "max_ground_coverage": 35.0,
            "max_height": 45.0,
        },
        "verify": [
            "Deeper setback on N and E",
            "Perimeter / L variants keep a courtyard",
        ],
    },
    {
        "name": "Ladakh small plot (no cost data)",
        "width": 25.0,
        "depth": 20.0,
        "setback": 12.0,
        "location": "Ladakh",
        "regulation": {"floor_area_ratio": 1.2},
        "verify": [
            "setback_fallback notice",
            "Cost parameters fall back to Delhi",
        ],
    },
]


def _rectangle_plot(spec: dict):
    from siteplan.models.schemas import Plot, SetbackSpec

    w, d = spec["width"], spec["depth"]
    setback = spec.get("setback")
    if isinstance(setback, dict):
        setback = SetbackSpec(**setback)
    return Plot(
        boundary={"type": "Polygon", "coordinates": [[(0, 0), (w, 0), (w, d), (0, d), (0, 0)]]},
        setback=setback,
        location=spec.get("location"),
    )


def _regulation(spec: dict):
    from siteplan.models.schemas import Regulation, RegulationValue

    return Regulation(
        location=spec.get("location", ""),
        geometry={k: RegulationValue(value=v) for k, v in spec.get("regulation", {}).items()},
    )


# ──────────────────────────────────────────────────────────────────
# PIPELINE
# ──────────────────────────────────────────────────────────────────

def run_plot(spec: dict, typologies: list[str], target_far: float, workers: int) -> list[dict]:
    from siteplan.models.schemas import GenerationParameters, ParkingType
    from siteplan.planning_engine import (
        estimate_project, generate_scenarios, rank_scenarios, score_scenario,
    )

    plot = _rectangle_plot(spec)
    regulation = _regulation(spec)
    params = GenerationParameters(
        typologies=typologies,
        target_far=target_far,
        parking_type=ParkingType.SURFACE,
        selected_utilities=["Water Tank", "STP"],
    )

    scenarios = generate_scenarios(plot, regulation, params, max_workers=workers)
    metrics = [score_scenario(s, regulation) for s in scenarios]
    estimates = [
        estimate_project(s.buildings, plot=plot, regulation=regulation, achieved_efficiency=m.efficiency)
        for s, m in zip(scenarios, metrics)
    ]
    return rank_scenarios(scenarios, metrics, estimates)


# ──────────────────────────────────────────────────────────────────
# OUTPUT FORMATTING
# ──────────────────────────────────────────────────────────────────

def format_result(spec: dict, rows: list[dict]) -> str:
    lines = []
    lines.append(f"\n{'=' * 70}")
    lines.append(f"PLOT: {spec['name']}")
    lines.append(f"{'=' * 70}")

    for row in rows:
        flag = "  <- recommended" if row["is_recommended"] else ""
        lines.append(f"\n  #{row['rank']} {row['scenario_name']}{flag}")
        lines.append(f"      Buildings: {row['buildings']} x {row['floors']} floors")
        lines.append(f"      FAR:       {row['achieved_far']:.2f}, coverage {row['ground_coverage_pct']:.1f}%")
        lines.append(f"      GFA:       {row['total_built_up_area']:,.0f} m², {row['units']} units")
        lines.append(f"      Parking:   {row['parking_provided']} of {row['parking_required']} stalls")
        lines.append(
            f"      Scores:    bylaws {row['bylaw_score']}, green {row['green_score']}, "
            f"vastu {row['vastu_score']}"
        )
        if row["total_cost"] is not None:
            lines.append(
                f"      Cost:      {row['total_cost']:,.0f}, ROI {row['roi_percentage']:.1f}%, "
                f"{row['timeline_months']:.1f} months"
            )
        if row["notices"]:
            lines.append(f"      Notices:   {', '.join(row['notices'])}")

    lines.append("\n  VERIFY:")
    for v in spec.get("verify", []):
        lines.append(f"    [ ] {v}")
    return "\n".join(lines)


# ──────────────────────────────────────────────────────────────────
# MAIN
# ──────────────────────────────────────────────────────────────────

def main():
    parser = argparse.ArgumentParser(description="Compare generated scenarios on sample plots")
    parser.add_argument("--plots", nargs="*", type=int, help="Run specific plot numbers (1-indexed)")
    parser.add_argument("--typologies", nargs="*", default=["slab", "perimeter", "lshaped"])
    parser.add_argument("--far", type=float, default=2.0, help="Requested FAR")
    parser.add_argument("--workers", type=int, default=1, help="Threads for scenario generation")
    parser.add_argument("--json", action="store_true", help="Print raw JSON instead of a summary")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    plots = SAMPLE_PLOTS
    if args.plots:
        plots = [SAMPLE_PLOTS[i - 1] for i in args.plots if 0 < i <= len(SAMPLE_PLOTS)]

    if not args.json:
        print("\nSite Scenario Comparison")
        print(f"Date: {datetime.now().strftime('%Y-%m-%d %H:%M')}")
        print(f"Plots: {len(plots)}, typologies: {', '.join(args.typologies)}")

    output = {}
    for spec in plots:
        rows = run_plot(spec, args.typologies, args.far, args.workers)
        if args.json:
            output[spec["name"]] = rows
        else:
            print(format_result(spec, rows))

    if args.json:
        print(json.dumps(output, indent=2, default=str))


if __name__ == "__main__":
    main()
