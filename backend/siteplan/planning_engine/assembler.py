"""
Scenario assembler.

Pipeline for one scenario:

  1. Resolve the buildable envelope (setbacks, with fallback)
  2. Synthesize footprints for the typology
  3. Per-building footprint range, then the site coverage ceiling
  4. Effective FAR (regulation overrides the requested target) -> GFA target
  5. Floor count: GFA / footprint, clamped to floor range, height range,
     regulation max floors and max height
  6. Program allocation and unit count
  7. Utility pads, parking, peripheral road, green area
  8. Sanity checks -> notices

``generate_scenarios`` runs the pipeline for a set of presets
(typology / orientation / spacing variations), optionally in threads.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, Sequence

from shapely.geometry import Polygon
from shapely.geometry.base import BaseGeometry

from siteplan.config import settings
from siteplan.models.schemas import (
    Building, GenerationParameters, GreenArea, ParkingArea, ParkingType,
    PlanningNotice, Plot, Regulation, Road, Scenario, Typology, UtilityArea,
)
from siteplan.planning_engine.envelope import peripheral_zones, resolve_buildable_envelope
from siteplan.planning_engine.parking import (
    calculate_parking_capacity, parking_space_size, required_parking,
)
from siteplan.planning_engine.typologies import default_wing_depth, synthesize_footprints
from siteplan.services import geometry as geo

logger = logging.getLogger(__name__)

DEFAULT_FLOORS = 4
MAX_STRUCTURED_PARKING_LEVELS = 3
MIN_GREEN_PATCH_SQM = 1.0

# Utility pads: type -> (side m, quadrant, quadrant when vastu compliant)
UTILITY_PADS: dict[str, tuple[float, str, str]] = {
    "Water Tank": (5.0, "NW", "NE"),
    "STP": (8.0, "SE", "NW"),
    "WTP": (6.0, "SW", "SE"),
    "Electrical": (6.0, "SE", "SE"),
    "Fire": (5.0, "SE", "SE"),
    "HVAC": (6.0, "SW", "NW"),
}
DEFAULT_UTILITY_PAD = (6.0, "SE", "SE")


@dataclass(frozen=True)
class ScenarioPreset:
    name: str
    orientation_offset: float = 0.0
    gap_factor: float = 1.0
    depth_factor: float = 1.0


DEFAULT_PRESETS: tuple[ScenarioPreset, ...] = (
    ScenarioPreset("Base"),
    ScenarioPreset("Rotated", orientation_offset=90.0),
    ScenarioPreset("Open", gap_factor=1.5, depth_factor=0.85),
)


def _notice(code: str, message: str) -> PlanningNotice:
    return PlanningNotice(code=code, message=message)


# ──────────────────────────────────────────────────────────────────
# FAR / FLOORS
# ──────────────────────────────────────────────────────────────────

def resolve_far(
    plot: Plot,
    regulation: Optional[Regulation],
    requested: float,
) -> tuple[float, list[PlanningNotice]]:
    """Effective FAR: plot override, else regulation FAR, else the request."""
    notices: list[PlanningNotice] = []
    governing = plot.far_override
    source = "plot override"
    if governing is None and regulation is not None:
        governing = regulation.far
        source = "regulation"
    if governing is None:
        return requested, notices
    if not math.isclose(governing, requested):
        logger.info("FAR %s from %s overrides requested %s", governing, source, requested)
        notices.append(_notice(
            "far_override",
            f"Requested FAR {requested:g} replaced by {source} FAR {governing:g}.",
        ))
    return governing, notices


def clamp_floors(
    target_gfa: float,
    footprint_area: float,
    params: GenerationParameters,
    regulation: Optional[Regulation],
) -> int:
    """Floors to reach ``target_gfa`` on ``footprint_area``.

    The height range is applied first and the floor range second, so the
    result always lies in ``floor_range`` even when the configured floor
    height makes the two ranges disagree.  Regulation maxima are applied
    last and win over both.
    """
    raw = target_gfa / footprint_area if footprint_area > 0 else float("nan")
    floors = int(raw + 0.5) if math.isfinite(raw) and raw > 0 else DEFAULT_FLOORS

    fh = params.floor_height
    min_h, max_h = params.height_range
    floors = max(floors, math.ceil(min_h / fh - 1e-9))
    floors = min(floors, math.floor(max_h / fh + 1e-9))

    min_floors, max_floors = params.floor_range
    floors = min(max(floors, min_floors), max_floors)

    if regulation is not None:
        if regulation.max_floors:
            floors = min(floors, regulation.max_floors)
        if regulation.max_height:
            clamp_fh = fh if settings.height_clamp_mode == "configured" else settings.floor_height_heuristic_m
            floors = min(floors, math.floor(regulation.max_height / clamp_fh + 1e-9))

    return max(1, floors)


# ──────────────────────────────────────────────────────────────────
# FOOTPRINT LIMITS
# ──────────────────────────────────────────────────────────────────

def _apply_footprint_range(
    footprints: list[Polygon],
    params: GenerationParameters,
    notices: list[PlanningNotice],
) -> list[Polygon]:
    min_area, max_area = params.footprint_area_range
    result = []
    for poly in footprints:
        if poly.area > max_area:
            poly = geo.scale_to_area(poly, max_area)
        elif poly.area < min_area:
            notices.append(_notice(
                "footprint_below_minimum",
                f"Footprint of {poly.area:,.0f} m² is below the {min_area:,.0f} m² minimum.",
            ))
        result.append(poly)
    return result


def coverage_ceiling_pct(
    plot: Plot,
    regulation: Optional[Regulation],
    params: GenerationParameters,
) -> float:
    limits = [params.site_coverage_range[1]]
    regulated = plot.coverage_override
    if regulated is None and regulation is not None:
        regulated = regulation.max_coverage_pct
    if regulated is not None:
        limits.append(regulated)
    return min(limits)


def _apply_coverage_cap(
    footprints: list[Polygon],
    plot_area: float,
    ceiling_pct: float,
) -> list[Polygon]:
    """Scale every footprint about its centroid so total coverage fits."""
    max_area = plot_area * ceiling_pct / 100
    total = sum(p.area for p in footprints)
    if total <= max_area or total <= 0:
        return footprints
    factor = max_area / total
    return [geo.scale_to_area(p, p.area * factor) for p in footprints]


# ──────────────────────────────────────────────────────────────────
# SITE ELEMENTS
# ──────────────────────────────────────────────────────────────────

def _quadrant(bounds: tuple[float, float, float, float], name: str) -> tuple[float, float, float, float]:
    minx, miny, maxx, maxy = bounds
    midx, midy = (minx + maxx) / 2, (miny + maxy) / 2
    return {
        "NE": (midx, midy, maxx, maxy),
        "NW": (minx, midy, midx, maxy),
        "SE": (midx, miny, maxx, midy),
        "SW": (minx, miny, midx, midy),
    }[name]


def _find_pad(
    envelope: BaseGeometry,
    quadrant: tuple[float, float, float, float],
    corner: str,
    size: float,
    obstacles: Optional[BaseGeometry],
) -> Optional[Polygon]:
    """First pad position scanning inward from the quadrant's outer corner."""
    qminx, qminy, qmaxx, qmaxy = quadrant
    if qmaxx - qminx < size or qmaxy - qminy < size:
        return None
    step = max(1.0, size / 4)
    nx = int((qmaxx - qminx - size) / step) + 1
    ny = int((qmaxy - qminy - size) / step) + 1
    xs = [qminx + i * step for i in range(nx)]
    ys = [qminy + j * step for j in range(ny)]
    if "E" in corner:
        xs = [qmaxx - size - i * step for i in range(nx)]
    if "N" in corner:
        ys = [qmaxy - size - j * step for j in range(ny)]

    for y in ys:
        for x in xs:
            pad = geo.rectangle(x, y, x + size, y + size)
            if not envelope.contains(pad):
                continue
            if obstacles is not None and geo.area(geo.intersection(pad, obstacles).geometry) > 1e-6:
                continue
            return pad
    return None


def place_utilities(
    envelope: BaseGeometry,
    footprints: list[Polygon],
    utility_types: list[str],
    vastu_compliant: bool = False,
) -> tuple[list[UtilityArea], list[PlanningNotice]]:
    """Place one square pad per utility in its preferred envelope quadrant."""
    areas: list[UtilityArea] = []
    notices: list[PlanningNotice] = []
    placed: list[Polygon] = []
    bounds = envelope.bounds

    for i, utype in enumerate(utility_types):
        size, plain_q, vastu_q = UTILITY_PADS.get(utype, DEFAULT_UTILITY_PAD)
        corner = vastu_q if vastu_compliant else plain_q
        obstacles = geo.union(*footprints, *placed).geometry
        pad = _find_pad(envelope, _quadrant(bounds, corner), corner, size, obstacles)
        if pad is None:
            logger.warning("No room for %s pad in %s quadrant", utype, corner)
            notices.append(_notice(
                "utility_unplaced",
                f"{utype} ({size:g} m x {size:g} m) does not fit in the {corner} quadrant.",
            ))
            continue
        placed.append(pad)
        areas.append(UtilityArea(id=f"utility-{i + 1}", footprint=geo.to_geojson(pad), type=utype))
    return areas, notices


def _structured_parking(
    footprints: list[Polygon],
    parking_type: ParkingType,
    required: int,
    space_size: float,
    notices: list[PlanningNotice],
) -> list[ParkingArea]:
    below = geo.union(*footprints)
    if not below.ok:
        return []
    per_level = calculate_parking_capacity(geo.area(below.geometry), space_size)
    if per_level <= 0:
        return []
    levels = min(MAX_STRUCTURED_PARKING_LEVELS, max(1, math.ceil(required / per_level)))
    capacity = per_level * levels
    if capacity < required:
        notices.append(_notice(
            "parking_shortfall",
            f"{parking_type.value} parking provides {capacity} of {required} required stalls.",
        ))
    return [ParkingArea(
        id="parking-1",
        footprint=geo.to_geojson(below.geometry),
        type=parking_type,
        levels=levels,
        capacity=capacity,
    )]


def _green_areas(
    envelope: BaseGeometry,
    footprints: list[Polygon],
    utilities: list[UtilityArea],
) -> list[GreenArea]:
    occupied = geo.union(*footprints, *(u.geometry() for u in utilities))
    remaining = geo.difference(envelope, occupied.geometry)
    parts = [p for p in geo.explode(remaining.geometry) if p.area >= MIN_GREEN_PATCH_SQM]
    return [GreenArea(id=f"green-{i + 1}", footprint=geo.to_geojson(p)) for i, p in enumerate(parts)]


def _run_sanity_checks(
    buildings: list[Building],
    plot_area: float,
    effective_far: float,
    target_gfa: float,
    regulation: Optional[Regulation],
) -> list[PlanningNotice]:
    notices: list[PlanningNotice] = []
    built = sum(b.gross_floor_area for b in buildings)
    if target_gfa > 0 and built > target_gfa * 1.05:
        notices.append(_notice(
            "far_exceeded",
            f"Built area {built:,.0f} m² exceeds FAR {effective_far:g} capacity of {target_gfa:,.0f} m².",
        ))
    elif target_gfa > 0 and built < target_gfa * 0.95:
        notices.append(_notice(
            "far_shortfall",
            f"Built area {built:,.0f} m² reaches {built / plot_area:.2f} of FAR {effective_far:g}.",
        ))
    if regulation is not None and regulation.max_height:
        tallest = max((b.height for b in buildings), default=0.0)
        if tallest > regulation.max_height + 0.01:
            notices.append(_notice(
                "height_exceeded",
                f"Building height {tallest:.1f} m exceeds max {regulation.max_height:g} m.",
            ))
    return notices


# ──────────────────────────────────────────────────────────────────
# ENTRY POINTS
# ──────────────────────────────────────────────────────────────────

def assemble_scenario(
    plot: Plot,
    regulation: Optional[Regulation],
    params: GenerationParameters,
    typology: Optional[Typology] = None,
    orientation: Optional[float] = None,
    name: str = "Scenario",
    gap: Optional[float] = None,
    depth_factor: float = 1.0,
) -> Scenario:
    """Generate one scenario for ``plot`` under ``regulation``.

    Args:
        plot: Plot with boundary in local meters and optional setbacks
        regulation: Governing regulation, or None for unconstrained
        params: Generation parameters
        typology: Typology to use (defaults to the first in params)
        orientation: Grid orientation in degrees (defaults to params)
        name: Scenario name
        gap: Inter-building gap override in meters
        depth_factor: Multiplier on the wing depth

    Returns:
        A frozen Scenario.  Degenerate geometry and missing data are
        reported in ``scenario.notices``.
    """
    typology = Typology(typology or params.typologies[0])
    orientation = params.orientation if orientation is None else orientation
    notices: list[PlanningNotice] = []

    # Step 1: Envelope
    boundary = plot.polygon
    plot_area = plot.area
    setback = plot.setback
    if setback is None and regulation is not None:
        setback = regulation.setback_spec()
    env = resolve_buildable_envelope(boundary, setback)
    envelope = env.envelope
    notices += env.notices

    # Step 2: Footprints
    depth = (params.building_depth or default_wing_depth(envelope)) * depth_factor
    synth = synthesize_footprints(
        envelope, typology, orientation,
        depth=depth, count=params.building_count, gap=gap,
    )
    notices += synth.notices
    footprints = synth.footprints

    # Step 3: Footprint and coverage limits
    footprints = _apply_footprint_range(footprints, params, notices)
    ceiling = coverage_ceiling_pct(plot, regulation, params)
    footprints = _apply_coverage_cap(footprints, plot_area, ceiling)
    total_footprint = sum(p.area for p in footprints)
    coverage_pct = total_footprint / plot_area * 100
    if coverage_pct < params.site_coverage_range[0]:
        notices.append(_notice(
            "coverage_below_minimum",
            f"Coverage {coverage_pct:.1f}% is below the {params.site_coverage_range[0]:g}% minimum.",
        ))

    # Step 4: FAR
    effective_far, far_notices = resolve_far(plot, regulation, params.target_far)
    notices += far_notices
    target_gfa = effective_far * plot_area

    # Step 5: Floors
    floors = clamp_floors(target_gfa, total_footprint, params, regulation)
    height = floors * params.floor_height

    buildings = [
        Building(
            id=f"{typology.value}-{i + 1}",
            name=f"Building {i + 1}",
            footprint=geo.to_geojson(poly),
            floors=floors,
            floor_height=params.floor_height,
            height=height,
            use=params.land_use,
            typology=typology,
        )
        for i, poly in enumerate(footprints)
    ]

    # Step 6: Program
    built_gfa = sum(b.gross_floor_area for b in buildings)
    program_areas = {k: built_gfa * pct / 100 for k, pct in params.program_mix.items()}
    unit_count = math.floor(program_areas.get("residential", 0.0) / params.avg_unit_size)

    # Step 7: Site elements
    utilities, util_notices = place_utilities(
        envelope, footprints, params.selected_utilities, params.vastu_compliant,
    )
    notices += util_notices

    space_size = parking_space_size(regulation)
    ratio = params.parking_ratio
    if regulation is not None and regulation.parking_ratio is not None:
        ratio = max(ratio, regulation.parking_ratio)
    required = required_parking(unit_count, ratio)

    with_surface = params.parking_type == ParkingType.SURFACE
    zones = peripheral_zones(
        boundary, envelope,
        settings.parking_width_m, settings.road_width_m,
        include_parking=with_surface,
    )
    parking_areas: list[ParkingArea] = []
    if with_surface:
        if zones.parking is not None:
            area = geo.area(zones.parking)
            parking_areas.append(ParkingArea(
                id="parking-1",
                footprint=geo.to_geojson(zones.parking),
                type=ParkingType.SURFACE,
                capacity=calculate_parking_capacity(area, space_size),
            ))
        else:
            notices.append(_notice("parking_unplaced", "No setback band available for surface parking."))
    elif params.parking_type in (ParkingType.UNDERGROUND, ParkingType.PODIUM):
        parking_areas = _structured_parking(footprints, params.parking_type, required, space_size, notices)

    roads = []
    if zones.road is not None:
        roads.append(Road(id="road-1", footprint=geo.to_geojson(zones.road), width=settings.road_width_m))

    green_areas = _green_areas(envelope, footprints, utilities)

    # Step 8: Sanity checks
    notices += _run_sanity_checks(buildings, plot_area, effective_far, target_gfa, regulation)

    return Scenario(
        name=name,
        typology=typology,
        orientation=orientation,
        plot_area=plot_area,
        plot_boundary=plot.boundary,
        buildings=buildings,
        green_areas=green_areas,
        parking_areas=parking_areas,
        utility_areas=utilities,
        roads=roads,
        requested_far=params.target_far,
        effective_far=effective_far,
        target_gfa=target_gfa,
        program_areas=program_areas,
        unit_count=unit_count,
        envelope_area=geo.area(envelope),
        envelope_fallback=env.fallback,
        setback_distances=env.distances,
        notices=notices,
    )


def generate_scenarios(
    plot: Plot,
    regulation: Optional[Regulation],
    params: GenerationParameters,
    presets: Sequence[ScenarioPreset] = DEFAULT_PRESETS,
    max_workers: Optional[int] = None,
) -> list[Scenario]:
    """Generate one independent scenario per preset.

    Typologies cycle through ``params.typologies``.  With ``max_workers``
    the presets run in a thread pool; results are returned in preset order.
    """
    gap = settings.inter_building_gap_m

    def build(indexed: tuple[int, ScenarioPreset]) -> Scenario:
        i, preset = indexed
        typology = params.typologies[i % len(params.typologies)]
        return assemble_scenario(
            plot, regulation, params,
            typology=typology,
            orientation=params.orientation + preset.orientation_offset,
            name=f"{preset.name} ({Typology(typology).value})",
            gap=gap * preset.gap_factor,
            depth_factor=preset.depth_factor,
        )

    jobs = list(enumerate(presets))
    if not max_workers or max_workers <= 1:
        return [build(job) for job in jobs]
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(build, jobs))
