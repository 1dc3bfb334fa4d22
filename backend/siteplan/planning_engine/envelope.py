"""
Buildable envelope resolution.

The envelope is the plot boundary eroded by its setback(s).  When the
setback consumes the whole parcel the envelope falls back to the boundary
itself (a zero-setback plan) and the fallback is flagged so the scorer can
fail the setback check instead of silently passing it.

Variable setbacks: the plot is first eroded uniformly by the side setback,
then the extra front / rear depth is cut with bounding-box half-planes on
the road-access sides and their opposites.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from shapely.geometry.base import BaseGeometry

from siteplan.models.schemas import PlanningNotice, SetbackSpec
from siteplan.services import geometry as geo

logger = logging.getLogger(__name__)

OPPOSITE_SIDE = {"N": "S", "S": "N", "E": "W", "W": "E"}
NO_SETBACK = {"front": 0.0, "side": 0.0, "rear": 0.0}


@dataclass
class EnvelopeResult:
    envelope: BaseGeometry
    setback_applied: bool
    fallback: bool = False
    notices: list[PlanningNotice] = field(default_factory=list)
    distances: dict[str, float] = field(default_factory=lambda: dict(NO_SETBACK))


def _side_cutter(bounds: tuple[float, float, float, float], side: str, depth: float) -> BaseGeometry:
    """Half-plane strip ``depth`` deep along one bbox edge, padded outward."""
    minx, miny, maxx, maxy = bounds
    pad = 1.0
    if side == "N":
        return geo.rectangle(minx - pad, maxy - depth, maxx + pad, maxy + pad)
    if side == "S":
        return geo.rectangle(minx - pad, miny - pad, maxx + pad, miny + depth)
    if side == "E":
        return geo.rectangle(maxx - depth, miny - pad, maxx + pad, maxy + pad)
    return geo.rectangle(minx - pad, miny - pad, minx + depth, maxy + pad)


def _apply_variable_setbacks(boundary: BaseGeometry, spec: SetbackSpec) -> geo.GeometryResult:
    side = spec.side_distance
    shrunk = geo.buffer(boundary, -side) if side > 0 else geo.GeometryResult(boundary)
    if not shrunk.ok:
        return shrunk

    bounds = geo.bounding_box(boundary)
    fronts = list(dict.fromkeys(spec.road_access_sides))
    rears = [OPPOSITE_SIDE[s] for s in fronts if OPPOSITE_SIDE[s] not in fronts]

    cutters = []
    if spec.front_distance > side:
        cutters += [_side_cutter(bounds, s, spec.front_distance) for s in fronts]
    if spec.rear_distance > side:
        cutters += [_side_cutter(bounds, s, spec.rear_distance) for s in rears]
    if not cutters:
        return shrunk

    return geo.difference(shrunk.geometry, geo.union(*cutters).geometry)


def applied_distances(setback: Optional[Union[float, SetbackSpec]]) -> dict[str, float]:
    """Front / side / rear distances the envelope actually keeps clear."""
    if setback is None:
        return dict(NO_SETBACK)
    if not isinstance(setback, SetbackSpec):
        d = max(0.0, float(setback))
        return {"front": d, "side": d, "rear": d}
    if not setback.road_access_sides or setback.is_uniform:
        d = max(setback.side_distance, setback.front_distance, setback.rear_distance)
        return {"front": d, "side": d, "rear": d}

    side = setback.side_distance
    fronts = set(setback.road_access_sides)
    has_rear = any(OPPOSITE_SIDE[s] not in fronts for s in fronts)
    return {
        "front": max(setback.front_distance, side),
        "side": side,
        "rear": max(setback.rear_distance, side) if has_rear else side,
    }


def resolve_buildable_envelope(
    boundary: BaseGeometry,
    setback: Optional[Union[float, SetbackSpec]],
) -> EnvelopeResult:
    """Erode the plot boundary by its setback(s).

    Never fails: an empty erosion falls back to the boundary with
    ``fallback=True`` and a ``setback_fallback`` notice.
    """
    if setback is None:
        return EnvelopeResult(boundary, setback_applied=False)

    if isinstance(setback, SetbackSpec):
        if not setback.road_access_sides or setback.is_uniform:
            distance = max(setback.side_distance, setback.front_distance, setback.rear_distance)
            result = geo.buffer(boundary, -distance) if distance > 0 else geo.GeometryResult(boundary)
            label = f"{distance:g} m"
        else:
            result = _apply_variable_setbacks(boundary, setback)
            label = (
                f"front {setback.front_distance:g} m / side {setback.side_distance:g} m"
                f" / rear {setback.rear_distance:g} m"
            )
    else:
        if setback <= 0:
            return EnvelopeResult(boundary, setback_applied=False)
        result = geo.buffer(boundary, -float(setback))
        label = f"{setback:g} m"

    if result.ok:
        return EnvelopeResult(result.geometry, setback_applied=True, distances=applied_distances(setback))

    logger.warning(
        "Setback %s consumes the plot (%s); using the boundary as the envelope",
        label, result.error,
    )
    notice = PlanningNotice(
        code="setback_fallback",
        message=f"Setback {label} leaves no buildable area; envelope falls back to the plot boundary.",
    )
    return EnvelopeResult(boundary, setback_applied=False, fallback=True, notices=[notice])


# ──────────────────────────────────────────────────────────────────
# PERIPHERAL ZONES
# ──────────────────────────────────────────────────────────────────

@dataclass
class PeripheralZones:
    parking: Optional[BaseGeometry] = None
    road: Optional[BaseGeometry] = None


def peripheral_zones(
    boundary: BaseGeometry,
    envelope: BaseGeometry,
    parking_width: float,
    road_width: float,
    include_parking: bool = True,
) -> PeripheralZones:
    """Split the setback band (boundary minus envelope) into an outer
    parking strip and an inner circulation road strip."""
    band = geo.difference(boundary, envelope)
    if not band.ok:
        return PeripheralZones()

    zones = PeripheralZones()
    inset = 0.0
    if include_parking and parking_width > 0:
        inner = geo.buffer(boundary, -parking_width)
        strip = geo.difference(boundary, inner.geometry) if inner.ok else geo.GeometryResult(boundary)
        zones.parking = geo.intersection(band.geometry, strip.geometry).geometry
        inset = parking_width

    if road_width > 0:
        outer = geo.buffer(boundary, -inset) if inset > 0 else geo.GeometryResult(boundary)
        if outer.ok:
            inner = geo.buffer(boundary, -(inset + road_width))
            ring = geo.difference(outer.geometry, inner.geometry) if inner.ok else outer
            zones.road = geo.intersection(band.geometry, ring.geometry).geometry

    return zones
