"""
Planar geometry kernel shared by the envelope, typology and scoring engines.

Every operation is total: instead of raising on degenerate input it returns a
``GeometryResult`` whose ``geometry`` is ``None`` when the operation produced
nothing usable (empty erosion, failed overlay, invalid output).  Callers pick
their own fallback with ``result.or_else(previous)``.

Working units are meters in a local planar frame.  Boolean operations snap
coordinates to ``settings.grid_size`` (1e-6 m by default) so that coincident
vertices produced by different code paths merge deterministically.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Optional

import shapely
from shapely import affinity
from shapely.errors import GEOSException
from shapely.geometry import (
    GeometryCollection, MultiPolygon, Point, Polygon, box, mapping, shape,
)
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform

from siteplan.config import settings

logger = logging.getLogger(__name__)

# ~111,320 m per degree of latitude
METERS_PER_DEGREE = 111_320.0


@dataclass(frozen=True)
class GeometryResult:
    """Outcome of a kernel operation: a polygonal geometry or a reason."""
    geometry: Optional[BaseGeometry] = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.geometry is not None and not self.geometry.is_empty

    def or_else(self, fallback: Optional[BaseGeometry]) -> Optional[BaseGeometry]:
        return self.geometry if self.ok else fallback

    @classmethod
    def empty(cls, reason: str) -> "GeometryResult":
        return cls(None, reason)


# ──────────────────────────────────────────────────────────────────
# INTERNAL HELPERS
# ──────────────────────────────────────────────────────────────────

def _polygonal(geom: Optional[BaseGeometry]) -> Optional[BaseGeometry]:
    """Reduce overlay output to its polygonal part (Polygon or MultiPolygon)."""
    if geom is None or geom.is_empty:
        return None
    if not geom.is_valid:
        geom = shapely.make_valid(geom)
    if isinstance(geom, (Polygon, MultiPolygon)):
        return geom if geom.area > 0 else None
    if isinstance(geom, GeometryCollection):
        polys = [p for g in geom.geoms for p in explode(g)]
        if not polys:
            return None
        return polys[0] if len(polys) == 1 else MultiPolygon(polys)
    return None


def _wrap(op: str, geom: Optional[BaseGeometry]) -> GeometryResult:
    result = _polygonal(geom)
    if result is None:
        return GeometryResult.empty(f"{op} produced an empty result")
    return GeometryResult(result)


def _usable(*geoms: Optional[BaseGeometry]) -> bool:
    return all(g is not None and not g.is_empty for g in geoms)


# ──────────────────────────────────────────────────────────────────
# KERNEL OPERATIONS
# ──────────────────────────────────────────────────────────────────

def buffer(geom: Optional[BaseGeometry], distance: float) -> GeometryResult:
    """Offset a polygon outward (distance > 0) or erode it (distance < 0).

    Mitre joins keep rectangular footprints rectangular.  Erosion that
    consumes the whole shape returns an empty result.
    """
    if not _usable(geom):
        return GeometryResult.empty("buffer of empty geometry")
    if distance == 0:
        return _wrap("buffer", geom)
    try:
        out = geom.buffer(distance, join_style="mitre")
    except (GEOSException, ValueError) as exc:
        logger.debug("buffer(%s) failed: %s", distance, exc)
        return GeometryResult.empty(f"buffer failed: {exc}")
    return _wrap("buffer", out)


def union(*geoms: Optional[BaseGeometry]) -> GeometryResult:
    parts = [g for g in geoms if _usable(g)]
    if not parts:
        return GeometryResult.empty("union of empty inputs")
    try:
        out = shapely.union_all(parts, grid_size=settings.grid_size)
    except (GEOSException, ValueError) as exc:
        logger.debug("union failed: %s", exc)
        return GeometryResult.empty(f"union failed: {exc}")
    return _wrap("union", out)


def difference(a: Optional[BaseGeometry], b: Optional[BaseGeometry]) -> GeometryResult:
    if not _usable(a):
        return GeometryResult.empty("difference of empty geometry")
    if not _usable(b):
        return _wrap("difference", a)
    try:
        out = shapely.difference(a, b, grid_size=settings.grid_size)
    except (GEOSException, ValueError) as exc:
        logger.debug("difference failed: %s", exc)
        return GeometryResult.empty(f"difference failed: {exc}")
    return _wrap("difference", out)


def intersection(a: Optional[BaseGeometry], b: Optional[BaseGeometry]) -> GeometryResult:
    if not _usable(a, b):
        return GeometryResult.empty("intersection with empty geometry")
    try:
        out = shapely.intersection(a, b, grid_size=settings.grid_size)
    except (GEOSException, ValueError) as exc:
        logger.debug("intersection failed: %s", exc)
        return GeometryResult.empty(f"intersection failed: {exc}")
    return _wrap("intersection", out)


def rotate(
    geom: Optional[BaseGeometry],
    angle: float,
    pivot: Optional[Point | tuple[float, float]] = None,
) -> GeometryResult:
    """Rotate counter-clockwise by ``angle`` degrees about ``pivot``
    (defaults to the bounding-box centre)."""
    if not _usable(geom):
        return GeometryResult.empty("rotate of empty geometry")
    origin = pivot if pivot is not None else "center"
    try:
        out = affinity.rotate(geom, angle, origin=origin)
    except (GEOSException, ValueError) as exc:
        return GeometryResult.empty(f"rotate failed: {exc}")
    return _wrap("rotate", out)


def bounding_box(geom: Optional[BaseGeometry]) -> Optional[tuple[float, float, float, float]]:
    """(minx, miny, maxx, maxy) or None for empty input."""
    if not _usable(geom):
        return None
    return geom.bounds


def area(geom: Optional[BaseGeometry]) -> float:
    if not _usable(geom):
        return 0.0
    return float(geom.area)


def centroid(geom: Optional[BaseGeometry]) -> Optional[Point]:
    if not _usable(geom):
        return None
    return geom.centroid


# ──────────────────────────────────────────────────────────────────
# HELPERS
# ──────────────────────────────────────────────────────────────────

def explode(geom: Optional[BaseGeometry]) -> list[Polygon]:
    """Split a (multi)polygon into its polygon parts, skipping zero-area ones."""
    if geom is None or geom.is_empty:
        return []
    if isinstance(geom, Polygon):
        return [geom] if geom.area > 0 else []
    if hasattr(geom, "geoms"):
        return [p for g in geom.geoms for p in explode(g)]
    return []


def largest_polygon(geom: Optional[BaseGeometry]) -> Optional[Polygon]:
    parts = explode(geom)
    if not parts:
        return None
    return max(parts, key=lambda p: p.area)


def scale_to_area(geom: BaseGeometry, target_area: float) -> BaseGeometry:
    """Uniformly shrink ``geom`` about its centroid until it has ``target_area``."""
    current = area(geom)
    if current <= 0 or target_area >= current:
        return geom
    factor = math.sqrt(max(target_area, 0.0) / current)
    return affinity.scale(geom, xfact=factor, yfact=factor, origin=geom.centroid)


def rectangle(minx: float, miny: float, maxx: float, maxy: float) -> Polygon:
    return box(minx, miny, maxx, maxy)


def from_geojson(geojson: dict) -> BaseGeometry:
    return shape(geojson)


def to_geojson(geom: BaseGeometry) -> dict:
    return mapping(geom)


def to_local_meters(geojson: dict) -> tuple[BaseGeometry, dict]:
    """Project a lon/lat polygon into local meters about its centroid.

    Equirectangular projection; adequate at parcel scale.  Returns the
    projected geometry and the origin used.
    """
    geom = shape(geojson)
    origin = geom.centroid
    lng_to_m = math.cos(math.radians(origin.y)) * METERS_PER_DEGREE

    def project(x, y, z=None):
        return ((x - origin.x) * lng_to_m, (y - origin.y) * METERS_PER_DEGREE)

    projected = transform(project, geom)
    return projected, {"lng": origin.x, "lat": origin.y}


def polygons_union_area(geoms: Iterable[BaseGeometry]) -> float:
    return area(union(*geoms).geometry)
