"""
Typology mask synthesis.

Turns a buildable envelope into building footprints for a typology:

* point / slab: the envelope is cut into N bands across its longer axis,
  each band eroded by the inter-building gap.
* perimeter / O: a ring of building depth hugging the envelope edge.
* L / U: the ring clipped by a union of bounding-box half-planes chosen
  from the orientation bucket; U also loses a notch on its open side.
* T / H: the ring clipped by bar masks built from bbox fractions and
  rotated about the bbox centre.

Each stage falls back to the previous valid polygon (envelope -> ring ->
masked ring), so synthesis always returns at least one footprint for a
non-empty envelope.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from shapely.geometry import Polygon
from shapely.geometry.base import BaseGeometry

from siteplan.config import settings
from siteplan.models.schemas import PlanningNotice, Typology
from siteplan.services import geometry as geo

logger = logging.getLogger(__name__)

DEFAULT_BUILDING_COUNT = {
    Typology.POINT: 4,
    Typology.SLAB: 3,
}

# Bar fractions of the bbox for T and H masks
T_BAR_DEPTH = 0.40
T_STEM_HALF_WIDTH = 0.20
H_SIDE_BAR_WIDTH = 0.35
H_CENTER_HALF_HEIGHT = 0.20


class HalfPlane(str, Enum):
    NORTH = "N"
    SOUTH = "S"
    EAST = "E"
    WEST = "W"


class OrientationBucket(Enum):
    """Orientation snapped to 90° windows (±45°), named by the L corner."""
    SW = 0
    SE = 90
    NE = 180
    NW = 270

    @classmethod
    def from_angle(cls, angle: float) -> "OrientationBucket":
        rot = ((angle % 360) + 360) % 360
        if rot >= 315 or rot < 45:
            return cls.SW
        if rot < 135:
            return cls.SE
        if rot < 225:
            return cls.NE
        return cls.NW


L_MASKS: dict[OrientationBucket, tuple[HalfPlane, ...]] = {
    OrientationBucket.SW: (HalfPlane.SOUTH, HalfPlane.WEST),
    OrientationBucket.SE: (HalfPlane.SOUTH, HalfPlane.EAST),
    OrientationBucket.NE: (HalfPlane.NORTH, HalfPlane.EAST),
    OrientationBucket.NW: (HalfPlane.NORTH, HalfPlane.WEST),
}

# Three halves always cover the whole bbox, so the U opening is a notch
# through the middle third of the open side.
U_MASKS: dict[OrientationBucket, tuple[HalfPlane, ...]] = {
    OrientationBucket.SW: (HalfPlane.SOUTH, HalfPlane.WEST, HalfPlane.EAST),
    OrientationBucket.SE: (HalfPlane.EAST, HalfPlane.NORTH, HalfPlane.SOUTH),
    OrientationBucket.NE: (HalfPlane.NORTH, HalfPlane.WEST, HalfPlane.EAST),
    OrientationBucket.NW: (HalfPlane.WEST, HalfPlane.NORTH, HalfPlane.SOUTH),
}
U_OPEN_SIDE: dict[OrientationBucket, HalfPlane] = {
    OrientationBucket.SW: HalfPlane.NORTH,
    OrientationBucket.SE: HalfPlane.WEST,
    OrientationBucket.NE: HalfPlane.SOUTH,
    OrientationBucket.NW: HalfPlane.EAST,
}


@dataclass
class TypologyResult:
    typology: Typology
    footprints: list[Polygon]
    depth: float
    notices: list[PlanningNotice] = field(default_factory=list)

    @property
    def total_area(self) -> float:
        return sum(p.area for p in self.footprints)


def _fallback_notice(typology: Typology, stage: str, reason: str) -> PlanningNotice:
    logger.warning("%s synthesis: %s failed (%s); keeping previous shape", typology.value, stage, reason)
    return PlanningNotice(
        code="typology_fallback",
        message=f"{typology.value}: {stage} produced no usable geometry; previous stage kept.",
    )


def default_wing_depth(envelope: BaseGeometry) -> float:
    """10-14 m wing depth scaled to the envelope's short side."""
    minx, miny, maxx, maxy = envelope.bounds
    short_side = min(maxx - minx, maxy - miny)
    return min(14.0, max(10.0, short_side * 0.12))


# ──────────────────────────────────────────────────────────────────
# POINT / SLAB
# ──────────────────────────────────────────────────────────────────

def split_into_bands(envelope: BaseGeometry, count: int, gap: float) -> list[Polygon]:
    """Cut the envelope into ``count`` bands across its longer bbox axis.

    Each band keeps its largest connected part and is eroded by
    ``gap``; a band too thin to erode keeps its un-eroded piece.  Returns
    the envelope itself when no band survives.
    """
    minx, miny, maxx, maxy = envelope.bounds
    width, height = maxx - minx, maxy - miny
    count = max(1, int(count))

    pieces: list[Polygon] = []
    for i in range(count):
        if width >= height:
            step = width / count
            band = geo.rectangle(minx + i * step, miny, minx + (i + 1) * step, maxy)
        else:
            step = height / count
            band = geo.rectangle(minx, miny + i * step, maxx, miny + (i + 1) * step)

        chunk = geo.largest_polygon(geo.intersection(envelope, band).geometry)
        if chunk is None:
            continue
        eroded = geo.buffer(chunk, -gap) if gap > 0 else geo.GeometryResult(chunk)
        piece = geo.largest_polygon(eroded.or_else(chunk))
        if piece is not None:
            pieces.append(piece)

    if not pieces:
        fallback = geo.largest_polygon(envelope)
        return [fallback] if fallback is not None else []
    return pieces


def _banded(envelope: BaseGeometry, count: int, gap: float, orientation: float) -> list[Polygon]:
    if orientation % 360 == 0:
        return split_into_bands(envelope, count, gap)
    pivot = envelope.centroid
    aligned = geo.rotate(envelope, -orientation, pivot).or_else(envelope)
    pieces = split_into_bands(aligned, count, gap)
    return [geo.rotate(p, orientation, pivot).or_else(p) for p in pieces]


# ──────────────────────────────────────────────────────────────────
# RING + MASKS
# ──────────────────────────────────────────────────────────────────

def perimeter_ring(envelope: BaseGeometry, depth: float) -> tuple[BaseGeometry, bool]:
    """Strip of ``depth`` hugging the envelope edge.

    Returns ``(ring, solid)``; ``solid`` is True when the envelope is too
    small for a courtyard and the whole envelope is returned.
    """
    inner = geo.buffer(envelope, -depth)
    if not inner.ok:
        return envelope, True
    ring = geo.difference(envelope, inner.geometry)
    if not ring.ok:
        return envelope, True
    return ring.geometry, False


def half_planes(bounds: tuple[float, float, float, float], padding: float) -> dict[HalfPlane, Polygon]:
    minx, miny, maxx, maxy = bounds
    midx, midy = (minx + maxx) / 2, (miny + maxy) / 2
    return {
        HalfPlane.NORTH: geo.rectangle(minx - padding, midy, maxx + padding, maxy + padding),
        HalfPlane.SOUTH: geo.rectangle(minx - padding, miny - padding, maxx + padding, midy),
        HalfPlane.EAST: geo.rectangle(midx, miny - padding, maxx + padding, maxy + padding),
        HalfPlane.WEST: geo.rectangle(minx - padding, miny - padding, midx, maxy + padding),
    }


def u_opening(bounds: tuple[float, float, float, float], side: HalfPlane, padding: float) -> Polygon:
    """Middle third of the ``side`` half, padded outward."""
    minx, miny, maxx, maxy = bounds
    w, h = maxx - minx, maxy - miny
    midx, midy = (minx + maxx) / 2, (miny + maxy) / 2
    if side == HalfPlane.NORTH:
        return geo.rectangle(minx + w / 3, midy, maxx - w / 3, maxy + padding)
    if side == HalfPlane.SOUTH:
        return geo.rectangle(minx + w / 3, miny - padding, maxx - w / 3, midy)
    if side == HalfPlane.EAST:
        return geo.rectangle(midx, miny + h / 3, maxx + padding, maxy - h / 3)
    return geo.rectangle(minx - padding, miny + h / 3, midx, maxy - h / 3)


def _bar_mask(bounds: tuple[float, float, float, float], typology: Typology, padding: float) -> list[Polygon]:
    minx, miny, maxx, maxy = bounds
    w, h = maxx - minx, maxy - miny
    midx, midy = (minx + maxx) / 2, (miny + maxy) / 2
    if typology == Typology.TSHAPED:
        return [
            geo.rectangle(minx - padding, maxy - h * T_BAR_DEPTH, maxx + padding, maxy + padding),
            geo.rectangle(midx - w * T_STEM_HALF_WIDTH, miny - padding, midx + w * T_STEM_HALF_WIDTH, maxy + padding),
        ]
    return [
        geo.rectangle(minx - padding, miny - padding, minx + w * H_SIDE_BAR_WIDTH, maxy + padding),
        geo.rectangle(maxx - w * H_SIDE_BAR_WIDTH, miny - padding, maxx + padding, maxy + padding),
        geo.rectangle(minx - padding, midy - h * H_CENTER_HALF_HEIGHT, maxx + padding, midy + h * H_CENTER_HALF_HEIGHT),
    ]


def create_mask(
    bounds: tuple[float, float, float, float],
    typology: Typology,
    orientation: float = 0.0,
    padding: Optional[float] = None,
) -> geo.GeometryResult:
    """Mask polygon that cuts the perimeter ring into an L, U, T or H."""
    if padding is None:
        padding = settings.mask_padding_m

    if typology in (Typology.LSHAPED, Typology.USHAPED):
        planes = half_planes(bounds, padding)
        bucket = OrientationBucket.from_angle(orientation)
        if typology == Typology.LSHAPED:
            return geo.union(*(planes[side] for side in L_MASKS[bucket]))
        halves = geo.union(*(planes[side] for side in U_MASKS[bucket]))
        if not halves.ok:
            return halves
        return geo.difference(halves.geometry, u_opening(bounds, U_OPEN_SIDE[bucket], padding))

    if typology in (Typology.TSHAPED, Typology.HSHAPED):
        minx, miny, maxx, maxy = bounds
        pivot = ((minx + maxx) / 2, (miny + maxy) / 2)
        bars = geo.union(*_bar_mask(bounds, typology, padding))
        if not bars.ok:
            return bars
        return geo.rotate(bars.geometry, orientation, pivot)

    raise ValueError(f"No mask for typology {typology.value!r}")


# ──────────────────────────────────────────────────────────────────
# ENTRY POINT
# ──────────────────────────────────────────────────────────────────

def _drop_slivers(parts: list[Polygon], min_area: float) -> list[Polygon]:
    kept = [p for p in parts if p.area >= min_area]
    if kept:
        return kept
    largest = max(parts, key=lambda p: p.area, default=None)
    return [largest] if largest is not None else []


def synthesize_footprints(
    envelope: BaseGeometry,
    typology: Typology,
    orientation: float = 0.0,
    depth: Optional[float] = None,
    count: Optional[int] = None,
    gap: Optional[float] = None,
) -> TypologyResult:
    """Footprints for one typology inside the envelope.

    Never raises on degenerate geometry; raises ``ValueError`` only for an
    empty envelope, which callers rule out by resolving the envelope first.
    """
    if envelope is None or envelope.is_empty:
        raise ValueError("Cannot synthesize footprints on an empty envelope")

    typology = Typology(typology)
    depth = depth if depth is not None else default_wing_depth(envelope)
    gap = gap if gap is not None else settings.inter_building_gap_m
    notices: list[PlanningNotice] = []

    if typology in (Typology.POINT, Typology.SLAB):
        n = count or DEFAULT_BUILDING_COUNT[typology]
        parts = _banded(envelope, n, gap, orientation)
    else:
        ring, solid = perimeter_ring(envelope, depth)
        if solid:
            notices.append(PlanningNotice(
                code="solid_block",
                message=f"Envelope narrower than twice the {depth:.1f} m depth; using a solid block.",
            ))
        shape = ring
        if typology not in (Typology.PERIMETER, Typology.OSHAPED):
            mask = create_mask(envelope.bounds, typology, orientation)
            if mask.ok:
                clipped = geo.intersection(ring, mask.geometry)
                if clipped.ok:
                    shape = clipped.geometry
                else:
                    notices.append(_fallback_notice(typology, "mask intersection", clipped.error))
            else:
                notices.append(_fallback_notice(typology, "mask", mask.error))
        parts = geo.explode(shape)

    footprints = _drop_slivers(parts, settings.min_footprint_sqm)
    if not footprints:
        footprints = geo.explode(envelope)
        notices.append(_fallback_notice(typology, "footprint synthesis", "no parts"))

    return TypologyResult(typology, footprints, depth, notices)
