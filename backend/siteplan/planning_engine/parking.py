"""
Parking capacity and requirement.

Stall capacity of an area = floor(area x efficiency / stall size); the
efficiency share accounts for aisles and ramps.  Stall size comes from the
regulation (``facilities.parking_space_size``) or 12.5 m² (2.5 m x 5 m).
"""

from __future__ import annotations

import math
from typing import Optional

from siteplan.config import settings
from siteplan.models.schemas import ParkingArea, ParkingType, Regulation


def calculate_parking_capacity(
    area: float,
    space_size: Optional[float] = None,
    efficiency: Optional[float] = None,
) -> int:
    """Number of stalls that fit in ``area`` m²."""
    space_size = settings.parking_space_sqm if space_size is None else space_size
    efficiency = settings.parking_efficiency if efficiency is None else efficiency
    if area <= 0 or space_size <= 0 or efficiency <= 0:
        return 0
    return math.floor(area * efficiency / space_size)


def parking_space_size(regulation: Optional[Regulation]) -> float:
    if regulation is not None and regulation.parking_space_size:
        return regulation.parking_space_size
    return settings.parking_space_sqm


def required_parking(units: int, ratio: Optional[float]) -> int:
    """Stalls required for ``units`` dwelling units at ``ratio`` stalls/unit."""
    if units <= 0:
        return 0
    return math.ceil(units * (ratio if ratio is not None else 1.0))


def summarize_parking(parking_areas: list[ParkingArea]) -> dict:
    """Total stalls plus per-type breakdown.

    Areas without a stored capacity are sized from their footprint.
    """
    breakdown = {t.value: 0 for t in ParkingType if t != ParkingType.NONE}
    for pa in parking_areas:
        capacity = pa.capacity or calculate_parking_capacity(pa.area) * pa.levels
        breakdown[pa.type.value] = breakdown.get(pa.type.value, 0) + capacity
    return {"total": sum(breakdown.values()), **breakdown}
