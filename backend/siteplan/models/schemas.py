from __future__ import annotations

import math
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator
from shapely.geometry import MultiPolygon, Polygon, shape
from shapely.geometry.base import BaseGeometry

# Approximate storey height used only to sanity-check floor vs. height ranges
FLOOR_HEIGHT_HEURISTIC_M = 3.5


def _footprint_geometry(geojson: dict) -> BaseGeometry:
    return shape(geojson)


def _footprint_area(geojson: Optional[dict]) -> float:
    if not geojson:
        return 0.0
    return float(shape(geojson).area)


# ──────────────────────────────────────────────────────────────────
# ENUMS
# ──────────────────────────────────────────────────────────────────

class Typology(str, Enum):
    POINT = "point"
    SLAB = "slab"
    LSHAPED = "lshaped"
    USHAPED = "ushaped"
    OSHAPED = "oshaped"
    TSHAPED = "tshaped"
    HSHAPED = "hshaped"
    PERIMETER = "perimeter"


class ParkingType(str, Enum):
    NONE = "none"
    UNDERGROUND = "underground"
    PODIUM = "podium"
    SURFACE = "surface"


class CheckStatus(str, Enum):
    PENDING = "pending"
    ACHIEVED = "achieved"
    FAILED = "failed"


class MatchLevel(str, Enum):
    EXACT = "exact"
    DEFAULT_LOCATION = "default_location"
    DEFAULT_CATEGORY = "default_category"
    FIRST_AVAILABLE = "first_available"
    NONE = "none"


class EstimateStatus(str, Enum):
    OK = "ok"
    PARTIAL = "partial"
    NO_PARAMETERS = "no_parameters"


class EfficiencyStatus(str, Enum):
    OPTIMAL = "Optimal"
    INEFFICIENT = "Inefficient"
    AGGRESSIVE = "Aggressive"


class PlanningNotice(BaseModel):
    """A recovered condition reported next to a usable result."""
    code: str
    message: str


# ──────────────────────────────────────────────────────────────────
# REGULATION
# ──────────────────────────────────────────────────────────────────

class RegulationValue(BaseModel):
    value: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    unit: Optional[str] = None

    def resolved(self) -> Optional[float]:
        """The governing number: explicit value, else max, else min."""
        for candidate in (self.value, self.max, self.min):
            if candidate is not None:
                return candidate
        return None


_FAR_KEYS = ("floor_area_ratio", "max_far", "fsi")
_COVERAGE_KEYS = ("max_ground_coverage", "ground_coverage")
_HEIGHT_KEYS = ("max_height", "building_height")
_FLOORS_KEYS = ("max_floors", "number_of_floors", "floors")
_SETBACK_KEYS = ("setback", "min_setback", "building_setback", "front_setback")


class Regulation(BaseModel):
    """Zoning record for a (location, use type) pair.

    Absent fields mean unconstrained, never zero.
    """
    location: str
    use_type: str = "Residential"
    geometry: dict[str, RegulationValue] = {}
    facilities: dict[str, RegulationValue] = {}
    sustainability: dict[str, RegulationValue] = {}
    safety_and_services: dict[str, RegulationValue] = {}
    administration: dict[str, RegulationValue] = {}

    @model_validator(mode="after")
    def _check_limits(self) -> "Regulation":
        far = self.far
        if far is not None and far <= 0:
            raise ValueError(f"floor area ratio must be positive, got {far}")
        coverage = self.max_coverage_pct
        if coverage is not None and not (0 < coverage <= 100):
            raise ValueError(f"max ground coverage must be in (0, 100], got {coverage}")
        return self

    def _lookup(self, group: dict[str, RegulationValue], keys: tuple[str, ...]) -> Optional[float]:
        for key in keys:
            entry = group.get(key)
            if entry is not None and entry.resolved() is not None:
                return entry.resolved()
        return None

    @property
    def far(self) -> Optional[float]:
        return self._lookup(self.geometry, _FAR_KEYS)

    @property
    def max_coverage_pct(self) -> Optional[float]:
        return self._lookup(self.geometry, _COVERAGE_KEYS)

    @property
    def max_height(self) -> Optional[float]:
        return self._lookup(self.geometry, _HEIGHT_KEYS)

    @property
    def max_floors(self) -> Optional[int]:
        floors = self._lookup(self.geometry, _FLOORS_KEYS)
        return int(floors) if floors is not None else None

    @property
    def setback(self) -> Optional[float]:
        return self._lookup(self.geometry, _SETBACK_KEYS)

    @property
    def parking_ratio(self) -> Optional[float]:
        return self._lookup(self.facilities, ("parking",))

    @property
    def parking_space_size(self) -> Optional[float]:
        return self._lookup(self.facilities, ("parking_space_size",))

    @property
    def open_space_pct(self) -> Optional[float]:
        return self._lookup(self.facilities, ("open_space",))

    @property
    def green_cover_pct(self) -> Optional[float]:
        return self._lookup(self.sustainability, ("green_cover",))

    def setback_spec(self) -> Optional["SetbackSpec"]:
        """Per-side setbacks from the geometry group, or None if none are set."""
        front = self._lookup(self.geometry, ("front_setback",))
        rear = self._lookup(self.geometry, ("rear_setback",))
        side = self._lookup(self.geometry, ("side_setback",))
        general = self._lookup(self.geometry, ("setback", "min_setback", "building_setback"))
        if all(v is None for v in (front, rear, side, general)):
            return None
        return SetbackSpec(general=general or 0.0, front=front, rear=rear, side=side)


# ──────────────────────────────────────────────────────────────────
# PLOT + PARAMETERS
# ──────────────────────────────────────────────────────────────────

class SetbackSpec(BaseModel):
    """Setback distances in meters.

    ``road_access_sides`` (N/S/E/W) mark the front edges; the opposite
    sides take the rear setback.  Without road sides every edge takes the
    largest configured distance.
    """
    general: float = Field(0.0, ge=0)
    front: Optional[float] = Field(None, ge=0)
    rear: Optional[float] = Field(None, ge=0)
    side: Optional[float] = Field(None, ge=0)
    road_access_sides: list[str] = []

    @field_validator("road_access_sides")
    @classmethod
    def _normalise_sides(cls, v: list[str]) -> list[str]:
        sides = [s.strip().upper()[:1] for s in v]
        bad = [s for s in sides if s not in ("N", "S", "E", "W")]
        if bad:
            raise ValueError(f"road access sides must be N/S/E/W, got {bad}")
        return sides

    @property
    def side_distance(self) -> float:
        return self.side if self.side is not None else self.general

    @property
    def front_distance(self) -> float:
        return self.front if self.front is not None else self.general

    @property
    def rear_distance(self) -> float:
        return self.rear if self.rear is not None else self.general

    @property
    def is_uniform(self) -> bool:
        return self.side_distance == self.front_distance == self.rear_distance


class Plot(BaseModel):
    boundary: dict  # GeoJSON Polygon / MultiPolygon in local meters
    setback: Optional[Union[float, SetbackSpec]] = None
    location: Optional[str] = None
    use_type: Optional[str] = None
    regulation_ref: Optional[str] = None
    far_override: Optional[float] = Field(None, gt=0)
    coverage_override: Optional[float] = Field(None, gt=0, le=100)

    @field_validator("boundary")
    @classmethod
    def _valid_boundary(cls, v: dict) -> dict:
        try:
            geom = shape(v)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ValueError(f"boundary is not a GeoJSON geometry: {exc}") from exc
        if not isinstance(geom, (Polygon, MultiPolygon)):
            raise ValueError(f"boundary must be a Polygon or MultiPolygon, got {geom.geom_type}")
        if geom.is_empty or geom.area <= 0:
            raise ValueError("boundary has no area")
        if not geom.is_valid:
            raise ValueError("boundary is self-intersecting or otherwise invalid")
        return v

    @field_validator("setback")
    @classmethod
    def _non_negative_setback(cls, v):
        if isinstance(v, (int, float)) and v < 0:
            raise ValueError("setback must be non-negative")
        return v

    @property
    def polygon(self) -> BaseGeometry:
        return shape(self.boundary)

    @property
    def area(self) -> float:
        return float(self.polygon.area)

    @classmethod
    def from_lnglat(cls, geojson: dict, **kwargs) -> "Plot":
        """Build a plot from a lon/lat boundary, projected to local meters."""
        from siteplan.services.geometry import to_geojson, to_local_meters

        projected, _origin = to_local_meters(geojson)
        return cls(boundary=to_geojson(projected), **kwargs)


PROGRAM_KEYS = ("residential", "commercial", "institutional", "open_space")


class GenerationParameters(BaseModel):
    typologies: list[Typology] = [Typology.SLAB]
    target_far: float = Field(2.0, gt=0)
    floor_range: tuple[int, int] = (1, 50)
    height_range: tuple[float, float] = (3.0, 200.0)
    footprint_area_range: tuple[float, float] = (0.0, 1_000_000.0)
    site_coverage_range: tuple[float, float] = (0.0, 100.0)  # percent
    parking_type: ParkingType = ParkingType.NONE
    parking_ratio: float = Field(1.0, ge=0)  # stalls per unit
    orientation: float = 0.0  # degrees
    avg_unit_size: float = Field(100.0, gt=0)  # m²
    land_use: str = "Residential"
    program_mix: dict[str, float] = {"residential": 100.0}
    floor_height: float = Field(3.5, gt=0)
    building_count: Optional[int] = Field(None, ge=1)
    building_depth: Optional[float] = Field(None, gt=0)
    selected_utilities: list[str] = []
    vastu_compliant: bool = False

    @field_validator("typologies")
    @classmethod
    def _at_least_one(cls, v: list[Typology]) -> list[Typology]:
        if not v:
            raise ValueError("at least one typology is required")
        return v

    @field_validator("program_mix")
    @classmethod
    def _mix_sums_to_100(cls, v: dict[str, float]) -> dict[str, float]:
        unknown = set(v) - set(PROGRAM_KEYS)
        if unknown:
            raise ValueError(f"unknown program mix keys: {sorted(unknown)}")
        if any(pct < 0 for pct in v.values()):
            raise ValueError("program mix percentages must be non-negative")
        total = sum(v.values())
        if abs(total - 100.0) > 0.01:
            raise ValueError(f"program mix must sum to 100, got {total}")
        return v

    @model_validator(mode="after")
    def _ordered_ranges(self) -> "GenerationParameters":
        for name in ("floor_range", "height_range", "footprint_area_range", "site_coverage_range"):
            lo, hi = getattr(self, name)
            if lo < 0 or lo > hi:
                raise ValueError(f"{name} must satisfy 0 <= min <= max, got ({lo}, {hi})")
        if self.floor_range[0] < 1:
            raise ValueError("floor_range minimum must be at least 1")
        if self.site_coverage_range[1] > 100:
            raise ValueError("site_coverage_range is a percentage (max 100)")
        min_floors, max_floors = self.floor_range
        min_h, max_h = self.height_range
        if min_floors * FLOOR_HEIGHT_HEURISTIC_M > max_h or max_floors * FLOOR_HEIGHT_HEURISTIC_M < min_h:
            raise ValueError(
                f"floor_range {self.floor_range} is inconsistent with height_range "
                f"{self.height_range} at ~{FLOOR_HEIGHT_HEURISTIC_M} m per floor"
            )
        return self


# ──────────────────────────────────────────────────────────────────
# SCENARIO CONTENTS
# ──────────────────────────────────────────────────────────────────

class Building(BaseModel):
    id: str
    name: str
    footprint: dict  # GeoJSON
    floors: Optional[int] = Field(None, ge=1)
    floor_height: float = Field(gt=0)
    height: float = Field(ge=0)
    use: str = "Residential"
    typology: Optional[Typology] = None

    @property
    def footprint_area(self) -> float:
        return _footprint_area(self.footprint)

    @property
    def floor_count(self) -> int:
        """Explicit floor count, else ceil(height / floor height)."""
        if self.floors is not None:
            return self.floors
        return max(1, math.ceil(self.height / self.floor_height - 1e-9))

    @property
    def gross_floor_area(self) -> float:
        return self.footprint_area * self.floor_count

    def geometry(self) -> BaseGeometry:
        return _footprint_geometry(self.footprint)


class GreenArea(BaseModel):
    id: str
    footprint: dict

    @property
    def area(self) -> float:
        return _footprint_area(self.footprint)


class ParkingArea(BaseModel):
    id: str
    footprint: dict
    type: ParkingType = ParkingType.SURFACE
    levels: int = Field(1, ge=1)
    capacity: int = Field(0, ge=0)

    @property
    def area(self) -> float:
        return _footprint_area(self.footprint)


class UtilityArea(BaseModel):
    id: str
    footprint: dict
    type: str

    @property
    def area(self) -> float:
        return _footprint_area(self.footprint)

    def geometry(self) -> BaseGeometry:
        return _footprint_geometry(self.footprint)


class Road(BaseModel):
    id: str
    footprint: dict
    width: float

    @property
    def area(self) -> float:
        return _footprint_area(self.footprint)


class Scenario(BaseModel):
    """A generated layout.  Frozen: scoring reads it, never mutates it."""
    model_config = {"frozen": True}

    name: str
    typology: Typology
    orientation: float = 0.0
    plot_area: float
    plot_boundary: Optional[dict] = None
    buildings: list[Building] = []
    green_areas: list[GreenArea] = []
    parking_areas: list[ParkingArea] = []
    utility_areas: list[UtilityArea] = []
    roads: list[Road] = []
    requested_far: float
    effective_far: float
    target_gfa: float
    program_areas: dict[str, float] = {}
    unit_count: int = 0
    envelope_area: float = 0.0
    envelope_fallback: bool = False
    setback_distances: dict[str, float] = {}  # front / side / rear actually kept clear
    notices: list[PlanningNotice] = []

    @property
    def total_footprint_area(self) -> float:
        return sum(b.footprint_area for b in self.buildings)

    @property
    def total_gross_floor_area(self) -> float:
        return sum(b.gross_floor_area for b in self.buildings)


# ──────────────────────────────────────────────────────────────────
# SCORING INPUTS / OUTPUTS
# ──────────────────────────────────────────────────────────────────

class GreenCredit(BaseModel):
    code: str
    name: str
    category: str = ""
    points: int = Field(1, ge=0)
    description: str = ""


class GreenRuleSet(BaseModel):
    """Imported certification criteria (e.g. GRIHA, IGBC, LEED)."""
    certification_type: str
    credits: list[GreenCredit] = []


class VastuRecommendation(BaseModel):
    category: str  # General, MasterBedroom, Water, Entrance, ...
    ideal_directions: list[str] = []
    avoid_directions: list[str] = []
    weight: float = Field(5.0, gt=0)


class VastuRuleSet(BaseModel):
    name: str = "Vastu"
    recommendations: list[VastuRecommendation] = []


class SimulationResult(BaseModel):
    analysis_type: str  # "wind" or "sun"
    compliant_area_percent: float = Field(ge=0, le=100)


class Amenity(BaseModel):
    category: str
    name: str = ""
    coordinates: Optional[tuple[float, float]] = None
    distance_meters: float = Field(ge=0)


class ComplianceCheck(BaseModel):
    id: str
    category: str  # bylaws / green
    label: str
    status: CheckStatus = CheckStatus.PENDING
    points: int = 0
    value: Optional[float] = None
    threshold: Optional[float] = None


class GreenAreaMetric(BaseModel):
    area: float = 0.0
    percentage: float = 0.0


class ParkingMetric(BaseModel):
    required: int = 0
    provided: int = 0


class ComplianceScores(BaseModel):
    bylaws: int = 0
    green: int = 0
    vastu: int = 0


class VastuBreakdown(BaseModel):
    category: str
    score: int
    feedback: str


class DevelopmentMetrics(BaseModel):
    total_plot_area: float
    achieved_far: float
    ground_coverage_pct: float
    total_built_up_area: float
    green_area: GreenAreaMetric = GreenAreaMetric()
    open_space: float = 0.0
    road_area: float = 0.0
    parking: ParkingMetric = ParkingMetric()
    efficiency: float = 0.0
    total_units: int = 0
    compliance: ComplianceScores = ComplianceScores()
    checks: dict[str, list[ComplianceCheck]] = {}
    vastu_breakdown: list[VastuBreakdown] = []
    unmatched_credits: list[str] = []
    notices: list[PlanningNotice] = []


# ──────────────────────────────────────────────────────────────────
# PARAMETER TABLES
# ──────────────────────────────────────────────────────────────────

class CostParameter(BaseModel):
    location: str
    building_type: str
    earthwork_cost_per_sqm: float = Field(ge=0)
    structure_cost_per_sqm: float = Field(ge=0)
    finishing_cost_per_sqm: float = Field(ge=0)
    services_cost_per_sqm: float = Field(ge=0)
    sellable_ratio: float = Field(ge=0, le=1)
    market_rate_per_sqm: float = Field(ge=0)
    currency: str = "INR"


class TimeParameter(BaseModel):
    building_type: str
    height_category: str
    excavation_months: float = Field(ge=0)
    foundation_months: float = Field(ge=0)
    structure_days_per_floor: float = Field(ge=0)
    finishing_days_per_floor: float = Field(ge=0)
    services_overlap_factor: float = Field(ge=0, le=1)
    contingency_months: float = Field(ge=0)


class PlanningParameter(BaseModel):
    name: str
    building_type: str
    height_category: str
    core_to_gfa_ratio_min: float
    core_to_gfa_ratio_max: float
    circulation_to_gfa_ratio: float
    efficiency_target: float = Field(gt=0, le=1)


class DevelopmentStats(BaseModel):
    """Theoretical capacity of a plot under FAR and coverage limits."""
    plot_area: float
    far: float
    coverage_pct: float
    max_built_up_area: float
    max_footprint: float
    floors: int
    core_area: float
    circulation_area: float
    services_area: float
    net_saleable_area: float
    efficiency: float
    units: dict[str, int] = {}
    total_units: int = 0


# ──────────────────────────────────────────────────────────────────
# ESTIMATES
# ──────────────────────────────────────────────────────────────────

class CostBreakdown(BaseModel):
    earthwork: float = 0.0
    structure: float = 0.0
    finishing: float = 0.0
    services: float = 0.0
    contingency: float = 0.0

    @property
    def total(self) -> float:
        return self.earthwork + self.structure + self.finishing + self.services + self.contingency


class TimelinePhases(BaseModel):
    excavation: float = 0.0
    foundation: float = 0.0
    structure: float = 0.0
    finishing: float = 0.0
    overlap: float = 0.0  # subtracted
    contingency: float = 0.0
    total_months: float = 0.0


class BuildingEstimate(BaseModel):
    building_id: str
    name: str
    status: EstimateStatus
    gfa: float = 0.0
    floors: int = 0
    height_category: Optional[str] = None
    cost_match: MatchLevel = MatchLevel.NONE
    time_match: MatchLevel = MatchLevel.NONE
    cost: Optional[CostBreakdown] = None
    total_cost: Optional[float] = None
    revenue: Optional[float] = None
    timeline: Optional[TimelinePhases] = None


class ProjectTimeline(BaseModel):
    total_months: float
    phases: TimelinePhases
    critical_building_id: Optional[str] = None


class EfficiencyReport(BaseModel):
    achieved: float
    target: float
    status: EfficiencyStatus


class ProjectEstimate(BaseModel):
    status: EstimateStatus
    is_potential: bool = False
    total_construction_cost: Optional[float] = None
    cost_breakdown: Optional[CostBreakdown] = None
    total_revenue: Optional[float] = None
    potential_profit: Optional[float] = None
    roi_percentage: Optional[float] = None
    timeline: Optional[ProjectTimeline] = None
    efficiency: Optional[EfficiencyReport] = None
    buildings: list[BuildingEstimate] = []
    notices: list[PlanningNotice] = []
