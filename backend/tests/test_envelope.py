"""Tests for buildable envelope resolution and peripheral zones."""

from __future__ import annotations

import pytest
from shapely.geometry import box

from siteplan.models.schemas import SetbackSpec
from siteplan.planning_engine.envelope import (
    applied_distances,
    peripheral_zones,
    resolve_buildable_envelope,
)


PLOT = box(0, 0, 60, 40)


class TestUniformSetback:
    """Single-distance setbacks."""

    def test_no_setback_returns_boundary(self):
        result = resolve_buildable_envelope(PLOT, None)
        assert result.envelope.equals(PLOT)
        assert result.setback_applied is False
        assert result.fallback is False

    def test_zero_setback(self):
        result = resolve_buildable_envelope(PLOT, 0)
        assert result.envelope.area == pytest.approx(2400)
        assert result.setback_applied is False

    def test_five_meter_setback(self):
        result = resolve_buildable_envelope(PLOT, 5.0)
        assert result.envelope.area == pytest.approx(1500)
        assert result.setback_applied is True
        assert result.notices == []

    def test_envelope_never_exceeds_plot(self):
        for setback in (0.5, 3, 10, 19.5):
            result = resolve_buildable_envelope(PLOT, setback)
            assert result.envelope.area <= PLOT.area + 1e-6
            assert result.envelope.within(PLOT.buffer(1e-6))


class TestFallback:
    """Setbacks that consume the plot."""

    def test_excessive_setback_falls_back(self):
        result = resolve_buildable_envelope(PLOT, 25.0)
        assert result.fallback is True
        assert result.setback_applied is False
        assert result.envelope.area == pytest.approx(2400)
        assert [n.code for n in result.notices] == ["setback_fallback"]

    def test_exact_half_depth_falls_back(self):
        result = resolve_buildable_envelope(PLOT, 20.0)
        assert result.fallback is True


class TestSetbackSpec:
    """Per-side setbacks."""

    def test_without_road_sides_uses_largest(self):
        spec = SetbackSpec(general=3, front=6)
        result = resolve_buildable_envelope(PLOT, spec)
        assert result.envelope.area == pytest.approx(48 * 28)

    def test_uniform_spec(self):
        spec = SetbackSpec(general=5, road_access_sides=["N"])
        result = resolve_buildable_envelope(PLOT, spec)
        assert result.envelope.area == pytest.approx(1500)

    def test_front_and_rear(self):
        spec = SetbackSpec(side=3, front=6, rear=4.5, road_access_sides=["N"])
        result = resolve_buildable_envelope(PLOT, spec)
        assert result.envelope.bounds == pytest.approx((3, 4.5, 57, 34))
        assert result.envelope.area == pytest.approx(54 * 29.5)

    def test_corner_plot_two_fronts(self):
        spec = SetbackSpec(side=2, front=8, rear=4, road_access_sides=["N", "E"])
        result = resolve_buildable_envelope(PLOT, spec)
        # N and E take the front, S and W the rear
        assert result.envelope.bounds == pytest.approx((4, 4, 52, 32))

    def test_variable_setback_consuming_plot(self):
        spec = SetbackSpec(side=2, front=25, rear=20, road_access_sides=["N"])
        result = resolve_buildable_envelope(PLOT, spec)
        assert result.fallback is True
        assert result.notices[0].code == "setback_fallback"


class TestAppliedDistances:
    """Distances recorded for the setback compliance check."""

    def test_scalar(self):
        result = resolve_buildable_envelope(PLOT, 5.0)
        assert result.distances == {"front": 5.0, "side": 5.0, "rear": 5.0}

    def test_spec_without_road_sides_uses_largest(self):
        assert applied_distances(SetbackSpec(general=3, front=6)) == {"front": 6, "side": 6, "rear": 6}

    def test_corner_plot(self):
        spec = SetbackSpec(side=2, front=8, rear=4, road_access_sides=["N", "E"])
        assert resolve_buildable_envelope(PLOT, spec).distances == {"front": 8, "side": 2, "rear": 4}

    def test_through_lot_has_no_rear(self):
        spec = SetbackSpec(side=2, front=8, rear=4, road_access_sides=["N", "S"])
        assert applied_distances(spec)["rear"] == 2

    def test_fallback_keeps_nothing_clear(self):
        result = resolve_buildable_envelope(PLOT, 25.0)
        assert result.distances == {"front": 0.0, "side": 0.0, "rear": 0.0}


class TestPeripheralZones:
    """Parking and road strips in the setback band."""

    def test_parking_fills_band(self):
        envelope = resolve_buildable_envelope(PLOT, 5.0).envelope
        zones = peripheral_zones(PLOT, envelope, parking_width=5, road_width=6)
        assert zones.parking.area == pytest.approx(900)
        # Nothing of the band is left for the road
        assert zones.road is None

    def test_road_only(self):
        envelope = resolve_buildable_envelope(PLOT, 5.0).envelope
        zones = peripheral_zones(PLOT, envelope, parking_width=5, road_width=6, include_parking=False)
        assert zones.parking is None
        assert zones.road.area == pytest.approx(900)

    def test_no_band_without_setback(self):
        zones = peripheral_zones(PLOT, PLOT, parking_width=5, road_width=6)
        assert zones.parking is None
        assert zones.road is None
