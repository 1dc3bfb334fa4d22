"""Tests for typology mask synthesis."""

from __future__ import annotations

import pytest
from shapely.geometry import Point, Polygon, box

from siteplan.models.schemas import Typology
from siteplan.planning_engine import typologies
from siteplan.planning_engine.typologies import (
    HalfPlane,
    L_MASKS,
    OrientationBucket,
    create_mask,
    default_wing_depth,
    perimeter_ring,
    split_into_bands,
    synthesize_footprints,
)
from siteplan.services.geometry import GeometryResult


def _covered(footprints: list[Polygon], x: float, y: float) -> bool:
    return any(p.covers(Point(x, y)) for p in footprints)


class TestOrientationBucket:
    """4-way orientation windows of ±45°."""

    @pytest.mark.parametrize("angle,bucket", [
        (0, OrientationBucket.SW),
        (44.9, OrientationBucket.SW),
        (45, OrientationBucket.SE),
        (90, OrientationBucket.SE),
        (180, OrientationBucket.NE),
        (270, OrientationBucket.NW),
        (315, OrientationBucket.SW),
        (-90, OrientationBucket.NW),
        (450, OrientationBucket.SE),
    ])
    def test_from_angle(self, angle, bucket):
        assert OrientationBucket.from_angle(angle) == bucket

    def test_l_masks_use_adjacent_halves(self):
        assert L_MASKS[OrientationBucket.SW] == (HalfPlane.SOUTH, HalfPlane.WEST)
        assert L_MASKS[OrientationBucket.NE] == (HalfPlane.NORTH, HalfPlane.EAST)


class TestBands:
    """Point and slab banding."""

    def test_three_slabs(self):
        pieces = split_into_bands(box(0, 0, 50, 30), 3, gap=2)
        assert len(pieces) == 3
        for piece in pieces:
            assert piece.area == pytest.approx((50 / 3 - 4) * 26)

    def test_bands_follow_longer_axis(self):
        pieces = split_into_bands(box(0, 0, 20, 90), 3, gap=0)
        for piece in pieces:
            minx, miny, maxx, maxy = piece.bounds
            assert maxx - minx == pytest.approx(20)
            assert maxy - miny == pytest.approx(30)

    def test_thin_band_keeps_uneroded_piece(self):
        pieces = split_into_bands(box(0, 0, 30, 3), 5, gap=2)
        assert len(pieces) == 5
        assert sum(p.area for p in pieces) == pytest.approx(90)

    def test_point_blocks_default_count(self):
        result = synthesize_footprints(box(0, 0, 80, 40), Typology.POINT)
        assert len(result.footprints) == 4

    def test_rotated_slabs_stay_inside_envelope(self):
        envelope = box(0, 0, 60, 60)
        result = synthesize_footprints(envelope, Typology.SLAB, orientation=30, count=3, gap=2)
        assert len(result.footprints) == 3
        for fp in result.footprints:
            assert fp.within(envelope.buffer(1e-6))


class TestRing:
    """Perimeter ring and solid-block fallback."""

    def test_ring_with_courtyard(self):
        ring, solid = perimeter_ring(box(0, 0, 50, 30), 10)
        assert solid is False
        assert ring.area == pytest.approx(1500 - 30 * 10)

    def test_narrow_envelope_is_solid(self):
        ring, solid = perimeter_ring(box(0, 0, 20, 15), 10)
        assert solid is True
        assert ring.area == pytest.approx(300)

    def test_perimeter_typology(self):
        result = synthesize_footprints(box(0, 0, 50, 30), Typology.PERIMETER, depth=10)
        assert result.total_area == pytest.approx(1200)
        assert not _covered(result.footprints, 25, 15)

    def test_solid_block_notice(self):
        result = synthesize_footprints(box(0, 0, 20, 15), Typology.OSHAPED, depth=10)
        assert [n.code for n in result.notices] == ["solid_block"]
        assert result.total_area == pytest.approx(300)

    def test_default_wing_depth_bounds(self):
        assert default_wing_depth(box(0, 0, 50, 30)) == 10.0
        assert default_wing_depth(box(0, 0, 200, 100)) == pytest.approx(12.0)
        assert default_wing_depth(box(0, 0, 400, 400)) == 14.0


class TestMasks:
    """L, U, T and H masks cut from the ring."""

    def test_l_shape_sw(self):
        result = synthesize_footprints(box(0, 0, 100, 100), Typology.LSHAPED, orientation=0, depth=10)
        assert result.total_area == pytest.approx(2700)
        assert _covered(result.footprints, 5, 5)
        assert not _covered(result.footprints, 95, 95)

    def test_l_shape_ne(self):
        result = synthesize_footprints(box(0, 0, 100, 100), Typology.LSHAPED, orientation=180, depth=10)
        assert _covered(result.footprints, 95, 95)
        assert not _covered(result.footprints, 5, 5)

    def test_u_shape_opens_north(self):
        result = synthesize_footprints(box(0, 0, 90, 90), Typology.USHAPED, orientation=0, depth=10)
        assert result.total_area == pytest.approx(3200 - 300)
        assert len(result.footprints) == 1
        assert not _covered(result.footprints, 45, 85)
        assert _covered(result.footprints, 45, 5)

    def test_u_shape_opens_south(self):
        result = synthesize_footprints(box(0, 0, 90, 90), Typology.USHAPED, orientation=180, depth=10)
        assert not _covered(result.footprints, 45, 5)
        assert _covered(result.footprints, 45, 85)

    def test_t_and_h_are_subsets_of_ring(self):
        envelope = box(0, 0, 100, 60)
        ring, _ = perimeter_ring(envelope, 10)
        for typology in (Typology.TSHAPED, Typology.HSHAPED):
            result = synthesize_footprints(envelope, typology, depth=10)
            assert 0 < result.total_area < ring.area

    def test_mask_for_unmasked_typology_raises(self):
        with pytest.raises(ValueError):
            create_mask((0, 0, 10, 10), Typology.SLAB)


class TestSynthesisGuards:
    """Empty envelopes and fallbacks."""

    def test_empty_envelope_raises(self):
        with pytest.raises(ValueError):
            synthesize_footprints(Polygon(), Typology.SLAB)

    def test_every_typology_yields_footprints(self):
        envelope = box(0, 0, 40, 40)
        for typology in Typology:
            result = synthesize_footprints(envelope, typology)
            assert result.footprints
            assert result.total_area <= envelope.area + 1e-6

    def test_off_site_mask_keeps_ring(self, monkeypatch):
        # Mask lies entirely outside the envelope: the intersection is empty
        monkeypatch.setattr(
            typologies, "create_mask",
            lambda bounds, typology, orientation=0.0: GeometryResult(box(500, 500, 510, 510)),
        )
        result = synthesize_footprints(box(0, 0, 50, 30), Typology.LSHAPED, depth=10)
        assert result.total_area == pytest.approx(1200)
        assert not _covered(result.footprints, 25, 15)
        assert [n.code for n in result.notices] == ["typology_fallback"]
        assert "mask intersection" in result.notices[0].message

    def test_failed_mask_keeps_ring(self, monkeypatch):
        monkeypatch.setattr(
            typologies, "create_mask",
            lambda bounds, typology, orientation=0.0: GeometryResult.empty("union failed"),
        )
        result = synthesize_footprints(box(0, 0, 50, 30), Typology.HSHAPED, depth=10)
        assert result.total_area == pytest.approx(1200)
        assert [n.code for n in result.notices] == ["typology_fallback"]
        assert "mask produced" in result.notices[0].message
