"""
Test Projection

Validates the Mercator and equirectangular transforms:
- known pixel positions
- pole clamping keeps Mercator output finite
- repeated projection is stable
- resizing rescales positions proportionally
"""
import math

import numpy as np
import pytest

from thermomap.config import MERCATOR_MAX_LAT, ProjectionKind
from thermomap.projection import Projector


def mercator_reference(lat, lng, width, height):
    phi = math.radians(lat)
    x = (lng + 180.0) / 360.0 * width
    y = (0.5 - math.log(math.tan(math.pi / 4 + phi / 2)) / (2 * math.pi)) * height
    return x, y


class TestMercator:
    """Test suite for the Web-Mercator projector."""

    def test_origin_maps_to_center(self):
        projector = Projector(ProjectionKind.MERCATOR, 600, 300)
        assert projector.project(0.0, 0.0) == pytest.approx((300.0, 150.0))

    def test_matches_reference_formula(self):
        projector = Projector(ProjectionKind.MERCATOR, 600, 300)
        for lat, lng in [(40.7128, -74.0060), (-33.87, 151.21), (51.5, -0.12)]:
            assert projector.project(lat, lng) == pytest.approx(mercator_reference(lat, lng, 600, 300))

    @pytest.mark.parametrize("lat", [90.0, -90.0, 89.999, 1e6, -1e6])
    def test_poles_are_clamped(self, lat):
        """lat = ±90 must not produce NaN or Infinity."""
        projector = Projector(ProjectionKind.MERCATOR, 600, 300)
        x, y = projector.project(lat, 10.0)
        assert math.isfinite(x) and math.isfinite(y)

        limit = math.copysign(MERCATOR_MAX_LAT, lat)
        assert (x, y) == projector.project(limit, 10.0)

    def test_pole_lands_on_edge(self):
        projector = Projector(ProjectionKind.MERCATOR, 600, 300)
        _, top = projector.project(90.0, 0.0)
        _, bottom = projector.project(-90.0, 0.0)
        assert top == pytest.approx(0.0, abs=1e-2)
        assert bottom == pytest.approx(300.0, abs=1e-2)

    def test_projection_is_stable(self):
        projector = Projector(ProjectionKind.MERCATOR, 600, 300)
        first = projector.project(40.7128, -74.0060)
        second = projector.project(40.7128, -74.0060)
        assert first == second


class TestEquirectangular:
    """Test suite for the plate carrée projector."""

    def test_corners(self):
        projector = Projector(ProjectionKind.EQUIRECTANGULAR, 360, 180)
        assert projector.project(90.0, -180.0) == pytest.approx((0.0, 0.0))
        assert projector.project(-90.0, 180.0) == pytest.approx((360.0, 180.0))
        assert projector.project(0.0, 0.0) == pytest.approx((180.0, 90.0))

    def test_linear_in_latitude(self):
        projector = Projector(ProjectionKind.EQUIRECTANGULAR, 360, 180)
        _, y1 = projector.project(30.0, 0.0)
        _, y2 = projector.project(60.0, 0.0)
        assert y1 - y2 == pytest.approx(30.0)


class TestResize:
    """Scenario: 600x300 -> 1200x600 keeps relative layout."""

    @pytest.mark.parametrize("kind", list(ProjectionKind))
    def test_positions_scale_proportionally(self, kind):
        lats = np.array([40.7128, -33.87, 0.0, 85.0])
        lngs = np.array([-74.0060, 151.21, 0.0, -179.0])

        small = Projector(kind, 600, 300)
        large = small.resized(1200, 600)

        xs1, ys1 = small.project_many(lats, lngs)
        xs2, ys2 = large.project_many(lats, lngs)

        np.testing.assert_allclose(xs2, xs1 * 2)
        np.testing.assert_allclose(ys2, ys1 * 2)
        assert large.kind is kind
