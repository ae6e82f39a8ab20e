"""
Test Intensity Query

Validates the tooltip payload:
- blended intensity uses the painted kernel
- nearest-point label with a coordinate fallback
- nothing nearby reports no label
"""
import numpy as np
import pytest

from thermomap import HeatmapConfig, HeatmapRenderer, HeatPoint
from thermomap.query import IntensityQuery, empty_query


def make_query(norm=0.4, label="Paris", lat=48.85, lng=2.35, radius=10.0, blur=5.0, **kwargs):
    return IntensityQuery(
        xs=np.array([50.0]), ys=np.array([50.0]), norm=np.array([norm]),
        radii=np.array([radius]), blur=blur, labels=[label],
        lats=np.array([lat]), lngs=np.array([lng]), **kwargs,
    )


class TestEvaluate:
    """Test suite for blended intensity and labels."""

    def test_peak_equals_normalized_intensity(self):
        blended, label = make_query().evaluate(50.0, 50.0)
        assert blended == pytest.approx(0.4)
        assert label == "Paris"

    def test_falls_off_with_distance(self):
        query = make_query()
        near, _ = query.evaluate(53.0, 50.0)
        far, _ = query.evaluate(60.0, 50.0)
        assert 0.4 > near > far > 0.0

    def test_nothing_nearby(self):
        blended, label = make_query().evaluate(70.0, 50.0)
        assert blended == 0.0
        assert label is None

    def test_coordinate_fallback(self):
        _, label = make_query(label=None, lat=12.3, lng=-4.5).evaluate(50.0, 50.0)
        assert label == "12.30, -4.50"

    def test_nearest_point_wins(self):
        query = IntensityQuery(
            xs=np.array([10.0, 20.0]), ys=np.array([10.0, 10.0]), norm=np.array([0.5, 0.5]),
            radii=np.array([10.0, 10.0]), blur=5.0, labels=["west", "east"],
            lats=np.zeros(2), lngs=np.zeros(2),
        )
        assert query.evaluate(12.0, 10.0)[1] == "west"
        assert query.evaluate(19.0, 10.0)[1] == "east"

    def test_overlap_clamps_to_one(self):
        query = IntensityQuery(
            xs=np.full(5, 10.0), ys=np.full(5, 10.0), norm=np.ones(5),
            radii=np.full(5, 10.0), blur=5.0, labels=[None] * 5,
            lats=np.zeros(5), lngs=np.zeros(5),
        )
        assert query.evaluate(10.0, 10.0)[0] == 1.0

    def test_empty(self):
        assert empty_query().evaluate(1.0, 2.0) == (0.0, None)


class TestTooltip:
    """Test suite for the host UI payload."""

    def test_text_and_position(self):
        tooltip = make_query().tooltip(50.0, 50.0)
        assert tooltip.to_dict() == {"x": 50.0, "y": 50.0, "text": "Paris • 40.0%", "visible": True}

    def test_hidden_below_threshold(self):
        tooltip = make_query(norm=0.005).tooltip(50.0, 50.0)
        assert not tooltip.visible

    def test_empty_is_never_visible(self):
        tooltip = empty_query().tooltip(0.0, 0.0)
        assert tooltip.text == "0.0%"
        assert not tooltip.visible

    def test_custom_formatter(self):
        config = HeatmapConfig(formatter=lambda v: f"{v * 1000:.0f} visits")
        renderer = HeatmapRenderer(600, 300, config=config)
        renderer.prepare([HeatPoint(0.0, 0.0, 3.0, "Gulf of Guinea")])
        tooltip = renderer.query(300.0, 150.0)
        assert tooltip.text == "Gulf of Guinea • 1000 visits"

    def test_prepare_publishes_without_render(self):
        renderer = HeatmapRenderer(600, 300)
        assert not renderer.query(300.0, 150.0).visible
        renderer.prepare([HeatPoint(0.0, 0.0, 1.0)])
        assert renderer.query(300.0, 150.0).visible

    def test_matches_rendered_heat(self):
        """Tooltip and painted heat agree around an isolated point."""
        renderer = HeatmapRenderer(600, 300)
        result = renderer.render([HeatPoint(0.0, 0.0, 1.0)])
        for dx in (0, 5, 12, 20, 30):
            blended, _ = renderer.evaluate(300.0 + dx, 150.0)
            assert result.heat[150, 300 + dx] == pytest.approx(blended, abs=2e-3)
