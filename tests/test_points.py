"""
Test Point Loading

Validates ingestion and normalization of HeatPoints:
- alpha = clamp(intensity / max, 0, 1)
- optional normalization override
- non-finite coordinates are skipped individually
"""
import math

import numpy as np
import pandas as pd
import pytest

from thermomap.points import HeatPoint, load_points, normalize, resolve_max_intensity


class TestNormalization:
    """Test suite for intensity normalization."""

    def test_auto_max(self):
        points = load_points([
            {"lat": 0, "lng": 0, "intensity": 10},
            {"lat": 1, "lng": 1, "intensity": 100},
        ])
        assert points.max_intensity == 100
        np.testing.assert_allclose(points.norm, [0.1, 1.0])

    def test_override(self):
        points = load_points([{"lat": 0, "lng": 0, "intensity": 10}], max_intensity=40)
        assert points.max_intensity == 40
        np.testing.assert_allclose(points.norm, [0.25])

    def test_override_below_max_saturates(self):
        points = load_points([{"lat": 0, "lng": 0, "intensity": 10}], max_intensity=5)
        np.testing.assert_allclose(points.norm, [1.0])

    @pytest.mark.parametrize("override", [None, 0, -3, float("nan")])
    def test_ignored_overrides(self, override):
        assert resolve_max_intensity(np.array([2.0, 8.0]), override) == 8.0

    def test_all_zero_intensity(self):
        """A zero maximum never divides by zero."""
        assert resolve_max_intensity(np.array([0.0, 0.0])) == 1.0
        assert resolve_max_intensity(np.array([])) == 1.0
        points = load_points([{"lat": 0, "lng": 0, "intensity": 0}])
        np.testing.assert_allclose(points.norm, [0.0])

    def test_alpha_is_in_unit_interval(self):
        rng = np.random.default_rng(7)
        intensities = rng.uniform(0, 500, size=200)
        alpha = normalize(intensities, intensities.max())
        assert alpha.min() >= 0.0 and alpha.max() <= 1.0
        np.testing.assert_allclose(alpha, intensities / intensities.max())

    def test_negative_and_nan_intensity_contribute_nothing(self):
        points = load_points([
            {"lat": 0, "lng": 0, "intensity": -5},
            {"lat": 0, "lng": 1, "intensity": float("nan")},
            {"lat": 0, "lng": 2, "intensity": 4},
        ])
        assert len(points) == 3
        np.testing.assert_allclose(points.norm, [0.0, 0.0, 1.0])


class TestIngestion:
    """Test suite for accepted input shapes and skipped points."""

    def test_non_finite_coordinates_are_skipped(self):
        points = load_points([
            {"lat": float("nan"), "lng": 0, "intensity": 1},
            {"lat": 10, "lng": float("inf"), "intensity": 1},
            {"lat": None, "lng": 3, "intensity": 1},
            {"lat": "north", "lng": 3, "intensity": 1},
            {"lat": 5, "lng": 6, "intensity": 1},
        ])
        assert len(points) == 1
        assert points.skipped == 4
        assert points.lats.tolist() == [5.0]

    def test_heat_points_and_lon_alias(self):
        points = load_points([
            HeatPoint(1.0, 2.0, 3.0, "a"),
            {"lat": 4.0, "lon": 5.0, "intensity": 6.0},
        ])
        assert points.lngs.tolist() == [2.0, 5.0]
        assert points.labels == ["a", None]

    def test_dataframe_input(self):
        frame = pd.DataFrame({"lat": [1.0, 2.0], "lon": [3.0, 4.0], "intensity": [1.0, 2.0]})
        points = load_points(frame)
        assert len(points) == 2
        np.testing.assert_allclose(points.norm, [0.5, 1.0])

    def test_empty_labels_become_none(self):
        points = load_points([
            {"lat": 0, "lng": 0, "intensity": 1, "label": ""},
            {"lat": 0, "lng": 0, "intensity": 1, "label": "Lagos"},
        ])
        assert points.labels == [None, "Lagos"]

    def test_empty_input(self):
        points = load_points([])
        assert points.empty
        assert points.skipped == 0
        assert points.max_intensity == 1.0
        assert not math.isnan(points.max_intensity)
