"""
Shared fixtures for the ThermoMap test suite.

Environment is set before the package is imported so tests never write
logs into the source tree or wait on a Redis server.
"""
import os
import tempfile

os.environ.setdefault("THERMOMAP_QUIET", "1")
os.environ.setdefault("THERMOMAP_LOG_DIR", tempfile.mkdtemp(prefix="thermomap-logs-"))
os.environ.setdefault("THERMOMAP_REDIS_URL", "redis://127.0.0.1:1/0")

import pytest

from thermomap import HeatmapConfig, HeatmapRenderer, HeatPoint


def square(lng0, lat0, lng1, lat1):
    """Closed outer ring for a lng/lat box."""
    return [[lng0, lat0], [lng1, lat0], [lng1, lat1], [lng0, lat1], [lng0, lat0]]


@pytest.fixture
def central_land():
    """One square continent around (0, 0)."""
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"name": "Centralia"},
                "geometry": {"type": "Polygon", "coordinates": [square(-20, -20, 20, 20)]},
            }
        ],
    }


@pytest.fixture
def new_york():
    return HeatPoint(lat=40.7128, lng=-74.0060, intensity=100, label="New York")


@pytest.fixture
def renderer():
    return HeatmapRenderer(600, 300, pixel_scale=1.0, config=HeatmapConfig())
