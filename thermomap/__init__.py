"""
ThermoMap: geospatial kernel-density heatmap renderer.

Projects geocoded points onto a world map, accumulates a soft kernel per
point with additive blending, optionally clips the heat to land polygons,
colorizes it through a thermographic ramp and answers tooltip queries
with the same kernel.
"""

from .config import ClipMode, HeatmapConfig, ProjectionKind
from .errors import ConfigError, DataError, GeometryError, HeatmapError, ResourceError
from .points import HeatPoint
from .renderer import HeatmapRenderer, RenderResult
from .query import Tooltip

__all__ = [
    "ClipMode",
    "ConfigError",
    "DataError",
    "GeometryError",
    "HeatPoint",
    "HeatmapConfig",
    "HeatmapError",
    "HeatmapRenderer",
    "ProjectionKind",
    "RenderResult",
    "ResourceError",
    "Tooltip",
]
