"""
Error taxonomy for the heatmap engine.

The render pass never raises these; it degrades and reports them on the
RenderResult. Boundary loading raises GeometryError to its caller.
"""


class HeatmapError(Exception):
    """Base class for all heatmap errors."""


class DataError(HeatmapError):
    """A point with non-finite coordinates."""


class GeometryError(HeatmapError):
    """Boundary geometry could not be fetched, parsed or compiled."""


class ConfigError(HeatmapError):
    """Invalid configuration (radius, viewport, palette)."""


class ResourceError(HeatmapError):
    """A rendering surface could not be allocated."""
