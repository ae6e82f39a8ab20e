"""
HeatmapRenderer: owns the caches and runs one render pass.

    idle -> (rebuild invalidated caches) -> accumulate -> colorize -> composite -> idle

Only the sprite cache, the clip geometry and the palette table persist
between renders; the heat buffer is recomputed from scratch each time.
The render pass never raises: invalid points are skipped, bad boundary
geometry degrades to unclipped heat, and an unavailable surface yields a
no-op result.
"""

import io
import math
from dataclasses import dataclass
from typing import Any, Iterable, Optional

import numpy as np
import torch
from PIL import Image

from .accumulator import DensityAccumulator
from .clipping import LandClipper
from .colorizer import colorize
from .compositor import Compositor, surface_shape
from .config import ClipMode, HeatmapConfig
from .errors import GeometryError, ResourceError
from .kernel import SpriteCache, point_radii, scaled_kernel
from .logger import PerformanceTimer, logger
from .palette import build_palette
from .points import PointSet, load_points
from .projection import Projector
from .query import IntensityQuery, Tooltip, empty_query


@dataclass
class RenderResult:
    """
    Output of one render pass.

    Attributes:
        image: Composited RGBA surface (device resolution), None on a no-op render
        heat: float32 (H, W) heat buffer in [0, 1]
        rgba: uint8 (H, W, 4) colorized heat before compositing
        point_count: Points that took part in the render
        skipped_points: Points dropped for non-finite coordinates
        max_intensity: Normalization denominator used
        clipped: True when a land mask restricted the heat
        geometry_error: Set on the render that found the boundaries unusable
        error: ResourceError for a no-op render
    """
    width: int
    height: int
    pixel_scale: float
    image: Optional[Image.Image] = None
    heat: Optional[np.ndarray] = None
    rgba: Optional[np.ndarray] = None
    point_count: int = 0
    skipped_points: int = 0
    max_intensity: float = 1.0
    clipped: bool = False
    geometry_error: Optional[GeometryError] = None
    error: Optional[ResourceError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.image is not None

    def to_png_bytes(self) -> bytes:
        if self.image is None:
            raise ValueError("Nothing was rendered")
        buffer = io.BytesIO()
        self.image.save(buffer, format="PNG")
        return buffer.getvalue()


class HeatmapRenderer:
    """
    Renders points into a heat overlay for one render target.

    Usage:
        renderer = HeatmapRenderer(600, 300, pixel_scale=2.0)
        result = renderer.render(points, boundaries=world_geojson)
        tooltip = renderer.query(x, y)
    """

    def __init__(self, width: int = 600, height: int = 300, pixel_scale: float = 1.0,
                 config: Optional[HeatmapConfig] = None, device: Optional[torch.device] = None):
        self.config = (config or HeatmapConfig()).resolved()
        self.palette = build_palette(self.config.palette_stops, self.config.palette_name)
        self.sprites = SpriteCache()
        self.clipper = LandClipper()
        self.accumulator = DensityAccumulator(self.sprites, device)
        self.compositor = Compositor(self.config)
        self.state = "idle"

        self.width = self.height = 0
        self.pixel_scale = 0.0
        self.projector: Optional[Projector] = None
        self._ratio = None
        self._query = empty_query(self.config.formatter, self.config.tooltip_threshold)
        self.resize(width, height, pixel_scale)

    # ------------------------------------------------------------------
    # Viewport & configuration
    # ------------------------------------------------------------------

    def _clamp_dimension(self, name: str, value) -> int:
        minimum = self.config.min_viewport
        try:
            size = int(round(float(value)))
        except (TypeError, ValueError, OverflowError):
            size = minimum
        if size < minimum:
            logger.warning(f"Viewport {name}={value!r} is degenerate, clamped to {minimum}")
            size = minimum
        return size

    def _clamp_scale(self, value) -> float:
        try:
            scale = float(value)
        except (TypeError, ValueError):
            scale = 1.0
        if not math.isfinite(scale) or scale <= 0:
            logger.warning(f"Pixel scale {value!r} is invalid, using 1.0")
            scale = 1.0
        return min(scale, self.config.max_pixel_scale)

    def resize(self, width: int, height: int, pixel_scale: Optional[float] = None):
        """
        Adopt a new render-target size.

        (a) resizes the buffer and surface, (b) invalidates the clip geometry,
        (c) invalidates the sprites when the reference-width ratio changed.
        """
        width = self._clamp_dimension("width", width)
        height = self._clamp_dimension("height", height)
        scale = self._clamp_scale(self.pixel_scale if pixel_scale is None else pixel_scale)

        projector = Projector(self.config.projection, width, height)
        ratio = width / self.config.reference_width

        self.width, self.height, self.pixel_scale = width, height, scale
        self.shape = surface_shape(width, height, scale)

        if projector != self.projector:
            self.clipper.invalidate()
        self.projector = projector

        if ratio != self._ratio:
            self.sprites.invalidate()
        self._ratio = ratio

    def configure(self, config: HeatmapConfig):
        """Swap configuration, invalidating only the caches it affects."""
        config = config.resolved()
        old = self.config
        self.config = config

        if (config.palette_stops, config.palette_name) != (old.palette_stops, old.palette_name):
            self.palette = build_palette(config.palette_stops, config.palette_name)
        kernel_keys = ("radius", "blur", "reference_width", "min_radius", "radius_modulation")
        if any(getattr(config, k) != getattr(old, k) for k in kernel_keys):
            self.sprites.invalidate()
        self.compositor = Compositor(config)
        self.resize(self.width, self.height, self.pixel_scale)

    # ------------------------------------------------------------------
    # Render pass
    # ------------------------------------------------------------------

    def prepare(self, points: Optional[Iterable[Any]]) -> PointSet:
        """
        Validate and project points, and publish them to the intensity query.

        render() calls this first; calling it alone makes tooltips available
        without rasterizing anything.
        """
        config = self.config
        point_set = load_points(points if points is not None else [], config.normalization_override)

        radius, blur, _ = scaled_kernel(config, self.width)
        xs, ys = self.projector.project_many(point_set.lats, point_set.lngs)
        radii = point_radii(point_set.norm, radius, config.radius_modulation)

        # Single attribute swap, so a concurrent query sees old or new, never a mix
        self._query = IntensityQuery(
            xs=xs, ys=ys, norm=point_set.norm, radii=radii, blur=blur,
            labels=point_set.labels, lats=point_set.lats, lngs=point_set.lngs,
            formatter=config.formatter, threshold=config.tooltip_threshold,
        )
        return point_set

    def render(self, points: Optional[Iterable[Any]], boundaries: Optional[dict] = None) -> RenderResult:
        """
        Recompute the heat overlay.

        Args:
            points: HeatPoints or dicts with "lat", "lng", "intensity", optional "label"
            boundaries: Optional GeoJSON (Multi)Polygon collection for clipping and basemap
        """
        result = RenderResult(self.width, self.height, self.pixel_scale)
        config = self.config

        point_set = self.prepare(points)
        result.point_count = len(point_set)
        result.skipped_points = point_set.skipped
        result.max_intensity = point_set.max_intensity

        query = self._query
        xs, ys, radii, blur = query.xs, query.ys, query.radii, query.blur
        ratio = self._ratio

        rings = None
        clip_mask = None
        if boundaries is not None:
            geometry, built = self.clipper.compile(self.projector, self.pixel_scale, self.shape, boundaries)
            if built and geometry.error is not None:
                result.geometry_error = geometry.error
            rings = geometry.rings
            if config.clip is ClipMode.LAND:
                clip_mask = geometry.mask
        result.clipped = clip_mask is not None

        try:
            self.state = "accumulate"
            with PerformanceTimer(f"Accumulate {len(point_set)} points"):
                heat = self.accumulator.accumulate(
                    xs, ys, point_set.norm, radii, blur, self.pixel_scale, ratio, self.shape, clip_mask
                )

            self.state = "colorize"
            with PerformanceTimer("Colorize"):
                rgba = colorize(heat, self.palette, config.gamma, config.opacity, config.alpha_boost)

            self.state = "composite"
            with PerformanceTimer("Composite"):
                image = self.compositor.compose(rgba, self.pixel_scale, rings)
        except (MemoryError, RuntimeError, ValueError) as e:
            result.error = ResourceError(f"Rendering surface unavailable: {e}")
            logger.error(f"No-op render: {e}")
            return result
        finally:
            self.state = "idle"

        result.heat, result.rgba, result.image = heat, rgba, image
        return result

    # ------------------------------------------------------------------
    # Intensity query
    # ------------------------------------------------------------------

    def evaluate(self, px: float, py: float):
        """(blended, label) at logical pixel (px, py) for the last render."""
        return self._query.evaluate(px, py)

    def query(self, px: float, py: float) -> Tooltip:
        """Tooltip payload at logical pixel (px, py) for the last render."""
        return self._query.tooltip(px, py)

    def get_stats(self) -> dict:
        return {
            "sprites": self.sprites.get_stats(),
            "clip_builds": self.clipper.builds,
            "convolution": dict(self.accumulator.adaptive_conv.stats),
        }
