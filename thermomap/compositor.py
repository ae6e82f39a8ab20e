"""
Compositor: lays the colorized heat onto the visible output surface.

The surface is logical size x device pixel scale. An optional vector
basemap drawn from the same projected rings gives geographic context:
land fill under the heat, borders over it.
"""

from typing import List, Optional, Tuple

import numpy as np
from PIL import Image, ImageDraw

from .config import HeatmapConfig


def surface_shape(width: int, height: int, pixel_scale: float) -> Tuple[int, int]:
    """(H, W) of the device-resolution surface, at least 1x1."""
    return max(1, int(round(height * pixel_scale))), max(1, int(round(width * pixel_scale)))


class Basemap:
    """Land fill and borders drawn with PIL from projected rings (logical px)."""

    def __init__(self, config: HeatmapConfig):
        self.config = config

    @staticmethod
    def _scaled(ring: np.ndarray, pixel_scale: float) -> list:
        return [(float(x), float(y)) for x, y in ring * pixel_scale]

    def draw_land(self, surface: Image.Image, rings: List[np.ndarray], pixel_scale: float):
        draw = ImageDraw.Draw(surface)
        for ring in rings:
            draw.polygon(self._scaled(ring, pixel_scale), fill=self.config.land_fill)

    def draw_borders(self, surface: Image.Image, rings: List[np.ndarray], pixel_scale: float):
        draw = ImageDraw.Draw(surface)
        width = max(1, int(round(self.config.border_width * pixel_scale)))
        for ring in rings:
            points = self._scaled(ring, pixel_scale)
            draw.line(points + points[:1], fill=self.config.border_color, width=width)


class Compositor:

    def __init__(self, config: HeatmapConfig):
        self.config = config
        self.basemap = Basemap(config)

    def compose(self, heat_rgba: np.ndarray, pixel_scale: float,
                rings: Optional[List[np.ndarray]] = None) -> Image.Image:
        """
        Blit the colorized buffer onto a fresh surface of the same size.

        Args:
            heat_rgba: uint8 (H, W, 4) output of the colorizer
            pixel_scale: Device pixels per logical pixel
            rings: Projected boundary rings for the basemap (logical px)
        """
        H, W = heat_rgba.shape[:2]
        surface = Image.new("RGBA", (W, H), tuple(self.config.background))
        draw_basemap = self.config.basemap and rings

        if draw_basemap:
            self.basemap.draw_land(surface, rings, pixel_scale)

        heat = Image.fromarray(heat_rgba)
        surface = Image.alpha_composite(surface, heat)

        if draw_basemap:
            self.basemap.draw_borders(surface, rings, pixel_scale)

        return surface
