"""
Land clipper: projects boundary rings and rasterizes them into a clip mask.

The clip is applied to the accumulated heat after the kernel has spread,
so a kernel centred just offshore still bleeds onto the coast while no heat
is ever painted over water. The compiled geometry is valid only for the
(projection, width, height, pixel scale, source) it was built against.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

import numpy as np
from PIL import Image, ImageDraw

from .boundaries import extract_outer_rings
from .errors import GeometryError
from .logger import logger
from .projection import Projector


@dataclass
class ClipGeometry:
    """
    Projected boundary rings and their rasterized union.

    Attributes:
        rings: (n, 2) arrays of logical pixel coordinates, shared with the basemap
        mask: float32 (H, W) device-resolution mask, 1.0 on land; None when degraded
        skipped_rings: Rings dropped while compiling
        error: GeometryError that forced unclipped rendering, if any
    """
    rings: List[np.ndarray] = field(default_factory=list)
    mask: Optional[np.ndarray] = None
    skipped_rings: int = 0
    error: Optional[GeometryError] = None


def rasterize_rings(rings: List[np.ndarray], shape: Tuple[int, int], pixel_scale: float) -> np.ndarray:
    """Union of the ring interiors as a float32 mask at device resolution."""
    H, W = shape
    canvas = Image.new("L", (W, H), 0)
    draw = ImageDraw.Draw(canvas)
    for ring in rings:
        draw.polygon([(float(x), float(y)) for x, y in ring * pixel_scale], fill=255)
    return (np.asarray(canvas, dtype=np.float32) / 255.0)


class LandClipper:
    """
    Builds and caches the clip geometry.

    The cache holds one entry keyed by (projector, pixel scale, buffer shape)
    plus the identity of the source geometry; any change rebuilds it.
    """

    def __init__(self):
        self._key = None
        self._source = None
        self._geometry: Optional[ClipGeometry] = None
        self.builds = 0

    def invalidate(self):
        self._key = None
        self._source = None
        self._geometry = None

    def compile(self, projector: Projector, pixel_scale: float, shape: Tuple[int, int],
                source: Any) -> Tuple[ClipGeometry, bool]:
        """
        Return the clip geometry for these inputs.

        Returns:
            (geometry, built) where built is True when this call rebuilt the cache.
            Never raises: failures yield a geometry with mask=None and error set.
        """
        key = (projector, pixel_scale, shape)
        if self._geometry is not None and key == self._key and source is self._source:
            return self._geometry, False

        geometry = self._build(projector, pixel_scale, shape, source)
        self._key = key
        self._source = source  # Holding the reference keeps its identity unique
        self._geometry = geometry
        self.builds += 1
        return geometry, True

    def _build(self, projector, pixel_scale, shape, source) -> ClipGeometry:
        try:
            boundary_set = extract_outer_rings(source)
        except GeometryError as e:
            logger.warning(f"Boundary geometry unusable, rendering unclipped: {e}")
            return ClipGeometry(error=e)
        except (KeyError, TypeError, ValueError, AttributeError, IndexError, RecursionError) as e:
            error = GeometryError(f"Boundary geometry is malformed: {e!r}")
            logger.warning(f"{error}, rendering unclipped")
            return ClipGeometry(error=error)

        rings = []
        for ring in boundary_set.rings:
            xs, ys = projector.project_many(ring[:, 1], ring[:, 0])
            rings.append(np.column_stack([xs, ys]))

        if not rings:
            error = GeometryError(
                f"No usable boundary rings ({boundary_set.skipped_rings} skipped)"
            )
            logger.warning(f"{error}, rendering unclipped")
            return ClipGeometry(skipped_rings=boundary_set.skipped_rings, error=error)

        try:
            mask = rasterize_rings(rings, shape, pixel_scale)
        except (ValueError, TypeError, MemoryError) as e:
            error = GeometryError(f"Could not rasterize boundary rings: {e}")
            logger.warning(f"{error}, rendering unclipped")
            return ClipGeometry(rings=rings, skipped_rings=boundary_set.skipped_rings, error=error)

        return ClipGeometry(rings=rings, mask=mask, skipped_rings=boundary_set.skipped_rings)
