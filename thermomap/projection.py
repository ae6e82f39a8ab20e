"""
Map projections from (lat, lng) degrees to logical pixel coordinates.

The same Projector instance must be shared by the accumulator, the land
clipper and the basemap, otherwise heat and geography drift apart.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .config import MERCATOR_MAX_LAT, ProjectionKind


@dataclass(frozen=True)
class Projector:
    """
    Full-world projection onto a width x height viewport.

    Attributes:
        kind: ProjectionKind.MERCATOR or ProjectionKind.EQUIRECTANGULAR
        width, height: Logical viewport size in pixels
    """
    kind: ProjectionKind
    width: int
    height: int

    def project(self, lat: float, lng: float) -> Tuple[float, float]:
        """Project a single coordinate. Deterministic, no hidden state."""
        xs, ys = self.project_many(np.array([lat]), np.array([lng]))
        return float(xs[0]), float(ys[0])

    def project_many(self, lats, lngs) -> Tuple[np.ndarray, np.ndarray]:
        """Vectorized projection of latitude/longitude arrays (degrees)."""
        lats = np.asarray(lats, dtype=np.float64)
        lngs = np.asarray(lngs, dtype=np.float64)

        x = (lngs + 180.0) / 360.0 * self.width

        if self.kind is ProjectionKind.EQUIRECTANGULAR:
            y = (90.0 - lats) / 180.0 * self.height
        else:
            # Clamp before the transform so the poles stay finite
            lat_r = np.radians(np.clip(lats, -MERCATOR_MAX_LAT, MERCATOR_MAX_LAT))
            y = (0.5 - np.log(np.tan(np.pi / 4 + lat_r / 2.0)) / (2 * np.pi)) * self.height

        return x, y

    def resized(self, width: int, height: int) -> "Projector":
        return Projector(self.kind, width, height)
