"""
Central configuration for the heatmap engine.

All values have defaults; HeatmapConfig.resolved() clamps invalid values
to safe minimums instead of raising, so a bad radius or gamma never
aborts a render.
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Optional, Sequence, Tuple

from .logger import logger

# Radius and blur are expressed against this logical width
REFERENCE_WIDTH = 600.0

# sigma = radius / SIGMA_RATIO ties the analytic query to the painted kernel
SIGMA_RATIO = 1.6

# Web-Mercator latitude limit (degrees)
MERCATOR_MAX_LAT = 85.05113

RGB = Tuple[int, int, int]

DEFAULT_PALETTE_STOPS: Tuple[Tuple[float, RGB], ...] = (
    (0.0, (0, 0, 255)),        # Blue (cold)
    (1.0 / 3.0, (0, 255, 0)),  # Green
    (2.0 / 3.0, (255, 255, 0)),  # Yellow
    (1.0, (255, 0, 0)),        # Red (hot)
)


class ProjectionKind(Enum):
    MERCATOR = "mercator"
    EQUIRECTANGULAR = "equirectangular"


class ClipMode(Enum):
    NONE = "none"
    LAND = "land"


def format_percent(value: float) -> str:
    """Default tooltip formatter: percentage of peak."""
    return f"{value * 100:.1f}%"


@dataclass(frozen=True)
class HeatmapConfig:
    # === Projection ===
    projection: ProjectionKind = ProjectionKind.MERCATOR

    # === Kernel (reference pixels) ===
    radius: float = 28.0
    blur: float = 15.0
    reference_width: float = REFERENCE_WIDTH
    min_radius: float = 8.0
    radius_modulation: float = 0.0   # 0 = every point uses the same radius

    # === Normalization ===
    max_intensity: Optional[float] = None   # Used only when > 0

    # === Colour ===
    palette_stops: Sequence[Tuple[float, RGB]] = DEFAULT_PALETTE_STOPS
    palette_name: Optional[str] = None      # matplotlib colormap, replaces stops
    gamma: float = 1.0
    opacity: float = 1.0
    alpha_boost: int = 0

    # === Clipping & surface ===
    clip: ClipMode = ClipMode.NONE
    max_pixel_scale: float = 2.0
    min_viewport: int = 10

    # === Basemap ===
    basemap: bool = True
    background: Tuple[int, int, int, int] = (0, 0, 0, 0)
    land_fill: Tuple[int, int, int, int] = (243, 243, 243, 255)
    border_color: Tuple[int, int, int, int] = (141, 141, 141, 255)
    border_width: int = 1

    # === Tooltip ===
    tooltip_threshold: float = 0.01
    formatter: Callable[[float], str] = field(default=format_percent, compare=False)

    def resolved(self) -> "HeatmapConfig":
        """Return a copy with invalid values clamped to safe minimums."""
        changes = {}

        if not _finite(self.min_radius) or self.min_radius <= 0:
            changes["min_radius"] = 1.0
        min_radius = changes.get("min_radius", self.min_radius)

        if not _finite(self.radius) or self.radius <= 0:
            changes["radius"] = min_radius
        if not _finite(self.blur) or self.blur < 0:
            changes["blur"] = 0.0
        if not _finite(self.reference_width) or self.reference_width <= 0:
            changes["reference_width"] = REFERENCE_WIDTH
        if not _finite(self.radius_modulation) or not 0.0 <= self.radius_modulation <= 1.0:
            changes["radius_modulation"] = 0.0
        if not _finite(self.gamma) or self.gamma <= 0:
            changes["gamma"] = 1.0
        if not _finite(self.opacity) or not 0.0 <= self.opacity <= 1.0:
            changes["opacity"] = min(1.0, max(0.0, self.opacity)) if _finite(self.opacity) else 1.0
        if not 0 <= self.alpha_boost <= 255:
            changes["alpha_boost"] = min(255, max(0, int(self.alpha_boost)))
        if not _finite(self.max_pixel_scale) or self.max_pixel_scale < 1.0:
            changes["max_pixel_scale"] = 1.0
        if self.min_viewport < 1:
            changes["min_viewport"] = 1

        for name, value in changes.items():
            logger.warning(f"Config {name}={getattr(self, name)!r} is invalid, clamped to {value!r}")

        return replace(self, **changes) if changes else self

    @property
    def normalization_override(self) -> Optional[float]:
        if self.max_intensity is not None and _finite(self.max_intensity) and self.max_intensity > 0:
            return float(self.max_intensity)
        return None


def _finite(value) -> bool:
    try:
        return math.isfinite(value)
    except TypeError:
        return False
