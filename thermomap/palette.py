"""
Colour ramps for the thermographic overlay.

A Palette is an ordered list of (t, RGB) stops, pre-sampled through a
matplotlib colormap into a 256-entry lookup table.
"""

from typing import Optional, Sequence, Tuple

import matplotlib
import numpy as np
from matplotlib.colors import LinearSegmentedColormap

from .config import DEFAULT_PALETTE_STOPS, RGB
from .errors import ConfigError
from .logger import logger

LUT_SIZE = 256


class Palette:
    """
    Monotonic colour ramp.

    Attributes:
        stops: ((t, (r, g, b)), ...) with t ascending from 0 to 1
        lut: uint8 (256, 3) lookup table
    """

    def __init__(self, stops: Sequence[Tuple[float, RGB]] = DEFAULT_PALETTE_STOPS, name: str = "thermo"):
        self.stops = self._validate(stops)
        self.name = name
        self._positions = np.array([t for t, _ in self.stops], dtype=np.float64)
        self._colors = np.array([rgb for _, rgb in self.stops], dtype=np.float64)

        cmap = LinearSegmentedColormap.from_list(
            name, [(t, tuple(c / 255.0 for c in rgb)) for t, rgb in self.stops], N=LUT_SIZE
        )
        self.lut = _sample(cmap)

    @staticmethod
    def _validate(stops) -> Tuple[Tuple[float, RGB], ...]:
        stops = tuple((float(t), tuple(int(c) for c in rgb)) for t, rgb in stops)
        if len(stops) < 2:
            raise ConfigError("A palette needs at least two stops")
        positions = [t for t, _ in stops]
        if positions[0] != 0.0 or positions[-1] != 1.0:
            raise ConfigError("Palette stops must start at 0 and end at 1")
        if any(b <= a for a, b in zip(positions, positions[1:])):
            raise ConfigError("Palette stop positions must be strictly increasing")
        for _, rgb in stops:
            if len(rgb) != 3 or not all(0 <= c <= 255 for c in rgb):
                raise ConfigError(f"Palette colour {rgb} is not an RGB triple in 0..255")
        return stops

    def ramp(self, t: float) -> RGB:
        """Piecewise-linear colour at t (clamped to [0, 1])."""
        t = min(1.0, max(0.0, float(t)))
        return tuple(
            int(round(np.interp(t, self._positions, self._colors[:, channel])))
            for channel in range(3)
        )

    @classmethod
    def from_name(cls, name: str) -> "Palette":
        """
        Palette sampled from a named matplotlib colormap (e.g. "inferno").
        Falls back to the default thermographic ramp for unknown names.
        """
        try:
            cmap = matplotlib.colormaps[name]
        except KeyError:
            logger.warning(f"Unknown colormap {name!r}, using default ramp")
            return cls()

        positions = np.linspace(0.0, 1.0, 16)
        colors = np.round(np.asarray(cmap(positions))[:, :3] * 255).astype(int)
        palette = cls([(float(t), tuple(int(c) for c in rgb)) for t, rgb in zip(positions, colors)], name=name)
        palette.lut = _sample(cmap)
        return palette


def _sample(cmap) -> np.ndarray:
    rgba = np.asarray(cmap(np.linspace(0.0, 1.0, LUT_SIZE)))
    return np.round(rgba[:, :3] * 255).astype(np.uint8)


def build_palette(stops: Sequence[Tuple[float, RGB]], name: Optional[str] = None) -> Palette:
    """Palette from a colormap name when given, otherwise from explicit stops."""
    if name:
        return Palette.from_name(name)
    return Palette(stops)
