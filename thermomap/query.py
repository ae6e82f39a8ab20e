"""
Intensity query: blended heat and nearest point at a cursor position.

Sums the same kernel the accumulator painted, analytically, over every
point. It never reads rendered pixels. Cost is O(N) per query.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import numpy as np

from .config import format_percent
from .kernel import kernel_profile


@dataclass(frozen=True)
class Tooltip:
    """Payload for the host UI: where to put the label and what it says."""
    x: float
    y: float
    text: str
    visible: bool

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "text": self.text, "visible": self.visible}


HIDDEN = Tooltip(0.0, 0.0, "", False)


@dataclass(frozen=True)
class IntensityQuery:
    """
    Immutable snapshot of the most recently rendered point set.

    Attributes:
        xs, ys: Projected positions (logical px)
        norm: Normalized intensities (same max_intensity as the render)
        radii: Per-point kernel radius (logical px, same as the sprites)
        blur: Kernel blur band (logical px)
        labels, lats, lngs: Point identity for the nearest-point label
    """
    xs: np.ndarray
    ys: np.ndarray
    norm: np.ndarray
    radii: np.ndarray
    blur: float
    labels: List[Optional[str]]
    lats: np.ndarray
    lngs: np.ndarray
    formatter: Callable[[float], str] = format_percent
    threshold: float = 0.01

    def evaluate(self, px: float, py: float) -> Tuple[float, Optional[str]]:
        """
        Blended intensity at (px, py) and the nearby point's label.

        Returns:
            (blended, label) where blended = clamp(sum(norm_i * w_i), 0, 1) and
            label is None unless the nearest point's kernel reaches (px, py).
        """
        if len(self.xs) == 0:
            return 0.0, None

        d2 = (self.xs - px) ** 2 + (self.ys - py) ** 2
        weights = kernel_profile(d2, self.radii, self.blur)
        blended = float(np.clip(np.sum(self.norm * weights), 0.0, 1.0))

        nearest = int(np.argmin(d2))
        extent = self.radii[nearest] + self.blur
        if d2[nearest] > extent * extent:
            return blended, None

        label = self.labels[nearest]
        if not label:
            label = f"{self.lats[nearest]:.2f}, {self.lngs[nearest]:.2f}"
        return blended, label

    def tooltip(self, px: float, py: float) -> Tooltip:
        blended, label = self.evaluate(px, py)
        value = self.formatter(blended)
        text = f"{label} • {value}" if label else value
        return Tooltip(x=float(px), y=float(py), text=text, visible=blended > self.threshold)


def empty_query(formatter: Callable[[float], str] = format_percent, threshold: float = 0.01) -> IntensityQuery:
    empty = np.zeros(0, dtype=np.float64)
    return IntensityQuery(empty, empty, empty, empty, 0.0, [], empty, empty, formatter, threshold)
