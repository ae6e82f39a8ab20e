"""
HeatPoint ingestion and intensity normalization.

Points arrive by value on every render. Points with non-finite
coordinates are dropped individually (DataError semantics) and counted.
"""

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Union

import numpy as np
import pandas as pd

from .logger import logger


@dataclass(frozen=True)
class HeatPoint:
    lat: float
    lng: float
    intensity: float
    label: Optional[str] = None


PointLike = Union[HeatPoint, Mapping]

COLUMNS = ["lat", "lng", "intensity", "label"]


def _as_record(point: PointLike) -> dict:
    if isinstance(point, HeatPoint):
        return {"lat": point.lat, "lng": point.lng, "intensity": point.intensity, "label": point.label}
    if not isinstance(point, Mapping):
        # Unusable entries become non-finite and are skipped
        return {
            "lat": getattr(point, "lat", None),
            "lng": getattr(point, "lng", None),
            "intensity": getattr(point, "intensity", 0.0),
            "label": getattr(point, "label", None),
        }
    return {
        "lat": point.get("lat"),
        "lng": point.get("lng", point.get("lon")),
        "intensity": point.get("intensity", 0.0),
        "label": point.get("label"),
    }


@dataclass(frozen=True)
class PointSet:
    """
    Validated points with their normalized intensities.

    Attributes:
        frame: DataFrame with "lat", "lng", "intensity", "label", "norm"
        max_intensity: Normalization denominator, always > 0
        skipped: Number of points dropped for non-finite coordinates
    """
    frame: pd.DataFrame
    max_intensity: float
    skipped: int

    def __len__(self) -> int:
        return len(self.frame)

    @property
    def empty(self) -> bool:
        return self.frame.empty

    @property
    def lats(self) -> np.ndarray:
        return self.frame["lat"].to_numpy(dtype=np.float64)

    @property
    def lngs(self) -> np.ndarray:
        return self.frame["lng"].to_numpy(dtype=np.float64)

    @property
    def norm(self) -> np.ndarray:
        return self.frame["norm"].to_numpy(dtype=np.float64)

    @property
    def labels(self) -> list:
        return self.frame["label"].tolist()


def _clean_label(label) -> Optional[str]:
    if label is None or (isinstance(label, float) and not np.isfinite(label)):
        return None
    text = str(label)
    return text or None


def resolve_max_intensity(intensities: np.ndarray, override: Optional[float] = None) -> float:
    """max(intensities), or the override when positive; never <= 0."""
    if override is not None and np.isfinite(override) and override > 0:
        return float(override)
    if intensities.size == 0:
        return 1.0
    peak = float(np.max(intensities))
    return peak if peak > 0 else 1.0


def normalize(intensities: np.ndarray, max_intensity: float) -> np.ndarray:
    """clamp(intensity / max_intensity, 0, 1)."""
    return np.clip(np.asarray(intensities, dtype=np.float64) / max_intensity, 0.0, 1.0)


def load_points(points: Iterable[PointLike], max_intensity: Optional[float] = None) -> PointSet:
    """
    Build a PointSet from HeatPoints or dicts with "lat", "lng", "intensity", "label".

    Args:
        points: Iterable of HeatPoint or mapping ("lon" is accepted for "lng")
        max_intensity: Optional normalization override (used when > 0)
    """
    if isinstance(points, pd.DataFrame):
        points = points.rename(columns={"lon": "lng"}).to_dict("records")
    records = [_as_record(p) for p in points]
    frame = pd.DataFrame(records, columns=COLUMNS)

    for col in ("lat", "lng", "intensity"):
        frame[col] = pd.to_numeric(frame[col], errors="coerce").astype(np.float64)

    valid = np.isfinite(frame["lat"].to_numpy()) & np.isfinite(frame["lng"].to_numpy())
    skipped = int((~valid).sum())
    if skipped:
        logger.warning(f"Skipping {skipped} point(s) with non-finite coordinates")
    frame = frame[valid].reset_index(drop=True)

    # Intensities are >= 0; anything else contributes nothing
    intensity = frame["intensity"].to_numpy()
    frame["intensity"] = np.where(np.isfinite(intensity) & (intensity > 0), intensity, 0.0)

    peak = resolve_max_intensity(frame["intensity"].to_numpy(), max_intensity)
    frame["norm"] = normalize(frame["intensity"].to_numpy(), peak)
    frame["label"] = pd.Series([_clean_label(lbl) for lbl in frame["label"]], dtype=object)

    return PointSet(frame=frame, max_intensity=peak, skipped=skipped)
