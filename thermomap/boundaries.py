"""
Boundary geometry: GeoJSON parsing and loading.

Only outer rings are used (holes are ignored). Malformed or empty rings are
skipped one by one; the collection as a whole fails only when it is not
GeoJSON at all. Loading errors are raised as GeometryError to the caller.
"""

import asyncio
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

import aiohttp
import numpy as np
from aiohttp import ClientSession

from .cache import cache_boundaries, set_cache_boundaries
from .errors import GeometryError
from .logger import logger, timeit

DEFAULT_BOUNDARIES_URL = (
    "https://raw.githubusercontent.com/nvkelso/natural-earth-vector/"
    "master/geojson/ne_110m_admin_0_countries.geojson"
)


@dataclass
class BoundarySet:
    """
    Outer rings extracted from a boundary collection.

    Attributes:
        rings: One (n, 2) float64 array of (lng, lat) per valid ring
        skipped_rings: Rings dropped for being empty or malformed
        feature_count: Features that contributed at least one ring
    """
    rings: List[np.ndarray] = field(default_factory=list)
    skipped_rings: int = 0
    feature_count: int = 0


def _ring_array(ring: Any) -> Optional[np.ndarray]:
    """(n, 2) array for a ring, or None if it is empty or malformed."""
    if not isinstance(ring, (list, tuple)) or len(ring) < 3:
        return None
    try:
        coords = np.array([(float(pos[0]), float(pos[1])) for pos in ring], dtype=np.float64)
    except (TypeError, ValueError, IndexError, KeyError):
        return None
    if not np.isfinite(coords).all():
        return None
    return coords


def _outer_rings(geometry: Any) -> List[Any]:
    if not isinstance(geometry, dict):
        return []
    gtype = geometry.get("type")
    coords = geometry.get("coordinates") or []
    if not isinstance(coords, (list, tuple)):
        return [None]
    if gtype == "Polygon":
        return coords[:1]
    if gtype == "MultiPolygon":
        return [poly[0] if isinstance(poly, (list, tuple)) and poly else [] for poly in coords]
    if gtype == "GeometryCollection":
        children = geometry.get("geometries") or []
        if not isinstance(children, (list, tuple)):
            return [None]
        rings = []
        for child in children:
            rings.extend(_outer_rings(child))
        return rings
    return []


def extract_outer_rings(geojson: Any) -> BoundarySet:
    """
    Collect the outer ring of every polygon in a FeatureCollection, Feature
    or bare Polygon/MultiPolygon geometry.

    Raises:
        GeometryError: If the input is not a GeoJSON object
    """
    if not isinstance(geojson, dict) or "type" not in geojson:
        raise GeometryError("Boundary data is not a GeoJSON object")

    gtype = geojson["type"]
    if gtype == "FeatureCollection":
        features = geojson.get("features")
        if not isinstance(features, list):
            raise GeometryError("FeatureCollection has no feature list")
        geometries = [f.get("geometry") if isinstance(f, dict) else None for f in features]
    elif gtype == "Feature":
        geometries = [geojson.get("geometry")]
    else:
        geometries = [geojson]

    result = BoundarySet()
    for geometry in geometries:
        contributed = False
        for ring in _outer_rings(geometry):
            coords = _ring_array(ring)
            if coords is None:
                result.skipped_rings += 1
                continue
            result.rings.append(coords)
            contributed = True
        if contributed:
            result.feature_count += 1

    if result.skipped_rings:
        logger.warning(f"Skipped {result.skipped_rings} empty or malformed boundary ring(s)")
    return result


def parse_boundaries(text: str) -> dict:
    """Decode GeoJSON text, validating that it has usable rings."""
    try:
        geojson = json.loads(text)
    except ValueError as e:
        raise GeometryError(f"Boundary data is not valid JSON: {e}") from e
    extract_outer_rings(geojson)
    return geojson


def load_boundaries(path) -> dict:
    """Load a GeoJSON boundary file from disk."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise GeometryError(f"Could not read boundary file {path}: {e}") from e
    return parse_boundaries(text)


@timeit
async def fetch_boundaries(url: str = DEFAULT_BOUNDARIES_URL,
                           session: Optional[ClientSession] = None,
                           timeout: float = 30) -> dict:
    """
    Fetch a GeoJSON boundary collection, cached by URL.

    Raises:
        GeometryError: On HTTP failure, timeout or unparseable payload
    """
    cached = cache_boundaries(url)
    if cached:
        logger.info(f"📦 Cache hit for boundaries: {url[:60]}")
        return cached

    owns_session = session is None
    if owns_session:
        session = aiohttp.ClientSession()

    try:
        async with session.get(url, timeout=aiohttp.ClientTimeout(total=timeout)) as resp:
            if resp.status != 200:
                raise GeometryError(f"Boundary fetch returned status {resp.status}")
            text = await resp.text()
    except aiohttp.ClientError as e:
        raise GeometryError(f"Boundary fetch failed: {e}") from e
    except asyncio.TimeoutError as e:
        raise GeometryError(f"Boundary fetch timed out after {timeout}s") from e
    finally:
        if owns_session:
            await session.close()

    geojson = parse_boundaries(text)
    set_cache_boundaries(url, geojson)
    return geojson
