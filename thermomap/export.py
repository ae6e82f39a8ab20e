"""
Export helpers: PNG files and an interactive Folium map.

These live outside the render core, which does no file I/O of its own.
"""

from pathlib import Path
from typing import Optional

import folium
from PIL import Image

from .config import MERCATOR_MAX_LAT, ProjectionKind
from .renderer import RenderResult


def save_png(result: RenderResult, path, heat_only: bool = False) -> str:
    """
    Save a render to PNG.

    Args:
        result: Successful RenderResult
        path: Output file
        heat_only: Save the colorized heat without basemap/background
    """
    if not result.ok:
        raise ValueError("Cannot export a render that produced no surface")
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    image = Image.fromarray(result.rgba) if heat_only else result.image
    image.save(path)
    return str(path)


def create_map(result: RenderResult, projection: ProjectionKind,
               output_dir: str = "./heatmap_output", zoom: int = 2,
               center: Optional[list] = None, opacity: float = 0.8) -> folium.Map:
    """
    Create a Folium map with the heat raster as an image overlay.

    The overlay spans the full Web-Mercator world, so only Mercator renders
    line up with the tiles.
    """
    if projection is not ProjectionKind.MERCATOR:
        raise ValueError("Folium overlays need a Mercator render")

    output_dir = Path(output_dir)
    png_path = save_png(result, output_dir / "heat_overlay.png", heat_only=True)

    m = folium.Map(location=center or [20.0, 0.0], zoom_start=zoom,
                   tiles="CartoDB positron", world_copy_jump=False)

    folium.raster_layers.ImageOverlay(
        image=png_path,
        bounds=[[-MERCATOR_MAX_LAT, -180.0], [MERCATOR_MAX_LAT, 180.0]],
        name="Heat",
        opacity=opacity,
        interactive=False,
        zindex=2,
    ).add_to(m)

    folium.LayerControl(collapsed=True).add_to(m)
    return m


def save_map(m: folium.Map, output_dir: str = "./heatmap_output", filename: str = "heatmap_map.html") -> str:
    """Save the Folium map to an HTML file."""
    path = Path(output_dir) / filename
    path.parent.mkdir(parents=True, exist_ok=True)
    m.save(str(path))
    return str(path)
