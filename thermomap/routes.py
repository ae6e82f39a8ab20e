from typing import Dict, List, Optional, Tuple

from fastapi import APIRouter, HTTPException
from fastapi.responses import HTMLResponse, Response
from pydantic import BaseModel, Field

from .boundaries import fetch_boundaries
from .config import ClipMode, HeatmapConfig, ProjectionKind
from .errors import GeometryError
from .export import create_map
from .logger import PerformanceTimer, timeit
from .renderer import HeatmapRenderer

router = APIRouter()

# Renderers keep their sprite and clip caches between requests
_renderers: Dict[tuple, HeatmapRenderer] = {}
MAX_RENDERERS = 8


class PointModel(BaseModel):
    lat: float
    lng: float
    intensity: float = 0.0
    label: Optional[str] = None


class RenderRequest(BaseModel):
    points: List[PointModel] = Field(default_factory=list)
    width: int = 600
    height: int = 300
    pixel_scale: float = 1.0
    projection: ProjectionKind = ProjectionKind.MERCATOR
    radius: float = 28.0
    blur: float = 15.0
    max_intensity: Optional[float] = None
    radius_modulation: float = 0.0
    palette: Optional[str] = None
    gamma: float = 1.0
    clip: ClipMode = ClipMode.NONE
    basemap: bool = True
    boundaries_url: Optional[str] = None
    boundaries: Optional[dict] = None

    def to_config(self) -> HeatmapConfig:
        return HeatmapConfig(
            projection=self.projection,
            radius=self.radius,
            blur=self.blur,
            max_intensity=self.max_intensity,
            radius_modulation=self.radius_modulation,
            palette_name=self.palette,
            gamma=self.gamma,
            clip=self.clip,
            basemap=self.basemap,
        )

    def point_dicts(self) -> List[dict]:
        return [p.model_dump() for p in self.points]


class TooltipRequest(RenderRequest):
    x: float
    y: float


def get_renderer(request: RenderRequest) -> HeatmapRenderer:
    """Reuse a renderer with the same configuration and target size."""
    config = request.to_config()
    key: Tuple = (config, request.width, request.height, request.pixel_scale)
    renderer = _renderers.get(key)
    if renderer is None:
        renderer = HeatmapRenderer(request.width, request.height, request.pixel_scale, config=config)
        _renderers[key] = renderer
        while len(_renderers) > MAX_RENDERERS:
            del _renderers[next(iter(_renderers))]
    return renderer


async def resolve_boundaries(request: RenderRequest) -> Optional[dict]:
    """Inline boundaries win over a URL; fetch failures go back to the client."""
    if request.boundaries is not None:
        return request.boundaries
    if request.boundaries_url:
        try:
            return await fetch_boundaries(request.boundaries_url)
        except GeometryError as e:
            raise HTTPException(status_code=502, detail=str(e))
    return None


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.post("/render")
@timeit
async def render_heatmap(request: RenderRequest):
    """Render the heat overlay and return it as a PNG."""
    boundaries = await resolve_boundaries(request)
    renderer = get_renderer(request)

    with PerformanceTimer("Render request"):
        result = renderer.render(request.point_dicts(), boundaries=boundaries)

    if not result.ok:
        raise HTTPException(status_code=503, detail=str(result.error))

    headers = {
        "X-Point-Count": str(result.point_count),
        "X-Skipped-Points": str(result.skipped_points),
        "X-Clipped": "1" if result.clipped else "0",
    }
    if result.geometry_error is not None:
        headers["X-Geometry-Error"] = str(result.geometry_error)
    return Response(content=result.to_png_bytes(), media_type="image/png", headers=headers)


@router.post("/tooltip")
async def tooltip(request: TooltipRequest):
    """Stateless intensity query over the supplied points."""
    renderer = get_renderer(request)
    renderer.prepare(request.point_dicts())
    return renderer.query(request.x, request.y).to_dict()


@router.post("/map", response_class=HTMLResponse)
@timeit
async def heatmap_map(request: RenderRequest):
    """Folium map with the heat raster over web tiles (Mercator only)."""
    if request.projection is not ProjectionKind.MERCATOR:
        raise HTTPException(status_code=422, detail="Folium maps need the mercator projection")

    boundaries = await resolve_boundaries(request)
    renderer = get_renderer(request)
    result = renderer.render(request.point_dicts(), boundaries=boundaries)
    if not result.ok:
        raise HTTPException(status_code=503, detail=str(result.error))

    with PerformanceTimer("Creating Folium map"):
        m = create_map(result, request.projection, output_dir="heatmap_output")
    return HTMLResponse(m._repr_html_())
