"""
WebSocket endpoint for the interactive heatmap.
One renderer per connection keeps its caches across renders; hover
messages are answered from the last published point set and are never
queued behind a render.
"""

import asyncio
import base64
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from .errors import GeometryError
from .boundaries import fetch_boundaries
from .logger import log_timing
from .query import HIDDEN
from .renderer import HeatmapRenderer, RenderResult
from .routes import RenderRequest

router = APIRouter()


async def send_status(websocket: WebSocket, status: str, progress: int, data: dict = None):
    """Send a status update to the client."""
    message = {"status": status, "progress": progress}
    if data:
        message["data"] = data
    await websocket.send_json(message)


def result_payload(result: RenderResult) -> dict:
    return {
        "png": base64.b64encode(result.to_png_bytes()).decode("ascii"),
        "width": result.width,
        "height": result.height,
        "pixel_scale": result.pixel_scale,
        "point_count": result.point_count,
        "skipped_points": result.skipped_points,
        "clipped": result.clipped,
        "geometry_error": str(result.geometry_error) if result.geometry_error else None,
    }


class HeatmapSession:
    """Per-connection state: the renderer, last inputs and a render lock."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.renderer: Optional[HeatmapRenderer] = None
        self.points = []
        self.boundaries = None
        self.render_lock = asyncio.Lock()
        self.tasks = set()

    async def handle_render(self, data: dict):
        try:
            request = RenderRequest(**data)
        except ValidationError as e:
            await send_status(self.websocket, "error", 0, {"message": str(e)})
            return

        if request.boundaries is not None:
            self.boundaries = request.boundaries
        elif request.boundaries_url:
            await send_status(self.websocket, "fetching", 10)
            try:
                self.boundaries = await fetch_boundaries(request.boundaries_url)
            except GeometryError as e:
                # Heat still renders, just unclipped
                self.boundaries = None
                await send_status(self.websocket, "warning", 20, {"message": str(e)})

        config = request.to_config()
        points = request.point_dicts()

        def apply():
            if self.renderer is None:
                self.renderer = HeatmapRenderer(request.width, request.height, request.pixel_scale, config=config)
            else:
                self.renderer.configure(config)
                self.renderer.resize(request.width, request.height, request.pixel_scale)
            self.points = points

        self._spawn_render(apply)

    async def handle_resize(self, data: dict):
        if self.renderer is None and not self.tasks:
            await send_status(self.websocket, "error", 0, {"message": "Render before resizing"})
            return

        def apply():
            self.renderer.resize(data.get("width", self.renderer.width),
                                 data.get("height", self.renderer.height),
                                 data.get("pixel_scale"))

        self._spawn_render(apply)

    async def handle_hover(self, data: dict):
        try:
            x, y = float(data.get("x", 0.0)), float(data.get("y", 0.0))
        except (TypeError, ValueError):
            await send_status(self.websocket, "error", 0, {"message": f"Invalid hover position {data!r}"})
            return

        if self.renderer is None:
            tooltip = HIDDEN.to_dict()
        else:
            tooltip = self.renderer.query(x, y).to_dict()
        await send_status(self.websocket, "tooltip", 100, tooltip)

    def _spawn_render(self, apply):
        task = asyncio.create_task(self._render(apply))
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)

    async def _render(self, apply):
        # Inputs change only between renders, never under one
        async with self.render_lock:
            apply()
            await send_status(self.websocket, "rendering", 50)
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(
                None, lambda: self.renderer.render(self.points, boundaries=self.boundaries)
            )
            if not result.ok:
                await send_status(self.websocket, "error", 0, {"message": str(result.error)})
                return
            await send_status(self.websocket, "complete", 100, result_payload(result))
            log_timing(f"✅ [WS] Rendered {result.point_count} points")

    def cancel(self):
        for task in list(self.tasks):
            task.cancel()


@router.websocket("/ws/heatmap")
async def heatmap_websocket(websocket: WebSocket):
    """
    WebSocket endpoint for interactive rendering.

    Client sends any number of:
    {"type": "render", "points": [...], "width": 600, "height": 300, ...}
    {"type": "resize", "width": 1200, "height": 600, "pixel_scale": 2}
    {"type": "hover", "x": 120.5, "y": 88.0}
    {"type": "leave"}

    Server responds with:
    {"status": "rendering", "progress": 50}
    {"status": "complete", "progress": 100, "data": {"png": "<base64>", ...}}
    {"status": "tooltip", "progress": 100, "data": {"x": ..., "y": ..., "text": "...", "visible": true}}
    """
    await websocket.accept()
    session = HeatmapSession(websocket)

    try:
        while True:
            data = await websocket.receive_json()
            kind = data.pop("type", None)

            if kind == "render":
                await session.handle_render(data)
            elif kind == "resize":
                await session.handle_resize(data)
            elif kind == "hover":
                await session.handle_hover(data)
            elif kind == "leave":
                await send_status(websocket, "tooltip", 100, HIDDEN.to_dict())
            else:
                await send_status(websocket, "error", 0, {"message": f"Unknown message type {kind!r}"})

    except WebSocketDisconnect:
        log_timing("⚠️  [WS] Client disconnected")
    finally:
        session.cancel()
