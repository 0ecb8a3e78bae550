"""Camera control API endpoints."""
from __future__ import annotations

import asyncio
from typing import Optional

from fastapi import APIRouter, HTTPException

from ..config import SURFACE_HEIGHT, SURFACE_WIDTH
from ..schemas import CameraStatus, ConnectRequest
from ..services import camera_view

router = APIRouter(prefix="/camera", tags=["camera"])


def current_status() -> CameraStatus:
    surface = camera_view.surface
    last_ts = surface.last_frame_ts
    return CameraStatus(
        connected=camera_view.connected,
        camera_id=camera_view.camera_id,
        frame_width=camera_view.frame_width,
        frame_height=camera_view.frame_height,
        scale=camera_view.scale,
        fps=camera_view.fps,
        frames_drawn=surface.frames_drawn,
        last_frame_ts=last_ts or None,
    )


@router.get("/status", response_model=CameraStatus)
async def get_status():
    return current_status()


@router.post("/connect", response_model=CameraStatus)
async def connect(request: Optional[ConnectRequest] = None):
    """Connect the camera; a connected camera is reconnected with the new settings."""
    request = request or ConnectRequest()
    if request.camera_id is not None:
        camera_view.set_camera_index(request.camera_id)

    width = request.width or SURFACE_WIDTH
    height = request.height or SURFACE_HEIGHT
    ok = await asyncio.to_thread(camera_view.connect_camera, width, height)
    if not ok:
        raise HTTPException(status_code=503, detail="Camera is not available")
    return current_status()


@router.post("/disconnect", response_model=CameraStatus)
async def disconnect():
    await asyncio.to_thread(camera_view.disconnect_camera)
    camera_view.surface.clear()
    return current_status()
