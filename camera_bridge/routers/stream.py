"""Video streaming API endpoints."""
from __future__ import annotations

import logging
import time

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse

from ..config import JPEG_QUALITY, STREAM_FPS
from ..services import camera_view

router = APIRouter(prefix="/stream", tags=["stream"])
logger = logging.getLogger("camera-bridge.stream")


def mjpeg_generator(max_frames: int | None = None):
    """Yield drawn frames as a multipart JPEG stream at STREAM_FPS."""
    interval = 1.0 / STREAM_FPS
    waited_once = False
    sent = 0

    while max_frames is None or sent < max_frames:
        jpg_bytes = camera_view.surface.get_jpeg(quality=JPEG_QUALITY)
        if jpg_bytes is None:
            if not waited_once:
                logger.info("Waiting for first frame...")
                waited_once = True
            time.sleep(0.1)
            continue

        yield (
            b"--frame\r\n"
            b"Content-Type: image/jpeg\r\n\r\n" + jpg_bytes + b"\r\n"
        )
        waited_once = False
        sent += 1
        time.sleep(interval)


@router.get("/video")
def video_feed():
    """MJPEG video stream endpoint."""
    return StreamingResponse(
        mjpeg_generator(),
        media_type="multipart/x-mixed-replace; boundary=frame",
    )


@router.get("/frame")
async def get_current_frame():
    """Get the latest drawn frame as base64 JPEG."""
    b64 = camera_view.surface.get_base64_jpeg(quality=JPEG_QUALITY)
    if b64 is None:
        raise HTTPException(status_code=503, detail="No camera frame available")
    return JSONResponse({"image": b64, "ts": camera_view.surface.last_frame_ts})
