from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import (
    AUTO_CONNECT,
    CAMERA_SOURCE,
    CORS_ORIGINS,
    LOG_LEVEL,
    SURFACE_HEIGHT,
    SURFACE_WIDTH,
)
from .routers import camera_router, stream_router
from .services import camera_view

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger("camera-bridge")


@asynccontextmanager
async def lifespan(_: FastAPI):
    logger.info("Starting camera bridge...")
    if AUTO_CONNECT:
        ok = await asyncio.to_thread(camera_view.connect_camera, SURFACE_WIDTH, SURFACE_HEIGHT)
        if not ok:
            logger.warning("Camera could not be connected. POST /camera/connect to retry.")
    logger.info("Camera bridge is live.")

    yield

    logger.info("Shutting down camera bridge...")
    await asyncio.to_thread(camera_view.disconnect_camera)


app = FastAPI(
    title="Camera Bridge",
    description="Relays camera preview frames to image-processing consumers",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(camera_router)
app.include_router(stream_router)


@app.get("/health")
async def health() -> JSONResponse:
    return JSONResponse(
        {
            "status": "ok",
            "camera_source": CAMERA_SOURCE,
            "camera_connected": camera_view.connected,
            "frames_drawn": camera_view.surface.frames_drawn,
        }
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("camera_bridge.main:app", host="0.0.0.0", port=8000)
