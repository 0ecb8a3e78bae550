"""Services package."""
from __future__ import annotations

import logging

from ..config import (
    CAMERA_FACINGS,
    CAMERA_ID,
    CAMERA_INDICES,
    CAMERA_SOURCE,
    CAPTURE_FPS,
    MATCH_PARENT,
    MAX_FRAME_HEIGHT,
    MAX_FRAME_WIDTH,
    PREVIEW_SIZES,
    SHOW_FPS,
)
from .camera import (
    CameraDevice,
    CameraError,
    CameraProvider,
    DemoCameraProvider,
    OpenCVCameraProvider,
)
from .camera_frame import CameraFrame, mix_channels, nv21_to_rgba
from .camera_view import (
    CAMERA_ID_ANY,
    CAMERA_ID_BACK,
    CAMERA_ID_FRONT,
    CameraView,
    CameraViewListener,
    calculate_camera_frame_size,
)
from .frame_buffer import FrameBuffer
from .frame_relay import FrameRelay

logger = logging.getLogger("camera-bridge")


def build_provider(source: str = CAMERA_SOURCE) -> CameraProvider:
    """OpenCV cameras by default; "demo" (or "placeholder") needs no hardware."""
    if source.strip().lower() in {"demo", "placeholder", "none", "off"}:
        logger.info("Camera source set to demo mode. Using placeholder frames only.")
        return DemoCameraProvider(
            count=max(1, len(CAMERA_FACINGS)),
            facings=CAMERA_FACINGS,
            preview_sizes=PREVIEW_SIZES,
            fps=CAPTURE_FPS,
        )
    return OpenCVCameraProvider(
        CAMERA_INDICES,
        facings=CAMERA_FACINGS,
        preview_sizes=PREVIEW_SIZES,
        fps=CAPTURE_FPS,
    )


def build_camera_view(provider: CameraProvider | None = None) -> CameraView:
    view = CameraView(
        provider if provider is not None else build_provider(),
        camera_id=CAMERA_ID,
        surface=FrameBuffer(),
        match_parent=MATCH_PARENT,
    )
    view.set_max_frame_size(MAX_FRAME_WIDTH, MAX_FRAME_HEIGHT)
    if SHOW_FPS:
        view.enable_fps_meter()
    return view


# Global singleton instance
camera_view = build_camera_view()

__all__ = [
    "CAMERA_ID_ANY",
    "CAMERA_ID_BACK",
    "CAMERA_ID_FRONT",
    "CameraDevice",
    "CameraError",
    "CameraFrame",
    "CameraProvider",
    "CameraView",
    "CameraViewListener",
    "DemoCameraProvider",
    "FrameBuffer",
    "FrameRelay",
    "OpenCVCameraProvider",
    "build_camera_view",
    "build_provider",
    "calculate_camera_frame_size",
    "camera_view",
    "mix_channels",
    "nv21_to_rgba",
]
