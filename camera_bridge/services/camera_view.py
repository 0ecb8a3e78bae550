"""Bridge between a camera device and frame consumers.

The view opens a camera, picks a preview size that fits its surface, and
wires the device's preview callback to a FrameRelay. The relay's worker
thread hands every delivered frame to the listener (or converts it to color
when no listener is set) and draws the result on the surface.
"""
from __future__ import annotations

import logging
import threading
from typing import Iterable, Optional

import cv2
import numpy as np

from .camera import (
    FACING_BACK,
    FACING_FRONT,
    FOCUS_MODE_CONTINUOUS_VIDEO,
    NV21,
    CameraDevice,
    CameraError,
    CameraProvider,
    Size,
    bits_per_pixel,
)
from .camera_frame import CameraFrame
from .fps_meter import FpsMeter
from .frame_buffer import FrameBuffer
from .frame_relay import FrameRelay

logger = logging.getLogger("camera-bridge.view")

CAMERA_ID_ANY = -1
CAMERA_ID_BACK = 99
CAMERA_ID_FRONT = 98
MAX_UNSPECIFIED = -1

JOIN_TIMEOUT_SEC = 2.0


class CameraViewListener:
    """Receives view lifecycle events and every delivered frame."""

    def on_camera_view_started(self, width: int, height: int) -> None:
        pass

    def on_camera_view_stopped(self) -> None:
        pass

    def on_camera_frame(self, frame: CameraFrame) -> Optional[np.ndarray]:
        return frame.rgba()


def calculate_camera_frame_size(
    supported_sizes: Iterable[Size],
    surface_width: int,
    surface_height: int,
    max_width: int = MAX_UNSPECIFIED,
    max_height: int = MAX_UNSPECIFIED,
) -> Size:
    """Largest supported size that fits the surface and the configured maximum."""
    if max_width != MAX_UNSPECIFIED and max_width < surface_width:
        max_allowed_width = max_width
    else:
        max_allowed_width = surface_width
    if max_height != MAX_UNSPECIFIED and max_height < surface_height:
        max_allowed_height = max_height
    else:
        max_allowed_height = surface_height

    calc_width = 0
    calc_height = 0
    for size in supported_sizes:
        width, height = size.width, size.height
        if width <= max_allowed_width and height <= max_allowed_height:
            if width >= calc_width and height >= calc_height:
                calc_width = width
                calc_height = height
    return Size(calc_width, calc_height)


class CameraView:
    def __init__(
        self,
        provider: CameraProvider,
        camera_id: int = CAMERA_ID_ANY,
        listener: Optional[CameraViewListener] = None,
        surface: Optional[FrameBuffer] = None,
        match_parent: bool = True,
    ) -> None:
        self._provider = provider
        self._camera_index = camera_id
        self._listener = listener
        self.surface = surface if surface is not None else FrameBuffer()
        self._match_parent = match_parent

        self._lock = threading.RLock()
        self._camera: Optional[CameraDevice] = None
        self._buffer: Optional[bytearray] = None
        self._relay: Optional[FrameRelay] = None
        self._fps_meter: Optional[FpsMeter] = None

        self._max_width = MAX_UNSPECIFIED
        self._max_height = MAX_UNSPECIFIED
        self.frame_width = 0
        self.frame_height = 0
        self.scale = 0.0

    @property
    def camera_id(self) -> int:
        return self._camera_index

    @property
    def connected(self) -> bool:
        return self._relay is not None and self._relay.running

    @property
    def fps(self) -> float:
        return self._fps_meter.fps if self._fps_meter is not None else 0.0

    def set_listener(self, listener: Optional[CameraViewListener]) -> None:
        self._listener = listener

    def set_camera_index(self, camera_id: int) -> None:
        self._camera_index = camera_id

    def set_max_frame_size(self, max_width: int, max_height: int) -> None:
        self._max_width = max_width
        self._max_height = max_height

    def enable_fps_meter(self) -> None:
        if self._fps_meter is None:
            self._fps_meter = FpsMeter()
            self._fps_meter.set_resolution(self.frame_width, self.frame_height)

    def disable_fps_meter(self) -> None:
        self._fps_meter = None

    def connect_camera(self, width: int, height: int) -> bool:
        """Open the camera for a surface of width x height and start the worker.

        A view that is already connected is disconnected first.
        """
        with self._lock:
            if self._camera is not None:
                self.disconnect_camera()

            logger.debug("Connecting to camera")
            if not self.initialize_camera(width, height):
                self.release_camera()
                return False

            logger.debug("Starting processing thread")
            self._relay.start()

        if self._listener is not None:
            self._listener.on_camera_view_started(self.frame_width, self.frame_height)
        logger.info(
            "Camera connected at %dx%d (scale %.3f)", self.frame_width, self.frame_height, self.scale
        )
        return True

    def disconnect_camera(self) -> None:
        logger.debug("Disconnecting from camera")
        with self._lock:
            relay = self._relay
            if relay is not None:
                relay.stop()
                logger.debug("Waiting for thread")
                if not relay.join(timeout=JOIN_TIMEOUT_SEC):
                    logger.warning(
                        "Processing thread did not stop within %.1fs", JOIN_TIMEOUT_SEC
                    )
                    # The worker may still read the slots; leave them to it.
                    self._relay = None

            was_connected = self._camera is not None
            self.release_camera()

        if was_connected and self._listener is not None:
            self._listener.on_camera_view_stopped()

    def initialize_camera(self, width: int, height: int) -> bool:
        logger.debug("Initialize camera")
        with self._lock:
            self._camera = self._open_camera()
            if self._camera is None:
                return False

            try:
                return self._configure_camera(width, height)
            except Exception:
                logger.exception("Camera configuration failed")
                return False

    def release_camera(self) -> None:
        with self._lock:
            if self._camera is not None:
                self._camera.stop_preview()
                self._camera.set_preview_callback(None)
                self._camera.release()
            self._camera = None
            if self._relay is not None:
                self._relay.release()
            self._relay = None
            self._buffer = None

    def on_preview_frame(self, data: bytearray, camera: Optional[CameraDevice]) -> None:
        logger.debug("Preview frame received. Frame size: %d", len(data))
        relay = self._relay
        if relay is None:
            return
        try:
            relay.on_frame_ready(data)
        finally:
            if camera is not None and self._buffer is not None:
                camera.add_callback_buffer(self._buffer)

    def deliver_and_draw_frame(self, frame: CameraFrame) -> None:
        if self._listener is not None:
            modified = self._listener.on_camera_frame(frame)
        else:
            modified = frame.rgba()

        if modified is not None:
            text = self._fps_meter.text if self._fps_meter is not None else None
            try:
                self.surface.draw(modified, self.scale, text)
            except (cv2.error, ValueError) as exc:
                logger.error("Cannot draw frame %s: %s", getattr(modified, "shape", None), exc)

        if self._fps_meter is not None:
            self._fps_meter.measure()

    def _open_camera(self) -> Optional[CameraDevice]:
        if self._camera_index == CAMERA_ID_ANY:
            return self._open_any_camera()

        local_index = self._camera_index
        if self._camera_index == CAMERA_ID_BACK:
            logger.info("Trying to open back camera")
            local_index = self._find_facing(FACING_BACK, CAMERA_ID_BACK)
        elif self._camera_index == CAMERA_ID_FRONT:
            logger.info("Trying to open front camera")
            local_index = self._find_facing(FACING_FRONT, CAMERA_ID_FRONT)

        if local_index == CAMERA_ID_BACK:
            logger.error("Back camera not found!")
            return None
        if local_index == CAMERA_ID_FRONT:
            logger.error("Front camera not found!")
            return None

        logger.debug("Trying to open camera #%d", local_index)
        try:
            return self._provider.open(local_index)
        except CameraError as exc:
            logger.error("Camera #%d failed to open: %s", local_index, exc)
            return None

    def _open_any_camera(self) -> Optional[CameraDevice]:
        logger.debug("Trying to open default camera")
        try:
            return self._provider.open()
        except CameraError as exc:
            logger.error("Camera is not available (in use or does not exist): %s", exc)

        for index in range(self._provider.number_of_cameras()):
            logger.debug("Trying to open camera #%d", index)
            try:
                return self._provider.open(index)
            except CameraError as exc:
                logger.error("Camera #%d failed to open: %s", index, exc)
        return None

    def _find_facing(self, facing: int, not_found: int) -> int:
        for index in range(self._provider.number_of_cameras()):
            if self._provider.camera_info(index).facing == facing:
                return index
        return not_found

    def _configure_camera(self, width: int, height: int) -> bool:
        camera = self._camera
        params = camera.get_parameters()
        sizes = params.supported_preview_sizes
        if not sizes:
            logger.error("Camera reports no supported preview sizes")
            return False

        frame_size = calculate_camera_frame_size(
            sizes, width, height, self._max_width, self._max_height
        )
        if frame_size.width == 0 or frame_size.height == 0:
            logger.error("No preview size fits %dx%d", width, height)
            return False

        params.preview_format = NV21
        logger.debug("Set preview size to %dx%d", frame_size.width, frame_size.height)
        params.preview_size = frame_size
        params.recording_hint = True
        if params.supported_focus_modes and FOCUS_MODE_CONTINUOUS_VIDEO in params.supported_focus_modes:
            params.focus_mode = FOCUS_MODE_CONTINUOUS_VIDEO

        camera.set_parameters(params)
        params = camera.get_parameters()

        self.frame_width = params.preview_size.width
        self.frame_height = params.preview_size.height

        if self._match_parent:
            self.scale = min(height / self.frame_height, width / self.frame_width)
        else:
            self.scale = 0.0

        if self._fps_meter is not None:
            self._fps_meter.set_resolution(self.frame_width, self.frame_height)

        size = self.frame_width * self.frame_height * bits_per_pixel(params.preview_format) // 8
        self._buffer = bytearray(size)
        self._relay = FrameRelay(self.frame_width, self.frame_height, self.deliver_and_draw_frame)

        camera.add_callback_buffer(self._buffer)
        camera.set_preview_callback_with_buffer(self.on_preview_frame)

        logger.debug("startPreview")
        camera.start_preview()
        return True
