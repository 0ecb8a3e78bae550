"""Camera devices that push NV21 preview frames to a callback thread."""
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, replace
from typing import Callable, NamedTuple, Optional

import cv2
import numpy as np

logger = logging.getLogger("camera-bridge.camera")

NV21 = 17
FOCUS_MODE_FIXED = "fixed"
FOCUS_MODE_AUTO = "auto"
FOCUS_MODE_CONTINUOUS_VIDEO = "continuous-video"

FACING_BACK = 0
FACING_FRONT = 1
_FACING_NAMES = {"back": FACING_BACK, "front": FACING_FRONT}


class CameraError(RuntimeError):
    """Camera is busy, absent or rejected a configuration."""


class Size(NamedTuple):
    width: int
    height: int


@dataclass(frozen=True)
class CameraInfo:
    facing: int


@dataclass
class CameraParameters:
    supported_preview_sizes: Optional[list[Size]]
    supported_focus_modes: Optional[list[str]] = None
    preview_size: Size = Size(0, 0)
    preview_format: int = NV21
    focus_mode: str = FOCUS_MODE_FIXED
    recording_hint: bool = False


PreviewCallback = Callable[[bytearray, "CameraDevice"], None]


def bits_per_pixel(image_format: int) -> int:
    if image_format == NV21:
        return 12
    raise ValueError(f"Unsupported image format: {image_format}")


def bgr_to_nv21(frame: np.ndarray) -> np.ndarray:
    """Pack a BGR image into a flat NV21 buffer (Y plane, then interleaved V/U)."""
    height, width = frame.shape[:2]
    if width % 2 or height % 2:
        raise ValueError(f"NV21 needs even dimensions, got {width}x{height}")

    i420 = cv2.cvtColor(frame, cv2.COLOR_BGR2YUV_I420).reshape(-1)
    y_size = width * height
    chroma_size = y_size // 4

    nv21 = np.empty(y_size + 2 * chroma_size, dtype=np.uint8)
    nv21[:y_size] = i420[:y_size]
    nv21[y_size::2] = i420[y_size + chroma_size :]
    nv21[y_size + 1 :: 2] = i420[y_size : y_size + chroma_size]
    return nv21


class CameraDevice:
    """An opened camera with a preview thread.

    With-buffer delivery follows the usual preview contract: each frame fills
    the oldest queued buffer and hands it to the callback; the callback owner
    has to queue it again. Frames that arrive with no buffer queued are
    dropped.
    """

    def __init__(
        self,
        params: CameraParameters,
        fps: int = 30,
        on_close: Optional[Callable[[], None]] = None,
    ) -> None:
        self._params = params
        self._fps = max(1, int(fps))
        self._on_close = on_close
        self._lock = threading.Lock()
        self._buffers: deque[bytearray] = deque()
        self._callback: Optional[PreviewCallback] = None
        self._use_buffers = False
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._released = False
        self.frames_dropped = 0

    @property
    def previewing(self) -> bool:
        return self._running

    def get_parameters(self) -> CameraParameters:
        return replace(self._params)

    def set_parameters(self, params: CameraParameters) -> None:
        if params.preview_format != NV21:
            raise CameraError(f"Unsupported preview format: {params.preview_format}")
        width, height = params.preview_size
        if width % 2 or height % 2:
            raise CameraError(f"NV21 preview needs even dimensions, got {width}x{height}")
        supported = self._params.supported_preview_sizes or []
        if Size(*params.preview_size) not in supported:
            raise CameraError(
                "Unsupported preview size %dx%d" % tuple(params.preview_size)
            )
        actual = self._apply_preview_size(Size(*params.preview_size))
        self._params = replace(params, preview_size=actual)

    def add_callback_buffer(self, buffer: bytearray) -> None:
        with self._lock:
            self._buffers.append(buffer)

    def set_preview_callback_with_buffer(self, callback: Optional[PreviewCallback]) -> None:
        with self._lock:
            self._callback = callback
            self._use_buffers = True

    def set_preview_callback(self, callback: Optional[PreviewCallback]) -> None:
        with self._lock:
            self._callback = callback
            self._use_buffers = False
            self._buffers.clear()

    def start_preview(self) -> None:
        if self._released:
            raise CameraError("Camera has been released")
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(
            target=self._preview_loop, name="camera-preview", daemon=True
        )
        self._thread.start()
        logger.info(
            "Preview started at %dx%d", self._params.preview_size.width,
            self._params.preview_size.height,
        )

    def stop_preview(self) -> None:
        self._running = False
        if (
            self._thread is not None
            and self._thread.is_alive()
            and self._thread is not threading.current_thread()
        ):
            self._thread.join(timeout=2.0)
        self._thread = None

    def release(self) -> None:
        if self._released:
            return
        self.stop_preview()
        self.set_preview_callback(None)
        try:
            self._close()
        finally:
            self._released = True
            if self._on_close is not None:
                self._on_close()
        logger.info("Camera released.")

    def _preview_loop(self) -> None:
        frame_interval = 1.0 / self._fps

        while self._running:
            loop_start = time.perf_counter()
            frame = self._grab()
            if frame is not None:
                try:
                    self._dispatch(frame)
                except Exception:
                    logger.exception("Preview callback failed")

            elapsed = time.perf_counter() - loop_start
            sleep_for = frame_interval - elapsed
            if sleep_for > 0:
                time.sleep(sleep_for)

    def _dispatch(self, frame: np.ndarray) -> None:
        width, height = self._params.preview_size
        if frame.shape[1] != width or frame.shape[0] != height:
            frame = cv2.resize(frame, (width, height), interpolation=cv2.INTER_AREA)
        nv21 = bgr_to_nv21(frame)

        with self._lock:
            callback = self._callback
            if callback is None:
                return
            if self._use_buffers:
                if not self._buffers:
                    self.frames_dropped += 1
                    return
                buffer = self._buffers.popleft()
            else:
                buffer = bytearray(nv21.size)
            too_small = len(buffer) < nv21.size
            if too_small:
                self.frames_dropped += 1

        if too_small:
            logger.warning(
                "Callback buffer too small (%d < %d). Frame dropped.", len(buffer), nv21.size
            )
            return
        buffer[: nv21.size] = nv21.tobytes()
        callback(buffer, self)

    def _grab(self) -> Optional[np.ndarray]:
        raise NotImplementedError

    def _apply_preview_size(self, size: Size) -> Size:
        return size

    def _close(self) -> None:
        pass


class CameraProvider:
    """Enumerates cameras and opens them by index."""

    def __init__(self, facings: Optional[list[str]] = None) -> None:
        self._facings = [_FACING_NAMES.get(name, FACING_BACK) for name in facings or []]
        self._lock = threading.Lock()
        self._in_use: set[int] = set()

    def number_of_cameras(self) -> int:
        raise NotImplementedError

    def camera_info(self, index: int) -> CameraInfo:
        if index < 0 or index >= self.number_of_cameras():
            raise CameraError(f"No camera #{index}")
        if index < len(self._facings):
            return CameraInfo(facing=self._facings[index])
        return CameraInfo(facing=FACING_BACK)

    def open(self, index: Optional[int] = None) -> CameraDevice:
        """Open camera `index`, or the first camera when no index is given."""
        if index is None:
            index = 0
        if index < 0 or index >= self.number_of_cameras():
            raise CameraError(f"Camera #{index} does not exist")

        with self._lock:
            if index in self._in_use:
                raise CameraError(f"Camera #{index} is already in use")
            device = self._open_device(index, lambda: self._free(index))
            self._in_use.add(index)

        logger.info("Opened camera #%d", index)
        return device

    def _free(self, index: int) -> None:
        with self._lock:
            self._in_use.discard(index)

    def _open_device(self, index: int, on_close: Callable[[], None]) -> CameraDevice:
        raise NotImplementedError


class OpenCVCamera(CameraDevice):
    """Preview device reading BGR frames from a cv2.VideoCapture."""

    def __init__(
        self,
        capture: cv2.VideoCapture,
        params: CameraParameters,
        fps: int,
        on_close: Optional[Callable[[], None]] = None,
    ) -> None:
        super().__init__(params, fps, on_close)
        self._cap = capture
        self._last_read_error_log = 0.0

    def _grab(self) -> Optional[np.ndarray]:
        ok, frame = self._cap.read()
        if ok and frame is not None:
            return frame

        now = time.time()
        if now - self._last_read_error_log >= 2.0:
            logger.warning("Camera frame read failed.")
            self._last_read_error_log = now
        return None

    def _apply_preview_size(self, size: Size) -> Size:
        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, float(size.width))
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, float(size.height))
        # Frames are resized to the requested preview size before packing.
        return size

    def _close(self) -> None:
        self._cap.release()


class OpenCVCameraProvider(CameraProvider):
    """Cameras backed by OpenCV capture indices."""

    def __init__(
        self,
        indices: list[int],
        facings: Optional[list[str]] = None,
        preview_sizes: Optional[list[tuple[int, int]]] = None,
        fps: int = 30,
    ) -> None:
        super().__init__(facings)
        self._indices = list(indices)
        self._preview_sizes = [Size(*size) for size in preview_sizes or []]
        self._fps = fps

    def number_of_cameras(self) -> int:
        return len(self._indices)

    def _open_device(self, index: int, on_close: Callable[[], None]) -> CameraDevice:
        source = self._indices[index]
        cap = cv2.VideoCapture(source)
        if not cap.isOpened():
            cap.release()
            raise CameraError(f"Could not open video source {source}")

        try:
            cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        except cv2.error:
            pass
        cap.set(cv2.CAP_PROP_FPS, float(self._fps))

        params = CameraParameters(
            supported_preview_sizes=list(self._preview_sizes) or None,
            supported_focus_modes=[FOCUS_MODE_FIXED],
        )
        return OpenCVCamera(cap, params, self._fps, on_close)


class DemoCamera(CameraDevice):
    """Preview device producing synthetic placeholder frames."""

    def __init__(
        self,
        params: CameraParameters,
        fps: int,
        on_close: Optional[Callable[[], None]] = None,
    ) -> None:
        super().__init__(params, fps, on_close)
        self._tick = 0

    def _grab(self) -> Optional[np.ndarray]:
        width, height = self._params.preview_size
        if width <= 0 or height <= 0:
            return None
        self._tick += 1
        return build_placeholder_frame(width, height, self._tick)


class DemoCameraProvider(CameraProvider):
    """Cameras that need no hardware; used for demo mode and tests."""

    def __init__(
        self,
        count: int = 1,
        facings: Optional[list[str]] = None,
        preview_sizes: Optional[list[tuple[int, int]]] = None,
        fps: int = 30,
    ) -> None:
        super().__init__(facings)
        self._count = count
        self._preview_sizes = [Size(*size) for size in preview_sizes or [(640, 480)]]
        self._fps = fps

    def number_of_cameras(self) -> int:
        return self._count

    def _open_device(self, index: int, on_close: Callable[[], None]) -> CameraDevice:
        params = CameraParameters(
            supported_preview_sizes=list(self._preview_sizes),
            supported_focus_modes=[FOCUS_MODE_AUTO, FOCUS_MODE_CONTINUOUS_VIDEO],
        )
        return DemoCamera(params, self._fps, on_close)


def build_placeholder_frame(width: int, height: int, tick: int = 0) -> np.ndarray:
    frame = np.zeros((height, width, 3), dtype=np.uint8)
    x_gradient = np.tile(np.linspace(10, 65, width, dtype=np.uint8), (height, 1))
    y_gradient = np.tile(np.linspace(5, 48, height, dtype=np.uint8)[:, None], (1, width))
    frame[:, :, 0] = x_gradient // 2
    frame[:, :, 1] = x_gradient + y_gradient
    frame[:, :, 2] = y_gradient // 4

    accent = (0, 255, 208)
    dim = (0, 140, 120)
    margin = max(4, min(width, height) // 12)
    scale = max(0.3, width / 1280.0)

    cv2.rectangle(frame, (margin, margin), (width - margin, height - margin), dim, 2)
    cv2.line(frame, (width // 2, margin), (width // 2, height - margin), dim, 1)
    cv2.line(frame, (margin, height // 2), (width - margin, height // 2), dim, 1)

    sweep = margin + (tick * 4) % max(1, width - 2 * margin)
    cv2.line(frame, (sweep, margin), (sweep, height - margin), accent, 2)

    cv2.putText(
        frame,
        "Camera Bridge Demo Feed",
        (margin + 8, margin + int(40 * scale)),
        cv2.FONT_HERSHEY_SIMPLEX,
        1.2 * scale,
        accent,
        2,
        cv2.LINE_AA,
    )
    cv2.putText(
        frame,
        f"LOCAL TIME {time.strftime('%H:%M:%S')}",
        (margin + 8, height - margin - 10),
        cv2.FONT_HERSHEY_SIMPLEX,
        0.8 * scale,
        accent,
        1,
        cv2.LINE_AA,
    )
    return frame
