"""Thread-safe drawing surface holding the latest delivered frame."""
from __future__ import annotations

import base64
import threading
import time
from typing import Optional

import cv2
import numpy as np

_TO_BGR = {
    1: cv2.COLOR_GRAY2BGR,
    3: cv2.COLOR_RGB2BGR,
    4: cv2.COLOR_RGBA2BGR,
}


class FrameBuffer:
    """Latest drawn frame, stored in BGR order for encoding."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._frame: Optional[np.ndarray] = None
        self._frames_drawn = 0
        self._last_frame_ts = 0.0

    @property
    def frames_drawn(self) -> int:
        with self._lock:
            return self._frames_drawn

    @property
    def last_frame_ts(self) -> float:
        with self._lock:
            return self._last_frame_ts

    def draw(self, image: np.ndarray, scale: float = 0.0, text: Optional[str] = None) -> None:
        """Draw a gray, RGB or RGBA image, optionally scaled and captioned."""
        if image is None:
            return
        channels = 1 if image.ndim == 2 else image.shape[2]
        code = _TO_BGR.get(channels)
        if code is None:
            raise ValueError(f"Cannot draw an image with {channels} channels")
        frame = cv2.cvtColor(image, code)

        if scale > 0:
            width = max(1, int(round(frame.shape[1] * scale)))
            height = max(1, int(round(frame.shape[0] * scale)))
            frame = cv2.resize(frame, (width, height), interpolation=cv2.INTER_LINEAR)

        if text:
            cv2.putText(
                frame,
                text,
                (20, 30),
                cv2.FONT_HERSHEY_SIMPLEX,
                0.8,
                (0, 0, 255),
                2,
                cv2.LINE_AA,
            )

        with self._lock:
            self._frame = frame
            self._frames_drawn += 1
            self._last_frame_ts = time.time()

    def clear(self) -> None:
        with self._lock:
            self._frame = None

    def get(self) -> Optional[np.ndarray]:
        """Get a copy of the latest frame."""
        with self._lock:
            return self._frame.copy() if self._frame is not None else None

    def get_jpeg(self, quality: int = 80) -> Optional[bytes]:
        """Get the latest frame as JPEG bytes."""
        frame = self.get()
        if frame is None:
            return None
        ok, jpg = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, quality])
        if not ok:
            return None
        return jpg.tobytes()

    def get_base64_jpeg(self, quality: int = 75) -> Optional[str]:
        """Get the latest frame as base64-encoded JPEG."""
        jpg = self.get_jpeg(quality=quality)
        if jpg is None:
            return None
        return base64.b64encode(jpg).decode("ascii")
