"""Frames-per-second measurement for delivered frames."""
from __future__ import annotations

import logging
import time
from typing import Optional

logger = logging.getLogger("camera-bridge.fps")

STEP = 20


class FpsMeter:
    def __init__(self) -> None:
        self._frames = 0
        self._prev: Optional[float] = None
        self._width = 0
        self._height = 0
        self.fps = 0.0
        self.text = ""

    def set_resolution(self, width: int, height: int) -> None:
        self._width = width
        self._height = height

    def measure(self) -> None:
        now = time.perf_counter()
        if self._prev is None:
            self._prev = now
            return

        self._frames += 1
        if self._frames % STEP != 0:
            return

        elapsed = now - self._prev
        self._prev = now
        if elapsed <= 0:
            return
        self.fps = STEP / elapsed
        if self._width and self._height:
            self.text = "%.2f FPS@%dx%d" % (self.fps, self._width, self._height)
        else:
            self.text = "%.2f FPS" % self.fps
        logger.debug(self.text)
