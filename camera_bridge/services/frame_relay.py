"""Double-buffered hand-off of preview frames from the camera thread to a worker."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional

import numpy as np

from .camera_frame import CameraFrame

logger = logging.getLogger("camera-bridge.relay")


@dataclass
class RelayState:
    """State shared by the producer callback and the consumer loop."""

    slots: list[np.ndarray]
    chain_idx: int = 0
    frame_ready: bool = False
    stop_requested: bool = False
    cond: threading.Condition = field(default_factory=threading.Condition)


class FrameRelay:
    """Republishes the latest complete NV21 frame to a single consumer thread.

    The producer always writes into ``slots[chain_idx]``. When the consumer
    wakes it flips ``chain_idx`` and delivers the other slot, so a slot is
    never written while the consumer is reading it. Frames produced while the
    consumer is busy overwrite each other in the write slot.
    """

    def __init__(self, width: int, height: int, deliver: Callable[[CameraFrame], None]) -> None:
        self.width = width
        self.height = height
        self._deliver = deliver
        slots = [np.zeros((height + height // 2, width), dtype=np.uint8) for _ in range(2)]
        self._frames = [CameraFrame(slot, width, height, index) for index, slot in enumerate(slots)]
        self._state = RelayState(slots=slots)
        self._thread: Optional[threading.Thread] = None

    @property
    def frame_size(self) -> int:
        return self.width * (self.height + self.height // 2)

    @property
    def frames(self) -> list[CameraFrame]:
        return list(self._frames)

    @property
    def chain_index(self) -> int:
        with self._state.cond:
            return self._state.chain_idx

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        state = self._state
        with state.cond:
            state.frame_ready = False
            state.stop_requested = False
        self._thread = threading.Thread(target=self._consume_loop, name="camera-worker", daemon=True)
        self._thread.start()
        logger.debug("Started processing thread")

    def on_frame_ready(self, data: bytes | bytearray | memoryview) -> None:
        """Copy a raw frame into the write slot and wake the consumer."""
        raw = np.frombuffer(data, dtype=np.uint8)
        if raw.size < self.frame_size:
            raise ValueError(f"Frame buffer too small: {raw.size} < {self.frame_size}")
        raw = raw[: self.frame_size].reshape(self.height + self.height // 2, self.width)

        state = self._state
        with state.cond:
            np.copyto(state.slots[state.chain_idx], raw)
            state.frame_ready = True
            state.cond.notify()

    def stop(self) -> None:
        state = self._state
        with state.cond:
            state.stop_requested = True
            state.cond.notify()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the consumer thread; False when it is still running."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        if thread.is_alive():
            return False
        self._thread = None
        return True

    def release(self) -> None:
        for frame in self._frames:
            frame.release()
        self._frames = []
        self._state.slots = []

    def _consume_loop(self) -> None:
        state = self._state
        while True:
            with state.cond:
                while not state.frame_ready and not state.stop_requested:
                    state.cond.wait()
                stopping = state.stop_requested
                ready_slot = None
                if state.frame_ready:
                    state.chain_idx = 1 - state.chain_idx
                    state.frame_ready = False
                    ready_slot = 1 - state.chain_idx

            if stopping:
                break
            if ready_slot is not None:
                try:
                    self._deliver(self._frames[ready_slot])
                except Exception:
                    logger.exception("Frame delivery failed")

        logger.debug("Finish processing thread")
