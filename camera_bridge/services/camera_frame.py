"""NV21 camera frames and their gray / color accessors."""
from __future__ import annotations

from typing import Optional

import cv2
import numpy as np


def nv21_to_rgba(yuv: np.ndarray, out: Optional[np.ndarray] = None) -> np.ndarray:
    """Convert a (height * 3 / 2, width) NV21 plane stack into an RGBA image."""
    if out is None:
        return cv2.cvtColor(yuv, cv2.COLOR_YUV2RGBA_NV21)
    return cv2.cvtColor(yuv, cv2.COLOR_YUV2RGBA_NV21, dst=out)


def mix_channels(rgba: np.ndarray) -> np.ndarray:
    """Fixed channel transform applied to every color frame.

    Blue becomes 2 * (B + G - R) with uint8 saturation after each step. Alpha
    is not merged back, so the result has three channels (R, G, B).
    """
    red, green, blue, _alpha = cv2.split(rgba)

    blue = cv2.add(blue, green)
    blue = cv2.subtract(blue, red)
    blue = cv2.add(blue, blue)

    return cv2.merge([red, green, blue])


class CameraFrame:
    """One slot of the frame chain seen as an image."""

    def __init__(self, yuv_frame_data: np.ndarray, width: int, height: int, slot: int = 0) -> None:
        expected = (height + height // 2, width)
        if yuv_frame_data.shape != expected:
            raise ValueError(f"Expected NV21 data of shape {expected}, got {yuv_frame_data.shape}")
        self.width = width
        self.height = height
        self.slot = slot
        self._yuv = yuv_frame_data
        self._rgba: Optional[np.ndarray] = None

    @property
    def yuv(self) -> np.ndarray:
        return self._yuv

    def gray(self) -> np.ndarray:
        return self._yuv[: self.height, : self.width]

    def rgba(self) -> np.ndarray:
        self._rgba = nv21_to_rgba(self._yuv, self._rgba)
        return mix_channels(self._rgba)

    def release(self) -> None:
        self._rgba = None
