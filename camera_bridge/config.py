"""Configuration settings loaded from environment variables."""
from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


def _as_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _as_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _as_sizes(name: str, default: str) -> list[tuple[int, int]]:
    """Parse "1280x720,640x480" into [(1280, 720), (640, 480)].

    Malformed entries and odd sizes (NV21 needs even dimensions) are skipped.
    """
    raw = os.getenv(name, default)
    sizes: list[tuple[int, int]] = []
    for part in raw.split(","):
        token = part.strip().lower()
        if "x" not in token:
            continue
        width, _, height = token.partition("x")
        try:
            size = (int(width), int(height))
        except ValueError:
            continue
        if size[0] > 0 and size[1] > 0 and size[0] % 2 == 0 and size[1] % 2 == 0:
            sizes.append(size)
    return sizes


def _as_camera_id(name: str, default: str) -> int:
    raw = os.getenv(name, default).strip().lower()
    aliases = {"any": -1, "back": 99, "front": 98}
    if raw in aliases:
        return aliases[raw]
    try:
        return int(raw)
    except ValueError:
        return aliases[default]


# Camera settings
CAMERA_SOURCE: str = os.getenv("CAMERA_SOURCE", "opencv").strip().lower()
CAMERA_ID: int = _as_camera_id("CAMERA_ID", "any")
CAMERA_INDICES: list[int] = [
    int(token)
    for token in os.getenv("CAMERA_INDICES", "0").split(",")
    if token.strip().lstrip("-").isdigit()
]
CAMERA_FACINGS: list[str] = [
    token.strip().lower()
    for token in os.getenv("CAMERA_FACINGS", "back").split(",")
    if token.strip()
]
PREVIEW_SIZES: list[tuple[int, int]] = _as_sizes(
    "PREVIEW_SIZES", "1920x1080,1280x720,960x540,640x480,320x240"
)
CAPTURE_FPS: int = max(1, _as_int("CAPTURE_FPS", 30))

# View settings
SURFACE_WIDTH: int = _as_int("SURFACE_WIDTH", 1280)
SURFACE_HEIGHT: int = _as_int("SURFACE_HEIGHT", 720)
MAX_FRAME_WIDTH: int = _as_int("MAX_FRAME_WIDTH", -1)
MAX_FRAME_HEIGHT: int = _as_int("MAX_FRAME_HEIGHT", -1)
MATCH_PARENT: bool = _as_bool("MATCH_PARENT", True)
SHOW_FPS: bool = _as_bool("SHOW_FPS", False)
AUTO_CONNECT: bool = _as_bool("AUTO_CONNECT", True)

# Streaming settings
JPEG_QUALITY: int = max(30, min(95, _as_int("JPEG_QUALITY", 80)))
STREAM_FPS: int = max(1, _as_int("STREAM_FPS", 30))

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

_origins = os.getenv("CORS_ORIGINS", "*").strip()
CORS_ORIGINS = (
    ["*"]
    if _origins == "*"
    else [origin.strip() for origin in _origins.split(",") if origin.strip()]
)
