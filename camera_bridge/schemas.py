from typing import Optional

from pydantic import BaseModel


class CameraStatus(BaseModel):
    connected: bool
    camera_id: int
    frame_width: int
    frame_height: int
    scale: float
    fps: float
    frames_drawn: int
    last_frame_ts: Optional[float] = None


class ConnectRequest(BaseModel):
    width: Optional[int] = None
    height: Optional[int] = None
    camera_id: Optional[int] = None
