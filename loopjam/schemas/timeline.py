from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

TrackSource = Literal["local", "remote"]


class TrackView(BaseModel):
    """Geometry handed to the renderer, one entry per track in display order."""

    index: int
    offset_px: float
    width_px: float
    is_dragging: bool = False
    source: TrackSource = "local"
