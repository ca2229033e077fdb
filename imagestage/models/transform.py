from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

MIN_SCALE = 0.2
MAX_SCALE = 4.0


class GestureTransform(BaseModel):
    scale: float = Field(1.0, ge=MIN_SCALE, le=MAX_SCALE)
    translate_x: float = 0.0
    translate_y: float = 0.0


class ZoomIndicator(BaseModel):
    text: str
    tone: Literal["small", "large", "normal", ""] = ""
    visible: bool = True
