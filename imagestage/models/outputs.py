from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class EncodedImage(BaseModel):
    """One entry of the ready payload, serialised with the host's JSON keys."""

    name: str
    content: str  # base64, no data-URL prefix
    size: int = Field(..., ge=0)
    type: str  # MIME type
    index: int = Field(..., ge=0)  # source ordinal at batch start
    note: str = ""
    local_id: str = Field("", exclude=True)


class ReadyBatch(BaseModel):
    items: list[EncodedImage] = []
    skipped: list[str] = []  # local ids whose encode raised DecodeError

    @property
    def first(self) -> EncodedImage | None:
        return self.items[0] if self.items else None


class EngineOutputs(BaseModel):
    """Values the host reads after being notified."""

    key_data: str = ""
    file_name: str = ""
    file_content: str = ""
    upload_status: Literal["", "ready"] = ""
    images_list: str = ""  # JSON array of EncodedImage
    images_count: int = 0


class StatusMessage(BaseModel):
    text: str = ""
    level: Literal["success", "error", "info"] = "info"
