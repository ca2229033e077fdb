from __future__ import annotations

from pathlib import Path
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator


class SourceFile(BaseModel):
    """A file handed over by the host: picked, dropped or pasted."""

    name: str | None = None  # pasted images usually have none
    mime_type: str | None = None  # sniffed from the bytes when missing
    data: bytes | None = None
    path: Path | None = None

    @model_validator(mode="after")
    def _one_source(self) -> "SourceFile":
        if (self.data is None) == (self.path is None):
            raise ValueError("exactly one of data or path must be given")
        return self


class PendingImage(BaseModel):
    """A locally selected image that has not been written to the store yet."""

    local_id: str = Field(default_factory=lambda: uuid4().hex)
    data: bytes | None = None
    path: Path | None = None
    mime_type: str
    declared_name: str | None = None
    note: str = ""
    size: int = Field(0, ge=0)
