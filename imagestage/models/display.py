from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from .image_file import PendingImage
from .record import PersistedImage


class PersistedItem(BaseModel):
    kind: Literal["persisted"] = "persisted"
    ref: PersistedImage

    @property
    def remote_id(self) -> str | None:
        return self.ref.remote_id


class PendingItem(BaseModel):
    kind: Literal["pending"] = "pending"
    ref: PendingImage
    local_index: int = Field(..., ge=0)

    @property
    def remote_id(self) -> str | None:
        return None


DisplayItem = Annotated[Union[PersistedItem, PendingItem], Field(discriminator="kind")]


class ReconciledView(BaseModel):
    """Merged display list: persisted items first, then pending ones."""

    items: list[DisplayItem] = []
    count: int = 0
    breakdown: str = "0 images"  # e.g., "5 images (2 saved, 3 new)"
