from __future__ import annotations

from pydantic import BaseModel


class ImageRecord(BaseModel):
    """Wire shape of one record in the remote image store."""

    id: str
    name: str | None = None
    note: str | None = None
    image_base64: str | None = None
    key_data: str | None = None
    group_label: str | None = None


class PersistedImage(BaseModel):
    """An image confirmed to exist in the store under a stable remote id."""

    remote_id: str
    name: str = ""
    note: str = ""
    image_bytes: bytes | None = None  # fetched lazily
    key_data: str = ""
    group_label: str | None = None

    @classmethod
    def from_record(cls, record: ImageRecord) -> "PersistedImage":
        return cls(
            remote_id=record.id,
            name=record.name or "",
            note=record.note or "",
            key_data=record.key_data or "",
            group_label=record.group_label,
        )
