from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from imagestage.models import ImageRecord

# Fields accepted by create_record / update_record.
RECORD_FIELDS = ("name", "note", "image_base64", "key_data", "group_label")


class ImageStoreError(Exception):
    """Raised by a backend when the store cannot complete a request."""


class ImageStoreAPIError(ImageStoreError):
    """Raised when the remote API answers with an error status."""

    def __init__(self, status: int, message: str, response_json: Optional[dict[str, Any]] = None):
        super().__init__(f"Image store API error {status}: {message}")
        self.status = status
        self.response_json = response_json or {}


class ImageStore(ABC):
    """Abstract interface for a remote per-key image collection store."""

    name: str = "abstract"

    @abstractmethod
    async def query(self, key_data: str) -> list[ImageRecord]:
        """Return every record whose ``key_data`` equals *key_data*."""

    @abstractmethod
    async def create_record(self, fields: dict[str, Any]) -> str:
        """Create a record and return its server-issued id."""

    @abstractmethod
    async def retrieve_record(self, record_id: str, select: Sequence[str] = ()) -> ImageRecord:
        """Fetch one record, optionally limited to the *select* fields."""

    @abstractmethod
    async def update_record(self, record_id: str, fields: dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def delete_record(self, record_id: str) -> None:
        ...

    async def close(self) -> None:
        """Release transport resources; a no-op unless the backend holds any."""


def check_fields(fields: dict[str, Any]) -> dict[str, Any]:
    unknown = set(fields) - set(RECORD_FIELDS)
    if unknown:
        raise ValueError(f"Unknown record field(s): {', '.join(sorted(unknown))}")
    return fields
