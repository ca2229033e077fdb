import io
from typing import Any, Sequence

import pytest
from PIL import Image

from imagestage.models import ImageRecord, SourceFile
from imagestage.services.confirm import StaticConfirmer
from imagestage.services.engine import StagingEngine
from imagestage.services.store import ImageStore, ImageStoreAPIError


class FakeImageStore(ImageStore):
    """In-memory store with switchable failures."""

    name = "fake"

    def __init__(self) -> None:
        self.records: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, Any]] = []
        self.fail_query = False
        self.fail_create = False
        self.fail_update = False
        self.fail_delete_ids: set[str] = set()
        self._next_id = 0

    def seed(self, key_data: str, name: str, note: str = "", image_base64: str | None = None) -> str:
        self._next_id += 1
        record_id = f"rec-{self._next_id}"
        self.records[record_id] = {
            "id": record_id,
            "name": name,
            "note": note,
            "key_data": key_data,
            "group_label": "seeded",
            "image_base64": image_base64,
        }
        return record_id

    async def query(self, key_data: str) -> list[ImageRecord]:
        self.calls.append(("query", key_data))
        if self.fail_query:
            raise ImageStoreAPIError(503, "query unavailable")
        return [
            ImageRecord.model_validate({k: v for k, v in data.items() if k != "image_base64"})
            for data in self.records.values()
            if data["key_data"] == key_data
        ]

    async def create_record(self, fields: dict[str, Any]) -> str:
        self.calls.append(("create", fields["name"]))
        if self.fail_create:
            raise ImageStoreAPIError(500, "create rejected")
        self._next_id += 1
        record_id = f"rec-{self._next_id}"
        self.records[record_id] = {"id": record_id, **fields}
        return record_id

    async def retrieve_record(self, record_id: str, select: Sequence[str] = ()) -> ImageRecord:
        self.calls.append(("retrieve", record_id))
        if record_id not in self.records:
            raise ImageStoreAPIError(404, "not found")
        data = self.records[record_id]
        if select:
            data = {field: data.get(field) for field in select}
        return ImageRecord.model_validate({**data, "id": record_id})

    async def update_record(self, record_id: str, fields: dict[str, Any]) -> None:
        self.calls.append(("update", record_id))
        if self.fail_update:
            raise ImageStoreAPIError(500, "update rejected")
        self.records[record_id].update(fields)

    async def delete_record(self, record_id: str) -> None:
        self.calls.append(("delete", record_id))
        if record_id in self.fail_delete_ids:
            raise ImageStoreAPIError(500, "delete rejected")
        self.records.pop(record_id, None)


def make_png(width: int = 4, height: int = 3, color: str = "red") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def image_source(name: str | None = "photo.png", size: int = 10, mime_type: str | None = "image/png") -> SourceFile:
    return SourceFile(name=name, mime_type=mime_type, data=bytes(size))


@pytest.fixture()
def store() -> FakeImageStore:
    return FakeImageStore()


@pytest.fixture()
def notifications() -> list[int]:
    return []


@pytest.fixture()
def engine(store, notifications) -> StagingEngine:
    return StagingEngine(
        store,
        confirm=StaticConfirmer(True),
        group_label="orders",
        notify=lambda: notifications.append(1),
    )


@pytest.fixture()
def png_bytes() -> bytes:
    return make_png()
