"""Firebase Realtime Database backend for the image store.

Records are stored under the following path structure:

/{root}/{record_id}  ->  {id, name, note, image_base64, key_data, group_label}

Ids come from ``push()``. Listing by key uses an ``equal_to`` query on the
``key_data`` child, so the database rules should index that child.
The Admin SDK is synchronous; every call is pushed to a worker thread.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Sequence

import firebase_admin
from firebase_admin import credentials, db
from firebase_admin.exceptions import FirebaseError
from pydantic import ValidationError

from imagestage.config import Settings
from imagestage.models import ImageRecord

from .base import ImageStore, ImageStoreAPIError, ImageStoreError, check_fields

logger = logging.getLogger(__name__)


def initialise_app(settings: Settings) -> None:
    """Initialise the Firebase Admin SDK exactly once."""

    if firebase_admin._apps:  # type: ignore[attr-defined]
        return
    try:
        if settings.firebase_credentials_json:
            # Accept path or JSON string
            cred_obj: credentials.Base = (
                credentials.Certificate(settings.firebase_credentials_json)
                if settings.firebase_credentials_json.endswith(".json")
                else credentials.Certificate(json.loads(settings.firebase_credentials_json))
            )
        else:
            # Attempt default credentials (useful on Cloud Run with workload identity)
            cred_obj = credentials.ApplicationDefault()

        firebase_admin.initialize_app(
            cred_obj,
            {
                "databaseURL": f"https://{settings.project_id}.firebaseio.com"
                if settings.project_id
                else None,
            },
        )
        logger.info("Firebase Admin SDK initialised.")
    except Exception as exc:  # pragma: no cover
        logger.exception("Failed to initialise Firebase Admin SDK: %s", exc)
        raise


class FirebaseImageStore(ImageStore):  # pylint: disable=too-few-public-methods
    """Wrapper around Realtime Database operations on image records."""

    name = "firebase"

    def __init__(self, reference: db.Reference) -> None:
        self._root = reference

    @classmethod
    def from_settings(cls, settings: Settings) -> "FirebaseImageStore":
        initialise_app(settings)
        return cls(db.reference(f"/{settings.firebase_root.strip('/')}"))

    # -------------------------------------------------------------------
    # ImageStore
    # -------------------------------------------------------------------

    async def query(self, key_data: str) -> list[ImageRecord]:
        query = self._root.order_by_child("key_data").equal_to(key_data)
        raw_items = await self._call(query.get) or {}
        # raw_items is a dict keyed by record id -> data
        return [_to_record(record_id, data) for record_id, data in raw_items.items()]

    async def create_record(self, fields: dict[str, Any]) -> str:
        data = dict(check_fields(fields))
        # push() returns a reference with a generated key
        push_ref = await self._call(self._root.push)
        data["id"] = push_ref.key  # Store the generated ID inside the document
        await self._call(push_ref.set, data)
        logger.debug("Created image record id=%s", push_ref.key)
        return push_ref.key  # type: ignore[return-value]

    async def retrieve_record(self, record_id: str, select: Sequence[str] = ()) -> ImageRecord:
        data = await self._call(self._root.child(record_id).get)
        if data is None:
            raise ImageStoreAPIError(404, f"Image record {record_id} not found")
        if select and isinstance(data, dict):
            data = {field: data.get(field) for field in select}
        return _to_record(record_id, data)

    async def update_record(self, record_id: str, fields: dict[str, Any]) -> None:
        await self._call(self._root.child(record_id).update, dict(check_fields(fields)))

    async def delete_record(self, record_id: str) -> None:
        await self._call(self._root.child(record_id).delete)

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------

    @staticmethod
    async def _call(func, *args: Any) -> Any:
        try:
            return await asyncio.to_thread(func, *args)
        except (FirebaseError, ValueError) as exc:
            raise ImageStoreError(f"Firebase request failed: {exc}") from exc


def _to_record(record_id: str, data: Any) -> ImageRecord:
    if not isinstance(data, dict):
        raise ImageStoreError(f"Malformed image record {record_id}: expected an object")
    try:
        return ImageRecord.model_validate({**data, "id": record_id})
    except ValidationError as exc:
        raise ImageStoreError(f"Malformed image record {record_id}: {exc}") from exc
