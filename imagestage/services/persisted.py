"""Persisted set: image records of the active key as last loaded from the store.

``load_by_key`` is the single source of truth. After a create the list is
reloaded rather than patched, so server-side defaults are never guessed
locally; note updates and deletes patch the list in place once the store has
accepted them.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from imagestage.errors import RemoteQueryError, RemoteWriteError
from imagestage.models import PersistedImage
from imagestage.services import codec
from imagestage.services.confirm import Confirmer
from imagestage.services.pending import PendingSetManager
from imagestage.services.store import ImageStore, ImageStoreError

logger = logging.getLogger(__name__)

DELETE_ONE_PROMPT = "Delete this image from the store?"


class PersistedSetManager:
    """Owns the list of remote records for the active key."""

    def __init__(self, store: ImageStore, pending: PendingSetManager) -> None:
        self._store = store
        self._pending = pending
        self._images: List[PersistedImage] = []
        # Key the list is scoped to; None until the first reset().
        self.key: Optional[str] = None
        self._generation = 0

    def __len__(self) -> int:
        return len(self._images)

    @property
    def images(self) -> List[PersistedImage]:
        return list(self._images)

    def get(self, remote_id: str) -> Optional[PersistedImage]:
        for image in self._images:
            if image.remote_id == remote_id:
                return image
        return None

    def reset(self, key: Optional[str] = None) -> None:
        """Empty the list and scope it to *key*; loads still in flight are dropped."""

        self._images = []
        self.key = key
        self._generation += 1

    # ------------------------------------------------------------------
    # Remote operations
    # ------------------------------------------------------------------

    async def load_by_key(self, key: str) -> List[PersistedImage]:
        """Replace the list with the records of *key*.

        A load for a key other than the scoped one is ignored, and a load
        overtaken by a newer load or reset is discarded when it returns.
        """

        if self.key is not None and key != self.key:
            logger.debug("Ignoring load for %r, scoped to %r", key, self.key)
            return self.images
        self._generation += 1
        generation = self._generation
        try:
            records = await self._store.query(key)
        except ImageStoreError as exc:
            if generation != self._generation:
                logger.debug("Ignoring failed stale load for %r: %s", key, exc)
                return self.images
            logger.warning("Loading images for key %r failed: %s", key, exc)
            raise RemoteQueryError(f"Could not load images for {key!r}") from exc
        if generation != self._generation:
            logger.debug("Discarding stale load for %r", key)
            return self.images
        self._images = [PersistedImage.from_record(record) for record in records]
        logger.debug("Loaded %d persisted image(s) for key %r", len(self._images), key)
        return self.images

    async def create(
        self,
        local_id: str,
        key: str,
        group_label: str,
        *,
        name: str | None = None,
        reload: bool = True,
    ) -> Optional[str]:
        """Write one pending image to the store and return the new remote id.

        On success the pending image is removed and, unless *reload* is
        false, the persisted list is reloaded. Unknown ids are ignored.
        """

        image = self._pending.get(local_id)
        if image is None:
            logger.debug("create(%s) ignored, not pending", local_id)
            return None
        if name is None:
            ordinal = self._pending.ordinal_of(local_id) or 0
            name = self._pending.display_name(image, ordinal)

        payload = await codec.encode_image(image)
        fields = {
            "name": name,
            "note": image.note,
            "key_data": key,
            "group_label": group_label,
            "image_base64": payload,
        }
        try:
            remote_id = await self._store.create_record(fields)
        except ImageStoreError as exc:
            logger.warning("Saving %s failed: %s", name, exc)
            raise RemoteWriteError(f"Could not save {name}") from exc

        logger.info("Saved %s as record %s", name, remote_id)
        self._pending.remove(local_id)
        if reload:
            await self.load_by_key(key)
        return remote_id

    async def update_note(self, remote_id: str, text: str) -> None:
        try:
            await self._store.update_record(remote_id, {"note": text})
        except ImageStoreError as exc:
            # No rollback: the displayed note stays ahead of the store until the next reload.
            logger.warning("Updating note of %s failed: %s", remote_id, exc)
            raise RemoteWriteError(f"Could not update note of {remote_id}") from exc
        image = self.get(remote_id)
        if image is not None:
            image.note = text

    async def delete_one(self, remote_id: str, confirm: Confirmer) -> bool:
        """Delete one record after the user confirms; ``False`` if declined."""

        if not confirm.confirm(DELETE_ONE_PROMPT):
            return False
        await self._delete(remote_id)
        return True

    async def delete_all(self, ids: Iterable[str]) -> int:
        """Delete *ids* one after another; stop at the first failure."""

        completed = 0
        for remote_id in list(ids):
            try:
                await self._delete(remote_id)
            except RemoteWriteError as exc:
                raise RemoteWriteError(
                    f"Deleted {completed} image(s) before a failure", completed=completed
                ) from exc
            completed += 1
        return completed

    async def fetch_image(self, remote_id: str) -> PersistedImage:
        """Fetch and cache the full payload of one record."""

        try:
            record = await self._store.retrieve_record(remote_id, select=["name", "image_base64"])
        except ImageStoreError as exc:
            logger.warning("Fetching image %s failed: %s", remote_id, exc)
            raise RemoteQueryError(f"Could not fetch image {remote_id}") from exc

        image = self.get(remote_id)
        if image is None:
            image = PersistedImage.from_record(record)
        if record.image_base64:
            image.image_bytes = codec.decode_payload(record.image_base64)
        if record.name:
            image.name = record.name
        return image

    async def _delete(self, remote_id: str) -> None:
        try:
            await self._store.delete_record(remote_id)
        except ImageStoreError as exc:
            logger.warning("Deleting %s failed: %s", remote_id, exc)
            raise RemoteWriteError(f"Could not delete {remote_id}") from exc
        self._images = [image for image in self._images if image.remote_id != remote_id]
        logger.info("Deleted record %s", remote_id)
