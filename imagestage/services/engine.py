"""Staging engine: pending + persisted sets behind one host-facing surface.

The engine keeps the grouping key, routes each request to the manager that
owns the item, republishes the ready batch after every pending mutation and
turns every recoverable failure into a status message. Outputs are derived
from the managers on every read and never cached.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Literal, Optional, Tuple

from imagestage.errors import DecodeError, ImageStageError, NoImageInputError, RemoteQueryError, RemoteWriteError
from imagestage.models import DisplayItem, EngineOutputs, ReconciledView, SourceFile, StatusMessage
from imagestage.services import codec
from imagestage.services.confirm import Confirmer
from imagestage.services.encoder import BatchEncodePipeline, EncodeFunc
from imagestage.services.gesture import ZoomPanGesture
from imagestage.services.pending import PendingSetManager
from imagestage.services.persisted import PersistedSetManager
from imagestage.services.reconcile import reconcile, route
from imagestage.services.store import ImageStore

logger = logging.getLogger(__name__)

KeyChangePolicy = Literal["discard", "prompt", "keep"]
Size = Tuple[float, float]


@dataclass
class ImageViewer:
    """A full-size persisted image opened for inspection."""

    remote_id: str
    name: str
    content: str  # base64
    gesture: ZoomPanGesture


class StagingEngine:
    """Host-facing façade over the pending and persisted image sets."""

    def __init__(
        self,
        store: ImageStore,
        *,
        confirm: Confirmer,
        group_label: str = "unknown_table",
        key_change_policy: KeyChangePolicy = "discard",
        notify: Optional[Callable[[], None]] = None,
        encode: Optional[EncodeFunc] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.pending = PendingSetManager()
        self.persisted = PersistedSetManager(store, self.pending)
        self.pipeline = BatchEncodePipeline(encode or codec.encode_image)
        self.confirmer = confirm
        self.group_label = group_label
        self.key_change_policy = key_change_policy
        self.key = ""
        self.status = StatusMessage()
        self._notify_cb = notify
        self._clock = clock

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    def view(self) -> ReconciledView:
        return reconcile(self.persisted.images, self.pending.snapshot())

    def outputs(self) -> EngineOutputs:
        ready = self.pipeline.ready
        first = ready.first
        return EngineOutputs(
            key_data=self.key,
            file_name=first.name if first else "",
            file_content=first.content if first else "",
            upload_status="ready" if ready.items else "",
            images_list=json.dumps([item.model_dump() for item in ready.items]) if ready.items else "",
            images_count=len(self.persisted) + len(self.pending),
        )

    # ------------------------------------------------------------------
    # Grouping key
    # ------------------------------------------------------------------

    async def set_key(self, key: str) -> None:
        if key == self.key:
            return
        pending_changed = False
        if len(self.pending) and self._should_discard_pending():
            self.pending.clear()
            pending_changed = True
        self.key = key
        # The old key's records must not leak into the new scope, even if the load fails.
        self.persisted.reset(key)
        if key:
            await self.reload()
        if pending_changed:
            await self._publish_pending()
        else:
            self._notify()

    async def reload(self) -> None:
        if not self.key:
            return
        try:
            await self.persisted.load_by_key(self.key)
        except RemoteQueryError as exc:
            self._report(f"Could not load saved images: {exc}", "error")

    def _should_discard_pending(self) -> bool:
        if self.key_change_policy == "keep":
            return False
        if self.key_change_policy == "prompt":
            return self.confirmer.confirm(f"Discard {len(self.pending)} unsaved image(s)?")
        return True

    # ------------------------------------------------------------------
    # Pending mutations
    # ------------------------------------------------------------------

    async def add_files(self, files: Iterable[SourceFile]) -> int:
        try:
            added = self.pending.add(files)
        except NoImageInputError as exc:
            self._report(f"Please select image files only ({exc})", "error")
            return 0
        self._report(f"Added {added} image(s)", "success")
        await self._publish_pending()
        return added

    async def remove(self, local_id: str) -> bool:
        removed = self.pending.remove(local_id)
        if removed:
            self._report("Removed image", "info")
            await self._publish_pending()
        return removed

    async def remove_at(self, ordinal: int) -> bool:
        removed = self.pending.remove_at(ordinal)
        if removed:
            self._report("Removed image", "info")
            await self._publish_pending()
        return removed

    async def set_note(self, local_id: str, text: str) -> None:
        if self.pending.set_note(local_id, text):
            await self._publish_pending()

    async def set_note_at(self, ordinal: int, text: str) -> None:
        self.pending.set_note_at(ordinal, text)
        await self._publish_pending()

    # ------------------------------------------------------------------
    # Remote mutations
    # ------------------------------------------------------------------

    async def save(self, local_id: str) -> Optional[str]:
        """Persist one pending image; returns its remote id on success."""

        if not self._require_key():
            return None
        try:
            remote_id = await self.persisted.create(local_id, self.key, self.group_label)
        except (RemoteWriteError, DecodeError) as exc:
            self._report(f"Error saving image: {exc}", "error")
            return None
        except RemoteQueryError as exc:
            # Saved, but the follow-up reload failed; the list is stale until the next one.
            self._report(f"Image saved, but reloading failed: {exc}", "error")
            await self._publish_pending()
            return None
        if remote_id is not None:
            self._report("Image saved", "success")
            await self._publish_pending()
        return remote_id

    async def save_all(self, *, concurrent: bool = False) -> int:
        """Persist every pending image; returns how many were saved.

        Creates run one at a time unless *concurrent* is set; either way the
        persisted list is reloaded once at the end.
        """

        snapshot = self.pending.snapshot()
        if not snapshot:
            self._report("No new images to save", "info")
            return 0
        if not self._require_key():
            return 0

        key = self.key
        names = {image.local_id: self.pending.display_name(image, ordinal) for ordinal, image in enumerate(snapshot)}
        saved = 0
        failure: Optional[ImageStageError] = None

        if concurrent:
            results = await asyncio.gather(
                *(self._create_without_reload(local_id, key, name) for local_id, name in names.items()),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, (RemoteWriteError, DecodeError)):
                    failure = failure or result
                elif isinstance(result, BaseException):
                    raise result
                elif result is not None:
                    saved += 1
        else:
            for local_id, name in names.items():
                try:
                    remote_id = await self._create_without_reload(local_id, key, name)
                except (RemoteWriteError, DecodeError) as exc:
                    failure = exc
                    break
                if remote_id is None:
                    # Left the pending set while the batch was running.
                    continue
                saved += 1
                self._report(f"Saved {saved}/{len(names)} image(s)...", "info")

        if saved:
            await self.reload()
        await self._publish_pending()
        if failure is not None:
            self._report(f"Error saving images: saved {saved} of {len(names)} ({failure})", "error")
        else:
            self._report(f"Saved {saved} image(s)", "success")
        return saved

    async def _create_without_reload(self, local_id: str, key: str, name: str) -> Optional[str]:
        return await self.persisted.create(local_id, key, self.group_label, name=name, reload=False)

    async def update_persisted_note(self, remote_id: str, text: str) -> bool:
        try:
            await self.persisted.update_note(remote_id, text)
        except RemoteWriteError as exc:
            self._report(f"Error updating note: {exc}", "error")
            return False
        self._notify()
        return True

    async def delete_persisted(self, remote_id: str, *, confirm: Optional[Confirmer] = None) -> bool:
        try:
            deleted = await self.persisted.delete_one(remote_id, confirm or self.confirmer)
        except RemoteWriteError as exc:
            self._report(f"Error deleting image: {exc}", "error")
            return False
        if deleted:
            self._report("Image deleted", "success")
            self._notify()
        return deleted

    async def edit_note(self, item: DisplayItem, text: str) -> None:
        if route(item) == "persisted":
            await self.update_persisted_note(item.ref.remote_id, text)
        else:
            await self.set_note(item.ref.local_id, text)

    async def delete(self, item: DisplayItem) -> bool:
        if route(item) == "persisted":
            return await self.delete_persisted(item.ref.remote_id)
        return await self.remove(item.ref.local_id)

    async def clear_all(self, *, confirm: Optional[Confirmer] = None) -> bool:
        """Delete every saved image of the key and drop every pending one."""

        new, saved = len(self.pending), len(self.persisted)
        if new and saved:
            message = f"Delete all {new} unsaved image(s) and {saved} saved image(s)?"
        elif new:
            message = f"Delete all {new} unsaved image(s)?"
        elif saved:
            message = f"Delete all {saved} saved image(s) from the store?"
        else:
            self._report("No images to delete", "info")
            return False
        if not (confirm or self.confirmer).confirm(message):
            return False

        try:
            await self.persisted.delete_all([image.remote_id for image in self.persisted.images])
        except RemoteWriteError as exc:
            self._report(f"Error deleting images: {exc}", "error")
            self._notify()
            return False
        self.pending.clear()
        self._report("Deleted all images", "success")
        await self._publish_pending()
        return True

    # ------------------------------------------------------------------
    # Viewer
    # ------------------------------------------------------------------

    async def open_viewer(self, remote_id: str, viewport: Size, element: Optional[Size] = None) -> Optional[ImageViewer]:
        """Fetch a saved image at full size and auto-fit a gesture tracker to it."""

        try:
            image = await self.persisted.fetch_image(remote_id)
        except (RemoteQueryError, DecodeError) as exc:
            self._report(f"Error showing image: {exc}", "error")
            return None

        width, height = element or viewport
        gesture = ZoomPanGesture(width, height, clock=self._clock)
        if image.image_bytes:
            try:
                image_width, image_height = codec.image_size(image.image_bytes)
            except DecodeError as exc:
                logger.warning("Auto-fit skipped for %s: %s", remote_id, exc)
            else:
                gesture.auto_fit(viewport[0], viewport[1], image_width, image_height)
        return ImageViewer(
            remote_id=remote_id,
            name=image.name or "image.png",
            content=codec.encode_bytes(image.image_bytes) if image.image_bytes else "",
            gesture=gesture,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _publish_pending(self) -> None:
        snapshot = self.pending.snapshot()
        if not snapshot:
            self.pipeline.reset()
            self._notify()
            return
        names = [self.pending.display_name(image, ordinal) for ordinal, image in enumerate(snapshot)]
        batch = await self.pipeline.run(snapshot, names, self._live_note)
        if batch is None:
            return
        if batch.skipped:
            self._report(f"{len(batch.skipped)} image(s) could not be read", "error")
        self._notify()

    def _live_note(self, local_id: str) -> Optional[str]:
        image = self.pending.get(local_id)
        return image.note if image is not None else None

    def _require_key(self) -> bool:
        if self.key:
            return True
        self._report("No grouping key set", "error")
        return False

    def _report(self, text: str, level: Literal["success", "error", "info"]) -> None:
        self.status = StatusMessage(text=text, level=level)
        if level == "error":
            logger.warning(text)
        else:
            logger.info(text)

    def _notify(self) -> None:
        if self._notify_cb is not None:
            self._notify_cb()
