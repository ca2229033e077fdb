"""Pending set: images picked locally but not yet written to the store.

Every image gets a generated ``local_id`` when it is added. The ``*_at``
methods accept a position (ordinal) instead and resolve it against the live
list on entry, so an ordinal must never be held across an ``await`` that may
straddle another mutation.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from imagestage.errors import NoImageInputError
from imagestage.models import PendingImage, SourceFile
from imagestage.services import codec

logger = logging.getLogger(__name__)


class PendingSetManager:
    """Owns the ordered list of pending images and their notes."""

    def __init__(self) -> None:
        self._images: List[PendingImage] = []
        # Notes written to positions that had no image yet, adopted on add.
        self._detached_notes: List[str] = []

    def __len__(self) -> int:
        return len(self._images)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(self, files: Iterable[SourceFile]) -> int:
        """Append the image-typed entries of *files*; return how many were added."""

        submitted = list(files)
        accepted: List[PendingImage] = []
        for source in submitted:
            mime_type = _resolve_mime_type(source)
            if not codec.is_image_type(mime_type):
                logger.debug("Skipping non-image input %s (%s)", source.name, mime_type)
                continue
            accepted.append(
                PendingImage(
                    data=source.data,
                    path=source.path,
                    mime_type=mime_type,
                    declared_name=source.name or None,
                    size=_source_size(source),
                )
            )

        if not accepted:
            raise NoImageInputError(len(submitted))

        for image in accepted:
            position = len(self._images)
            if position < len(self._detached_notes):
                image.note = self._detached_notes[position]
            self._images.append(image)
        logger.debug("Added %d pending image(s), %d total", len(accepted), len(self._images))
        return len(accepted)

    def remove(self, local_id: str) -> bool:
        for position, image in enumerate(self._images):
            if image.local_id == local_id:
                del self._images[position]
                if position < len(self._detached_notes):
                    del self._detached_notes[position]
                return True
        return False

    def remove_at(self, ordinal: int) -> bool:
        """Remove the image at *ordinal*; out-of-range positions are a no-op."""

        local_id = self.resolve(ordinal)
        if local_id is None:
            logger.debug("remove_at(%s) ignored, %d pending", ordinal, len(self._images))
            return False
        return self.remove(local_id)

    def set_note(self, local_id: str, text: str) -> bool:
        image = self.get(local_id)
        if image is None:
            return False
        image.note = text
        return True

    def set_note_at(self, ordinal: int, text: str) -> None:
        local_id = self.resolve(ordinal)
        if local_id is not None:
            self.set_note(local_id, text)
            return
        if ordinal < 0:
            return
        while len(self._detached_notes) <= ordinal:
            self._detached_notes.append("")
        self._detached_notes[ordinal] = text

    def clear(self) -> None:
        self._images.clear()
        self._detached_notes.clear()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def snapshot(self) -> List[PendingImage]:
        return list(self._images)

    def get(self, local_id: str) -> Optional[PendingImage]:
        for image in self._images:
            if image.local_id == local_id:
                return image
        return None

    def ordinal_of(self, local_id: str) -> Optional[int]:
        for position, image in enumerate(self._images):
            if image.local_id == local_id:
                return position
        return None

    def resolve(self, ordinal: int) -> Optional[str]:
        if 0 <= ordinal < len(self._images):
            return self._images[ordinal].local_id
        return None

    def display_name(self, image: PendingImage, ordinal: int) -> str:
        """Declared file name, or a generated one for pasted images."""

        if image.declared_name:
            return image.declared_name
        return f"Pasted_Image_{ordinal + 1}.{codec.extension_for(image.mime_type)}"


def _resolve_mime_type(source: SourceFile) -> str | None:
    if source.mime_type:
        return source.mime_type
    guessed = codec.guess_mime_type(source.name or (source.path.name if source.path else None))
    if guessed:
        return guessed
    if source.data is not None:
        return codec.sniff_mime_type(source.data)
    return None


def _source_size(source: SourceFile) -> int:
    if source.data is not None:
        return len(source.data)
    try:
        return source.path.stat().st_size  # type: ignore[union-attr]
    except OSError:
        # Unreadable files still join the list; the encode step reports them.
        return 0
