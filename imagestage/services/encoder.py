"""Batch encode pipeline for the pending set.

One encode task is started per image of a snapshot, without a concurrency
cap. Completions arrive in any order; each one bumps a counter and when the
counter reaches the snapshot length the results are sorted back into
submission order and published as the ready batch.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence

from imagestage.errors import DecodeError
from imagestage.models import EncodedImage, PendingImage, ReadyBatch
from imagestage.services import codec

logger = logging.getLogger(__name__)

EncodeFunc = Callable[[PendingImage], Awaitable[str]]
NoteLookup = Callable[[str], Optional[str]]


class BatchEncodePipeline:
    """Encodes snapshots of the pending list and publishes ordered batches."""

    def __init__(self, encode: EncodeFunc = codec.encode_image) -> None:
        self._encode = encode
        self._generation = 0
        self.ready = ReadyBatch()

    def reset(self) -> None:
        """Publish an empty batch and drop any run still in flight."""

        self._generation += 1
        self.ready = ReadyBatch()

    async def run(
        self,
        snapshot: Sequence[PendingImage],
        names: Sequence[str],
        note_lookup: NoteLookup,
    ) -> Optional[ReadyBatch]:
        """Encode *snapshot* and publish it.

        *names* holds the display name of each snapshot entry. Notes are read
        through *note_lookup* when each encode completes, so edits made while
        the batch is in flight are picked up; an image removed meanwhile keeps
        its snapshot note. Returns ``None`` when a newer run superseded this
        one before it finished.
        """

        self._generation += 1
        generation = self._generation
        total = len(snapshot)
        accumulator: List[EncodedImage] = []
        skipped: List[str] = []
        completed = 0
        published: List[ReadyBatch] = []

        def publish() -> None:
            if generation != self._generation:
                logger.debug("Discarding superseded batch %d", generation)
                return
            accumulator.sort(key=lambda item: item.index)
            self.ready = ReadyBatch(items=accumulator, skipped=skipped)
            published.append(self.ready)
            logger.debug("Published ready batch: %d encoded, %d skipped", len(accumulator), len(skipped))

        async def encode_one(ordinal: int, image: PendingImage) -> None:
            nonlocal completed
            try:
                content = await self._encode(image)
            except DecodeError as exc:
                logger.warning("Skipping %s from ready batch: %s", names[ordinal], exc)
                skipped.append(image.local_id)
            else:
                note = note_lookup(image.local_id)
                accumulator.append(
                    EncodedImage(
                        name=names[ordinal],
                        content=content,
                        size=image.size,
                        type=image.mime_type,
                        index=ordinal,
                        note=image.note if note is None else note,
                        local_id=image.local_id,
                    )
                )
            completed += 1
            if completed == total:
                publish()

        if not total:
            publish()
        await asyncio.gather(*(encode_one(ordinal, image) for ordinal, image in enumerate(snapshot)))
        return published[0] if published else None
