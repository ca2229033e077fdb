import asyncio

import pytest

from imagestage.errors import DecodeError
from imagestage.models import PendingImage
from imagestage.services.encoder import BatchEncodePipeline


def _images(*notes: str) -> list[PendingImage]:
    return [
        PendingImage(data=bytes(10 * (i + 1)), mime_type="image/png", size=10 * (i + 1), note=note)
        for i, note in enumerate(notes)
    ]


class GatedEncoder:
    """Encoder whose completions are released one image at a time."""

    def __init__(self, images):
        self.gates = {image.local_id: asyncio.Event() for image in images}
        self.done = {image.local_id: asyncio.Event() for image in images}
        self.finished: list[str] = []

    async def __call__(self, image: PendingImage) -> str:
        await self.gates[image.local_id].wait()
        self.finished.append(image.local_id)
        self.done[image.local_id].set()
        return f"enc-{image.local_id}"

    async def release(self, image: PendingImage) -> None:
        self.gates[image.local_id].set()
        await self.done[image.local_id].wait()


@pytest.mark.asyncio
async def test_publishes_in_submission_order_when_completions_are_reversed():
    images = _images("a", "b", "c")
    encoder = GatedEncoder(images)
    pipeline = BatchEncodePipeline(encoder)

    task = asyncio.create_task(pipeline.run(images, ["a.png", "b.png", "c.png"], lambda _: None))
    await asyncio.sleep(0)
    for image in reversed(images):
        await encoder.release(image)
    batch = await task

    assert encoder.finished == [image.local_id for image in reversed(images)]
    assert [item.index for item in batch.items] == [0, 1, 2]
    assert [item.name for item in batch.items] == ["a.png", "b.png", "c.png"]
    assert [item.note for item in batch.items] == ["a", "b", "c"]
    assert [item.size for item in batch.items] == [10, 20, 30]
    assert batch.first.name == "a.png"
    assert pipeline.ready is batch


@pytest.mark.asyncio
async def test_notes_are_read_live_at_completion():
    images = _images("old")
    live_notes = {images[0].local_id: "edited"}
    pipeline = BatchEncodePipeline(_instant_encode)

    batch = await pipeline.run(images, ["x.png"], live_notes.get)

    assert batch.items[0].note == "edited"


@pytest.mark.asyncio
async def test_decode_errors_are_skipped_but_counted():
    images = _images("a", "b", "c")

    async def encode(image):
        if image is images[1]:
            raise DecodeError("unreadable")
        return "ok"

    batch = await BatchEncodePipeline(encode).run(images, ["a", "b", "c"], lambda _: None)

    assert [item.index for item in batch.items] == [0, 2]
    assert batch.skipped == [images[1].local_id]


@pytest.mark.asyncio
async def test_superseded_batch_is_not_published():
    slow_images = _images("slow")
    encoder = GatedEncoder(slow_images)

    async def encode(image):
        if image.local_id in encoder.gates:
            return await encoder(image)
        return "fast"

    pipeline = BatchEncodePipeline(encode)
    slow = asyncio.create_task(pipeline.run(slow_images, ["slow.png"], lambda _: None))
    await asyncio.sleep(0)
    fast_batch = await pipeline.run(_images("fast"), ["fast.png"], lambda _: None)
    await encoder.release(slow_images[0])

    assert await slow is None
    assert pipeline.ready is fast_batch
    assert pipeline.ready.items[0].name == "fast.png"


@pytest.mark.asyncio
async def test_reset_publishes_an_empty_batch():
    pipeline = BatchEncodePipeline(_instant_encode)
    await pipeline.run(_images("a"), ["a.png"], lambda _: None)
    pipeline.reset()
    assert pipeline.ready.items == []
    assert pipeline.ready.first is None


async def _instant_encode(image: PendingImage) -> str:
    return "payload"


@pytest.mark.asyncio
async def test_empty_snapshot_publishes_an_empty_batch():
    pipeline = BatchEncodePipeline(_instant_encode)
    await pipeline.run(_images("a"), ["a.png"], lambda _: None)

    batch = await pipeline.run([], [], lambda _: None)

    assert batch is pipeline.ready
    assert batch.items == []
