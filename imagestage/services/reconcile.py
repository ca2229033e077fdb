from __future__ import annotations

from typing import Literal, Sequence

from imagestage.models import (
    DisplayItem,
    PendingImage,
    PendingItem,
    PersistedImage,
    PersistedItem,
    ReconciledView,
)


def reconcile(persisted: Sequence[PersistedImage], pending: Sequence[PendingImage]) -> ReconciledView:
    """Merge both sets into one display list, persisted items first."""

    items: list[DisplayItem] = [PersistedItem(ref=image) for image in persisted]
    items.extend(PendingItem(ref=image, local_index=index) for index, image in enumerate(pending))
    return ReconciledView(
        items=items,
        count=len(items),
        breakdown=count_breakdown(len(persisted), len(pending)),
    )


def count_breakdown(saved: int, new: int) -> str:
    total = saved + new
    if total == 0:
        return "0 images"
    noun = "image" if total == 1 else "images"
    return f"{total} {noun} ({saved} saved, {new} new)"


def route(item: DisplayItem) -> Literal["persisted", "pending"]:
    """Which manager owns mutations of *item*."""

    return "persisted" if item.remote_id else "pending"
