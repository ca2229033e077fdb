import pytest

from imagestage.models import PendingImage, PersistedImage
from imagestage.services.reconcile import count_breakdown, reconcile, route


def test_persisted_items_come_first():
    persisted = [PersistedImage(remote_id="r1", name="saved.png")]
    pending = [PendingImage(mime_type="image/png"), PendingImage(mime_type="image/png")]

    view = reconcile(persisted, pending)

    assert [item.kind for item in view.items] == ["persisted", "pending", "pending"]
    assert [getattr(item, "local_index", None) for item in view.items] == [None, 0, 1]
    assert view.count == 3
    assert view.breakdown == "3 images (1 saved, 2 new)"


def test_empty_view():
    view = reconcile([], [])
    assert view.items == []
    assert view.count == 0
    assert view.breakdown == "0 images"


@pytest.mark.parametrize(
    "saved, new, text",
    [(1, 0, "1 image (1 saved, 0 new)"), (0, 2, "2 images (0 saved, 2 new)")],
)
def test_count_breakdown(saved, new, text):
    assert count_breakdown(saved, new) == text


def test_route_by_remote_id():
    view = reconcile([PersistedImage(remote_id="r1")], [PendingImage(mime_type="image/png")])
    assert [route(item) for item in view.items] == ["persisted", "pending"]
