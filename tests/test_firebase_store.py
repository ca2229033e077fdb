from unittest.mock import MagicMock

import pytest
from firebase_admin.exceptions import UnavailableError

from imagestage.services.store import ImageStoreAPIError, ImageStoreError
from imagestage.services.store.firebase_store import FirebaseImageStore


@pytest.fixture()
def root() -> MagicMock:
    return MagicMock(name="reference")


@pytest.mark.asyncio
async def test_query_filters_on_key_data(root):
    root.order_by_child.return_value.equal_to.return_value.get.return_value = {
        "-Nabc": {"id": "-Nabc", "name": "a.png", "key_data": "K"},
    }
    store = FirebaseImageStore(root)

    records = await store.query("K")

    root.order_by_child.assert_called_once_with("key_data")
    root.order_by_child.return_value.equal_to.assert_called_once_with("K")
    assert [(record.id, record.name) for record in records] == [("-Nabc", "a.png")]


@pytest.mark.asyncio
async def test_query_with_no_matches(root):
    root.order_by_child.return_value.equal_to.return_value.get.return_value = None
    assert await FirebaseImageStore(root).query("K") == []


@pytest.mark.asyncio
async def test_create_stores_the_pushed_key(root):
    push_ref = root.push.return_value
    push_ref.key = "-Nnew"

    record_id = await FirebaseImageStore(root).create_record({"name": "a.png", "key_data": "K"})

    assert record_id == "-Nnew"
    push_ref.set.assert_called_once_with({"name": "a.png", "key_data": "K", "id": "-Nnew"})


@pytest.mark.asyncio
async def test_retrieve_missing_record_is_not_found(root):
    root.child.return_value.get.return_value = None
    with pytest.raises(ImageStoreAPIError) as excinfo:
        await FirebaseImageStore(root).retrieve_record("-Ngone")
    assert excinfo.value.status == 404


@pytest.mark.asyncio
async def test_retrieve_applies_select(root):
    root.child.return_value.get.return_value = {"name": "a.png", "note": "n", "image_base64": "AAAA"}
    record = await FirebaseImageStore(root).retrieve_record("-N1", select=["image_base64"])
    assert record.id == "-N1"
    assert record.image_base64 == "AAAA"
    assert record.note is None


@pytest.mark.asyncio
async def test_update_and_delete(root):
    store = FirebaseImageStore(root)
    await store.update_record("-N1", {"note": "hi"})
    await store.delete_record("-N1")

    root.child.assert_called_with("-N1")
    root.child.return_value.update.assert_called_once_with({"note": "hi"})
    root.child.return_value.delete.assert_called_once_with()


@pytest.mark.asyncio
async def test_sdk_errors_become_store_errors(root):
    root.child.return_value.delete.side_effect = UnavailableError("down")
    with pytest.raises(ImageStoreError):
        await FirebaseImageStore(root).delete_record("-N1")


@pytest.mark.asyncio
@pytest.mark.parametrize("stored", [{"name": "a.png", "note": 5}, "not-a-record"])
async def test_malformed_records_become_store_errors(root, stored):
    root.order_by_child.return_value.equal_to.return_value.get.return_value = {"-N1": stored}
    with pytest.raises(ImageStoreError):
        await FirebaseImageStore(root).query("K")
