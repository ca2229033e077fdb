import pytest
from fastapi.testclient import TestClient

from conftest import make_png
from imagestage.handlers import images_handler
from imagestage.main import app


@pytest.fixture()
def client(engine):
    app.dependency_overrides[images_handler.get_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()


def _upload(client, *files):
    return client.post("/images/pending", files=[("files", f) for f in files])


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_upload_lists_pending_items(client):
    resp = _upload(
        client,
        ("a.png", make_png(), "image/png"),
        ("notes.txt", b"hello", "text/plain"),
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["added"] == 1
    assert body["breakdown"] == "1 image (0 saved, 1 new)"
    assert body["items"][0]["kind"] == "pending"
    assert body["items"][0]["name"] == "a.png"

    outputs = client.get("/images/outputs").json()
    assert outputs["upload_status"] == "ready"
    assert outputs["file_name"] == "a.png"


def test_upload_without_images_is_rejected(client):
    resp = _upload(client, ("notes.txt", b"hello", "text/plain"))
    assert resp.status_code == 400


def test_pending_note_and_removal(client):
    local_id = _upload(client, ("a.png", make_png(), "image/png")).json()["items"][0]["id"]

    resp = client.patch(f"/images/pending/{local_id}/note", json={"note": "porch"})
    assert resp.json()["items"][0]["note"] == "porch"

    assert client.delete(f"/images/pending/{local_id}").json()["count"] == 0
    assert client.delete(f"/images/pending/{local_id}").status_code == 404
    assert client.patch("/images/pending/nope/note", json={"note": "x"}).status_code == 404


def test_save_requires_a_key(client):
    _upload(client, ("a.png", make_png(), "image/png"))
    assert client.post("/images/pending/save").status_code == 409


def test_save_all_and_delete_persisted(client, store):
    client.put("/images/key", json={"key": "order-1"})
    _upload(client, ("a.png", make_png(), "image/png"), ("b.png", make_png(), "image/png"))

    body = client.post("/images/pending/save").json()
    assert body["saved"] == 2
    assert [item["kind"] for item in body["items"]] == ["persisted", "persisted"]

    remote_id = body["items"][0]["id"]
    declined = client.delete(f"/images/persisted/{remote_id}").json()
    assert declined["deleted"] is False
    confirmed = client.delete(f"/images/persisted/{remote_id}", params={"confirm": "true"}).json()
    assert confirmed["deleted"] is True
    assert confirmed["count"] == 1


def test_store_failure_is_a_bad_gateway(client, store):
    client.put("/images/key", json={"key": "order-1"})
    local_id = _upload(client, ("a.png", make_png(), "image/png")).json()["items"][0]["id"]
    store.fail_create = True

    resp = client.post(f"/images/pending/{local_id}/save")

    assert resp.status_code == 502
    assert client.get("/images").json()["count"] == 1


def test_clear_all_needs_confirmation(client, store):
    store.seed("order-1", "one.png")
    client.put("/images/key", json={"key": "order-1"})

    assert client.delete("/images").json()["cleared"] is False
    body = client.delete("/images", params={"confirm": "true"}).json()
    assert body["cleared"] is True
    assert store.records == {}
