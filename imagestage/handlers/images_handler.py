"""HTTP surface over the staging engine for hosts that are not in-process."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel

from imagestage.config import get_settings
from imagestage.models import DisplayItem, SourceFile, StatusMessage
from imagestage.services import codec
from imagestage.services.confirm import StaticConfirmer
from imagestage.services.engine import StagingEngine
from imagestage.services.store import get_store

router = APIRouter(prefix="/images", tags=["images"])
logger = logging.getLogger(__name__)


class KeyUpdate(BaseModel):
    key: str


class NoteUpdate(BaseModel):
    note: str


@lru_cache()
def get_engine() -> StagingEngine:  # pragma: no cover
    settings = get_settings()
    return StagingEngine(
        get_store(),
        # Deletes are confirmed per request through the ``confirm`` query parameter.
        confirm=StaticConfirmer(False),
        group_label=settings.group_label,
        key_change_policy=settings.key_change_policy,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _item_summary(item: DisplayItem) -> dict[str, Any]:
    if item.kind == "persisted":
        return {
            "kind": item.kind,
            "id": item.ref.remote_id,
            "name": item.ref.name,
            "note": item.ref.note,
        }
    return {
        "kind": item.kind,
        "id": item.ref.local_id,
        "index": item.local_index,
        "name": item.ref.declared_name or "",
        "note": item.ref.note,
        "size": item.ref.size,
        "size_label": codec.format_file_size(item.ref.size),
        "type": item.ref.mime_type,
    }


def _state(engine: StagingEngine) -> dict[str, Any]:
    view = engine.view()
    return {
        "key": engine.key,
        "count": view.count,
        "breakdown": view.breakdown,
        "items": [_item_summary(item) for item in view.items],
        "status": engine.status.model_dump(),
    }


def _require_key(engine: StagingEngine) -> None:
    if not engine.key:
        raise HTTPException(status_code=409, detail="No grouping key set")


def _raise_on_error(engine: StagingEngine, before: StatusMessage) -> None:
    """Turn an error reported during this request into a 502."""
    if engine.status is not before and engine.status.level == "error":
        raise HTTPException(status_code=502, detail=engine.status.text)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("")
async def get_images(engine: StagingEngine = Depends(get_engine)):
    return _state(engine)


@router.get("/outputs")
async def get_outputs(engine: StagingEngine = Depends(get_engine)):
    return engine.outputs().model_dump()


@router.put("/key")
async def set_key(body: KeyUpdate, engine: StagingEngine = Depends(get_engine)):
    await engine.set_key(body.key)
    return _state(engine)


@router.post("/pending")
async def add_pending(
    files: list[UploadFile] = File(...),
    engine: StagingEngine = Depends(get_engine),
):
    sources = [
        SourceFile(name=upload.filename or None, mime_type=upload.content_type, data=await upload.read())
        for upload in files
    ]
    added = await engine.add_files(sources)
    if not added:
        raise HTTPException(status_code=400, detail=engine.status.text)
    return {"added": added, **_state(engine)}


@router.patch("/pending/{local_id}/note")
async def set_pending_note(local_id: str, body: NoteUpdate, engine: StagingEngine = Depends(get_engine)):
    if engine.pending.get(local_id) is None:
        raise HTTPException(status_code=404, detail="Pending image not found")
    await engine.set_note(local_id, body.note)
    return _state(engine)


@router.delete("/pending/{local_id}")
async def remove_pending(local_id: str, engine: StagingEngine = Depends(get_engine)):
    if not await engine.remove(local_id):
        raise HTTPException(status_code=404, detail="Pending image not found")
    return _state(engine)


@router.post("/pending/save")
async def save_all_pending(concurrent: bool = False, engine: StagingEngine = Depends(get_engine)):
    _require_key(engine)
    before = engine.status
    saved = await engine.save_all(concurrent=concurrent)
    _raise_on_error(engine, before)
    return {"saved": saved, **_state(engine)}


@router.post("/pending/{local_id}/save")
async def save_pending(local_id: str, engine: StagingEngine = Depends(get_engine)):
    _require_key(engine)
    if engine.pending.get(local_id) is None:
        raise HTTPException(status_code=404, detail="Pending image not found")
    before = engine.status
    remote_id = await engine.save(local_id)
    _raise_on_error(engine, before)
    return {"remote_id": remote_id, **_state(engine)}


@router.patch("/persisted/{remote_id}/note")
async def set_persisted_note(remote_id: str, body: NoteUpdate, engine: StagingEngine = Depends(get_engine)):
    before = engine.status
    if not await engine.update_persisted_note(remote_id, body.note):
        _raise_on_error(engine, before)
    return _state(engine)


@router.delete("/persisted/{remote_id}")
async def delete_persisted(remote_id: str, confirm: bool = False, engine: StagingEngine = Depends(get_engine)):
    before = engine.status
    deleted = await engine.delete_persisted(remote_id, confirm=StaticConfirmer(confirm))
    _raise_on_error(engine, before)
    return {"deleted": deleted, **_state(engine)}


@router.delete("")
async def clear_all(confirm: bool = False, engine: StagingEngine = Depends(get_engine)):
    before = engine.status
    cleared = await engine.clear_all(confirm=StaticConfirmer(confirm))
    _raise_on_error(engine, before)
    return {"cleared": cleared, **_state(engine)}
