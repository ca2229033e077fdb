from __future__ import annotations

from functools import lru_cache
from typing import Callable

from imagestage.config import Settings, get_settings

from .base import ImageStore
from .firebase_store import FirebaseImageStore
from .http_store import HttpImageStore


def _http_store(settings: Settings) -> ImageStore:
    return HttpImageStore(
        base_url=settings.store_base_url,
        entity_set=settings.store_entity_set,
        token=settings.store_token,
        timeout=settings.store_timeout,
        columns={
            "id": settings.column_id,
            "name": settings.column_name,
            "note": settings.column_note,
            "image_base64": settings.column_image,
            "key_data": settings.column_key_data,
            "group_label": settings.column_group_label,
        },
    )


_BACKENDS: dict[str, Callable[[Settings], ImageStore]] = {
    "http": _http_store,
    "firebase": FirebaseImageStore.from_settings,
}


@lru_cache()
def get_store() -> ImageStore:
    settings = get_settings()
    backend = settings.store_backend.lower()
    if backend not in _BACKENDS:
        raise ValueError(f"Unsupported image store backend: {backend}")
    return _BACKENDS[backend](settings)
