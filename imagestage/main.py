from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from imagestage.config import get_settings
from imagestage.handlers import images_handler
from imagestage.services.store import get_store

logging.basicConfig(level=get_settings().log_level.upper())


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    if get_store.cache_info().currsize:
        await get_store().close()


app = FastAPI(title="ImageStage API", lifespan=lifespan)

app.include_router(images_handler.router)


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}
