"""OData-style REST backend for the image store.

Records live in one entity set; the column names are configurable so the
same client can talk to tables with prefixed column names::

    GET    {base}/{entity}?$filter=key_data eq 'K'&$select=...
    POST   {base}/{entity}
    GET    {base}/{entity}({id})?$select=...
    PATCH  {base}/{entity}({id})
    DELETE {base}/{entity}({id})
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, Mapping, Optional, Sequence

import httpx
from pydantic import ValidationError

from imagestage.models import ImageRecord

from .base import ImageStore, ImageStoreAPIError, ImageStoreError, check_fields

logger = logging.getLogger(__name__)

_ENTITY_ID_RE = re.compile(r"\(([^)]+)\)\s*$")

DEFAULT_COLUMNS: Dict[str, str] = {
    "id": "image_id",
    "name": "image_name",
    "note": "notes",
    "image_base64": "image",
    "key_data": "key_data",
    "group_label": "table_name",
}

# Columns fetched when listing; the image payload is retrieved lazily.
_LIST_FIELDS = ("id", "name", "note", "key_data", "group_label")


class HttpImageStore(ImageStore):  # pylint: disable=too-few-public-methods
    """Minimal async client for an OData-style records API."""

    name = "http"

    def __init__(
        self,
        *,
        base_url: str,
        entity_set: str,
        token: str | None = None,
        columns: Mapping[str, str] | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._entity_set = entity_set
        self._columns = {**DEFAULT_COLUMNS, **(columns or {})}
        self._fields_by_column = {column: field for field, column in self._columns.items()}
        headers = {"Accept": "application/json", "OData-Version": "4.0"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(timeout=timeout, headers=headers, transport=transport)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def query(self, key_data: str) -> list[ImageRecord]:
        params = {
            "$filter": f"{self._columns['key_data']} eq {_odata_literal(key_data)}",
            "$select": self._select(_LIST_FIELDS),
        }
        data = await self._request("GET", self._collection_url(), params=params)
        return [self._to_record(row) for row in data.get("value", [])]

    async def create_record(self, fields: dict[str, Any]) -> str:
        body = self._to_columns(check_fields(fields))
        resp = await self._send(
            "POST",
            self._collection_url(),
            json=body,
            headers={"Prefer": "return=representation"},
        )
        record_id = None
        data = _json_or_none(resp, None) if resp.content else None
        if isinstance(data, dict):
            record_id = data.get(self._columns["id"])
        if not record_id:
            match = _ENTITY_ID_RE.search(resp.headers.get("OData-EntityId", ""))
            record_id = match.group(1) if match else None
        if not record_id:
            raise ImageStoreAPIError(resp.status_code, "Create succeeded without returning an id")
        logger.debug("Created record %s", record_id)
        return str(record_id)

    async def retrieve_record(self, record_id: str, select: Sequence[str] = ()) -> ImageRecord:
        params = {"$select": self._select(("id", *select))} if select else None
        data = await self._request("GET", self._record_url(record_id), params=params)
        data.setdefault(self._columns["id"], record_id)
        return self._to_record(data)

    async def update_record(self, record_id: str, fields: dict[str, Any]) -> None:
        await self._send("PATCH", self._record_url(record_id), json=self._to_columns(check_fields(fields)))

    async def delete_record(self, record_id: str) -> None:
        await self._send("DELETE", self._record_url(record_id))

    async def close(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _collection_url(self) -> str:
        return f"{self._base_url}/{self._entity_set}"

    def _record_url(self, record_id: str) -> str:
        return f"{self._collection_url()}({record_id})"

    def _select(self, fields: Sequence[str]) -> str:
        return ",".join(self._columns[field] for field in fields)

    def _to_columns(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        return {self._columns[field]: value for field, value in fields.items()}

    def _to_record(self, row: Mapping[str, Any]) -> ImageRecord:
        values = {
            self._fields_by_column[column]: value
            for column, value in row.items()
            if column in self._fields_by_column
        }
        if values.get("id") is not None:
            values["id"] = str(values["id"])
        try:
            return ImageRecord.model_validate(values)
        except ValidationError as exc:
            raise ImageStoreError(f"Malformed image record: {exc}") from exc

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        resp = await self._send(method, url, **kwargs)
        data = _json_or_none(resp, None)
        if not isinstance(data, dict):
            raise ImageStoreAPIError(resp.status_code, "Expected a JSON object in response")
        return data

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        logger.debug("%s %s", method, url)
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise ImageStoreError(f"{method} {url} failed: {exc}") from exc
        if resp.status_code >= 400:
            raise ImageStoreAPIError(resp.status_code, resp.text, _json_or_none(resp, None))
        return resp


def _odata_literal(value: str) -> str:
    """Quote a string for an OData filter, doubling embedded quotes."""

    return "'" + value.replace("'", "''") + "'"


def _json_or_none(resp: httpx.Response, default: Optional[Any]) -> Any:
    try:
        return resp.json()
    except ValueError:
        return default
