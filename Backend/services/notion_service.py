# Backend/services/notion_service.py
"""
Thin async client for the Notion REST API.

Notion databases are the document store of the pipeline: every stage queries
them to decide whether a record exists, creates pages on a miss and updates
or archives existing pages. Only the handful of property and filter shapes
the pipeline needs are modelled here.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from dateutil import parser as date_parser

from app.config import Settings, require_notion, settings as default_settings
from app.core.logging import get_logger

logger = get_logger()

NOTION_API_BASE = "https://api.notion.com/v1"
RICH_TEXT_LIMIT = 2000
MAX_PAGE_SIZE = 100
MAX_CHILDREN_PER_REQUEST = 100


class NotionAPIError(Exception):
    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(f"{status_code} {code}: {message}")
        self.status_code = status_code
        self.code = code
        self.message = message


# -------- Property values ----------------------------------------------------

def _text_objects(text: str) -> List[Dict[str, Any]]:
    return [{"text": {"content": chunk}} for chunk in chunk_text(text, RICH_TEXT_LIMIT)]


def title_value(text: str) -> Dict[str, Any]:
    return {"title": _text_objects(text)}


def rich_text_value(text: str) -> Dict[str, Any]:
    return {"rich_text": _text_objects(text)}


def url_value(url: Optional[str]) -> Dict[str, Any]:
    return {"url": url or None}


def checkbox_value(flag: bool) -> Dict[str, Any]:
    return {"checkbox": bool(flag)}


def select_value(name: str) -> Dict[str, Any]:
    return {"select": {"name": name}}


def paragraph_block(text: str) -> Dict[str, Any]:
    return {
        "object": "block",
        "type": "paragraph",
        "paragraph": {"rich_text": [{"type": "text", "text": {"content": text}}]},
    }


def chunk_text(text: str, limit: int = RICH_TEXT_LIMIT) -> List[str]:
    """Split text into consecutive segments of at most `limit` characters."""
    if not text:
        return []
    if limit <= 0:
        raise ValueError("limit must be positive")
    return [text[i:i + limit] for i in range(0, len(text), limit)]


# -------- Filters ------------------------------------------------------------

def title_equals(prop: str, value: str) -> Dict[str, Any]:
    return {"property": prop, "title": {"equals": value}}


def url_equals(prop: str, value: str) -> Dict[str, Any]:
    return {"property": prop, "url": {"equals": value}}


def url_contains(prop: str, value: str) -> Dict[str, Any]:
    return {"property": prop, "url": {"contains": value}}


def rich_text_is_empty(prop: str) -> Dict[str, Any]:
    return {"property": prop, "rich_text": {"is_empty": True}}


def rich_text_is_not_empty(prop: str) -> Dict[str, Any]:
    return {"property": prop, "rich_text": {"is_not_empty": True}}


def checkbox_equals(prop: str, flag: bool) -> Dict[str, Any]:
    return {"property": prop, "checkbox": {"equals": bool(flag)}}


def created_on_or_before(moment: datetime) -> Dict[str, Any]:
    return {"timestamp": "created_time", "created_time": {"on_or_before": moment.isoformat()}}


def and_filter(*filters: Dict[str, Any]) -> Dict[str, Any]:
    return {"and": list(filters)}


CREATED_TIME_DESC = [{"timestamp": "created_time", "direction": "descending"}]


# -------- Reading pages ------------------------------------------------------

def _plain_text(items: Any) -> str:
    if not isinstance(items, list):
        return ""
    parts: List[str] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        text = item.get("plain_text")
        if text is None:
            text = (item.get("text") or {}).get("content")
        if text:
            parts.append(str(text))
    return "".join(parts)


def _prop(page: Dict[str, Any], name: str) -> Dict[str, Any]:
    props = page.get("properties") or {}
    value = props.get(name)
    return value if isinstance(value, dict) else {}


def read_title(page: Dict[str, Any], prop: str) -> str:
    return _plain_text(_prop(page, prop).get("title"))


def read_rich_text(page: Dict[str, Any], prop: str) -> str:
    return _plain_text(_prop(page, prop).get("rich_text"))


def read_url(page: Dict[str, Any], prop: str) -> Optional[str]:
    value = _prop(page, prop).get("url")
    return value if isinstance(value, str) and value else None


def read_checkbox(page: Dict[str, Any], prop: str) -> bool:
    return bool(_prop(page, prop).get("checkbox"))


def read_created_time(page: Dict[str, Any]) -> Optional[datetime]:
    raw = page.get("created_time")
    if not raw:
        return None
    try:
        return date_parser.isoparse(str(raw))
    except (ValueError, OverflowError):
        logger.warning("notion_invalid_created_time", page_id=page.get("id"), value=raw)
        return None


# -------- Client -------------------------------------------------------------

class NotionService:
    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.settings = settings or default_settings
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "NotionService":
        if self._client is None:
            token = require_notion(self.settings)
            self._client = httpx.AsyncClient(
                base_url=NOTION_API_BASE,
                timeout=self.settings.HTTP_TIMEOUT_S,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Notion-Version": self.settings.NOTION_VERSION,
                    "Content-Type": "application/json",
                },
            )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._client and self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if self._client is None:
            raise RuntimeError("NotionService client not initialized")
        response = await self._client.request(method, path, json=payload)
        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            raise NotionAPIError(
                response.status_code,
                str(body.get("code") or "http_error"),
                str(body.get("message") or response.text[:300]),
            )
        return response.json()

    async def query_database(
        self,
        database_id: str,
        *,
        filter: Optional[Dict[str, Any]] = None,
        sorts: Optional[List[Dict[str, Any]]] = None,
        page_size: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Query a database, following pagination until exhausted or `limit`
        pages have been collected.
        """
        results: List[Dict[str, Any]] = []
        cursor: Optional[str] = None
        size = min(page_size or MAX_PAGE_SIZE, MAX_PAGE_SIZE)
        if limit is not None:
            size = max(1, min(size, limit))
        while True:
            payload: Dict[str, Any] = {"page_size": size}
            if filter:
                payload["filter"] = filter
            if sorts:
                payload["sorts"] = sorts
            if cursor:
                payload["start_cursor"] = cursor
            data = await self._request("POST", f"/databases/{database_id}/query", payload)
            results.extend(data.get("results") or [])
            if limit is not None and len(results) >= limit:
                return results[:limit]
            cursor = data.get("next_cursor")
            if not data.get("has_more") or not cursor:
                return results

    async def create_page(
        self,
        database_id: str,
        properties: Dict[str, Any],
        *,
        children: Optional[List[Dict[str, Any]]] = None,
        cover_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "parent": {"database_id": database_id},
            "properties": properties,
        }
        blocks = list(children or [])
        if blocks:
            payload["children"] = blocks[:MAX_CHILDREN_PER_REQUEST]
        if cover_url:
            payload["cover"] = {"type": "external", "external": {"url": cover_url}}
        page = await self._request("POST", "/pages", payload)
        remaining = blocks[MAX_CHILDREN_PER_REQUEST:]
        while remaining:
            batch, remaining = remaining[:MAX_CHILDREN_PER_REQUEST], remaining[MAX_CHILDREN_PER_REQUEST:]
            await self._request("PATCH", f"/blocks/{page['id']}/children", {"children": batch})
        return page

    async def update_page(
        self,
        page_id: str,
        *,
        properties: Optional[Dict[str, Any]] = None,
        archived: Optional[bool] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if properties:
            payload["properties"] = properties
        if archived is not None:
            payload["archived"] = archived
        if not payload:
            raise ValueError("update_page requires properties or archived")
        return await self._request("PATCH", f"/pages/{page_id}", payload)
