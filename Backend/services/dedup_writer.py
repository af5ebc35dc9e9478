from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

from app.core.logging import get_logger

logger = get_logger()


class DocumentStore(Protocol):
    async def query_database(
        self,
        database_id: str,
        *,
        filter: Optional[Dict[str, Any]] = None,
        sorts: Optional[List[Dict[str, Any]]] = None,
        page_size: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]: ...

    async def create_page(
        self,
        database_id: str,
        properties: Dict[str, Any],
        *,
        children: Optional[List[Dict[str, Any]]] = None,
        cover_url: Optional[str] = None,
    ) -> Dict[str, Any]: ...

    async def update_page(
        self,
        page_id: str,
        *,
        properties: Optional[Dict[str, Any]] = None,
        archived: Optional[bool] = None,
    ) -> Dict[str, Any]: ...


async def record_exists(store: DocumentStore, database_id: str, unique_filter: Dict[str, Any]) -> bool:
    matches = await store.query_database(database_id, filter=unique_filter, limit=1)
    return bool(matches)


async def create_if_absent(
    store: DocumentStore,
    database_id: str,
    *,
    unique_filter: Dict[str, Any],
    properties: Dict[str, Any],
    children: Optional[List[Dict[str, Any]]] = None,
    cover_url: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Create a page unless a page matching `unique_filter` already exists.

    Returns the created page, or None when a match was found. The query and
    the create are two separate calls; two overlapping runs can both miss and
    both create.
    """
    if await record_exists(store, database_id, unique_filter):
        logger.debug("dedup_writer_exists", database_id=database_id, filter=unique_filter)
        return None
    return await store.create_page(
        database_id,
        properties,
        children=children,
        cover_url=cover_url,
    )
