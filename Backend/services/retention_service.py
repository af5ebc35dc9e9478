from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from app.core.logging import get_logger
from app.models.records import NEWS_DELETE_PROP, NEWS_TITLE_PROP
from services.dedup_writer import DocumentStore
from services.notion_service import (
    and_filter,
    checkbox_equals,
    created_on_or_before,
    read_checkbox,
    read_created_time,
    read_title,
)

logger = get_logger()

DEFAULT_RETENTION_DAYS = 7


def retention_threshold(now: datetime, days: int = DEFAULT_RETENTION_DAYS) -> datetime:
    return now - timedelta(days=days)


def is_expired(page: Dict[str, Any], threshold: datetime) -> bool:
    """Flagged for deletion and created at or before the threshold."""
    if not read_checkbox(page, NEWS_DELETE_PROP):
        return False
    created = read_created_time(page)
    if created is None:
        return False
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created <= threshold


async def sweep_flagged_news(
    store: DocumentStore,
    database_id: str,
    *,
    days: int = DEFAULT_RETENTION_DAYS,
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    """
    Archive news pages that a curator flagged for deletion once they are
    at least `days` old.
    """
    now = now or datetime.now(timezone.utc)
    threshold = retention_threshold(now, days)
    pages = await store.query_database(
        database_id,
        filter=and_filter(
            checkbox_equals(NEWS_DELETE_PROP, True),
            created_on_or_before(threshold),
        ),
    )
    counters = {"candidates": len(pages), "archived": 0, "failed": 0}
    for page in pages:
        if not is_expired(page, threshold):
            continue
        page_id = page.get("id")
        try:
            await store.update_page(page_id, archived=True)
        except Exception as exc:
            counters["failed"] += 1
            logger.warning("retention_archive_failed", page_id=page_id, error=str(exc))
            continue
        counters["archived"] += 1
        logger.info(
            "retention_archived",
            page_id=page_id,
            title=read_title(page, NEWS_TITLE_PROP),
        )
    logger.info("retention_stage_finished", threshold=threshold.isoformat(), **counters)
    return counters
