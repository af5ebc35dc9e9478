from __future__ import annotations

from typing import Any, Dict, List

from app.core.logging import get_logger
from app.models.records import (
    CONFERENCE_DATE_PROP,
    CONFERENCE_NAME_PROP,
    CONFERENCE_REMARKS_PROP,
    CONFERENCE_URL_PROP,
    CONFERENCE_VENUE_PROP,
    ConferenceRecord,
)
from services.dedup_writer import DocumentStore, create_if_absent
from services.notion_service import rich_text_value, title_value, url_equals, url_value

logger = get_logger()


def build_conference_properties(record: ConferenceRecord) -> Dict[str, Any]:
    return {
        CONFERENCE_NAME_PROP: title_value(record.name),
        CONFERENCE_URL_PROP: url_value(record.url),
        CONFERENCE_DATE_PROP: rich_text_value(record.date_text),
        CONFERENCE_VENUE_PROP: rich_text_value(record.venue_text),
        CONFERENCE_REMARKS_PROP: rich_text_value(record.remarks_text),
    }


async def store_conferences(
    store: DocumentStore,
    database_id: str,
    records: List[ConferenceRecord],
) -> Dict[str, int]:
    """Write each conference once, keyed on its URL."""
    counters = {"rows": len(records), "duplicates": 0, "created": 0, "failed": 0}
    for record in records:
        try:
            created = await create_if_absent(
                store,
                database_id,
                unique_filter=url_equals(CONFERENCE_URL_PROP, record.url),
                properties=build_conference_properties(record),
            )
        except Exception as exc:
            counters["failed"] += 1
            logger.warning("conference_write_failed", name=record.name, url=record.url, error=str(exc))
            continue
        if created is None:
            counters["duplicates"] += 1
            continue
        counters["created"] += 1
        logger.info("conference_created", name=record.name, url=record.url, date=record.date_text)
    logger.info("conference_stage_finished", **counters)
    return counters
