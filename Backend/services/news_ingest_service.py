from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from app.config import Settings, settings as default_settings
from app.core.logging import get_logger
from app.core.throttle import IntervalGate
from app.models.feed_sources import FeedSource
from app.models.records import (
    NEWS_DELETE_PROP,
    NEWS_SOURCE_PROP,
    NEWS_TITLE_PROP,
    NEWS_URL_PROP,
    ExtractedContent,
    FeedItem,
    is_pubmed_url,
)
from services.content_extraction_service import ContentExtractionService
from services.dedup_writer import DocumentStore, record_exists
from services.feed_service import FeedService
from services.news_feed_rules import is_admitted, rules_for_source
from services.notion_service import (
    checkbox_value,
    chunk_text,
    paragraph_block,
    rich_text_value,
    title_equals,
    title_value,
    url_value,
)
from services.title_normalization import normalize_title

logger = get_logger()

COUNTER_KEYS = ("seen", "rejected", "duplicates", "created", "failed")


def _empty_counters() -> Dict[str, int]:
    return {key: 0 for key in COUNTER_KEYS}


def build_news_properties(title: str, url: str, source_name: str) -> Dict[str, Any]:
    return {
        NEWS_TITLE_PROP: title_value(title),
        NEWS_URL_PROP: url_value(url),
        NEWS_SOURCE_PROP: rich_text_value(source_name),
        NEWS_DELETE_PROP: checkbox_value(False),
    }


def build_body_blocks(body: str) -> List[Dict[str, Any]]:
    return [paragraph_block(chunk) for chunk in chunk_text(body)]


class NewsIngestService:
    """
    Feed → classifier → dedupe → enrichment → news page.

    Sources are processed one after another, items within a source likewise.
    A failing item is logged and counted; it never stops the run.
    """

    def __init__(
        self,
        *,
        store: DocumentStore,
        feeds: FeedService,
        extractor: ContentExtractionService,
        gate: Optional[IntervalGate] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or default_settings
        self.store = store
        self.feeds = feeds
        self.extractor = extractor
        self.gate = gate or IntervalGate(self.settings.NEWS_WRITE_INTERVAL_S, name="news_write")

    async def _enrich(self, item: FeedItem) -> ExtractedContent:
        # PubMed pages are filled in later by the abstract summarizer.
        with_body = not is_pubmed_url(item.link)
        content = await self.extractor.extract(item.link, with_body=with_body)
        if not content.image_url and item.enclosure_url:
            content = ExtractedContent(image_url=item.enclosure_url, body=content.body)
        return content

    async def ingest_item(self, database_id: str, source: FeedSource, item: FeedItem) -> str:
        """
        Returns one of 'rejected', 'duplicate' or 'created'.
        """
        title = normalize_title(item.raw_title, source.prefixes)
        if not title or not is_admitted(title, rules_for_source(source)):
            logger.debug("news_ingest_item_rejected", source=source.name, title=title or item.raw_title)
            return "rejected"

        if await record_exists(self.store, database_id, title_equals(NEWS_TITLE_PROP, title)):
            logger.debug("news_ingest_item_duplicate", source=source.name, title=title)
            return "duplicate"

        content = await self._enrich(item)
        await self.store.create_page(
            database_id,
            build_news_properties(title, item.link, source.name),
            children=build_body_blocks(content.body) or None,
            cover_url=content.image_url,
        )

        logger.info(
            "news_ingest_item_created",
            source=source.name,
            title=title,
            url=item.link,
            has_cover=bool(content.image_url),
            body_chars=len(content.body),
        )
        await self.gate.wait()
        return "created"

    async def ingest_source(self, database_id: str, source: FeedSource) -> Dict[str, int]:
        counters = _empty_counters()
        items = await self.feeds.fetch_items(source)
        for item in items:
            counters["seen"] += 1
            try:
                outcome = await self.ingest_item(database_id, source, item)
            except Exception as exc:
                counters["failed"] += 1
                logger.warning(
                    "news_ingest_item_failed",
                    source=source.name,
                    url=item.link,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                continue
            if outcome == "created":
                counters["created"] += 1
            elif outcome == "duplicate":
                counters["duplicates"] += 1
            else:
                counters["rejected"] += 1
        logger.info("news_ingest_source_finished", source=source.name, **counters)
        return counters

    async def run(self, database_id: str, sources: Sequence[FeedSource]) -> Dict[str, int]:
        totals: Dict[str, int] = {"sources": 0, **_empty_counters()}
        for source in sources:
            counters = await self.ingest_source(database_id, source)
            totals["sources"] += 1
            for key, value in counters.items():
                totals[key] += value
        logger.info("news_ingest_stage_finished", **totals)
        return totals
